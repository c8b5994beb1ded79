"""Core data models for Money Analyzer.

This module defines all dataclasses and utility functions used throughout the
package. It has zero internal imports -- everything depends on it, but it
depends on nothing within the package.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import date

_FNV32_OFFSET = 0x811C9DC5
_FNV32_PRIME = 0x01000193


def fnv1a_32(text: str) -> int:
    """Return the 32-bit FNV-1a hash of the UTF-8 bytes of *text*.

    Used for transaction identity and for palette lookup of custom
    categories. Unlike the builtin ``hash()``, the result is identical across
    processes, platforms, and reimplementations in other languages.
    """
    value = _FNV32_OFFSET
    for byte in text.encode("utf-8"):
        value ^= byte
        value = (value * _FNV32_PRIME) & 0xFFFFFFFF
    return value


def generate_transaction_id(txn_date: date, money: float, description: str) -> str:
    """Generate a deterministic transaction ID from uniqueness components.

    The ID is 16 lowercase hex characters: the FNV-1a digest of
    ``"<iso date>|<amount to 2dp>|<trimmed description>"`` followed by the
    FNV-1a digest of the trimmed description alone. Mixing in the
    description-only hash keeps same-day, same-amount rows with different
    descriptions apart.

    This ensures that:
    - The same CSV row always produces the same ID (deterministic).
    - Re-importing an overlapping export yields the same IDs, so duplicates
      can be dropped by set difference.

    Args:
        txn_date: Transaction date.
        money: Signed transaction amount.
        description: Description from the source file (will be stripped).

    Returns:
        A 16-character lowercase hex string.
    """
    desc = description.strip()
    composite = f"{txn_date.isoformat()}|{money:.2f}|{desc}"
    return f"{fnv1a_32(composite):08x}{fnv1a_32(desc):08x}"


# ---------------------------------------------------------------------------
# Categories
# ---------------------------------------------------------------------------

INCOME_LABEL = "Income"
INVESTMENT_LABEL = "Investment"
INCOME_OFFSET_LABEL = "Income Offset"
UNCATEGORIZED_LABEL = "Uncategorized"


class CategoryKind(enum.Enum):
    """How a category label affects flow-type aggregation."""

    EXPENSE = "expense"
    INCOME = "income"
    INVESTMENT = "investment"
    INCOME_OFFSET = "income_offset"
    CUSTOM = "custom"


@dataclass(frozen=True)
class CategoryLabel:
    """A category attached to a transaction.

    The plain string (``name``) only matters at the serialization boundary;
    everything inside the package dispatches on ``kind``.

    Attributes:
        kind: Aggregation semantics of the label.
        name: Display/serialized label, e.g. ``"Groceries"``.
    """

    kind: CategoryKind
    name: str

    @property
    def is_investment(self) -> bool:
        return self.kind is CategoryKind.INVESTMENT

    @property
    def is_income_offset(self) -> bool:
        return self.kind is CategoryKind.INCOME_OFFSET

    def __str__(self) -> str:
        return self.name


@dataclass
class CategoryConfig:
    """A category known to the application (default taxonomy or user-added).

    Attributes:
        id: Stable slug, e.g. ``"personal-care"``.
        name: Display name, e.g. ``"Personal Care"``.
        color: Hex color used by charts, e.g. ``"#3B82F6"``.
        description: Short explanation, also used in LLM prompts.
    """

    id: str
    name: str
    color: str
    description: str = ""


@dataclass
class CategoryRule:
    """A description-pattern to category rule.

    Rules are matched via case-insensitive substring matching against the
    transaction description. The highest-confidence matching rule wins;
    ties go to the longer pattern, then to list order.

    Attributes:
        pattern: Substring to match (case-insensitive).
        category: Target category label.
        confidence: Score in [0, 1] reported with the suggestion.
        reason: Short human-readable explanation.
        source: ``"builtin"`` for the shipped keyword table or ``"user"``
            for rules from ``rules.toml``.
    """

    pattern: str
    category: str
    confidence: float = 1.0
    reason: str = ""
    source: str = "user"


# ---------------------------------------------------------------------------
# Transactions
# ---------------------------------------------------------------------------


@dataclass
class PayPalData:
    """Processor metadata attached to a bank transaction by an applied match.

    Attributes:
        name: Counterparty name from the PayPal export.
        type: PayPal transaction type, e.g. ``"Express Checkout Payment"``.
        transaction_id: PayPal's own transaction identifier.
        receipt_id: PayPal receipt identifier, often empty.
        item_title: Purchased item title, often empty.
        confidence: Match confidence in [0, 1].
        reason: Human-readable list of the criteria that matched.
    """

    name: str
    type: str
    transaction_id: str
    receipt_id: str = ""
    item_title: str = ""
    confidence: float = 0.0
    reason: str = ""


@dataclass
class Transaction:
    """A single canonical ledger entry.

    Parsers fill in the base fields; categorization sets ``category`` and
    applied PayPal matches set ``secondary_source_data`` (and annotate
    ``description``). ``transaction_id``, ``date`` and ``money`` never change
    after parsing.

    Attributes:
        transaction_id: Deterministic 16-char hex hash, the dedup key.
        date: Transaction date.
        money: Signed amount. Positive is an inflow, negative an outflow.
            Never zero.
        description: Description from the bank CSV, stripped.
        category: Assigned category, or None when uncategorized.
        is_income: ``money > 0``, fixed at parse time. Categories never
            change it.
        secondary_source_data: Metadata from an applied PayPal match.
    """

    transaction_id: str
    date: date
    money: float
    description: str
    category: CategoryLabel | None = None
    is_income: bool = False
    secondary_source_data: PayPalData | None = None


@dataclass
class PayPalRecord:
    """One row of a PayPal activity export.

    Numeric fields default to ``0.0`` and string fields to ``""`` when the
    export leaves them blank. ``date`` is the resolved calendar date; the raw
    text is kept in ``date_text``.
    """

    date: date
    date_text: str = ""
    time: str = ""
    time_zone: str = ""
    name: str = ""
    type: str = ""
    status: str = ""
    currency: str = ""
    amount: float = 0.0
    fees: float = 0.0
    total: float = 0.0
    exchange_rate: str = ""
    receipt_id: str = ""
    balance: float = 0.0
    transaction_id: str = ""
    item_title: str = ""


@dataclass
class Match:
    """A proposed pairing of a bank transaction and a PayPal record.

    Matches are ephemeral: nothing is stored until the match is applied.
    """

    bank_transaction: Transaction
    record: PayPalRecord
    confidence: float
    reason: str


@dataclass
class StageResult:
    """Return type for tolerant, batch-level operations.

    Each operation processes what it can and reports what it could not.

    Attributes:
        transactions: The transactions after processing.
        warnings: Non-fatal issues, such as dropped rows or unparseable
            LLM responses.
        errors: Issues that prevented part of the work from happening.
    """

    transactions: list[Transaction] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)


@dataclass
class PayPalParseResult:
    """Records parsed from a PayPal export plus any fallback warnings."""

    records: list[PayPalRecord] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


@dataclass
class ImportResult:
    """Outcome of merging transactions into the application state."""

    added: int = 0
    skipped: int = 0
    total: int = 0


# ---------------------------------------------------------------------------
# Analytics results
# ---------------------------------------------------------------------------


@dataclass
class TrendPoint:
    """One point of a cumulative series, one per transaction in date order."""

    date: date
    value: float
    cumulative: float


@dataclass
class SpendingAnalysis:
    """Period averages and dispersion of expense amounts.

    All fields are zero when there are no expenses.
    """

    daily_average: float = 0.0
    weekly_average: float = 0.0
    monthly_average: float = 0.0
    yearly_average: float = 0.0
    variance: float = 0.0
    standard_deviation: float = 0.0


@dataclass
class CategorySpend:
    """Spending total for one category with its chart color."""

    name: str
    amount: float
    color: str


@dataclass
class IncomeAnalysis:
    """Salary-relative income figures.

    Attributes:
        weekly_income_increase: Yearly salary / 52.
        monthly_income_increase: Yearly salary / 12.
        savings_rate: Percent of income not spent or invested; 0 when there
            is no income.
        income_trend: OLS slope of income amounts vs chronological index.
    """

    weekly_income_increase: float = 0.0
    monthly_income_increase: float = 0.0
    savings_rate: float = 0.0
    income_trend: float = 0.0


@dataclass
class AnalysisResult:
    """Aggregate view of a transaction set, consumed by reports.

    ``spending_trend`` is the least-squares slope of expense size against
    chronological index; positive means purchases are getting larger.
    """

    total_spending: float = 0.0
    total_income: float = 0.0
    total_investments: float = 0.0
    net_change: float = 0.0
    average_daily_spending: float = 0.0
    average_weekly_spending: float = 0.0
    average_monthly_spending: float = 0.0
    average_yearly_spending: float = 0.0
    spending_variance: float = 0.0
    spending_standard_deviation: float = 0.0
    spending_trend: float = 0.0
    spending_by_category: dict[str, float] = field(default_factory=dict)
    top_categories: list[CategorySpend] = field(default_factory=list)
    trend_data: list[TrendPoint] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


@dataclass
class AppConfig:
    """Top-level application configuration loaded from config.toml.

    Attributes:
        data_file: Snapshot JSON path, relative to the project root.
            Default: "money-data.json".
        currency: ISO currency code used when formatting amounts.
        exclusive_matching: When True, a bank transaction can be claimed by
            at most one PayPal record.
        llm_provider: "gemini", "anthropic" or "none".
        llm_model: Model identifier for the provider.
        llm_api_key_env: Name of the environment variable containing the
            API key.
        llm_batch_size: Transactions per LLM request, clamped to 1..50.
    """

    data_file: str = "money-data.json"
    currency: str = "USD"
    exclusive_matching: bool = False
    llm_provider: str = "gemini"
    llm_model: str = "gemini-2.5-flash-lite"
    llm_api_key_env: str = "GEMINI_API_KEY"
    llm_batch_size: int = 20
