"""In-memory application state and the operations that change it.

:class:`AppState` holds everything a project persists: the transaction
ledger, the category list and the two user-entered figures (current
balance and yearly salary). CLI commands load it from the snapshot, call
one or more operations, and save it back.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable
from dataclasses import dataclass, field

from money_analyzer.categories import category_color, default_categories, parse_category
from money_analyzer.matcher import apply_match
from money_analyzer.models import CategoryConfig, ImportResult, Match, Transaction

logger = logging.getLogger(__name__)

IMPORT_MODES = ("combine", "replace")

# Fields fixed at parse time.
_IMMUTABLE_FIELDS = frozenset({"transaction_id", "date", "money", "is_income"})


def _slugify(name: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", name.strip().lower()).strip("-")


@dataclass
class AppState:
    """Mutable application state.

    Attributes:
        transactions: Ledger in import order. IDs are unique.
        categories: Known categories, the default taxonomy to start with.
        current_balance: User-entered account balance, or None if never set.
        yearly_salary: User-entered yearly salary, or None if never set.
    """

    transactions: list[Transaction] = field(default_factory=list)
    categories: list[CategoryConfig] = field(default_factory=default_categories)
    current_balance: float | None = None
    yearly_salary: float | None = None

    # -- Transactions ----------------------------------------------------------

    def get_transaction(self, transaction_id: str) -> Transaction | None:
        for txn in self.transactions:
            if txn.transaction_id == transaction_id:
                return txn
        return None

    def _require(self, transaction_id: str) -> Transaction:
        txn = self.get_transaction(transaction_id)
        if txn is None:
            raise KeyError(f"No transaction with id {transaction_id!r}")
        return txn

    def import_transactions(
        self,
        new: Iterable[Transaction],
        mode: str = "combine",
    ) -> ImportResult:
        """Merge parsed transactions into the ledger.

        ``combine`` keeps existing entries and appends only transactions
        whose ID is not present yet (the first occurrence wins within
        *new* too). ``replace`` discards the current ledger.

        Raises:
            ValueError: If *mode* is not ``"combine"`` or ``"replace"``.
        """
        if mode not in IMPORT_MODES:
            raise ValueError(f"Unknown import mode {mode!r}, expected one of {IMPORT_MODES}")

        incoming = list(new)
        if mode == "replace":
            self.transactions = []

        seen = {txn.transaction_id for txn in self.transactions}
        added = 0
        skipped = 0
        for txn in incoming:
            if txn.transaction_id in seen:
                skipped += 1
                continue
            seen.add(txn.transaction_id)
            self.transactions.append(txn)
            added += 1

        if skipped:
            logger.info("Skipped %d duplicate transaction(s)", skipped)
        return ImportResult(added=added, skipped=skipped, total=len(self.transactions))

    def update_transaction(self, transaction_id: str, **changes) -> Transaction:
        """Change the editable fields of a transaction.

        Only ``description``, ``category`` and ``secondary_source_data`` can
        change. ``category`` may be given as a string.

        Raises:
            KeyError: If no transaction has *transaction_id*.
            ValueError: If *changes* names a fixed or unknown field.
        """
        txn = self._require(transaction_id)
        for name, value in changes.items():
            if name in _IMMUTABLE_FIELDS:
                raise ValueError(f"Field {name!r} cannot be changed after import")
            if not hasattr(txn, name):
                raise ValueError(f"Unknown transaction field {name!r}")
            if name == "category" and (value is None or isinstance(value, str)):
                value = parse_category(value)
            setattr(txn, name, value)
        return txn

    def delete_transaction(self, transaction_id: str) -> bool:
        """Remove a transaction. Returns False if it did not exist."""
        before = len(self.transactions)
        self.transactions = [t for t in self.transactions if t.transaction_id != transaction_id]
        return len(self.transactions) < before

    def set_category(self, transaction_id: str, label: str | None) -> Transaction:
        """Assign a category by label; a blank or None label uncategorizes."""
        txn = self._require(transaction_id)
        txn.category = parse_category(label)
        return txn

    def apply_matches(self, matches: Iterable[Match]) -> int:
        """Fold PayPal matches into the ledger.

        A transaction claimed by several records keeps the first one applied.

        Returns:
            The number of transactions that changed.
        """
        changed = 0
        for m in matches:
            before = m.bank_transaction.secondary_source_data
            apply_match(m)
            if m.bank_transaction.secondary_source_data is not before:
                changed += 1
        return changed

    # -- Categories --------------------------------------------------------------

    def get_category(self, name: str) -> CategoryConfig | None:
        key = name.strip().lower()
        for cat in self.categories:
            if cat.name.lower() == key or cat.id == key:
                return cat
        return None

    def add_category(
        self,
        name: str,
        color: str | None = None,
        description: str = "",
    ) -> CategoryConfig:
        """Add a user category.

        Raises:
            ValueError: If the name is blank or already known.
        """
        name = name.strip()
        if not name:
            raise ValueError("Category name must not be empty")
        if self.get_category(name) is not None:
            raise ValueError(f"Category {name!r} already exists")
        config = CategoryConfig(
            id=_slugify(name) or name.lower(),
            name=name,
            color=color or category_color(name),
            description=description,
        )
        self.categories.append(config)
        return config

    def delete_category(self, name: str) -> bool:
        """Remove a category from the list.

        Transactions keep their label; it simply stops being a known
        category.
        """
        cat = self.get_category(name)
        if cat is None:
            return False
        self.categories = [c for c in self.categories if c is not cat]
        return True

    # -- Whole state ---------------------------------------------------------------

    def reset(self) -> None:
        """Return to an empty ledger with the default categories."""
        self.transactions = []
        self.categories = default_categories()
        self.current_balance = None
        self.yearly_salary = None
