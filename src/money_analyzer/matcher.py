"""PayPal-to-bank transaction matching.

Each external PayPal record is scored against every bank transaction and
paired with the best candidate, provided that candidate clears a high
confidence bar. Scoring is additive:

==========================================  ======
Criterion                                   Weight
==========================================  ======
Absolute amounts within 1 cent              0.60
Dates within 3 days (flat, not decayed)     0.40
PayPal name found in the bank description   0.20
Processor keyword anywhere (once)           0.10
==========================================  ======

The total is capped at 1.0 and must be strictly greater than 0.80, so an
amount match alone, or name and keyword bonuses alone, never qualify.

By default a bank transaction may be the best partner of several PayPal
records. ``exclusive=True`` instead assigns pairs greedily by descending
score so every bank transaction is claimed at most once.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from decimal import Decimal

from money_analyzer.models import Match, PayPalData, PayPalRecord, Transaction

logger = logging.getLogger(__name__)

# Internal PayPal movements that never appear as a separate bank payment.
EXCLUDED_TYPES = frozenset(
    {
        "Transfer to PayPal account",
        "User Initiated Withdrawal",
        "General Currency Conversion",
    }
)
COMPLETED_STATUS = "Completed"

AMOUNT_TOLERANCE = Decimal("0.01")
DATE_WINDOW_DAYS = 3
SAME_DAY_WINDOW_DAYS = 1
MIN_CONFIDENCE = 0.80

AMOUNT_WEIGHT = 0.60
DATE_WEIGHT = 0.40
NAME_WEIGHT = 0.20
KEYWORD_WEIGHT = 0.10

KEYWORDS = ("paypal", "alipay", "express checkout", "payment")


def is_external_payment(record: PayPalRecord) -> bool:
    """True if *record* is a completed payment to or from a third party."""
    return record.type not in EXCLUDED_TYPES and record.status == COMPLETED_STATUS


def _day_difference(bank: Transaction, record: PayPalRecord) -> int:
    return abs((bank.date - record.date).days)


def _amount_difference(bank: Transaction, record: PayPalRecord) -> Decimal:
    # Exact to the cent at any magnitude.
    return abs(Decimal(str(abs(bank.money))) - Decimal(str(abs(record.total))))


def _name_in_description(bank: Transaction, record: PayPalRecord) -> bool:
    name = record.name.lower()
    return bool(name) and name in bank.description.lower()


def score(bank: Transaction, record: PayPalRecord) -> float:
    """Return the match confidence of *bank* and *record*, in [0, 1]."""
    confidence = 0.0

    if _amount_difference(bank, record) <= AMOUNT_TOLERANCE:
        confidence += AMOUNT_WEIGHT

    if _day_difference(bank, record) <= DATE_WINDOW_DAYS:
        confidence += DATE_WEIGHT

    if _name_in_description(bank, record):
        confidence += NAME_WEIGHT

    desc = bank.description.lower()
    name = record.name.lower()
    rtype = record.type.lower()
    if any(kw in desc or kw in name or kw in rtype for kw in KEYWORDS):
        confidence += KEYWORD_WEIGHT

    return min(confidence, 1.0)


def match_reason(bank: Transaction, record: PayPalRecord) -> str:
    """Describe which criteria hold for *bank* and *record*.

    The text is built from the raw criteria, not from the score, e.g.
    ``"Exact amount match, Same day transaction"``.
    """
    reasons: list[str] = []

    if _amount_difference(bank, record) == 0:
        reasons.append("Exact amount match")

    days = _day_difference(bank, record)
    if days <= SAME_DAY_WINDOW_DAYS:
        reasons.append("Same day transaction")
    elif days <= DATE_WINDOW_DAYS:
        reasons.append("Within 3 days")

    if _name_in_description(bank, record):
        reasons.append("Name match in description")

    return ", ".join(reasons)


def match(
    bank_transactions: Sequence[Transaction],
    records: Sequence[PayPalRecord],
    exclusive: bool = False,
) -> list[Match]:
    """Propose one bank transaction for each external PayPal record.

    Args:
        bank_transactions: Canonical bank transactions to match against.
        records: Parsed PayPal records. Internal transfers, withdrawals,
            currency conversions and non-completed rows are skipped.
        exclusive: Forbid a bank transaction from being matched to more
            than one record.

    Returns:
        Matches in PayPal record order. Records without a candidate above
        the threshold are simply absent.
    """
    external = [r for r in records if is_external_payment(r)]

    if exclusive:
        matches = _match_exclusive(bank_transactions, external)
    else:
        matches = []
        for record in external:
            best: Transaction | None = None
            best_confidence = 0.0
            for bank in bank_transactions:
                confidence = score(bank, record)
                # First-seen wins ties
                if confidence > best_confidence and confidence > MIN_CONFIDENCE:
                    best = bank
                    best_confidence = confidence
            if best is not None:
                matches.append(
                    Match(
                        bank_transaction=best,
                        record=record,
                        confidence=best_confidence,
                        reason=match_reason(best, record),
                    )
                )

    logger.info(
        "Matched %d of %d external PayPal record(s)", len(matches), len(external)
    )
    return matches


def _match_exclusive(
    bank_transactions: Sequence[Transaction],
    records: list[PayPalRecord],
) -> list[Match]:
    """Greedy one-to-one assignment by descending score.

    Ties keep scan order: lower record index first, then lower bank index.
    """
    candidates: list[tuple[float, int, int]] = []
    for r_idx, record in enumerate(records):
        for b_idx, bank in enumerate(bank_transactions):
            confidence = score(bank, record)
            if confidence > MIN_CONFIDENCE:
                candidates.append((confidence, r_idx, b_idx))

    candidates.sort(key=lambda c: (-c[0], c[1], c[2]))

    used_records: set[int] = set()
    used_banks: set[int] = set()
    chosen: dict[int, tuple[float, int]] = {}
    for confidence, r_idx, b_idx in candidates:
        if r_idx in used_records or b_idx in used_banks:
            continue
        used_records.add(r_idx)
        used_banks.add(b_idx)
        chosen[r_idx] = (confidence, b_idx)

    matches: list[Match] = []
    for r_idx in sorted(chosen):
        confidence, b_idx = chosen[r_idx]
        bank = bank_transactions[b_idx]
        record = records[r_idx]
        matches.append(
            Match(
                bank_transaction=bank,
                record=record,
                confidence=confidence,
                reason=match_reason(bank, record),
            )
        )
    return matches


def annotate_description(description: str, record: PayPalRecord) -> str:
    """Append the PayPal counterparty and type to a bank description."""
    return f"{description} | PayPal: {record.name} ({record.type})"


def apply_match(m: Match) -> Transaction:
    """Fold a match into its bank transaction, in place.

    Sets ``secondary_source_data`` and annotates ``description``. The
    transaction's ID, date, amount and category are left untouched.
    The first applied record wins: re-applying it, or applying a different
    record to an already matched transaction, is a no-op.

    Returns:
        The (mutated) bank transaction.
    """
    txn = m.bank_transaction
    existing = txn.secondary_source_data
    if existing is not None:
        if existing.transaction_id != m.record.transaction_id:
            logger.debug(
                "Transaction %s already matched to %s, ignoring %s",
                txn.transaction_id,
                existing.transaction_id,
                m.record.transaction_id,
            )
        return txn

    txn.description = annotate_description(txn.description, m.record)
    txn.secondary_source_data = PayPalData(
        name=m.record.name,
        type=m.record.type,
        transaction_id=m.record.transaction_id,
        receipt_id=m.record.receipt_id,
        item_title=m.record.item_title,
        confidence=m.confidence,
        reason=m.reason,
    )
    return txn
