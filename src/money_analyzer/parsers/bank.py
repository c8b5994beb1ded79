"""Bank ledger CSV parser.

Bank CSV format (no header row):
    date, amount, description

Dates are ``DD/MM/YYYY`` (day first) or ISO ``YYYY-MM-DD``. Amounts may be
quoted and may carry currency symbols or thousands separators.

Sign convention:
    Negative amounts are outflows (expenses).
    Positive amounts are inflows (income, refunds).

Unlike the PayPal parser, this parser is strict: any row whose date or
amount cannot be parsed rejects the whole file with a
:class:`~money_analyzer.exceptions.MalformedRowError`, so a truncated ledger
is never imported.
"""

from __future__ import annotations

import csv
import io
import logging
import re
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from pathlib import Path

from money_analyzer.exceptions import MalformedRowError, MoneyAnalyzerError
from money_analyzer.models import StageResult, Transaction, generate_transaction_id

logger = logging.getLogger(__name__)

_AMOUNT_STRIP_RE = re.compile(r"[\"'$,€£¥\s]")


def parse_date(text: str) -> date | None:
    """Parse a ``DD/MM/YYYY`` or ISO date string.

    The slash form is always read day first, so ``13/01/2025`` and
    ``01/13/2025`` are not interchangeable: the latter is rejected. Strings
    without a slash are handed to ISO parsing, which also accepts a
    trailing time component. The year must have four digits; ``27/07/25``
    is rejected rather than read as year 25.

    Returns:
        The calendar date, or None if *text* is not a valid date.
    """
    text = text.strip()
    if not text:
        return None

    if "/" in text:
        parts = text.split("/")
        if len(parts) == 3 and len(parts[2]) == 4:
            try:
                day, month, year = (int(p) for p in parts)
                return date(year, month, day)
            except ValueError:
                pass

    try:
        return date.fromisoformat(text)
    except ValueError:
        pass
    try:
        return datetime.fromisoformat(text).date()
    except ValueError:
        return None


def parse_amount(text: str) -> float | None:
    """Parse an amount, ignoring quotes, currency symbols and separators.

    Returns:
        The amount as a float, or None if nothing numeric remains or the
        value is not finite.
    """
    cleaned = _AMOUNT_STRIP_RE.sub("", text)
    if not cleaned:
        return None
    try:
        value = Decimal(cleaned)
    except InvalidOperation:
        return None
    if not value.is_finite():
        return None
    return float(value)


def parse_text(text: str) -> StageResult:
    """Parse bank CSV content into canonical transactions.

    Args:
        text: The full CSV content.

    Returns:
        A StageResult with one transaction per non-zero row, in file order.

    Raises:
        MalformedRowError: If any row has fewer than three columns, an
            empty required field, an invalid date, or an invalid amount.
            The error carries the 1-based row number and the field name.
    """
    transactions: list[Transaction] = []
    dropped = 0

    reader = csv.reader(io.StringIO(text))
    for row_number, row in enumerate(reader, start=1):
        # Skip blank lines
        if not row or all(not cell.strip() for cell in row):
            continue

        if len(row) < 3:
            raise MalformedRowError(
                row_number,
                "columns",
                "Expected 3 columns (date, money, description)",
            )

        date_str, amount_str, description = row[0].strip(), row[1].strip(), row[2].strip()
        if not date_str or not amount_str or not description:
            missing = "date" if not date_str else "amount" if not amount_str else "description"
            raise MalformedRowError(row_number, missing, f"Missing required field ({missing})")

        txn_date = parse_date(date_str)
        if txn_date is None:
            raise MalformedRowError(row_number, "date", f"Invalid date format: {date_str!r}")

        money = parse_amount(amount_str)
        if money is None:
            raise MalformedRowError(row_number, "amount", f"Invalid money format: {amount_str!r}")

        if money == 0:
            dropped += 1
            logger.debug("Dropping zero-amount row %d (%s)", row_number, description)
            continue

        transactions.append(
            Transaction(
                transaction_id=generate_transaction_id(txn_date, money, description),
                date=txn_date,
                money=money,
                description=description,
                is_income=money > 0,
            )
        )

    if dropped:
        logger.debug("Dropped %d zero-amount row(s)", dropped)

    return StageResult(transactions=transactions)


def parse(file_path: Path) -> StageResult:
    """Read and parse a bank CSV file.

    The file is read in full before parsing; the call either returns every
    transaction or raises, never a partial result.

    Raises:
        MalformedRowError: See :func:`parse_text`.
        MoneyAnalyzerError: If the file cannot be read.
    """
    source = str(file_path)
    try:
        text = Path(file_path).read_text(encoding="utf-8-sig")
    except FileNotFoundError as exc:
        raise MoneyAnalyzerError(f"{source}: file not found") from exc
    except (OSError, UnicodeDecodeError) as exc:
        raise MoneyAnalyzerError(f"{source}: {exc}") from exc

    result = parse_text(text)
    logger.info("Parsed %d transaction(s) from %s", len(result.transactions), source)
    return result
