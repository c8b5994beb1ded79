"""PayPal activity export parser.

PayPal CSV format (header row):
    Date, Time, Time zone, Name, Type, Status, Currency, Amount, Fees,
    Total, Exchange Rate, Receipt ID, Balance, Transaction ID, Item Title

PayPal data only enriches bank transactions, so this parser is tolerant:
missing text fields become ``""``, missing or invalid numbers become
``0.0``, and an unparseable date falls back to *today* with a logged
warning instead of failing the file.
"""

from __future__ import annotations

import csv
import io
import logging
from datetime import date
from pathlib import Path

from money_analyzer.exceptions import MoneyAnalyzerError
from money_analyzer.models import PayPalParseResult, PayPalRecord
from money_analyzer.parsers.bank import parse_amount, parse_date

logger = logging.getLogger(__name__)

COLUMNS = [
    "Date",
    "Time",
    "Time zone",
    "Name",
    "Type",
    "Status",
    "Currency",
    "Amount",
    "Fees",
    "Total",
    "Exchange Rate",
    "Receipt ID",
    "Balance",
    "Transaction ID",
    "Item Title",
]


def _text(row: dict, column: str) -> str:
    return (row.get(column) or "").strip()


def _number(row: dict, column: str) -> float:
    value = parse_amount(row.get(column) or "")
    return 0.0 if value is None else value


def parse_text(text: str, today: date | None = None) -> PayPalParseResult:
    """Parse PayPal CSV content into :class:`PayPalRecord` objects.

    Args:
        text: The full CSV content, including the header row.
        today: Fallback date for rows whose date cannot be parsed.
            Defaults to ``date.today()``, evaluated once per call.

    Returns:
        A PayPalParseResult with one record per data row and a warning for
        every row that needed the date fallback.
    """
    fallback = today or date.today()
    records: list[PayPalRecord] = []
    warnings: list[str] = []

    reader = csv.DictReader(io.StringIO(text))
    if reader.fieldnames is None:
        return PayPalParseResult()

    # Header cells sometimes carry stray whitespace
    reader.fieldnames = [name.strip() for name in reader.fieldnames]

    for row_number, row in enumerate(reader, start=1):
        if all(not (value or "").strip() for key, value in row.items() if key is not None):
            continue

        date_text = _text(row, "Date")
        txn_date = parse_date(date_text)
        if txn_date is None:
            message = (
                f"PayPal row {row_number}: unparseable date {date_text!r}, "
                f"using {fallback.isoformat()}"
            )
            logger.warning(message)
            warnings.append(message)
            txn_date = fallback

        records.append(
            PayPalRecord(
                date=txn_date,
                date_text=date_text,
                time=_text(row, "Time"),
                time_zone=_text(row, "Time zone"),
                name=_text(row, "Name"),
                type=_text(row, "Type"),
                status=_text(row, "Status"),
                currency=_text(row, "Currency"),
                amount=_number(row, "Amount"),
                fees=_number(row, "Fees"),
                total=_number(row, "Total"),
                exchange_rate=_text(row, "Exchange Rate"),
                receipt_id=_text(row, "Receipt ID"),
                balance=_number(row, "Balance"),
                transaction_id=_text(row, "Transaction ID"),
                item_title=_text(row, "Item Title"),
            )
        )

    return PayPalParseResult(records=records, warnings=warnings)


def parse(file_path: Path, today: date | None = None) -> PayPalParseResult:
    """Read and parse a PayPal CSV export.

    Raises:
        MoneyAnalyzerError: If the file cannot be read.
    """
    source = str(file_path)
    try:
        text = Path(file_path).read_text(encoding="utf-8-sig")
    except FileNotFoundError as exc:
        raise MoneyAnalyzerError(f"{source}: file not found") from exc
    except (OSError, UnicodeDecodeError) as exc:
        raise MoneyAnalyzerError(f"{source}: {exc}") from exc

    result = parse_text(text, today=today)
    logger.info("Parsed %d PayPal record(s) from %s", len(result.records), source)
    return result
