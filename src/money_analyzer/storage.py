"""JSON snapshot and backup persistence for :class:`~money_analyzer.state.AppState`.

The snapshot is the project's working copy, rewritten after every command.
Backups are standalone JSON files the user creates and restores explicitly.
Both use the same transaction and category shapes, with camelCase keys:

.. code-block:: json

    {"id": "1a2b3c4d5e6f7a8b", "date": "2024-01-15", "money": -23.0,
     "description": "Coles", "category": "Groceries", "isIncome": false,
     "secondarySourceData": null}

Dates are ISO strings and amounts are JSON numbers, so a transaction
round-trips without loss.
"""

from __future__ import annotations

import json
import logging
from datetime import date, datetime, timezone
from pathlib import Path

from money_analyzer.categories import parse_category
from money_analyzer.exceptions import SnapshotError
from money_analyzer.models import CategoryConfig, PayPalData, Transaction
from money_analyzer.state import IMPORT_MODES, AppState

logger = logging.getLogger(__name__)

SNAPSHOT_VERSION = "1.0.0"


# ---------------------------------------------------------------------------
# Conversion
# ---------------------------------------------------------------------------


def transaction_to_dict(txn: Transaction) -> dict:
    paypal = txn.secondary_source_data
    return {
        "id": txn.transaction_id,
        "date": txn.date.isoformat(),
        "money": txn.money,
        "description": txn.description,
        "category": txn.category.name if txn.category is not None else None,
        "isIncome": txn.is_income,
        "secondarySourceData": (
            {
                "name": paypal.name,
                "type": paypal.type,
                "transactionId": paypal.transaction_id,
                "receiptId": paypal.receipt_id,
                "itemTitle": paypal.item_title,
                "confidence": paypal.confidence,
                "reason": paypal.reason,
            }
            if paypal is not None
            else None
        ),
    }


def transaction_from_dict(data: dict) -> Transaction:
    """Rebuild a transaction from its JSON shape.

    ``paypalData`` is accepted as an alias of ``secondarySourceData``.

    Raises:
        SnapshotError: If a required key is missing or malformed.
    """
    try:
        money = float(data["money"])
        txn = Transaction(
            transaction_id=str(data["id"]),
            date=date.fromisoformat(str(data["date"])[:10]),
            money=money,
            description=str(data["description"]),
            category=parse_category(data.get("category")),
            is_income=bool(data.get("isIncome", money > 0)),
        )
    except (KeyError, TypeError, ValueError) as exc:
        raise SnapshotError(f"Invalid transaction entry {data!r}: {exc}") from exc

    paypal = data.get("secondarySourceData") or data.get("paypalData")
    if paypal:
        txn.secondary_source_data = PayPalData(
            name=paypal.get("name", ""),
            type=paypal.get("type", ""),
            transaction_id=paypal.get("transactionId", ""),
            receipt_id=paypal.get("receiptId", ""),
            item_title=paypal.get("itemTitle", ""),
            confidence=float(paypal.get("confidence", 0.0)),
            reason=paypal.get("reason", ""),
        )
    return txn


def category_to_dict(cat: CategoryConfig) -> dict:
    return {"id": cat.id, "name": cat.name, "color": cat.color, "description": cat.description}


def category_from_dict(data: dict) -> CategoryConfig:
    try:
        return CategoryConfig(
            id=str(data["id"]),
            name=str(data["name"]),
            color=str(data.get("color", "#6B7280")),
            description=str(data.get("description", "")),
        )
    except (KeyError, TypeError) as exc:
        raise SnapshotError(f"Invalid category entry {data!r}: {exc}") from exc


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _read_json(path: Path) -> dict:
    try:
        data = json.loads(Path(path).read_text(encoding="utf-8"))
    except OSError as exc:
        raise SnapshotError(f"Cannot read {path}: {exc}") from exc
    except json.JSONDecodeError as exc:
        raise SnapshotError(f"{path} is not valid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise SnapshotError(f"{path} does not contain a JSON object")
    return data


def _write_json(path: Path, data: dict) -> None:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, indent=2), encoding="utf-8")


# ---------------------------------------------------------------------------
# Snapshot
# ---------------------------------------------------------------------------


def save_snapshot(path: Path, state: AppState) -> None:
    """Write the whole state to *path*."""
    _write_json(
        path,
        {
            "transactions": [transaction_to_dict(t) for t in state.transactions],
            "categories": [category_to_dict(c) for c in state.categories],
            "currentBalance": state.current_balance,
            "yearlySalary": state.yearly_salary,
            "lastUpdated": _now_iso(),
            "version": SNAPSHOT_VERSION,
        },
    )
    logger.debug("Saved %d transaction(s) to %s", len(state.transactions), path)


def load_snapshot(path: Path) -> AppState | None:
    """Read a snapshot written by :func:`save_snapshot`.

    Returns:
        The state, or None if the file does not exist or was written by
        a different snapshot version.

    Raises:
        SnapshotError: If the file exists but cannot be decoded.
    """
    path = Path(path)
    if not path.exists():
        return None

    data = _read_json(path)
    if data.get("version") != SNAPSHOT_VERSION:
        logger.warning(
            "Snapshot %s has version %r, expected %r; ignoring it",
            path,
            data.get("version"),
            SNAPSHOT_VERSION,
        )
        return None

    state = AppState(
        transactions=[transaction_from_dict(t) for t in data.get("transactions", [])],
        current_balance=data.get("currentBalance"),
        yearly_salary=data.get("yearlySalary"),
    )
    if data.get("categories"):
        state.categories = [category_from_dict(c) for c in data["categories"]]
    return state


def clear_snapshot(path: Path) -> bool:
    """Delete the snapshot file. Returns False if there was none."""
    path = Path(path)
    if not path.exists():
        return False
    path.unlink()
    return True


def snapshot_info(path: Path) -> dict:
    """Summarize a snapshot file without building the state.

    Returns ``{"exists": False}`` when there is no file, and adds an
    ``"error"`` key instead of raising when the file is unreadable.
    """
    path = Path(path)
    if not path.exists():
        return {"exists": False}
    try:
        data = _read_json(path)
    except SnapshotError as exc:
        return {"exists": False, "error": str(exc)}
    return {
        "exists": True,
        "transaction_count": len(data.get("transactions", [])),
        "category_count": len(data.get("categories", [])),
        "last_updated": data.get("lastUpdated"),
        "version": data.get("version"),
    }


# ---------------------------------------------------------------------------
# Backups
# ---------------------------------------------------------------------------


def export_backup(path: Path, state: AppState, description: str = "") -> Path:
    """Write transactions and categories to a standalone backup file."""
    timestamp = _now_iso()
    _write_json(
        path,
        {
            "transactions": [transaction_to_dict(t) for t in state.transactions],
            "categories": [category_to_dict(c) for c in state.categories],
            "timestamp": timestamp,
            "version": SNAPSHOT_VERSION,
            "description": description or f"Backup created on {timestamp}",
        },
    )
    return Path(path)


def import_backup(path: Path, state: AppState, mode: str = "combine") -> tuple[int, int]:
    """Restore a backup into *state*.

    ``replace`` swaps in the backup's transactions and categories.
    ``combine`` appends only transactions and categories whose ID is not
    present yet; existing entries win.

    Returns:
        ``(transactions_added, categories_added)``.

    Raises:
        SnapshotError: If the file cannot be read or decoded.
        ValueError: If *mode* is unknown.
    """
    if mode not in IMPORT_MODES:
        raise ValueError(f"Unknown import mode {mode!r}, expected one of {IMPORT_MODES}")

    data = _read_json(Path(path))
    if "transactions" not in data:
        raise SnapshotError(f"{path} is not a backup file: no transactions")

    transactions = [transaction_from_dict(t) for t in data["transactions"]]
    categories = [category_from_dict(c) for c in data.get("categories", [])]

    result = state.import_transactions(transactions, mode=mode)

    if mode == "replace":
        if categories:
            state.categories = categories
        return result.added, len(categories)

    known = {c.id for c in state.categories}
    new_categories = [c for c in categories if c.id not in known]
    state.categories.extend(new_categories)
    return result.added, len(new_categories)
