"""Shared pytest fixtures for Money Analyzer tests.

Provides reusable fixtures for:
- make_txn: A factory building canonical Transaction objects with
  deterministic IDs.
- sample_transactions: A realistic ledger spanning several months with
  income, expenses, an investment and an income offset.
- make_record: A factory building PayPalRecord objects.
- tmp_project_dir: A temporary project directory with default config files.
- CSV text constants for bank and PayPal exports.
"""

from __future__ import annotations

from datetime import date
from pathlib import Path

import pytest

from money_analyzer.categories import parse_category
from money_analyzer.config import initialize
from money_analyzer.models import PayPalRecord, Transaction, generate_transaction_id

# ---------------------------------------------------------------------------
# CSV samples
# ---------------------------------------------------------------------------

BANK_CSV = """\
15/01/2024,-23.00,Coles Supermarket
15/01/2024,2500.00,Salary deposit ACME
18/01/2024,"-1,250.50",Rent payment
20/01/2024,-45.99,PAYPAL *SPOTIFY
22/01/2024,0.00,Zero adjustment
"""

PAYPAL_CSV = """\
Date,Time,Time zone,Name,Type,Status,Currency,Amount,Fees,Total,Exchange Rate,Receipt ID,Balance,Transaction ID,Item Title
19/01/2024,10:12:00,AEDT,Spotify,Express Checkout Payment,Completed,AUD,-45.99,0.00,-45.99,,,0.00,5TY12345AB678901C,Premium
19/01/2024,10:12:01,AEDT,,General Currency Conversion,Completed,AUD,45.99,0.00,45.99,,,0.00,6TY12345AB678901D,
21/01/2024,09:00:00,AEDT,Bank Account,User Initiated Withdrawal,Completed,AUD,100.00,0.00,100.00,,,0.00,7TY12345AB678901E,
"""


# ---------------------------------------------------------------------------
# Factories
# ---------------------------------------------------------------------------


def build_txn(
    txn_date: date,
    money: float,
    description: str,
    category: str | None = None,
) -> Transaction:
    """Build a Transaction the way the bank parser would, plus a category."""
    return Transaction(
        transaction_id=generate_transaction_id(txn_date, money, description),
        date=txn_date,
        money=money,
        description=description,
        category=parse_category(category),
        is_income=money > 0,
    )


def build_record(
    record_date: date,
    total: float,
    name: str = "Spotify",
    type: str = "Express Checkout Payment",
    status: str = "Completed",
    transaction_id: str = "5TY12345AB678901C",
) -> PayPalRecord:
    return PayPalRecord(
        date=record_date,
        date_text=record_date.strftime("%d/%m/%Y"),
        name=name,
        type=type,
        status=status,
        currency="AUD",
        amount=total,
        total=total,
        transaction_id=transaction_id,
    )


@pytest.fixture
def make_txn():
    """Factory fixture: ``make_txn(date, money, description, category=None)``."""
    return build_txn


@pytest.fixture
def make_record():
    """Factory fixture for PayPalRecord objects."""
    return build_record


@pytest.fixture
def bank_csv_text() -> str:
    """Headerless bank export: four transactions and one zero row."""
    return BANK_CSV


@pytest.fixture
def paypal_csv_text() -> str:
    """PayPal activity export: one payment, one conversion, one withdrawal."""
    return PAYPAL_CSV


@pytest.fixture
def sample_transactions() -> list[Transaction]:
    """A small multi-month ledger covering every flow type."""
    return [
        build_txn(date(2024, 1, 15), -23.00, "Coles Supermarket", "Groceries"),
        build_txn(date(2024, 1, 15), 2500.00, "Salary deposit ACME", "Income"),
        build_txn(date(2024, 1, 20), -45.99, "PAYPAL *SPOTIFY", "Entertainment"),
        build_txn(date(2024, 2, 1), -500.00, "Vanguard ETF purchase", "Investment"),
        build_txn(date(2024, 2, 3), -300.00, "Roommate rent share", "Income Offset"),
        build_txn(date(2024, 2, 10), -80.00, "Corner store"),
        build_txn(date(2024, 3, 5), 2500.00, "Salary deposit ACME", "Income"),
        build_txn(date(2024, 3, 7), -120.00, "Woolworths Metro", "Groceries"),
    ]


# ---------------------------------------------------------------------------
# Project directory
# ---------------------------------------------------------------------------


@pytest.fixture
def tmp_project_dir(tmp_path: Path) -> Path:
    """A temporary project with default config.toml and rules.toml."""
    project = tmp_path / "project"
    initialize(project)
    return project


@pytest.fixture
def bank_csv(tmp_path: Path) -> Path:
    path = tmp_path / "bank.csv"
    path.write_text(BANK_CSV, encoding="utf-8")
    return path


@pytest.fixture
def paypal_csv(tmp_path: Path) -> Path:
    path = tmp_path / "paypal.csv"
    path.write_text(PAYPAL_CSV, encoding="utf-8")
    return path
