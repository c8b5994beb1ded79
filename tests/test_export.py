"""Tests for money_analyzer.export -- CSV writer and report printer."""

from __future__ import annotations

import csv
from datetime import date
from pathlib import Path

from money_analyzer.analytics import calculate_analysis_result
from money_analyzer.export import CSV_COLUMNS, export_csv, print_history, print_report
from money_analyzer.matcher import apply_match
from money_analyzer.models import Match


def _read(path: Path) -> list[dict]:
    with open(path, newline="", encoding="utf-8") as f:
        return list(csv.DictReader(f))


class TestExportCsv:
    """Tests for the CSV export."""

    def test_columns_and_order(self, tmp_path: Path, sample_transactions):
        shuffled = list(reversed(sample_transactions))
        path = export_csv(shuffled, tmp_path / "out" / "ledger.csv")
        rows = _read(path)
        with open(path, encoding="utf-8") as f:
            assert f.readline().strip() == ",".join(CSV_COLUMNS)
        assert len(rows) == len(sample_transactions)
        assert [r["date"] for r in rows] == sorted(r["date"] for r in rows)

    def test_row_values(self, tmp_path: Path, make_txn):
        txns = [
            make_txn(date(2024, 2, 1), -500.0, "Vanguard", "Investment"),
            make_txn(date(2024, 1, 15), -23.0, "Coles"),
        ]
        rows = _read(export_csv(txns, tmp_path / "ledger.csv"))
        assert rows[0]["description"] == "Coles"
        assert rows[0]["money"] == "-23.00"
        assert rows[0]["category"] == ""
        assert rows[0]["flow"] == "expense"
        assert rows[0]["month"] == "2024-01"
        assert rows[1]["flow"] == "investment"

    def test_paypal_columns(self, tmp_path: Path, make_record, make_txn):
        txn = make_txn(date(2024, 1, 20), -45.99, "PAYPAL *SPOTIFY")
        apply_match(Match(txn, make_record(date(2024, 1, 20), -45.99), 1.0, ""))
        row = _read(export_csv([txn], tmp_path / "ledger.csv"))[0]
        assert row["paypal_name"] == "Spotify"
        assert row["paypal_transaction_id"] == "5TY12345AB678901C"

    def test_empty(self, tmp_path: Path):
        assert _read(export_csv([], tmp_path / "ledger.csv")) == []


class TestPrintReport:
    """Tests for the report printer."""

    def test_sections(self, capsys, sample_transactions):
        result = calculate_analysis_result(sample_transactions)
        print_report(
            result,
            "All Time",
            transaction_count=len(sample_transactions),
            warnings=["something odd"],
            current_balance=1000.0,
            opening_balance=-2431.01,
        )
        out = capsys.readouterr().out
        assert "== Report: All Time ==" in out
        assert "Transactions: 8" in out
        assert "Income:       $5,300.00" in out
        assert "Net change:   $4,531.01" in out
        assert "1. Groceries:" in out
        assert "Uncategorized spending: $80.00" in out
        assert "Opening balance: -$2,431.01" in out
        assert "- something odd" in out

    def test_other_currency(self, capsys, make_txn):
        result = calculate_analysis_result([make_txn(date(2024, 1, 1), -5.0, "x")])
        print_report(result, "Today", currency="EUR")
        assert "Spending:     EUR 5.00" in capsys.readouterr().out

    def test_no_balance_section_without_balance(self, capsys):
        print_report(calculate_analysis_result([]), "All Time")
        assert "Current balance" not in capsys.readouterr().out

    def test_spread_section(self, capsys, make_txn):
        result = calculate_analysis_result([
            make_txn(date(2024, 1, 1), -10.0, "a"),
            make_txn(date(2024, 1, 2), -30.0, "b"),
        ])
        print_report(result, "All Time")
        out = capsys.readouterr().out
        assert "Spending spread:" in out
        assert "Std deviation: $10.00" in out
        assert "Variance:      100.00" in out
        assert "Trend:         +20.00 per purchase" in out


def _line(out: str, prefix: str) -> str:
    return next(line for line in out.splitlines() if line.strip().startswith(prefix))


class TestPrintHistory:
    """Tests for the month table and the balance series."""

    def test_anchored_balance_series(self, capsys, sample_transactions):
        print_history(sample_transactions, current_balance=1000.0)
        out = capsys.readouterr().out
        assert "Balance history:" in out
        assert "$1,000.00" in _line(out, "2024-03-07")
        assert "$1,120.00" in _line(out, "2024-03-05")
        assert "-$1,000.00" in _line(out, "2024-02-01")
        assert "-$500.00" in _line(out, "2024-01-20")

    def test_one_line_per_day(self, capsys, sample_transactions):
        print_history(sample_transactions, current_balance=1000.0)
        out = capsys.readouterr().out
        # Two transactions on 2024-01-15; only the day-end value is shown.
        assert sum(1 for line in out.splitlines() if line.strip().startswith("2024-01-15")) == 1

    def test_net_worth_counts_investments(self, capsys, sample_transactions):
        print_history(sample_transactions, current_balance=1000.0, net_worth=True)
        out = capsys.readouterr().out
        assert "Net worth history:" in out
        assert "-$1,500.00" in _line(out, "2024-01-20")

    def test_monthly_totals(self, capsys, sample_transactions):
        print_history(sample_transactions, current_balance=1000.0)
        out = capsys.readouterr().out
        january = _line(out, "2024-01 ")
        assert "income    $2,500.00" in january
        assert "spending       $68.99" in january
        assert "net    $2,431.01" in january
        february = _line(out, "2024-02 ")
        assert "investments      $500.00" in february
        assert "net     -$280.00" in february

    def test_window_trims_months_and_points(self, capsys, sample_transactions):
        print_history(
            sample_transactions,
            current_balance=1000.0,
            start=date(2024, 2, 1),
            end=date(2024, 2, 29),
        )
        out = capsys.readouterr().out
        assert "2024-01 " not in out
        assert "2024-03" not in out
        # Still anchored to the balance after the last transaction overall.
        assert "-$1,380.00" in _line(out, "2024-02-10")

    def test_without_balance_is_relative(self, capsys, make_txn):
        print_history([make_txn(date(2024, 1, 1), -5.0, "x")])
        out = capsys.readouterr().out
        assert "Balance history (relative, no balance set):" in out
        assert "-$5.00" in _line(out, "2024-01-01")

    def test_moving_average(self, capsys, sample_transactions):
        print_history(sample_transactions, window=2)
        assert "Moving average of last 2 purchases: $100.00" in capsys.readouterr().out

    def test_empty(self, capsys):
        print_history([])
        assert "(no transactions)" in capsys.readouterr().out
