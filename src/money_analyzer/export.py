"""CSV export writer and report printer.

- :func:`export_csv` writes the ledger with a fixed column schema.
- :func:`print_report` prints a human-readable analysis to stdout: totals,
  spending averages and spread, top categories, balance and warnings.
- :func:`print_history` prints month totals and the balance series.
"""

from __future__ import annotations

import csv
from collections.abc import Sequence
from datetime import date
from pathlib import Path

from money_analyzer.analytics import (
    calculate_analysis_result,
    calculate_balance_trend_data,
    calculate_net_worth_balance_trend_data,
    expense_transactions,
    flow_of,
    group_by_period,
    moving_average,
)
from money_analyzer.models import UNCATEGORIZED_LABEL, AnalysisResult, Transaction

# Fixed output column order.
CSV_COLUMNS = [
    "transaction_id",
    "date",
    "month",
    "description",
    "money",
    "category",
    "flow",
    "is_income",
    "paypal_name",
    "paypal_type",
    "paypal_transaction_id",
]


# ---------------------------------------------------------------------------
# CSV export
# ---------------------------------------------------------------------------


def export_csv(transactions: Sequence[Transaction], path: str | Path) -> Path:
    """Write *transactions* sorted by date to *path*.

    Rows with the same date keep their ledger order. Overwrites an existing
    file.

    Returns:
        The :class:`~pathlib.Path` that was written.
    """
    output_path = Path(path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    ordered = sorted(transactions, key=lambda t: t.date)

    with open(output_path, "w", newline="", encoding="utf-8") as f:
        writer = csv.DictWriter(f, fieldnames=CSV_COLUMNS)
        writer.writeheader()
        for txn in ordered:
            paypal = txn.secondary_source_data
            writer.writerow(
                {
                    "transaction_id": txn.transaction_id,
                    "date": txn.date.isoformat(),
                    "month": txn.date.strftime("%Y-%m"),
                    "description": txn.description,
                    "money": f"{txn.money:.2f}",
                    "category": txn.category.name if txn.category else "",
                    "flow": flow_of(txn).value,
                    "is_income": str(txn.is_income),
                    "paypal_name": paypal.name if paypal else "",
                    "paypal_type": paypal.type if paypal else "",
                    "paypal_transaction_id": paypal.transaction_id if paypal else "",
                }
            )

    return output_path


# ---------------------------------------------------------------------------
# Report printer
# ---------------------------------------------------------------------------


def _money(value: float, currency: str) -> str:
    sign = "-" if value < 0 else ""
    symbol = "$" if currency in ("USD", "AUD", "CAD", "NZD") else f"{currency} "
    return f"{sign}{symbol}{abs(value):,.2f}"


def print_report(
    result: AnalysisResult,
    label: str,
    transaction_count: int = 0,
    warnings: Sequence[str] = (),
    current_balance: float | None = None,
    opening_balance: float | None = None,
    currency: str = "USD",
) -> None:
    """Print an analysis summary to stdout.

    Args:
        result: Figures from :func:`~money_analyzer.analytics.calculate_analysis_result`.
        label: Period label used in the header, e.g. ``"This Month"``.
        transaction_count: Number of transactions in the period.
        warnings: Messages to list at the end.
        current_balance: User-entered balance, shown when known.
        opening_balance: Balance implied before the first transaction.
        currency: ISO code used to format amounts.
    """
    print()
    print(f"== Report: {label} ==")
    print(f"Transactions: {transaction_count}")

    print()
    print(f"Income:       {_money(result.total_income, currency)}")
    print(f"Spending:     {_money(result.total_spending, currency)}")
    print(f"Investments:  {_money(result.total_investments, currency)}")
    print(f"Net change:   {_money(result.net_change, currency)}")

    print()
    print("Average spending:")
    print(f"  Daily:   {_money(result.average_daily_spending, currency)}")
    print(f"  Weekly:  {_money(result.average_weekly_spending, currency)}")
    print(f"  Monthly: {_money(result.average_monthly_spending, currency)}")
    print(f"  Yearly:  {_money(result.average_yearly_spending, currency)}")

    print()
    print("Spending spread:")
    print(f"  Std deviation: {_money(result.spending_standard_deviation, currency)}")
    print(f"  Variance:      {result.spending_variance:,.2f}")
    print(f"  Trend:         {result.spending_trend:+,.2f} per purchase")

    if result.top_categories:
        print()
        print("Top categories:")
        for i, cat in enumerate(result.top_categories, start=1):
            print(f"  {i:>2}. {cat.name + ':':<20} {_money(cat.amount, currency)}")

    uncategorized = result.spending_by_category.get(UNCATEGORIZED_LABEL)
    if uncategorized:
        print(f"Uncategorized spending: {_money(uncategorized, currency)}")

    if current_balance is not None:
        print()
        print(f"Current balance: {_money(current_balance, currency)}")
        if opening_balance is not None:
            print(f"Opening balance: {_money(opening_balance, currency)}")

    if warnings:
        print()
        print(f"Warnings: {len(warnings)}")
        for w in warnings:
            print(f"  - {w}")

    print()


def print_history(
    transactions: Sequence[Transaction],
    current_balance: float | None = None,
    start: date | None = None,
    end: date | None = None,
    net_worth: bool = False,
    currency: str = "USD",
    window: int = 7,
) -> None:
    """Print per-month totals and the day-end balance series.

    The series is built over all of *transactions* so it stays anchored to
    *current_balance*, then trimmed to the inclusive ``[start, end]``
    window. Without a balance it is a running total from zero. With
    *net_worth*, investments count towards the total instead of against it.
    """

    def in_window(day: date) -> bool:
        return (start is None or day >= start) and (end is None or day <= end)

    selected = [t for t in transactions if in_window(t.date)]

    print()
    print("Monthly totals:")
    if not selected:
        print("  (no transactions)")
    for month, group in sorted(group_by_period(selected, "month").items()):
        result = calculate_analysis_result(group)
        print(
            f"  {month}"
            f"  income {_money(result.total_income, currency):>12}"
            f"  spending {_money(result.total_spending, currency):>12}"
            f"  investments {_money(result.total_investments, currency):>12}"
            f"  net {_money(result.net_change, currency):>12}"
        )

    if net_worth:
        points = calculate_net_worth_balance_trend_data(transactions, current_balance)
        title = "Net worth history"
    else:
        points = calculate_balance_trend_data(transactions, current_balance)
        title = "Balance history"
    if current_balance is None:
        title += " (relative, no balance set)"

    # Points are in date order, so the last one per day is its closing value.
    closing: dict[date, float] = {}
    for point in points:
        if in_window(point.date):
            closing[point.date] = point.cumulative

    print()
    print(f"{title}:")
    for day, value in closing.items():
        print(f"  {day.isoformat()}  {_money(value, currency):>12}")

    averages = moving_average(expense_transactions(selected), window)
    if averages:
        print()
        print(f"Moving average of last {window} purchases: {_money(averages[-1][1], currency)}")
