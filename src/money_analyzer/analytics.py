"""Spending, income and balance analytics over a transaction set.

Every function here is pure and total: given any list of transactions,
including an empty one, it returns well-defined zero or empty values and
never raises or produces NaN. Amounts are floats summed with
:func:`math.fsum` and are not rounded; rounding happens only when values
are printed.

Flow types
----------

Each transaction belongs to exactly one of three flows:

- **income** -- ``is_income``, or categorized ``Income Offset`` (an outflow
  that reimburses a shared cost, counted at its absolute value);
- **investment** -- an outflow categorized ``Investment``;
- **expense** -- every other outflow.
"""

from __future__ import annotations

import enum
import math
from collections import defaultdict
from collections.abc import Sequence
from datetime import date, timedelta

from money_analyzer.categories import category_color
from money_analyzer.models import (
    UNCATEGORIZED_LABEL,
    AnalysisResult,
    CategoryKind,
    CategorySpend,
    IncomeAnalysis,
    SpendingAnalysis,
    Transaction,
    TrendPoint,
)

DAYS_PER_WEEK = 7
DAYS_PER_MONTH = 30.44
DAYS_PER_YEAR = 365.25
TOP_CATEGORY_COUNT = 5


class Flow(enum.Enum):
    EXPENSE = "expense"
    INCOME = "income"
    INVESTMENT = "investment"


# ---------------------------------------------------------------------------
# Flow partitioning
# ---------------------------------------------------------------------------


def _kind(txn: Transaction) -> CategoryKind | None:
    return txn.category.kind if txn.category is not None else None


def flow_of(txn: Transaction) -> Flow:
    """Classify *txn* into its single aggregation flow."""
    kind = _kind(txn)
    if txn.is_income or kind is CategoryKind.INCOME_OFFSET:
        return Flow.INCOME
    if kind is CategoryKind.INVESTMENT:
        return Flow.INVESTMENT
    return Flow.EXPENSE


def is_income(txn: Transaction) -> bool:
    return flow_of(txn) is Flow.INCOME


def is_expense(txn: Transaction) -> bool:
    return flow_of(txn) is Flow.EXPENSE


def is_investment(txn: Transaction) -> bool:
    return flow_of(txn) is Flow.INVESTMENT


def is_income_offset(txn: Transaction) -> bool:
    return _kind(txn) is CategoryKind.INCOME_OFFSET


def income_transactions(transactions: Sequence[Transaction]) -> list[Transaction]:
    return [t for t in transactions if is_income(t)]


def expense_transactions(transactions: Sequence[Transaction]) -> list[Transaction]:
    return [t for t in transactions if is_expense(t)]


def investment_transactions(transactions: Sequence[Transaction]) -> list[Transaction]:
    return [t for t in transactions if is_investment(t)]


def income_offset_transactions(transactions: Sequence[Transaction]) -> list[Transaction]:
    return [t for t in transactions if is_income_offset(t)]


# ---------------------------------------------------------------------------
# Totals
# ---------------------------------------------------------------------------


def income_total(incomes: Sequence[Transaction]) -> float:
    """Sum income, counting income offsets at their absolute value."""
    return math.fsum(t.money if t.is_income else abs(t.money) for t in incomes)


def absolute_total(transactions: Sequence[Transaction]) -> float:
    """Sum of absolute amounts; used for expense and investment totals."""
    return math.fsum(abs(t.money) for t in transactions)


def net_change(transactions: Sequence[Transaction]) -> float:
    """Income minus expenses minus investments."""
    return (
        income_total(income_transactions(transactions))
        - absolute_total(expense_transactions(transactions))
        - absolute_total(investment_transactions(transactions))
    )


# ---------------------------------------------------------------------------
# Spending statistics
# ---------------------------------------------------------------------------


def calculate_spending_analysis(transactions: Sequence[Transaction]) -> SpendingAnalysis:
    """Period averages and population variance of expense amounts.

    The daily average divides total spending by the inclusive number of
    days between the earliest and latest expense. Weekly, monthly and
    yearly figures scale the daily average by 7, 30.44 and 365.25.
    """
    expenses = expense_transactions(transactions)
    if not expenses:
        return SpendingAnalysis()

    amounts = [abs(t.money) for t in expenses]
    total = math.fsum(amounts)

    dates = [t.date for t in expenses]
    span_days = (max(dates) - min(dates)).days + 1

    daily = total / span_days
    mean = total / len(amounts)
    variance = math.fsum((a - mean) ** 2 for a in amounts) / len(amounts)

    return SpendingAnalysis(
        daily_average=daily,
        weekly_average=daily * DAYS_PER_WEEK,
        monthly_average=daily * DAYS_PER_MONTH,
        yearly_average=daily * DAYS_PER_YEAR,
        variance=variance,
        standard_deviation=math.sqrt(variance),
    )


def calculate_trend(transactions: Sequence[Transaction]) -> float:
    """Least-squares slope of amount against chronological index.

    Transactions are stably sorted by date and placed at x = 0, 1, 2, ...
    regardless of the calendar gap between them. Fewer than two points
    give a slope of 0.
    """
    if len(transactions) < 2:
        return 0.0

    ordered = _chronological(transactions)
    n = len(ordered)
    ys = [t.money for t in ordered]

    sum_x = n * (n - 1) / 2
    sum_xx = (n - 1) * n * (2 * n - 1) / 6
    sum_y = math.fsum(ys)
    sum_xy = math.fsum(i * y for i, y in enumerate(ys))

    denominator = n * sum_xx - sum_x * sum_x
    if denominator == 0:
        return 0.0
    return (n * sum_xy - sum_x * sum_y) / denominator


def calculate_income_analysis(
    transactions: Sequence[Transaction],
    yearly_salary: float | None,
) -> IncomeAnalysis:
    """Salary increments, savings rate and income trend."""
    salary = yearly_salary or 0.0
    incomes = income_transactions(transactions)
    total_income = income_total(incomes)
    spending = absolute_total(expense_transactions(transactions))
    investments = absolute_total(investment_transactions(transactions))

    savings_rate = 0.0
    if total_income > 0:
        savings_rate = (total_income - spending - investments) / total_income * 100

    return IncomeAnalysis(
        weekly_income_increase=salary / 52,
        monthly_income_increase=salary / 12,
        savings_rate=savings_rate,
        income_trend=calculate_trend(incomes),
    )


# ---------------------------------------------------------------------------
# Category breakdown
# ---------------------------------------------------------------------------


def spending_by_category(transactions: Sequence[Transaction]) -> dict[str, float]:
    """Absolute expense totals keyed by category name, in first-seen order."""
    buckets: dict[str, list[float]] = defaultdict(list)
    for txn in expense_transactions(transactions):
        name = txn.category.name if txn.category is not None else UNCATEGORIZED_LABEL
        buckets[name].append(abs(txn.money))
    return {name: math.fsum(values) for name, values in buckets.items()}


def top_categories(
    by_category: dict[str, float],
    limit: int = TOP_CATEGORY_COUNT,
) -> list[CategorySpend]:
    """The *limit* largest categories, each with its chart color.

    Equal amounts keep their first-seen order.
    """
    ranked = sorted(by_category.items(), key=lambda item: item[1], reverse=True)
    return [
        CategorySpend(name=name, amount=amount, color=category_color(name))
        for name, amount in ranked[:limit]
    ]


# ---------------------------------------------------------------------------
# Cumulative series
# ---------------------------------------------------------------------------


def _chronological(transactions: Sequence[Transaction]) -> list[Transaction]:
    return sorted(transactions, key=lambda t: t.date)


def _net_worth_value(txn: Transaction) -> float:
    # Investments move money into assets rather than out of net worth.
    if is_investment(txn):
        return abs(txn.money)
    return txn.money


def _running(values: list[tuple[date, float]], start: float) -> list[TrendPoint]:
    points: list[TrendPoint] = []
    cumulative = start
    for day, value in values:
        cumulative += value
        points.append(TrendPoint(date=day, value=value, cumulative=cumulative))
    return points


def _anchored(values: list[tuple[date, float]], current_balance: float) -> list[TrendPoint]:
    """Build the series backwards from the known final balance.

    Walking back from *current_balance* makes the last point equal it
    exactly instead of accumulating float error towards it.
    """
    points: list[TrendPoint] = []
    balance = current_balance
    for day, value in reversed(values):
        points.append(TrendPoint(date=day, value=value, cumulative=balance))
        balance -= value
    points.reverse()
    return points


def calculate_trend_data(transactions: Sequence[Transaction]) -> list[TrendPoint]:
    """Running sum of signed amounts from zero, in date order."""
    values = [(t.date, t.money) for t in _chronological(transactions)]
    return _running(values, 0.0)


def calculate_balance_trend_data(
    transactions: Sequence[Transaction],
    current_balance: float | None,
) -> list[TrendPoint]:
    """Historical account balance after each transaction.

    The series is anchored so its last point equals *current_balance*;
    the implied opening balance is :func:`opening_balance`. Without a
    balance this falls back to :func:`calculate_trend_data`.
    """
    if current_balance is None:
        return calculate_trend_data(transactions)
    values = [(t.date, t.money) for t in _chronological(transactions)]
    return _anchored(values, current_balance)


def calculate_net_worth_trend_data(transactions: Sequence[Transaction]) -> list[TrendPoint]:
    """Like :func:`calculate_trend_data` but investments add to the total."""
    values = [(t.date, _net_worth_value(t)) for t in _chronological(transactions)]
    return _running(values, 0.0)


def calculate_net_worth_balance_trend_data(
    transactions: Sequence[Transaction],
    current_balance: float | None,
) -> list[TrendPoint]:
    """Net-worth series anchored to *current_balance*."""
    if current_balance is None:
        return calculate_net_worth_trend_data(transactions)
    values = [(t.date, _net_worth_value(t)) for t in _chronological(transactions)]
    return _anchored(values, current_balance)


def opening_balance(
    transactions: Sequence[Transaction],
    current_balance: float,
    net_worth: bool = False,
) -> float:
    """Balance before the first transaction: current balance minus all change."""
    value = _net_worth_value if net_worth else (lambda t: t.money)
    return current_balance - math.fsum(value(t) for t in transactions)


# ---------------------------------------------------------------------------
# Grouping and smoothing
# ---------------------------------------------------------------------------


def group_by_period(
    transactions: Sequence[Transaction],
    period: str,
) -> dict[str, list[Transaction]]:
    """Group transactions by ``"day"``, ``"week"``, ``"month"`` or ``"year"``.

    Keys are ``YYYY-MM-DD`` for days and weeks (weeks start on Sunday),
    ``YYYY-MM`` for months and ``YYYY`` for years.

    Raises:
        ValueError: If *period* is not one of the four names.
    """
    if period not in ("day", "week", "month", "year"):
        raise ValueError(f"Unknown grouping period: {period!r}")

    grouped: dict[str, list[Transaction]] = {}
    for txn in transactions:
        d = txn.date
        if period == "day":
            key = d.isoformat()
        elif period == "week":
            key = (d - timedelta(days=(d.weekday() + 1) % 7)).isoformat()
        elif period == "month":
            key = d.strftime("%Y-%m")
        else:
            key = str(d.year)
        grouped.setdefault(key, []).append(txn)
    return grouped


def moving_average(
    transactions: Sequence[Transaction],
    window: int = 7,
) -> list[tuple[date, float]]:
    """Trailing average of absolute amounts over *window* transactions."""
    if window < 1:
        return []
    ordered = _chronological(transactions)
    result: list[tuple[date, float]] = []
    for i in range(window - 1, len(ordered)):
        chunk = ordered[i - window + 1 : i + 1]
        result.append((ordered[i].date, math.fsum(abs(t.money) for t in chunk) / window))
    return result


def percentage_change(current: float, previous: float) -> float:
    """Percent change from *previous* to *current*.

    A zero baseline reports 100 for any increase and 0 otherwise.
    """
    if previous == 0:
        return 100.0 if current > 0 else 0.0
    return (current - previous) / previous * 100


def compare_periods(current: AnalysisResult, previous: AnalysisResult) -> dict[str, float]:
    """Percent change of the headline figures between two analyses."""
    return {
        "total_spending": percentage_change(current.total_spending, previous.total_spending),
        "total_income": percentage_change(current.total_income, previous.total_income),
        "net_change": percentage_change(current.net_change, previous.net_change),
        "average_daily_spending": percentage_change(
            current.average_daily_spending, previous.average_daily_spending
        ),
        "average_monthly_spending": percentage_change(
            current.average_monthly_spending, previous.average_monthly_spending
        ),
    }


# ---------------------------------------------------------------------------
# Full analysis
# ---------------------------------------------------------------------------


def calculate_analysis_result(transactions: Sequence[Transaction]) -> AnalysisResult:
    """Compute every headline figure for a transaction set."""
    expenses = expense_transactions(transactions)
    spending = absolute_total(expenses)
    income = income_total(income_transactions(transactions))
    investments = absolute_total(investment_transactions(transactions))
    stats = calculate_spending_analysis(transactions)
    by_category = spending_by_category(transactions)

    return AnalysisResult(
        total_spending=spending,
        total_income=income,
        total_investments=investments,
        net_change=income - spending - investments,
        average_daily_spending=stats.daily_average,
        average_weekly_spending=stats.weekly_average,
        average_monthly_spending=stats.monthly_average,
        average_yearly_spending=stats.yearly_average,
        spending_variance=stats.variance,
        spending_standard_deviation=stats.standard_deviation,
        # Expenses are negative, so flip the slope to track their size.
        spending_trend=0.0 - calculate_trend(expenses),
        spending_by_category=by_category,
        top_categories=top_categories(by_category),
        trend_data=calculate_trend_data(transactions),
    )
