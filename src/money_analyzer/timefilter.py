"""Time window filtering for transaction sets.

Reduces a transaction list to those whose date falls inside a relative
period (today, this week, trailing months, ...) or an explicit inclusive
date range. The filter is a convenience for reports, so malformed custom
ranges fail open and return the input unchanged.
"""

from __future__ import annotations

import calendar
import enum
from collections.abc import Sequence
from datetime import date, datetime, timedelta

from money_analyzer.models import Transaction


class TimePeriod(str, enum.Enum):
    """Supported reporting periods."""

    ALL = "all"
    DAY = "day"
    WEEK = "week"
    MONTH = "month"
    THREE_MONTHS = "3months"
    SIX_MONTHS = "6months"
    YEAR = "year"
    CUSTOM = "custom"


PERIOD_LABELS: dict[TimePeriod, str] = {
    TimePeriod.ALL: "All Time",
    TimePeriod.DAY: "Today",
    TimePeriod.WEEK: "This Week",
    TimePeriod.MONTH: "This Month",
    TimePeriod.THREE_MONTHS: "Last 3 Months",
    TimePeriod.SIX_MONTHS: "Last 6 Months",
    TimePeriod.YEAR: "This Year",
    TimePeriod.CUSTOM: "Custom Range",
}


def period_label(period: TimePeriod | str) -> str:
    """Human-readable label for *period*; unknown values read as all time."""
    try:
        return PERIOD_LABELS[TimePeriod(period)]
    except ValueError:
        return PERIOD_LABELS[TimePeriod.ALL]


def _months_back(day: date, months: int) -> date:
    """Same day-of-month *months* earlier, clamped to the month's last day."""
    total = day.year * 12 + (day.month - 1) - months
    year, month = divmod(total, 12)
    month += 1
    last = calendar.monthrange(year, month)[1]
    return date(year, month, min(day.day, last))


def period_bounds(
    period: TimePeriod | str,
    now: datetime | None = None,
) -> tuple[date, date] | None:
    """Return the inclusive ``(start, end)`` dates of a relative period.

    Returns None for ``all``, ``custom`` and unrecognized periods, meaning
    "no relative window".
    """
    try:
        period = TimePeriod(period)
    except ValueError:
        return None

    today = (now or datetime.now()).date()

    if period is TimePeriod.DAY:
        start = today
    elif period is TimePeriod.WEEK:
        # Monday-start week
        start = today - timedelta(days=today.weekday())
    elif period is TimePeriod.MONTH:
        start = today.replace(day=1)
    elif period is TimePeriod.THREE_MONTHS:
        start = _months_back(today, 3)
    elif period is TimePeriod.SIX_MONTHS:
        start = _months_back(today, 6)
    elif period is TimePeriod.YEAR:
        start = date(today.year, 1, 1)
    else:
        return None

    return start, today


def filter_by_period(
    transactions: Sequence[Transaction],
    period: TimePeriod | str,
    custom_range: tuple[date | None, date | None] | None = None,
    now: datetime | None = None,
) -> list[Transaction]:
    """Keep the transactions that fall inside *period*.

    Args:
        transactions: Transactions to filter. Not modified.
        period: A :class:`TimePeriod` or its string value.
        custom_range: ``(start, end)`` for ``TimePeriod.CUSTOM``. Both
            bounds are inclusive; the end covers the whole day. If either
            bound is missing the input is returned unfiltered.
        now: Reference time. Read once per call; defaults to
            ``datetime.now()``.

    Returns:
        A new list in the input order.
    """
    try:
        period = TimePeriod(period)
    except ValueError:
        return list(transactions)

    if period is TimePeriod.ALL:
        return list(transactions)

    if period is TimePeriod.CUSTOM:
        if custom_range is None:
            return list(transactions)
        start, end = custom_range
        if start is None or end is None:
            return list(transactions)
    else:
        bounds = period_bounds(period, now=now or datetime.now())
        if bounds is None:
            return list(transactions)
        start, end = bounds

    return [txn for txn in transactions if start <= txn.date <= end]
