"""
Aggregation Engine

DESIGN DECISION: Every function here is pure and DETERMINISTIC.
They take a list of transactions and return new values; nothing is
read from or written to storage, so the same input always produces
the same dashboard numbers.

Monthly buckets are keyed by month name only. Transactions from
different years that share a month accumulate into the same bucket,
which is what the dashboard chart has always shown. A year-aware
series would bucket by (year, month) instead.
"""

from collections.abc import Iterable, Sequence
from datetime import date, datetime, timedelta
from typing import Optional, Union

from fintrack.models.transaction import (
    CategoryTotal,
    FinancialSummary,
    MonthlyBucket,
    ReportPeriod,
    Transaction,
    TransactionType,
)


MONTH_ABBREVIATIONS = [
    "Jan", "Feb", "Mar", "Apr", "May", "Jun",
    "Jul", "Aug", "Sep", "Oct", "Nov", "Dec",
]


def summarize(transactions: Iterable[Transaction]) -> FinancialSummary:
    """
    Total income, total expenses and their difference.

    Order is irrelevant. An empty input yields all zeros.
    """
    income = 0.0
    expenses = 0.0
    for txn in transactions:
        if txn.type == TransactionType.INCOME:
            income += txn.amount
        else:
            expenses += txn.amount

    return FinancialSummary(
        income=income,
        expenses=expenses,
        balance=income - expenses,
    )


def category_breakdown(transactions: Iterable[Transaction]) -> list[CategoryTotal]:
    """
    Expense totals per category, largest first.

    Categories match by exact, case-sensitive string. Tied amounts keep
    the order in which their category was first seen. Categories with no
    expense transactions are omitted.
    """
    totals: dict[str, float] = {}
    for txn in transactions:
        if txn.type != TransactionType.EXPENSE:
            continue
        totals[txn.category] = totals.get(txn.category, 0.0) + txn.amount

    breakdown = [CategoryTotal(name=name, amount=amount) for name, amount in totals.items()]
    # sorted() is stable
    return sorted(breakdown, key=lambda item: item.amount, reverse=True)


def monthly_time_series(transactions: Iterable[Transaction]) -> list[MonthlyBucket]:
    """Twelve Jan..Dec buckets of income and expenses, regardless of year."""
    buckets = [MonthlyBucket(name=name) for name in MONTH_ABBREVIATIONS]

    for txn in transactions:
        bucket = buckets[txn.date.month - 1]
        if txn.type == TransactionType.INCOME:
            bucket.income += txn.amount
        else:
            bucket.expenses += txn.amount

    return buckets


def _as_date(now: Union[date, datetime]) -> date:
    return now.date() if isinstance(now, datetime) else now


def period_start(period: Union[ReportPeriod, str], now: Union[date, datetime]) -> Optional[date]:
    """
    First date included in a report period, or None for all time.

    Raises:
        ValueError: If the period name is unknown
    """
    period = ReportPeriod(period)
    today = _as_date(now)

    if period == ReportPeriod.WEEK:
        return today - timedelta(days=6)
    if period == ReportPeriod.MONTH:
        return today.replace(day=1)
    if period == ReportPeriod.QUARTER:
        first_month = 3 * ((today.month - 1) // 3) + 1
        return today.replace(month=first_month, day=1)
    if period == ReportPeriod.YEAR:
        return today.replace(month=1, day=1)
    return None


def filter_by_period(
    transactions: Iterable[Transaction],
    period: Union[ReportPeriod, str],
    now: Union[date, datetime],
) -> list[Transaction]:
    """
    Keep the transactions dated on or after the start of the period.

    Transactions dated after `now` are kept, as on the dashboard.
    """
    start = period_start(period, now)
    if start is None:
        return list(transactions)
    return [txn for txn in transactions if txn.date >= start]


def sort_newest_first(transactions: Iterable[Transaction]) -> list[Transaction]:
    return sorted(transactions, key=lambda txn: txn.date, reverse=True)


def recent_transactions(
    transactions: Sequence[Transaction],
    limit: int = 5,
) -> list[Transaction]:
    """The newest `limit` transactions."""
    if limit < 0:
        raise ValueError("limit must be non-negative")
    return sort_newest_first(transactions)[:limit]
