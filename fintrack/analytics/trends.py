"""
Trend Calculator

Month-over-month percentage changes for the dashboard cards.

DESIGN DECISION: "Good" is always a positive trend, whatever the metric.
- Income: more is better, so the raw change is reported as-is.
- Expenses: more is worse, so the raw change is sign-flipped.
- Balance: crossing zero is reported by direction of travel, so going
  from -50 to +100 is an improvement even though the ratio is negative.

Rounding is half-up (2.5 -> 3, -2.5 -> -2), matching the rounding the
dashboard used before this module existed.
"""

import math
from collections.abc import Iterable
from datetime import date, datetime
from typing import Union

from fintrack.analytics.aggregation import summarize
from fintrack.models.transaction import (
    FinancialTrends,
    Transaction,
    TrendValue,
)


def start_of_month(now: Union[date, datetime], offset: int = 0) -> date:
    """First day of the month `offset` months away from `now`'s month."""
    month_index = now.year * 12 + (now.month - 1) + offset
    return date(month_index // 12, month_index % 12 + 1, 1)


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def percent_change(current: float, previous: float) -> int:
    """
    Rounded percentage change from `previous` to `current`.

    A zero baseline has no ratio: any positive current value counts as
    100% growth, anything else as no change.
    """
    if previous == 0:
        return 100 if current > 0 else 0
    return round_half_up((current - previous) / previous * 100)


def balance_trend(current: float, previous: float) -> int:
    """
    Trend for the balance card.

    - Zero previous balance: +100 if the current balance is non-negative,
      otherwise -100.
    - Sign crossed between periods: magnitude is the change between the
      absolute balances, sign is the direction of travel.
    - Same sign on both sides: the plain percentage change.
    """
    if previous == 0:
        return 100 if current >= 0 else -100

    crossed = (previous < 0 and current >= 0) or (previous > 0 and current <= 0)
    if crossed:
        magnitude = abs(percent_change(abs(current), abs(previous)))
        return magnitude if previous < current else -magnitude

    return percent_change(current, previous)


def financial_trends(
    transactions: Iterable[Transaction],
    now: Union[date, datetime],
) -> FinancialTrends:
    """
    Compare the current calendar month against the one before it.

    Current period: dated on or after the first of `now`'s month.
    Previous period: the whole preceding calendar month.
    Each metric's `value` is its current-period figure.
    """
    this_month = start_of_month(now)
    last_month = start_of_month(now, -1)

    current_txns = []
    previous_txns = []
    for txn in transactions:
        if txn.date >= this_month:
            current_txns.append(txn)
        elif txn.date >= last_month:
            previous_txns.append(txn)

    current = summarize(current_txns)
    previous = summarize(previous_txns)

    return FinancialTrends(
        income=TrendValue(
            value=current.income,
            trend=percent_change(current.income, previous.income),
        ),
        expenses=TrendValue(
            value=current.expenses,
            trend=-percent_change(current.expenses, previous.expenses),
        ),
        balance=TrendValue(
            value=current.balance,
            trend=balance_trend(current.balance, previous.balance),
        ),
    )
