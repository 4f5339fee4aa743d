"""Aggregation and trend analytics package."""

from fintrack.analytics.aggregation import (
    MONTH_ABBREVIATIONS,
    category_breakdown,
    filter_by_period,
    monthly_time_series,
    period_start,
    recent_transactions,
    sort_newest_first,
    summarize,
)
from fintrack.analytics.trends import (
    balance_trend,
    financial_trends,
    percent_change,
    round_half_up,
    start_of_month,
)

__all__ = [
    "MONTH_ABBREVIATIONS",
    "balance_trend",
    "category_breakdown",
    "filter_by_period",
    "financial_trends",
    "monthly_time_series",
    "percent_change",
    "period_start",
    "recent_transactions",
    "round_half_up",
    "sort_newest_first",
    "start_of_month",
    "summarize",
]
