"""Dashboard package: read-only financial summary."""

from finnan.dashboard.aggregator import (
    WEALTH_LADDER,
    DashboardAggregator,
    WealthTier,
    account_chart,
    amount_to_next_level,
    cash_history,
    debt_totals,
    expense_chart,
    health_score,
    total_cash,
    wealth_tier,
    window_start,
)

__all__ = [
    "WEALTH_LADDER",
    "DashboardAggregator",
    "WealthTier",
    "account_chart",
    "amount_to_next_level",
    "cash_history",
    "debt_totals",
    "expense_chart",
    "health_score",
    "total_cash",
    "wealth_tier",
    "window_start",
]
