"""
Dashboard Models

Read-only summary derived from current entity state on every request.
"""

from enum import Enum
from typing import Optional

from pydantic import Field

from finnan.models.entities import LedgerModel, Money, TransactionView


class WealthLevel(str, Enum):
    """Five-tier ladder keyed on net worth, lowest first."""
    KEKURANGAN = "KEKURANGAN"  # below zero
    BERTAHAN = "BERTAHAN"      # [0, 10 million)
    AMAN = "AMAN"              # [10 million, 100 million)
    NYAMAN = "NYAMAN"          # [100 million, 1 billion)
    SULTAN = "SULTAN"          # 1 billion and up


class ChartPoint(LedgerModel):
    name: str
    value: Money


class CashHistoryPoint(LedgerModel):
    date: str = Field(..., description="Calendar day, YYYY-MM-DD")
    total_cash: Money


class DashboardStats(LedgerModel):
    """Everything the dashboard screen shows."""

    net_worth: Money
    total_cash: Money
    receivables: Money
    payables: Money

    wealth_level: WealthLevel
    next_level: Optional[WealthLevel] = None
    amount_to_next_level: Optional[Money] = None

    health_score: int = Field(..., ge=0, le=100)

    recent_transactions: list[TransactionView] = Field(default_factory=list)
    expense_chart_data: list[ChartPoint] = Field(default_factory=list)
    account_chart_data: list[ChartPoint] = Field(default_factory=list)
    total_cash_history: list[CashHistoryPoint] = Field(default_factory=list)
