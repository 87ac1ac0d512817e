"""
Dashboard Aggregator

Derives the dashboard from current state on every request. Nothing is
cached or stored; the pure functions below do all the arithmetic and
the aggregator only loads the inputs.
"""

from collections import OrderedDict
from dataclasses import dataclass
from datetime import datetime, time, timedelta, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Optional

import structlog

from finnan.config import AppSettings
from finnan.errors import storage_errors
from finnan.ledger.engine import transaction_view
from finnan.models.dashboard import (
    CashHistoryPoint,
    ChartPoint,
    DashboardStats,
    WealthLevel,
)
from finnan.models.entities import (
    Account,
    Category,
    Debt,
    DebtStatus,
    DebtType,
    Transaction,
    TransactionType,
)
from finnan.services.storage.interface import EntityStoreInterface


@dataclass(frozen=True)
class WealthTier:
    level: WealthLevel
    minimum: Optional[Decimal]  # None means unbounded below
    next_level: Optional[WealthLevel]
    next_minimum: Optional[Decimal]


WEALTH_LADDER: tuple[WealthTier, ...] = (
    WealthTier(WealthLevel.KEKURANGAN, None, WealthLevel.BERTAHAN, Decimal("0")),
    WealthTier(WealthLevel.BERTAHAN, Decimal("0"), WealthLevel.AMAN, Decimal("10000000")),
    WealthTier(WealthLevel.AMAN, Decimal("10000000"), WealthLevel.NYAMAN, Decimal("100000000")),
    WealthTier(WealthLevel.NYAMAN, Decimal("100000000"), WealthLevel.SULTAN, Decimal("1000000000")),
    WealthTier(WealthLevel.SULTAN, Decimal("1000000000"), None, None),
)

UNKNOWN_CATEGORY = "Unknown"
CENT = Decimal("0.01")


# =============================================================================
# PURE FUNCTIONS
# =============================================================================

def total_cash(accounts: Iterable[Account]) -> Decimal:
    return sum((account.balance for account in accounts), Decimal("0"))


def debt_totals(debts: Iterable[Debt]) -> tuple[Decimal, Decimal]:
    """(receivables, payables) over UNPAID debts."""
    receivables = payables = Decimal("0")
    for debt in debts:
        if debt.status != DebtStatus.UNPAID:
            continue
        if debt.type == DebtType.RECEIVABLE:
            receivables += debt.amount
        else:
            payables += debt.amount
    return receivables, payables


def wealth_tier(net_worth: Decimal) -> WealthTier:
    """Highest tier whose minimum the net worth reaches."""
    for tier in reversed(WEALTH_LADDER):
        if tier.minimum is None or net_worth >= tier.minimum:
            return tier
    return WEALTH_LADDER[0]


def amount_to_next_level(net_worth: Decimal, tier: WealthTier) -> Optional[Decimal]:
    if tier.next_minimum is None:
        return None
    return max(Decimal("0"), tier.next_minimum - net_worth)


def health_score(
    net_worth: Decimal,
    cash: Decimal,
    receivables: Decimal,
    payables: Decimal,
) -> int:
    score = 50
    if net_worth > 0:
        score += 10
    if payables == 0:
        score += 10
    if receivables > 0:
        score += 5
    if cash > payables:
        score += 15
    return min(score, 100)


def expense_chart(
    transactions: Iterable[Transaction],
    categories: Iterable[Category],
) -> list[ChartPoint]:
    """EXPENSE totals per category, labelled by category name."""
    names = {category.id: category.name for category in categories}
    sums: dict[int, Decimal] = {}
    for transaction in transactions:
        if transaction.type != TransactionType.EXPENSE:
            continue
        sums[transaction.category_id] = (
            sums.get(transaction.category_id, Decimal("0")) + transaction.amount
        )
    return [
        ChartPoint(name=names.get(category_id, UNKNOWN_CATEGORY), value=value)
        for category_id, value in sorted(sums.items())
    ]


def account_chart(accounts: Iterable[Account]) -> list[ChartPoint]:
    return [
        ChartPoint(name=account.name, value=account.balance)
        for account in accounts
        if account.balance > 0
    ]


def window_start(today: datetime, days: int) -> datetime:
    """Midnight of the day ``days`` before today."""
    return datetime.combine(today.date() - timedelta(days=days), time.min)


def cash_history(
    current_cash: Decimal,
    transactions: Iterable[Transaction],
    today: datetime,
) -> list[CashHistoryPoint]:
    """
    Replay daily net cash changes backwards from the current total.

    ``transactions`` are those dated inside the window, in ascending
    date order. Every day with a transaction yields one point, even
    when only transfers happened that day. The last point is always
    today's actual total.
    """
    daily: "OrderedDict[str, Decimal]" = OrderedDict()
    for transaction in transactions:
        day = transaction.date.date().isoformat()
        daily.setdefault(day, Decimal("0"))
        if transaction.type == TransactionType.INCOME:
            daily[day] += transaction.amount
        elif transaction.type == TransactionType.EXPENSE:
            daily[day] -= transaction.amount

    running = current_cash - sum(daily.values(), Decimal("0"))
    history = []
    for day in sorted(daily):
        running += daily[day]
        history.append(CashHistoryPoint(
            date=day,
            total_cash=running.quantize(CENT, rounding=ROUND_HALF_UP),
        ))

    today_key = today.date().isoformat()
    if not history or history[-1].date != today_key:
        history.append(CashHistoryPoint(date=today_key, total_cash=current_cash))
    return history


# =============================================================================
# AGGREGATOR
# =============================================================================

class DashboardAggregator:
    """
    Builds DashboardStats for one user.

    Usage:
        aggregator = DashboardAggregator(store)
        stats = await aggregator.get_dashboard(user_id)
    """

    def __init__(
        self,
        store: EntityStoreInterface,
        settings: Optional[AppSettings] = None,
    ):
        self._store = store
        self._settings = settings or AppSettings()
        self._logger = structlog.get_logger()

    async def get_dashboard(
        self,
        user_id: int,
        today: Optional[datetime] = None,
    ) -> DashboardStats:
        """
        Compute the dashboard.

        Args:
            user_id: Owning user
            today: Reference "now" (naive UTC); defaults to the current time
        """
        today = today or datetime.now(timezone.utc).replace(tzinfo=None)
        since = window_start(today, self._settings.cash_history_days)

        with storage_errors("get_dashboard"):
            async with self._store.transaction() as session:
                accounts = await session.find(Account, user_id)
                debts = await session.find(Debt, user_id)
                categories = await session.find(Category, user_id)
                expenses = await session.find(
                    Transaction, user_id, type=TransactionType.EXPENSE
                )
                recent = await session.find_transactions(
                    user_id, limit=self._settings.recent_transactions_limit
                )
                trend = await session.find_transactions(
                    user_id, date_from=since, newest_first=False
                )

        cash = total_cash(accounts)
        receivables, payables = debt_totals(debts)
        net_worth = cash + receivables - payables
        tier = wealth_tier(net_worth)
        category_map = {c.id: c for c in categories}
        account_map = {a.id: a for a in accounts}
        debt_map = {d.id: d for d in debts}

        stats = DashboardStats(
            net_worth=net_worth,
            total_cash=cash,
            receivables=receivables,
            payables=payables,
            wealth_level=tier.level,
            next_level=tier.next_level,
            amount_to_next_level=amount_to_next_level(net_worth, tier),
            health_score=health_score(net_worth, cash, receivables, payables),
            recent_transactions=[
                transaction_view(t, category_map, account_map, debt_map)
                for t in recent
            ],
            expense_chart_data=expense_chart(expenses, categories),
            account_chart_data=account_chart(accounts),
            total_cash_history=cash_history(cash, trend, today),
        )

        self._logger.debug(
            "dashboard_computed",
            user_id=user_id,
            wealth_level=tier.level.value,
            health_score=stats.health_score,
        )
        return stats
