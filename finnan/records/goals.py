"""
Goal records.

The amount a user sees for a goal is derived, never read straight from
the stored column:

- with one or more linked accounts (pockets): the sum of their balances
- else, with a single source account: that account's balance
- else: the stored current_amount

Unlinking every account therefore makes the goal fall back to its stored
value, which only INCOME/EXPENSE transactions naming the goal move.
"""

from decimal import Decimal
from typing import Optional, Sequence

from finnan.errors import storage_errors
from finnan.models.entities import Account, Goal, GoalView, Transaction
from finnan.models.payloads import GoalInput
from finnan.records.base import RecordService
from finnan.services.storage.interface import StoreSession


def effective_current_amount(
    goal: Goal,
    linked_accounts: Sequence[Account],
    account: Optional[Account],
) -> Decimal:
    if linked_accounts:
        return sum((a.balance for a in linked_accounts), Decimal("0"))
    if goal.account_id is not None and account is not None:
        return account.balance
    return goal.current_amount


def goal_view(
    goal: Goal,
    linked_accounts: Sequence[Account],
    account: Optional[Account],
) -> GoalView:
    data = goal.model_dump()
    data["current_amount"] = effective_current_amount(goal, linked_accounts, account)
    return GoalView(**data, linked_accounts=list(linked_accounts), account=account)


class GoalService(RecordService):
    """CRUD for goals. Every read goes through goal_view."""

    label = "Goal"

    async def _view(self, session: StoreSession, user_id: int, goal: Goal) -> GoalView:
        linked = await session.find(Account, user_id, goal_id=goal.id)
        account = None
        if goal.account_id is not None:
            account = await session.get(Account, goal.account_id, user_id)
        return goal_view(goal, linked, account)

    async def list_goals(self, user_id: int) -> list[GoalView]:
        with storage_errors("list_goals"):
            async with self._store.transaction() as session:
                goals = await session.find(
                    Goal, user_id, order_by="created_at", descending=True
                )
                accounts = {a.id: a for a in await session.find(Account, user_id)}

        views = []
        for goal in goals:
            linked = [a for a in accounts.values() if a.goal_id == goal.id]
            views.append(goal_view(goal, linked, accounts.get(goal.account_id)))
        return views

    async def _seeded_amount(
        self,
        session: StoreSession,
        user_id: int,
        payload: GoalInput,
    ) -> Decimal:
        """A goal backed by an account starts from that account's balance."""
        account = await self._referenced(
            session, Account, payload.account_id, user_id, "accountId"
        )
        if account is not None:
            return account.balance
        return payload.current_amount

    async def create_goal(self, user_id: int, payload: GoalInput) -> GoalView:
        """
        Raises:
            InvalidReferenceError: account_id is not an owned account
        """
        with storage_errors("create_goal"):
            async with self._store.transaction() as session:
                current = await self._seeded_amount(session, user_id, payload)
                fields = payload.model_dump()
                fields["current_amount"] = current
                goal = await session.insert(Goal(user_id=user_id, **fields))
                view = await self._view(session, user_id, goal)

        self._logger.info("goal_created", user_id=user_id, goal_id=goal.id)
        return view

    async def update_goal(self, user_id: int, goal_id: int, payload: GoalInput) -> GoalView:
        with storage_errors("update_goal"):
            async with self._store.transaction() as session:
                await self._owned(session, Goal, goal_id, user_id)
                fields = payload.model_dump()
                fields["current_amount"] = await self._seeded_amount(session, user_id, payload)
                goal = await session.update(Goal, goal_id, user_id, **fields)
                return await self._view(session, user_id, goal)

    async def delete_goal(self, user_id: int, goal_id: int) -> None:
        """Delete a goal, detaching its pockets and transactions."""
        with storage_errors("delete_goal"):
            async with self._store.transaction() as session:
                await self._owned(session, Goal, goal_id, user_id)
                await session.update_all(Account, user_id, where={"goal_id": goal_id}, goal_id=None)
                await session.update_all(
                    Transaction, user_id, where={"goal_id": goal_id}, goal_id=None
                )
                await session.delete(Goal, goal_id, user_id)

        self._logger.info("goal_deleted", user_id=user_id, goal_id=goal_id)
