"""
Tests for the record services.
"""

from datetime import datetime
from decimal import Decimal

import pytest

from finnan.errors import InvalidOperationError, InvalidReferenceError, NotFoundError
from finnan.ledger import LedgerEngine
from finnan.models import (
    Account,
    AccountInput,
    AccountType,
    BudgetCreate,
    BudgetFilter,
    CategoryInput,
    CategoryType,
    DebtInput,
    DebtType,
    Goal,
    GoalInput,
    PlannedExpense,
    PlannedExpenseCreate,
    PlannedExpenseFilter,
    PlannedExpenseStatus,
    PlannedExpenseUpdate,
    Transaction,
    TransactionCreate,
    TransactionType,
)
from finnan.records import (
    AccountService,
    BudgetService,
    CategoryService,
    DebtService,
    GoalService,
    PlannedExpenseService,
    effective_current_amount,
    month_bounds,
)


class TestMonthBounds:
    """Tests for calendar month windows."""

    def test_regular_month(self):
        start, end = month_bounds(2, 2024)
        assert start == datetime(2024, 2, 1)
        assert end == datetime(2024, 2, 29, 23, 59, 59, 999999)

    def test_december_rolls_year(self):
        start, end = month_bounds(12, 2025)
        assert end == datetime(2025, 12, 31, 23, 59, 59, 999999)


class TestAccountService:
    """Tests for account CRUD."""

    async def test_create_and_list_newest_first(self, store, user_id):
        """Accounts list newest first."""
        service = AccountService(store)
        await service.create_account(user_id, AccountInput(name="BCA", type=AccountType.BANK))
        await service.create_account(user_id, AccountInput(name="GoPay", type=AccountType.E_WALLET))

        names = [a.name for a in await service.list_accounts(user_id)]
        assert names == ["GoPay", "BCA"]

    async def test_create_with_foreign_goal_rejected(self, store, seed, user_id, other_user_id):
        """A pocket can only point at the user's own goal."""
        goal = await seed.goal(other_user_id)
        with pytest.raises(InvalidReferenceError):
            await AccountService(store).create_account(
                user_id, AccountInput(name="Pocket", type=AccountType.BANK, goal_id=goal.id)
            )

    async def test_update_other_users_account_not_found(self, store, seed, user_id, other_user_id):
        """Another user's account looks absent."""
        account = await seed.account(other_user_id)
        with pytest.raises(NotFoundError):
            await AccountService(store).update_account(
                user_id, account.id, AccountInput(name="Mine now", type=AccountType.CASH)
            )

    async def test_update_replaces_fields(self, store, seed, user_id):
        """Balance and name are edited directly."""
        account = await seed.account(user_id, "Old", balance="10")
        updated = await AccountService(store).update_account(
            user_id, account.id,
            AccountInput(name="New", type=AccountType.CASH, balance=Decimal("99")),
        )
        assert updated.name == "New"
        assert updated.balance == Decimal("99")

    @pytest.mark.parametrize("as_target", [False, True])
    async def test_delete_referenced_account_rejected(self, store, seed, user_id, as_target):
        """Any reference blocks deletion until the transaction is gone."""
        category = await seed.category(user_id)
        bank = await seed.account(user_id, "BCA", balance="1000")
        pocket = await seed.account(user_id, "Pocket")
        engine = LedgerEngine(store)
        transfer = await engine.create_transaction(user_id, TransactionCreate(
            amount=Decimal("100"), date=datetime(2025, 1, 1), type=TransactionType.TRANSFER,
            category_id=category.id, account_id=bank.id, target_account_id=pocket.id,
        ))

        victim = pocket if as_target else bank
        service = AccountService(store)
        with pytest.raises(InvalidOperationError, match="associated transactions"):
            await service.delete_account(user_id, victim.id)

        await engine.delete_transaction(user_id, transfer.id)
        await service.delete_account(user_id, victim.id)
        assert await seed.get(Account, victim.id, user_id) is None

    async def test_delete_detaches_goal_and_planned(self, store, seed, user_id):
        """Planned expenses and goals lose their account link."""
        category = await seed.category(user_id)
        account = await seed.account(user_id)
        goal = await seed.goal(user_id, account_id=account.id)
        async with store.transaction() as session:
            planned = await session.insert(PlannedExpense(
                user_id=user_id, amount=Decimal("10"), date=datetime(2025, 1, 1),
                category_id=category.id, account_id=account.id,
            ))

        await AccountService(store).delete_account(user_id, account.id)

        assert await seed.get(Account, account.id, user_id) is None
        assert (await seed.get(Goal, goal.id, user_id)).account_id is None
        assert (await seed.get(PlannedExpense, planned.id, user_id)).account_id is None


class TestCategoryService:
    """Tests for category CRUD."""

    async def test_duplicate_name_rejected(self, store, user_id):
        service = CategoryService(store)
        await service.create_category(user_id, CategoryInput(name="Food", type=CategoryType.EXPENSE))
        with pytest.raises(InvalidOperationError, match="already exists"):
            await service.create_category(
                user_id, CategoryInput(name="Food", type=CategoryType.INCOME)
            )

    async def test_same_name_for_different_users(self, store, user_id, other_user_id):
        """Uniqueness is per user."""
        service = CategoryService(store)
        payload = CategoryInput(name="Food", type=CategoryType.EXPENSE)
        await service.create_category(user_id, payload)
        await service.create_category(other_user_id, payload)

    async def test_list_sorted_by_name(self, store, seed, user_id):
        await seed.category(user_id, "Transport")
        await seed.category(user_id, "Bills")
        names = [c.name for c in await CategoryService(store).list_categories(user_id)]
        assert names == ["Bills", "Transport"]

    async def test_delete_used_category_rejected(self, store, seed, user_id):
        category = await seed.category(user_id)
        account = await seed.account(user_id, balance="100")
        await LedgerEngine(store).create_transaction(user_id, TransactionCreate(
            amount=Decimal("1"), date=datetime(2025, 1, 1), type=TransactionType.EXPENSE,
            category_id=category.id, account_id=account.id,
        ))
        with pytest.raises(InvalidOperationError):
            await CategoryService(store).delete_category(user_id, category.id)

    async def test_delete_cascades_budgets(self, store, seed, user_id):
        """Budgets of a deleted category go with it."""
        category = await seed.category(user_id)
        await BudgetService(store).create_budget(user_id, BudgetCreate(
            amount=Decimal("100"), month=1, year=2025, category_id=category.id,
        ))

        await CategoryService(store).delete_category(user_id, category.id)

        assert await BudgetService(store).list_budgets(user_id) == []


class TestBudgetService:
    """Tests for budgets and their progress."""

    async def test_progress_counts_month_expenses_only(self, store, seed, user_id):
        """Only EXPENSE rows of that category inside the month count."""
        food = await seed.category(user_id, "Food")
        other = await seed.category(user_id, "Other")
        account = await seed.account(user_id, balance="1000000")
        engine = LedgerEngine(store)
        for when, category, type, amount in (
            (datetime(2025, 3, 1), food, TransactionType.EXPENSE, "200"),
            (datetime(2025, 3, 31, 23, 0), food, TransactionType.EXPENSE, "100"),
            (datetime(2025, 4, 1), food, TransactionType.EXPENSE, "999"),
            (datetime(2025, 3, 10), food, TransactionType.INCOME, "999"),
            (datetime(2025, 3, 10), other, TransactionType.EXPENSE, "999"),
        ):
            await engine.create_transaction(user_id, TransactionCreate(
                amount=Decimal(amount), date=when, type=type,
                category_id=category.id, account_id=account.id,
            ))

        service = BudgetService(store)
        await service.create_budget(user_id, BudgetCreate(
            amount=Decimal("1000"), month=3, year=2025, category_id=food.id,
        ))

        [budget] = await service.list_budgets(user_id, BudgetFilter(month=3, year=2025))
        assert budget.spent == Decimal("300")
        assert budget.remaining == Decimal("700")
        assert budget.percentage == pytest.approx(30.0)
        assert budget.category.name == "Food"

    async def test_overspent_percentage_capped(self, store, seed, user_id):
        """Remaining goes negative, percentage stops at 100."""
        food = await seed.category(user_id)
        account = await seed.account(user_id, balance="1000")
        await LedgerEngine(store).create_transaction(user_id, TransactionCreate(
            amount=Decimal("150"), date=datetime(2025, 5, 2), type=TransactionType.EXPENSE,
            category_id=food.id, account_id=account.id,
        ))
        service = BudgetService(store)
        await service.create_budget(user_id, BudgetCreate(
            amount=Decimal("100"), month=5, year=2025, category_id=food.id,
        ))

        [budget] = await service.list_budgets(user_id)
        assert budget.remaining == Decimal("-50")
        assert budget.percentage == 100.0

    async def test_duplicate_period_rejected(self, store, seed, user_id):
        food = await seed.category(user_id)
        service = BudgetService(store)
        payload = BudgetCreate(amount=Decimal("100"), month=5, year=2025, category_id=food.id)
        await service.create_budget(user_id, payload)
        with pytest.raises(InvalidOperationError):
            await service.create_budget(user_id, payload)

    async def test_foreign_category_rejected(self, store, seed, user_id, other_user_id):
        food = await seed.category(other_user_id)
        with pytest.raises(InvalidReferenceError):
            await BudgetService(store).create_budget(user_id, BudgetCreate(
                amount=Decimal("100"), month=5, year=2025, category_id=food.id,
            ))

    async def test_filter_by_month(self, store, seed, user_id):
        food = await seed.category(user_id)
        service = BudgetService(store)
        for month in (1, 2):
            await service.create_budget(user_id, BudgetCreate(
                amount=Decimal("100"), month=month, year=2025, category_id=food.id,
            ))
        budgets = await service.list_budgets(user_id, BudgetFilter(month=2))
        assert [b.month for b in budgets] == [2]


class TestGoalService:
    """Tests for goals and their effective amount."""

    def test_effective_amount_rules(self):
        """Pockets win, then the source account, then the stored value."""
        goal = Goal(
            id=1, user_id=1, name="House", target_amount=Decimal("100"),
            current_amount=Decimal("7"), account_id=5,
        )
        pocket_a = Account(user_id=1, name="A", type=AccountType.BANK, balance=Decimal("10"))
        pocket_b = Account(user_id=1, name="B", type=AccountType.BANK, balance=Decimal("15"))
        source = Account(id=5, user_id=1, name="S", type=AccountType.BANK, balance=Decimal("40"))

        assert effective_current_amount(goal, [pocket_a, pocket_b], source) == Decimal("25")
        assert effective_current_amount(goal, [], source) == Decimal("40")
        assert effective_current_amount(goal, [], None) == Decimal("7")

    async def test_create_seeds_from_account(self, store, seed, user_id):
        """A goal backed by an account starts at its balance."""
        account = await seed.account(user_id, balance="3000")
        view = await GoalService(store).create_goal(user_id, GoalInput(
            name="Bike", target_amount=Decimal("10000"),
            current_amount=Decimal("5"), account_id=account.id,
        ))
        assert view.current_amount == Decimal("3000")
        assert view.account.id == account.id

        stored = await seed.get(Goal, view.id, user_id)
        assert stored.current_amount == Decimal("3000")

    async def test_create_with_foreign_account_rejected(self, store, seed, user_id, other_user_id):
        account = await seed.account(other_user_id)
        with pytest.raises(InvalidReferenceError):
            await GoalService(store).create_goal(user_id, GoalInput(
                name="Bike", target_amount=Decimal("10000"), account_id=account.id,
            ))

    async def test_list_sums_pockets(self, store, seed, user_id):
        goal = await seed.goal(user_id, current="1")
        await seed.account(user_id, "P1", balance="100", goal_id=goal.id)
        await seed.account(user_id, "P2", balance="250", goal_id=goal.id)

        [view] = await GoalService(store).list_goals(user_id)
        assert view.current_amount == Decimal("350")
        assert {a.name for a in view.linked_accounts} == {"P1", "P2"}

    async def test_unlinking_falls_back_to_stored(self, store, seed, user_id):
        """After the last pocket is unlinked the stored amount shows again."""
        goal = await seed.goal(user_id, current="42")
        pocket = await seed.account(user_id, "P1", balance="100", goal_id=goal.id)

        await AccountService(store).update_account(
            user_id, pocket.id, AccountInput(name="P1", type=AccountType.BANK, balance=Decimal("100"))
        )

        [view] = await GoalService(store).list_goals(user_id)
        assert view.current_amount == Decimal("42")
        assert view.linked_accounts == []

    async def test_delete_detaches(self, store, seed, user_id):
        """Pockets and transactions survive goal deletion, unlinked."""
        category = await seed.category(user_id, "Salary", CategoryType.INCOME)
        goal = await seed.goal(user_id)
        pocket = await seed.account(user_id, "P1", goal_id=goal.id)
        tx = await LedgerEngine(store).create_transaction(user_id, TransactionCreate(
            amount=Decimal("10"), date=datetime(2025, 1, 1), type=TransactionType.INCOME,
            category_id=category.id, account_id=pocket.id, goal_id=goal.id,
        ))

        await GoalService(store).delete_goal(user_id, goal.id)

        assert await seed.get(Goal, goal.id, user_id) is None
        assert (await seed.get(Account, pocket.id, user_id)).goal_id is None
        assert (await seed.get(Transaction, tx.id, user_id)).goal_id is None


class TestDebtService:
    """Tests for debt CRUD."""

    async def test_create_and_update(self, store, user_id):
        service = DebtService(store)
        debt = await service.create_debt(user_id, DebtInput(
            person_name="Andi", amount=Decimal("500"), type=DebtType.RECEIVABLE,
        ))
        updated = await service.update_debt(user_id, debt.id, DebtInput(
            person_name="Andi", amount=Decimal("400"), type=DebtType.RECEIVABLE,
        ))
        assert updated.amount == Decimal("400")

    async def test_delete_keeps_payments(self, store, seed, user_id):
        """Payments stay, unlinked from the deleted debt."""
        category = await seed.category(user_id)
        account = await seed.account(user_id, balance="1000")
        debt = await seed.debt(user_id, "500")
        tx = await LedgerEngine(store).create_transaction(user_id, TransactionCreate(
            amount=Decimal("100"), date=datetime(2025, 1, 1), type=TransactionType.EXPENSE,
            category_id=category.id, account_id=account.id, debt_id=debt.id,
        ))

        await DebtService(store).delete_debt(user_id, debt.id)

        assert (await seed.get(Transaction, tx.id, user_id)).debt_id is None

    async def test_delete_other_users_debt_not_found(self, store, seed, user_id, other_user_id):
        debt = await seed.debt(other_user_id)
        with pytest.raises(NotFoundError):
            await DebtService(store).delete_debt(user_id, debt.id)


class TestPlannedExpenseService:
    """Tests for planned expenses."""

    @pytest.fixture
    async def planned(self, store, seed, user_id):
        category = await seed.category(user_id)
        account = await seed.account(user_id, balance="500")
        item = await PlannedExpenseService(store).create_planned_expense(
            user_id, PlannedExpenseCreate(
                amount=Decimal("75"), date=datetime(2025, 4, 10),
                category_id=category.id, account_id=account.id,
            )
        )
        return item

    async def test_patch_only_sent_fields(self, store, user_id, planned):
        """Absent fields are left alone."""
        updated = await PlannedExpenseService(store).update_planned_expense(
            user_id, planned.id, PlannedExpenseUpdate(description="Dentist")
        )
        assert updated.description == "Dentist"
        assert updated.amount == Decimal("75")
        assert updated.account_id == planned.account_id

    async def test_null_account_detaches(self, store, user_id, planned):
        updated = await PlannedExpenseService(store).update_planned_expense(
            user_id, planned.id, PlannedExpenseUpdate(account_id=None)
        )
        assert updated.account_id is None

    async def test_patch_foreign_account_rejected(self, store, seed, user_id, other_user_id, planned):
        theirs = await seed.account(other_user_id)
        with pytest.raises(InvalidReferenceError):
            await PlannedExpenseService(store).update_planned_expense(
                user_id, planned.id, PlannedExpenseUpdate(account_id=theirs.id)
            )

    async def test_execute_once(self, store, seed, user_id, planned):
        """Executing flips the status, leaves balances alone and cannot repeat."""
        service = PlannedExpenseService(store)

        executed = await service.execute_planned_expense(user_id, planned.id)
        assert executed.status == PlannedExpenseStatus.EXECUTED
        assert (await seed.get(Account, planned.account_id, user_id)).balance == Decimal("500")
        assert await seed.find(Transaction, user_id) == []

        with pytest.raises(InvalidOperationError, match="already executed"):
            await service.execute_planned_expense(user_id, planned.id)

    async def test_list_month_window(self, store, seed, user_id, planned):
        """The month filter needs both month and year."""
        service = PlannedExpenseService(store)
        await service.create_planned_expense(user_id, PlannedExpenseCreate(
            amount=Decimal("5"), date=datetime(2025, 5, 1), category_id=planned.category_id,
        ))

        april = await service.list_planned_expenses(
            user_id, PlannedExpenseFilter(month=4, year=2025)
        )
        assert [p.id for p in april] == [planned.id]

        month_only = await service.list_planned_expenses(user_id, PlannedExpenseFilter(month=4))
        assert len(month_only) == 2

    async def test_views_carry_related_records(self, store, seed, user_id, planned):
        """Create, update, execute and list all embed category and account."""
        service = PlannedExpenseService(store)
        assert planned.category.name == "Food"
        assert planned.account.name == "BCA"
        assert planned.transaction is None

        updated = await service.update_planned_expense(
            user_id, planned.id, PlannedExpenseUpdate()
        )
        assert updated.category.name == "Food"

        executed = await service.execute_planned_expense(user_id, planned.id)
        assert executed.account.id == planned.account_id

        detached = await service.update_planned_expense(
            user_id, planned.id, PlannedExpenseUpdate(account_id=None)
        )
        assert detached.account is None
        assert detached.category.id == planned.category_id

    async def test_list_embeds_linked_transaction(self, store, seed, user_id, planned):
        category = await seed.category(user_id, "Rent")
        transaction = await LedgerEngine(store).create_transaction(
            user_id, TransactionCreate(
                amount=Decimal("20"), date=datetime(2025, 4, 12),
                type=TransactionType.EXPENSE, category_id=category.id,
            )
        )
        async with store.transaction() as session:
            await session.update(
                PlannedExpense, planned.id, user_id, transaction_id=transaction.id
            )

        [listed] = await PlannedExpenseService(store).list_planned_expenses(user_id)
        assert listed.transaction.id == transaction.id
        assert listed.transaction.category_id == category.id
        assert listed.category.name == "Food"

    async def test_delete_not_owned(self, store, other_user_id, planned):
        with pytest.raises(NotFoundError):
            await PlannedExpenseService(store).delete_planned_expense(other_user_id, planned.id)
