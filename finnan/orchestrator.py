"""
Application Orchestrator

Wires settings, logging, the entity store and every service together.
The HTTP layer (app/main.py) and the tests build their components here
so both run the same graph.

Flow of a request:
    bearer token -> AuthService.verify_token
    raw payload  -> PayloadValidator.validate
    typed input  -> ledger / dashboard / backup / record service
    service      -> EntityStoreInterface (one unit of work per call)
"""

from dataclasses import dataclass
from typing import Optional

from finnan.auth import AuthService
from finnan.backup import BackupEngine
from finnan.config import Settings, get_settings
from finnan.dashboard import DashboardAggregator
from finnan.ledger import LedgerEngine
from finnan.logger import configure_logging
from finnan.records import (
    AccountService,
    BudgetService,
    CategoryService,
    DebtService,
    GoalService,
    PlannedExpenseService,
)
from finnan.services.storage import EntityStoreInterface, SqlAlchemyEntityStore
from finnan.validation import PayloadValidator


@dataclass
class AppComponents:
    """Every long-lived object the application needs."""

    store: EntityStoreInterface
    validator: PayloadValidator
    auth: AuthService
    ledger: LedgerEngine
    dashboard: DashboardAggregator
    backup: BackupEngine
    accounts: AccountService
    categories: CategoryService
    budgets: BudgetService
    goals: GoalService
    debts: DebtService
    planned_expenses: PlannedExpenseService

    async def start(self) -> None:
        await self.store.initialize()

    async def stop(self) -> None:
        await self.store.dispose()


def create_app_components(
    settings: Optional[Settings] = None,
    store: Optional[EntityStoreInterface] = None,
) -> AppComponents:
    """
    Factory function to create all application components.

    Args:
        settings: Settings container (defaults to get_settings())
        store: Entity store to use. Defaults to a SQLAlchemy store on
               DATABASE_URL; pass one in for tests.

    The store is not initialized here; call ``await components.start()``.
    """
    settings = settings or get_settings()
    app_settings = settings.app
    configure_logging(app_settings.log_level)

    store = store or SqlAlchemyEntityStore(settings=settings.database)

    return AppComponents(
        store=store,
        validator=PayloadValidator(),
        auth=AuthService(store, settings.auth),
        ledger=LedgerEngine(store),
        dashboard=DashboardAggregator(store, app_settings),
        backup=BackupEngine(store),
        accounts=AccountService(store),
        categories=CategoryService(store),
        budgets=BudgetService(store),
        goals=GoalService(store),
        debts=DebtService(store),
        planned_expenses=PlannedExpenseService(store),
    )
