"""
FastAPI HTTP Layer for Finnan

Thin adapter over the services built by finnan.orchestrator:

- bearer token -> AuthService.verify_token (everything except
  register, login and the root check)
- raw JSON body / query string -> PayloadValidator
- service result -> camelCase JSON

Errors leave the core as FinnanError subclasses and are mapped to HTTP
status codes in one place (STATUS_CODES). Internal failures only ever
expose a generic message.

Run with:
    uvicorn --factory app.main:create_app --reload
"""

import json
from contextlib import asynccontextmanager
from typing import Any, Optional

from fastapi import APIRouter, Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel

from finnan.auth import AuthenticatedUser
from finnan.config import get_settings
from finnan.errors import (
    AuthenticationError,
    FinnanError,
    InternalError,
    InvalidOperationError,
    InvalidReferenceError,
    NotFoundError,
    ValidationError,
)
from finnan.logger import get_logger
from finnan.orchestrator import AppComponents, create_app_components


STATUS_CODES: dict[type[FinnanError], int] = {
    ValidationError: 400,
    InvalidReferenceError: 400,
    InvalidOperationError: 400,
    NotFoundError: 404,
    InternalError: 500,
}

bearer_scheme = HTTPBearer(auto_error=False)
logger = get_logger("finnan.api")


# =============================================================================
# HELPERS
# =============================================================================

def dump(value: Any) -> Any:
    """Render models (or lists of models) as camelCase JSON data."""
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json", by_alias=True)
    if isinstance(value, list):
        return [dump(item) for item in value]
    if isinstance(value, dict):
        return {key: dump(item) for key, item in value.items()}
    return value


def components(request: Request) -> AppComponents:
    return request.app.state.components


async def read_json(request: Request) -> Any:
    body = await request.body()
    if not body:
        return {}
    try:
        return json.loads(body)
    except ValueError as e:
        raise ValidationError(
            "Invalid input",
            issues=[{"field": None, "message": "Malformed JSON body", "type": "json_invalid"}],
        ) from e


def query(request: Request) -> dict[str, str]:
    return dict(request.query_params)


async def current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> AuthenticatedUser:
    if credentials is None or not credentials.credentials:
        raise AuthenticationError("Access denied. No token provided.")
    return await components(request).auth.verify_token(credentials.credentials)


def deleted(what: str) -> dict[str, str]:
    return {"message": f"{what} deleted successfully"}


# =============================================================================
# ROUTES
# =============================================================================

auth_router = APIRouter(prefix="/api/auth", tags=["auth"])


@auth_router.post("/register", status_code=201)
async def register(request: Request):
    services = components(request)
    payload = services.validator.validate("register", await read_json(request))
    user = await services.auth.register(payload)
    return {"message": "User created successfully", "userId": user.id}


@auth_router.post("/login")
async def login(request: Request):
    services = components(request)
    payload = services.validator.validate("login", await read_json(request))
    return dump(await services.auth.login(payload))


@auth_router.get("/me")
async def me(request: Request, user: AuthenticatedUser = Depends(current_user)):
    return dump(await components(request).auth.me(user.id))


accounts_router = APIRouter(prefix="/api/accounts", tags=["accounts"])


@accounts_router.get("")
async def list_accounts(request: Request, user: AuthenticatedUser = Depends(current_user)):
    return dump(await components(request).accounts.list_accounts(user.id))


@accounts_router.post("", status_code=201)
async def create_account(request: Request, user: AuthenticatedUser = Depends(current_user)):
    services = components(request)
    payload = services.validator.validate("account", await read_json(request))
    return dump(await services.accounts.create_account(user.id, payload))


@accounts_router.put("/{account_id}")
async def update_account(
    account_id: int, request: Request, user: AuthenticatedUser = Depends(current_user)
):
    services = components(request)
    payload = services.validator.validate("account", await read_json(request))
    return dump(await services.accounts.update_account(user.id, account_id, payload))


@accounts_router.delete("/{account_id}")
async def delete_account(
    account_id: int, request: Request, user: AuthenticatedUser = Depends(current_user)
):
    await components(request).accounts.delete_account(user.id, account_id)
    return deleted("Account")


categories_router = APIRouter(prefix="/api/categories", tags=["categories"])


@categories_router.get("")
async def list_categories(request: Request, user: AuthenticatedUser = Depends(current_user)):
    return dump(await components(request).categories.list_categories(user.id))


@categories_router.post("", status_code=201)
async def create_category(request: Request, user: AuthenticatedUser = Depends(current_user)):
    services = components(request)
    payload = services.validator.validate("category", await read_json(request))
    return dump(await services.categories.create_category(user.id, payload))


@categories_router.put("/{category_id}")
async def update_category(
    category_id: int, request: Request, user: AuthenticatedUser = Depends(current_user)
):
    services = components(request)
    payload = services.validator.validate("category", await read_json(request))
    return dump(await services.categories.update_category(user.id, category_id, payload))


@categories_router.delete("/{category_id}")
async def delete_category(
    category_id: int, request: Request, user: AuthenticatedUser = Depends(current_user)
):
    await components(request).categories.delete_category(user.id, category_id)
    return deleted("Category")


transactions_router = APIRouter(prefix="/api/transactions", tags=["transactions"])


@transactions_router.get("")
async def list_transactions(request: Request, user: AuthenticatedUser = Depends(current_user)):
    services = components(request)
    filters = services.validator.validate("transaction_filter", query(request))
    return dump(await services.ledger.list_transactions(user.id, filters))


@transactions_router.post("", status_code=201)
async def create_transaction(request: Request, user: AuthenticatedUser = Depends(current_user)):
    services = components(request)
    payload = services.validator.validate("transaction_create", await read_json(request))
    return dump(await services.ledger.create_transaction(user.id, payload))


@transactions_router.delete("/{transaction_id}")
async def delete_transaction(
    transaction_id: int, request: Request, user: AuthenticatedUser = Depends(current_user)
):
    await components(request).ledger.delete_transaction(user.id, transaction_id)
    return deleted("Transaction")


budgets_router = APIRouter(prefix="/api/budgets", tags=["budgets"])


@budgets_router.get("")
async def list_budgets(request: Request, user: AuthenticatedUser = Depends(current_user)):
    services = components(request)
    filters = services.validator.validate("budget_filter", query(request))
    return dump(await services.budgets.list_budgets(user.id, filters))


@budgets_router.post("", status_code=201)
async def create_budget(request: Request, user: AuthenticatedUser = Depends(current_user)):
    services = components(request)
    payload = services.validator.validate("budget_create", await read_json(request))
    return dump(await services.budgets.create_budget(user.id, payload))


@budgets_router.delete("/{budget_id}")
async def delete_budget(
    budget_id: int, request: Request, user: AuthenticatedUser = Depends(current_user)
):
    await components(request).budgets.delete_budget(user.id, budget_id)
    return deleted("Budget")


goals_router = APIRouter(prefix="/api/goals", tags=["goals"])


@goals_router.get("")
async def list_goals(request: Request, user: AuthenticatedUser = Depends(current_user)):
    return dump(await components(request).goals.list_goals(user.id))


@goals_router.post("", status_code=201)
async def create_goal(request: Request, user: AuthenticatedUser = Depends(current_user)):
    services = components(request)
    payload = services.validator.validate("goal", await read_json(request))
    return dump(await services.goals.create_goal(user.id, payload))


@goals_router.put("/{goal_id}")
async def update_goal(
    goal_id: int, request: Request, user: AuthenticatedUser = Depends(current_user)
):
    services = components(request)
    payload = services.validator.validate("goal", await read_json(request))
    return dump(await services.goals.update_goal(user.id, goal_id, payload))


@goals_router.delete("/{goal_id}")
async def delete_goal(
    goal_id: int, request: Request, user: AuthenticatedUser = Depends(current_user)
):
    await components(request).goals.delete_goal(user.id, goal_id)
    return deleted("Goal")


debts_router = APIRouter(prefix="/api/debts", tags=["debts"])


@debts_router.get("")
async def list_debts(request: Request, user: AuthenticatedUser = Depends(current_user)):
    return dump(await components(request).debts.list_debts(user.id))


@debts_router.post("", status_code=201)
async def create_debt(request: Request, user: AuthenticatedUser = Depends(current_user)):
    services = components(request)
    payload = services.validator.validate("debt", await read_json(request))
    return dump(await services.debts.create_debt(user.id, payload))


@debts_router.put("/{debt_id}")
async def update_debt(
    debt_id: int, request: Request, user: AuthenticatedUser = Depends(current_user)
):
    services = components(request)
    payload = services.validator.validate("debt", await read_json(request))
    return dump(await services.debts.update_debt(user.id, debt_id, payload))


@debts_router.delete("/{debt_id}")
async def delete_debt(
    debt_id: int, request: Request, user: AuthenticatedUser = Depends(current_user)
):
    await components(request).debts.delete_debt(user.id, debt_id)
    return deleted("Debt")


planned_router = APIRouter(prefix="/api/planned-expenses", tags=["planned-expenses"])


@planned_router.get("")
async def list_planned_expenses(request: Request, user: AuthenticatedUser = Depends(current_user)):
    services = components(request)
    filters = services.validator.validate("planned_expense_filter", query(request))
    return dump(await services.planned_expenses.list_planned_expenses(user.id, filters))


@planned_router.post("", status_code=201)
async def create_planned_expense(request: Request, user: AuthenticatedUser = Depends(current_user)):
    services = components(request)
    payload = services.validator.validate("planned_expense_create", await read_json(request))
    return dump(await services.planned_expenses.create_planned_expense(user.id, payload))


@planned_router.put("/{planned_id}")
async def update_planned_expense(
    planned_id: int, request: Request, user: AuthenticatedUser = Depends(current_user)
):
    services = components(request)
    payload = services.validator.validate("planned_expense_update", await read_json(request))
    return dump(await services.planned_expenses.update_planned_expense(user.id, planned_id, payload))


@planned_router.delete("/{planned_id}")
async def delete_planned_expense(
    planned_id: int, request: Request, user: AuthenticatedUser = Depends(current_user)
):
    await components(request).planned_expenses.delete_planned_expense(user.id, planned_id)
    return deleted("Planned expense")


@planned_router.post("/{planned_id}/execute")
async def execute_planned_expense(
    planned_id: int, request: Request, user: AuthenticatedUser = Depends(current_user)
):
    planned = await components(request).planned_expenses.execute_planned_expense(
        user.id, planned_id
    )
    return dump(planned)


dashboard_router = APIRouter(prefix="/api/dashboard", tags=["dashboard"])


@dashboard_router.get("")
async def get_dashboard(request: Request, user: AuthenticatedUser = Depends(current_user)):
    return dump(await components(request).dashboard.get_dashboard(user.id))


backup_router = APIRouter(prefix="/api/backup", tags=["backup"])


@backup_router.get("/export")
async def export_backup(request: Request, user: AuthenticatedUser = Depends(current_user)):
    snapshot = await components(request).backup.export_data(user.id)
    stamp = snapshot.timestamp.strftime("%Y%m%d%H%M%S")
    return JSONResponse(
        dump(snapshot),
        headers={
            "Content-Disposition": f"attachment; filename=finnan_backup_{user.id}_{stamp}.json"
        },
    )


@backup_router.post("/restore")
async def restore_backup(request: Request, user: AuthenticatedUser = Depends(current_user)):
    await components(request).backup.restore_data(user.id, await read_json(request))
    return {"message": "Data restored successfully"}


ROUTERS = (
    auth_router,
    accounts_router,
    categories_router,
    transactions_router,
    budgets_router,
    goals_router,
    debts_router,
    planned_router,
    dashboard_router,
    backup_router,
)


# =============================================================================
# ERROR MAPPING
# =============================================================================

def status_for(error: FinnanError) -> int:
    if isinstance(error, AuthenticationError):
        return error.status_code
    for error_type, status in STATUS_CODES.items():
        if isinstance(error, error_type):
            return status
    return 500


async def handle_finnan_error(request: Request, exc: FinnanError) -> JSONResponse:
    status = status_for(exc)
    if status >= 500:
        return JSONResponse(
            {"kind": InternalError.kind, "message": "Internal server error"},
            status_code=status,
        )
    return JSONResponse(exc.to_dict(), status_code=status)


async def handle_request_validation(request: Request, exc: RequestValidationError) -> JSONResponse:
    issues = [
        {
            "field": ".".join(str(part) for part in item.get("loc", ())),
            "message": item.get("msg", "Invalid value"),
            "type": item.get("type"),
        }
        for item in exc.errors()
    ]
    return JSONResponse(
        ValidationError("Invalid input", issues=issues).to_dict(), status_code=400
    )


async def handle_unexpected(request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        "unhandled_error",
        path=request.url.path,
        error_type=type(exc).__name__,
        error=str(exc),
    )
    return JSONResponse(
        {"kind": InternalError.kind, "message": "Internal server error"},
        status_code=500,
    )


# =============================================================================
# APPLICATION
# =============================================================================

def create_app(app_components: Optional[AppComponents] = None) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        app_components: Pre-built components (tests pass their own);
                        built from settings when omitted
    """
    app_components = app_components or create_app_components()
    settings = get_settings().app

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await app_components.start()
        logger.info("app_started", environment=settings.app_environment)
        yield
        await app_components.stop()

    app = FastAPI(title="Finnan API", debug=settings.debug_mode, lifespan=lifespan)
    app.state.components = app_components

    if settings.frontend_origin:
        cors = {"allow_origins": [settings.frontend_origin]}
    else:
        cors = {"allow_origin_regex": ".*"}
    app.add_middleware(
        CORSMiddleware,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
        **cors,
    )

    app.add_exception_handler(FinnanError, handle_finnan_error)
    app.add_exception_handler(RequestValidationError, handle_request_validation)
    app.add_exception_handler(Exception, handle_unexpected)

    @app.get("/", response_class=PlainTextResponse)
    async def root():
        return "Finnan API is running"

    for router in ROUTERS:
        app.include_router(router)

    return app

