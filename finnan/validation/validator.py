"""
Payload Validation

Turns raw request data (JSON bodies, query strings) into typed payloads
in two steps:

1. COERCION - numeric strings and ISO date strings are converted for the
   fields each schema declares (finnan.validation.coercion).
2. SCHEMA VALIDATION - the pydantic schema checks presence, types,
   ranges and enums.

Failures are reported as a single ValidationError listing every field
issue. Validation never fixes values beyond the declared coercions.
"""

from typing import Any, Optional

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from finnan.errors import ValidationError
from finnan.models.payloads import (
    AccountInput,
    BudgetCreate,
    BudgetFilter,
    CategoryInput,
    DebtInput,
    GoalInput,
    LoginRequest,
    PlannedExpenseCreate,
    PlannedExpenseFilter,
    PlannedExpenseUpdate,
    RegisterRequest,
    TransactionCreate,
    TransactionFilter,
)
from finnan.validation.coercion import coerce


SCHEMAS: dict[str, type[BaseModel]] = {
    "transaction_create": TransactionCreate,
    "transaction_filter": TransactionFilter,
    "account": AccountInput,
    "category": CategoryInput,
    "budget_create": BudgetCreate,
    "budget_filter": BudgetFilter,
    "goal": GoalInput,
    "debt": DebtInput,
    "planned_expense_create": PlannedExpenseCreate,
    "planned_expense_update": PlannedExpenseUpdate,
    "planned_expense_filter": PlannedExpenseFilter,
    "register": RegisterRequest,
    "login": LoginRequest,
}


def _issues(error: PydanticValidationError) -> list[dict[str, Any]]:
    issues = []
    for item in error.errors(include_url=False, include_input=False):
        location = ".".join(str(part) for part in item.get("loc", ()))
        issues.append({
            "field": location or None,
            "message": item.get("msg", "Invalid value"),
            "type": item.get("type"),
        })
    return issues


class PayloadValidator:
    """
    Validates raw payloads against the named schemas.

    Usage:
        validator = PayloadValidator()
        payload = validator.validate("transaction_create", request_json)
    """

    def __init__(self, schemas: Optional[dict[str, type[BaseModel]]] = None):
        self._schemas = dict(schemas or SCHEMAS)

    def schema(self, name: str) -> type[BaseModel]:
        try:
            return self._schemas[name]
        except KeyError:
            raise KeyError(f"Unknown schema: {name}") from None

    def validate(self, name: str, raw: Any) -> BaseModel:
        """
        Coerce and validate raw data against the named schema.

        Raises:
            ValidationError: If raw is not an object or any field is invalid
        """
        schema = self.schema(name)

        if raw is None:
            raw = {}
        if not isinstance(raw, dict):
            raise ValidationError(
                "Invalid input",
                issues=[{"field": None, "message": "Expected a JSON object", "type": "dict_type"}],
            )

        try:
            return schema.model_validate(coerce(name, raw))
        except PydanticValidationError as e:
            raise ValidationError("Invalid input", issues=_issues(e)) from e
