"""
Explicit input coercion.

Form posts and query strings deliver numbers as strings ("150000",
"3"). Rather than relying on implicit conversion everywhere, each schema
declares which fields may arrive as numeric strings and how they are
converted. Date and datetime strings are parsed here too, so that every
timestamp reaching the services is naive UTC like the stored values.

Values that cannot be converted are passed through unchanged; the
schema then reports them as field errors.
"""

from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Callable


def to_decimal(value: Any) -> Any:
    if isinstance(value, str):
        text = value.strip()
        if text == "":
            return None
        try:
            return Decimal(text)
        except InvalidOperation:
            return value
    if isinstance(value, float):
        # go through repr so 0.1 stays 0.1
        return Decimal(repr(value))
    return value


def to_int(value: Any) -> Any:
    if isinstance(value, str):
        text = value.strip()
        if text == "":
            return None
        try:
            return int(text)
        except ValueError:
            return value
    return value


def to_naive_utc(value: Any) -> Any:
    """Parse ISO-8601 strings; convert aware datetimes to naive UTC."""
    if isinstance(value, str):
        text = value.strip()
        if text == "":
            return None
        try:
            value = datetime.fromisoformat(text)
        except ValueError:
            return value
    if isinstance(value, datetime) and value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


Coercer = Callable[[Any], Any]

# Per-schema field coercions, keyed by the camelCase wire name.
COERCIONS: dict[str, dict[str, Coercer]] = {
    "transaction_create": {
        "amount": to_decimal,
        "date": to_naive_utc,
        "categoryId": to_int,
        "accountId": to_int,
        "targetAccountId": to_int,
        "goalId": to_int,
        "debtId": to_int,
    },
    "transaction_filter": {
        "startDate": to_naive_utc,
        "endDate": to_naive_utc,
        "categoryId": to_int,
    },
    "account": {
        "balance": to_decimal,
        "quantity": to_decimal,
        "goalId": to_int,
    },
    "category": {},
    "budget_create": {
        "amount": to_decimal,
        "month": to_int,
        "year": to_int,
        "categoryId": to_int,
    },
    "budget_filter": {
        "month": to_int,
        "year": to_int,
    },
    "goal": {
        "targetAmount": to_decimal,
        "currentAmount": to_decimal,
        "deadline": to_naive_utc,
        "accountId": to_int,
    },
    "debt": {
        "amount": to_decimal,
        "dueDate": to_naive_utc,
        "totalInstallments": to_int,
        "currentInstallment": to_int,
    },
    "planned_expense_create": {
        "amount": to_decimal,
        "date": to_naive_utc,
        "categoryId": to_int,
        "accountId": to_int,
    },
    "planned_expense_update": {
        "amount": to_decimal,
        "date": to_naive_utc,
        "categoryId": to_int,
        "accountId": to_int,
    },
    "planned_expense_filter": {
        "month": to_int,
        "year": to_int,
    },
    "register": {},
    "login": {},
}


def coerce(schema_name: str, raw: dict[str, Any]) -> dict[str, Any]:
    """
    Return a copy of raw with the schema's coercible fields converted.

    Keys not present in raw stay absent, so presence-tagged schemas can
    still tell "not sent" from "sent as null".
    """
    rules = COERCIONS.get(schema_name, {})
    coerced = dict(raw)
    for field, convert in rules.items():
        if field in coerced and coerced[field] is not None:
            coerced[field] = convert(coerced[field])
    return coerced
