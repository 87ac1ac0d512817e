"""
Input Schemas

Typed payloads the validator produces from raw request bodies and query
strings. Services only ever receive these, never raw dicts.

Numeric fields arrive here already coerced (see finnan.validation.coercion).
"""

from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

from pydantic import ConfigDict, EmailStr, Field, model_validator

from finnan.models.entities import (
    AccountType,
    CategoryType,
    Currency,
    DebtStatus,
    DebtType,
    GoalStatus,
    LedgerModel,
    Money,
    PlannedExpenseStatus,
    Quantity,
    TransactionType,
)


class PayloadModel(LedgerModel):
    """Base for input schemas: surrounding whitespace is trimmed from strings."""

    model_config = ConfigDict(str_strip_whitespace=True)


# =============================================================================
# TRANSACTIONS
# =============================================================================

class TransactionCreate(PayloadModel):
    """Payload for creating a transaction."""

    amount: Money = Field(..., gt=0)
    date: datetime
    description: Optional[str] = None
    type: TransactionType
    category_id: int
    account_id: Optional[int] = None
    target_account_id: Optional[int] = None
    goal_id: Optional[int] = None
    debt_id: Optional[int] = None


class TransactionFilter(PayloadModel):
    """
    Filters for listing transactions.

    The date range applies only when both ends are given.
    """

    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    type: Optional[TransactionType] = None
    category_id: Optional[int] = None


# =============================================================================
# RECORDS
# =============================================================================

class AccountInput(PayloadModel):
    """Payload for creating or replacing an account."""

    name: str = Field(..., min_length=1)
    type: AccountType
    balance: Money = Decimal("0")
    stock_symbol: Optional[str] = None
    quantity: Optional[Quantity] = None
    image_url: Optional[str] = None
    goal_id: Optional[int] = None


class CategoryInput(PayloadModel):
    name: str = Field(..., min_length=1)
    type: CategoryType


class BudgetCreate(PayloadModel):
    amount: Money = Field(..., gt=0)
    month: int = Field(..., ge=1, le=12)
    year: int = Field(..., ge=2020)
    category_id: int


class BudgetFilter(PayloadModel):
    month: Optional[int] = Field(default=None, ge=1, le=12)
    year: Optional[int] = None


class GoalInput(PayloadModel):
    """Payload for creating or replacing a goal."""

    name: str = Field(..., min_length=1)
    target_amount: Money = Field(..., gt=0)
    current_amount: Money = Field(default=Decimal("0"), ge=0)
    image_url: Optional[str] = None
    deadline: Optional[datetime] = None
    status: GoalStatus = GoalStatus.IN_PROGRESS
    account_id: Optional[int] = None


class DebtInput(PayloadModel):
    """Payload for creating or replacing a debt."""

    person_name: str = Field(..., min_length=1)
    amount: Money = Field(..., gt=0)
    due_date: Optional[datetime] = None
    type: DebtType
    status: DebtStatus = DebtStatus.UNPAID
    description: Optional[str] = None
    total_installments: Optional[int] = Field(default=None, ge=0)
    current_installment: Optional[int] = Field(default=None, ge=0)


class PlannedExpenseCreate(PayloadModel):
    amount: Money = Field(..., gt=0)
    date: datetime
    description: Optional[str] = None
    category_id: int
    account_id: Optional[int] = None


class PlannedExpenseUpdate(PayloadModel):
    """
    Patch payload for a planned expense.

    Every field is presence-tagged: a field the caller did not send is
    absent and left untouched, while a field sent as null is present with
    the value None (for account_id that detaches the account).
    Presence is read from pydantic's model_fields_set.
    """

    amount: Optional[Money] = Field(default=None, gt=0)
    date: Optional[datetime] = None
    description: Optional[str] = None
    category_id: Optional[int] = None
    account_id: Optional[int] = None
    status: Optional[PlannedExpenseStatus] = None

    @model_validator(mode="after")
    def reject_null_required_fields(self) -> "PlannedExpenseUpdate":
        """amount, date, category_id and status may be absent but never null."""
        for name in ("amount", "date", "category_id", "status"):
            if name in self.model_fields_set and getattr(self, name) is None:
                raise ValueError(f"{name} cannot be null")
        return self

    def is_present(self, name: str) -> bool:
        return name in self.model_fields_set

    def present_fields(self) -> dict[str, Any]:
        """Only the fields the caller actually supplied, by attribute name."""
        return {name: getattr(self, name) for name in self.model_fields_set}


class PlannedExpenseFilter(PayloadModel):
    """The month window applies only when both month and year are given."""

    month: Optional[int] = Field(default=None, ge=1, le=12)
    year: Optional[int] = None
    status: Optional[PlannedExpenseStatus] = None


# =============================================================================
# AUTH
# =============================================================================

class RegisterRequest(PayloadModel):
    email: EmailStr
    password: str = Field(..., min_length=6)
    name: str = Field(..., min_length=2)
    currency: Currency = Currency.IDR


class LoginRequest(PayloadModel):
    email: EmailStr
    password: str
