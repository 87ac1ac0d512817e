"""
Core Data Models for Finnan

These models define the schemas for every entity the ledger stores.
They are designed to:
1. Enforce type safety at runtime
2. Serialize with the camelCase keys the API and backups use
3. Be constructed directly from store rows (from_attributes)

Money is always Decimal internally and rendered as a JSON number.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Annotated, Optional

from pydantic import BaseModel, ConfigDict, Field, PlainSerializer
from pydantic.alias_generators import to_camel


Money = Annotated[
    Decimal,
    PlainSerializer(lambda v: float(v), return_type=float, when_used="json"),
]

# Unit counts (shares, coins) are not money but render the same way
Quantity = Annotated[
    Decimal,
    PlainSerializer(lambda v: float(v), return_type=float, when_used="json"),
]


class LedgerModel(BaseModel):
    """
    Base for all Finnan models: camelCase aliases, ORM-row friendly.

    Stored records keep strings exactly as given; trimming user input is
    done by the payload schemas (finnan.models.payloads.PayloadModel).
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class AccountType(str, Enum):
    """Kinds of accounts a user can hold."""
    BANK = "BANK"
    E_WALLET = "E_WALLET"
    CASH = "CASH"
    OTHER = "OTHER"
    REKSADANA = "REKSADANA"  # mutual fund
    SAHAM = "SAHAM"          # stocks
    CRYPTO = "CRYPTO"


class CategoryType(str, Enum):
    INCOME = "INCOME"
    EXPENSE = "EXPENSE"


class TransactionType(str, Enum):
    """
    Transaction direction.

    INCOME and EXPENSE move one account; TRANSFER moves money between
    two accounts of the same user.
    """
    INCOME = "INCOME"
    EXPENSE = "EXPENSE"
    TRANSFER = "TRANSFER"


class GoalStatus(str, Enum):
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class DebtType(str, Enum):
    PAYABLE = "PAYABLE"        # we owe someone
    RECEIVABLE = "RECEIVABLE"  # someone owes us


class DebtStatus(str, Enum):
    UNPAID = "UNPAID"
    PAID = "PAID"


class PlannedExpenseStatus(str, Enum):
    """
    Planned expense lifecycle.

    PLANNED -> EXECUTED is one-way; executing never creates a transaction.
    """
    PLANNED = "PLANNED"
    EXECUTED = "EXECUTED"
    CANCELLED = "CANCELLED"


class Currency(str, Enum):
    IDR = "IDR"
    USD = "USD"


# =============================================================================
# USER
# =============================================================================

class UserProfile(LedgerModel):
    """Public view of a user. Never carries the credential secret."""

    id: Optional[int] = None
    email: str
    name: str
    currency: Currency = Currency.IDR
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class User(UserProfile):
    """A stored user, including the password hash."""

    password_hash: str = Field(..., repr=False)

    def to_profile(self) -> UserProfile:
        return UserProfile.model_validate(self.model_dump(exclude={"password_hash"}))


# =============================================================================
# LEDGER ENTITIES
# =============================================================================

class OwnedEntity(LedgerModel):
    """Fields shared by every user-scoped entity."""

    id: Optional[int] = Field(
        default=None,
        description="Store-assigned identifier (None before insert)"
    )
    user_id: int = Field(
        ...,
        description="Owning user"
    )
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class Account(OwnedEntity):
    """
    A place money lives: bank account, e-wallet, cash, investment.

    The balance is maintained incrementally by the ledger engine.
    An account may be earmarked as a "pocket" of one goal via goal_id.
    """

    name: str = Field(..., min_length=1, max_length=200)
    type: AccountType
    balance: Money = Decimal("0")
    stock_symbol: Optional[str] = None
    quantity: Optional[Quantity] = None
    image_url: Optional[str] = None
    goal_id: Optional[int] = None


class Category(OwnedEntity):
    """Income or expense category; name is unique per user."""

    name: str = Field(..., min_length=1, max_length=100)
    type: CategoryType


class Transaction(OwnedEntity):
    """
    A single money movement.

    TRANSFER rows always carry account_id (source) and
    target_account_id (destination) and never goal_id or debt_id.
    """

    amount: Money = Field(..., gt=0)
    date: datetime
    description: Optional[str] = None
    type: TransactionType
    category_id: int
    account_id: Optional[int] = None
    target_account_id: Optional[int] = None
    goal_id: Optional[int] = None
    debt_id: Optional[int] = None


class Budget(OwnedEntity):
    """Spending ceiling for one category in one month."""

    amount: Money = Field(..., gt=0)
    month: int = Field(..., ge=1, le=12)
    year: int = Field(..., ge=2020)
    category_id: int


class Goal(OwnedEntity):
    """
    A savings goal.

    current_amount is the stored value mutated by INCOME/EXPENSE
    transactions that reference the goal. What users see is derived by
    finnan.records.goals.effective_current_amount.
    """

    name: str = Field(..., min_length=1, max_length=200)
    target_amount: Money = Field(..., gt=0)
    current_amount: Money = Decimal("0")
    image_url: Optional[str] = None
    deadline: Optional[datetime] = None
    status: GoalStatus = GoalStatus.IN_PROGRESS
    account_id: Optional[int] = None


class Debt(OwnedEntity):
    """
    Money owed to or by someone.

    A debt with total_installments > 0 is an installment debt.
    """

    person_name: str = Field(..., min_length=1, max_length=200)
    amount: Money = Field(..., gt=0)
    due_date: Optional[datetime] = None
    type: DebtType
    status: DebtStatus = DebtStatus.UNPAID
    description: Optional[str] = None
    total_installments: Optional[int] = None
    current_installment: Optional[int] = None

    @property
    def is_installment(self) -> bool:
        return self.total_installments is not None and self.total_installments > 0


class PlannedExpense(OwnedEntity):
    """An expense the user expects to make on a given date."""

    amount: Money = Field(..., gt=0)
    date: datetime
    description: Optional[str] = None
    status: PlannedExpenseStatus = PlannedExpenseStatus.PLANNED
    category_id: int
    account_id: Optional[int] = None
    transaction_id: Optional[int] = None


# =============================================================================
# READ-SIDE VIEWS
# =============================================================================

class GoalView(Goal):
    """A goal as shown to the user: effective amount plus linked pockets."""

    linked_accounts: list[Account] = Field(default_factory=list)
    account: Optional[Account] = None


class TransactionView(Transaction):
    """
    A transaction with the records it points at.

    Each relation is None when the transaction has no such link.
    """

    category: Optional[Category] = None
    account: Optional[Account] = None
    target_account: Optional[Account] = None
    debt: Optional[Debt] = None


class BudgetProgress(Budget):
    """A budget enriched with what has been spent against it."""

    spent: Money = Decimal("0")
    remaining: Money = Decimal("0")
    percentage: float = Field(
        default=0.0,
        ge=0.0,
        le=100.0,
        description="Share of the ceiling already spent, capped at 100"
    )
    category: Optional[Category] = None


class PlannedExpenseView(PlannedExpense):
    category: Optional[Category] = None
    account: Optional[Account] = None
    transaction: Optional[Transaction] = None
