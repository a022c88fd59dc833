"""
Core Ledger Models for Finance Tracker

These models define the schemas of the four record kinds kept in the
document store (Wallet, Transaction, Goal, Debt) plus the per-user
profile, and the "intent" models that carry a user's request into the
Ledger Mutator before anything is written.

Documents are stored with camelCase field names (userId, walletId,
savedAmount, ...). The Python side uses snake_case attributes; the
alias generator maps between the two, so a record read from the store
can be validated directly and a model can be dumped straight back.

DESIGN DECISION: Intents are deliberately lenient (no range constraints).
Range and ownership checks belong to the LedgerValidator, which reports
every problem against the field it concerns instead of failing on the
first pydantic error.
"""

from datetime import date, datetime, time, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class TransactionType(str, Enum):
    """Direction of money relative to the wallet."""
    INCOME = "income"
    EXPENSE = "expense"


class WalletType(str, Enum):
    """Kind of money pool a wallet represents."""
    CASH = "cash"
    BANK = "bank"
    EWALLET = "ewallet"


class DebtType(str, Enum):
    """Who owes whom."""
    I_OWE = "i_owe"
    OWED_TO_ME = "owed_to_me"


class Theme(str, Enum):
    DARK = "dark"
    LIGHT = "light"


# Suggested categories offered by the front end. Categories stay free text.
TRANSACTION_CATEGORIES: dict[TransactionType, list[str]] = {
    TransactionType.INCOME: ["Salary", "Bonus", "Gifts", "Sales", "Other"],
    TransactionType.EXPENSE: [
        "Food", "Transport", "Bills", "Entertainment",
        "Shopping", "Health", "Education", "Other",
    ],
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_datetime(value: Any) -> Any:
    """Promote a bare date (e.g. from a date picker) to local midnight."""
    if isinstance(value, date) and not isinstance(value, datetime):
        return datetime.combine(value, time.min)
    return value


# =============================================================================
# STORED RECORDS
# =============================================================================

class StoredModel(BaseModel):
    """Base for everything that round-trips through the document store."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
    )

    def to_document(self) -> dict[str, Any]:
        """Fields to write to the store (camelCase, no id, no empty optionals)."""
        return self.model_dump(by_alias=True, exclude={"id"}, exclude_none=True)


class OwnedRecord(StoredModel):
    """A record that belongs to exactly one user."""

    id: Optional[str] = Field(
        default=None,
        description="Document ID assigned by the store"
    )
    user_id: str = Field(
        ...,
        min_length=1,
        description="Owning user's ID"
    )


class Wallet(OwnedRecord):
    """
    A named pool of money with a running balance.

    The balance is only moved by the Ledger Mutator: by transaction
    writes (atomic increments) or by a manual override on edit.
    """

    name: str = Field(
        ...,
        min_length=1,
        max_length=100,
        description="Wallet name"
    )
    type: WalletType = Field(
        default=WalletType.CASH,
        description="Wallet type"
    )
    balance: Decimal = Field(
        default=Decimal("0"),
        description="Running balance (may be negative)"
    )
    created_at: Optional[datetime] = Field(
        default_factory=_utcnow,
        description="When the wallet was created"
    )


class GoalAllocation(StoredModel):
    """Portion of an income transaction routed into a savings goal."""

    goal_id: str = Field(
        ...,
        description="Goal receiving the allocation"
    )
    amount: Decimal = Field(
        ...,
        description="Allocated amount"
    )


class Transaction(OwnedRecord):
    """
    An immutable record of money moving into or out of a wallet.

    There is no edit or delete path: a transaction is only ever created.
    """

    amount: Decimal = Field(
        ...,
        ge=0,
        description="Transaction amount"
    )
    type: TransactionType
    category: str = Field(
        ...,
        min_length=1,
        max_length=100,
    )
    date: datetime = Field(
        ...,
        description="When the money moved"
    )
    note: Optional[str] = Field(
        default=None,
        max_length=500,
    )
    wallet_id: str = Field(
        ...,
        min_length=1,
        description="Wallet the amount is booked against"
    )
    allocated_to_goal: Optional[GoalAllocation] = None
    created_at: Optional[datetime] = Field(
        default_factory=_utcnow,
    )

    @field_validator("date", mode="before")
    @classmethod
    def coerce_date(cls, v: Any) -> Any:
        return _as_datetime(v)

    @model_validator(mode='after')
    def validate_allocation(self) -> 'Transaction':
        """An allocation only exists on income and never exceeds the amount."""
        if self.allocated_to_goal is not None:
            if self.type != TransactionType.INCOME:
                raise ValueError("Only income can be allocated to a goal")
            if self.allocated_to_goal.amount > self.amount:
                raise ValueError("Allocation cannot exceed the transaction amount")
        return self

    @property
    def signed_amount(self) -> Decimal:
        """Effect of this transaction on its wallet's balance."""
        return self.amount if self.type == TransactionType.INCOME else -self.amount

    @property
    def allocated_amount(self) -> Decimal:
        return self.allocated_to_goal.amount if self.allocated_to_goal else Decimal("0")


class Goal(OwnedRecord):
    """
    A savings target.

    saved_amount only grows, through income allocations. Saving more than
    the target is allowed and simply shows as >100% progress.
    """

    title: str = Field(
        ...,
        min_length=1,
        max_length=200,
    )
    target_amount: Decimal = Field(
        ...,
        gt=0,
    )
    saved_amount: Decimal = Field(
        default=Decimal("0"),
        ge=0,
    )
    deadline: Optional[datetime] = None
    created_at: Optional[datetime] = Field(
        default_factory=_utcnow,
    )

    @field_validator("deadline", mode="before")
    @classmethod
    def coerce_deadline(cls, v: Any) -> Any:
        return _as_datetime(v)

    @property
    def is_reached(self) -> bool:
        return self.saved_amount >= self.target_amount


class Debt(OwnedRecord):
    """
    A tracked obligation, owed by or to the user.

    is_paid is a status flag only; flipping it never moves money.
    """

    person_name: str = Field(
        ...,
        min_length=1,
        max_length=200,
    )
    amount: Decimal = Field(
        ...,
        ge=0,
    )
    type: DebtType
    due_date: Optional[datetime] = None
    description: Optional[str] = Field(
        default=None,
        max_length=500,
    )
    is_paid: bool = False
    created_at: Optional[datetime] = Field(
        default_factory=_utcnow,
    )

    @field_validator("due_date", mode="before")
    @classmethod
    def coerce_due_date(cls, v: Any) -> Any:
        return _as_datetime(v)


class UserProfile(StoredModel):
    """Per-user display preferences. Stored under the user's ID."""

    theme: Theme = Theme.DARK
    currency: str = Field(
        default="USD",
        min_length=3,
        max_length=3,
    )

    @field_validator('currency')
    @classmethod
    def normalize_currency(cls, v: str) -> str:
        return v.upper()


# =============================================================================
# INTENTS - what the user asked for, before validation
# =============================================================================

class TransactionIntent(StoredModel):
    """A request to record a transaction."""

    user_id: str
    amount: Decimal
    type: TransactionType
    category: str = ""
    wallet_id: str = ""
    date: Optional[datetime] = None
    note: Optional[str] = None
    allocation: Optional[GoalAllocation] = None

    @field_validator("date", mode="before")
    @classmethod
    def coerce_date(cls, v: Any) -> Any:
        return _as_datetime(v)

    @field_validator('note')
    @classmethod
    def blank_note_is_none(cls, v: Optional[str]) -> Optional[str]:
        return v or None


class WalletIntent(StoredModel):
    """A request to create or edit a wallet."""

    user_id: str
    name: str = ""
    balance: Optional[Decimal] = None
    type: WalletType = WalletType.CASH


class GoalIntent(StoredModel):
    """A request to create a savings goal."""

    user_id: str
    title: str = ""
    target_amount: Optional[Decimal] = None
    deadline: Optional[datetime] = None

    @field_validator("deadline", mode="before")
    @classmethod
    def coerce_deadline(cls, v: Any) -> Any:
        return _as_datetime(v)


class DebtIntent(StoredModel):
    """A request to create a debt record."""

    user_id: str
    person_name: str = ""
    amount: Optional[Decimal] = None
    type: DebtType = DebtType.I_OWE
    due_date: Optional[datetime] = None
    description: Optional[str] = None

    @field_validator("due_date", mode="before")
    @classmethod
    def coerce_due_date(cls, v: Any) -> Any:
        return _as_datetime(v)

    @field_validator('description')
    @classmethod
    def blank_description_is_none(cls, v: Optional[str]) -> Optional[str]:
        return v or None
