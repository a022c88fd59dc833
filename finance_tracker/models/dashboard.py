"""Derived dashboard figures. Produced by the aggregator, never stored."""

from datetime import date
from decimal import Decimal

from pydantic import BaseModel, Field

from finance_tracker.models.ledger import Transaction


class ActivityBucket(BaseModel):
    """Income and expense totals for one calendar day."""

    day: date
    income: Decimal = Decimal("0")
    expense: Decimal = Decimal("0")

    @property
    def label(self) -> str:
        """Short axis label, e.g. 'Oct 05'."""
        return self.day.strftime("%b %d")


class DashboardSummary(BaseModel):
    """Everything the dashboard shows, computed from one snapshot."""

    total_balance: Decimal = Field(
        ...,
        description="Sum of all wallet balances"
    )
    monthly_net_income: Decimal = Field(
        ...,
        description="Income this month minus what was allocated to goals"
    )
    monthly_expense: Decimal = Field(
        ...,
        description="Expenses this month"
    )
    activity: list[ActivityBucket] = Field(
        default_factory=list,
        description="Per-day income/expense over the trailing window, oldest first"
    )
    recent_transactions: list[Transaction] = Field(
        default_factory=list,
        description="Newest transactions first"
    )
