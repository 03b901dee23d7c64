"""
Derived View Models

Everything in this module is computed from the stored records on demand.
None of these objects is ever persisted; they are rebuilt after every
confirmed mutation so they cannot go stale.
"""

from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class UrgencyTier(str, Enum):
    """
    Deadline risk of a savings goal.

    Evaluated in declaration order; the first matching tier wins.
    """
    OVERDUE = "overdue"
    DUE_TODAY = "due_today"
    DUE_SOON = "due_soon"
    AT_RISK = "at_risk"
    ON_TRACK = "on_track"

    @property
    def is_alert(self) -> bool:
        """Tiers that produce a notification."""
        return self is not UrgencyTier.ON_TRACK


class FinancialSummary(BaseModel):
    """
    Dashboard figures derived from transactions, accounts and income sources.

    balance is the period balance of the transactions alone; total_balance
    is what the active accounts hold right now.
    """
    model_config = ConfigDict(frozen=True)

    total_receivables: Decimal = Decimal("0")
    total_payables: Decimal = Decimal("0")
    pending_receivables: Decimal = Decimal("0")
    pending_payables: Decimal = Decimal("0")
    paid_receivables: Decimal = Decimal("0")
    paid_payables: Decimal = Decimal("0")
    balance: Decimal = Decimal("0")
    total_balance: Decimal = Decimal("0")
    projected_balance: Decimal = Decimal("0")
    monthly_income: Decimal = Decimal("0")


class GoalProgress(BaseModel):
    """Progress and deadline status of one goal."""
    model_config = ConfigDict(frozen=True)

    goal_id: UUID
    progress_percent: Decimal = Field(..., ge=0, le=100)
    remaining: Decimal = Field(..., ge=0)
    days_remaining: Optional[int] = None
    # None for completed goals: they are excluded from urgency evaluation
    urgency: Optional[UrgencyTier] = None

    @property
    def days_overdue(self) -> Optional[int]:
        if self.days_remaining is None or self.days_remaining >= 0:
            return None
        return abs(self.days_remaining)


class GoalNotification(BaseModel):
    """A one-shot alert about a goal's deadline."""
    model_config = ConfigDict(frozen=True)

    goal_id: UUID
    goal_name: str
    urgency: UrgencyTier
    title: str
    message: str
    # "destructive" alerts are the ones the UI shows in red
    variant: str = Field(default="default", pattern="^(default|destructive)$")
    duration_ms: int = Field(default=5000, ge=0)


class CategoryExpense(BaseModel):
    """One slice of the expenses-by-category chart."""
    model_config = ConfigDict(frozen=True)

    category: str
    value: Decimal
    percentage: Decimal


class OverviewBar(BaseModel):
    """Total vs realized amount for one transaction direction."""
    model_config = ConfigDict(frozen=True)

    label: str
    total: Decimal
    realized: Decimal


class PatrimonyPoint(BaseModel):
    model_config = ConfigDict(frozen=True)

    snapshot_date: date
    total_balance: Decimal


class PatrimonyTrend(BaseModel):
    """Net-worth history plotted from the daily snapshots."""
    model_config = ConfigDict(frozen=True)

    points: list[PatrimonyPoint] = Field(default_factory=list)
    percent_change: Decimal = Decimal("0")

    @property
    def is_positive(self) -> bool:
        return self.percent_change >= 0
