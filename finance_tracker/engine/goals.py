"""
Goal Progress Evaluator

Computes how far along a savings goal is and how urgent its deadline
has become. Urgency tiers are checked in a fixed priority order and
the first match wins:

1. overdue   - deadline already passed
2. due today - deadline is today
3. due soon  - deadline within `due_soon_days`
4. at risk   - deadline within `at_risk_days` and progress below
               `at_risk_progress` percent
5. on track  - anything else

Completed goals are never evaluated for urgency.
"""

from datetime import date
from decimal import Decimal
from typing import Optional

from finance_tracker.config import AppSettings
from finance_tracker.models.finance import FinancialGoal
from finance_tracker.models.summary import GoalProgress, UrgencyTier


ZERO = Decimal("0")
HUNDRED = Decimal("100")


def progress_percent(current_amount: Decimal, target_amount: Decimal) -> Decimal:
    """Percent complete, clamped to [0, 100]; 0 when the target is 0."""
    if target_amount <= 0:
        return ZERO
    return max(ZERO, min(HUNDRED, current_amount * HUNDRED / target_amount))


def remaining_amount(current_amount: Decimal, target_amount: Decimal) -> Decimal:
    return max(ZERO, target_amount - current_amount)


def days_remaining(deadline: Optional[date], today: date) -> Optional[int]:
    """Whole calendar days from today to the deadline (negative once passed)."""
    if deadline is None:
        return None
    return (deadline - today).days


def apply_amount_delta(current_amount: Decimal, delta: Decimal) -> Decimal:
    """New saved amount after a deposit (delta > 0) or withdrawal (delta < 0)."""
    return max(ZERO, current_amount + delta)


class GoalProgressEvaluator:
    """Evaluates goals against configurable urgency thresholds."""

    def __init__(
        self,
        due_soon_days: int = 7,
        at_risk_days: int = 30,
        at_risk_progress: Decimal = Decimal("50"),
    ):
        if at_risk_days < due_soon_days:
            raise ValueError("at_risk_days must not be shorter than due_soon_days")
        self.due_soon_days = due_soon_days
        self.at_risk_days = at_risk_days
        self.at_risk_progress = at_risk_progress

    @classmethod
    def from_settings(cls, settings: AppSettings) -> "GoalProgressEvaluator":
        return cls(
            due_soon_days=settings.due_soon_days,
            at_risk_days=settings.at_risk_days,
            at_risk_progress=settings.at_risk_progress_percent,
        )

    def classify(self, days: Optional[int], progress: Decimal) -> UrgencyTier:
        """Urgency tier for a goal with `days` left and `progress` percent done."""
        if days is None:
            return UrgencyTier.ON_TRACK
        if days < 0:
            return UrgencyTier.OVERDUE
        if days == 0:
            return UrgencyTier.DUE_TODAY
        if days <= self.due_soon_days:
            return UrgencyTier.DUE_SOON
        if days <= self.at_risk_days and progress < self.at_risk_progress:
            return UrgencyTier.AT_RISK
        return UrgencyTier.ON_TRACK

    def evaluate(self, goal: FinancialGoal, today: date) -> GoalProgress:
        progress = progress_percent(goal.current_amount, goal.target_amount)
        days = days_remaining(goal.deadline, today)
        return GoalProgress(
            goal_id=goal.id,
            progress_percent=progress,
            remaining=remaining_amount(goal.current_amount, goal.target_amount),
            days_remaining=days,
            urgency=None if goal.is_completed else self.classify(days, progress),
        )
