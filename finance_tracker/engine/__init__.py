"""Derived-state computations: summaries, income normalization, goal urgency."""

from finance_tracker.engine.aggregation import (
    compute_summary,
    expenses_by_category,
    filter_transactions,
    monthly_overview,
    patrimony_trend,
    total_account_balance,
)
from finance_tracker.engine.frequency import monthly_income, to_monthly
from finance_tracker.engine.goals import (
    GoalProgressEvaluator,
    apply_amount_delta,
    days_remaining,
    progress_percent,
    remaining_amount,
)
from finance_tracker.engine.notifications import NotificationScheduler, build_notification
from finance_tracker.engine.settlement import next_status, settlement_delta

__all__ = [
    "GoalProgressEvaluator",
    "NotificationScheduler",
    "apply_amount_delta",
    "build_notification",
    "compute_summary",
    "days_remaining",
    "expenses_by_category",
    "filter_transactions",
    "monthly_income",
    "monthly_overview",
    "next_status",
    "patrimony_trend",
    "progress_percent",
    "remaining_amount",
    "settlement_delta",
    "to_monthly",
    "total_account_balance",
]
