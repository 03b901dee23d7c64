"""
Notification Scheduler

Scans goals once per data refresh and emits at most one alert per goal
per session. The set of already-notified goal ids belongs to the
scheduler and is cleared only by `reset()`, which the controller calls
when the session is torn down.

A goal whose tier worsens after it was notified (e.g. at risk -> overdue)
is not notified again within the same session.
"""

from datetime import date
from typing import Iterable
from uuid import UUID

from finance_tracker.engine.goals import GoalProgressEvaluator
from finance_tracker.models.finance import FinancialGoal
from finance_tracker.models.summary import GoalNotification, GoalProgress, UrgencyTier


def _money(value) -> str:
    return f"{value:,.2f}"


def build_notification(goal: FinancialGoal, progress: GoalProgress) -> GoalNotification:
    """Title, message and presentation for an urgent goal."""
    percent = f"{progress.progress_percent:.0f}%"
    days = progress.days_remaining
    tier = progress.urgency

    if tier == UrgencyTier.OVERDUE:
        return GoalNotification(
            goal_id=goal.id,
            goal_name=goal.name,
            urgency=tier,
            title="⚠️ Goal overdue!",
            message=(
                f'The goal "{goal.name}" was due {progress.days_overdue} day(s) ago. '
                f"{_money(progress.remaining)} still missing to reach it."
            ),
            variant="destructive",
            duration_ms=8000,
        )
    if tier == UrgencyTier.DUE_TODAY:
        return GoalNotification(
            goal_id=goal.id,
            goal_name=goal.name,
            urgency=tier,
            title="🚨 Goal due today!",
            message=f'The goal "{goal.name}" is due today! You are at {percent} of the target.',
            variant="destructive",
            duration_ms=8000,
        )
    if tier == UrgencyTier.DUE_SOON:
        return GoalNotification(
            goal_id=goal.id,
            goal_name=goal.name,
            urgency=tier,
            title="⏰ Goal deadline approaching",
            message=f'The goal "{goal.name}" is due in {days} day(s). You are at {percent} of the target.',
            duration_ms=6000,
        )
    if tier == UrgencyTier.AT_RISK:
        return GoalNotification(
            goal_id=goal.id,
            goal_name=goal.name,
            urgency=tier,
            title="📊 Keep an eye on your goal",
            message=(
                f'The goal "{goal.name}" is due in {days} days '
                f"and you are only at {percent} of the target."
            ),
            duration_ms=5000,
        )
    raise ValueError(f"No notification for urgency tier {tier!r}")


class NotificationScheduler:
    """Emits one deadline alert per urgent goal per session."""

    def __init__(self, evaluator: GoalProgressEvaluator):
        self._evaluator = evaluator
        self._notified: set[UUID] = set()

    @property
    def notified_goal_ids(self) -> frozenset[UUID]:
        return frozenset(self._notified)

    def scan(self, goals: Iterable[FinancialGoal], today: date) -> list[GoalNotification]:
        """
        Single pass over the goals; returns the notifications to show now.

        Completed goals and goals without a deadline are skipped, as are
        goals already notified in this session.
        """
        notifications = []
        for goal in goals:
            if goal.is_completed or goal.deadline is None or goal.id in self._notified:
                continue
            progress = self._evaluator.evaluate(goal, today)
            if progress.urgency is None or not progress.urgency.is_alert:
                continue
            notifications.append(build_notification(goal, progress))
            self._notified.add(goal.id)
        return notifications

    def reset(self) -> None:
        """Forget which goals were notified (session teardown)."""
        self._notified.clear()
