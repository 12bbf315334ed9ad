"""
Pure domain logic for the weekly accountability engine.

No database, no LLM, no clock reads: every function takes plain entities
and an explicit ``now`` where time matters.
"""

from collections import defaultdict
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Sequence

from ..domain.errors import ValidationError
from ..models.entities import (
    Activity,
    AppSettings,
    GoalStatus,
    User,
    WeeklyHistoryEntry,
    WeeklySummary,
)
from ..utils.week_calendar import is_reminder_window, week_id, week_start


def decide_status(goal_met: bool, gave_up: bool) -> GoalStatus:
    """Meeting the goal wins over a forfeit; a forfeit alone means failed."""
    if goal_met:
        return GoalStatus.ACHIEVED
    if gave_up:
        return GoalStatus.FAILED
    return GoalStatus.PENDING


class AccountabilityDomainService:
    """Pure domain logic for weekly goals and penalties.

    All methods are static and accept plain data; callers supply the
    activities already restricted to the week being evaluated.
    """

    @staticmethod
    def minutes_by_user(activities: Iterable[Activity]) -> Dict[str, int]:
        """Total logged minutes per user id."""
        totals: Dict[str, int] = defaultdict(int)
        for activity in activities:
            totals[activity.user_id] += activity.duration
        return dict(totals)

    @staticmethod
    def compute_weekly_summaries(
        users: Sequence[User],
        week_activities: Sequence[Activity],
        settings: AppSettings,
    ) -> List[WeeklySummary]:
        """Build one summary per user, preserving the order of *users*.

        Args:
            users: Everyone to report on.
            week_activities: Activities inside the week window.
            settings: Supplies the weekly goal.

        Returns:
            Summaries with total minutes, goal flag and status.
        """
        totals = AccountabilityDomainService.minutes_by_user(week_activities)
        forfeited = {a.user_id for a in week_activities if a.is_forfeit}

        summaries = []
        for user in users:
            total = totals.get(user.id, 0)
            goal_met = total >= settings.weekly_goal_minutes
            summaries.append(
                WeeklySummary(
                    user_id=user.id,
                    username=user.username,
                    total_minutes=total,
                    goal_met=goal_met,
                    status=decide_status(goal_met, user.id in forfeited),
                )
            )
        return summaries

    @staticmethod
    def rank_summaries(summaries: Sequence[WeeklySummary]) -> List[WeeklySummary]:
        """Leaderboard order: most minutes first, ties keep input order."""
        return sorted(summaries, key=lambda s: s.total_minutes, reverse=True)

    @staticmethod
    def users_below_goal(
        users: Sequence[User],
        week_activities: Sequence[Activity],
        settings: AppSettings,
    ) -> List[User]:
        """Users the weekly sweep penalizes.

        No pro-rating for late joiners, and a forfeit does not exempt
        anyone: only the minute total counts.
        """
        totals = AccountabilityDomainService.minutes_by_user(week_activities)
        return [
            user
            for user in users
            if totals.get(user.id, 0) < settings.weekly_goal_minutes
        ]

    @staticmethod
    def weekly_history(
        user_id: str,
        activities: Iterable[Activity],
        settings: AppSettings,
    ) -> List[WeeklyHistoryEntry]:
        """Per-week totals for *user_id*, newest week first.

        Forfeit markers are skipped, so a week that only holds a forfeit
        does not appear.
        """
        totals: Dict[str, int] = defaultdict(int)
        starts: Dict[str, datetime] = {}
        for activity in activities:
            if activity.user_id != user_id or activity.is_forfeit:
                continue
            key = week_id(activity.date)
            totals[key] += activity.duration
            starts.setdefault(key, week_start(activity.date))

        return [
            WeeklyHistoryEntry(
                week_id=key,
                week_start=starts[key],
                total_minutes=total,
                goal_met=total >= settings.weekly_goal_minutes,
            )
            for key, total in sorted(totals.items(), reverse=True)
        ]

    @staticmethod
    def total_penalty_pot(users: Iterable[User]) -> float:
        """Sum of everyone's cumulative penalty."""
        return sum(user.cumulative_penalty for user in users)

    @staticmethod
    def should_show_reminder(summary: Optional[WeeklySummary], now: datetime) -> bool:
        """Sunday-evening nudge for a user who has not met the goal yet."""
        if summary is None or summary.goal_met:
            return False
        return is_reminder_window(now)

    @staticmethod
    def validate_forfeit(summary: WeeklySummary) -> None:
        """Only a week still in progress can be given up, and only once."""
        if summary.status is GoalStatus.ACHIEVED:
            raise ValidationError(
                f"{summary.username} already met this week's goal; nothing to give up"
            )
        if summary.status is GoalStatus.FAILED:
            raise ValidationError(f"{summary.username} already gave up this week")

    @staticmethod
    def validate_penalty(amount: float) -> float:
        if amount < 0:
            raise ValidationError(f"Penalty must be non-negative, got {amount}")
        return amount

    @staticmethod
    def validate_settings(weekly_goal_minutes: int, penalty_amount: float) -> AppSettings:
        """Build AppSettings, rejecting a non-positive goal or negative penalty."""
        if weekly_goal_minutes <= 0:
            raise ValidationError(
                f"Weekly goal must be a positive number of minutes, got {weekly_goal_minutes}"
            )
        AccountabilityDomainService.validate_penalty(penalty_amount)
        return AppSettings(
            weekly_goal_minutes=weekly_goal_minutes,
            penalty_amount=penalty_amount,
        )
