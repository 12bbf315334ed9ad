"""
Application-layer accountability service.

Orchestrates the pure domain logic (AccountabilityDomainService) with the
persistent store (DataService): the once-per-week penalty sweep, weekly
forfeits and coach overrides.
"""

import asyncio
import logging
from datetime import datetime
from typing import Optional

from ..domain.events import EventBus, PenaltiesApplied, WeekForfeited
from ..models.entities import FORFEIT_ACTIVITY_TYPE_ID, Activity, AppSettings, User
from ..utils.logging import log_engine_event
from ..utils.week_calendar import is_penalty_day, previous_week_start, week_id
from .accountability_domain import AccountabilityDomainService
from .data_service import DataService

logger = logging.getLogger(__name__)


class AccountabilityAppService:
    """Application service wiring domain logic with the store."""

    def __init__(
        self,
        data_service: DataService,
        event_bus: Optional[EventBus] = None,
    ) -> None:
        self._data = data_service
        self._events = event_bus or EventBus()
        # Serializes every read-modify-write of user penalties and the ledger
        self._write_lock = asyncio.Lock()

    @property
    def event_bus(self) -> EventBus:
        return self._events

    async def apply_weekly_penalties(self, now: datetime) -> Optional[str]:
        """Penalize everyone below goal for the week that ended yesterday.

        Only runs on Mondays, and at most once per week thanks to the
        penalty ledger, so it is safe to call on every startup or poll.

        Args:
            now: Current local time.

        Returns:
            The week id that was just settled, or None when nothing ran.
        """
        if not is_penalty_day(now):
            return None

        target_week = previous_week_start(now)
        target_week_id = week_id(target_week)

        async with self._write_lock:
            if await self._data.has_penalty_run(target_week_id):
                logger.debug(f"Penalties for week {target_week_id} already applied")
                return None

            settings = await self._data.get_settings()
            users = await self._data.get_users()
            activities = await self._data.activities_in_week(target_week)

            penalized = AccountabilityDomainService.users_below_goal(
                users, activities, settings
            )
            for user in penalized:
                await self._data.update_user(
                    user.with_penalty(user.cumulative_penalty + settings.penalty_amount)
                )

            await self._data.mark_penalty_run(target_week_id)

        penalized_ids = tuple(u.id for u in penalized)
        logger.info(
            f"Penalties for week {target_week_id} applied to "
            f"{len(penalized_ids)}/{len(users)} users"
        )
        log_engine_event(
            "penalty_sweep",
            {
                "week_id": target_week_id,
                "penalized_user_ids": list(penalized_ids),
                "penalty_amount": settings.penalty_amount,
            },
        )
        await self._events.publish(
            PenaltiesApplied(
                week_id=target_week_id,
                penalized_user_ids=penalized_ids,
                penalty_amount=settings.penalty_amount,
            )
        )
        return target_week_id

    async def give_up_week(self, user_id: str, now: datetime) -> Activity:
        """Charge the penalty now and record a forfeit for the week containing *now*.

        Raises:
            UserNotFound: No user with *user_id*.
            ValidationError: The user already met the goal or already gave up.
        """
        async with self._write_lock:
            user = await self._data.get_user(user_id)
            settings = await self._data.get_settings()
            week_activities = await self._data.activities_in_week(now)
            [summary] = AccountabilityDomainService.compute_weekly_summaries(
                [user], week_activities, settings
            )
            AccountabilityDomainService.validate_forfeit(summary)

            await self._data.update_user(
                user.with_penalty(user.cumulative_penalty + settings.penalty_amount)
            )
            forfeit = await self._data.add_activity(
                user_id=user.id,
                activity_type_id=FORFEIT_ACTIVITY_TYPE_ID,
                duration=0,
            )

        logger.info(f"User {user.username} gave up week {week_id(now)}")
        log_engine_event(
            "week_forfeited",
            {
                "user_id": user.id,
                "week_id": week_id(now),
                "penalty_amount": settings.penalty_amount,
            },
        )
        await self._events.publish(
            WeekForfeited(user_id=user.id, penalty_amount=settings.penalty_amount)
        )
        return forfeit

    async def update_penalty(self, user_id: str, new_amount: float) -> User:
        """Coach override: set (not add) the cumulative penalty.

        Raises:
            ValidationError: *new_amount* is negative.
            UserNotFound: No user with *user_id*.
        """
        AccountabilityDomainService.validate_penalty(new_amount)
        async with self._write_lock:
            user = await self._data.get_user(user_id)
            updated = await self._data.update_user(user.with_penalty(new_amount))

        log_engine_event(
            "penalty_override",
            {
                "user_id": user.id,
                "previous": user.cumulative_penalty,
                "new": new_amount,
            },
        )
        return updated

    async def update_settings(
        self, weekly_goal_minutes: int, penalty_amount: float
    ) -> AppSettings:
        """Validate and replace the goal/penalty singleton."""
        settings = AccountabilityDomainService.validate_settings(
            weekly_goal_minutes, penalty_amount
        )
        await self._data.put_settings(settings)
        logger.info(
            f"Settings updated: goal={settings.weekly_goal_minutes}min, "
            f"penalty={settings.penalty_amount}"
        )
        return settings
