"""
Session/application state consumed by a presentation layer.

Holds the logged-in user and the last-read copy of every collection.
Every mutating action writes through DataService / AccountabilityAppService
and then calls ``refresh()``, so derived views (weekly summaries,
leaderboard, penalty pot) always reflect the store.
"""

import asyncio
import logging
from datetime import datetime
from typing import Callable, List, Optional

from ..domain.errors import ConflictError, NotAuthorized, ValidationError
from ..domain.events import EventBus, PenaltiesApplied, StateRefreshed
from ..models.entities import (
    FORFEIT_ACTIVITY_TYPE_ID,
    Activity,
    ActivityType,
    AppSettings,
    ChatMessage,
    User,
    WeeklyHistoryEntry,
    WeeklySummary,
)
from ..utils.task_tracker import create_tracked_task
from ..utils.week_calendar import week_bounds
from .accountability_app import AccountabilityAppService
from .accountability_domain import AccountabilityDomainService
from .data_service import DataService
from .tip_service import TipService

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 15.0


class AppState:
    """Explicit state object passed to the presentation layer.

    Args:
        data_service: Persistent store.
        accountability: Penalty engine; built on *data_service* if omitted.
        tip_service: Coach tip generator; built lazily on first use if omitted.
        clock: Source of "now" for week windows and the penalty sweep.
        poll_interval: Seconds between background refreshes.
    """

    def __init__(
        self,
        data_service: DataService,
        accountability: Optional[AccountabilityAppService] = None,
        tip_service: Optional[TipService] = None,
        clock: Callable[[], datetime] = datetime.now,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
    ) -> None:
        self._data = data_service
        self._accountability = accountability or AccountabilityAppService(data_service)
        self._tip_service = tip_service
        self._clock = clock
        self._poll_interval = poll_interval
        self._poll_task: Optional[asyncio.Task] = None

        self.current_user: Optional[User] = None
        self.users: List[User] = []
        self.activities: List[Activity] = []
        self.activity_types: List[ActivityType] = []
        self.settings: Optional[AppSettings] = None
        self.chat_messages: List[ChatMessage] = []
        self.coach_tip: str = ""
        self.loading_tip: bool = False

        self.event_bus.subscribe(PenaltiesApplied, self._on_penalties_applied)

    @property
    def event_bus(self) -> EventBus:
        return self._accountability.event_bus

    # -- Lifecycle --

    async def start(self) -> None:
        """Seed the store, restore a saved session and run the weekly sweep."""
        await self._data.initialize()
        self.current_user = await self._data.get_session()
        if self.current_user:
            logger.info(f"Restored session for {self.current_user.username}")
        await self.run_penalty_check()
        await self.refresh()

    async def run_penalty_check(self) -> Optional[str]:
        """Run the weekly sweep against the injected clock."""
        return await self._accountability.apply_weekly_penalties(self._clock())

    async def refresh(self) -> None:
        """Re-read every collection. No-op while nobody is logged in."""
        if self.current_user is None:
            return

        # Sequential reads: a shared in-memory SQLite connection cannot
        # serve concurrent sessions.
        self.users = await self._data.get_users()
        self.activities = await self._data.get_activities()
        self.activity_types = await self._data.get_activity_types()
        self.settings = await self._data.get_settings()
        messages = await self._data.all_messages()
        self.chat_messages = sorted(messages, key=lambda m: m.timestamp)

        # Keep the session copy in step with penalty changes
        fresh = next((u for u in self.users if u.id == self.current_user.id), None)
        if fresh is not None:
            self.current_user = fresh

        await self.event_bus.publish(
            StateRefreshed(user_count=len(self.users), activity_count=len(self.activities))
        )

    async def _on_penalties_applied(self, event: PenaltiesApplied) -> None:
        await self.refresh()

    def start_polling(self) -> asyncio.Task:
        """Refresh in the background every ``poll_interval`` seconds."""
        if self._poll_task is None or self._poll_task.done():
            self._poll_task = create_tracked_task(self._poll_loop(), name="state-poll")
        return self._poll_task

    @property
    def is_polling(self) -> bool:
        return self._poll_task is not None and not self._poll_task.done()

    async def stop_polling(self) -> None:
        if self._poll_task is None:
            return
        self._poll_task.cancel()
        try:
            await self._poll_task
        except asyncio.CancelledError:
            pass
        self._poll_task = None

    async def _poll_loop(self) -> None:
        logger.info(f"Starting state polling every {self._poll_interval}s")
        while True:
            try:
                await asyncio.sleep(self._poll_interval)
                await self.refresh()
            except asyncio.CancelledError:
                logger.info("State polling cancelled")
                raise
            except Exception as e:
                logger.error(f"Error refreshing state: {e}", exc_info=True)

    # -- Derived views --

    @property
    def week_activities(self) -> List[Activity]:
        start, end = week_bounds(self._clock())
        return [a for a in self.activities if start <= a.date < end]

    @property
    def weekly_summaries(self) -> List[WeeklySummary]:
        if self.settings is None:
            return []
        return AccountabilityDomainService.compute_weekly_summaries(
            self.users, self.week_activities, self.settings
        )

    @property
    def leaderboard(self) -> List[WeeklySummary]:
        return AccountabilityDomainService.rank_summaries(self.weekly_summaries)

    @property
    def current_user_summary(self) -> Optional[WeeklySummary]:
        if self.current_user is None:
            return None
        return next(
            (s for s in self.weekly_summaries if s.user_id == self.current_user.id),
            None,
        )

    @property
    def penalty_pot(self) -> float:
        return AccountabilityDomainService.total_penalty_pot(self.users)

    @property
    def history(self) -> List[WeeklyHistoryEntry]:
        if self.current_user is None or self.settings is None:
            return []
        return AccountabilityDomainService.weekly_history(
            self.current_user.id, self.activities, self.settings
        )

    @property
    def show_reminder(self) -> bool:
        return AccountabilityDomainService.should_show_reminder(
            self.current_user_summary, self._clock()
        )

    # -- Guards --

    def _require_user(self) -> User:
        if self.current_user is None:
            raise NotAuthorized("You must be logged in")
        return self.current_user

    def _require_coach(self) -> User:
        user = self._require_user()
        if not user.is_coach:
            raise NotAuthorized(f"User {user.username} is not the coach")
        return user

    # -- Session actions --

    async def login(self, username: str, password: str) -> bool:
        user = await self._data.authenticate(username, password)
        if user is None:
            logger.info(f"Failed login for {username!r}")
            return False
        await self._enter_session(user)
        return True

    async def logout(self) -> None:
        self.current_user = None
        await self._data.clear_session()

    async def signup(self, username: str, password: str, is_coach: bool = False) -> bool:
        """Create an account and log it in; False when the name or coach slot is taken."""
        try:
            user = await self._data.add_user(username, password, is_coach)
        except ConflictError as e:
            logger.info(f"Signup rejected: {e}")
            return False
        await self._enter_session(user)
        return True

    async def _enter_session(self, user: User) -> None:
        self.current_user = user
        await self._data.set_session(user)
        await self.refresh()

    # -- Member actions --

    async def add_activity(
        self, activity_type_id: str, duration: int, comment: Optional[str] = None
    ) -> Activity:
        user = self._require_user()
        if not activity_type_id:
            raise ValidationError("An activity type is required")
        if activity_type_id == FORFEIT_ACTIVITY_TYPE_ID:
            raise ValidationError("Use give_up_week to forfeit a week")
        if duration is None or duration <= 0:
            raise ValidationError(f"Duration must be a positive number of minutes, got {duration}")

        activity = await self._data.add_activity(
            user_id=user.id,
            activity_type_id=activity_type_id,
            duration=duration,
            comment=comment.strip() if comment else None,
        )
        await self.refresh()
        return activity

    async def add_activity_type(self, name: str, icon: str = "") -> ActivityType:
        self._require_user()
        activity_type = await self._data.add_activity_type(name, icon)
        await self.refresh()
        return activity_type

    async def give_up_week(self) -> Activity:
        """Forfeit the current week for the logged-in user.

        Raises:
            NotAuthorized: Nobody is logged in.
            ValidationError: The goal is already met or the week was already given up.
        """
        user = self._require_user()
        forfeit = await self._accountability.give_up_week(user.id, self._clock())
        await self.refresh()
        return forfeit

    async def send_message(self, message: str) -> ChatMessage:
        user = self._require_user()
        text = (message or "").strip()
        if not text:
            raise ValidationError("Message must not be empty")
        chat_message = await self._data.add_message(user.id, user.username, text)
        await self.refresh()
        return chat_message

    # -- Coach actions --

    async def update_settings(self, weekly_goal_minutes: int, penalty_amount: float) -> AppSettings:
        self._require_coach()
        settings = await self._accountability.update_settings(weekly_goal_minutes, penalty_amount)
        await self.refresh()
        return settings

    async def update_user_penalty(self, user_id: str, new_penalty: float) -> User:
        self._require_coach()
        user = await self._accountability.update_penalty(user_id, new_penalty)
        await self.refresh()
        return user

    async def generate_coach_tip(self, topic: str) -> str:
        self._require_coach()
        topic = (topic or "").strip()
        if not topic:
            raise ValidationError("Tip topic must not be empty")

        if self._tip_service is None:
            self._tip_service = TipService()

        self.loading_tip = True
        self.coach_tip = ""
        try:
            self.coach_tip = await self._tip_service.generate_motivational_tip(topic)
        finally:
            self.loading_tip = False
        return self.coach_tip
