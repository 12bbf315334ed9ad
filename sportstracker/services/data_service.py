"""
Persistent store for users, activities, catalog, settings, chat and ledger.

Each collection is one record in a KeyValueStore; every write replaces
the whole serialized collection. Unreadable records are logged and
treated as their default value.
"""

import logging
import uuid
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Type, TypeVar

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from ..core.defaults_loader import get_default_activity_types, get_default_app_settings
from ..domain.errors import (
    CoachAlreadyExists,
    StorageError,
    UserNotFound,
    UsernameTaken,
    ValidationError,
)
from ..domain.repositories import KeyValueStore
from ..models.entities import (
    Activity,
    ActivityType,
    AppSettings,
    ChatMessage,
    User,
)
from ..utils.week_calendar import week_bounds

logger = logging.getLogger(__name__)

USERS_KEY = "sportstracker_users"
ACTIVITIES_KEY = "sportstracker_activities"
ACTIVITY_TYPES_KEY = "sportstracker_activity_types"
LOGGED_IN_USER_KEY = "sportstracker_loggedin_user"
PENALTY_CHECKS_KEY = "sportstracker_penalty_checks"
SETTINGS_KEY = "sportstracker_settings"
CHAT_MESSAGES_KEY = "sportstracker_chat"

M = TypeVar("M", bound=BaseModel)


def _new_id() -> str:
    return uuid.uuid4().hex


class DataService:
    """Repository facade over a KeyValueStore.

    Args:
        store: Backend holding one JSON record per collection.
        clock: Source of "now" for ids/timestamps; injectable for tests.
    """

    def __init__(
        self,
        store: KeyValueStore,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self._store = store
        self._clock = clock

    # -- Raw record helpers --

    async def _read(self, key: str, default: Any) -> Any:
        try:
            value = await self._store.get(key)
        except StorageError as e:
            logger.error(f"Error reading {key}, using default: {e}")
            return default
        return default if value is None else value

    async def _read_models(self, key: str, model: Type[M], default: Any = None) -> List[M]:
        """Decode a collection item by item; malformed items are logged and skipped."""
        fallback = default if default is not None else []
        raw = await self._read(key, fallback)
        if not isinstance(raw, list):
            logger.error(f"{key} is not a list, using default")
            raw = fallback

        items: List[M] = []
        for index, item in enumerate(raw):
            try:
                items.append(model.model_validate(item))
            except PydanticValidationError as e:
                logger.error(f"Skipping malformed item {index} in {key}: {e}")
        return items

    async def _write_models(self, key: str, items: List[BaseModel]) -> None:
        await self._store.put(key, [item.model_dump(mode="json") for item in items])

    async def initialize(self) -> None:
        """Seed defaults for every record that does not exist yet."""
        seeds: Dict[str, Any] = {
            USERS_KEY: [],
            ACTIVITIES_KEY: [],
            ACTIVITY_TYPES_KEY: get_default_activity_types(),
            PENALTY_CHECKS_KEY: {},
            SETTINGS_KEY: AppSettings(**get_default_app_settings()).model_dump(mode="json"),
            CHAT_MESSAGES_KEY: [],
        }
        for key, value in seeds.items():
            try:
                existing = await self._store.get(key)
            except StorageError as e:
                logger.error(f"Unreadable record {key} left untouched: {e}")
                continue
            if existing is None:
                await self._store.put(key, value)
                logger.info(f"Seeded default record {key}")

    # -- Users --

    async def get_users(self) -> List[User]:
        return await self._read_models(USERS_KEY, User)

    async def get_user(self, user_id: str) -> User:
        """Return the user with *user_id* or raise UserNotFound."""
        for user in await self.get_users():
            if user.id == user_id:
                return user
        raise UserNotFound(user_id)

    async def add_user(self, username: str, password: str, is_coach: bool = False) -> User:
        """Create a user.

        Raises:
            ValidationError: Empty username or password.
            UsernameTaken: Username collides case-insensitively.
            CoachAlreadyExists: A coach exists and *is_coach* is set.
        """
        username = (username or "").strip()
        if not username:
            raise ValidationError("Username must not be empty")
        if not password:
            raise ValidationError("Password must not be empty")

        users = await self.get_users()
        if any(u.username.lower() == username.lower() for u in users):
            raise UsernameTaken(username)
        if is_coach:
            coach = next((u for u in users if u.is_coach), None)
            if coach is not None:
                raise CoachAlreadyExists(coach.id)

        user = User(
            id=_new_id(),
            username=username,
            password=password,
            is_coach=is_coach,
            cumulative_penalty=0.0,
            created_at=self._clock(),
        )
        await self._write_models(USERS_KEY, [*users, user])
        logger.info(f"Created user {user.username} ({user.id}), coach={is_coach}")
        return user

    async def update_user(self, updated: User) -> User:
        """Replace the stored user with the same id; raise UserNotFound if absent."""
        users = await self.get_users()
        for index, user in enumerate(users):
            if user.id == updated.id:
                users[index] = updated
                await self._write_models(USERS_KEY, users)
                return updated
        raise UserNotFound(updated.id)

    async def authenticate(self, username: str, password: str) -> Optional[User]:
        """Case-insensitive username and exact password match."""
        for user in await self.get_users():
            if user.username.lower() == username.lower() and user.password == password:
                return user
        return None

    # -- Activities --

    async def get_activities(self) -> List[Activity]:
        return await self._read_models(ACTIVITIES_KEY, Activity)

    async def add_activity(
        self,
        user_id: str,
        activity_type_id: str,
        duration: int,
        comment: Optional[str] = None,
    ) -> Activity:
        """Append an activity logged now."""
        if duration < 0:
            raise ValidationError(f"Duration must be non-negative, got {duration}")

        activities = await self.get_activities()
        activity = Activity(
            id=_new_id(),
            user_id=user_id,
            activity_type_id=activity_type_id,
            duration=duration,
            date=self._clock(),
            comment=comment or None,
        )
        await self._write_models(ACTIVITIES_KEY, [*activities, activity])
        return activity

    async def activities_in_week(self, date: datetime) -> List[Activity]:
        """Activities whose ``date`` falls in the week containing *date*."""
        start, end = week_bounds(date)
        return [a for a in await self.get_activities() if start <= a.date < end]

    # -- Activity types --

    async def get_activity_types(self) -> List[ActivityType]:
        return await self._read_models(
            ACTIVITY_TYPES_KEY, ActivityType, default=get_default_activity_types()
        )

    async def add_activity_type(self, name: str, icon: str = "") -> ActivityType:
        name = (name or "").strip()
        if not name:
            raise ValidationError("Activity type name must not be empty")

        types = await self.get_activity_types()
        activity_type = ActivityType(id=_new_id(), name=name, icon=icon)
        await self._write_models(ACTIVITY_TYPES_KEY, [*types, activity_type])
        return activity_type

    # -- Session pointer --

    async def set_session(self, user: User) -> None:
        await self._store.put(LOGGED_IN_USER_KEY, user.model_dump(mode="json"))

    async def get_session(self) -> Optional[User]:
        raw = await self._read(LOGGED_IN_USER_KEY, None)
        if raw is None:
            return None
        try:
            return User.model_validate(raw)
        except PydanticValidationError as e:
            logger.error(f"Malformed session record, ignoring: {e}")
            return None

    async def clear_session(self) -> None:
        await self._store.delete(LOGGED_IN_USER_KEY)

    # -- Penalty ledger --

    async def penalty_runs(self) -> Dict[str, bool]:
        """Ledger of week ids whose penalty sweep has already run."""
        checks = await self._read(PENALTY_CHECKS_KEY, {})
        if not isinstance(checks, dict):
            logger.error(f"Malformed {PENALTY_CHECKS_KEY} record, using empty ledger")
            return {}
        return dict(checks)

    async def has_penalty_run(self, week_id: str) -> bool:
        return bool((await self.penalty_runs()).get(week_id))

    async def mark_penalty_run(self, week_id: str) -> None:
        checks = await self.penalty_runs()
        checks[week_id] = True
        await self._store.put(PENALTY_CHECKS_KEY, checks)

    # -- Settings --

    async def get_settings(self) -> AppSettings:
        raw = await self._read(SETTINGS_KEY, None)
        if raw is not None:
            try:
                return AppSettings.model_validate(raw)
            except PydanticValidationError as e:
                logger.error(f"Malformed settings record, using defaults: {e}")
        return AppSettings(**get_default_app_settings())

    async def put_settings(self, settings: AppSettings) -> None:
        await self._store.put(SETTINGS_KEY, settings.model_dump(mode="json"))

    # -- Chat --

    async def get_chat_messages(self) -> List[ChatMessage]:
        return await self._read_models(CHAT_MESSAGES_KEY, ChatMessage)

    async def all_messages(self) -> List[ChatMessage]:
        """Chat history in stored order."""
        return await self.get_chat_messages()

    async def add_message(self, user_id: str, username: str, message: str) -> ChatMessage:
        """Append a chat message stamped with the server clock."""
        messages = await self.all_messages()
        chat_message = ChatMessage(
            id=_new_id(),
            user_id=user_id,
            username=username,
            message=message,
            timestamp=self._clock(),
        )
        await self._write_models(CHAT_MESSAGES_KEY, [*messages, chat_message])
        return chat_message
