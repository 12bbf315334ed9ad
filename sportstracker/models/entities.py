"""
Domain entities persisted in the key-value store.

Immutable Pydantic models: mutations produce a new instance via
``model_copy(update=...)`` and are written back through DataService.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict

# Reserved activity type marking a voluntarily forfeited week
FORFEIT_ACTIVITY_TYPE_ID = "gave-up"


class GoalStatus(str, Enum):
    ACHIEVED = "achieved"
    PENDING = "pending"
    FAILED = "failed"


class User(BaseModel):
    """A tracker member. The coach is a user with ``is_coach`` set."""

    model_config = ConfigDict(frozen=True)

    id: str
    username: str
    password: str
    is_coach: bool = False
    cumulative_penalty: float = 0.0
    created_at: datetime

    def with_penalty(self, amount: float) -> "User":
        """Return a copy carrying *amount* as its cumulative penalty."""
        return self.model_copy(update={"cumulative_penalty": amount})


class ActivityType(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    icon: str = ""


class Activity(BaseModel):
    """A logged workout. ``date`` is when it was logged, not performed."""

    model_config = ConfigDict(frozen=True)

    id: str
    user_id: str
    activity_type_id: str
    duration: int
    date: datetime
    comment: Optional[str] = None

    @property
    def is_forfeit(self) -> bool:
        return self.activity_type_id == FORFEIT_ACTIVITY_TYPE_ID


class AppSettings(BaseModel):
    model_config = ConfigDict(frozen=True)

    weekly_goal_minutes: int = 60
    penalty_amount: float = 5.0


class ChatMessage(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    user_id: str
    username: str
    message: str
    timestamp: datetime


class WeeklySummary(BaseModel):
    """Derived per-user status for one week; never persisted."""

    model_config = ConfigDict(frozen=True)

    user_id: str
    username: str
    total_minutes: int
    goal_met: bool
    status: GoalStatus


class WeeklyHistoryEntry(BaseModel):
    """Derived per-week total for a single user's history view."""

    model_config = ConfigDict(frozen=True)

    week_id: str
    week_start: datetime
    total_minutes: int
    goal_met: bool
