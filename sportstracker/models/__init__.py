from .base import Base, TimestampMixin
from .entities import (
    FORFEIT_ACTIVITY_TYPE_ID,
    Activity,
    ActivityType,
    AppSettings,
    ChatMessage,
    GoalStatus,
    User,
    WeeklyHistoryEntry,
    WeeklySummary,
)
from .kv_record import KeyValueRecord

__all__ = [
    "Base",
    "TimestampMixin",
    "KeyValueRecord",
    "FORFEIT_ACTIVITY_TYPE_ID",
    "GoalStatus",
    "User",
    "ActivityType",
    "Activity",
    "AppSettings",
    "ChatMessage",
    "WeeklySummary",
    "WeeklyHistoryEntry",
]
