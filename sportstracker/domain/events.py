"""Domain events for the weekly accountability workflow.

Defines event types and a lightweight async EventBus so observers (a UI
session, a notifier) can react to penalty sweeps and state refreshes
without polling.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Coroutine, Dict, List, Tuple, Type

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Event types
# ---------------------------------------------------------------------------


@dataclass
class PenaltiesApplied:
    """Emitted after the weekly sweep has written penalties and the ledger."""

    week_id: str
    penalized_user_ids: Tuple[str, ...]
    penalty_amount: float
    timestamp: datetime = field(default_factory=datetime.now)


@dataclass
class WeekForfeited:
    """Emitted when a user gives up the current week."""

    user_id: str
    penalty_amount: float
    timestamp: datetime = field(default_factory=datetime.now)


@dataclass
class StateRefreshed:
    """Emitted after AppState has re-read every collection."""

    user_count: int
    activity_count: int
    timestamp: datetime = field(default_factory=datetime.now)


# ---------------------------------------------------------------------------
# EventBus
# ---------------------------------------------------------------------------

# Type alias for an async event handler
EventHandler = Callable[[Any], Coroutine[Any, Any, None]]


class EventBus:
    """Simple in-process async event bus.

    Subscribers register for a specific event type. When that event is
    published, all registered handlers are invoked. A failing handler
    logs the error but does not prevent remaining handlers from running.
    """

    def __init__(self) -> None:
        self._subscribers: Dict[Type, List[EventHandler]] = {}

    def subscribe(self, event_type: Type, handler: EventHandler) -> None:
        """Register *handler* for *event_type*."""
        self._subscribers.setdefault(event_type, []).append(handler)

    def unsubscribe(self, event_type: Type, handler: EventHandler) -> None:
        """Remove *handler*; unknown handlers are ignored."""
        handlers = self._subscribers.get(event_type, [])
        if handler in handlers:
            handlers.remove(handler)

    async def publish(self, event: Any) -> None:
        """Dispatch *event* to all registered handlers for its type."""
        handlers = self._subscribers.get(type(event), [])
        for handler in handlers:
            try:
                await handler(event)
            except Exception:
                logger.exception(
                    "Event handler %s failed for %s",
                    getattr(handler, "__name__", handler),
                    type(event).__name__,
                )
