"""
Cadence Event Bus — synchronous publish/subscribe.

The scheduler is single-threaded and emits from inside a tick pass, so
handlers are plain callables run inline, in subscription order. A handler
that raises is logged and skipped; it never reaches the tick pass.
"""

from __future__ import annotations

import fnmatch
import logging
from typing import Callable

from cadence.core.events import Event

logger = logging.getLogger(__name__)

EventHandler = Callable[[Event], None]


class EventBus:
    """
    Publish/subscribe event bus.

    Usage:
        bus = EventBus()

        bus.on("task:fired", on_fired)
        bus.on("task:*", on_any_task_event)
        bus.on("*", on_everything)

        bus.emit(Event(type="task:fired", data={"name": "poll"}))
    """

    def __init__(self) -> None:
        self._subscribers: dict[str, list[EventHandler]] = {}

    def on(self, event_type: str, handler: EventHandler) -> None:
        """Subscribe to an event type. Supports wildcards: 'task:*', '*'."""
        self._subscribers.setdefault(event_type, []).append(handler)

    def off(self, event_type: str, handler: EventHandler) -> None:
        """Unsubscribe from an event type."""
        if event_type in self._subscribers:
            self._subscribers[event_type] = [
                h for h in self._subscribers[event_type] if h is not handler
            ]
            if not self._subscribers[event_type]:
                del self._subscribers[event_type]

    def emit(self, event: Event) -> Event:
        """Deliver an event to every matching subscriber."""
        for handler in self._find_handlers(event.type):
            try:
                handler(event)
            except Exception as e:
                logger.error(f"Subscriber error for {event.type}: {e}", exc_info=e)
        return event

    def _find_handlers(self, event_type: str) -> list[EventHandler]:
        handlers: list[EventHandler] = []
        for pattern, subs in self._subscribers.items():
            if pattern == event_type or pattern == "*":
                handlers.extend(subs)
            elif "*" in pattern and fnmatch.fnmatch(event_type, pattern):
                handlers.extend(subs)
        return handlers

    @property
    def subscriber_count(self) -> int:
        """Total number of subscriptions (for debugging)."""
        return sum(len(subs) for subs in self._subscribers.values())
