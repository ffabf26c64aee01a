"""
Cadence Event System — types and constants.

The scheduler reports lifecycle changes as events so hosts can observe
firings and failures without wrapping every callback themselves.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any
import time
import uuid


class EventType:
    """
    Event type constants.

    Hierarchical naming: "category:action"
    Supports wildcard matching: "task:*" matches "task:fired"
    """

    # Scheduler lifecycle
    SCHEDULER_START = "scheduler:start"
    SCHEDULER_STOP = "scheduler:stop"
    SCHEDULER_TICK_FAULT = "scheduler:tick_fault"
    SCHEDULER_WAIT_CHANGED = "scheduler:wait_changed"

    # Task lifecycle
    TASK_ADDED = "task:added"
    TASK_REPLACED = "task:replaced"
    TASK_REMOVED = "task:removed"
    TASK_FIRED = "task:fired"
    TASK_FAILED = "task:failed"

    # Wildcard
    ALL = "*"


@dataclass(slots=True)
class Event:
    """A single scheduler event."""

    type: str
    data: dict[str, Any] = field(default_factory=dict)
    source: str = ""
    id: str = field(default_factory=lambda: uuid.uuid4().hex[:16])
    timestamp: float = field(default_factory=time.time)
