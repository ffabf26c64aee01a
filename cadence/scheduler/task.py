"""
Task — one schedulable unit of work and its state machine.

Two variants, fixed at creation:

    OneShotTask    fires once, strictly after `due_at`, then is destroyed
    RecurringTask  fires whenever `interval` ms have passed since its last
                   firing, optionally capped at `iteration_limit` firings

Destruction is a flag, not an action: `pending_destroy` goes false → true
exactly once and the owning Scheduler drops the task at the end of the
tick pass.
"""

from __future__ import annotations

import logging
import math
from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Callable

from cadence.core.errors import TaskCallbackError, ValidationError
from cadence.scheduler.schema import OneShotParams, parse_task_params

logger = logging.getLogger(__name__)

LOG_PREFIX = "### Scheduler"

TaskCallback = Callable[["Task"], Any]


class TaskKind(str, Enum):
    ONE_SHOT = "after"
    RECURRING = "repeat"


class Task(ABC):
    """Base class shared by both task variants."""

    kind: TaskKind

    def __init__(self, name: str, callback: TaskCallback) -> None:
        self._name = name
        self._callback = callback
        self._pending_destroy = False
        self.active = True

    @staticmethod
    def from_params(params: Any, now: float) -> Task:
        """
        Build the right variant from raw creation params.

        Raises:
            ValidationError: params fail both schemas
        """
        parsed = parse_task_params(params)
        if isinstance(parsed, OneShotParams):
            return OneShotTask(parsed.name, parsed.callback, due_at=now + parsed.after)
        return RecurringTask(
            parsed.name,
            parsed.callback,
            interval=parsed.interval,
            iteration_limit=parsed.iterations or 0,
        )

    @property
    def name(self) -> str:
        return self._name

    @property
    def callback(self) -> TaskCallback:
        return self._callback

    @property
    def pending_destroy(self) -> bool:
        return self._pending_destroy

    def enable(self) -> Task:
        """Resume evaluation. Timing bookkeeping is untouched."""
        self.active = True
        return self

    def disable(self) -> Task:
        """Pause evaluation. Timing bookkeeping is untouched."""
        self.active = False
        return self

    def mark_for_destroy(self) -> Task:
        """Flag the task for removal at the end of the current tick pass."""
        self._pending_destroy = True
        return self

    @abstractmethod
    def should_execute(self, now: float) -> bool:
        """True when the task is active and due. No side effects."""
        ...

    @abstractmethod
    def _record_firing(self, now: float) -> None:
        """Advance counters and decide destruction before the callback runs."""
        ...

    def fire(self, now: float) -> TaskCallbackError | None:
        """
        Run the firing protocol: bookkeeping first, then the user callback.

        A callback that raises destroys the task; it is never retried.
        Returns the wrapped failure, or None when the callback succeeded.
        """
        try:
            self._record_firing(now)
            self._callback(self)
        except Exception as e:
            self.mark_for_destroy()
            logger.error(
                f'{LOG_PREFIX} Task "{self._name}" seems to have failed in some way '
                f"and will be destroyed: {e}",
                exc_info=e,
            )
            error = TaskCallbackError(str(e), task_name=self._name)
            error.__cause__ = e
            return error
        return None

    def snapshot(self) -> dict[str, Any]:
        """Read-only view of the task state."""
        return {
            "name": self._name,
            "kind": self.kind.value,
            "active": self.active,
            "pending_destroy": self._pending_destroy,
        }

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self._name!r} active={self.active}>"


class OneShotTask(Task):
    """Fires once the absolute deadline `due_at` has passed."""

    kind = TaskKind.ONE_SHOT

    def __init__(self, name: str, callback: TaskCallback, due_at: float) -> None:
        super().__init__(name, callback)
        self._due_at = due_at

    @property
    def due_at(self) -> float:
        return self._due_at

    def should_execute(self, now: float) -> bool:
        # Strictly after the deadline: now == due_at is not yet due.
        return self.active and now > self._due_at

    def _record_firing(self, now: float) -> None:
        self.mark_for_destroy()

    def snapshot(self) -> dict[str, Any]:
        return {**super().snapshot(), "due_at": self._due_at}


class RecurringTask(Task):
    """Fires every `interval` ms, measured from the previous firing."""

    kind = TaskKind.RECURRING

    def __init__(
        self,
        name: str,
        callback: TaskCallback,
        interval: float,
        iteration_limit: float = 0,
    ) -> None:
        super().__init__(name, callback)
        self._interval = _validate_interval(interval)
        self._iteration_limit = iteration_limit
        self._iteration_count = 0
        self._last_fired_at: float = 0  # 0 = never fired

    @property
    def interval(self) -> float:
        return self._interval

    @interval.setter
    def interval(self, value: float) -> None:
        # Takes effect on the next evaluation; last_fired_at is kept.
        self._interval = _validate_interval(value)

    @property
    def iteration_limit(self) -> float:
        return self._iteration_limit

    @property
    def iteration_count(self) -> int:
        return self._iteration_count

    @property
    def last_fired_at(self) -> float:
        return self._last_fired_at

    def should_execute(self, now: float) -> bool:
        return self.active and now - self._last_fired_at >= self._interval

    def _record_firing(self, now: float) -> None:
        self._iteration_count += 1
        limit = self._iteration_limit
        if limit != 0 and self._iteration_count >= limit:
            self.mark_for_destroy()
        else:
            self._last_fired_at = now

    def snapshot(self) -> dict[str, Any]:
        return {
            **super().snapshot(),
            "interval": self._interval,
            "iteration_limit": self._iteration_limit,
            "iteration_count": self._iteration_count,
            "last_fired_at": self._last_fired_at,
        }


def _validate_interval(value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValidationError(f"Interval must be a number, got {value!r}")
    if math.isnan(value) or value < 0:
        raise ValidationError(f"Interval must be non-negative, got {value!r}")
    return value
