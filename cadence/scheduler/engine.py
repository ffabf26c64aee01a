"""
Scheduler — multiplexes named tasks onto one pulse source.

Design:
- The loop asks the pulse source for a callback, and on every pulse
  measures the time since the last tick. Only when that exceeds the
  heartbeat does a tick run, so the pulse may fire far more often than
  tasks are evaluated.
- A tick walks a snapshot of the registry in insertion order, fires every
  due task, and drops tasks flagged for destruction once they have fired.
- Stopping never discards due work: a task that became due while the
  scheduler was stopped fires once on the first tick after start().
- Every public operation returns an OpResult. Failures are logged with the
  "### Scheduler" prefix and handed back, never raised.

Single-threaded and cooperative: callbacks run inline inside the tick
pass. If hosted on several threads, confine the scheduler to one of them.
"""

from __future__ import annotations

import logging
import math
import time
from collections.abc import Mapping
from types import MappingProxyType
from typing import Any, Callable

from cadence.core.bus import EventBus
from cadence.core.config import MAX_HEARTBEAT, SchedulerConfig
from cadence.core.errors import (
    CadenceError,
    ConfigError,
    DuplicateNameError,
    NotFoundError,
    OutOfRangeError,
    TickFaultError,
    ValidationError,
)
from cadence.core.events import Event, EventType
from cadence.core.types import OpResult
from cadence.scheduler.pulse import FramePulse, PulseHandle, PulseSource, TimerPulse, select_pulse
from cadence.scheduler.schema import OneShotParams, RecurringParams
from cadence.scheduler.task import LOG_PREFIX, RecurringTask, Task

logger = logging.getLogger(__name__)

MIN_HEARTBEAT = 0        # no time to waste, only cycles
DEFAULT_HEARTBEAT = 1000  # used when the scheduler is built with no arguments

Clock = Callable[[], float]


def now_ms() -> float:
    """Wall-clock time in milliseconds."""
    return time.time() * 1000


class Scheduler:
    """
    Cooperative task scheduler.

    Usage:
        scheduler = Scheduler(250)                       # heartbeat in ms
        scheduler = Scheduler({"heartbeat": 250, "keep_alive": True})

        scheduler.add({"name": "save", "after": 5000, "callback": save})
        scheduler.add({"name": "poll", "interval": 1000, "callback": poll, "iterations": 10})
        scheduler.start()   # needs a running asyncio loop unless pulse= is given

    Callbacks receive the task itself:
        def poll(task: Task) -> None:
            if done:
                task.mark_for_destroy()
    """

    def __init__(
        self,
        props: float | Mapping[str, Any] | SchedulerConfig = DEFAULT_HEARTBEAT,
        *,
        clock: Clock | None = None,
        pulse: PulseSource | None = None,
        fallback: PulseSource | None = None,
        bus: EventBus | None = None,
    ) -> None:
        config = _coerce_config(props)

        heartbeat = config.heartbeat
        if math.isnan(heartbeat) or heartbeat < MIN_HEARTBEAT:
            logger.error(
                f"{LOG_PREFIX} Chosen default tick rate [{heartbeat}] is less than "
                f"[{MIN_HEARTBEAT}] and will default to [{MIN_HEARTBEAT}]"
            )
            heartbeat = MIN_HEARTBEAT
        elif heartbeat > MAX_HEARTBEAT:
            logger.error(
                f"{LOG_PREFIX} Chosen default tick rate [{heartbeat}] is more than "
                f"[{MAX_HEARTBEAT}] and will default to [{MAX_HEARTBEAT}]"
            )
            heartbeat = MAX_HEARTBEAT

        self._floor = heartbeat
        self._heartbeat = heartbeat
        self._keep_alive = config.keep_alive
        self._clock = clock or now_ms
        self._bus = bus

        self._native = pulse or FramePulse(config.frame_rate)
        self._fallback = fallback or TimerPulse(config.fallback_delay)
        self._hidden = False
        self._pulse_source = select_pulse(False, self._keep_alive, self._native, self._fallback)
        self._pending: PulseHandle | None = None

        self._tasks: dict[str, Task] = {}
        self._running = False
        self._last_tick_at: float = 0

    # ━━━ Introspection ━━━

    @property
    def running(self) -> bool:
        return self._running

    @property
    def heartbeat(self) -> float:
        return self._heartbeat

    @property
    def floor(self) -> float:
        """Construction-time heartbeat; change_wait can never go below it."""
        return self._floor

    @property
    def max(self) -> float:
        return MAX_HEARTBEAT

    @property
    def keep_alive(self) -> bool:
        return self._keep_alive

    @property
    def hidden(self) -> bool:
        return self._hidden

    @property
    def last_tick_at(self) -> float:
        return self._last_tick_at

    @property
    def pulse_source(self) -> PulseSource:
        return self._pulse_source

    @property
    def tasks(self) -> Mapping[str, Task]:
        """Read-only view of the registry, in insertion order."""
        return MappingProxyType(self._tasks)

    @property
    def names(self) -> list[str]:
        return list(self._tasks)

    def get(self, name: str) -> Task | None:
        return self._tasks.get(name) if isinstance(name, str) else None

    def has(self, name: str, throw_on_missing: bool = False) -> bool:
        """
        Check whether a task is registered.

        Raises:
            NotFoundError: only when throw_on_missing is set and it is absent
        """
        found = isinstance(name, str) and name in self._tasks
        if not found and throw_on_missing:
            raise NotFoundError(name)
        return found

    def snapshot(self) -> dict[str, Any]:
        return {
            "running": self._running,
            "heartbeat": self._heartbeat,
            "floor": self._floor,
            "keep_alive": self._keep_alive,
            "pulse": self._pulse_source.name,
            "last_tick_at": self._last_tick_at,
            "tasks": [task.snapshot() for task in self._tasks.values()],
        }

    def __len__(self) -> int:
        return len(self._tasks)

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and name in self._tasks

    # ━━━ Registry ━━━

    def add(self, params: Any) -> OpResult:
        """Register a new task. Fails if the name is taken; use replace() for that."""
        try:
            name = _params_name(params)
            if self.has(name):
                raise DuplicateNameError(name)
            _check_name(name)
            task = Task.from_params(params, self._clock())
        except CadenceError as e:
            return self._fail(e)

        self._tasks[name] = task
        logger.debug(f"Added {task.kind.value} task {name!r}")
        self._emit(EventType.TASK_ADDED, name=name, kind=task.kind.value)
        return OpResult.success(task)

    def replace(self, params: Any) -> OpResult:
        """Swap an existing task for a freshly built one, keeping its slot."""
        try:
            name = _params_name(params)
            if not self.has(name):
                raise NotFoundError(name)
            task = Task.from_params(params, self._clock())
        except CadenceError as e:
            return self._fail(e)

        self._tasks[name] = task
        logger.debug(f"Replaced task {name!r}")
        self._emit(EventType.TASK_REPLACED, name=name, kind=task.kind.value)
        return OpResult.success(task)

    def remove(self, name: str) -> OpResult:
        try:
            _check_name(name)
            if not self.has(name):
                raise NotFoundError(name)
        except CadenceError as e:
            return self._fail(e)

        return OpResult.success(self._discard(name))

    def remove_list(self, names: list[str] | tuple[str, ...]) -> OpResult:
        """Remove every listed task. Misses are logged; only a non-list fails."""
        if not isinstance(names, (list, tuple)):
            return self._fail(
                ValidationError(f"Expected a list of task names, got {type(names).__name__}")
            )

        removed = [name for name in names if self.remove(name)]
        return OpResult.success(removed)

    def empty(self) -> OpResult:
        """Drop every task."""
        names = list(self._tasks)
        self._tasks.clear()
        for name in names:
            self._emit(EventType.TASK_REMOVED, name=name)
        logger.debug(f"Emptied registry ({len(names)} tasks)")
        return OpResult.success(len(names))

    # ━━━ Task control ━━━

    def enable_task(self, name: str) -> OpResult:
        return self._toggle_task(name, enable=True, report_missing=True)

    def disable_task(self, name: str, throw_on_missing: bool = True) -> OpResult:
        """Pause a task. throw_on_missing=False silences the missing-task log."""
        return self._toggle_task(name, enable=False, report_missing=throw_on_missing)

    def _toggle_task(self, name: str, enable: bool, report_missing: bool) -> OpResult:
        task = self.get(name)
        if task is None:
            error = NotFoundError(name)
            if report_missing:
                return self._fail(error)
            return OpResult.failure(error)

        if enable:
            task.enable()
        else:
            task.disable()
        return OpResult.success(task)

    def change_task_wait(self, name: str, interval: float) -> OpResult:
        """
        Set a recurring task's interval. Its last firing time is kept, so the
        new interval is measured from there on the very next tick.
        """
        task = self.get(name)
        if task is None:
            logger.debug(f"change_task_wait: no task {name!r}")
            return OpResult.failure(NotFoundError(name))
        if not isinstance(task, RecurringTask):
            logger.debug(f"change_task_wait: task {name!r} has no interval")
            return OpResult.failure(
                ValidationError(f'Task "{name}" is a one-shot task and has no interval')
            )

        try:
            task.interval = interval
        except ValidationError as e:
            return self._fail(e)
        return OpResult.success(task.interval)

    # ━━━ Heartbeat ━━━

    def change_wait(self, heartbeat: float) -> OpResult:
        """Raise the global heartbeat. See _set_heartbeat for the rules."""
        previous = self._heartbeat
        try:
            self._set_heartbeat(heartbeat)
        except OutOfRangeError as e:
            return self._fail(e)

        self._emit(EventType.SCHEDULER_WAIT_CHANGED, previous=previous, heartbeat=heartbeat)
        return OpResult.success(heartbeat)

    def _set_heartbeat(self, value: Any) -> None:
        """
        Validated heartbeat setter.

        The value must be a number, differ from the current heartbeat, lie in
        [floor, max], and not be lower than the current heartbeat.

        Raises:
            OutOfRangeError: on any violation
        """
        if isinstance(value, bool) or not isinstance(value, (int, float)) or math.isnan(value):
            raise OutOfRangeError(
                f'Heartbeat must be a number, got {value!r}. Always use the "change_wait" method.'
            )
        if value == self._heartbeat:
            raise OutOfRangeError(
                f"The new value [{value}] is the same as the current one [{self._heartbeat}]"
            )
        if not self._floor <= value <= MAX_HEARTBEAT:
            raise OutOfRangeError(
                f"Acceptable range is {self._floor}-{MAX_HEARTBEAT}ms. This value CANNOT be "
                f'lower than the initial "heartbeat" value [{self._floor}]'
            )
        if value < self._heartbeat:
            raise OutOfRangeError(
                f"The heartbeat can only be raised: [{value}] is lower than the "
                f"current value [{self._heartbeat}]"
            )
        self._heartbeat = value

    # ━━━ Loop ━━━

    def start(self) -> OpResult:
        """Start ticking. No-op when already running."""
        if self._running:
            return OpResult.success()

        # A pulse left over from a loop that has since closed will never run.
        if self._pending is not None:
            self._pending.cancel()
            self._pending = None

        self._running = True
        try:
            self._arm()
        except RuntimeError as e:
            self._running = False
            return self._fail(CadenceError(f"Cannot start the loop: {e}"))

        logger.info(f"Scheduler started (heartbeat={self._heartbeat}ms, pulse={self._pulse_source.name})")
        self._emit(EventType.SCHEDULER_START, heartbeat=self._heartbeat)
        return OpResult.success()

    def stop(self) -> OpResult:
        """Stop ticking after the pulse in flight. Tasks and their timing are kept."""
        was_running = self._running
        self._running = False
        if was_running:
            logger.info("Scheduler stopped")
            self._emit(EventType.SCHEDULER_STOP)
        return OpResult.success()

    def on_visibility_change(self, hidden: bool) -> None:
        """
        Host visibility hook. With keep_alive, a hidden host switches to the
        fallback pulse so work keeps going; without it the native pulse stays
        and the host's own throttling applies.
        """
        self._hidden = hidden
        if not self._keep_alive:
            return

        source = select_pulse(hidden, self._keep_alive, self._native, self._fallback)
        if source is self._pulse_source:
            return

        logger.debug(f"Pulse source switched to {source.name!r} (hidden={hidden})")
        self._pulse_source = source
        if self._running:
            if self._pending is not None:
                self._pending.cancel()
                self._pending = None
            self._arm()

    def step(self, now: float | None = None) -> bool:
        """
        One loop step: tick if more than a heartbeat has passed since the
        last tick. Returns whether a tick ran.
        """
        now = self._clock() if now is None else now
        if now - self._last_tick_at > self._heartbeat:
            self.tick(now)
            self._last_tick_at = now
            return True
        return False

    def _arm(self) -> None:
        # At most one pulse is ever pending.
        if self._pending is None:
            self._pending = self._pulse_source.request(self._on_pulse)

    def _on_pulse(self) -> None:
        self._pending = None
        try:
            self.step()
        except Exception as e:
            logger.error(f"{LOG_PREFIX} Loop step failed and was skipped: {e}", exc_info=e)
        if self._running:
            self._arm()

    # ━━━ Tick ━━━

    def tick(self, now: float | None = None) -> int:
        """
        Evaluate every task once. Returns how many callbacks were invoked.

        A fault in the pass itself (not a callback failure, which the task
        absorbs) aborts the pass and removes the task being evaluated.
        """
        if not self._running:
            return 0

        now = self._clock() if now is None else now
        fired = 0
        current = ""
        try:
            for name in list(self._tasks):
                task = self._tasks.get(name)
                if task is None:
                    # removed by an earlier callback in this pass
                    continue

                current = name
                if task.should_execute(now):
                    error = task.fire(now)
                    fired += 1
                    if error is None:
                        self._emit(EventType.TASK_FIRED, name=name, now=now)
                    else:
                        self._emit(EventType.TASK_FAILED, name=name, error=error.message)

                # A callback may have replaced or removed this task.
                if self._tasks.get(name) is task and task.pending_destroy:
                    self._discard(name)
                current = ""
        except Exception as e:
            fault = TickFaultError(
                f"Tick pass aborted while evaluating task {current!r}: {e}",
                task_name=current,
            )
            logger.error(f"{LOG_PREFIX} {fault.message}", exc_info=e)
            if current in self._tasks:
                self._discard(current)
            self._emit(EventType.SCHEDULER_TICK_FAULT, name=current, error=str(e))

        return fired

    # ━━━ Internals ━━━

    def _discard(self, name: str) -> Task:
        task = self._tasks.pop(name)
        logger.debug(f"Removed task {name!r}")
        self._emit(EventType.TASK_REMOVED, name=name)
        return task

    def _fail(self, error: CadenceError) -> OpResult:
        logger.error(f"{LOG_PREFIX} {error.message}")
        return OpResult.failure(error)

    def _emit(self, event_type: str, **data: Any) -> None:
        if self._bus is not None:
            self._bus.emit(Event(type=event_type, data=data, source="scheduler"))


def _coerce_config(props: Any) -> SchedulerConfig:
    if isinstance(props, SchedulerConfig):
        return props
    if isinstance(props, (int, float)) and not isinstance(props, bool):
        return SchedulerConfig(heartbeat=props)
    if isinstance(props, Mapping):
        try:
            return SchedulerConfig.model_validate(dict(props))
        except Exception as e:
            raise ConfigError(f"Invalid scheduler options: {e}") from e
    raise ConfigError(
        f"Scheduler expects a heartbeat number or an options mapping, got {type(props).__name__}"
    )


def _params_name(params: Any) -> Any:
    if isinstance(params, (OneShotParams, RecurringParams)):
        return params.name
    if isinstance(params, Mapping):
        return params.get("name")
    raise ValidationError(f"Task params must be a mapping, got {type(params).__name__}")


def _check_name(name: Any) -> None:
    if not isinstance(name, str) or not name:
        raise ValidationError(f"Task name must be a non-empty string, got {name!r}")
