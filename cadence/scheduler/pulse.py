"""
Pulse sources — the "call me again soon" primitive that drives the loop.

A pulse source takes a zero-argument callback and invokes it once, at its
own discretion. The scheduler re-arms after every pulse, so the source
decides how often the heartbeat gate gets a chance to tick:

    FramePulse   native, animation-frame cadence on the asyncio loop
    TimerPulse   fallback, plain deferred callback after a fixed delay
    ManualPulse  host-driven; callbacks wait until pump() is called
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from collections import deque
from typing import Callable, Protocol

PulseCallback = Callable[[], None]


class PulseHandle(Protocol):
    def cancel(self) -> None: ...


class PulseSource(ABC):
    """Invokes a callback once, soon."""

    name: str = "pulse"

    @abstractmethod
    def request(self, callback: PulseCallback) -> PulseHandle:
        """Schedule `callback` for a single invocation."""
        ...


class _LoopPulse(PulseSource):
    """Shared asyncio plumbing for the timer-backed sources."""

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self._loop = loop

    @property
    def delay_seconds(self) -> float:
        raise NotImplementedError

    def request(self, callback: PulseCallback) -> asyncio.TimerHandle:
        loop = self._loop or asyncio.get_running_loop()
        return loop.call_later(self.delay_seconds, callback)


class FramePulse(_LoopPulse):
    """Animation-frame-like pulse: one callback per frame at `frame_rate` fps."""

    name = "frame"

    def __init__(
        self,
        frame_rate: int = 60,
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        if frame_rate <= 0:
            raise ValueError("frame_rate must be positive")
        super().__init__(loop)
        self.frame_rate = frame_rate

    @property
    def delay_seconds(self) -> float:
        return 1.0 / self.frame_rate


class TimerPulse(_LoopPulse):
    """Fallback pulse: a deferred callback after `delay_ms` milliseconds."""

    name = "timer"

    def __init__(
        self,
        delay_ms: float = 0,
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        if delay_ms < 0:
            raise ValueError("delay_ms must be non-negative")
        super().__init__(loop)
        self.delay_ms = delay_ms

    @property
    def delay_seconds(self) -> float:
        return self.delay_ms / 1000


class _ManualHandle:
    __slots__ = ("callback", "cancelled")

    def __init__(self, callback: PulseCallback) -> None:
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualPulse(PulseSource):
    """
    Pulse source driven by the host.

    Usage:
        pulse = ManualPulse()
        scheduler = Scheduler(250, pulse=pulse, clock=clock)
        scheduler.start()
        pulse.pump()   # delivers the pending pulse, which re-arms
    """

    name = "manual"

    def __init__(self) -> None:
        self._queue: deque[_ManualHandle] = deque()

    def request(self, callback: PulseCallback) -> _ManualHandle:
        handle = _ManualHandle(callback)
        self._queue.append(handle)
        return handle

    @property
    def pending(self) -> int:
        """Number of live (non-cancelled) callbacks waiting for a pump."""
        return sum(1 for h in self._queue if not h.cancelled)

    def pump(self) -> int:
        """
        Deliver every callback queued before this call.

        Callbacks requested while pumping wait for the next pump.
        Returns the number of callbacks invoked.
        """
        batch = list(self._queue)
        self._queue.clear()
        invoked = 0
        for handle in batch:
            if not handle.cancelled:
                handle.callback()
                invoked += 1
        return invoked


def select_pulse(
    hidden: bool,
    keep_alive: bool,
    native: PulseSource,
    fallback: PulseSource,
) -> PulseSource:
    """
    Pick the pulse source for the current host visibility.

    The fallback only takes over when the host is hidden and keep_alive
    was requested; everything else runs on the native source.
    """
    if hidden and keep_alive:
        return fallback
    return native
