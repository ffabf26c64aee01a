"""Shared test fixtures for Cadence."""

import logging

import pytest
from cadence.core.bus import EventBus
from cadence.core.config import CadenceConfig
from cadence.scheduler.engine import Scheduler
from cadence.scheduler.pulse import ManualPulse


class FakeClock:
    """Millisecond clock the test moves by hand."""

    def __init__(self, now: float = 0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, ms: float) -> float:
        self.now += ms
        return self.now


@pytest.fixture(autouse=True)
def reset_cadence_logger():
    """setup_logging() replaces handlers on the "cadence" logger; undo it."""
    yield
    logger = logging.getLogger("cadence")
    logger.handlers = []
    logger.setLevel(logging.NOTSET)


@pytest.fixture
def config():
    """Create a default config without loading from disk."""
    return CadenceConfig()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def pulse():
    return ManualPulse()


@pytest.fixture
def bus():
    """Create a fresh event bus."""
    return EventBus()


@pytest.fixture
def make_scheduler(clock, pulse):
    """Build a scheduler on the fake clock and manual pulse."""

    def factory(props=0, **kwargs):
        kwargs.setdefault("clock", clock)
        kwargs.setdefault("pulse", pulse)
        return Scheduler(props, **kwargs)

    return factory


@pytest.fixture
def scheduler(make_scheduler):
    """A running scheduler with a zero heartbeat."""
    s = make_scheduler(0)
    s.start()
    return s
