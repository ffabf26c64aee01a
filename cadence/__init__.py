"""
Cadence — many named, independently timed tasks on one heartbeat.

Public API:
    from cadence import Scheduler, Task
"""

__version__ = "0.1.0"

# Core
from cadence.core.bus import EventBus
from cadence.core.config import CadenceConfig, SchedulerConfig
from cadence.core.errors import (
    CadenceError,
    DuplicateNameError,
    NotFoundError,
    OutOfRangeError,
    TaskCallbackError,
    TickFaultError,
    ValidationError,
)
from cadence.core.events import Event, EventType
from cadence.core.types import OpResult

# Scheduler
from cadence.scheduler.engine import Scheduler
from cadence.scheduler.pulse import FramePulse, ManualPulse, PulseSource, TimerPulse
from cadence.scheduler.task import OneShotTask, RecurringTask, Task, TaskKind

__all__ = [
    # Core
    "EventBus",
    "CadenceConfig",
    "SchedulerConfig",
    "CadenceError",
    "DuplicateNameError",
    "NotFoundError",
    "OutOfRangeError",
    "TaskCallbackError",
    "TickFaultError",
    "ValidationError",
    "Event",
    "EventType",
    "OpResult",
    # Scheduler
    "Scheduler",
    "FramePulse",
    "ManualPulse",
    "PulseSource",
    "TimerPulse",
    "OneShotTask",
    "RecurringTask",
    "Task",
    "TaskKind",
]
