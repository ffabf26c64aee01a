"""
Cadence exception hierarchy.

Every error in the system inherits from CadenceError.
Scheduler operations never let these escape: they are caught at the
public boundary, logged, and handed back inside a failed OpResult.

Usage:
    result = scheduler.add({"name": "poll", "interval": 500, "callback": fn})
    if not result:
        if isinstance(result.error, DuplicateNameError):
            scheduler.replace(...)
"""


class CadenceError(Exception):
    """Base exception for all Cadence errors."""

    def __init__(self, message: str, details: dict | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


# ━━━ Configuration ━━━


class ConfigError(CadenceError):
    """Configuration is invalid, missing, or malformed."""

    pass


# ━━━ Registry Errors ━━━


class ValidationError(CadenceError):
    """Task-creation parameters do not match either task schema."""

    pass


class DuplicateNameError(CadenceError):
    """A task with the same name is already registered."""

    def __init__(self, name: str, details: dict | None = None):
        self.name = name
        super().__init__(
            f'There\'s already a task "{name}". Always use the "replace" method.',
            details,
        )


class NotFoundError(CadenceError):
    """The referenced task name is not in the registry."""

    def __init__(self, name: object, details: dict | None = None):
        self.name = name
        super().__init__(f'There\'s no task "{name}"', details)


class OutOfRangeError(CadenceError, TypeError):
    """Heartbeat outside [floor, max], not numeric, or unchanged."""

    pass


# ━━━ Execution Errors ━━━


class TaskCallbackError(CadenceError):
    """A user callback raised while its task was firing."""

    def __init__(self, message: str, task_name: str = "", details: dict | None = None):
        self.task_name = task_name
        super().__init__(message, details)


class TickFaultError(CadenceError):
    """The scheduler's own bookkeeping failed during a tick pass."""

    def __init__(self, message: str, task_name: str = "", details: dict | None = None):
        self.task_name = task_name
        super().__init__(message, details)
