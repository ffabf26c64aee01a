"""
Cadence shared types.

OpResult is what every public Scheduler operation returns: truthy on
success, falsy on failure with the typed error attached.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from cadence.core.errors import CadenceError


@dataclass(frozen=True, slots=True)
class OpResult:
    """Outcome of a public scheduler operation."""

    ok: bool
    error: CadenceError | None = None
    value: Any = None

    def __bool__(self) -> bool:
        return self.ok

    @staticmethod
    def success(value: Any = None) -> OpResult:
        return OpResult(ok=True, value=value)

    @staticmethod
    def failure(error: CadenceError) -> OpResult:
        return OpResult(ok=False, error=error)

    @property
    def message(self) -> str:
        return self.error.message if self.error else ""
