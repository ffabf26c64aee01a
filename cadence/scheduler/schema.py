"""
Task-creation schemas.

Two mutually exclusive shapes, told apart by whether "after" is a number:

    {"name": "save", "after": 500, "callback": fn}                  # one-shot
    {"name": "poll", "interval": 250, "callback": fn, "iterations": 3}  # recurring

Unknown keys are dropped. Types are strict: True is not a number and "250"
is not an interval.
"""

from __future__ import annotations

import math
from collections.abc import Mapping
from typing import Any, Callable, Union

from pydantic import BaseModel, ConfigDict, Field, StrictFloat, StrictInt, StrictStr, field_validator
from pydantic import ValidationError as PydanticValidationError

from cadence.core.errors import ValidationError

Number = Union[StrictInt, StrictFloat]


class _TaskParams(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)

    name: StrictStr = Field(min_length=1)
    callback: Callable[..., Any]


class OneShotParams(_TaskParams):
    """Fire once, `after` ms from creation. A negative delay is due at once."""

    after: Number

    @field_validator("after")
    @classmethod
    def _not_nan(cls, value: float) -> float:
        return _check_number(value)


class RecurringParams(_TaskParams):
    """
    Fire every `interval` ms, at most `iterations` times (0/None = forever).
    A negative `iterations` is a nonzero limit: the task fires once.
    """

    interval: Number
    iterations: Number | None = None

    @field_validator("interval")
    @classmethod
    def _non_negative(cls, value: float) -> float:
        if _check_number(value) < 0:
            raise ValueError(f"must be a non-negative number, got {value!r}")
        return value

    @field_validator("iterations")
    @classmethod
    def _iterations_not_nan(cls, value: float | None) -> float | None:
        if value is None:
            return value
        return _check_number(value)


TaskParams = Union[OneShotParams, RecurringParams]


def _check_number(value: float) -> float:
    if math.isnan(value):
        raise ValueError("must be a number, got nan")
    return value


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def parse_task_params(params: Any) -> TaskParams:
    """
    Validate raw task parameters against the matching schema.

    Raises:
        ValidationError: params are not a mapping or fail their schema
    """
    if isinstance(params, (OneShotParams, RecurringParams)):
        return params
    if not isinstance(params, Mapping):
        raise ValidationError(
            f"Task params must be a mapping, got {type(params).__name__}"
        )

    model = OneShotParams if _is_number(params.get("after")) else RecurringParams
    try:
        return model.model_validate(dict(params))
    except PydanticValidationError as e:
        name = params.get("name", "")
        raise ValidationError(
            f"Could not spawn task {name!r} because the params do not match the schema",
            details={"errors": e.errors(include_url=False, include_input=False)},
        ) from e
