"""Tests for OpResult and the error hierarchy."""

from cadence.core.errors import (
    CadenceError,
    DuplicateNameError,
    NotFoundError,
    OutOfRangeError,
    TaskCallbackError,
)
from cadence.core.types import OpResult


def test_success_is_truthy():
    result = OpResult.success(42)
    assert result
    assert result.ok is True
    assert result.value == 42
    assert result.error is None
    assert result.message == ""


def test_failure_is_falsy():
    error = NotFoundError("ghost")
    result = OpResult.failure(error)
    assert not result
    assert result.error is error
    assert result.message == 'There\'s no task "ghost"'


def test_errors_share_base():
    for error in (
        DuplicateNameError("x"),
        NotFoundError("x"),
        OutOfRangeError("x"),
        TaskCallbackError("x", task_name="t"),
    ):
        assert isinstance(error, CadenceError)


def test_out_of_range_is_type_error():
    assert isinstance(OutOfRangeError("too small"), TypeError)


def test_duplicate_name_points_to_replace():
    error = DuplicateNameError("poll")
    assert error.name == "poll"
    assert '"replace"' in error.message
