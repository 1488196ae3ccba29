"""Unit tests for custom exceptions.

Tests in this module verify that the exception hierarchy is correctly
defined and that exceptions carry the expected information.
"""

import pytest

from durable_replay.exceptions import (
    CorruptReplayStateError,
    EffectFailedError,
    InvalidDirectiveError,
    InvalidRunIdError,
    ReplayError,
    RunNotFoundError,
    StoreUnavailableError,
    TaskNotFoundError,
)
from durable_replay.models import EffectFailure


class TestReplayError:
    """Test suite for the base ReplayError exception."""

    def test_replay_error_creation(self):
        error = ReplayError("Test error message")
        assert str(error) == "Test error message"
        assert error.message == "Test error message"

    def test_replay_error_can_be_raised(self):
        with pytest.raises(ReplayError) as exc_info:
            raise ReplayError("Test error")
        assert str(exc_info.value) == "Test error"

    @pytest.mark.parametrize(
        "error",
        [
            InvalidDirectiveError("bad"),
            InvalidRunIdError("too long", run_id="x"),
            CorruptReplayStateError("diverged", run_id="r", step_index=0),
            EffectFailedError(EffectFailure(error_type="KeyError", message="x")),
            StoreUnavailableError("down"),
            RunNotFoundError("r"),
            TaskNotFoundError("t"),
        ],
    )
    def test_all_errors_inherit_from_replay_error(self, error):
        assert isinstance(error, ReplayError)
        assert isinstance(error, Exception)


class TestInvalidDirectiveError:
    """Test suite for InvalidDirectiveError."""

    def test_carries_offending_value(self):
        error = InvalidDirectiveError("Not a directive", value=42)
        assert error.message == "Not a directive"
        assert error.value == 42

    def test_value_defaults_to_none(self):
        assert InvalidDirectiveError("Not a directive").value is None


class TestCorruptReplayStateError:
    """Test suite for CorruptReplayStateError."""

    def test_carries_run_and_step(self):
        error = CorruptReplayStateError("No outcome cached", run_id="run-1", step_index=3)
        assert str(error) == "No outcome cached"
        assert error.run_id == "run-1"
        assert error.step_index == 3


class TestEffectFailedError:
    """Test suite for EffectFailedError."""

    def test_message_combines_type_and_message(self):
        failure = EffectFailure(error_type="TimeoutError", message="upstream slow")
        error = EffectFailedError(failure)
        assert error.message == "TimeoutError: upstream slow"
        assert error.failure is failure


class TestStoreUnavailableError:
    """Test suite for StoreUnavailableError."""

    def test_with_cause(self):
        cause = OSError("disk full")
        error = StoreUnavailableError("Write failed", cause=cause)
        assert error.message == "Write failed"
        assert error.cause is cause

    def test_without_cause(self):
        assert StoreUnavailableError("Write failed").cause is None


class TestNotFoundErrors:
    """Test suite for lookup errors."""

    def test_run_not_found(self):
        error = RunNotFoundError("run-9")
        assert error.run_id == "run-9"
        assert str(error) == "Run run-9 not found"

    def test_task_not_found(self):
        error = TaskNotFoundError("task-9")
        assert error.task_id == "task-9"
        assert str(error) == "Task task-9 not found"
