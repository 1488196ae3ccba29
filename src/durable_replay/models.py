"""Core type definitions for durable replay execution.

This module provides the data structures shared by the driver and the
storage adapters: the persisted execution record, the tagged outcome of a
single effect step, and the three results an invocation can return.

Examples:
    Creating an execution record::

        from datetime import UTC, datetime, timedelta
        from durable_replay.models import ExecutionRecord

        now = datetime.now(UTC)
        record = ExecutionRecord(
            run_id="run-123",
            routine_name="fetch_user_posts",
            input={"user_id": 1},
            next_step_index=1,
            created_at=now,
            updated_at=now,
            expires_at=now + timedelta(hours=2),
        )

    Inspecting a tagged step outcome inside a routine::

        outcome = yield Effect(category="http", name="get", arguments={"url": url})
        if outcome.ok:
            user = outcome.value
        else:
            user = {"error": outcome.failure.message}
"""

from datetime import UTC, datetime
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from durable_replay.exceptions import EffectFailedError


class OutcomeStatus(str, Enum):
    """Whether a performed effect succeeded or failed.

    Attributes:
        OK: The effect returned a value.
        FAILED: The effect raised; the failure was captured as a value.
    """

    OK = "ok"
    FAILED = "failed"


class RunStatus(str, Enum):
    """Result kind of a single invocation."""

    PAUSED = "paused"
    COMPLETED = "completed"
    FAILED = "failed"


class EffectFailure(BaseModel):
    """A captured effect failure, fed back to the routine as data.

    Attributes:
        error_type: Class name of the exception raised by the effect.
        message: String form of the exception.
    """

    error_type: str = Field(..., description="Exception class name", examples=["TimeoutError"])
    message: str = Field(default="", description="Exception message")

    @classmethod
    def from_exception(cls, exc: BaseException) -> "EffectFailure":
        """Capture an exception raised by the effect performer.

        Args:
            exc: The exception to capture.

        Returns:
            The failure description.
        """
        return cls(error_type=type(exc).__name__, message=str(exc))


class StepOutcome(BaseModel):
    """Durably cached result of one effect directive.

    Keyed by ``(run_id, step_index)``. Written once per key; deleted in bulk
    together with the execution record when the run ends.

    Attributes:
        run_id: Identifier of the run that performed the effect.
        step_index: Zero-based index of the effect within the run.
        category: Category of the effect that produced this outcome.
        name: Name of the effect that produced this outcome.
        status: Whether the effect succeeded.
        value: The effect's return value (None when failed).
        failure: Failure details (None when succeeded).
        recorded_at: When the outcome was captured.

    Examples:
        >>> outcome = StepOutcome(
        ...     run_id="run-1", step_index=0, category="http", name="get",
        ...     status=OutcomeStatus.OK, value={"id": 1},
        ... )
        >>> outcome.unwrap()
        {'id': 1}
    """

    run_id: str = Field(..., min_length=1, max_length=255)
    step_index: int = Field(..., ge=0)
    category: str
    name: str
    status: OutcomeStatus
    value: Any = None
    failure: EffectFailure | None = None
    recorded_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @field_validator("failure")
    @classmethod
    def validate_failure_with_status(cls, v: EffectFailure | None, info: Any) -> EffectFailure | None:
        """Validate that failure is present if and only if status is FAILED.

        Raises:
            ValueError: If status/failure consistency is violated.
        """
        if "status" in info.data:
            failed = info.data["status"] == OutcomeStatus.FAILED
            if failed and v is None:
                raise ValueError("failure must be provided when status is FAILED")
            if not failed and v is not None:
                raise ValueError("failure must be None when status is OK")
        return v

    @property
    def ok(self) -> bool:
        return self.status == OutcomeStatus.OK

    def unwrap(self) -> Any:
        """Return the effect value, or raise the captured failure.

        Returns:
            The value returned by the effect.

        Raises:
            EffectFailedError: If the effect failed.
        """
        if self.failure is not None:
            raise EffectFailedError(self.failure)
        return self.value


class ExecutionRecord(BaseModel):
    """Persisted progress of one run.

    An absent record means the run has never paused or has already ended.

    Attributes:
        run_id: Opaque identifier of the run.
        routine_name: Name of the routine being replayed.
        input: The input the run was started with.
        next_step_index: Count of effect directives durably resolved so far.
            Never decreases during the lifetime of the run.
        checkpoints_passed: Count of checkpoint directives already suspended on.
        created_at: When the run first paused.
        updated_at: When the record was last written.
        expires_at: When an abandoned run may be swept by cleanup.
    """

    run_id: str = Field(
        ...,
        min_length=1,
        max_length=255,
        examples=["run-9f1c2e", "550e8400-e29b-41d4-a716-446655440000"],
    )
    routine_name: str | None = Field(default=None, examples=["fetch_user_posts"])
    input: Any = None
    next_step_index: int = Field(default=0, ge=0)
    checkpoints_passed: int = Field(default=0, ge=0)
    created_at: datetime
    updated_at: datetime
    expires_at: datetime

    @field_validator("expires_at")
    @classmethod
    def validate_expires_after_created(cls, v: datetime, info: Any) -> datetime:
        """Validate that expires_at is after created_at.

        Raises:
            ValueError: If expires_at is not after created_at.
        """
        if "created_at" in info.data and v <= info.data["created_at"]:
            raise ValueError("expires_at must be after created_at")
        return v


class Paused(BaseModel):
    """The invocation committed progress and stopped.

    Attributes:
        run_id: Identifier to re-enter the run with.
        resumed_step_index: Step index at which this invocation suspended.
        reason: ``effect`` after a fresh effect, ``checkpoint`` on a checkpoint.
    """

    status: Literal[RunStatus.PAUSED] = RunStatus.PAUSED
    run_id: str
    resumed_step_index: int = Field(..., ge=0)
    reason: Literal["effect", "checkpoint"] = "effect"


class Completed(BaseModel):
    """The routine returned; its record and outcomes have been deleted."""

    status: Literal[RunStatus.COMPLETED] = RunStatus.COMPLETED
    run_id: str
    value: Any = None


class Failed(BaseModel):
    """The run aborted; its record and outcomes have been deleted.

    Attributes:
        run_id: Identifier of the aborted run.
        error: The exception that ended the run.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    status: Literal[RunStatus.FAILED] = RunStatus.FAILED
    run_id: str
    error: BaseException

    @property
    def error_type(self) -> str:
        return type(self.error).__name__

    @property
    def message(self) -> str:
        return str(self.error)


RunOutcome = Paused | Completed | Failed
