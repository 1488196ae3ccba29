"""Custom exceptions for the replay driver.

This module defines the exception hierarchy used throughout the package to
signal the failure modes of a durable run: malformed directives, diverged
replay state, failed effects and unavailable storage.

Only ``StoreUnavailableError`` escapes ``ReplayDriver.run``. The other
errors are reported inside a ``Failed`` outcome, after the run has been
cleared from the store.

Examples:
    Handling a storage outage around an invocation::

        from durable_replay.exceptions import StoreUnavailableError

        try:
            outcome = await driver.run(routine, run_id, payload)
        except StoreUnavailableError as e:
            logger.error("store.unavailable", error=str(e))
            # Run state is left as of the last successful commit,
            # so the invocation can simply be retried later.
            raise

    Propagating a failed effect from inside a routine::

        def routine(payload):
            outcome = yield Effect(category="http", name="get", arguments={...})
            user = outcome.unwrap()  # raises EffectFailedError on failure
            return user
"""

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from durable_replay.models import EffectFailure


class ReplayError(Exception):
    """Base exception for all replay-related errors.

    Attributes:
        message: Human-readable error description.
    """

    def __init__(self, message: str) -> None:
        """Initialize the exception with a message.

        Args:
            message: Human-readable error description.
        """
        self.message = message
        super().__init__(message)


class InvalidDirectiveError(ReplayError):
    """A routine yielded something that is not a recognized directive.

    Raised (and reported as ``Failed``) when a routine yields a value that
    is neither an ``Effect`` nor a ``Checkpoint``, or when the routine
    callable does not produce a generator at all. Nothing beyond what was
    already committed is persisted.

    Attributes:
        message: Human-readable error description.
        value: The offending value.
    """

    def __init__(self, message: str, value: object = None) -> None:
        super().__init__(message)
        self.value = value


class CorruptReplayStateError(ReplayError):
    """The persisted watermark and the cached step outcomes have diverged.

    This happens when a step index below the watermark has no cached
    outcome, or when the cached outcome was recorded for a different effect
    than the one the routine yields at that index on replay.

    Attributes:
        message: Human-readable error description.
        run_id: The run whose state is corrupt.
        step_index: The step index at which the divergence was found.
    """

    def __init__(self, message: str, run_id: str, step_index: int) -> None:
        super().__init__(message)
        self.run_id = run_id
        self.step_index = step_index


class EffectFailedError(ReplayError):
    """A performed effect failed and the routine chose to propagate it.

    The driver never raises this itself. Failures are captured as tagged
    ``StepOutcome`` values; ``StepOutcome.unwrap()`` raises this error so a
    routine that does not handle the failure ends the run as ``Failed``.

    Attributes:
        message: Human-readable error description.
        failure: The captured failure details.
    """

    def __init__(self, failure: "EffectFailure") -> None:
        super().__init__(f"{failure.error_type}: {failure.message}")
        self.failure = failure


class StoreUnavailableError(ReplayError):
    """Storage backend operation failed.

    Propagated to the caller of ``ReplayDriver.run``. The run is left as of
    its last successful commit, so a retried invocation resumes correctly.

    Note:
        If the failure happens after a fresh effect was performed but before
        its outcome was persisted, the retried invocation performs that
        effect again. This duplicate-effect window is the one gap the
        replay model accepts.

    Attributes:
        message: Human-readable error description.
        cause: The underlying exception that caused the storage error.
    """

    def __init__(self, message: str, cause: Exception | None = None) -> None:
        super().__init__(message)
        self.cause = cause


class RunNotFoundError(ReplayError):
    """No execution record exists for the requested run.

    Attributes:
        message: Human-readable error description.
        run_id: The run identifier that was looked up.
    """

    def __init__(self, run_id: str) -> None:
        super().__init__(f"Run {run_id} not found")
        self.run_id = run_id


class TaskNotFoundError(ReplayError):
    """No paused machine task exists for the requested identifier.

    Attributes:
        message: Human-readable error description.
        task_id: The task identifier that was looked up.
    """

    def __init__(self, task_id: str) -> None:
        super().__init__(f"Task {task_id} not found")
        self.task_id = task_id


class InvalidRunIdError(ReplayError):
    """A run identifier is not a non-empty string of at most 255 characters.

    Raised by ``ReplayDriver.run`` and ``ReplayDriver.resume`` before the
    store is touched or any effect is performed.

    Attributes:
        message: Human-readable error description.
        run_id: The rejected identifier.
    """

    def __init__(self, message: str, run_id: object) -> None:
        super().__init__(message)
        self.run_id = run_id
