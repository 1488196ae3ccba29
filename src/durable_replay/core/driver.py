"""Replay driver: durable execution by re-running a routine from the top.

Every invocation re-executes the routine from its beginning and intercepts
each directive it yields:

    - An effect below the persisted watermark is answered from the cached
      step outcome, without contacting the outside world.
    - The first effect at or above the watermark is performed for real. Its
      outcome and the advanced watermark are committed, the resume notifier
      is signalled, and the invocation returns ``Paused``.
    - A checkpoint not yet suspended on commits the record and returns
      ``Paused`` without performing anything.
    - A routine that returns ends the run: its record and outcomes are
      deleted and ``Completed`` is returned.
    - A routine that raises, yields a malformed directive, or disagrees with
      its cached outcomes ends the run as ``Failed`` and is cleared.

At most one fresh effect is performed per invocation. Pausing is a plain
return to the caller after committing state; resuming is a fresh
invocation that replays from the top. Nothing of the routine's frame is
persisted.

A crash after an effect is performed but before its outcome is committed
means the next invocation performs that effect again. This is the one
duplicate-effect window the model accepts.

Examples:
    Driving a run to completion::

        from durable_replay.core.driver import ReplayDriver
        from durable_replay.storage.memory import MemoryExecutionStore

        async def perform(category, name, arguments):
            return await http_client.request(name, **arguments)

        driver = ReplayDriver(MemoryExecutionStore(), perform)

        outcome = await driver.run(fetch_user_posts, "run-1", {"id": 1})
        while outcome.status == "paused":
            outcome = await driver.resume(fetch_user_posts, "run-1")
"""

import time
import uuid
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime, timedelta
from enum import Enum
from typing import Any

from durable_replay.config import ReplayConfig
from durable_replay.directives import (
    Checkpoint,
    Effect,
    Routine,
    RoutineGenerator,
    routine_name,
    start_routine,
)
from durable_replay.exceptions import (
    CorruptReplayStateError,
    InvalidDirectiveError,
    InvalidRunIdError,
    RunNotFoundError,
)
from durable_replay.models import (
    Completed,
    EffectFailure,
    ExecutionRecord,
    Failed,
    OutcomeStatus,
    Paused,
    RunOutcome,
    StepOutcome,
)
from durable_replay.observability.logging import get_logger
from durable_replay.observability.metrics import (
    record_effect,
    record_invocation,
    record_replayed_steps,
)
from durable_replay.storage.base import ExecutionStore

logger = get_logger(__name__)

PerformEffect = Callable[[str, str, dict[str, Any]], Awaitable[Any]]
NotifyResume = Callable[[str], Awaitable[None]]


class AdvanceKind(str, Enum):
    YIELDED = "yielded"
    RETURNED = "returned"
    RAISED = "raised"


class Advance:
    """Tagged result of advancing a routine by one directive.

    Attributes:
        kind: Whether the routine yielded, returned or raised.
        directive: The yielded value (YIELDED only).
        value: The terminal value (RETURNED only).
        error: The raised exception (RAISED only).
    """

    def __init__(
        self,
        kind: AdvanceKind,
        directive: Any = None,
        value: Any = None,
        error: Exception | None = None,
    ) -> None:
        self.kind = kind
        self.directive = directive
        self.value = value
        self.error = error


def advance(gen: RoutineGenerator, reply: StepOutcome | None) -> Advance:
    """Send a reply into the routine and classify what comes back."""
    try:
        directive = gen.send(reply)
    except StopIteration as stop:
        return Advance(AdvanceKind.RETURNED, value=stop.value)
    except Exception as e:
        return Advance(AdvanceKind.RAISED, error=e)
    return Advance(AdvanceKind.YIELDED, directive=directive)


def new_run_id() -> str:
    return str(uuid.uuid4())


MAX_RUN_ID_LENGTH = 255


def validate_run_id(run_id: object) -> str:
    """Check that a run identifier can be stored.

    Raises:
        InvalidRunIdError: If run_id is not a string of 1 to 255 characters.
    """
    if not isinstance(run_id, str):
        raise InvalidRunIdError(
            f"Run identifier must be a string, got {type(run_id).__name__}", run_id
        )
    if not run_id:
        raise InvalidRunIdError("Run identifier cannot be empty", run_id)
    if len(run_id) > MAX_RUN_ID_LENGTH:
        raise InvalidRunIdError(
            f"Run identifier exceeds maximum length of {MAX_RUN_ID_LENGTH} characters", run_id
        )
    return run_id


class ReplayDriver:
    """Drives step routines across stateless invocations.

    Attributes:
        store: Durable store for execution records and step outcomes.
        perform: Async effect performer ``(category, name, arguments) -> result``.
        notify: Optional async resume notifier ``(run_id) -> None``. Best
            effort: its failures are logged and otherwise ignored.
        config: Driver configuration.
    """

    def __init__(
        self,
        store: ExecutionStore,
        perform: PerformEffect,
        notify: NotifyResume | None = None,
        config: ReplayConfig | None = None,
    ) -> None:
        self.store = store
        self.perform = perform
        self.notify = notify
        self.config = config or ReplayConfig()

    async def run(
        self,
        routine: Routine,
        run_id: str | None = None,
        input: Any = None,
    ) -> RunOutcome:
        """Run one invocation of a routine.

        Args:
            routine: Generator routine to replay.
            run_id: Run identifier; a new one is generated when omitted.
            input: Input passed to the routine. Must be the same on every
                invocation of the run.

        Returns:
            Paused, Completed or Failed.

        Raises:
            InvalidRunIdError: If run_id is empty, too long or not a string.
                Raised before any effect is performed.
            StoreUnavailableError: If the store fails. The run is left as of
                its last successful commit.
        """
        run_id = validate_run_id(new_run_id() if run_id is None else run_id)
        record = await self.store.get_record(run_id)
        return await self._invoke(routine, run_id, input, record)

    async def resume(self, routine: Routine, run_id: str) -> RunOutcome:
        """Re-enter a paused run using the input it was started with.

        Raises:
            InvalidRunIdError: If run_id cannot be a stored identifier.
            RunNotFoundError: If the run has no execution record.
            StoreUnavailableError: If the store fails.
        """
        validate_run_id(run_id)
        record = await self.store.get_record(run_id)
        if record is None:
            raise RunNotFoundError(run_id)
        return await self._invoke(routine, run_id, record.input, record)

    async def inspect(self, run_id: str) -> ExecutionRecord | None:
        return await self.store.get_record(run_id)

    async def cancel(self, run_id: str) -> bool:
        """Delete a run's record and cached outcomes.

        Returns:
            True if the run existed.
        """
        removed = await self.store.delete_record(run_id)
        if removed:
            logger.info("run.cancelled", run_id=run_id)
        return removed

    async def _invoke(
        self,
        routine: Routine,
        run_id: str,
        payload: Any,
        record: ExecutionRecord | None,
    ) -> RunOutcome:
        log = logger.bind(run_id=run_id, routine=routine_name(routine))
        log.debug(
            "run.invoked",
            watermark=record.next_step_index if record else 0,
            fresh=record is None,
        )

        try:
            gen = start_routine(routine, payload)
        except Exception as e:
            return await self._abort(run_id, e, log)

        try:
            return await self._drive(gen, routine, run_id, payload, record, log)
        finally:
            gen.close()

    async def _drive(
        self,
        gen: RoutineGenerator,
        routine: Routine,
        run_id: str,
        payload: Any,
        record: ExecutionRecord | None,
        log: Any,
    ) -> RunOutcome:
        watermark = record.next_step_index if record else 0
        checkpoints_passed = record.checkpoints_passed if record else 0

        cursor = 0
        checkpoints_seen = 0
        reply: StepOutcome | None = None

        while True:
            step = advance(gen, reply)

            if step.kind is AdvanceKind.RAISED:
                return await self._abort(run_id, step.error, log)

            if step.kind is AdvanceKind.RETURNED:
                await self.store.delete_record(run_id)
                record_invocation("completed")
                log.info("run.completed", steps=cursor)
                return Completed(run_id=run_id, value=step.value)

            directive = step.directive

            if isinstance(directive, Checkpoint):
                if checkpoints_seen < checkpoints_passed:
                    checkpoints_seen += 1
                    reply = None
                    continue
                await self._commit(
                    routine,
                    run_id,
                    payload,
                    record,
                    next_step_index=max(cursor, watermark),
                    checkpoints_passed=checkpoints_seen + 1,
                )
                return await self._pause(run_id, cursor, "checkpoint", log, label=directive.label)

            if isinstance(directive, Effect):
                if cursor < watermark:
                    cached = await self.store.get_outcome(run_id, cursor)
                    error = self._check_cached(run_id, cursor, directive, cached)
                    if error is not None:
                        return await self._abort(run_id, error, log)
                    log.debug("step.replayed", step_index=cursor, effect=directive.name)
                    record_replayed_steps(1)
                    reply = cached
                    cursor += 1
                    continue

                outcome = await self._perform(run_id, cursor, directive, log)
                await self.store.put_outcome(outcome)
                await self._commit(
                    routine,
                    run_id,
                    payload,
                    record,
                    next_step_index=cursor + 1,
                    checkpoints_passed=checkpoints_passed,
                )
                return await self._pause(run_id, cursor, "effect", log)

            error = InvalidDirectiveError(
                f"Routine yielded {type(directive).__name__}, expected Effect or Checkpoint",
                value=directive,
            )
            return await self._abort(run_id, error, log)

    def _check_cached(
        self,
        run_id: str,
        step_index: int,
        directive: Effect,
        cached: StepOutcome | None,
    ) -> CorruptReplayStateError | None:
        if cached is None:
            return CorruptReplayStateError(
                f"Missing outcome for step {step_index} of run {run_id} below watermark",
                run_id=run_id,
                step_index=step_index,
            )
        if (cached.category, cached.name) != (directive.category, directive.name):
            return CorruptReplayStateError(
                f"Step {step_index} of run {run_id} replayed {directive.category}.{directive.name} "
                f"but cached outcome is for {cached.category}.{cached.name}",
                run_id=run_id,
                step_index=step_index,
            )
        return None

    async def _perform(self, run_id: str, step_index: int, effect: Effect, log: Any) -> StepOutcome:
        """Perform a fresh effect, capturing a failure as a tagged outcome."""
        start_time = time.perf_counter()
        try:
            value = await self.perform(effect.category, effect.name, dict(effect.arguments))
        except Exception as e:
            duration = time.perf_counter() - start_time
            record_effect(OutcomeStatus.FAILED.value, duration)
            log.warning(
                "effect.failed",
                step_index=step_index,
                category=effect.category,
                effect=effect.name,
                error=str(e),
                error_type=type(e).__name__,
            )
            return StepOutcome(
                run_id=run_id,
                step_index=step_index,
                category=effect.category,
                name=effect.name,
                status=OutcomeStatus.FAILED,
                failure=EffectFailure.from_exception(e),
            )

        duration = time.perf_counter() - start_time
        record_effect(OutcomeStatus.OK.value, duration)
        log.info(
            "effect.performed",
            step_index=step_index,
            category=effect.category,
            effect=effect.name,
            duration_ms=int(duration * 1000),
        )
        return StepOutcome(
            run_id=run_id,
            step_index=step_index,
            category=effect.category,
            name=effect.name,
            status=OutcomeStatus.OK,
            value=value,
        )

    async def _commit(
        self,
        routine: Routine,
        run_id: str,
        payload: Any,
        previous: ExecutionRecord | None,
        next_step_index: int,
        checkpoints_passed: int,
    ) -> None:
        now = datetime.now(UTC)
        await self.store.put_record(
            ExecutionRecord(
                run_id=run_id,
                routine_name=routine_name(routine),
                input=payload,
                next_step_index=next_step_index,
                checkpoints_passed=checkpoints_passed,
                created_at=previous.created_at if previous else now,
                updated_at=now,
                expires_at=now + timedelta(seconds=self.config.default_ttl_seconds),
            )
        )

    async def _pause(
        self,
        run_id: str,
        step_index: int,
        reason: str,
        log: Any,
        label: str | None = None,
    ) -> Paused:
        await self._notify(run_id, log)
        record_invocation("paused")
        log.info("run.paused", step_index=step_index, reason=reason, label=label)
        return Paused(run_id=run_id, resumed_step_index=step_index, reason=reason)

    async def _notify(self, run_id: str, log: Any) -> None:
        if self.notify is None:
            return
        try:
            await self.notify(run_id)
        except Exception as e:
            log.warning("notify.failed", error=str(e), error_type=type(e).__name__)

    async def _abort(self, run_id: str, error: Exception, log: Any) -> Failed:
        await self.store.delete_record(run_id)
        record_invocation("failed")
        log.warning(
            "run.failed",
            error=str(error),
            error_type=type(error).__name__,
        )
        return Failed(run_id=run_id, error=error)
