"""Snapshot-based alternative to step replay: a resumable machine flow.

Instead of replaying a routine from the top, this flow hands source text to
an external resumable machine that pauses on each fetch and returns its own
serialized state. The flow persists that state verbatim between calls
(``vm_state``, ``paused_state`` and the pending ``fetch_request``) and
hands it back on resume together with the fetched result.

The machine itself is a black box described by ``ResumableMachine``. This
flow does not interoperate with ``ReplayDriver``: tasks and execution
records live in different stores.

Examples:
    Running a task across two calls::

        flow = MachineFlow(machine_factory=SequentialFetchMachine)

        task = await flow.execute(code, task_id="task-1")
        # task.status == TaskStatus.PAUSED, task.fetch_request["url"] == ...

        task = await flow.resume("task-1", {"id": 1, "name": "Alice"})
        # task.status == TaskStatus.COMPLETED, task.result == ...
"""

import uuid
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from enum import Enum
from typing import Any, Literal, Protocol, runtime_checkable

from pydantic import BaseModel, Field

from durable_replay.exceptions import TaskNotFoundError
from durable_replay.observability.logging import get_logger

logger = get_logger(__name__)


class MachineResult(BaseModel):
    """What a machine reports after executing or resuming."""

    type: Literal["pause", "complete", "error"]
    state: Any = None
    fetch_request: dict[str, Any] | None = None
    result: Any = None
    error: str | None = None


@runtime_checkable
class ResumableMachine(Protocol):
    """Interface of an external machine that can pause on fetches."""

    async def initialize(self) -> None:
        ...

    async def execute_code(self, source: str) -> MachineResult:
        ...

    async def resume_execution(self, state: Any, effect_result: Any) -> MachineResult:
        ...

    def snapshot_paused(self) -> dict[str, Any] | None:
        """Return the paused frame (variables included) in a storable form."""
        ...

    def restore_paused(self, paused: dict[str, Any]) -> None:
        """Load a frame produced by snapshot_paused() back into the machine."""
        ...

    def dispose(self) -> None:
        ...


class TaskStatus(str, Enum):
    PAUSED = "paused"
    COMPLETED = "completed"
    ERROR = "error"


STATUS_BY_RESULT = {
    "pause": TaskStatus.PAUSED,
    "complete": TaskStatus.COMPLETED,
    "error": TaskStatus.ERROR,
}


class MachineTask(BaseModel):
    """Persisted state of one machine-backed task.

    Attributes:
        id: Task identifier.
        name: Display name (defaults to the identifier).
        code: Source text the task runs.
        status: paused, completed or error.
        result: Final result when completed.
        error: Error message when errored.
        vm_state: Opaque machine state returned on pause.
        paused_state: Paused frame snapshot, variables included.
        fetch_request: The fetch the machine is waiting on.
    """

    id: str = Field(..., min_length=1)
    name: str
    code: str
    status: TaskStatus
    result: Any = None
    error: str | None = None
    vm_state: Any = None
    paused_state: dict[str, Any] | None = None
    fetch_request: dict[str, Any] | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    expires_at: datetime | None = None


@runtime_checkable
class MachineTaskStore(Protocol):
    """Storage for paused machine tasks."""

    async def save(self, task: MachineTask) -> None:
        ...

    async def load(self, task_id: str) -> MachineTask | None:
        ...

    async def delete(self, task_id: str) -> None:
        ...


class MemoryMachineTaskStore(MachineTaskStore):
    """In-memory task store."""

    def __init__(self) -> None:
        self._tasks: dict[str, MachineTask] = {}

    async def save(self, task: MachineTask) -> None:
        self._tasks[task.id] = task

    async def load(self, task_id: str) -> MachineTask | None:
        return self._tasks.get(task_id)

    async def delete(self, task_id: str) -> None:
        self._tasks.pop(task_id, None)


class MachineFlow:
    """Execute and resume source text on a fresh machine per call.

    Attributes:
        machine_factory: Builds a new, uninitialized machine.
        store: Storage for paused tasks.
        ttl_seconds: Lifetime of a new task (default two hours).
    """

    def __init__(
        self,
        machine_factory: Callable[[], ResumableMachine],
        store: MachineTaskStore | None = None,
        ttl_seconds: int = 7200,
    ) -> None:
        self.machine_factory = machine_factory
        self.store = store or MemoryMachineTaskStore()
        self.ttl_seconds = ttl_seconds

    async def execute(
        self,
        code: str,
        task_id: str | None = None,
        name: str | None = None,
    ) -> MachineTask:
        """Start a task. Paused tasks are saved; others are returned only.

        Machine faults do not raise: they come back as an ``error`` task.
        """
        task_id = task_id or f"task-{uuid.uuid4()}"
        now = datetime.now(UTC)
        expires_at = now + timedelta(seconds=self.ttl_seconds)
        machine = self.machine_factory()

        try:
            await machine.initialize()
            result = await machine.execute_code(code)
            task = self._task_from_result(
                task_id, name or task_id, code, result, machine,
                created_at=now, expires_at=expires_at,
            )
            if task.status == TaskStatus.PAUSED:
                await self.store.save(task)
            logger.info("task.executed", task_id=task_id, status=task.status.value)
            return task
        except Exception as e:
            logger.warning("task.failed", task_id=task_id, error=str(e), error_type=type(e).__name__)
            return MachineTask(
                id=task_id,
                name=name or task_id,
                code=code,
                status=TaskStatus.ERROR,
                error=str(e),
                created_at=now,
                expires_at=expires_at,
            )
        finally:
            machine.dispose()

    async def resume(self, task_id: str, fetch_response: Any) -> MachineTask:
        """Resume a paused task with the response to its pending fetch.

        A response shaped ``{"data": ...}`` is unwrapped to its data.
        The task is deleted unless it pauses again, including when the
        machine faults.

        Raises:
            TaskNotFoundError: If no paused task exists for task_id.
        """
        stored = await self.store.load(task_id)
        if stored is None:
            raise TaskNotFoundError(task_id)

        if isinstance(fetch_response, dict) and fetch_response.get("data") is not None:
            fetch_response = fetch_response["data"]

        machine = self.machine_factory()
        try:
            await machine.initialize()
            if stored.paused_state is not None:
                machine.restore_paused(stored.paused_state)
            result = await machine.resume_execution(stored.vm_state, fetch_response)
            task = self._task_from_result(
                task_id, stored.name, stored.code, result, machine,
                created_at=stored.created_at, expires_at=stored.expires_at,
            )
            if task.status == TaskStatus.PAUSED:
                await self.store.save(task)
            else:
                await self.store.delete(task_id)
            logger.info("task.resumed", task_id=task_id, status=task.status.value)
            return task
        except Exception as e:
            await self.store.delete(task_id)
            logger.warning("task.failed", task_id=task_id, error=str(e), error_type=type(e).__name__)
            return MachineTask(
                id=task_id,
                name=stored.name,
                code=stored.code,
                status=TaskStatus.ERROR,
                error=str(e),
            )
        finally:
            machine.dispose()

    async def get_task(self, task_id: str) -> MachineTask | None:
        return await self.store.load(task_id)

    async def delete_task(self, task_id: str) -> None:
        await self.store.delete(task_id)

    def _task_from_result(
        self,
        task_id: str,
        name: str,
        code: str,
        result: MachineResult,
        machine: ResumableMachine,
        created_at: datetime | None,
        expires_at: datetime | None,
    ) -> MachineTask:
        paused = result.type == "pause"
        return MachineTask(
            id=task_id,
            name=name,
            code=code,
            status=STATUS_BY_RESULT[result.type],
            result=result.result,
            error=result.error,
            vm_state=result.state,
            paused_state=machine.snapshot_paused() if paused else None,
            fetch_request=result.fetch_request,
            created_at=created_at,
            updated_at=datetime.now(UTC),
            expires_at=expires_at,
        )
