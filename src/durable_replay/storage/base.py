"""Execution store protocol for the replay driver.

This module defines the interface every storage backend must implement to
hold durable run state: one execution record per run identifier, plus the
step outcomes cached under ``(run_id, step_index)``.

The driver treats the store as the sole source of truth. It never caches
store contents across invocations, and it assumes nothing stronger than
read-your-writes within one invocation.

Examples:
    Implementing a custom store::

        from durable_replay.models import ExecutionRecord, StepOutcome

        class RedisExecutionStore:
            async def get_record(self, run_id: str) -> ExecutionRecord | None:
                data = await self.redis.get(f"run:{run_id}")
                if data is None:
                    return None
                return ExecutionRecord.model_validate_json(data)

            async def put_outcome(self, outcome: StepOutcome) -> None:
                await self.redis.hset(
                    f"run:{outcome.run_id}:outcomes",
                    str(outcome.step_index),
                    outcome.model_dump_json(),
                )
            ...

Atomicity Requirements:
    All ExecutionStore implementations MUST guarantee:

    1. **Per-run atomicity**: every operation is atomic with respect to a
       single run identifier. No cross-run transactionality is required.

    2. **Bulk delete**: delete_record() removes the record and every
       outcome of the run together.

    3. **Backend errors**: failures surface as StoreUnavailableError, never
       as backend-specific exceptions.
"""

from typing import Protocol, runtime_checkable

from durable_replay.models import ExecutionRecord, StepOutcome


@runtime_checkable
class ExecutionStore(Protocol):
    """Protocol defining the interface for durable run storage.

    All methods are async. A single writer per run identifier is assumed;
    implementations must still keep each operation atomic for one run.

    Error Handling:
        Methods should raise StoreUnavailableError for backend failures
        (I/O, network, serialization). The driver propagates it to the
        caller, leaving the run as of its last successful commit.
    """

    async def get_record(self, run_id: str) -> ExecutionRecord | None:
        """Retrieve the execution record of a run.

        Args:
            run_id: The run identifier to look up.

        Returns:
            The record if the run is in progress, None otherwise.
        """
        ...

    async def put_record(self, record: ExecutionRecord) -> None:
        """Create or replace the execution record of a run.

        Args:
            record: The record to store, keyed by ``record.run_id``.
        """
        ...

    async def delete_record(self, run_id: str) -> bool:
        """Delete the execution record and all step outcomes of a run.

        Args:
            run_id: The run identifier.

        Returns:
            True if a record or any outcome existed, False otherwise.
        """
        ...

    async def get_outcome(self, run_id: str, step_index: int) -> StepOutcome | None:
        """Retrieve a cached step outcome.

        Args:
            run_id: The run identifier.
            step_index: Zero-based effect step index.

        Returns:
            The cached outcome if present, None otherwise.
        """
        ...

    async def put_outcome(self, outcome: StepOutcome) -> None:
        """Store a step outcome under ``(outcome.run_id, outcome.step_index)``.

        Outcomes are write-once under normal operation; a rewrite only
        happens when an earlier invocation stopped before committing the
        record that followed it.

        Args:
            outcome: The outcome to store.
        """
        ...

    async def cleanup_expired(self) -> int:
        """Remove runs whose records have expired, with their outcomes.

        Returns:
            The number of runs removed.
        """
        ...
