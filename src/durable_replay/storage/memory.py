"""In-memory execution store with asyncio concurrency control.

This module provides an in-memory implementation of the ExecutionStore
interface using a per-run asyncio.Lock.

The MemoryExecutionStore is suitable for:
    - Single-process applications
    - Development and testing

State does not survive the process, so it cannot carry a run across
separate stateless invocations. Use FileExecutionStore (or a networked
backend) for that.

Thread Safety:
    - Each run identifier has its own asyncio.Lock
    - A global lock protects the _locks dictionary
    - Locks are dropped when their run is deleted
"""

import asyncio
from datetime import UTC, datetime

from durable_replay.models import ExecutionRecord, StepOutcome
from durable_replay.storage.base import ExecutionStore


class MemoryExecutionStore(ExecutionStore):
    """In-memory execution store.

    Attributes:
        _records: Mapping of run identifier to execution record.
        _outcomes: Mapping of run identifier to its outcomes by step index.
        _locks: Mapping of run identifier to asyncio.Lock.
        _global_lock: Lock protecting the _locks dictionary.
    """

    def __init__(self) -> None:
        self._records: dict[str, ExecutionRecord] = {}
        self._outcomes: dict[str, dict[int, StepOutcome]] = {}
        self._locks: dict[str, asyncio.Lock] = {}
        self._global_lock = asyncio.Lock()

    async def _lock_for(self, run_id: str) -> asyncio.Lock:
        async with self._global_lock:
            if run_id not in self._locks:
                self._locks[run_id] = asyncio.Lock()
            return self._locks[run_id]

    async def get_record(self, run_id: str) -> ExecutionRecord | None:
        return self._records.get(run_id)

    async def put_record(self, record: ExecutionRecord) -> None:
        lock = await self._lock_for(record.run_id)
        async with lock:
            self._records[record.run_id] = record

    async def delete_record(self, run_id: str) -> bool:
        """Delete the record and all outcomes of a run.

        Args:
            run_id: The run identifier.

        Returns:
            True if anything was removed.
        """
        lock = await self._lock_for(run_id)
        async with lock:
            had_record = self._records.pop(run_id, None) is not None
            had_outcomes = bool(self._outcomes.pop(run_id, None))

        async with self._global_lock:
            if run_id in self._locks and not self._locks[run_id].locked():
                del self._locks[run_id]

        return had_record or had_outcomes

    async def get_outcome(self, run_id: str, step_index: int) -> StepOutcome | None:
        return self._outcomes.get(run_id, {}).get(step_index)

    async def put_outcome(self, outcome: StepOutcome) -> None:
        lock = await self._lock_for(outcome.run_id)
        async with lock:
            self._outcomes.setdefault(outcome.run_id, {})[outcome.step_index] = outcome

    async def cleanup_expired(self) -> int:
        """Remove expired runs and their outcomes.

        Returns:
            The number of runs removed.
        """
        now = datetime.now(UTC)
        expired = [run_id for run_id, record in self._records.items() if record.expires_at < now]

        removed_count = 0
        for run_id in expired:
            record = self._records.get(run_id)
            # Re-check: the run may have been refreshed since the scan
            if record is not None and record.expires_at < now:
                await self.delete_record(run_id)
                removed_count += 1

        return removed_count
