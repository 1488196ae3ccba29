"""File-based execution store.

Each run is kept in one JSON document under a directory: its execution
record plus its step outcomes. Documents are replaced atomically (write to
a temporary file, then ``os.replace``), so a crash never leaves a
half-written run behind.

Record inputs and effect values must be JSON-serializable. Anything that
is not fails the write with StoreUnavailableError.

Examples:
    >>> store = FileExecutionStore("/var/lib/durable-replay")
    >>> record = await store.get_record("run-123")
"""

import asyncio
import hashlib
import os
import tempfile
from datetime import UTC, datetime
from pathlib import Path

from pydantic import BaseModel, Field

from durable_replay.exceptions import StoreUnavailableError
from durable_replay.models import ExecutionRecord, StepOutcome
from durable_replay.storage.base import ExecutionStore


class RunDocument(BaseModel):
    """On-disk layout of one run."""

    record: ExecutionRecord | None = None
    outcomes: dict[int, StepOutcome] = Field(default_factory=dict)


class FileExecutionStore(ExecutionStore):
    """Execution store persisting one JSON document per run.

    Attributes:
        directory: Directory holding the run documents.
    """

    SUFFIX = ".run.json"

    def __init__(self, directory: str | Path) -> None:
        self.directory = Path(directory)
        self._locks: dict[str, asyncio.Lock] = {}
        self._global_lock = asyncio.Lock()

    def _path(self, run_id: str) -> Path:
        # Run identifiers are opaque; hash them into safe file names
        digest = hashlib.sha256(run_id.encode("utf-8")).hexdigest()
        return self.directory / f"{digest}{self.SUFFIX}"

    async def _lock_for(self, run_id: str) -> asyncio.Lock:
        async with self._global_lock:
            if run_id not in self._locks:
                self._locks[run_id] = asyncio.Lock()
            return self._locks[run_id]

    def _read(self, path: Path) -> RunDocument | None:
        try:
            data = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as e:
            raise StoreUnavailableError(f"Failed to read {path}: {e}", cause=e) from e
        try:
            return RunDocument.model_validate_json(data)
        except ValueError as e:
            raise StoreUnavailableError(f"Corrupt run document {path}: {e}", cause=e) from e

    def _write(self, path: Path, document: RunDocument) -> None:
        try:
            payload = document.model_dump_json()
        except ValueError as e:
            raise StoreUnavailableError(f"Run state is not JSON-serializable: {e}", cause=e) from e
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=self.directory, suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as fh:
                    fh.write(payload)
                os.replace(tmp_name, path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as e:
            raise StoreUnavailableError(f"Failed to write {path}: {e}", cause=e) from e

    def _unlink(self, path: Path) -> bool:
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        except OSError as e:
            raise StoreUnavailableError(f"Failed to delete {path}: {e}", cause=e) from e
        return True

    def _scan(self) -> list[Path]:
        if not self.directory.exists():
            return []
        try:
            return sorted(self.directory.glob(f"*{self.SUFFIX}"))
        except OSError as e:
            raise StoreUnavailableError(f"Failed to list {self.directory}: {e}", cause=e) from e

    async def get_record(self, run_id: str) -> ExecutionRecord | None:
        document = await asyncio.to_thread(self._read, self._path(run_id))
        return document.record if document is not None else None

    async def put_record(self, record: ExecutionRecord) -> None:
        path = self._path(record.run_id)
        async with await self._lock_for(record.run_id):
            document = await asyncio.to_thread(self._read, path) or RunDocument()
            document.record = record
            await asyncio.to_thread(self._write, path, document)

    async def delete_record(self, run_id: str) -> bool:
        path = self._path(run_id)
        async with await self._lock_for(run_id):
            removed = await asyncio.to_thread(self._unlink, path)

        await self._drop_lock(run_id)
        return removed

    async def _drop_lock(self, run_id: str) -> None:
        async with self._global_lock:
            lock = self._locks.get(run_id)
            if lock is not None and not lock.locked():
                del self._locks[run_id]

    async def get_outcome(self, run_id: str, step_index: int) -> StepOutcome | None:
        document = await asyncio.to_thread(self._read, self._path(run_id))
        if document is None:
            return None
        return document.outcomes.get(step_index)

    async def put_outcome(self, outcome: StepOutcome) -> None:
        path = self._path(outcome.run_id)
        async with await self._lock_for(outcome.run_id):
            document = await asyncio.to_thread(self._read, path) or RunDocument()
            document.outcomes[outcome.step_index] = outcome
            await asyncio.to_thread(self._write, path, document)

    async def cleanup_expired(self) -> int:
        """Remove documents whose record has expired.

        Documents holding outcomes but no record (an invocation stopped
        between the two writes) are kept: the next invocation re-performs
        and overwrites that step.

        Returns:
            The number of runs removed.
        """
        now = datetime.now(UTC)
        removed_count = 0
        for path in await asyncio.to_thread(self._scan):
            document = await asyncio.to_thread(self._read, path)
            if document is None or document.record is None or document.record.expires_at >= now:
                continue

            run_id = document.record.run_id
            async with await self._lock_for(run_id):
                # Re-check: the run may have been refreshed since the scan
                current = await asyncio.to_thread(self._read, path)
                if current is None or current.record is None or current.record.expires_at >= now:
                    continue
                removed = await asyncio.to_thread(self._unlink, path)
            await self._drop_lock(run_id)
            if removed:
                removed_count += 1

        return removed_count
