"""Storage adapters for the replay driver.

All adapters implement the ExecutionStore protocol defined in base.py.

Available Adapters:
    - MemoryExecutionStore: In-memory storage with asyncio concurrency
    - FileExecutionStore: One JSON document per run on local disk
"""

from durable_replay.config import ReplayConfig
from durable_replay.storage.base import ExecutionStore
from durable_replay.storage.file import FileExecutionStore
from durable_replay.storage.memory import MemoryExecutionStore


def create_store(config: ReplayConfig) -> ExecutionStore:
    """Build the store selected by ``config.storage_adapter``."""
    if config.storage_adapter == "file":
        return FileExecutionStore(config.file_storage_path)
    return MemoryExecutionStore()


__all__ = [
    "ExecutionStore",
    "FileExecutionStore",
    "MemoryExecutionStore",
    "create_store",
]
