"""
Pytest configuration and shared fixtures for durable_replay tests.
"""

from typing import Any

import pytest

from durable_replay.core.driver import ReplayDriver
from durable_replay.storage.memory import MemoryExecutionStore


class RecordingPerformer:
    """Effect performer that records calls and answers from a script.

    ``script`` maps effect names to a value, an exception instance to raise,
    or a callable receiving the arguments.
    """

    def __init__(self, script: dict[str, Any] | None = None) -> None:
        self.script = script or {}
        self.calls: list[tuple[str, str, dict[str, Any]]] = []

    async def __call__(self, category: str, name: str, arguments: dict[str, Any]) -> Any:
        self.calls.append((category, name, arguments))
        answer = self.script.get(name)
        if isinstance(answer, Exception):
            raise answer
        if callable(answer):
            return answer(arguments)
        return answer


class RecordingNotifier:
    def __init__(self, error: Exception | None = None) -> None:
        self.error = error
        self.calls: list[str] = []

    async def __call__(self, run_id: str) -> None:
        self.calls.append(run_id)
        if self.error is not None:
            raise self.error


@pytest.fixture
def store() -> MemoryExecutionStore:
    """Create a fresh memory store for each test."""
    return MemoryExecutionStore()


@pytest.fixture
def performer() -> RecordingPerformer:
    return RecordingPerformer({"get_user": {"id": 1, "name": "Alice"}, "get_posts": ["p1", "p2"]})


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def driver(
    store: MemoryExecutionStore,
    performer: RecordingPerformer,
    notifier: RecordingNotifier,
) -> ReplayDriver:
    return ReplayDriver(store, performer, notifier)
