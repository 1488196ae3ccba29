"""
Replay-based durable execution for stateless invocation boundaries.

A deterministic step routine is re-run from the top on every invocation;
effects it already performed are answered from a persisted cache, and at
most one new effect is performed before the invocation pauses.
"""

__version__ = "0.1.0"

from durable_replay.config import ReplayConfig
from durable_replay.core.driver import ReplayDriver
from durable_replay.directives import Checkpoint, Effect, Return, step_function
from durable_replay.exceptions import (
    CorruptReplayStateError,
    EffectFailedError,
    InvalidDirectiveError,
    InvalidRunIdError,
    ReplayError,
    RunNotFoundError,
    StoreUnavailableError,
)
from durable_replay.models import (
    Completed,
    ExecutionRecord,
    Failed,
    Paused,
    RunOutcome,
    StepOutcome,
)
from durable_replay.storage import FileExecutionStore, MemoryExecutionStore, create_store

__all__ = [
    "__version__",
    "ReplayConfig",
    "ReplayDriver",
    "Effect",
    "Checkpoint",
    "Return",
    "step_function",
    "ReplayError",
    "InvalidDirectiveError",
    "InvalidRunIdError",
    "CorruptReplayStateError",
    "EffectFailedError",
    "StoreUnavailableError",
    "RunNotFoundError",
    "ExecutionRecord",
    "StepOutcome",
    "Paused",
    "Completed",
    "Failed",
    "RunOutcome",
    "MemoryExecutionStore",
    "FileExecutionStore",
    "create_store",
]
