"""Observability utilities for the replay driver.

This package provides monitoring and debugging capabilities:
- Prometheus metrics for invocation outcomes and effect timings
- Structured logging with the run identifier bound to every event
"""

from durable_replay.observability.logging import configure_logging, get_logger
from durable_replay.observability.metrics import (
    record_cleanup,
    record_effect,
    record_invocation,
    record_replayed_steps,
)

__all__ = [
    "configure_logging",
    "get_logger",
    "record_invocation",
    "record_effect",
    "record_replayed_steps",
    "record_cleanup",
]
