"""Prometheus metrics for the replay driver.

Metrics include:

- Invocation counter by outcome (paused, completed, failed)
- Effect counter by status (ok, failed) and effect duration histogram
- Replayed step counter (effects answered from the cache)
- Cleanup operation tracking

Examples:
    >>> record_invocation("paused")
    >>> record_effect("ok", duration_seconds=0.15)
    >>> record_cleanup(records_removed=3)
"""

from prometheus_client import Counter, Histogram

# Labels: outcome (paused, completed, failed)
invocations_total = Counter(
    "durable_replay_invocations_total",
    "Total number of driver invocations by outcome",
    ["outcome"],
)

# Labels: status (ok, failed)
effects_total = Counter(
    "durable_replay_effects_total",
    "Total number of effects actually performed",
    ["status"],
)

effect_duration_seconds = Histogram(
    "durable_replay_effect_duration_seconds",
    "Wall time spent in the effect performer",
    buckets=[0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
)

replayed_steps_total = Counter(
    "durable_replay_replayed_steps_total",
    "Total number of effect steps answered from cached outcomes",
)

cleanup_operations = Counter(
    "durable_replay_cleanup_operations_total",
    "Total number of cleanup operations performed",
)

cleanup_records_removed = Counter(
    "durable_replay_cleanup_records_removed_total",
    "Total number of expired runs removed by cleanup",
)


def record_invocation(outcome: str) -> None:
    """Record one driver invocation.

    Args:
        outcome: paused, completed or failed
    """
    invocations_total.labels(outcome=outcome).inc()


def record_effect(status: str, duration_seconds: float) -> None:
    """Record a performed effect and how long it took."""
    effects_total.labels(status=status).inc()
    effect_duration_seconds.observe(duration_seconds)


def record_replayed_steps(count: int) -> None:
    if count > 0:
        replayed_steps_total.inc(count)


def record_cleanup(records_removed: int) -> None:
    """Record a cleanup operation.

    Args:
        records_removed: Number of expired runs removed
    """
    cleanup_operations.inc()
    cleanup_records_removed.inc(records_removed)
