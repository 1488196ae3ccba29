"""TTL sweeping of abandoned runs.

A run only advances when something re-invokes it. If its resume
notification is lost, its execution record and cached outcomes stay in the
store until ``expires_at`` passes and a sweep removes them. Every commit
pushes ``expires_at`` forward, so only runs idle for a whole TTL are swept.

Examples:
    One sweep, e.g. from a scheduled job::

        removed = await sweep_expired_runs(store)

    A background sweeper for a long-lived process::

        from durable_replay.config import ReplayConfig
        from durable_replay.core.cleanup import start_cleanup_task, stop_cleanup_task

        task = await start_cleanup_task(store, config=ReplayConfig.from_env())

        # On shutdown
        await stop_cleanup_task(task, timeout_seconds=10)
"""

import asyncio
import time

from durable_replay.config import ReplayConfig
from durable_replay.exceptions import StoreUnavailableError
from durable_replay.observability.logging import get_logger
from durable_replay.observability.metrics import record_cleanup
from durable_replay.storage.base import ExecutionStore

logger = get_logger(__name__)


async def sweep_expired_runs(store: ExecutionStore) -> int:
    """Remove every run whose record TTL has passed.

    Args:
        store: Execution store to sweep.

    Returns:
        The number of runs removed.

    Raises:
        StoreUnavailableError: If the store fails mid-sweep. Runs removed
            before the failure stay removed.
    """
    started = time.perf_counter()
    removed = await store.cleanup_expired()
    record_cleanup(removed)

    log = logger.info if removed else logger.debug
    log(
        "cleanup.swept",
        runs_removed=removed,
        duration_ms=int((time.perf_counter() - started) * 1000),
    )
    return removed


async def cleanup_loop(
    store: ExecutionStore,
    interval_seconds: int = 300,
    stop_event: asyncio.Event | None = None,
) -> None:
    """Sweep expired runs every ``interval_seconds`` until stop_event is set.

    A failed sweep is logged and retried on the next tick.
    """
    stop_event = stop_event or asyncio.Event()
    logger.info("cleanup.started", interval_seconds=interval_seconds)

    while not stop_event.is_set():
        try:
            await sweep_expired_runs(store)
        except StoreUnavailableError as e:
            logger.warning("cleanup.store_unavailable", error=e.message)
        except Exception as e:
            logger.error("cleanup.failed", error=str(e), error_type=type(e).__name__)

        try:
            await asyncio.wait_for(stop_event.wait(), timeout=interval_seconds)
        except asyncio.TimeoutError:
            pass

    logger.info("cleanup.stopped")


async def start_cleanup_task(
    store: ExecutionStore,
    interval_seconds: int | None = None,
    config: ReplayConfig | None = None,
) -> asyncio.Task[None]:
    """Run cleanup_loop in the background.

    Args:
        store: Execution store to sweep.
        interval_seconds: Time between sweeps. Defaults to
            ``config.cleanup_interval_seconds``.
        config: Configuration supplying the default interval.

    Returns:
        The running task, to be passed to stop_cleanup_task().
    """
    if interval_seconds is None:
        interval_seconds = (config or ReplayConfig()).cleanup_interval_seconds

    stop_event = asyncio.Event()
    task = asyncio.create_task(
        cleanup_loop(store, interval_seconds=interval_seconds, stop_event=stop_event),
        name="durable-replay-cleanup",
    )
    task._stop_event = stop_event  # type: ignore[attr-defined]
    return task


async def stop_cleanup_task(task: asyncio.Task[None], timeout_seconds: float = 5.0) -> None:
    """Ask a cleanup task to stop, cancelling it if it does not within the timeout."""
    stop_event: asyncio.Event | None = getattr(task, "_stop_event", None)
    if stop_event is not None:
        stop_event.set()

    try:
        await asyncio.wait_for(task, timeout=timeout_seconds)
    except asyncio.TimeoutError:
        logger.warning("cleanup.stop_timeout", timeout_seconds=timeout_seconds)
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            logger.debug("cleanup.cancelled")
