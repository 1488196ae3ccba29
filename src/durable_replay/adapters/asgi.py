"""ASGI endpoint exposing the replay driver over HTTP.

Each HTTP request is one stateless invocation: it replays the run, performs
at most one fresh effect and answers with the outcome. A resume notifier
(e.g. a webhook that POSTs back to ``/runs/{run_id}/resume``) keeps the run
moving without any request ever waiting on more than one effect.

Routes:
    POST   /routines/{routine_name}/runs   start (or re-enter) a run
    POST   /runs/{run_id}/resume           re-enter with the persisted input
    GET    /runs/{run_id}                  inspect the execution record
    DELETE /runs/{run_id}                  cancel the run

Examples:
    Serving with uvicorn::

        from durable_replay.adapters.asgi import create_app
        from durable_replay.core.driver import ReplayDriver
        from durable_replay.storage.file import FileExecutionStore

        driver = ReplayDriver(FileExecutionStore("/var/lib/runs"), perform, notify)
        app = create_app(driver, [fetch_user_posts])
"""

import json
from collections.abc import Iterable
from typing import Any

from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.routing import Route

from durable_replay.core.driver import ReplayDriver
from durable_replay.directives import Routine, routine_name
from durable_replay.exceptions import InvalidRunIdError, RunNotFoundError, StoreUnavailableError
from durable_replay.models import Failed, RunOutcome
from durable_replay.observability.logging import get_logger

logger = get_logger(__name__)


def render_outcome(outcome: RunOutcome) -> dict[str, Any]:
    """Convert an invocation outcome into a JSON-ready dict."""
    if isinstance(outcome, Failed):
        return {
            "status": outcome.status.value,
            "run_id": outcome.run_id,
            "error": {"type": outcome.error_type, "message": outcome.message},
        }
    return outcome.model_dump(mode="json")


def _error(status_code: int, message: str, headers: dict[str, str] | None = None) -> JSONResponse:
    return JSONResponse({"error": message}, status_code=status_code, headers=headers)


def _unavailable(e: StoreUnavailableError) -> JSONResponse:
    logger.error("store.unavailable", error=e.message)
    return _error(503, f"Store unavailable: {e.message}", headers={"retry-after": "5"})


def create_app(driver: ReplayDriver, routines: Iterable[Routine]) -> Starlette:
    """Build a Starlette application serving the given routines.

    Args:
        driver: The replay driver to invoke.
        routines: Routines to expose, registered under their ``__name__``.

    Returns:
        The ASGI application.
    """
    registry: dict[str, Routine] = {routine_name(r): r for r in routines}

    async def start_run(request: Request) -> Response:
        name = request.path_params["routine_name"]
        routine = registry.get(name)
        if routine is None:
            return _error(404, f"Unknown routine {name}")

        body = await request.body()
        try:
            payload = json.loads(body) if body else {}
        except json.JSONDecodeError:
            return _error(400, "Request body must be JSON")
        if not isinstance(payload, dict):
            return _error(400, "Request body must be a JSON object")

        try:
            outcome = await driver.run(routine, payload.get("run_id"), payload.get("input"))
        except InvalidRunIdError as e:
            return _error(400, e.message)
        except StoreUnavailableError as e:
            return _unavailable(e)
        return JSONResponse(render_outcome(outcome))

    async def resume_run(request: Request) -> Response:
        run_id = request.path_params["run_id"]
        try:
            record = await driver.inspect(run_id)
            if record is None:
                raise RunNotFoundError(run_id)
            routine = registry.get(record.routine_name or "")
            if routine is None:
                return _error(404, f"Routine {record.routine_name} is not registered")
            outcome = await driver.resume(routine, run_id)
        except RunNotFoundError as e:
            return _error(404, e.message)
        except StoreUnavailableError as e:
            return _unavailable(e)
        return JSONResponse(render_outcome(outcome))

    async def get_run(request: Request) -> Response:
        run_id = request.path_params["run_id"]
        try:
            record = await driver.inspect(run_id)
        except StoreUnavailableError as e:
            return _unavailable(e)
        if record is None:
            return _error(404, f"Run {run_id} not found")
        return JSONResponse(record.model_dump(mode="json"))

    async def cancel_run(request: Request) -> Response:
        run_id = request.path_params["run_id"]
        try:
            removed = await driver.cancel(run_id)
        except StoreUnavailableError as e:
            return _unavailable(e)
        if not removed:
            return _error(404, f"Run {run_id} not found")
        return Response(status_code=204)

    return Starlette(
        routes=[
            Route("/routines/{routine_name}/runs", start_run, methods=["POST"]),
            Route("/runs/{run_id}/resume", resume_run, methods=["POST"]),
            Route("/runs/{run_id}", get_run, methods=["GET"]),
            Route("/runs/{run_id}", cancel_run, methods=["DELETE"]),
        ]
    )
