"""Scenario 5: HTTP Resume Chain

Drives a run entirely over HTTP, the way a serverless deployment would: the
durable endpoint is mounted inside a FastAPI host app, state lives on disk,
and each resume notification turns into a POST against a freshly built app.

Key behaviors tested:
- Every request performs at most one effect
- Nothing survives between requests except the file store
- Notifications drive the run to completion
- The run is gone once it completes
"""

from typing import Any

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from durable_replay.adapters.asgi import create_app
from durable_replay.core.driver import ReplayDriver
from durable_replay.directives import Checkpoint, Effect
from durable_replay.storage.file import FileExecutionStore

USERS = {1: {"id": 1, "name": "Alice"}}
POSTS = {1: ["hello", "world"]}


def fetch_user_posts(payload):
    user = yield Effect(category="http", name="get_user", arguments={"id": payload["id"]})
    yield Checkpoint(label="after-user")
    posts = yield Effect(category="http", name="get_posts", arguments={"uid": user.unwrap()["id"]})
    return {"user": user.unwrap()["name"], "posts": posts.unwrap()}


class Upstream:
    """Fake upstream API counting requests per endpoint."""

    def __init__(self) -> None:
        self.requests: list[str] = []

    async def __call__(self, category: str, name: str, arguments: dict[str, Any]) -> Any:
        self.requests.append(name)
        if name == "get_user":
            return USERS[arguments["id"]]
        return POSTS[arguments["uid"]]


class Outbox:
    """Collects resume notifications like a webhook queue would."""

    def __init__(self) -> None:
        self.pending: list[str] = []

    async def __call__(self, run_id: str) -> None:
        self.pending.append(run_id)


@pytest.fixture
def upstream() -> Upstream:
    return Upstream()


@pytest.fixture
def outbox() -> Outbox:
    return Outbox()


@pytest.fixture
def client_factory(tmp_path, upstream, outbox):
    """Build a brand new host app per request, sharing only the directory."""

    def build() -> TestClient:
        driver = ReplayDriver(FileExecutionStore(tmp_path / "runs"), upstream, outbox)
        host = FastAPI()

        @host.get("/health")
        def health() -> dict[str, str]:
            return {"status": "ok"}

        host.mount("/durable", create_app(driver, [fetch_user_posts]))
        return TestClient(host)

    return build


def test_notifications_drive_run_to_completion(client_factory, upstream, outbox):
    first = client_factory().post(
        "/durable/routines/fetch_user_posts/runs",
        json={"run_id": "chain-1", "input": {"id": 1}},
    )
    assert first.status_code == 200
    assert first.json()["status"] == "paused"

    responses = [first.json()]
    while outbox.pending:
        run_id = outbox.pending.pop(0)
        before = len(upstream.requests)
        response = client_factory().post(f"/durable/runs/{run_id}/resume")
        assert response.status_code == 200
        assert len(upstream.requests) - before <= 1
        responses.append(response.json())

    assert [r["status"] for r in responses] == ["paused", "paused", "paused", "completed"]
    assert [r.get("reason") for r in responses[:3]] == ["effect", "checkpoint", "effect"]
    assert responses[-1]["value"] == {"user": "Alice", "posts": ["hello", "world"]}
    assert upstream.requests == ["get_user", "get_posts"]
    assert client_factory().get("/durable/runs/chain-1").status_code == 404


def test_host_routes_unaffected(client_factory):
    assert client_factory().get("/health").json() == {"status": "ok"}


def test_inspect_between_requests(client_factory):
    client_factory().post(
        "/durable/routines/fetch_user_posts/runs",
        json={"run_id": "chain-2", "input": {"id": 1}},
    )
    client_factory().post("/durable/runs/chain-2/resume")

    record = client_factory().get("/durable/runs/chain-2").json()

    assert record["next_step_index"] == 1
    assert record["checkpoints_passed"] == 1
    assert record["routine_name"] == "fetch_user_posts"
