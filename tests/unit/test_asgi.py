"""Unit tests for the ASGI endpoint."""

import pytest
from starlette.testclient import TestClient

from durable_replay.adapters.asgi import create_app, render_outcome
from durable_replay.core.driver import ReplayDriver
from durable_replay.directives import Effect
from durable_replay.exceptions import InvalidDirectiveError, StoreUnavailableError
from durable_replay.models import Completed, Failed, Paused
from durable_replay.storage.memory import MemoryExecutionStore


def fetch_user_posts(payload):
    user = yield Effect(category="http", name="get_user", arguments={"id": payload["id"]})
    posts = yield Effect(category="http", name="get_posts", arguments={"uid": user.unwrap()["id"]})
    return {"user": user.unwrap(), "posts": posts.unwrap()}


def yields_garbage(payload):
    yield 42


class DownStore(MemoryExecutionStore):
    async def get_record(self, run_id):
        raise StoreUnavailableError("connection refused")

    async def delete_record(self, run_id):
        raise StoreUnavailableError("connection refused")


@pytest.fixture
def client(store, performer, notifier):
    driver = ReplayDriver(store, performer, notifier)
    return TestClient(create_app(driver, [fetch_user_posts, yields_garbage]))


class TestRenderOutcome:
    def test_paused(self):
        body = render_outcome(Paused(run_id="r", resumed_step_index=0))
        assert body == {"status": "paused", "run_id": "r", "resumed_step_index": 0, "reason": "effect"}

    def test_completed(self):
        assert render_outcome(Completed(run_id="r", value=[1])) == {
            "status": "completed",
            "run_id": "r",
            "value": [1],
        }

    def test_failed(self):
        body = render_outcome(Failed(run_id="r", error=InvalidDirectiveError("Not a directive")))
        assert body == {
            "status": "failed",
            "run_id": "r",
            "error": {"type": "InvalidDirectiveError", "message": "Not a directive"},
        }


class TestStartRun:
    def test_runs_to_completion_across_requests(self, client, store, performer):
        first = client.post("/routines/fetch_user_posts/runs", json={"run_id": "run-1", "input": {"id": 1}})
        assert first.status_code == 200
        assert first.json()["status"] == "paused"
        assert first.json()["resumed_step_index"] == 0

        second = client.post("/routines/fetch_user_posts/runs", json={"run_id": "run-1", "input": {"id": 1}})
        assert second.json()["status"] == "paused"

        third = client.post("/routines/fetch_user_posts/runs", json={"run_id": "run-1", "input": {"id": 1}})
        assert third.json() == {
            "status": "completed",
            "run_id": "run-1",
            "value": {"user": {"id": 1, "name": "Alice"}, "posts": ["p1", "p2"]},
        }
        assert len(performer.calls) == 2

    def test_generates_run_id(self, client):
        response = client.post("/routines/fetch_user_posts/runs", json={"input": {"id": 1}})
        assert response.status_code == 200
        assert response.json()["run_id"]

    def test_unknown_routine(self, client):
        response = client.post("/routines/missing/runs", json={})
        assert response.status_code == 404

    def test_body_must_be_json(self, client):
        response = client.post(
            "/routines/fetch_user_posts/runs",
            content=b"not json",
            headers={"content-type": "application/json"},
        )
        assert response.status_code == 400

    def test_body_must_be_object(self, client):
        response = client.post("/routines/fetch_user_posts/runs", json=[1, 2])
        assert response.status_code == 400

    @pytest.mark.parametrize("run_id", ["x" * 300, 5, ""])
    def test_unstorable_run_id_rejected(self, client, performer, run_id):
        response = client.post(
            "/routines/fetch_user_posts/runs", json={"run_id": run_id, "input": {"id": 1}}
        )
        assert response.status_code == 400
        assert "Run identifier" in response.json()["error"]
        assert performer.calls == []

    def test_failed_run_reported(self, client):
        response = client.post("/routines/yields_garbage/runs", json={"run_id": "bad"})
        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "failed"
        assert body["error"]["type"] == "InvalidDirectiveError"


class TestRunLifecycle:
    def test_resume_uses_persisted_input(self, client, performer):
        client.post("/routines/fetch_user_posts/runs", json={"run_id": "run-2", "input": {"id": 7}})

        response = client.post("/runs/run-2/resume")

        assert response.status_code == 200
        assert response.json()["status"] == "paused"
        assert performer.calls[0] == ("http", "get_user", {"id": 7})
        assert performer.calls[1] == ("http", "get_posts", {"uid": 1})

    def test_resume_unknown_run(self, client):
        assert client.post("/runs/nope/resume").status_code == 404

    def test_get_run(self, client):
        client.post("/routines/fetch_user_posts/runs", json={"run_id": "run-3", "input": {"id": 1}})

        response = client.get("/runs/run-3")

        assert response.status_code == 200
        body = response.json()
        assert body["run_id"] == "run-3"
        assert body["routine_name"] == "fetch_user_posts"
        assert body["next_step_index"] == 1
        assert body["input"] == {"id": 1}

    def test_get_unknown_run(self, client):
        assert client.get("/runs/nope").status_code == 404

    def test_cancel_run(self, client):
        client.post("/routines/fetch_user_posts/runs", json={"run_id": "run-4", "input": {"id": 1}})

        assert client.delete("/runs/run-4").status_code == 204
        assert client.get("/runs/run-4").status_code == 404
        assert client.delete("/runs/run-4").status_code == 404


class TestStoreUnavailable:
    @pytest.fixture
    def down_client(self, performer):
        driver = ReplayDriver(DownStore(), performer)
        return TestClient(create_app(driver, [fetch_user_posts]))

    def test_start_returns_503(self, down_client, performer):
        response = down_client.post("/routines/fetch_user_posts/runs", json={"input": {"id": 1}})
        assert response.status_code == 503
        assert response.headers["retry-after"] == "5"
        assert performer.calls == []

    def test_get_and_cancel_return_503(self, down_client):
        assert down_client.get("/runs/r").status_code == 503
        assert down_client.delete("/runs/r").status_code == 503
        assert down_client.post("/runs/r/resume").status_code == 503
