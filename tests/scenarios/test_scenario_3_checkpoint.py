"""Scenario 3: Checkpoints

1. A routine that yields a checkpoint before any effect pauses with
   resumed_step_index 0 and never calls the effect performer.
2. The next invocation passes the checkpoint and performs the first effect.
3. Consecutive checkpoints each suspend exactly once.
"""

import pytest

from durable_replay.directives import Checkpoint, Effect
from durable_replay.models import Completed, Paused


def guarded(payload):
    yield Checkpoint(label="start")
    user = yield Effect(category="http", name="get_user")
    return user.unwrap()["name"]


def double_checkpoint(payload):
    yield Checkpoint(label="one")
    yield Checkpoint(label="two")
    return "ok"


class TestCheckpointBeforeEffects:
    @pytest.mark.asyncio
    async def test_checkpoint_first_pauses_at_zero(self, driver, performer, store) -> None:
        outcome = await driver.run(guarded, "cp-1", None)

        assert isinstance(outcome, Paused)
        assert outcome.resumed_step_index == 0
        assert outcome.reason == "checkpoint"
        assert performer.calls == []
        assert (await store.get_record("cp-1")).next_step_index == 0

    @pytest.mark.asyncio
    async def test_run_progresses_past_checkpoint(self, driver, performer) -> None:
        outcomes = [await driver.run(guarded, "cp-1", None) for _ in range(3)]

        assert [o.status.value for o in outcomes] == ["paused", "paused", "completed"]
        assert outcomes[1].reason == "effect"
        assert outcomes[2].value == "Alice"
        assert len(performer.calls) == 1


class TestConsecutiveCheckpoints:
    @pytest.mark.asyncio
    async def test_each_checkpoint_suspends_once(self, driver, notifier, store) -> None:
        first = await driver.run(double_checkpoint, "cp-2", None)
        second = await driver.run(double_checkpoint, "cp-2", None)
        third = await driver.run(double_checkpoint, "cp-2", None)

        assert isinstance(first, Paused)
        assert isinstance(second, Paused)
        assert isinstance(third, Completed)
        assert third.value == "ok"
        assert notifier.calls == ["cp-2", "cp-2"]
        assert await store.get_record("cp-2") is None
