"""Step-routine contract: what a durable workflow is.

A routine is a generator function. Called with its input, it yields
directives one at a time, receives the outcome of each one through
``generator.send()``, and finishes with a plain ``return`` value.

    - ``Effect`` asks the driver to perform an external action. The routine
      is sent back a ``StepOutcome`` (tagged ok/failed, never an exception).
    - ``Checkpoint`` asks the driver to commit progress and suspend without
      performing any work. The routine is sent back ``None``.

Routines are re-run from the top on every invocation, so they must be a
pure function of their input and the outcomes fed back so far. Local
variables are rebuilt by replay; they are never persisted.

Examples:
    A two-step routine::

        from durable_replay.directives import Effect

        def fetch_user_posts(payload):
            user = yield Effect(
                category="http", name="get",
                arguments={"url": f"https://api.example.com/user/{payload['id']}"},
            )
            posts = yield Effect(
                category="http", name="get",
                arguments={"url": f"https://api.example.com/posts?uid={user.unwrap()['id']}"},
            )
            return [user.unwrap(), posts.unwrap()]

    The same routine as a pure step function::

        from durable_replay.directives import Effect, Return, step_function

        @step_function
        def fetch_user_posts(payload, outcomes):
            if len(outcomes) == 0:
                return Effect(category="http", name="get", arguments={...})
            if len(outcomes) == 1:
                return Effect(category="http", name="get", arguments={...})
            return Return([o.unwrap() for o in outcomes])
"""

import functools
import inspect
from collections.abc import Callable, Generator
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from durable_replay.exceptions import InvalidDirectiveError
from durable_replay.models import StepOutcome


class Effect(BaseModel):
    """Request to perform an observable external action.

    Attributes:
        category: Broad kind of effect (e.g. ``http``, ``email``).
        name: Operation within the category (e.g. ``get``, ``send``).
        arguments: Keyword arguments for the effect performer.
    """

    model_config = ConfigDict(frozen=True)

    category: str = Field(..., min_length=1, examples=["http", "llm"])
    name: str = Field(..., min_length=1, examples=["get", "complete"])
    arguments: dict[str, Any] = Field(default_factory=dict)


class Checkpoint(BaseModel):
    """Request to commit the current step index and suspend."""

    model_config = ConfigDict(frozen=True)

    label: str | None = None


class Return(BaseModel):
    """Terminal value produced by a step function."""

    model_config = ConfigDict(frozen=True)

    value: Any = None


Directive = Effect | Checkpoint
RoutineGenerator = Generator[Directive, StepOutcome | None, Any]
Routine = Callable[[Any], RoutineGenerator]
StepFunction = Callable[[Any, list[StepOutcome]], "Effect | Checkpoint | Return"]


def is_directive(value: object) -> bool:
    """Check whether a yielded value is a recognized directive."""
    return isinstance(value, (Effect, Checkpoint))


def routine_name(routine: Callable[..., Any]) -> str:
    return getattr(routine, "__name__", None) or type(routine).__name__


def start_routine(routine: Routine, payload: Any) -> RoutineGenerator:
    """Call a routine and check that it produced a generator.

    Args:
        routine: The routine callable.
        payload: The run input.

    Returns:
        The routine's unstarted generator.

    Raises:
        InvalidDirectiveError: If the routine is not a generator routine.
        Exception: Whatever the routine raises while being constructed.
    """
    gen = routine(payload)
    if not inspect.isgenerator(gen):
        raise InvalidDirectiveError(
            f"Routine {routine_name(routine)} did not return a generator "
            f"(got {type(gen).__name__})",
            value=gen,
        )
    return gen


def step_function(fn: StepFunction) -> Routine:
    """Adapt a pure step function into a generator routine.

    The step function is called with the input and the list of outcomes
    received so far, and returns the next directive or a ``Return``.
    Checkpoints are not counted as outcomes.

    Args:
        fn: ``fn(input, outcomes_so_far) -> Effect | Checkpoint | Return``.

    Returns:
        A generator routine with the same name as ``fn``.
    """

    @functools.wraps(fn)
    def routine(payload: Any) -> RoutineGenerator:
        outcomes: list[StepOutcome] = []
        while True:
            step = fn(payload, list(outcomes))
            if isinstance(step, Return):
                return step.value
            reply = yield step
            if isinstance(step, Effect):
                outcomes.append(reply)

    return routine
