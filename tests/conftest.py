"""Shared fixtures for schedule tests.

Facts are built with InMemoryFactStore under the ``urn:test:`` namespace; every
action resolves to a RecordingAction that appends ``(action, agent)`` to a shared
log, so tests can assert on invocation order.
"""

from __future__ import annotations

from typing import Dict, List, Tuple

import pytest

from ontoschedule import vocabulary as v
from ontoschedule.actions import ActionResolver
from ontoschedule.facts import InMemoryFactStore
from ontoschedule.population import InMemoryPopulation, RunContext
from ontoschedule.schemas import ActionParameter


def ex(name: str) -> str:
    return f"urn:test:{name}"


class RecordingAction:
    """Runnable action that logs each invocation."""

    def __init__(self, name: str, log: List[Tuple[str, str]], fail_for: str | None = None) -> None:
        self.name = name
        self.log = log
        self.fail_for = fail_for

    def parameters(self) -> Dict[str, ActionParameter]:
        return {}

    def step(self, agent: str) -> None:
        if agent == self.fail_for:
            raise RuntimeError(f"{self.name} refused {agent}")
        self.log.append((self.name, agent))


class RecordingResolver(ActionResolver):
    """Resolves any identifier to a RecordingAction and counts resolutions."""

    def __init__(self) -> None:
        self.log: List[Tuple[str, str]] = []
        self.calls: Dict[str, int] = {}
        self.failing: Dict[str, str] = {}

    def resolve(self, action_id: str) -> RecordingAction:
        self.calls[action_id] = self.calls.get(action_id, 0) + 1
        return RecordingAction(
            v.local_name(action_id), self.log, fail_for=self.failing.get(action_id)
        )

    def names(self) -> List[Tuple[str, str]]:
        return [(action, v.local_name(agent)) for action, agent in self.log]


def individual(facts: InMemoryFactStore, name: str, agent: str, *extra_classes: str) -> str:
    node = ex(name)
    facts.assert_class(node, v.INDIVIDUAL_ACTION, *extra_classes)
    facts.assert_object(node, v.HAS_AGENT, ex(agent))
    return node


def sequence(facts: InMemoryFactStore, name: str, first: str, nxt: str | None = None, *extra_classes: str) -> str:
    node = ex(name)
    facts.assert_class(node, v.SEQUENTIAL_ACTION_GROUP, *extra_classes)
    facts.assert_object(node, v.HAS_FIRST_ACTION_GROUP, first)
    if nxt is not None:
        facts.assert_object(node, v.HAS_NEXT_ACTION_GROUP, nxt)
    return node


def chain(facts: InMemoryFactStore, name: str, items: List[str], *extra_classes: str) -> str:
    """Build a sequential chain over ``items`` as linked sequential groups."""
    next_link = None
    for index in range(len(items) - 1, 0, -1):
        next_link = sequence(facts, f"{name}_{index}", items[index], next_link)
    return sequence(facts, name, items[0], next_link, *extra_classes)


def recurrent(facts: InMemoryFactStore, name: str, child: str, *, repetitions=None, interval=None, classes=()) -> str:
    node = ex(name)
    facts.assert_class(node, *(classes or (v.RECURRENT_ACTION_GROUP,)))
    facts.assert_object(node, v.HAS_RECURRENT_ACTION_GROUP, child)
    if repetitions is not None:
        facts.assert_data(node, v.REPETITIONS, repetitions)
    if interval is not None:
        facts.assert_data(node, v.INTERVAL, interval)
    return node


def concurrent(facts: InMemoryFactStore, name: str, *children: str) -> str:
    node = ex(name)
    facts.assert_class(node, v.CONCURRENT_ACTION_GROUP)
    facts.assert_object(node, v.HAS_CONCURRENT_ACTIONS, *children)
    return node


def schedule(facts: InMemoryFactStore, name: str, root: str, *classes: str, stop_time=None, clock_tick=None) -> str:
    node = ex(name)
    facts.assert_class(node, *(classes or (v.SCHEDULE,)))
    facts.assert_object(node, v.HAS_ACTION_GROUP, root)
    if stop_time is not None:
        facts.assert_data(node, v.STOP_TIME, stop_time)
    if clock_tick is not None:
        facts.assert_data(node, v.CLOCK_TICK, clock_tick)
    return node


@pytest.fixture
def facts() -> InMemoryFactStore:
    return InMemoryFactStore()


@pytest.fixture
def resolver() -> RecordingResolver:
    return RecordingResolver()


@pytest.fixture
def population() -> InMemoryPopulation:
    return InMemoryPopulation()


@pytest.fixture
def context(population: InMemoryPopulation) -> RunContext:
    import random

    return RunContext(population=population, rng=random.Random(7))
