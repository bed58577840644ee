"""Unit tests for scheduled nodes: agent traversal, repetition and timing fields."""

from __future__ import annotations

import random

import pytest

from ontoschedule.comparison import tolerance_comparison
from ontoschedule.errors import ExecutionError, ScheduleError
from ontoschedule.nodes import (
    ConcurrentActionForEach,
    ConcurrentActionGroup,
    IndividualAction,
    OrderedActionForEach,
    RandomOrderActionForEach,
    RecurrentActionGroup,
    SequentialActionGroup,
)
from ontoschedule.population import InMemoryPopulation, RunContext

from conftest import RecordingAction, ex

COW = ex("Cow")
WEIGHT = ex("weight")


def herd(population: InMemoryPopulation, weights: dict[str, float]) -> None:
    for name, weight in weights.items():
        population.add_agent(ex(name), [COW], {WEIGHT: weight})


def agents_of(log) -> list[str]:
    return [agent.rsplit(":", 1)[1] for _, agent in log]


def test_for_each_resolves_agents_at_run_time(population, context):
    log = []
    node = ConcurrentActionForEach(ex("graze"), RecordingAction("graze", log), COW)
    herd(population, {"daisy": 1.0, "bella": 2.0})

    node.step(context)
    population.remove_agent(ex("daisy"))
    population.add_agent(ex("clover"), [COW])
    node.step(context)

    assert agents_of(log) == ["daisy", "bella", "bella", "clover"]


def test_random_order_draws_fresh_permutations(population):
    log = []
    node = RandomOrderActionForEach(ex("graze"), RecordingAction("graze", log), COW)
    herd(population, {name: 0.0 for name in "abcdef"})
    context = RunContext(population=population, rng=random.Random(11))

    orders = set()
    for _ in range(20):
        log.clear()
        node.step(context)
        assert sorted(agents_of(log)) == list("abcdef")
        orders.add(tuple(agents_of(log)))

    assert len(orders) > 1


def test_random_order_is_reproducible_with_same_seed(population):
    herd(population, {name: 0.0 for name in "abcdef"})
    node = RandomOrderActionForEach(ex("graze"), RecordingAction("graze", []), COW)

    first = node.agents(RunContext(population=population, rng=random.Random(3)))
    second = node.agents(RunContext(population=population, rng=random.Random(3)))

    assert first == second


def test_ordered_for_each_sorts_by_attribute(population, context):
    herd(population, {"a": 3.0, "b": 1.0, "c": 2.0})
    up = OrderedActionForEach(ex("up"), RecordingAction("up", []), COW, WEIGHT, ascending=True)
    down = OrderedActionForEach(ex("down"), RecordingAction("down", []), COW, WEIGHT, ascending=False)

    assert [ex(n) for n in "bca"] == up.agents(context)
    assert [ex(n) for n in "acb"] == down.agents(context)


def test_ordered_ties_keep_declaration_order(population):
    herd(population, {"a": 1.0, "b": 2.0, "c": 1.05, "d": 2.0})
    context = RunContext(population=population, comparison=tolerance_comparison(0.1))
    up = OrderedActionForEach(ex("up"), RecordingAction("up", []), COW, WEIGHT, ascending=True)
    down = OrderedActionForEach(ex("down"), RecordingAction("down", []), COW, WEIGHT, ascending=False)

    assert up.agents(context) == [ex(n) for n in "acbd"]
    assert down.agents(context) == [ex(n) for n in "bdac"]


def test_ordered_for_each_requires_attribute(population, context):
    herd(population, {"a": 1.0})
    population.add_agent(ex("b"), [COW])
    node = OrderedActionForEach(ex("up"), RecordingAction("up", []), COW, WEIGHT)

    with pytest.raises(ExecutionError) as exc_info:
        node.step(context)

    assert exc_info.value.agent == ex("b")
    assert isinstance(exc_info.value.underlying, LookupError)


def test_recurrent_group_repeats_child(context):
    log = []
    leaf = IndividualAction(ex("A"), RecordingAction("A", log), ex("a1"))
    group = RecurrentActionGroup(ex("R"), repetitions=3)
    group.set_child(leaf)

    group.step(context)

    assert len(log) == 3


def test_timed_recurrent_group_steps_child_once(context):
    log = []
    leaf = IndividualAction(ex("A"), RecordingAction("A", log), ex("a1"))
    group = RecurrentActionGroup(ex("R"), interval=2.0, time=0.0)
    group.set_child(leaf)

    group.step(context)

    assert group.recurs_in_time
    assert len(log) == 1


def test_sequential_children_flatten_next_chain(context):
    log = []
    a, b, c = (IndividualAction(ex(n), RecordingAction(n, log), ex("x")) for n in "ABC")
    tail = SequentialActionGroup(ex("T"))
    tail.set_first(b)
    tail.set_next(c)
    head = SequentialActionGroup(ex("H"))
    head.set_first(a)
    head.set_next(tail)

    head.step(context)

    assert head.children == (a, b, c)
    assert head.links == (a, tail)
    assert [name for name, _ in log] == ["A", "B", "C"]


def test_concurrent_group_steps_every_child(context):
    log = []
    group = ConcurrentActionGroup(ex("G"))
    for name in "AB":
        group.add_child(IndividualAction(ex(name), RecordingAction(name, log), ex("x")))

    group.step(context)

    assert [name for name, _ in log] == ["A", "B"]


def test_offer_time_first_writer_wins():
    leaf = IndividualAction(ex("A"), RecordingAction("A", []), ex("a1"))

    assert leaf.offer_time(4.0) is True
    assert leaf.offer_time(1.0) is False
    assert leaf.time == 4.0
    assert leaf.is_timed()
    assert not leaf.time_declared


@pytest.mark.parametrize(
    "kwargs, message",
    [
        ({"interval": 0.0}, "interval must be finite and positive"),
        ({"interval": float("inf")}, "interval must be finite and positive"),
        ({"repetitions": 0}, "repetitions must be positive"),
        ({}, "interval or repetitions"),
    ],
)
def test_recurrent_group_validates_parameters(kwargs, message):
    with pytest.raises(ScheduleError, match=message):
        RecurrentActionGroup(ex("R"), **kwargs)


def test_sequential_group_validates_increment():
    with pytest.raises(ScheduleError, match="increment must be finite and positive"):
        SequentialActionGroup(ex("S"), increment=-1.0)


def test_reprs():
    action = RecordingAction("A", [])

    assert repr(IndividualAction(ex("Act1"), action, ex("a1"))) == "Act1@a1"
    assert repr(ConcurrentActionForEach(ex("graze"), action, COW)) == "graze@each(Cow)"
    assert repr(OrderedActionForEach(ex("eat"), action, COW, WEIGHT, ascending=False)) == (
        "eat@each(Cow by weight desc)"
    )
