"""Tests for Schedule construction, flattening and untimed runs."""

from __future__ import annotations

import json

import pytest

from ontoschedule import vocabulary as v
from ontoschedule.config import Config
from ontoschedule.errors import ExecutionError, ScheduleError
from ontoschedule.schedule import build_all_schedules, build_schedule, load_schedule

from conftest import chain, concurrent, ex, individual, recurrent, schedule, sequence


def test_flattening_expands_recurrent_groups(facts, resolver, context):
    a = individual(facts, "A", "a1")
    b = individual(facts, "B", "b1")
    c = individual(facts, "C", "c1")
    root = chain(facts, "S", [a, recurrent(facts, "R", b, repetitions=3), c])
    sched = build_schedule(schedule(facts, "main", root), facts, resolver)

    assert [leaf.id for leaf in sched.action_list()] == [a, b, b, b, c]

    sched.run(context)
    assert [name for name, _ in resolver.log] == ["A", "B", "B", "B", "C"]


def test_end_to_end_two_step_sequence(facts, resolver, context):
    act1 = individual(facts, "Act1", "a1")
    act2 = individual(facts, "Act2", "a2")
    root = sequence(facts, "Seq", act1, act2)
    sched_id = schedule(facts, "S", root, v.NON_TIMED_SCHEDULE)

    sched = build_schedule(sched_id, facts, resolver)

    assert not sched.is_timed()
    assert sched.start_time() == 0.0
    assert [repr(leaf) for leaf in sched.action_list()] == ["Act1@a1", "Act2@a2"]
    assert sched.run(context) is None
    assert resolver.names() == [("Act1", "a1"), ("Act2", "a2")]


def test_concurrent_group_flattens_in_declaration_order(facts, resolver):
    group = concurrent(facts, "G", individual(facts, "A", "a1"), individual(facts, "B", "b1"))
    sched = build_schedule(schedule(facts, "main", group), facts, resolver)

    assert [repr(leaf) for leaf in sched.action_list()] == ["A@a1", "B@b1"]


def test_run_stops_at_first_failure(facts, resolver, context):
    a = individual(facts, "A", "a1")
    b = individual(facts, "B", "b1")
    c = individual(facts, "C", "c1")
    resolver.failing[b] = ex("b1")
    sched = build_schedule(schedule(facts, "main", chain(facts, "S", [a, b, c])), facts, resolver)

    with pytest.raises(ExecutionError) as exc_info:
        sched.run(context)

    assert exc_info.value.node_id == b
    assert exc_info.value.agent == ex("b1")
    assert isinstance(exc_info.value.__cause__, RuntimeError)
    assert resolver.names() == [("A", "a1")]


def test_execution_error_is_not_wrapped_twice(facts, context):
    from ontoschedule.actions import DictActionResolver, FunctionAction

    def explode(agent):
        raise ExecutionError(node_id="inner", agent=agent, underlying=ValueError("boom"))

    node = individual(facts, "A", "a1")
    resolver = DictActionResolver({node: FunctionAction("explode", explode)})
    sched = build_schedule(schedule(facts, "main", node), facts, resolver)

    with pytest.raises(ExecutionError) as exc_info:
        sched.run(context)

    assert exc_info.value.node_id == "inner"


def test_schedule_can_be_rerun(facts, resolver, context):
    sched = build_schedule(schedule(facts, "main", individual(facts, "A", "a1")), facts, resolver)

    sched.run(context)
    sched.run(context)

    assert resolver.names() == [("A", "a1"), ("A", "a1")]


def test_timed_schedule_cannot_be_flattened_or_run(facts, resolver, context):
    root = chain(facts, "S", [individual(facts, "A", "a1")])
    facts.assert_class(root, v.TIMED_EVENT)
    facts.assert_data(root, v.START_TIME, 5.0)
    facts.assert_data(root, v.INCREMENT, 1.0)
    sched = build_schedule(schedule(facts, "main", root, v.TIMED_SCHEDULE), facts, resolver)

    assert sched.is_timed()
    assert sched.start_time() == 5.0
    with pytest.raises(ScheduleError, match="timed action cannot be used"):
        sched.action_list()
    with pytest.raises(ScheduleError, match="stepper"):
        sched.run(context)


def test_untimed_schedule_rejects_timed_descendant(facts, resolver):
    timed_leaf = individual(facts, "B", "b1", v.TIMED_EVENT)
    facts.assert_data(timed_leaf, v.START_TIME, 1.0)
    root = chain(facts, "S", [individual(facts, "A", "a1"), timed_leaf])

    with pytest.raises(ScheduleError, match="untimed group") as exc_info:
        build_schedule(schedule(facts, "main", root, v.NON_TIMED_SCHEDULE), facts, resolver)

    assert exc_info.value.identifier == timed_leaf


def test_schedule_class_must_match_root_timing(facts, resolver):
    untimed_root = individual(facts, "A", "a1")
    timed_root = individual(facts, "B", "b1", v.TIMED_EVENT)
    facts.assert_data(timed_root, v.START_TIME, 0.0)

    with pytest.raises(ScheduleError, match="untimed root"):
        build_schedule(schedule(facts, "T", untimed_root, v.TIMED_SCHEDULE), facts, resolver)
    with pytest.raises(ScheduleError, match="timed root"):
        build_schedule(schedule(facts, "N", timed_root, v.NON_TIMED_SCHEDULE), facts, resolver)


def test_schedule_needs_root(facts, resolver):
    facts.assert_class(ex("empty"), v.SCHEDULE)

    with pytest.raises(ScheduleError, match="hasActionGroup"):
        build_schedule(ex("empty"), facts, resolver)


@pytest.mark.parametrize("prop", [v.STOP_TIME, v.CLOCK_TICK])
def test_schedule_metadata_must_be_positive(facts, resolver, prop):
    sched_id = schedule(facts, "main", individual(facts, "A", "a1"))
    facts.assert_data(sched_id, prop, 0.0)

    with pytest.raises(ScheduleError, match="finite and positive"):
        build_schedule(sched_id, facts, resolver)


def test_action_set_and_lookups(facts, resolver):
    a = individual(facts, "A", "a1")
    b = individual(facts, "B", "b1")
    root = chain(facts, "S", [a, recurrent(facts, "R", b, repetitions=2), a])
    sched = build_schedule(schedule(facts, "main", root, stop_time=10.0, clock_tick=1.0), facts, resolver)

    assert {leaf.id for leaf in sched.action_set()} == {a, b}
    assert set(sched.runnable_actions()) == {a, b}
    assert sched.parameters() == {a: {}, b: {}}
    assert sched.node_for(b).id == b
    assert sched.stop_time == 10.0 and sched.clock_tick == 1.0
    with pytest.raises(ScheduleError):
        sched.node_for(ex("elsewhere"))


def test_build_all_schedules(facts, resolver):
    shared = individual(facts, "A", "a1")
    first = schedule(facts, "first", shared)
    second = schedule(facts, "second", chain(facts, "S", [shared]), v.NON_TIMED_SCHEDULE)

    schedules = build_all_schedules(facts, resolver)

    assert list(schedules) == [first, second]
    # Separate builds never share nodes
    assert schedules[first].root is not schedules[second].root.first


def _write_facts(path):
    document = {
        "prefixes": {"ex": "urn:test:"},
        "individuals": [
            {
                "id": "ex:main",
                "classes": ["sched:NonTimedSchedule"],
                "objects": {"sched:hasActionGroup": "ex:greet"},
            },
            {
                "id": "ex:greet",
                "classes": ["sched:IndividualAction"],
                "objects": {
                    "sched:hasAgent": "ex:alice",
                    "sched:implementedBy": "ex:greetImpl",
                    "sched:hasParameters": "ex:greeting",
                },
            },
            {"id": "ex:greetImpl", "classes": ["sched:Implementation"], "data": {"sched:className": "greet"}},
            {
                "id": "ex:greeting",
                "classes": ["sched:ActionParameter"],
                "data": {"sched:parameterName": "word", "sched:parameterValue": "hello"},
            },
        ],
    }
    path.write_text(json.dumps(document))


def test_load_schedule_from_json(tmp_path, context):
    path = tmp_path / "facts.json"
    _write_facts(path)
    greeted = []

    sched = load_schedule(path, "ex:main", registry={"greet": lambda agent, word: greeted.append((agent, word))})
    sched.run(context)

    assert greeted == [("urn:test:alice", "hello")]
    assert sched.facts is not None


def test_load_schedule_uses_facts_dir(tmp_path, monkeypatch, context):
    _write_facts(tmp_path / "facts.json")
    monkeypatch.setattr(Config, "FACTS_DIR", tmp_path)

    sched = load_schedule("facts.json", "urn:test:main", registry={"greet": lambda agent, word: None})

    assert [repr(leaf) for leaf in sched.action_list()] == ["greet@alice"]


def test_bundled_example_builds(context):
    facts_path = Config.PROJECT_ROOT / "examples" / "foraging" / "facts.json"
    noop = lambda agent, **params: None
    registry = {name: noop for name in ("open_gate", "grow_grass", "graze", "wander", "count_herd")}
    ns = "urn:example:foraging#"

    setup = load_schedule(facts_path, ns + "setup", registry=registry)
    main = load_schedule(facts_path, ns + "main", registry=registry)

    assert [repr(leaf) for leaf in setup.action_list()] == [
        "openGate@farmer",
        "growGrass@field",
        "growGrass@field",
    ]
    assert main.is_timed() and main.stop_time == 5.0
    assert [(e.node.id, e.time, e.interval) for e in main.events()] == [
        (ns + "daily", 0.0, 1.0),
        (ns + "dusk", 0.5, None),
    ]
