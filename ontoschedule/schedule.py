"""
Schedule - a built root node plus schedule-level metadata.

A schedule individual in the fact store names its root with ``hasActionGroup``
and may carry ``stopTime`` and ``clockTick``. Declaring it a ``TimedSchedule``
or ``NonTimedSchedule`` additionally requires the root to be timed or untimed.

Two ways to execute a built schedule:
- untimed: ``schedule.run(context)`` walks ``action_list()`` in order and stops at
  the first failing action
- timed: ``schedule.events()`` gives the node/time/interval registrations for a
  clock-driven engine such as stepper.TimedStepper

Usage:
    facts = JsonFactStore("examples/foraging/facts.json")
    schedule = build_schedule("urn:example:foraging#main", facts, resolver)
    schedule.run(RunContext(population=FactPopulation(facts)))
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, FrozenSet, List, Mapping, Optional, Union

from .actions import ActionResolver, RegistryActionResolver, RunnableAction
from .builder import ScheduleBuilder
from .config import Config
from .errors import ScheduleError
from .facts import FactQueryPort, JsonFactStore
from .logging_utils import trace_action
from .nodes import (
    ConcurrentActionGroup,
    LeafAction,
    RecurrentActionGroup,
    ScheduledNode,
    SequentialActionGroup,
    check_positive,
)
from .population import RunContext
from .schemas import ActionParameter
from .stepper import TimedEvent
from .vocabulary import (
    CLOCK_TICK,
    HAS_ACTION_GROUP,
    NON_TIMED_SCHEDULE,
    SCHEDULE_CLASSES,
    STOP_TIME,
    TIMED_SCHEDULE,
    local_name,
)


class Schedule:
    """A built, frozen schedule.

    Attributes:
        id: Identifier of the schedule individual
        root: Root node of the built graph
        stop_time: Time at which timed execution stops (None if not declared)
        clock_tick: Length of one clock tick (None if not declared)
        facts: Fact store the schedule was built from, if known
    """

    def __init__(
        self,
        schedule_id: str,
        root: ScheduledNode,
        *,
        stop_time: Optional[float] = None,
        clock_tick: Optional[float] = None,
        nodes: Optional[Mapping[str, ScheduledNode]] = None,
        facts: Optional[FactQueryPort] = None,
    ) -> None:
        self.id = schedule_id
        self.root = root
        self.stop_time = stop_time
        self.clock_tick = clock_tick
        self.facts = facts
        self._nodes: Dict[str, ScheduledNode] = dict(nodes or {root.id: root})

    def __repr__(self) -> str:
        mode = "timed" if self.is_timed() else "untimed"
        return f"Schedule({local_name(self.id)}, {mode}, root={self.root!r})"

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def is_timed(self) -> bool:
        return self.root.is_timed()

    def start_time(self) -> float:
        """Root's time, or 0 for an untimed schedule."""
        return self.root.time if self.root.time is not None else 0.0

    def nodes(self) -> Dict[str, ScheduledNode]:
        return dict(self._nodes)

    def node_for(self, identifier: str) -> ScheduledNode:
        try:
            return self._nodes[identifier]
        except KeyError:
            raise ScheduleError(identifier, f"is not part of schedule {self.id}") from None

    def action_list(self) -> List[LeafAction]:
        """Leaves in run order, with recurrent groups expanded.

        Raises:
            ScheduleError: If the schedule (or anything in it) is timed
        """
        return self.root.action_list()

    def action_set(self) -> FrozenSet[LeafAction]:
        """Every distinct leaf reachable from the root."""
        return frozenset(self.root.leaves())

    def runnable_actions(self) -> Dict[str, RunnableAction]:
        return {leaf.id: leaf.action for leaf in self.root.leaves()}

    def parameters(self) -> Dict[str, Dict[str, ActionParameter]]:
        """Parameters of every distinct leaf's action, keyed by leaf identifier."""
        return {leaf.id: leaf.action.parameters() for leaf in self.root.leaves()}

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    def run(self, context: RunContext) -> None:
        """Run an untimed schedule straight through.

        The first action failure aborts the run and propagates as ExecutionError.
        The built graph is untouched, so the schedule can be run again.
        """
        if self.is_timed():
            raise ScheduleError(self.id, "timed schedule must be driven by a stepper, use events()")
        for leaf in self.action_list():
            leaf.step(context)
        trace_action(f"{local_name(self.id)} finished")

    def events(self) -> List[TimedEvent]:
        """Registrations for a time-driven engine, in declaration order.

        Sequential and concurrent groups are expanded into their children; a
        recurrent group is registered once, with its interval when it has one;
        leaves are registered at their own time.
        """
        if not self.is_timed():
            raise ScheduleError(self.id, "untimed schedule has no timed events, use run()")

        events: List[TimedEvent] = []

        def register(node: ScheduledNode) -> None:
            if isinstance(node, (SequentialActionGroup, ConcurrentActionGroup)):
                for child in node.children:
                    register(child)
                return
            if node.time is None:
                raise ScheduleError(node.id, "untimed node reached in a timed schedule")
            interval = None
            if isinstance(node, RecurrentActionGroup) and node.recurs_in_time:
                interval = node.interval
            events.append(
                TimedEvent(
                    time=node.time,
                    sequence=len(events),
                    node=node,
                    interval=interval,
                    origin=node.time,
                )
            )

        register(self.root)
        return events


def build_schedule(
    schedule_id: str,
    facts: FactQueryPort,
    resolver: ActionResolver,
) -> Schedule:
    """Build the schedule individual ``schedule_id``.

    Raises:
        ScheduleError: If the schedule or any node in it is structurally invalid
        ResolutionError: If an action cannot be bound to an implementation
    """
    root_id = facts.functional_object_property_of(schedule_id, HAS_ACTION_GROUP)
    if root_id is None:
        raise ScheduleError(schedule_id, "schedule has no hasActionGroup")

    stop_time = facts.double_data_property_of(schedule_id, STOP_TIME)
    if stop_time is not None:
        stop_time = check_positive(schedule_id, stop_time, "stopTime")
    clock_tick = facts.double_data_property_of(schedule_id, CLOCK_TICK)
    if clock_tick is not None:
        clock_tick = check_positive(schedule_id, clock_tick, "clockTick")

    builder = ScheduleBuilder(facts, resolver)
    root = builder.build(root_id)

    classes = facts.classes_of(schedule_id)
    if TIMED_SCHEDULE in classes and not root.is_timed():
        raise ScheduleError(schedule_id, f"TimedSchedule has an untimed root {root_id}")
    if NON_TIMED_SCHEDULE in classes and root.is_timed():
        raise ScheduleError(schedule_id, f"NonTimedSchedule has a timed root {root_id}")

    return Schedule(
        schedule_id,
        root,
        stop_time=stop_time,
        clock_tick=clock_tick,
        nodes=builder.nodes,
        facts=facts,
    )


def build_all_schedules(facts: FactQueryPort, resolver: ActionResolver) -> Dict[str, Schedule]:
    """Build every individual asserted to be a schedule, each with its own memo table."""
    schedule_ids: Dict[str, None] = {}
    for class_id in SCHEDULE_CLASSES:
        for schedule_id in facts.members_of(class_id):
            schedule_ids.setdefault(schedule_id, None)
    return {
        schedule_id: build_schedule(schedule_id, facts, resolver)
        for schedule_id in schedule_ids
    }


def load_schedule(
    path: Union[str, Path],
    schedule_id: str,
    *,
    resolver: Optional[ActionResolver] = None,
    registry: Optional[Mapping[str, Any]] = None,
) -> Schedule:
    """Load a JSON fact file and build one schedule from it.

    Relative paths that don't exist are looked up under Config.FACTS_DIR. Without
    an explicit resolver, actions are resolved from implementedBy facts through
    RegistryActionResolver(registry).

    Raises:
        FileNotFoundError: If the fact file cannot be found
    """
    fact_path = Path(path)
    if not fact_path.is_absolute() and not fact_path.exists():
        fact_path = Config.FACTS_DIR / fact_path

    facts = JsonFactStore(fact_path)
    if resolver is None:
        resolver = RegistryActionResolver(facts, registry)
    return build_schedule(facts.expand(schedule_id), facts, resolver)
