"""
ScheduleBuilder - turns fact-store declarations into a scheduled node graph.

The build runs in two phases over one memo table:

Phase 1 (structure): starting at the root identifier, each individual's class
set is reduced to one NodeKind (vocabulary.classify) and dispatched to the
matching constructor. Composites are put in the memo table *before* their
children are built, so an identifier referenced from several parents is built
exactly once, and a reference back to an ancestor returns the partially built
node instead of recursing forever. Individuals asserted as timed events are
collected in a pending list.

Phase 2 (timing): one depth-first pass from the root offers each child the
time its parent implies:
- sequential group at t with increment d: position k gets t + k*d; a first
  link that is itself a sequence takes d and fills one position per node in
  its chain, and the next link starts after them
- sequential group at t without increment: every child gets t
- concurrent group at t: every child gets t
- recurrent group at t: its child gets t
A node keeps the first time it is given (offer_time never overwrites), and the
pass only descends into a node again if its time changed on this visit.

Then the deferred checks run (every pending timed event must have ended up
with a time, plus the rules that depend on resolved timing) and every node is
frozen. The deferred checks also reject a timed node held by an untimed group,
and a timed recurrent group whose body would spread over time (a sequence with
an increment or a recurrent group with an interval), since the group replays
the whole body at each firing. Any failure raises; a partially built graph is
never returned.
"""

from __future__ import annotations

from typing import Callable, Dict, List, Optional, Set

from .actions import ActionResolver
from .errors import ScheduleError
from .facts import FactQueryPort
from .logging_utils import trace_build
from .nodes import (
    ConcurrentActionForEach,
    ConcurrentActionGroup,
    IndividualAction,
    OrderedActionForEach,
    RandomOrderActionForEach,
    RecurrentActionGroup,
    ScheduledNode,
    SequentialActionGroup,
)
from .vocabulary import (
    HAS_AGENT,
    HAS_AGENT_CLASS,
    HAS_CONCURRENT_ACTIONS,
    HAS_FIRST_ACTION_GROUP,
    HAS_NEXT_ACTION_GROUP,
    HAS_RECURRENT_ACTION_GROUP,
    INCREMENT,
    INTERVAL,
    ORDERED_BY,
    REPETITIONS,
    START_TIME,
    NodeKind,
    classify,
    is_timed_event,
    local_name,
)


class ScheduleBuilder:
    """Build scheduled node graphs from a fact store.

    A builder may be reused; each call to build() starts with an empty memo
    table, so nothing is shared between two builds.

    Example:
        builder = ScheduleBuilder(facts, resolver)
        root = builder.build("urn:example:day")
        builder.nodes  # every node of that build, keyed by identifier
    """

    def __init__(self, facts: FactQueryPort, resolver: ActionResolver) -> None:
        self.facts = facts
        self.resolver = resolver
        self._memo: Dict[str, ScheduledNode] = {}
        self._pending: List[ScheduledNode] = []
        self._constructors: Dict[NodeKind, Callable[[str, Optional[float], bool], ScheduledNode]] = {
            NodeKind.INDIVIDUAL: self._individual_action,
            NodeKind.CONCURRENT_FOR_EACH: self._concurrent_for_each,
            NodeKind.RANDOM_ORDER_FOR_EACH: self._random_order_for_each,
            NodeKind.ASCENDING_FOR_EACH: self._ascending_for_each,
            NodeKind.DESCENDING_FOR_EACH: self._descending_for_each,
            NodeKind.CONCURRENT_GROUP: self._concurrent_group,
            NodeKind.RECURRENT_GROUP: self._recurrent_group,
            NodeKind.SEQUENTIAL_GROUP: self._sequential_group,
        }

    @property
    def nodes(self) -> Dict[str, ScheduledNode]:
        """Nodes of the most recent build, keyed by identifier."""
        return dict(self._memo)

    def build(self, root_id: str) -> ScheduledNode:
        """Build, time and freeze the graph rooted at ``root_id``.

        Raises:
            ScheduleError: If any node is structurally invalid
            ResolutionError: If a leaf's action cannot be resolved
        """
        self._memo = {}
        self._pending = []
        try:
            root = self._build(root_id)
            self._check_acyclic(root)
            self._resolve_times(root)
            self._validate()
        except Exception:
            self._memo = {}
            raise
        finally:
            self._pending = []

        for node in self._memo.values():
            node.freeze()
        trace_build(f"built {root!r} ({len(self._memo)} nodes)")
        return root

    # ------------------------------------------------------------------
    # Phase 1: structure
    # ------------------------------------------------------------------

    def _build(self, node_id: str) -> ScheduledNode:
        memoized = self._memo.get(node_id)
        if memoized is not None:
            return memoized

        classes = self.facts.classes_of(node_id)
        kind = classify(node_id, classes)
        timed_event = is_timed_event(classes)
        start_time = self.facts.double_data_property_of(node_id, START_TIME) if timed_event else None

        node = self._constructors[kind](node_id, start_time, timed_event)
        if timed_event:
            self._pending.append(node)
        return node

    def _register(self, node: ScheduledNode) -> ScheduledNode:
        self._memo[node.id] = node
        when = f" at {node.time}" if node.time is not None else ""
        trace_build(f"{node.kind.value} {local_name(node.id)}{when}")
        return node

    def _reference(self, node_id: str, prop: str, *, required: bool = True) -> Optional[str]:
        # Agent, agent class and sort attribute may be linked or given as an IRI string
        value = self.facts.functional_object_property_of(node_id, prop)
        if value is None:
            value = self.facts.string_data_property_of(node_id, prop)
        if value is None and required:
            raise ScheduleError(node_id, f"missing required relation {local_name(prop)}")
        return value

    def _individual_action(self, node_id: str, start: Optional[float], timed: bool) -> ScheduledNode:
        agent = self._reference(node_id, HAS_AGENT)
        action = self.resolver.resolve(node_id)
        return self._register(
            IndividualAction(node_id, action, agent, time=start, timed_event=timed)
        )

    def _concurrent_for_each(self, node_id: str, start: Optional[float], timed: bool) -> ScheduledNode:
        agent_class = self._reference(node_id, HAS_AGENT_CLASS)
        action = self.resolver.resolve(node_id)
        return self._register(
            ConcurrentActionForEach(node_id, action, agent_class, time=start, timed_event=timed)
        )

    def _random_order_for_each(self, node_id: str, start: Optional[float], timed: bool) -> ScheduledNode:
        agent_class = self._reference(node_id, HAS_AGENT_CLASS)
        action = self.resolver.resolve(node_id)
        return self._register(
            RandomOrderActionForEach(node_id, action, agent_class, time=start, timed_event=timed)
        )

    def _ordered_for_each(
        self, node_id: str, start: Optional[float], timed: bool, ascending: bool
    ) -> ScheduledNode:
        agent_class = self._reference(node_id, HAS_AGENT_CLASS)
        sort_attribute = self._reference(node_id, ORDERED_BY)
        action = self.resolver.resolve(node_id)
        return self._register(
            OrderedActionForEach(
                node_id,
                action,
                agent_class,
                sort_attribute,
                ascending=ascending,
                time=start,
                timed_event=timed,
            )
        )

    def _ascending_for_each(self, node_id: str, start: Optional[float], timed: bool) -> ScheduledNode:
        return self._ordered_for_each(node_id, start, timed, ascending=True)

    def _descending_for_each(self, node_id: str, start: Optional[float], timed: bool) -> ScheduledNode:
        return self._ordered_for_each(node_id, start, timed, ascending=False)

    def _concurrent_group(self, node_id: str, start: Optional[float], timed: bool) -> ScheduledNode:
        child_ids = self.facts.object_property_of(node_id, HAS_CONCURRENT_ACTIONS)
        if not child_ids:
            raise ScheduleError(node_id, "concurrent group has no hasConcurrentActions")

        group = ConcurrentActionGroup(node_id, time=start, timed_event=timed)
        self._register(group)
        for child_id in child_ids:
            group.add_child(self._build(child_id))
        return group

    def _recurrent_group(self, node_id: str, start: Optional[float], timed: bool) -> ScheduledNode:
        interval = self.facts.double_data_property_of(node_id, INTERVAL)
        repetitions = self.facts.integer_data_property_of(node_id, REPETITIONS)
        if timed and interval is None:
            raise ScheduleError(node_id, "timed recurrent group has no interval")
        child_id = self.facts.functional_object_property_of(node_id, HAS_RECURRENT_ACTION_GROUP)
        if child_id is None:
            raise ScheduleError(node_id, "recurrent group has no hasRecurrentActionGroup")

        group = RecurrentActionGroup(
            node_id,
            interval=interval,
            repetitions=repetitions,
            time=start,
            timed_event=timed,
        )
        self._register(group)
        child = self._build(child_id)
        if child.time_declared:
            raise ScheduleError(
                node_id,
                f"hasRecurrentActionGroup {child.id} declares its own startTime; "
                "the repeated child inherits the group's time",
            )
        group.set_child(child)
        return group

    def _sequential_group(self, node_id: str, start: Optional[float], timed: bool) -> ScheduledNode:
        increment = self.facts.double_data_property_of(node_id, INCREMENT)
        first_id = self.facts.functional_object_property_of(node_id, HAS_FIRST_ACTION_GROUP)
        if first_id is None:
            raise ScheduleError(node_id, "sequential group has no hasFirstActionGroup")
        next_id = self.facts.functional_object_property_of(node_id, HAS_NEXT_ACTION_GROUP)

        group = SequentialActionGroup(node_id, increment=increment, time=start, timed_event=timed)
        self._register(group)
        group.set_first(self._build(first_id))
        if next_id is not None:
            group.set_next(self._build(next_id))
        return group

    def _check_acyclic(self, root: ScheduledNode) -> None:
        on_path: Set[str] = set()
        done: Set[str] = set()

        def visit(node: ScheduledNode) -> None:
            if node.id in done:
                return
            if node.id in on_path:
                raise ScheduleError(node.id, "is reachable from itself; schedules must be acyclic")
            on_path.add(node.id)
            links = node.links if isinstance(node, SequentialActionGroup) else node.children
            for child in links:
                visit(child)
            on_path.discard(node.id)
            done.add(node.id)

        visit(root)

    # ------------------------------------------------------------------
    # Phase 2: timing
    # ------------------------------------------------------------------

    def _resolve_times(self, root: ScheduledNode) -> None:
        visited: Set[str] = set()

        def offer(child: ScheduledNode, time: Optional[float], force: bool = False) -> None:
            changed = time is not None and child.offer_time(time)
            if changed:
                trace_build(f"{local_name(child.id)} inherits time {child.time}")
            if changed or force or child.id not in visited:
                visit(child)

        def visit(node: ScheduledNode) -> None:
            visited.add(node.id)
            time = node.time
            if isinstance(node, SequentialActionGroup):
                stepping = time is not None and node.increment is not None
                adopted = False
                if stepping and isinstance(node.first, SequentialActionGroup):
                    adopted = node.first.adopt_increment(node.increment)
                offer(node.first, time, force=adopted)
                if node.next is not None:
                    next_time = time
                    adopted = False
                    if stepping:
                        next_time = time + node.first_span * node.increment
                        if isinstance(node.next, SequentialActionGroup):
                            adopted = node.next.adopt_increment(node.increment)
                    offer(node.next, next_time, force=adopted)
            else:
                for child in node.children:
                    offer(child, time)

        offer(root, None)

    def _validate(self) -> None:
        for node in self._pending:
            if not node.is_timed():
                raise ScheduleError(
                    node.id,
                    "is declared a timed event but no startTime was given or inherited",
                )
        for node in self._memo.values():
            if isinstance(node, RecurrentActionGroup):
                if not node.is_timed() and node.repetitions is None:
                    raise ScheduleError(node.id, "untimed recurrent group has no repetitions")
            elif isinstance(node, SequentialActionGroup):
                if node.timed_event and node.increment is None:
                    raise ScheduleError(node.id, "timed event sequence has no increment")
        for node in self._memo.values():
            if node.is_leaf or node.is_timed():
                continue
            links = node.links if isinstance(node, SequentialActionGroup) else node.children
            for child in links:
                if child.is_timed():
                    raise ScheduleError(
                        child.id,
                        f"is timed but sits in the untimed group {local_name(node.id)}",
                    )
        for node in self._memo.values():
            if isinstance(node, RecurrentActionGroup) and node.recurs_in_time:
                self._check_repeated_body(node)

    def _check_repeated_body(self, group: RecurrentActionGroup) -> None:
        """A timed recurrent group replays its whole body at each firing, so the
        body may not spread itself over time."""
        seen: Set[str] = set()
        stack: List[ScheduledNode] = [group.child]
        while stack:
            node = stack.pop()
            if node.id in seen:
                continue
            seen.add(node.id)
            if isinstance(node, SequentialActionGroup) and node.increment is not None:
                raise ScheduleError(
                    node.id,
                    f"has an increment but repeats inside the timed recurrent group {local_name(group.id)}",
                )
            if isinstance(node, RecurrentActionGroup) and node.interval is not None:
                raise ScheduleError(
                    node.id,
                    f"has an interval but repeats inside the timed recurrent group {local_name(group.id)}",
                )
            stack.extend(node.links if isinstance(node, SequentialActionGroup) else node.children)
