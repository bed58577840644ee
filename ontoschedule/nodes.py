"""
Scheduled node model.

A built schedule is a graph of ScheduledNode objects, one per fact-store
individual. Leaves wrap a resolved RunnableAction; composites arrange other
nodes. Node kinds:

1. IndividualAction - one action performed by one named agent
2. ActionForEach - one action performed by every current member of an agent class
   (ConcurrentActionForEach, RandomOrderActionForEach, OrderedActionForEach)
3. ConcurrentActionGroup - children with no ordering among them
4. RecurrentActionGroup - one child repeated (every ``interval`` if timed,
   ``repetitions`` times otherwise)
5. SequentialActionGroup - a chain ``first`` -> ``next`` run in order, with an
   optional ``increment`` separating the start times of successive children

Mutability:
- Structure and ``time`` are filled in by ScheduleBuilder and then frozen.
- ``time`` follows first-writer-wins: offer_time() only sets a time the node
  does not have yet.
- Nothing on a node changes while running. For-each agent sets, random
  permutations and comparisons all come from the RunContext passed to step().
"""

from __future__ import annotations

import math
from abc import ABC, abstractmethod
from functools import cmp_to_key
from typing import Dict, List, Optional, Tuple

from .actions import RunnableAction
from .errors import ExecutionError, ScheduleError
from .logging_utils import trace_action
from .population import RunContext
from .vocabulary import NodeKind, local_name


def check_time(identifier: str, value: float, what: str = "startTime") -> float:
    """Return ``value`` as a float if it is a finite, non-negative time."""
    value = float(value)
    if not math.isfinite(value) or value < 0:
        raise ScheduleError(identifier, f"{what} must be finite and non-negative, got {value}")
    return value


def check_positive(identifier: str, value: float, what: str) -> float:
    value = float(value)
    if not math.isfinite(value) or value <= 0:
        raise ScheduleError(identifier, f"{what} must be finite and positive, got {value}")
    return value


class ScheduledNode(ABC):
    """Base class for every node in a built schedule graph.

    Attributes:
        id: Fact-store individual the node was built from
        time_declared: True when the node carries its own startTime
        timed_event: True when the node is asserted to be a timed event
    """

    kind: NodeKind

    def __init__(
        self,
        node_id: str,
        *,
        time: Optional[float] = None,
        timed_event: bool = False,
    ) -> None:
        self.id = node_id
        self._time: Optional[float] = None
        self.time_declared = time is not None
        self.timed_event = timed_event
        self._frozen = False
        if time is not None:
            self._time = check_time(node_id, time)

    # ------------------------------------------------------------------
    # Timing
    # ------------------------------------------------------------------

    @property
    def time(self) -> Optional[float]:
        return self._time

    def is_timed(self) -> bool:
        return self._time is not None

    def offer_time(self, time: float) -> bool:
        """Set ``time`` unless the node already has one. Return True if it changed."""
        if self._time is not None:
            return False
        self._check_mutable("time")
        self._time = check_time(self.id, time)
        return True

    # ------------------------------------------------------------------
    # Structure
    # ------------------------------------------------------------------

    @property
    def is_leaf(self) -> bool:
        return self.kind.is_leaf

    @property
    def children(self) -> Tuple["ScheduledNode", ...]:
        return ()

    @property
    def frozen(self) -> bool:
        return self._frozen

    def freeze(self) -> None:
        self._frozen = True

    def _check_mutable(self, what: str) -> None:
        if self._frozen:
            raise ScheduleError(self.id, f"cannot change {what} after the schedule is built")

    def leaves(self) -> List["LeafAction"]:
        """Return the distinct leaves reachable from this node, in first-seen order."""
        found: Dict[str, LeafAction] = {}
        stack: List[ScheduledNode] = [self]
        seen: set[str] = set()
        while stack:
            node = stack.pop()
            if node.id in seen:
                continue
            seen.add(node.id)
            if isinstance(node, LeafAction):
                found.setdefault(node.id, node)
            stack.extend(reversed(node.children))
        return list(found.values())

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    def action_list(self) -> List["LeafAction"]:
        """Flatten an untimed node into the run order of its leaves.

        Raises:
            ScheduleError: If this node or any descendant is timed
        """
        if self.is_timed():
            raise ScheduleError(self.id, "timed action cannot be used to generate an action list")
        return self._action_list()

    @abstractmethod
    def _action_list(self) -> List["LeafAction"]:
        ...

    @abstractmethod
    def step(self, context: RunContext) -> None:
        """Run the node body once at the current instant."""


# ============================================================================
# Leaves
# ============================================================================


class LeafAction(ScheduledNode):
    """A node wrapping one resolved action."""

    def __init__(self, node_id: str, action: RunnableAction, **kwargs) -> None:
        super().__init__(node_id, **kwargs)
        self.action = action

    @abstractmethod
    def agents(self, context: RunContext) -> List[str]:
        """Return the agents to act for, in the order they should act."""

    def invoke(self, agent: str) -> None:
        trace_action(f"{self!r} -> {agent}")
        try:
            self.action.step(agent)
        except ExecutionError:
            raise
        except Exception as exc:
            raise ExecutionError(node_id=self.id, agent=agent, underlying=exc) from exc

    def step(self, context: RunContext) -> None:
        for agent in self.agents(context):
            self.invoke(agent)

    def _action_list(self) -> List["LeafAction"]:
        return [self]


class IndividualAction(LeafAction):
    """One action performed by a single agent."""

    kind = NodeKind.INDIVIDUAL

    def __init__(self, node_id: str, action: RunnableAction, agent: str, **kwargs) -> None:
        super().__init__(node_id, action, **kwargs)
        self.agent = agent

    def agents(self, context: RunContext) -> List[str]:
        return [self.agent]

    def __repr__(self) -> str:
        return f"{local_name(self.id)}@{local_name(self.agent)}"


class ActionForEach(LeafAction):
    """One action performed by every member of an agent class.

    Membership is looked up in the context's population each time the node
    runs, so agents created or removed between runs are respected.
    """

    def __init__(self, node_id: str, action: RunnableAction, agent_class: str, **kwargs) -> None:
        super().__init__(node_id, action, **kwargs)
        self.agent_class = agent_class

    def members(self, context: RunContext) -> List[str]:
        return list(context.population.members_of(self.agent_class))

    def __repr__(self) -> str:
        return f"{local_name(self.id)}@each({local_name(self.agent_class)})"


class ConcurrentActionForEach(ActionForEach):
    """Agents act with no ordering constraint among them (population order is used)."""

    kind = NodeKind.CONCURRENT_FOR_EACH

    def agents(self, context: RunContext) -> List[str]:
        return self.members(context)


class RandomOrderActionForEach(ActionForEach):
    """Agents act in a fresh uniformly random permutation on every run."""

    kind = NodeKind.RANDOM_ORDER_FOR_EACH

    def agents(self, context: RunContext) -> List[str]:
        members = self.members(context)
        context.rng.shuffle(members)
        return members


class OrderedActionForEach(ActionForEach):
    """Agents act sorted by a numeric attribute.

    Values are compared with ``context.comparison``. Agents it declares equal
    keep the population's declaration order, in both directions.
    """

    def __init__(
        self,
        node_id: str,
        action: RunnableAction,
        agent_class: str,
        sort_attribute: str,
        ascending: bool = True,
        **kwargs,
    ) -> None:
        super().__init__(node_id, action, agent_class, **kwargs)
        self.sort_attribute = sort_attribute
        self.ascending = ascending

    @property
    def kind(self) -> NodeKind:  # type: ignore[override]
        return NodeKind.ASCENDING_FOR_EACH if self.ascending else NodeKind.DESCENDING_FOR_EACH

    def agents(self, context: RunContext) -> List[str]:
        values: Dict[str, float] = {}
        for agent in self.members(context):
            value = context.population.attribute_of(agent, self.sort_attribute)
            if value is None:
                raise ExecutionError(
                    node_id=self.id,
                    agent=agent,
                    underlying=LookupError(f"agent has no value for {self.sort_attribute}"),
                )
            values[agent] = value

        compare = context.comparison
        if self.ascending:
            def by_value(a: str, b: str) -> int:
                return compare(values[a], values[b])
        else:
            def by_value(a: str, b: str) -> int:
                return compare(values[b], values[a])

        # sorted() is stable, so ties keep declaration order
        return sorted(values, key=cmp_to_key(by_value))

    def __repr__(self) -> str:
        direction = "asc" if self.ascending else "desc"
        return (
            f"{local_name(self.id)}@each({local_name(self.agent_class)}"
            f" by {local_name(self.sort_attribute)} {direction})"
        )


# ============================================================================
# Groups
# ============================================================================


class ConcurrentActionGroup(ScheduledNode):
    """Children with no ordering among them.

    Only leaves and other concurrent groups may be children; sequential and
    recurrent groups carry an ordering a concurrent set cannot honour.
    """

    kind = NodeKind.CONCURRENT_GROUP

    def __init__(self, node_id: str, **kwargs) -> None:
        super().__init__(node_id, **kwargs)
        self._children: List[ScheduledNode] = []

    @property
    def children(self) -> Tuple[ScheduledNode, ...]:
        return tuple(self._children)

    def add_child(self, child: ScheduledNode) -> None:
        self._check_mutable("children")
        if not (child.is_leaf or child.kind is NodeKind.CONCURRENT_GROUP):
            raise ScheduleError(
                self.id,
                f"hasConcurrentActions {child.id} is a {child.kind.value}; "
                "only actions and concurrent groups may run concurrently",
            )
        if all(existing.id != child.id for existing in self._children):
            self._children.append(child)

    def step(self, context: RunContext) -> None:
        for child in self._children:
            child.step(context)

    def _action_list(self) -> List["LeafAction"]:
        result: List[LeafAction] = []
        for child in self._children:
            result.extend(child.action_list())
        return result

    def __repr__(self) -> str:
        return f"Concurrent({local_name(self.id)})"


class RecurrentActionGroup(ScheduledNode):
    """One child repeated.

    Timed with an ``interval``: the child runs at ``time``, ``time + interval``
    and so on, driven by the stepper. Otherwise the child runs ``repetitions``
    times back to back each time the group runs.
    """

    kind = NodeKind.RECURRENT_GROUP

    def __init__(
        self,
        node_id: str,
        *,
        interval: Optional[float] = None,
        repetitions: Optional[int] = None,
        **kwargs,
    ) -> None:
        super().__init__(node_id, **kwargs)
        if interval is None and repetitions is None:
            raise ScheduleError(node_id, "recurrent group needs an interval or repetitions")
        self.interval = check_positive(node_id, interval, "interval") if interval is not None else None
        if repetitions is not None and repetitions < 1:
            raise ScheduleError(node_id, f"repetitions must be positive, got {repetitions}")
        self.repetitions = repetitions
        self._child: Optional[ScheduledNode] = None

    @property
    def child(self) -> ScheduledNode:
        if self._child is None:
            raise ScheduleError(self.id, "recurrent group has no hasRecurrentActionGroup")
        return self._child

    def set_child(self, child: ScheduledNode) -> None:
        self._check_mutable("child")
        self._child = child

    @property
    def children(self) -> Tuple[ScheduledNode, ...]:
        return (self._child,) if self._child is not None else ()

    @property
    def recurs_in_time(self) -> bool:
        return self.is_timed() and self.interval is not None

    def step(self, context: RunContext) -> None:
        count = 1 if self.recurs_in_time else (self.repetitions or 1)
        for _ in range(count):
            self.child.step(context)

    def _action_list(self) -> List["LeafAction"]:
        if self.repetitions is None:
            raise ScheduleError(self.id, "untimed recurrent group needs repetitions")
        return self.child.action_list() * self.repetitions

    def __repr__(self) -> str:
        if self.interval is not None:
            return f"Recurrent({local_name(self.id)}, every {self.interval})"
        return f"Recurrent({local_name(self.id)}, x{self.repetitions})"


class SequentialActionGroup(ScheduledNode):
    """A chain of nodes run in order: ``first``, then ``next``.

    ``next`` is usually another sequential group, whose own chain continues the
    sequence; ``children`` flattens the whole chain. In a timed sequence with
    an ``increment``, position k starts at ``time + k * increment``. A ``first``
    that is itself a sequence takes the same increment and fills one position
    per node in its own chain.
    """

    kind = NodeKind.SEQUENTIAL_GROUP

    def __init__(self, node_id: str, *, increment: Optional[float] = None, **kwargs) -> None:
        super().__init__(node_id, **kwargs)
        self.increment = check_positive(node_id, increment, "increment") if increment is not None else None
        self.increment_declared = increment is not None
        self._first: Optional[ScheduledNode] = None
        self._next: Optional[ScheduledNode] = None

    @property
    def first(self) -> ScheduledNode:
        if self._first is None:
            raise ScheduleError(self.id, "sequential group has no hasFirstActionGroup")
        return self._first

    @property
    def next(self) -> Optional[ScheduledNode]:
        return self._next

    def set_first(self, node: ScheduledNode) -> None:
        self._check_mutable("first")
        self._first = node

    def set_next(self, node: Optional[ScheduledNode]) -> None:
        self._check_mutable("next")
        self._next = node

    def adopt_increment(self, increment: float) -> bool:
        """Take the increment of the sequence this one continues. Return True if it changed."""
        if self.increment is not None:
            if self.increment != increment:
                raise ScheduleError(
                    self.id,
                    f"increment {self.increment} differs from the {increment} of the sequence it continues",
                )
            return False
        self._check_mutable("increment")
        self.increment = check_positive(self.id, increment, "increment")
        return True

    @property
    def links(self) -> Tuple[ScheduledNode, ...]:
        """Direct links only: ``first`` and, when present, ``next``."""
        if self._first is None:
            return ()
        return (self._first,) if self._next is None else (self._first, self._next)

    @property
    def children(self) -> Tuple[ScheduledNode, ...]:
        if self._first is None:
            return ()
        chain: List[ScheduledNode] = [self._first]
        if isinstance(self._next, SequentialActionGroup):
            chain.extend(self._next.children)
        elif self._next is not None:
            chain.append(self._next)
        return tuple(chain)

    @property
    def span(self) -> int:
        """Number of time positions the chain occupies; a nested sequence counts its own span."""
        return sum(position_count(child) for child in self.children)

    @property
    def first_span(self) -> int:
        return position_count(self.first)

    def step(self, context: RunContext) -> None:
        for child in self.children:
            child.step(context)

    def _action_list(self) -> List["LeafAction"]:
        result: List[LeafAction] = []
        for child in self.children:
            result.extend(child.action_list())
        return result

    def __repr__(self) -> str:
        if self.increment is not None:
            return f"Sequential({local_name(self.id)}, +{self.increment})"
        return f"Sequential({local_name(self.id)})"


def position_count(node: ScheduledNode) -> int:
    return node.span if isinstance(node, SequentialActionGroup) else 1
