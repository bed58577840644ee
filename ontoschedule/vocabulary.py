"""
Schedule vocabulary: class and property identifiers understood by the builder.

Identifiers are IRIs under ``urn:ontoschedule:schedule#``. Fact files may use the
``sched:`` CURIE prefix for them (see JsonFactStore).

The builder never chains type tests over a node's classes. Each recognised
class maps to exactly one NodeKind through KIND_BY_CLASS, and classify()
reduces an individual's class set to a single kind.
"""

from __future__ import annotations

from enum import Enum
from typing import Dict, FrozenSet, Iterable, Tuple

from .errors import ScheduleError

NAMESPACE = "urn:ontoschedule:schedule#"
PREFIX = "sched"

XSD = "http://www.w3.org/2001/XMLSchema#"


def iri(local_name: str) -> str:
    """Return the full vocabulary IRI for a local name."""
    return NAMESPACE + local_name


def local_name(identifier: str) -> str:
    """Strip the namespace (or any ``#``/``/`` prefix) from an identifier."""
    for separator in ("#", "/", ":"):
        if separator in identifier:
            identifier = identifier.rsplit(separator, 1)[1]
    return identifier


# ============================================================================
# Classes
# ============================================================================

INDIVIDUAL_ACTION = iri("IndividualAction")
CONCURRENT_ACTION_FOR_EACH = iri("ConcurrentActionForEach")
RANDOM_ORDER_ACTION_FOR_EACH = iri("RandomOrderActionForEach")
ASCENDING_ORDER_ACTION_FOR_EACH = iri("AscendingOrderActionForEach")
DESCENDING_ORDER_ACTION_FOR_EACH = iri("DescendingOrderActionForEach")

CONCURRENT_ACTION_GROUP = iri("ConcurrentActionGroup")
RECURRENT_ACTION_GROUP = iri("RecurrentActionGroup")
RECURRENT_TIMED_ACTION_GROUP = iri("RecurrentTimedActionGroup")
REPEATING_ACTION_GROUP = iri("RepeatingActionGroup")
SEQUENTIAL_ACTION_GROUP = iri("SequentialActionGroup")
TIMED_EVENT_SEQUENCE = iri("TimedEventSequence")
TIMED_EVENT = iri("TimedEvent")

SCHEDULE = iri("Schedule")
TIMED_SCHEDULE = iri("TimedSchedule")
NON_TIMED_SCHEDULE = iri("NonTimedSchedule")


# ============================================================================
# Properties
# ============================================================================

HAS_AGENT = iri("hasAgent")
HAS_AGENT_CLASS = iri("hasAgentClass")
ORDERED_BY = iri("orderedBy")
HAS_CONCURRENT_ACTIONS = iri("hasConcurrentActions")
HAS_RECURRENT_ACTION_GROUP = iri("hasRecurrentActionGroup")
HAS_FIRST_ACTION_GROUP = iri("hasFirstActionGroup")
HAS_NEXT_ACTION_GROUP = iri("hasNextActionGroup")
HAS_ACTION_GROUP = iri("hasActionGroup")
IMPLEMENTED_BY = iri("implementedBy")
HAS_PARAMETERS = iri("hasParameters")

CLASS_NAME = iri("className")
PARAMETER_NAME = iri("parameterName")
PARAMETER_VALUE = iri("parameterValue")
PARAMETER_TYPE = iri("parameterType")
START_TIME = iri("startTime")
INTERVAL = iri("interval")
REPETITIONS = iri("repetitions")
INCREMENT = iri("increment")
STOP_TIME = iri("stopTime")
CLOCK_TICK = iri("clockTick")


# ============================================================================
# Node kinds
# ============================================================================


class NodeKind(Enum):
    """Recognised node shapes. Each maps to one constructor in the builder."""

    INDIVIDUAL = "individual"
    CONCURRENT_FOR_EACH = "concurrent_for_each"
    RANDOM_ORDER_FOR_EACH = "random_order_for_each"
    ASCENDING_FOR_EACH = "ascending_for_each"
    DESCENDING_FOR_EACH = "descending_for_each"
    CONCURRENT_GROUP = "concurrent_group"
    RECURRENT_GROUP = "recurrent_group"
    SEQUENTIAL_GROUP = "sequential_group"

    @property
    def is_leaf(self) -> bool:
        return self in LEAF_KINDS


LEAF_KINDS: FrozenSet[NodeKind] = frozenset(
    {
        NodeKind.INDIVIDUAL,
        NodeKind.CONCURRENT_FOR_EACH,
        NodeKind.RANDOM_ORDER_FOR_EACH,
        NodeKind.ASCENDING_FOR_EACH,
        NodeKind.DESCENDING_FOR_EACH,
    }
)

KIND_BY_CLASS: Dict[str, NodeKind] = {
    INDIVIDUAL_ACTION: NodeKind.INDIVIDUAL,
    CONCURRENT_ACTION_FOR_EACH: NodeKind.CONCURRENT_FOR_EACH,
    RANDOM_ORDER_ACTION_FOR_EACH: NodeKind.RANDOM_ORDER_FOR_EACH,
    ASCENDING_ORDER_ACTION_FOR_EACH: NodeKind.ASCENDING_FOR_EACH,
    DESCENDING_ORDER_ACTION_FOR_EACH: NodeKind.DESCENDING_FOR_EACH,
    CONCURRENT_ACTION_GROUP: NodeKind.CONCURRENT_GROUP,
    RECURRENT_ACTION_GROUP: NodeKind.RECURRENT_GROUP,
    RECURRENT_TIMED_ACTION_GROUP: NodeKind.RECURRENT_GROUP,
    REPEATING_ACTION_GROUP: NodeKind.RECURRENT_GROUP,
    SEQUENTIAL_ACTION_GROUP: NodeKind.SEQUENTIAL_GROUP,
    TIMED_EVENT_SEQUENCE: NodeKind.SEQUENTIAL_GROUP,
}

# Asserting any of these makes the individual a timed event
TIMED_EVENT_CLASSES: FrozenSet[str] = frozenset(
    {TIMED_EVENT, RECURRENT_TIMED_ACTION_GROUP, TIMED_EVENT_SEQUENCE}
)

# Any of these marks an individual as a schedule
SCHEDULE_CLASSES: Tuple[str, ...] = (SCHEDULE, TIMED_SCHEDULE, NON_TIMED_SCHEDULE)


def kinds_of(classes: Iterable[str]) -> FrozenSet[NodeKind]:
    """Return every node kind implied by a class set."""
    return frozenset(KIND_BY_CLASS[c] for c in classes if c in KIND_BY_CLASS)


def is_timed_event(classes: Iterable[str]) -> bool:
    return any(c in TIMED_EVENT_CLASSES for c in classes)


def classify(identifier: str, classes: Iterable[str]) -> NodeKind:
    """Reduce an individual's class set to exactly one node kind.

    Raises:
        ScheduleError: If no recognised shape is asserted, or several distinct ones are
    """
    kinds = kinds_of(classes)
    if not kinds:
        raise ScheduleError(
            identifier, "is not an IndividualAction, ActionForEach or ActionGroup"
        )
    if len(kinds) > 1:
        names = ", ".join(sorted(kind.value for kind in kinds))
        raise ScheduleError(identifier, f"has conflicting shapes ({names})")
    (kind,) = kinds
    return kind
