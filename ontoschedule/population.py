"""Agent populations and the run context injected into every run.

Nodes hold no run state. Everything that can change between two runs of the
same built schedule (which agents exist, their attribute values, the random
stream, the comparison used for ordering) travels in a RunContext passed to
``Schedule.run`` and ``ScheduledNode.step``.
"""

from __future__ import annotations

import random
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Protocol, Sequence

from .comparison import Comparison, exact_comparison
from .config import Config
from .facts import FactQueryPort


class AgentPopulation(Protocol):
    """Protocol for the live set of agents a for-each action runs over."""

    def members_of(self, agent_class: str) -> Sequence[str]:
        """Return the agents currently in ``agent_class``, in a stable declaration order."""
        ...

    def attribute_of(self, agent: str, attribute: str) -> Optional[float]:
        """Return the numeric value of ``attribute`` for ``agent``, or None when unset."""
        ...


class InMemoryPopulation:
    """Mutable population for models that create and destroy agents while running."""

    def __init__(self) -> None:
        self._classes: Dict[str, set[str]] = {}
        self._attributes: Dict[str, Dict[str, float]] = {}

    def add_agent(
        self,
        agent: str,
        classes: Iterable[str],
        attributes: Optional[Dict[str, float]] = None,
    ) -> None:
        self._classes.setdefault(agent, set()).update(classes)
        self._attributes.setdefault(agent, {}).update(attributes or {})

    def remove_agent(self, agent: str) -> None:
        self._classes.pop(agent, None)
        self._attributes.pop(agent, None)

    def set_attribute(self, agent: str, attribute: str, value: float) -> None:
        if agent not in self._classes:
            raise KeyError(f"Unknown agent: {agent}")
        self._attributes[agent][attribute] = value

    def agents(self) -> List[str]:
        return list(self._classes)

    def members_of(self, agent_class: str) -> List[str]:
        return [agent for agent, classes in self._classes.items() if agent_class in classes]

    def attribute_of(self, agent: str, attribute: str) -> Optional[float]:
        return self._attributes.get(agent, {}).get(attribute)


class FactPopulation:
    """Read-only population backed by a fact store's class and data assertions."""

    def __init__(self, facts: FactQueryPort) -> None:
        self.facts = facts

    def members_of(self, agent_class: str) -> List[str]:
        return self.facts.members_of(agent_class)

    def attribute_of(self, agent: str, attribute: str) -> Optional[float]:
        return self.facts.double_data_property_of(agent, attribute)


def _default_rng() -> random.Random:
    return random.Random(Config.seed())


@dataclass
class RunContext:
    """Everything a run needs besides the built schedule."""

    population: AgentPopulation
    rng: random.Random = field(default_factory=_default_rng)
    comparison: Comparison = exact_comparison
