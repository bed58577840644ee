"""
Ontoschedule - build and run agent-simulation schedules declared as facts.

A schedule is described in a fact store (classes, object and data properties)
rather than in code. The builder turns those facts into a graph of scheduled
nodes with resolved timing; the graph is then run straight through (untimed)
or handed node by node to a time-driven stepper (timed).

No global state: the fact store, the action resolver and the run context
(population, random stream, comparison) are all injected by the caller.
"""

__version__ = "0.1.0"

# Building and running
from .builder import ScheduleBuilder
from .schedule import Schedule, build_schedule, build_all_schedules, load_schedule
from .stepper import TimedEvent, TimedStepper, StepRecord

# Node model
from .nodes import (
    ScheduledNode,
    LeafAction,
    IndividualAction,
    ActionForEach,
    ConcurrentActionForEach,
    RandomOrderActionForEach,
    OrderedActionForEach,
    ConcurrentActionGroup,
    RecurrentActionGroup,
    SequentialActionGroup,
)
from .vocabulary import NodeKind

# Collaborator interfaces
from .facts import FactQueryPort, InMemoryFactStore, JsonFactStore
from .actions import (
    RunnableAction,
    ActionResolver,
    DictActionResolver,
    RegistryActionResolver,
    FunctionAction,
)
from .population import AgentPopulation, InMemoryPopulation, FactPopulation, RunContext
from .comparison import (
    Comparison,
    exact_comparison,
    tolerance_comparison,
    relative_comparison,
    significant_figures_comparison,
)

# Schemas and errors
from .schemas import ActionParameter, FactFile, IndividualFacts
from .errors import ScheduleError, CardinalityError, ResolutionError, ExecutionError

__all__ = [
    # Building and running
    "ScheduleBuilder",
    "Schedule",
    "build_schedule",
    "build_all_schedules",
    "load_schedule",
    "TimedEvent",
    "TimedStepper",
    "StepRecord",
    # Node model
    "ScheduledNode",
    "LeafAction",
    "IndividualAction",
    "ActionForEach",
    "ConcurrentActionForEach",
    "RandomOrderActionForEach",
    "OrderedActionForEach",
    "ConcurrentActionGroup",
    "RecurrentActionGroup",
    "SequentialActionGroup",
    "NodeKind",
    # Fact store
    "FactQueryPort",
    "InMemoryFactStore",
    "JsonFactStore",
    # Actions
    "RunnableAction",
    "ActionResolver",
    "DictActionResolver",
    "RegistryActionResolver",
    "FunctionAction",
    # Run context
    "AgentPopulation",
    "InMemoryPopulation",
    "FactPopulation",
    "RunContext",
    "Comparison",
    "exact_comparison",
    "tolerance_comparison",
    "relative_comparison",
    "significant_figures_comparison",
    # Schemas
    "ActionParameter",
    "FactFile",
    "IndividualFacts",
    # Errors
    "ScheduleError",
    "CardinalityError",
    "ResolutionError",
    "ExecutionError",
]
