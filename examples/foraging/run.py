"""
Foraging herd example.

Two schedules are declared in facts.json:
- ``ex:setup`` (untimed): the farmer opens the gate, then the grass grows twice
- ``ex:main`` (timed): every 1.0 the herd grazes (hungriest first), wanders in a
  random order and the grass regrows; at 0.5 the farmer counts the herd once

Run from the repository root:
    python examples/foraging/run.py

Set ONTOSCHEDULE_TRACE_BUILD=true or ONTOSCHEDULE_TRACE_ACTIONS=true to watch
the builder and every action invocation.
"""

from pathlib import Path

from ontoschedule import (
    InMemoryPopulation,
    RegistryActionResolver,
    RunContext,
    TimedStepper,
    build_schedule,
)
from ontoschedule.config import Config
from ontoschedule.facts import JsonFactStore
from ontoschedule.errors import ExecutionError, ResolutionError, ScheduleError
from ontoschedule.logging_utils import log_error, log_info, log_success

HERE = Path(__file__).parent
NS = "urn:example:foraging#"
COW = NS + "Cow"
HUNGER = NS + "hunger"


class Pasture:
    """Model state the example actions read and write."""

    def __init__(self, population: InMemoryPopulation) -> None:
        self.population = population
        self.grass = 0.0
        self.gate_open = False

    def open_gate(self, agent: str) -> None:
        self.gate_open = True
        log_info(f"{agent.split('#')[-1]} opens the gate")

    def grow_grass(self, agent: str, amount: float) -> None:
        self.grass += amount

    def graze(self, agent: str, bite: float) -> None:
        if not self.gate_open:
            return
        eaten = min(bite, self.grass)
        self.grass -= eaten
        hunger = self.population.attribute_of(agent, HUNGER) or 0.0
        self.population.set_attribute(agent, HUNGER, max(0.0, hunger - eaten))

    def wander(self, agent: str) -> None:
        hunger = self.population.attribute_of(agent, HUNGER) or 0.0
        self.population.set_attribute(agent, HUNGER, hunger + 0.5)

    def count_herd(self, agent: str) -> None:
        cows = self.population.members_of(COW)
        log_info(f"farmer counts {len(cows)} cows, {self.grass:g} grass left")

    def registry(self) -> dict:
        return {
            "open_gate": self.open_gate,
            "grow_grass": self.grow_grass,
            "graze": self.graze,
            "wander": self.wander,
            "count_herd": self.count_herd,
        }


def load_population(facts: JsonFactStore) -> InMemoryPopulation:
    population = InMemoryPopulation()
    for cow in facts.members_of(COW):
        population.add_agent(cow, [COW], {HUNGER: facts.double_data_property_of(cow, HUNGER)})
    return population


def run_example() -> None:
    Config.validate()
    print(Config.display())

    facts = JsonFactStore(HERE / "facts.json")
    population = load_population(facts)
    pasture = Pasture(population)
    resolver = RegistryActionResolver(facts, pasture.registry())
    context = RunContext(population=population)

    setup = build_schedule(NS + "setup", facts, resolver)
    log_info(f"setup runs {[repr(leaf) for leaf in setup.action_list()]}")
    setup.run(context)

    main_schedule = build_schedule(NS + "main", facts, resolver)
    fired = TimedStepper(main_schedule, context, verbose=True).run()

    for cow in population.members_of(COW):
        log_info(f"{cow.split('#')[-1]}: hunger {population.attribute_of(cow, HUNGER):g}")
    log_success(f"done after {len(fired)} events, {pasture.grass:g} grass left")


def main() -> None:
    """Main entry point."""
    try:
        run_example()
    except (ValueError, ScheduleError, ResolutionError, ExecutionError) as exc:
        log_error(str(exc))
        raise SystemExit(1)


if __name__ == "__main__":
    main()
