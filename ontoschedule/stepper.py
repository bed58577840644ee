"""Timed execution: event registrations and a reference discrete-event loop.

A timed schedule is not flattened. Schedule.events() hands its nodes over one
by one as TimedEvent registrations (node, start time, recurrence interval),
which is all a clock-driven engine needs. TimedStepper is a small heap-based
engine over those registrations, used by tests, the examples and any model that
has no engine of its own.
"""

from __future__ import annotations

import heapq
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, List, Optional

from .errors import ScheduleError
from .logging_utils import log_info, log_success
from .nodes import ScheduledNode
from .population import RunContext

if TYPE_CHECKING:
    from .schedule import Schedule


@dataclass(order=True)
class TimedEvent:
    """One registration: run ``node`` at ``time``, then every ``interval`` if set.

    Events order by time, then by registration order.
    """

    time: float
    sequence: int
    node: ScheduledNode = field(compare=False)
    interval: Optional[float] = field(default=None, compare=False)
    origin: float = field(default=0.0, compare=False)
    occurrence: int = field(default=0, compare=False)

    @property
    def recurrent(self) -> bool:
        return self.interval is not None

    def following(self) -> "TimedEvent":
        """Return the next occurrence of a recurrent event."""
        if self.interval is None:
            raise ValueError(f"{self.node!r} does not recur")
        occurrence = self.occurrence + 1
        return TimedEvent(
            time=self.origin + occurrence * self.interval,
            sequence=self.sequence,
            node=self.node,
            interval=self.interval,
            origin=self.origin,
            occurrence=occurrence,
        )


@dataclass
class StepRecord:
    """A fired event, as reported by TimedStepper.run()."""

    time: float
    node_id: str
    tick: Optional[int] = None


class TimedStepper:
    """Run a timed schedule by firing its events in time order.

    Events whose time is at or after the stop time never fire. A stop time is
    required when any event recurs, otherwise the loop would not end.

    Args:
        schedule: Timed schedule to run
        context: Run context passed to every node.step()
        stop_time: Overrides the schedule's stopTime when given
        verbose: Print a line per fired event and a summary at the end
    """

    def __init__(
        self,
        schedule: "Schedule",
        context: RunContext,
        *,
        stop_time: Optional[float] = None,
        verbose: bool = False,
    ) -> None:
        self.schedule = schedule
        self.context = context
        self.stop_time = stop_time if stop_time is not None else schedule.stop_time
        self.verbose = verbose

    def tick_of(self, time: float) -> Optional[int]:
        clock_tick = self.schedule.clock_tick
        if clock_tick is None:
            return None
        return int(time // clock_tick)

    def run(self) -> List[StepRecord]:
        events = self.schedule.events()
        if self.stop_time is None and any(event.recurrent for event in events):
            raise ScheduleError(
                self.schedule.id,
                "schedule has recurrent events but no stopTime",
            )

        queue = list(events)
        heapq.heapify(queue)
        fired: List[StepRecord] = []
        while queue:
            event = heapq.heappop(queue)
            if self.stop_time is not None and event.time >= self.stop_time:
                break
            if self.verbose:
                log_info(f"t={event.time:g} {event.node!r}")
            event.node.step(self.context)
            fired.append(StepRecord(event.time, event.node.id, self.tick_of(event.time)))
            if event.recurrent:
                heapq.heappush(queue, event.following())

        if self.verbose:
            log_success(f"{self.schedule.id}: {len(fired)} events fired")
        return fired
