"""Error taxonomy for schedule building and execution.

Three families, never merged into one another:

- ScheduleError: the declared shape of a node is wrong (missing relation,
  functional property with several values, concurrency or timing violation).
- ResolutionError: the shape was fine but no runnable action could be bound
  to an action identifier.
- ExecutionError: a runnable action raised while a schedule was running.
"""

from __future__ import annotations

from typing import Any, Dict, Optional, Sequence


class ScheduleError(Exception):
    """Raised when a schedule node is structurally invalid."""

    def __init__(self, identifier: str, reason: str) -> None:
        self.identifier = identifier
        self.reason = reason
        super().__init__(f"{identifier}: {reason}")


class CardinalityError(ScheduleError):
    """Raised when a functional property holds more than one value."""

    def __init__(self, identifier: str, prop: str, values: Sequence[Any]) -> None:
        self.prop = prop
        self.values = list(values)
        rendered = ", ".join(str(v) for v in self.values)
        super().__init__(
            identifier,
            f"functional property {prop} has {len(self.values)} values ({rendered})",
        )


class ResolutionError(Exception):
    """Raised when an action identifier cannot be bound to a runnable action.

    ``attempts`` maps each implementation that was tried to the reason it failed,
    so a misconfigured registry can be diagnosed from the message alone.
    """

    def __init__(
        self,
        identifier: str,
        reason: str,
        *,
        attempts: Optional[Dict[str, str]] = None,
    ) -> None:
        self.identifier = identifier
        self.reason = reason
        self.attempts = dict(attempts or {})
        message_lines = [f"Cannot resolve action {identifier}: {reason}"]
        for implementation, failure in self.attempts.items():
            message_lines.append(f"  - {implementation}: {failure}")
        super().__init__("\n".join(message_lines))


class ExecutionError(Exception):
    """Raised when a runnable action fails during a run."""

    def __init__(
        self,
        *,
        node_id: str,
        agent: Optional[str],
        underlying: BaseException,
    ) -> None:
        self.node_id = node_id
        self.agent = agent
        self.underlying = underlying
        target = f" for agent {agent}" if agent is not None else ""
        super().__init__(
            f"Action {node_id} failed{target}: {type(underlying).__name__}: {underlying}"
        )
