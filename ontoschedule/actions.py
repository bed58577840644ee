"""Binding action identifiers to runnable behaviour.

The builder hands every leaf identifier to an ActionResolver and gets back a
RunnableAction. Two resolvers are provided:

- DictActionResolver: a fixed id -> action mapping, convenient in tests and
  small embedded models.
- RegistryActionResolver: reads the action's ``implementedBy`` implementations
  and ``hasParameters`` from the fact store, then looks each implementation's
  ``className`` up in a registry or imports it. The first implementation that
  loads wins; if none does, the failure of every attempt is reported.
"""

from __future__ import annotations

import importlib
import inspect
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Mapping, Optional, Protocol

from .errors import ResolutionError
from .facts import FactQueryPort
from .schemas import ActionParameter
from .vocabulary import (
    CLASS_NAME,
    HAS_PARAMETERS,
    IMPLEMENTED_BY,
    PARAMETER_NAME,
    PARAMETER_TYPE,
    PARAMETER_VALUE,
)


class RunnableAction(Protocol):
    """Protocol for executable actions bound to schedule leaves."""

    def parameters(self) -> Dict[str, ActionParameter]:
        """Return the parameters this action was configured with."""
        ...

    def step(self, agent: str) -> None:
        """Perform the action once on behalf of ``agent``."""
        ...


class FunctionAction:
    """Adapt a plain callable to RunnableAction.

    The callable receives the agent identifier plus every parameter as a keyword
    argument, already converted by ActionParameter.typed_value().
    """

    def __init__(
        self,
        name: str,
        fn: Callable[..., Any],
        parameters: Optional[Mapping[str, ActionParameter]] = None,
    ) -> None:
        self.name = name
        self.fn = fn
        self._parameters: Dict[str, ActionParameter] = dict(parameters or {})

    def parameters(self) -> Dict[str, ActionParameter]:
        return dict(self._parameters)

    def step(self, agent: str) -> None:
        kwargs = {name: param.typed_value() for name, param in self._parameters.items()}
        self.fn(agent, **kwargs)

    def __repr__(self) -> str:
        return f"FunctionAction({self.name})"


class ActionResolver(ABC):
    """Turns an action identifier into a RunnableAction."""

    @abstractmethod
    def resolve(self, action_id: str) -> RunnableAction:
        """Return a runnable action, or raise ResolutionError."""


class DictActionResolver(ActionResolver):
    """Resolver over a fixed mapping of action ids to actions."""

    def __init__(self, actions: Optional[Mapping[str, RunnableAction]] = None) -> None:
        self.actions: Dict[str, RunnableAction] = dict(actions or {})

    def register(self, action_id: str, action: RunnableAction) -> None:
        self.actions[action_id] = action

    def resolve(self, action_id: str) -> RunnableAction:
        try:
            return self.actions[action_id]
        except KeyError:
            raise ResolutionError(action_id, "no action registered for this identifier") from None


def import_object(path: str) -> Any:
    """Import ``package.module:attr`` or ``package.module.attr``."""
    if ":" in path:
        module_name, _, attr_path = path.partition(":")
    else:
        module_name, _, attr_path = path.rpartition(".")
    if not module_name or not attr_path:
        raise ImportError(f"'{path}' is not a module:attribute path")
    target: Any = importlib.import_module(module_name)
    for attr in attr_path.split("."):
        target = getattr(target, attr)
    return target


class RegistryActionResolver(ActionResolver):
    """Resolve actions from ``implementedBy``/``className`` facts.

    A class name is looked up in ``registry`` first, then imported. The object it
    names may be:
    - a class, instantiated as ``cls(parameters)``
    - any other callable, wrapped in FunctionAction with the parameters

    Args:
        facts: Fact store holding the action, implementation and parameter individuals
        registry: Optional class name -> class/callable table checked before importing
        allow_import: Whether unknown class names may be imported by dotted path
    """

    def __init__(
        self,
        facts: FactQueryPort,
        registry: Optional[Mapping[str, Any]] = None,
        *,
        allow_import: bool = True,
    ) -> None:
        self.facts = facts
        self.registry: Dict[str, Any] = dict(registry or {})
        self.allow_import = allow_import

    def register(self, class_name: str, target: Any) -> None:
        self.registry[class_name] = target

    def parameters_of(self, action_id: str) -> Dict[str, ActionParameter]:
        """Read the action's ``hasParameters`` individuals."""
        parameters: Dict[str, ActionParameter] = {}
        for param_id in self.facts.object_property_of(action_id, HAS_PARAMETERS):
            name = self.facts.string_data_property_of(param_id, PARAMETER_NAME)
            values = self.facts.data_values_of(param_id, PARAMETER_VALUE)
            if name is None or len(values) != 1:
                raise ResolutionError(
                    action_id,
                    f"parameter {param_id} needs exactly one parameterName and parameterValue",
                )
            parameters[name] = ActionParameter(
                name=name,
                value=values[0],
                type=self.facts.string_data_property_of(param_id, PARAMETER_TYPE),
            )
        return parameters

    def resolve(self, action_id: str) -> RunnableAction:
        implementations = self.facts.object_property_of(action_id, IMPLEMENTED_BY)
        if not implementations:
            raise ResolutionError(action_id, "no implementedBy implementation declared")

        parameters = self.parameters_of(action_id)
        attempts: Dict[str, str] = {}
        for implementation in implementations:
            class_name = self.facts.string_data_property_of(implementation, CLASS_NAME)
            if class_name is None:
                attempts[implementation] = "implementation has no className"
                continue
            try:
                target = self._lookup(class_name)
            except (ImportError, AttributeError) as exc:
                attempts[class_name] = f"cannot load: {exc}"
                continue
            try:
                action = self._instantiate(class_name, target, parameters)
            except Exception as exc:
                attempts[class_name] = f"cannot instantiate: {type(exc).__name__}: {exc}"
                continue
            if not callable(getattr(action, "step", None)):
                attempts[class_name] = "object has no step(agent) method"
                continue
            return action

        raise ResolutionError(action_id, "no implementation could be loaded", attempts=attempts)

    def _lookup(self, class_name: str) -> Any:
        if class_name in self.registry:
            return self.registry[class_name]
        if not self.allow_import:
            raise ImportError(f"'{class_name}' is not registered and imports are disabled")
        return import_object(class_name)

    @staticmethod
    def _instantiate(
        class_name: str, target: Any, parameters: Dict[str, ActionParameter]
    ) -> RunnableAction:
        if inspect.isclass(target):
            return target(parameters)
        if callable(target):
            return FunctionAction(class_name, target, parameters)
        raise TypeError(f"'{class_name}' is neither a class nor a callable")
