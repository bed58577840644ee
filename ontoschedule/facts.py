"""
Fact query port and the two bundled fact stores.

The builder never talks to storage directly. It issues typed point lookups
through FactQueryPort: the classes an individual is asserted to belong to, the
targets of an object property, the literal values of a data property, and the
current members of a class. Implementations only have to provide those four
primitives; the typed "functional" helpers (0 or 1 value, error on more) are
derived from them here so every backend enforces cardinality the same way.

Two implementations ship with the package:
1. InMemoryFactStore - dict-backed, populated programmatically (tests, embedding)
2. JsonFactStore - loads a JSON fact file validated by schemas.FactFile

A store backed by a remote triple store would subclass FactQueryPort and is
expected to apply its own timeouts; lookups here are synchronous reads.
"""

from __future__ import annotations

import json
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, FrozenSet, List, Optional, Tuple, Union

from .errors import CardinalityError, ScheduleError
from .schemas import DataValue, FactFile
from .vocabulary import NAMESPACE, PREFIX


class FactQueryPort(ABC):
    """Read-only lookups against a pre-loaded fact base."""

    @abstractmethod
    def classes_of(self, identifier: str) -> FrozenSet[str]:
        """Return every named class the individual is asserted to belong to."""

    @abstractmethod
    def object_property_of(self, identifier: str, prop: str) -> List[str]:
        """Return the targets of an object property, in assertion order, without duplicates."""

    @abstractmethod
    def data_values_of(self, identifier: str, prop: str) -> List[DataValue]:
        """Return the literal values of a data property, in assertion order."""

    @abstractmethod
    def members_of(self, class_id: str) -> List[str]:
        """Return the individuals currently asserted to belong to a class."""

    # ------------------------------------------------------------------
    # Functional (0 or 1 value) helpers
    # ------------------------------------------------------------------

    def functional_object_property_of(self, identifier: str, prop: str) -> Optional[str]:
        values = self.object_property_of(identifier, prop)
        if len(values) > 1:
            raise CardinalityError(identifier, prop, values)
        return values[0] if values else None

    def _functional_data(self, identifier: str, prop: str) -> Optional[DataValue]:
        values = self.data_values_of(identifier, prop)
        if len(values) > 1:
            raise CardinalityError(identifier, prop, values)
        return values[0] if values else None

    def double_data_property_of(self, identifier: str, prop: str) -> Optional[float]:
        value = self._functional_data(identifier, prop)
        if value is None:
            return None
        # bool is an int subclass, but never a valid number here
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ScheduleError(identifier, f"{prop} must be a number, got {value!r}")
        return float(value)

    def integer_data_property_of(self, identifier: str, prop: str) -> Optional[int]:
        value = self._functional_data(identifier, prop)
        if value is None:
            return None
        if isinstance(value, bool):
            raise ScheduleError(identifier, f"{prop} must be an integer, got {value!r}")
        if isinstance(value, float) and value.is_integer():
            return int(value)
        if not isinstance(value, int):
            raise ScheduleError(identifier, f"{prop} must be an integer, got {value!r}")
        return value

    def string_data_property_of(self, identifier: str, prop: str) -> Optional[str]:
        value = self._functional_data(identifier, prop)
        if value is None:
            return None
        if not isinstance(value, str):
            raise ScheduleError(identifier, f"{prop} must be a string, got {value!r}")
        return value


class InMemoryFactStore(FactQueryPort):
    """Dictionary-backed fact store.

    Individuals are remembered in the order they were first mentioned, which is
    the order members_of() reports them in.

    Example:
        facts = InMemoryFactStore()
        facts.assert_class("ex:a1", "ex:Forager")
        facts.assert_data("ex:a1", "ex:energy", 4.0)
    """

    def __init__(self) -> None:
        self._individuals: Dict[str, None] = {}
        self._classes: Dict[str, Dict[str, None]] = {}
        self._objects: Dict[Tuple[str, str], Dict[str, None]] = {}
        self._data: Dict[Tuple[str, str], List[DataValue]] = {}

    def _touch(self, identifier: str) -> None:
        self._individuals.setdefault(identifier, None)

    def assert_class(self, identifier: str, *class_ids: str) -> "InMemoryFactStore":
        self._touch(identifier)
        bucket = self._classes.setdefault(identifier, {})
        for class_id in class_ids:
            bucket.setdefault(class_id, None)
        return self

    def assert_object(self, identifier: str, prop: str, *targets: str) -> "InMemoryFactStore":
        self._touch(identifier)
        bucket = self._objects.setdefault((identifier, prop), {})
        for target in targets:
            self._touch(target)
            bucket.setdefault(target, None)
        return self

    def assert_data(self, identifier: str, prop: str, *values: DataValue) -> "InMemoryFactStore":
        self._touch(identifier)
        self._data.setdefault((identifier, prop), []).extend(values)
        return self

    def retract_individual(self, identifier: str) -> None:
        """Remove an individual and every assertion made about it."""
        self._individuals.pop(identifier, None)
        self._classes.pop(identifier, None)
        for key in [k for k in self._objects if k[0] == identifier]:
            del self._objects[key]
        for key in [k for k in self._data if k[0] == identifier]:
            del self._data[key]
        for bucket in self._objects.values():
            bucket.pop(identifier, None)

    def individuals(self) -> List[str]:
        return list(self._individuals)

    def classes_of(self, identifier: str) -> FrozenSet[str]:
        return frozenset(self._classes.get(identifier, {}))

    def object_property_of(self, identifier: str, prop: str) -> List[str]:
        return list(self._objects.get((identifier, prop), {}))

    def data_values_of(self, identifier: str, prop: str) -> List[DataValue]:
        return list(self._data.get((identifier, prop), []))

    def members_of(self, class_id: str) -> List[str]:
        return [
            identifier
            for identifier in self._individuals
            if class_id in self._classes.get(identifier, {})
        ]


class JsonFactStore(InMemoryFactStore):
    """Fact store loaded from a JSON fact file (see schemas.FactFile).

    CURIEs in identifiers, class names and property names are expanded with the
    file's prefix table. The ``sched`` prefix always maps to the schedule vocabulary.

    Raises:
        FileNotFoundError: If the fact file doesn't exist
        pydantic.ValidationError: If the file does not match the FactFile schema
    """

    def __init__(self, path: Union[str, Path, None] = None) -> None:
        super().__init__()
        self.path: Optional[Path] = Path(path) if path is not None else None
        self.prefixes: Dict[str, str] = {PREFIX: NAMESPACE}
        if self.path is not None:
            if not self.path.exists():
                raise FileNotFoundError(f"Fact file not found: {self.path}")
            with open(self.path, "r", encoding="utf-8") as handle:
                self.load_document(json.load(handle))

    @classmethod
    def from_document(cls, document: Dict[str, Any]) -> "JsonFactStore":
        store = cls()
        store.load_document(document)
        return store

    def load_document(self, document: Dict[str, Any]) -> None:
        fact_file = FactFile.model_validate(document)
        self.prefixes.update(fact_file.prefixes)
        self.prefixes[PREFIX] = NAMESPACE

        for individual in fact_file.individuals:
            identifier = self.expand(individual.id)
            self._touch(identifier)
            self.assert_class(identifier, *(self.expand(c) for c in individual.classes))
            for prop, targets in individual.objects.items():
                self.assert_object(identifier, self.expand(prop), *(self.expand(t) for t in targets))
            for prop, values in individual.data.items():
                self.assert_data(identifier, self.expand(prop), *values)

    def expand(self, name: str) -> str:
        """Expand a CURIE (``prefix:local``) using the prefix table."""
        prefix, sep, rest = name.partition(":")
        if sep and prefix in self.prefixes and not rest.startswith("//"):
            return self.prefixes[prefix] + rest
        return name
