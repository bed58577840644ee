"""
Pydantic schemas for fact files and action parameters.

A fact file is a flat list of individuals. Each individual names the classes it
is asserted to belong to, its object properties (links to other individuals) and
its data properties (literal values). Identifiers may be written as CURIEs using
the ``prefixes`` table; ``sched:`` is always available.

```json
{
  "prefixes": {"ex": "urn:example:"},
  "individuals": [
    {
      "id": "ex:main",
      "classes": ["sched:NonTimedSchedule"],
      "objects": {"sched:hasActionGroup": ["ex:day"]},
      "data": {"sched:stopTime": 100.0}
    }
  ]
}
```
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, Field, field_validator

from .vocabulary import XSD

# JSON literal types a data property may hold
DataValue = Union[bool, int, float, str]


def _as_list(value: Any) -> Any:
    if isinstance(value, (list, tuple)):
        return list(value)
    return [value]


class IndividualFacts(BaseModel):
    """All assertions about one individual in a fact file."""

    id: str = Field(..., description="Identifier (IRI or CURIE) of the individual")
    classes: List[str] = Field(default_factory=list, description="Asserted named classes")
    objects: Dict[str, List[str]] = Field(
        default_factory=dict,
        description="Object properties, property -> ordered list of target identifiers",
    )
    data: Dict[str, List[DataValue]] = Field(
        default_factory=dict,
        description="Data properties, property -> list of literal values",
    )

    @field_validator("objects", "data", mode="before")
    @classmethod
    def _wrap_single_values(cls, value: Any) -> Any:
        # Allow {"prop": "x"} as shorthand for {"prop": ["x"]}
        if isinstance(value, dict):
            return {key: _as_list(item) for key, item in value.items()}
        return value


class FactFile(BaseModel):
    """Top-level document loaded by JsonFactStore."""

    prefixes: Dict[str, str] = Field(default_factory=dict, description="CURIE prefix table")
    individuals: List[IndividualFacts] = Field(default_factory=list)


class ActionParameter(BaseModel):
    """A named, typed parameter attached to an action implementation.

    ``type`` holds an XSD datatype IRI (``xsd:double``, ``xsd:int`` ...). Values in
    fact files are usually strings, so typed_value() performs the conversion the
    datatype asks for.
    """

    name: str = Field(..., description="Parameter name passed to the action")
    value: DataValue = Field(..., description="Raw value as declared")
    type: Optional[str] = Field(None, description="XSD datatype IRI, None for untyped")
    comment: Optional[str] = Field(None, description="Optional human-readable note")

    def typed_value(self) -> DataValue:
        """Return the value converted according to its declared datatype."""
        datatype = self.type
        if datatype is None:
            return self.value
        if datatype.startswith("xsd:"):
            datatype = XSD + datatype[len("xsd:"):]
        if datatype in _FLOAT_TYPES:
            return float(self.value)
        if datatype in _INT_TYPES:
            return int(self.value)
        if datatype == XSD + "boolean":
            if isinstance(self.value, str):
                lowered = self.value.strip().lower()
                if lowered not in {"true", "false", "1", "0"}:
                    raise ValueError(f"{self.name}: {self.value!r} is not an xsd:boolean")
                return lowered in {"true", "1"}
            return bool(self.value)
        if datatype in _STRING_TYPES:
            return str(self.value)
        raise ValueError(f"{self.name}: unsupported parameter datatype {self.type}")


_FLOAT_TYPES = {XSD + "double", XSD + "float", XSD + "decimal"}
_INT_TYPES = {
    XSD + "int",
    XSD + "integer",
    XSD + "long",
    XSD + "short",
    XSD + "nonNegativeInteger",
    XSD + "positiveInteger",
}
_STRING_TYPES = {XSD + "string", XSD + "anyURI"}
