"""
Typed variable bags for process instances and tasks.

A variable value is a tagged union discriminated by ``kind``. Bags are
stored on graph nodes as a single JSON string property so that timestamps
and nested mappings round-trip exactly.

Example:
    >>> bag = coerce_variables({"amount": 12.5, "approved": True})
    >>> text = dump_variables(bag)
    >>> variables_to_python(load_variables(text))
    {'amount': 12.5, 'approved': True}
"""

import math
from datetime import datetime
from typing import Annotated, Any, Dict, Literal, Mapping, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter


class StringValue(BaseModel):
    kind: Literal["string"] = "string"
    value: str

    model_config = ConfigDict(frozen=True, extra="forbid")


class NumberValue(BaseModel):
    kind: Literal["number"] = "number"
    # JSON has no NaN or Infinity
    value: Union[int, Annotated[float, Field(allow_inf_nan=False)]]

    model_config = ConfigDict(frozen=True, extra="forbid")


class BooleanValue(BaseModel):
    kind: Literal["boolean"] = "boolean"
    value: bool

    model_config = ConfigDict(frozen=True, extra="forbid")


class TimestampValue(BaseModel):
    kind: Literal["timestamp"] = "timestamp"
    value: datetime

    model_config = ConfigDict(frozen=True, extra="forbid")


class MappingValue(BaseModel):
    kind: Literal["mapping"] = "mapping"
    value: Dict[str, "VariableValue"]

    model_config = ConfigDict(frozen=True, extra="forbid")


VariableValue = Annotated[
    Union[StringValue, NumberValue, BooleanValue, TimestampValue, MappingValue],
    Field(discriminator="kind"),
]

MappingValue.model_rebuild()

Variables = Dict[str, VariableValue]

_VARIABLES_ADAPTER: TypeAdapter = TypeAdapter(Variables)
_VALUE_ADAPTER: TypeAdapter = TypeAdapter(VariableValue)

_KINDS = frozenset({"string", "number", "boolean", "timestamp", "mapping"})


def _is_tagged(value: Mapping) -> bool:
    """True for a value in stored form, e.g. ``{"kind": "string", "value": "x"}``."""
    return set(value.keys()) == {"kind", "value"} and value["kind"] in _KINDS


def from_python(value: Any) -> VariableValue:
    """
    Tag a plain Python value.

    A mapping already in stored form (``{"kind": ..., "value": ...}``) is
    validated as that tagged value rather than wrapped again.

    Raises:
        ValueError: If the value has no variable representation (None, lists,
            NaN or infinite floats, arbitrary objects)
    """
    if isinstance(value, BaseModel):
        return value
    # bool is a subclass of int, check it first
    if isinstance(value, bool):
        return BooleanValue(value=value)
    if isinstance(value, (int, float)):
        if isinstance(value, float) and not math.isfinite(value):
            raise ValueError(f"Non-finite number {value!r} cannot be stored")
        return NumberValue(value=value)
    if isinstance(value, str):
        return StringValue(value=value)
    if isinstance(value, datetime):
        return TimestampValue(value=value)
    if isinstance(value, Mapping):
        if _is_tagged(value):
            return _VALUE_ADAPTER.validate_python(dict(value))
        return MappingValue(value={str(k): from_python(v) for k, v in value.items()})
    raise ValueError(f"Unsupported variable type: {type(value).__name__}")


def to_python(value: VariableValue) -> Any:
    if isinstance(value, MappingValue):
        return {k: to_python(v) for k, v in value.value.items()}
    return value.value


def coerce_variables(values: Mapping[str, Any]) -> Variables:
    """Tag every value of a plain mapping (already tagged values pass through)."""
    return {str(key): from_python(value) for key, value in values.items()}


def variables_to_python(variables: Variables) -> Dict[str, Any]:
    return {key: to_python(value) for key, value in variables.items()}


def dump_variables(variables: Variables) -> str:
    """Serialize a bag to the JSON string stored on the node."""
    return _VARIABLES_ADAPTER.dump_json(variables).decode("utf-8")


def load_variables(text: str) -> Variables:
    """Parse a stored JSON bag back into tagged values."""
    return _VARIABLES_ADAPTER.validate_json(text)


__all__ = [
    "BooleanValue",
    "MappingValue",
    "NumberValue",
    "StringValue",
    "TimestampValue",
    "VariableValue",
    "Variables",
    "coerce_variables",
    "dump_variables",
    "from_python",
    "load_variables",
    "to_python",
    "variables_to_python",
]
