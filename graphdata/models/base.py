"""
Shared base for entities mapped to graph nodes.

Field names are snake_case in Python and camelCase on the node
(``business_key`` <-> ``businessKey``). Entities are frozen; changes go
through a repository, which returns a new instance.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, ClassVar, Dict, Mapping, Type, TypeVar

from pydantic import BaseModel, ConfigDict, field_serializer, field_validator
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel

from ..exceptions import ValidationError
from .variables import Variables, dump_variables, load_variables

E = TypeVar("E", bound="GraphEntity")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def format_validation_errors(error: PydanticValidationError) -> list:
    """Flatten pydantic errors to ``"field: message"`` strings."""
    messages = []
    for item in error.errors():
        location = ".".join(str(part) for part in item["loc"]) or "input"
        messages.append(f"{location}: {item['msg']}")
    return messages


class GraphEntity(BaseModel):
    """Base class for node-backed entities with a stable id."""

    label: ClassVar[str] = ""

    id: str
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    @field_validator("*", mode="before")
    @classmethod
    def convert_driver_temporal(cls, v: Any) -> Any:
        """Driver temporal types (neo4j.time.DateTime) become stdlib values."""
        if hasattr(v, "to_native"):
            return v.to_native()
        return v

    @classmethod
    def from_node(cls: Type[E], properties: Mapping[str, Any]) -> E:
        """
        Build an entity from a node's property map.

        Raises:
            ValidationError: If the stored properties do not form a valid entity
        """
        try:
            return cls.model_validate(dict(properties))
        except PydanticValidationError as e:
            raise ValidationError(
                f"Stored {cls.label or cls.__name__} node is malformed",
                entity=cls.label or cls.__name__,
                validation_errors=format_validation_errors(e),
                cause=e,
            ) from e

    def to_properties(self) -> Dict[str, Any]:
        """Node property map: camelCase keys, no nulls, enums as plain strings."""
        properties = self.model_dump(by_alias=True, exclude_none=True)
        return {
            key: value.value if isinstance(value, Enum) else value
            for key, value in properties.items()
        }


class VariableBagEntity(GraphEntity):
    """Entity carrying a typed variables bag stored as a JSON string."""

    variables: Variables = {}

    @field_validator("variables", mode="before")
    @classmethod
    def parse_stored_variables(cls, v: Any) -> Any:
        if isinstance(v, str):
            return load_variables(v)
        return v

    @field_serializer("variables")
    def serialize_variables(self, v: Variables) -> str:
        return dump_variables(v)


__all__ = [
    "GraphEntity",
    "VariableBagEntity",
    "format_validation_errors",
    "utc_now",
]
