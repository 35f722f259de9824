"""User entity and its write input."""

import re
from typing import ClassVar, List

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .base import GraphEntity

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


class User(GraphEntity):
    label: ClassVar[str] = "User"

    user_id: str
    email: str
    roles: List[str] = []
    tenant_id: str


class NewUser(BaseModel):
    """Input for ``UserRepository.create``."""

    user_id: str = Field(min_length=1)
    email: str
    roles: List[str] = Field(default_factory=list)
    tenant_id: str = Field(min_length=1)

    model_config = ConfigDict(extra="forbid")

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: str) -> str:
        v = v.strip().lower()
        if not EMAIL_PATTERN.match(v):
            raise ValueError("not a valid email address")
        return v

    @field_validator("roles")
    @classmethod
    def dedupe_roles(cls, v: List[str]) -> List[str]:
        # Keep first occurrence order
        return list(dict.fromkeys(v))


__all__ = ["NewUser", "User"]
