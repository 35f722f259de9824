"""Process instance entity and its write inputs."""

from datetime import datetime
from enum import Enum
from typing import Any, ClassVar, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .base import VariableBagEntity
from .variables import Variables, coerce_variables, variables_to_python


class ProcessStatus(str, Enum):
    """Lifecycle state of a process instance."""

    RUNNING = "running"
    SUSPENDED = "suspended"
    COMPLETED = "completed"
    TERMINATED = "terminated"

    @property
    def is_terminal(self) -> bool:
        return self in (ProcessStatus.COMPLETED, ProcessStatus.TERMINATED)


class ProcessInstance(VariableBagEntity):
    """A running (or finished) execution of a process definition."""

    label: ClassVar[str] = "ProcessInstance"

    process_id: str
    business_key: str
    status: ProcessStatus
    start_time: datetime
    end_time: Optional[datetime] = None

    def variables_as_python(self) -> Dict[str, Any]:
        return variables_to_python(self.variables)


class NewProcessInstance(BaseModel):
    """Input for ``ProcessInstanceRepository.create``."""

    process_id: str = Field(min_length=1)
    business_key: str = Field(min_length=1)
    status: ProcessStatus = ProcessStatus.RUNNING
    variables: Variables = Field(default_factory=dict)
    start_time: Optional[datetime] = None

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    @field_validator("variables", mode="before")
    @classmethod
    def tag_variables(cls, v: Any) -> Any:
        if isinstance(v, dict):
            return coerce_variables(v)
        return v

    @field_validator("status")
    @classmethod
    def validate_initial_status(cls, v: ProcessStatus) -> ProcessStatus:
        if v.is_terminal:
            raise ValueError("a new process instance cannot start in a terminal state")
        return v


class ProcessInstancePatch(BaseModel):
    """Input for ``ProcessInstanceRepository.update``; unset fields are left alone."""

    status: Optional[ProcessStatus] = None
    variables: Optional[Variables] = None
    end_time: Optional[datetime] = None

    model_config = ConfigDict(extra="forbid")

    @field_validator("variables", mode="before")
    @classmethod
    def tag_variables(cls, v: Any) -> Any:
        if isinstance(v, dict):
            return coerce_variables(v)
        return v

    @model_validator(mode="after")
    def require_change(self) -> "ProcessInstancePatch":
        if self.status is None and self.variables is None and self.end_time is None:
            raise ValueError("patch contains no changes")
        return self


__all__ = [
    "NewProcessInstance",
    "ProcessInstance",
    "ProcessInstancePatch",
    "ProcessStatus",
]
