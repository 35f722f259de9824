"""Task entity and its write inputs."""

from datetime import datetime
from enum import Enum
from typing import Any, ClassVar, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .base import VariableBagEntity
from .variables import Variables, coerce_variables


class TaskType(str, Enum):
    USER = "user"
    SERVICE = "service"
    SEND = "send"
    RECEIVE = "receive"
    MANUAL = "manual"
    BUSINESS_RULE = "businessRule"


class TaskStatus(str, Enum):
    CREATED = "created"
    ASSIGNED = "assigned"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (TaskStatus.COMPLETED, TaskStatus.FAILED)


class Task(VariableBagEntity):
    """A unit of work inside a process instance, linked by ``HAS_TASK``."""

    label: ClassVar[str] = "Task"

    task_id: str
    name: str
    type: TaskType
    status: TaskStatus
    process_instance_id: str
    assignee: Optional[str] = None
    due_date: Optional[datetime] = None
    priority: int = 50
    completed_at: Optional[datetime] = None


class NewTask(BaseModel):
    """Input for ``TaskRepository.create_for_instance``."""

    task_id: str = Field(min_length=1)
    name: str = Field(min_length=1)
    type: TaskType = TaskType.USER
    assignee: Optional[str] = None
    due_date: Optional[datetime] = None
    priority: int = Field(default=50, ge=0, le=100)
    variables: Variables = Field(default_factory=dict)

    model_config = ConfigDict(extra="forbid")

    @field_validator("variables", mode="before")
    @classmethod
    def tag_variables(cls, v: Any) -> Any:
        if isinstance(v, dict):
            return coerce_variables(v)
        return v


__all__ = ["NewTask", "Task", "TaskStatus", "TaskType"]
