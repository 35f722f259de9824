"""
Domain entities mapped to graph nodes.

Entities are frozen pydantic models built from node property maps; the
``New*`` and ``*Patch`` models validate repository input.
"""

from .base import GraphEntity, VariableBagEntity, utc_now
from .process_instance import (
    NewProcessInstance,
    ProcessInstance,
    ProcessInstancePatch,
    ProcessStatus,
)
from .task import NewTask, Task, TaskStatus, TaskType
from .user import NewUser, User
from .variables import (
    BooleanValue,
    MappingValue,
    NumberValue,
    StringValue,
    TimestampValue,
    VariableValue,
    Variables,
    coerce_variables,
    dump_variables,
    from_python,
    load_variables,
    to_python,
    variables_to_python,
)

__all__ = [
    "BooleanValue",
    "GraphEntity",
    "MappingValue",
    "NewProcessInstance",
    "NewTask",
    "NewUser",
    "NumberValue",
    "ProcessInstance",
    "ProcessInstancePatch",
    "ProcessStatus",
    "StringValue",
    "Task",
    "TaskStatus",
    "TaskType",
    "TimestampValue",
    "User",
    "VariableBagEntity",
    "VariableValue",
    "Variables",
    "coerce_variables",
    "dump_variables",
    "from_python",
    "load_variables",
    "to_python",
    "utc_now",
    "variables_to_python",
]
