"""TaskRepository - tasks attached to process instances via ``HAS_TASK``."""

from typing import Any, Callable, Dict, List, Mapping, Optional, Union

import structlog

from ..db.session import ManagedTransaction
from ..exceptions import NotFoundError, ValidationError
from ..models import (
    NewTask,
    ProcessInstance,
    ProcessStatus,
    Task,
    TaskStatus,
    coerce_variables,
    utc_now,
)
from ..query import prop, q
from .base import BaseRepository, new_id

logger = structlog.get_logger(__name__)

LABEL = Task.label
HAS_TASK = "HAS_TASK"
OPEN_STATUSES = [TaskStatus.CREATED.value, TaskStatus.ASSIGNED.value]


class TaskRepository(BaseRepository[Task]):
    entity = Task
    variable = "t"

    async def create_for_instance(
        self, instance_id: str, spec: Union[NewTask, Mapping[str, Any]]
    ) -> Task:
        """
        Create a task and link it to its process instance.

        Raises:
            ValidationError: If the input is invalid or the instance is finished
            NotFoundError: If the process instance does not exist
        """
        data = self._validate(NewTask, spec)
        now = utc_now()
        task = Task(
            id=new_id("task"),
            task_id=data.task_id,
            name=data.name,
            type=data.type,
            status=TaskStatus.ASSIGNED if data.assignee else TaskStatus.CREATED,
            process_instance_id=instance_id,
            assignee=data.assignee,
            due_date=data.due_date,
            priority=data.priority,
            variables=data.variables,
            created_at=now,
            updated_at=now,
        )
        instance = q.match_node("p", ProcessInstance.label, {"id": instance_id})

        async def create_task(tx: ManagedTransaction) -> Task:
            row = await tx.run(instance.ret("p.status").one)
            if row is None:
                raise NotFoundError(
                    f"Process instance {instance_id} not found",
                    entity=ProcessInstance.label,
                    key=instance_id,
                )
            if ProcessStatus(row["p.status"]).is_terminal:
                raise ValidationError(
                    f"Process instance {instance_id} is {row['p.status']}; "
                    "no new tasks can be added",
                    entity=LABEL,
                )
            await tx.run(
                instance.create_node("t", LABEL, task.to_properties())
                .create_relationship("p", HAS_TASK, "t")
                .all
            )
            return task

        created = await self._tx.write(create_task)
        logger.info(
            f"Created task {created.id} for instance {instance_id}",
            task_type=created.type.value,
            assignee=created.assignee,
        )
        return created

    async def find_by_id(self, task_id: str) -> Optional[Task]:
        return await self._read_one(q.match_node("t", LABEL, {"id": task_id}).ret("t").one)

    async def _transition(
        self, task_id: str, action: str, changes: Callable[[Task], Dict[str, Any]]
    ) -> Task:
        """Read-modify-write an open task; finished tasks are rejected."""
        match = q.match_node("t", LABEL, {"id": task_id})

        async def transition(tx: ManagedTransaction) -> Task:
            now = utc_now()
            current = await self._lock_one(tx, match, now)
            if current is None:
                raise NotFoundError(f"Task {task_id} not found", entity=LABEL, key=task_id)
            if current.status.is_terminal:
                raise ValidationError(
                    f"Cannot {action} task {task_id}: it is {current.status.value}",
                    entity=LABEL,
                )
            updates = changes(current)
            updates["updated_at"] = now
            updated = current.model_copy(update=updates)
            await tx.run(match.set_properties("t", self._aliases(updated, updates)).all)
            return updated

        updated = await self._tx.write(transition)
        logger.info(f"Task {task_id}: {action}", status=updated.status.value)
        return updated

    async def assign(self, task_id: str, assignee: str) -> Task:
        if not assignee or not assignee.strip():
            raise ValidationError("Assignee must not be empty", entity=LABEL)
        return await self._transition(
            task_id,
            "assign",
            lambda task: {"assignee": assignee.strip(), "status": TaskStatus.ASSIGNED},
        )

    async def complete(
        self, task_id: str, variables: Optional[Mapping[str, Any]] = None
    ) -> Task:
        """Complete a task, merging ``variables`` into its bag."""
        try:
            extra = coerce_variables(variables or {})
        except ValueError as e:
            raise ValidationError(str(e), entity=LABEL, cause=e) from e

        def completion(task: Task) -> Dict[str, Any]:
            return {
                "status": TaskStatus.COMPLETED,
                "completed_at": utc_now(),
                "variables": {**task.variables, **extra},
            }

        return await self._transition(task_id, "complete", completion)

    async def list_for_instance(self, instance_id: str) -> List[Task]:
        """Tasks of a process instance, oldest first."""
        return await self._read_all(
            q.match_node("p", ProcessInstance.label, {"id": instance_id})
            .match_node("t", LABEL)
            .match_relationship("p", HAS_TASK, "t")
            .ret("t")
            .order_by("t.createdAt")
            .all
        )

    async def list_for_assignee(
        self, assignee: str, include_finished: bool = False, limit: int = 100
    ) -> List[Task]:
        """An assignee's tasks, highest priority first."""
        builder = q.match_node("t", LABEL, {"assignee": assignee})
        if not include_finished:
            builder = builder.where(prop("t", "status").in_(OPEN_STATUSES))
        return await self._read_all(
            builder.ret("t").order_by("t.priority", descending=True).limit(limit).all
        )


__all__ = ["HAS_TASK", "TaskRepository"]
