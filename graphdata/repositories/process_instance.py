"""
ProcessInstanceRepository - create, look up, patch and delete process instances.

Business keys are unique. ``create`` rejects a key that is already in use,
and the ``process_instance_business_key_unique`` constraint installed by
SchemaManager rejects a concurrent create that passed the same check.
``find_by_business_key`` still raises CardinalityError if a graph without
the constraint holds more than one match.
"""

from typing import Any, List, Mapping, Optional, Union

import structlog

from ..db.session import ManagedTransaction
from ..exceptions import NotFoundError, ValidationError
from ..models import (
    NewProcessInstance,
    ProcessInstance,
    ProcessInstancePatch,
    ProcessStatus,
    utc_now,
)
from ..query import q
from .base import BaseRepository, new_id

logger = structlog.get_logger(__name__)

LABEL = ProcessInstance.label


class ProcessInstanceRepository(BaseRepository[ProcessInstance]):
    """
    Repository for ProcessInstance nodes.

    Example:
        repo = ProcessInstanceRepository(tx_manager)
        instance = await repo.create(
            {"process_id": "order", "business_key": "BK-1", "variables": {"total": 42}}
        )
        same = await repo.find_by_business_key("BK-1")
    """

    entity = ProcessInstance
    variable = "p"

    async def create(
        self, spec: Union[NewProcessInstance, Mapping[str, Any]]
    ) -> ProcessInstance:
        """
        Create a process instance.

        Raises:
            ValidationError: If the input is invalid or the business key is taken

        A create racing another one for the same business key fails on the
        unique constraint and is reported the same way.
        """
        data = self._validate(NewProcessInstance, spec)
        now = utc_now()
        instance = ProcessInstance(
            id=new_id("process"),
            process_id=data.process_id,
            business_key=data.business_key,
            status=data.status,
            variables=data.variables,
            start_time=data.start_time or now,
            created_at=now,
            updated_at=now,
        )

        async def create_instance(tx: ManagedTransaction) -> ProcessInstance:
            existing = await tx.run(
                q.match_node("p", LABEL, {"businessKey": data.business_key})
                .ret("p.id")
                .all
            )
            if existing:
                raise ValidationError(
                    f"Business key '{data.business_key}' is already in use",
                    entity=LABEL,
                    validation_errors=["business_key: already in use"],
                )
            await self._create_unique(
                tx,
                q.create_node("p", LABEL, instance.to_properties()).all,
                "business_key: already in use",
                f"Business key '{data.business_key}' is already in use",
            )
            return instance

        created = await self._tx.write(create_instance)
        logger.info(
            f"Created process instance {created.id}",
            process_id=created.process_id,
            business_key=created.business_key,
        )
        return created

    async def find_by_id(self, instance_id: str) -> Optional[ProcessInstance]:
        return await self._read_one(
            q.match_node("p", LABEL, {"id": instance_id}).ret("p").one
        )

    async def find_by_business_key(self, business_key: str) -> Optional[ProcessInstance]:
        """
        Look up an instance by business key.

        Returns:
            The instance, or None if no instance has this key

        Raises:
            CardinalityError: If more than one instance has this key
        """
        return await self._read_one(
            q.match_node("p", LABEL, {"businessKey": business_key}).ret("p").one
        )

    async def update(
        self,
        instance_id: str,
        patch: Union[ProcessInstancePatch, Mapping[str, Any]],
    ) -> ProcessInstance:
        """
        Apply a patch in a single read-modify-write transaction.

        The node is write-locked before the status check, so concurrent
        updates of one instance apply one after the other.

        Moving to a terminal status stamps ``end_time`` unless the patch or
        the stored instance already carries one.

        Raises:
            NotFoundError: If no instance has this id
            ValidationError: If the patch is invalid or changes the status of
                a completed or terminated instance
        """
        changes = self._validate(ProcessInstancePatch, patch)

        async def update_instance(tx: ManagedTransaction) -> ProcessInstance:
            now = utc_now()
            match = q.match_node("p", LABEL, {"id": instance_id})
            current = await self._lock_one(tx, match, now)
            if current is None:
                raise NotFoundError(
                    f"Process instance {instance_id} not found",
                    entity=LABEL,
                    key=instance_id,
                )

            updates = {}
            if changes.status is not None and changes.status != current.status:
                if current.status.is_terminal:
                    raise ValidationError(
                        f"Process instance {instance_id} is {current.status.value} "
                        "and cannot change status",
                        entity=LABEL,
                        validation_errors=["status: instance is in a terminal state"],
                    )
                updates["status"] = changes.status
                if changes.status.is_terminal and current.end_time is None:
                    updates["end_time"] = now
            if changes.variables is not None:
                updates["variables"] = changes.variables
            if changes.end_time is not None:
                updates["end_time"] = changes.end_time
            updates["updated_at"] = now

            updated = current.model_copy(update=updates)
            await tx.run(
                match.set_properties("p", self._aliases(updated, updates)).all
            )
            return updated

        updated = await self._tx.write(update_instance)
        logger.info(
            f"Updated process instance {instance_id}",
            status=updated.status.value,
        )
        return updated

    async def delete(self, instance_id: str) -> None:
        """
        Delete an instance and its relationships.

        Raises:
            NotFoundError: If no instance has this id
        """
        match = q.match_node("p", LABEL, {"id": instance_id})

        async def delete_instance(tx: ManagedTransaction) -> None:
            if await tx.run(match.ret("p.id").one) is None:
                raise NotFoundError(
                    f"Process instance {instance_id} not found",
                    entity=LABEL,
                    key=instance_id,
                )
            await tx.run(match.detach_delete("p").all)

        await self._tx.write(delete_instance)
        logger.info(f"Deleted process instance {instance_id}")

    async def list_by_status(
        self, status: Union[ProcessStatus, str], limit: int = 100
    ) -> List[ProcessInstance]:
        """Most recently created instances in ``status``, newest first."""
        try:
            status = ProcessStatus(status)
        except ValueError as e:
            raise ValidationError(
                f"Unknown process status {status!r}", entity=LABEL, cause=e
            ) from e
        return await self._read_all(
            q.match_node("p", LABEL, {"status": status.value})
            .ret("p")
            .order_by("p.createdAt", descending=True)
            .limit(limit)
            .all
        )


__all__ = ["ProcessInstanceRepository"]
