"""
Idempotent schema setup for the process-management graph.

Statements use ``IF NOT EXISTS`` / ``IF EXISTS`` so they can run on every
startup. Schema commands run in auto-commit transactions, one per statement.
"""

import logging
from dataclasses import dataclass
from typing import List, Tuple

from ..query.compiled import CompiledQuery
from .connection_manager import ConnectionManager

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UniqueConstraint:
    name: str
    label: str
    property: str

    def create(self) -> str:
        return (
            f"CREATE CONSTRAINT {self.name} IF NOT EXISTS "
            f"FOR (n:{self.label}) REQUIRE n.{self.property} IS UNIQUE"
        )

    def drop(self) -> str:
        return f"DROP CONSTRAINT {self.name} IF EXISTS"


@dataclass(frozen=True)
class PropertyIndex:
    name: str
    label: str
    property: str

    def create(self) -> str:
        return (
            f"CREATE INDEX {self.name} IF NOT EXISTS "
            f"FOR (n:{self.label}) ON (n.{self.property})"
        )

    def drop(self) -> str:
        return f"DROP INDEX {self.name} IF EXISTS"


CONSTRAINTS: Tuple[UniqueConstraint, ...] = (
    UniqueConstraint("process_instance_id_unique", "ProcessInstance", "id"),
    UniqueConstraint(
        "process_instance_business_key_unique", "ProcessInstance", "businessKey"
    ),
    UniqueConstraint("task_id_unique", "Task", "id"),
    UniqueConstraint("user_id_unique", "User", "id"),
    UniqueConstraint("user_email_unique", "User", "email"),
)

INDEXES: Tuple[PropertyIndex, ...] = (
    PropertyIndex("task_assignee", "Task", "assignee"),
    PropertyIndex("user_tenant", "User", "tenantId"),
)


class SchemaManager:
    """
    Creates and drops the constraints and indexes the repositories rely on.

    Example:
        await SchemaManager(manager).create_constraints()
    """

    def __init__(self, manager: ConnectionManager):
        self._manager = manager

    async def _execute(self, statements: List[str]) -> None:
        async with self._manager.session(access_mode="write") as session:
            for statement in statements:
                logger.debug(f"Schema: {statement}")
                await session.run(CompiledQuery(statement))

    async def create_constraints(self) -> None:
        """Create uniqueness constraints and lookup indexes if missing."""
        statements = [c.create() for c in CONSTRAINTS] + [i.create() for i in INDEXES]
        await self._execute(statements)
        logger.info(
            f"Ensured {len(CONSTRAINTS)} constraints and {len(INDEXES)} indexes"
        )

    async def drop_all(self) -> None:
        """Drop every constraint and index created by ``create_constraints``."""
        statements = [c.drop() for c in CONSTRAINTS] + [i.drop() for i in INDEXES]
        await self._execute(statements)
        logger.info("Dropped schema constraints and indexes")


__all__ = ["CONSTRAINTS", "INDEXES", "PropertyIndex", "SchemaManager", "UniqueConstraint"]
