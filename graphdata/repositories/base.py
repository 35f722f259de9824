"""
Shared repository plumbing.

Repositories compile queries with the builder, run them through the
TransactionManager and map rows to frozen entities. They never hand out
driver records or raw exceptions.
"""

import uuid
from datetime import datetime
from typing import Any, Generic, Iterable, List, Mapping, Optional, Type, TypeVar, Union

import structlog
from neo4j import exceptions as neo4j_exceptions
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from ..db.session import ManagedTransaction
from ..db.transaction import TransactionManager
from ..exceptions import QueryError, ValidationError
from ..models.base import GraphEntity, format_validation_errors
from ..query import CompiledQuery, QueryBuilder, Record

logger = structlog.get_logger(__name__)

E = TypeVar("E", bound=GraphEntity)
M = TypeVar("M", bound=BaseModel)


def new_id(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex}"


class BaseRepository(Generic[E]):
    """Common lookups for a single node label."""

    entity: Type[E]
    variable: str = "n"

    def __init__(self, tx_manager: TransactionManager):
        self._tx = tx_manager

    @property
    def label(self) -> str:
        return self.entity.label

    def _validate(self, model: Type[M], data: Union[M, Mapping[str, Any]]) -> M:
        if isinstance(data, model):
            return data
        if not isinstance(data, Mapping):
            raise ValidationError(
                f"Expected {model.__name__} or a mapping, got {type(data).__name__}",
                entity=self.label,
            )
        try:
            return model.model_validate(dict(data))
        except PydanticValidationError as e:
            errors = format_validation_errors(e)
            logger.info(f"Rejected {self.label} input", errors=errors)
            raise ValidationError(
                f"Invalid {self.label} input",
                entity=self.label,
                validation_errors=errors,
                cause=e,
            ) from e

    def _map_one(self, row: Optional[Record]) -> Optional[E]:
        if row is None:
            return None
        return self.entity.from_node(row[self.variable])

    def _map_all(self, rows: Iterable[Record]) -> List[E]:
        return [self.entity.from_node(row[self.variable]) for row in rows]

    async def _lock_one(
        self, tx: ManagedTransaction, match: QueryBuilder, now: datetime
    ) -> Optional[E]:
        """
        Fetch the matched node after taking its write lock.

        Writing ``updatedAt`` first makes the lock holder the only transaction
        that can read, check and rewrite the node until it commits.
        """
        locked = match.set_properties(self.variable, {"updatedAt": now})
        return self._map_one(await tx.run(locked.ret(self.variable).one))

    async def _create_unique(
        self, tx: ManagedTransaction, query: CompiledQuery, error: str, message: str
    ) -> None:
        """Run a CREATE; a uniqueness constraint violation becomes ValidationError."""
        try:
            await tx.run(query)
        except QueryError as e:
            if not isinstance(e.cause, neo4j_exceptions.ConstraintError):
                raise
            raise ValidationError(
                message, entity=self.label, validation_errors=[error], cause=e
            ) from e

    async def _read_one(self, query: CompiledQuery) -> Optional[E]:
        async def read_one(tx: ManagedTransaction) -> Optional[E]:
            return self._map_one(await tx.run(query))

        return await self._tx.read(read_one)

    async def _read_all(self, query: CompiledQuery) -> List[E]:
        async def read_all(tx: ManagedTransaction) -> List[E]:
            return self._map_all(await tx.run(query))

        return await self._tx.read(read_all)

    @staticmethod
    def _aliases(entity: GraphEntity, fields: Iterable[str]) -> dict:
        """Node properties for the given snake_case fields of ``entity``."""
        properties = entity.to_properties()
        aliases = (type(entity).model_fields[name].alias or name for name in fields)
        return {alias: properties[alias] for alias in aliases if alias in properties}


__all__ = ["BaseRepository", "new_id"]
