"""
PooledSession - single-owner wrapper around a driver session.

Every network-facing call (query, begin, commit) runs under a deadline.
Driver exceptions are translated into the graphdata hierarchy at this
boundary so callers only ever see classified errors.
"""

import asyncio
import logging
from enum import Enum
from typing import Any, Awaitable, Dict, List, Optional, TypeVar, Union

from ..exceptions import (
    GraphDataError,
    TimeoutError,
    TransactionStateError,
    wrap_driver_exception,
)
from ..query.compiled import CompiledQuery, Record
from .protocols import GraphSession, GraphTransaction

logger = logging.getLogger(__name__)

T = TypeVar("T")

Shaped = Union[Optional[Record], List[Record]]


class TxState(str, Enum):
    PENDING = "pending"
    EXECUTING = "executing"
    COMMITTED = "committed"
    ROLLED_BACK = "rolled_back"


async def _with_deadline(
    call: Awaitable[T],
    timeout: Optional[float],
    operation: str,
    context: Optional[Dict[str, Any]] = None,
    during_commit: bool = False,
) -> T:
    """Await ``call`` within ``timeout`` seconds, translating driver failures."""
    try:
        if timeout is None:
            return await call
        return await asyncio.wait_for(call, timeout)
    except asyncio.TimeoutError as e:
        raise TimeoutError(
            f"{operation} did not finish within {timeout}s",
            operation=operation,
            timeout=timeout,
            during_commit=during_commit,
            context=dict(context or {}),
        ) from e
    except GraphDataError:
        raise
    except Exception as e:
        raise wrap_driver_exception(e, dict(context or {})) from e


async def _fetch(runner: Any, compiled: CompiledQuery, timeout: Optional[float]) -> Shaped:
    async def call() -> List[Record]:
        result = await runner.run(compiled.text, compiled.params())
        return await result.data()

    records = await _with_deadline(
        call(), timeout, "query", {"query": compiled.text[:200]}
    )
    return compiled.shape(records)


class ManagedTransaction:
    """
    One unit-of-work attempt bound to one session.

    State moves ``pending -> executing -> committed | rolled_back``. Running a
    query or committing after a terminal state raises TransactionStateError.
    """

    def __init__(
        self,
        tx: GraphTransaction,
        query_timeout: Optional[float] = None,
        commit_timeout: Optional[float] = None,
    ) -> None:
        self._tx = tx
        self._query_timeout = query_timeout
        self._commit_timeout = commit_timeout
        self.state = TxState.PENDING

    @property
    def is_open(self) -> bool:
        return self.state in (TxState.PENDING, TxState.EXECUTING)

    def _ensure_open(self, action: str) -> None:
        if not self.is_open:
            raise TransactionStateError(
                f"Cannot {action} a transaction that is already {self.state.value}",
                state=self.state.value,
            )

    async def run(self, compiled: CompiledQuery, timeout: Optional[float] = None) -> Shaped:
        """
        Run a compiled query and shape the rows by its cardinality.

        Raises:
            CardinalityError: If a ``.one`` query returned more than one row
            TimeoutError: If the query exceeded its deadline
        """
        self._ensure_open("run a query on")
        self.state = TxState.EXECUTING
        return await _fetch(self._tx, compiled, timeout or self._query_timeout)

    async def run_text(
        self,
        text: str,
        parameters: Optional[Dict[str, Any]] = None,
        timeout: Optional[float] = None,
    ) -> List[Record]:
        """Run a literal statement (schema DDL) with bound parameters."""
        return await self.run(
            CompiledQuery(text, dict(parameters or {})), timeout=timeout
        )

    async def commit(self, timeout: Optional[float] = None) -> None:
        """
        Commit the transaction.

        A commit deadline expiring raises TimeoutError with
        ``during_commit=True``; the outcome on the server is unknown.
        """
        self._ensure_open("commit")
        try:
            await _with_deadline(
                self._tx.commit(),
                timeout or self._commit_timeout,
                "commit",
                during_commit=True,
            )
        except GraphDataError:
            # The driver transaction is finished; nothing left to roll back
            self.state = TxState.ROLLED_BACK
            raise
        self.state = TxState.COMMITTED

    async def rollback(self) -> None:
        """Roll back; a no-op if already rolled back."""
        if self.state is TxState.ROLLED_BACK:
            return
        if self.state is TxState.COMMITTED:
            raise TransactionStateError(
                "Cannot roll back a committed transaction", state=self.state.value
            )
        self.state = TxState.ROLLED_BACK
        await _with_deadline(self._tx.rollback(), self._query_timeout, "rollback")

    async def close(self) -> None:
        if self.is_open:
            self.state = TxState.ROLLED_BACK
        await self._tx.close()


class PooledSession:
    """
    Exclusive session checked out from a ConnectionManager.

    Only the caller that checked it out uses it; the manager reclaims it when
    the ``async with`` block exits.
    """

    def __init__(
        self,
        session: GraphSession,
        access_mode: str = "write",
        query_timeout: Optional[float] = None,
        commit_timeout: Optional[float] = None,
    ) -> None:
        self._session = session
        self.access_mode = access_mode
        self._query_timeout = query_timeout
        self._commit_timeout = commit_timeout
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def _ensure_usable(self) -> None:
        if self._closed:
            raise TransactionStateError("Session has already been returned to the pool")

    async def run(self, compiled: CompiledQuery, timeout: Optional[float] = None) -> Shaped:
        """Run a compiled query in an auto-commit transaction."""
        self._ensure_usable()
        return await _fetch(self._session, compiled, timeout or self._query_timeout)

    async def begin_transaction(self, timeout: Optional[float] = None) -> ManagedTransaction:
        """Begin an explicit transaction on this session."""
        self._ensure_usable()
        tx = await _with_deadline(
            self._session.begin_transaction(),
            timeout or self._query_timeout,
            "begin_transaction",
        )
        return ManagedTransaction(
            tx,
            query_timeout=self._query_timeout,
            commit_timeout=self._commit_timeout,
        )

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            await self._session.close()
        except Exception as e:
            # The slot is released regardless; the driver discards the connection
            logger.warning(f"Error closing driver session: {e}")


__all__ = ["ManagedTransaction", "PooledSession", "TxState"]
