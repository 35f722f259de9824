"""
Transaction boundary with classified, bounded retries.

Philosophy:
- Explicit transaction boundaries: one unit of work, one transaction per attempt
- Retry only what can succeed on retry (transient failures)
- Exponential backoff with jitter to avoid synchronized retry storms
- Progress tracking for chunked batch work

Patterns:
    TransactionManager.run: Execute a unit of work, retrying transient failures
    TransactionManager.run_chunked: Process large batches one transaction per chunk
"""

import asyncio
import logging
import random
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, List, Optional, Sequence, TypeVar

from neo4j import exceptions as neo4j_exceptions

from ..exceptions import (
    ErrorKind,
    TimeoutError,
    TxRetriesExhausted,
    classify_error,
    wrap_driver_exception,
)
from .connection_manager import ConnectionManager
from .session import ManagedTransaction

logger = logging.getLogger(__name__)

T = TypeVar("T")
C = TypeVar("C")

UnitOfWork = Callable[[ManagedTransaction], Awaitable[T]]


@dataclass(frozen=True)
class RetryPolicy:
    """
    Bounded retry schedule for transient failures.

    The delay before attempt ``n + 1`` is ``min(backoff_ceiling,
    backoff_base * 2 ** (n - 1))`` scaled by a random factor in
    ``[1 - jitter, 1]``.

    Attributes:
        max_attempts: Total attempts including the first (>= 1)
        backoff_base: Delay after the first failure in seconds
        backoff_ceiling: Upper bound for any single delay in seconds
        jitter: Fraction of the delay that may be randomly shaved off (0-1)
    """

    max_attempts: int = 5
    backoff_base: float = 0.1
    backoff_ceiling: float = 5.0
    jitter: float = 0.5

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.backoff_base < 0:
            raise ValueError("backoff_base must not be negative")
        if self.backoff_ceiling < self.backoff_base:
            raise ValueError("backoff_ceiling must be >= backoff_base")
        if not 0.0 <= self.jitter <= 1.0:
            raise ValueError("jitter must be between 0 and 1")

    def delay(self, attempt: int, rng: Optional[random.Random] = None) -> float:
        """Backoff in seconds after failed attempt number ``attempt`` (1-based)."""
        base = min(self.backoff_ceiling, self.backoff_base * (2 ** (attempt - 1)))
        if self.jitter == 0:
            return base
        factor = 1.0 - self.jitter * (rng or random).random()
        return base * factor


class TransactionManager:
    """
    Runs units of work inside transactions and retries transient failures.

    Each attempt checks out a fresh session, begins a transaction, awaits the
    unit of work and commits. Any failure rolls the transaction back and is
    classified: transient failures re-run the whole unit after a backoff,
    permanent failures propagate at once.

    Example:
        tx_manager = TransactionManager(manager, RetryPolicy(max_attempts=3))

        async def rename(tx):
            query = q.match_node("u", "User", {"id": user_id}).set_properties(
                "u", {"name": "Ada"}
            ).ret("u").one
            return await tx.run(query)

        row = await tx_manager.write(rename)

    Note:
        A unit of work may run more than once; it must not have side effects
        outside the transaction.
    """

    def __init__(
        self,
        manager: ConnectionManager,
        policy: Optional[RetryPolicy] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        rng: Optional[random.Random] = None,
    ):
        self._manager = manager
        self.policy = policy or RetryPolicy()
        self._sleep = sleep
        self._rng = rng or random.Random()

    async def run(
        self,
        unit_of_work: UnitOfWork,
        *,
        access_mode: str = "write",
        timeout: Optional[float] = None,
    ) -> T:
        """
        Execute ``unit_of_work`` in a transaction with bounded retries.

        Args:
            unit_of_work: Async callable receiving a ManagedTransaction
            access_mode: "write" or "read"
            timeout: Deadline in seconds for the unit of work in each attempt

        Returns:
            Whatever the unit of work returned on the committed attempt

        Raises:
            TxRetriesExhausted: If every attempt failed transiently
            GraphDataError: The first permanent failure, unchanged
        """
        name = getattr(unit_of_work, "__name__", "unit_of_work")

        for attempt in range(1, self.policy.max_attempts + 1):
            logger.debug(f"Running {name} (attempt {attempt}/{self.policy.max_attempts})")
            try:
                return await self._attempt(unit_of_work, access_mode, timeout)
            except Exception as e:
                if classify_error(e) is ErrorKind.PERMANENT:
                    logger.debug(f"{name} failed permanently: {type(e).__name__}")
                    if isinstance(
                        e, (neo4j_exceptions.Neo4jError, neo4j_exceptions.DriverError)
                    ):
                        raise wrap_driver_exception(e, {"unit_of_work": name}) from e
                    raise

                error = wrap_driver_exception(e, {"unit_of_work": name})
                if attempt == self.policy.max_attempts:
                    logger.error(
                        f"{name} failed after {attempt} attempts: {error.message}"
                    )
                    raise TxRetriesExhausted(
                        f"{name} failed after {attempt} attempts",
                        last_error=error,
                        attempts=attempt,
                    ) from e

                delay = self.policy.delay(attempt, self._rng)
                logger.warning(
                    f"Retry {attempt}/{self.policy.max_attempts - 1} of {name} "
                    f"in {delay:.3f}s after transient error: {error.message}"
                )
                await self._sleep(delay)

        # max_attempts >= 1, so the loop always returns or raises
        raise AssertionError("unreachable")

    async def _attempt(
        self, unit_of_work: UnitOfWork, access_mode: str, timeout: Optional[float]
    ) -> T:
        async with self._manager.session(access_mode=access_mode) as session:
            tx = await session.begin_transaction()
            try:
                if timeout is None:
                    result = await unit_of_work(tx)
                else:
                    try:
                        result = await asyncio.wait_for(unit_of_work(tx), timeout)
                    except asyncio.TimeoutError as e:
                        raise TimeoutError(
                            f"Unit of work did not finish within {timeout}s",
                            operation="unit_of_work",
                            timeout=timeout,
                        ) from e
                await tx.commit()
                return result
            except Exception:
                await self._rollback(tx)
                raise

    async def _rollback(self, tx: ManagedTransaction) -> None:
        if not tx.is_open:
            return
        try:
            await tx.rollback()
        except Exception as rollback_error:
            # The original error propagates
            logger.warning(f"Rollback failed: {rollback_error}")

    async def read(self, unit_of_work: UnitOfWork, timeout: Optional[float] = None) -> T:
        return await self.run(unit_of_work, access_mode="read", timeout=timeout)

    async def write(self, unit_of_work: UnitOfWork, timeout: Optional[float] = None) -> T:
        return await self.run(unit_of_work, access_mode="write", timeout=timeout)

    async def run_chunked(
        self,
        items: Sequence[C],
        chunk_size: int,
        process_fn: Callable[[ManagedTransaction, Sequence[C]], Awaitable[T]],
        progress_callback: Optional[Callable[[int, int], None]] = None,
    ) -> List[T]:
        """
        Process items in chunked transactions.

        Use for large batch operations that would time out in a single
        transaction. Each chunk commits on its own (with retries), so
        progress is kept when a later chunk fails.

        Args:
            items: Items to process
            chunk_size: Items per transaction
            process_fn: Async function receiving ``(tx, chunk)``
            progress_callback: Optional callback(processed, total)

        Returns:
            List of results from each chunk
        """
        if chunk_size < 1:
            raise ValueError("chunk_size must be at least 1")

        results = []
        total = len(items)

        for i in range(0, total, chunk_size):
            chunk = items[i : i + chunk_size]

            async def process_chunk(tx: ManagedTransaction, chunk=chunk) -> T:
                return await process_fn(tx, chunk)

            results.append(await self.write(process_chunk))

            if progress_callback:
                processed = min(i + chunk_size, total)
                progress_callback(processed, total)

        return results


__all__ = ["RetryPolicy", "TransactionManager", "UnitOfWork"]
