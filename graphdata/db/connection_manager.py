"""
Neo4j Connection Manager for graph-data-core.

Philosophy:
- Single responsibility: own the driver and bound the sessions handed out
- One explicitly created instance per process, passed to whoever needs it
- No retries at this layer; classification happens in the TransactionManager

Connection Lifecycle:
    1. ``await ConnectionManager.open(config)`` creates the driver
    2. Connectivity is verified before the manager is returned
    3. ``async with manager.session()`` checks out an exclusive session
    4. ``await manager.close()`` refuses new checkouts, drains in-flight
       sessions, then closes the driver
"""

import asyncio
import logging
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator, Callable, Optional

import neo4j
from neo4j import AsyncGraphDatabase

from ..exceptions import ConnectionError, GraphDataError, PoolExhaustedError
from ..logging_config import mask_uri
from ..query.compiled import CompiledQuery
from .metrics import PoolMetrics, PoolStats
from .protocols import GraphDriver
from .session import PooledSession

logger = logging.getLogger(__name__)

ACCESS_MODES = {"read": neo4j.READ_ACCESS, "write": neo4j.WRITE_ACCESS}


@dataclass
class Neo4jConnectionConfig:
    """
    Configuration for a Neo4j connection.

    Philosophy: Simple dataclass with validation, no complex logic.

    Attributes:
        uri: Neo4j connection URI (e.g., bolt://localhost:7687)
        user: Neo4j username
        password: Neo4j password
        database: Target database name (None for the server default)
        max_pool_size: Maximum concurrently checked-out sessions (default: 50)
        acquisition_timeout: Max wait for a free session in seconds (default: 30.0)
        connection_timeout: Socket connect timeout in seconds (default: 30.0)
        query_timeout: Default per-query deadline in seconds (None: no deadline)
        commit_timeout: Default commit deadline in seconds (None: no deadline)
    """

    uri: str
    user: str
    password: str
    database: Optional[str] = None
    max_pool_size: int = 50
    acquisition_timeout: float = 30.0
    connection_timeout: float = 30.0
    query_timeout: Optional[float] = None
    commit_timeout: Optional[float] = None

    def __post_init__(self):
        """Validate configuration on initialization."""
        if not self.uri:
            raise ValueError("Neo4j URI is required")
        if not self.user:
            raise ValueError("Neo4j user is required")
        if not self.password:
            raise ValueError("Neo4j password is required")
        if self.max_pool_size < 1:
            raise ValueError("Max pool size must be at least 1")
        if self.acquisition_timeout <= 0:
            raise ValueError("Acquisition timeout must be positive")
        if self.connection_timeout <= 0:
            raise ValueError("Connection timeout must be positive")
        for name in ("query_timeout", "commit_timeout"):
            value = getattr(self, name)
            if value is not None and value <= 0:
                raise ValueError(f"{name} must be positive when set")

    def __repr__(self) -> str:
        return (
            f"Neo4jConnectionConfig(uri={mask_uri(self.uri)!r}, user={self.user!r}, "
            f"password='***', database={self.database!r}, "
            f"max_pool_size={self.max_pool_size})"
        )


DriverFactory = Callable[[Neo4jConnectionConfig], GraphDriver]


def create_driver(config: Neo4jConnectionConfig) -> GraphDriver:
    """Create the official async driver from a connection config."""
    return AsyncGraphDatabase.driver(
        config.uri,
        auth=(config.user, config.password),
        max_connection_pool_size=config.max_pool_size,
        connection_timeout=config.connection_timeout,
        connection_acquisition_timeout=config.acquisition_timeout,
    )


class ConnectionManager:
    """
    Owns one driver and a bounded pool of sessions.

    At most ``max_pool_size`` sessions are live at once; the next caller waits
    up to the acquisition timeout and then gets PoolExhaustedError.

    Example:
        manager = await ConnectionManager.open(config)

        async with manager.session(access_mode="read") as session:
            row = await session.run(q.match_node("n", "User").ret("n").one)

        await manager.close()

    Concurrency:
        The live-session counter is guarded by an asyncio.Condition; it is
        the only mutable state shared between callers.
    """

    def __init__(self, config: Neo4jConnectionConfig, driver: GraphDriver):
        self._config = config
        self._driver = driver
        self._condition = asyncio.Condition()
        self._stats = PoolStats(pool_size=config.max_pool_size)
        self._closing = False
        self._closed = asyncio.Event()

    @classmethod
    async def open(
        cls,
        config: Neo4jConnectionConfig,
        driver_factory: Optional[DriverFactory] = None,
        verify: bool = True,
    ) -> "ConnectionManager":
        """
        Create the driver and verify the endpoint is reachable.

        Args:
            config: Connection configuration
            driver_factory: Optional factory replacing the official driver
            verify: Whether to verify connectivity before returning

        Raises:
            ConnectionError: If the endpoint is unreachable or rejects the
                credentials
        """
        factory = driver_factory or create_driver
        safe_uri = mask_uri(config.uri)
        try:
            driver = factory(config)
        except Exception as e:
            logger.error(f"Failed to create driver for {safe_uri}: {type(e).__name__}")
            raise ConnectionError(
                f"Failed to create driver for {safe_uri}", uri=config.uri, cause=e
            ) from e

        if verify:
            try:
                await driver.verify_connectivity()
            except Exception as e:
                logger.error(f"Connectivity check failed for {safe_uri}: {type(e).__name__}")
                await driver.close()
                raise ConnectionError(
                    f"Failed to connect to Neo4j at {safe_uri}: {type(e).__name__}",
                    uri=config.uri,
                    cause=e,
                ) from e

        logger.info(f"Connected to {safe_uri} (max_pool_size={config.max_pool_size})")
        return cls(config, driver)

    @property
    def config(self) -> Neo4jConnectionConfig:
        return self._config

    @property
    def is_closed(self) -> bool:
        return self._closing

    async def _acquire(self, timeout: float) -> None:
        started = time.monotonic()
        async with self._condition:
            if self._closing:
                raise ConnectionError("Connection manager is closed", uri=self._config.uri)
            self._stats.waiting += 1
            try:
                await asyncio.wait_for(
                    self._condition.wait_for(
                        lambda: self._closing
                        or self._stats.live_sessions < self._config.max_pool_size
                    ),
                    timeout,
                )
            except asyncio.TimeoutError:
                self._stats.record_timeout()
                logger.warning(
                    f"Session checkout timed out after {timeout}s "
                    f"({self._stats.live_sessions}/{self._config.max_pool_size} live)"
                )
                raise PoolExhaustedError(
                    f"No session available within {timeout}s",
                    max_pool_size=self._config.max_pool_size,
                    waited=time.monotonic() - started,
                ) from None
            finally:
                self._stats.waiting -= 1
            if self._closing:
                raise ConnectionError(
                    "Connection manager closed while waiting for a session",
                    uri=self._config.uri,
                )
            self._stats.record_checkout(started)

    async def _release(self) -> None:
        async with self._condition:
            self._stats.record_release()
            self._condition.notify_all()

    @asynccontextmanager
    async def session(
        self, access_mode: str = "write", timeout: Optional[float] = None
    ) -> AsyncIterator[PooledSession]:
        """
        Check out an exclusive session for the duration of the block.

        Args:
            access_mode: "write" or "read"
            timeout: Max seconds to wait for a free slot (default:
                the configured acquisition timeout)

        Raises:
            PoolExhaustedError: If no slot frees up within the timeout
            ConnectionError: If the manager has been closed
        """
        if access_mode not in ACCESS_MODES:
            raise ValueError(f"access_mode must be 'read' or 'write', got {access_mode!r}")

        await self._acquire(timeout if timeout is not None else self._config.acquisition_timeout)
        try:
            raw = self._driver.session(
                database=self._config.database,
                default_access_mode=ACCESS_MODES[access_mode],
            )
        except Exception:
            await self._release()
            raise

        pooled = PooledSession(
            raw,
            access_mode=access_mode,
            query_timeout=self._config.query_timeout,
            commit_timeout=self._config.commit_timeout,
        )
        try:
            yield pooled
        finally:
            try:
                await pooled.close()
            finally:
                await self._release()

    async def verify(self, timeout: Optional[float] = None) -> None:
        """
        Round-trip ``RETURN 1`` through a read session.

        Raises:
            ConnectionError: If the query cannot be executed
        """
        try:
            async with self.session(access_mode="read") as session:
                await session.run(CompiledQuery("RETURN 1 AS ok"), timeout=timeout)
        except (ConnectionError, PoolExhaustedError):
            raise
        except GraphDataError as e:
            raise ConnectionError(
                f"Verification query failed: {e.message}", uri=self._config.uri, cause=e
            ) from e

    def metrics(self) -> PoolMetrics:
        return self._stats.snapshot()

    async def close(self, timeout: Optional[float] = None) -> None:
        """
        Refuse new checkouts, drain in-flight sessions, then close the driver.

        Idempotent; concurrent callers all wait for the same shutdown.

        Args:
            timeout: Max seconds to wait for in-flight sessions before
                closing the driver anyway (None: wait indefinitely)
        """
        async with self._condition:
            already_closing = self._closing
            self._closing = True
            # Waiters re-check _closing and raise ConnectionError
            self._condition.notify_all()

        if already_closing:
            await self._closed.wait()
            return

        try:
            async with self._condition:
                await asyncio.wait_for(
                    self._condition.wait_for(lambda: self._stats.live_sessions == 0),
                    timeout,
                )
        except asyncio.TimeoutError:
            logger.warning(
                f"Closing driver with {self._stats.live_sessions} session(s) still checked out"
            )

        try:
            await self._driver.close()
            logger.info(f"Closed driver for {mask_uri(self._config.uri)}")
        finally:
            self._closed.set()

    async def __aenter__(self) -> "ConnectionManager":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()


__all__ = ["ConnectionManager", "Neo4jConnectionConfig", "create_driver"]
