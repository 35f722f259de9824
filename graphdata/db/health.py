"""
Health check utilities for Neo4j connections.

Philosophy:
- Fail fast during startup
- Graceful degradation during runtime
- Clear visibility into connection health

Health Check Strategy:
    1. Run simple query (RETURN 1) through the pool
    2. Measure latency
    3. Return structured health status with pool metrics
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Optional

from ..exceptions import GraphDataError
from .connection_manager import ConnectionManager
from .metrics import PoolMetrics

logger = logging.getLogger(__name__)


@dataclass
class HealthStatus:
    """
    Health check result.

    Attributes:
        healthy: Whether the connection is healthy
        message: Human-readable status message
        latency_ms: Round-trip latency in milliseconds (if healthy)
        error: Error message (if unhealthy)
        pool: Pool metrics at the time of the check
    """

    healthy: bool
    message: str
    latency_ms: Optional[float] = None
    error: Optional[str] = None
    pool: Optional[PoolMetrics] = None


class HealthChecker:
    """
    Health check utilities for a ConnectionManager.

    Example:
        checker = HealthChecker(manager)

        status = await checker.check()
        if status.healthy:
            logger.info(f"Healthy! Latency: {status.latency_ms}ms")

        ready = await checker.wait_for_ready(timeout=30.0)
    """

    def __init__(self, manager: ConnectionManager, check_timeout: float = 5.0):
        """
        Initialize health checker.

        Args:
            manager: ConnectionManager instance
            check_timeout: Deadline for the health query in seconds
        """
        self._manager = manager
        self._check_timeout = check_timeout

    async def check(self) -> HealthStatus:
        """
        Check health of the managed connection.

        Returns:
            HealthStatus with details; never raises for database failures
        """
        start = time.monotonic()

        try:
            await self._manager.verify(timeout=self._check_timeout)
        except GraphDataError as e:
            logger.error(f"Health check failed: {e.message}")
            return HealthStatus(
                healthy=False,
                message="Health check failed",
                error=e.message,
                pool=self._manager.metrics(),
            )

        latency = (time.monotonic() - start) * 1000
        return HealthStatus(
            healthy=True,
            message="Connection is healthy",
            latency_ms=latency,
            pool=self._manager.metrics(),
        )

    async def wait_for_ready(
        self,
        timeout: float = 30.0,
        check_interval: float = 1.0,
    ) -> bool:
        """
        Wait for the database to be ready.

        Use during service startup to ensure the database is available.

        Args:
            timeout: Max wait time in seconds
            check_interval: Time between checks in seconds

        Returns:
            True if ready within timeout, False otherwise
        """
        start = time.monotonic()

        while (time.monotonic() - start) < timeout:
            status = await self.check()
            if status.healthy:
                logger.info("Database is ready")
                return True

            logger.debug("Waiting for database to be ready...")
            await asyncio.sleep(check_interval)

        logger.error(f"Timeout waiting for database after {timeout}s")
        return False


__all__ = ["HealthChecker", "HealthStatus"]
