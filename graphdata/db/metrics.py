"""
Session pool metrics and monitoring.

Philosophy:
- Measure what matters
- Simple metrics first
- Optimize based on data

Metrics Tracked:
    - Pool utilization (live/maximum sessions)
    - Checkout totals and acquisition timeouts
    - Session acquisition time

Use metrics to determine when to scale the pool up or down.
"""

import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, List

if TYPE_CHECKING:
    from .connection_manager import ConnectionManager


@dataclass(frozen=True)
class PoolMetrics:
    """
    Point-in-time snapshot of the session pool.

    Attributes:
        pool_size: Maximum live sessions
        live_sessions: Sessions currently checked out
        peak_sessions: Highest number of simultaneously live sessions
        waiting: Callers currently blocked on checkout
        total_checkouts: Successful checkouts since open
        acquisition_timeouts: Checkouts that gave up waiting
        avg_acquisition_ms: Average checkout wait (ms)
        max_acquisition_ms: Longest checkout wait (ms)
    """

    pool_size: int
    live_sessions: int
    peak_sessions: int
    waiting: int
    total_checkouts: int
    acquisition_timeouts: int
    avg_acquisition_ms: float
    max_acquisition_ms: float

    def utilization(self) -> float:
        """
        Calculate pool utilization percentage.

        Returns:
            Utilization percentage (0-100)
        """
        if self.pool_size == 0:
            return 0.0
        return (self.live_sessions / self.pool_size) * 100

    def timeout_rate(self) -> float:
        """Percentage of checkout attempts that timed out."""
        attempts = self.total_checkouts + self.acquisition_timeouts
        if attempts == 0:
            return 0.0
        return (self.acquisition_timeouts / attempts) * 100


@dataclass
class PoolStats:
    """Mutable counters owned by a ConnectionManager."""

    pool_size: int
    live_sessions: int = 0
    peak_sessions: int = 0
    waiting: int = 0
    total_checkouts: int = 0
    acquisition_timeouts: int = 0
    acquisition_times_ms: List[float] = field(default_factory=list)

    def record_checkout(self, started: float) -> None:
        self.live_sessions += 1
        self.peak_sessions = max(self.peak_sessions, self.live_sessions)
        self.total_checkouts += 1
        self.acquisition_times_ms.append((time.monotonic() - started) * 1000)
        # Bounded window
        if len(self.acquisition_times_ms) > 1000:
            del self.acquisition_times_ms[:-1000]

    def record_release(self) -> None:
        self.live_sessions -= 1

    def record_timeout(self) -> None:
        self.acquisition_timeouts += 1

    def snapshot(self) -> PoolMetrics:
        times = self.acquisition_times_ms
        return PoolMetrics(
            pool_size=self.pool_size,
            live_sessions=self.live_sessions,
            peak_sessions=self.peak_sessions,
            waiting=self.waiting,
            total_checkouts=self.total_checkouts,
            acquisition_timeouts=self.acquisition_timeouts,
            avg_acquisition_ms=sum(times) / len(times) if times else 0.0,
            max_acquisition_ms=max(times) if times else 0.0,
        )


class PoolMonitor:
    """
    Monitor session pool health and performance.

    Scaling Thresholds:
        Scale UP: utilization > 80% or any acquisition timeouts
        Scale DOWN: utilization < 20%

    Example:
        monitor = PoolMonitor(manager)
        metrics = monitor.collect_metrics()
        if monitor.should_scale_up(metrics):
            logger.warning("Consider increasing max_pool_size")
    """

    def __init__(self, manager: "ConnectionManager"):
        self._manager = manager

    def collect_metrics(self) -> PoolMetrics:
        return self._manager.metrics()

    def should_scale_up(self, metrics: PoolMetrics) -> bool:
        return metrics.utilization() > 80.0 or metrics.acquisition_timeouts > 0

    def should_scale_down(self, metrics: PoolMetrics) -> bool:
        return metrics.utilization() < 20.0 and metrics.acquisition_timeouts == 0


__all__ = ["PoolMetrics", "PoolMonitor", "PoolStats"]
