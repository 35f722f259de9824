"""
Neo4j connection management for graph-data-core.

Philosophy:
- One explicitly opened connection manager per process
- Bounded session pool with drain-on-close
- Classified retries at the transaction boundary, nowhere else

Public API (the "studs"):
    ConnectionManager: Driver owner and session pool
    Neo4jConnectionConfig: Connection configuration
    TransactionManager: Unit-of-work runner with bounded retries
    RetryPolicy: Backoff schedule
    HealthChecker: Health check utilities
    PoolMetrics: Session pool metrics
    SchemaManager: Constraint and index setup
"""

from .connection_manager import ConnectionManager, Neo4jConnectionConfig
from .health import HealthChecker, HealthStatus
from .metrics import PoolMetrics, PoolMonitor
from .schema import SchemaManager
from .session import ManagedTransaction, PooledSession, TxState
from .transaction import RetryPolicy, TransactionManager

__all__ = [
    "ConnectionManager",
    "HealthChecker",
    "HealthStatus",
    "ManagedTransaction",
    "Neo4jConnectionConfig",
    "PoolMetrics",
    "PoolMonitor",
    "PooledSession",
    "RetryPolicy",
    "SchemaManager",
    "TransactionManager",
    "TxState",
]
