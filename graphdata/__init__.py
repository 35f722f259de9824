"""
graph-data-core: typed access to a Neo4j property graph.

Wiring:
    settings = load_config()
    manager = await ConnectionManager.open(settings.to_connection_config())
    tx_manager = TransactionManager(manager, settings.to_retry_policy())
    instances = ProcessInstanceRepository(tx_manager)
"""

from .config import ConfigLoader, GraphDataSettings, load_config
from .db import (
    ConnectionManager,
    HealthChecker,
    Neo4jConnectionConfig,
    RetryPolicy,
    SchemaManager,
    TransactionManager,
)
from .exceptions import (
    BuilderError,
    CardinalityError,
    ConfigError,
    ConnectionError,
    GraphDataError,
    NotFoundError,
    PoolExhaustedError,
    QueryError,
    TimeoutError,
    TransactionStateError,
    TransientError,
    TxRetriesExhausted,
    ValidationError,
)
from .logging_config import configure_logging
from .query import CompiledQuery, Direction, QueryBuilder, prop, q
from .repositories import ProcessInstanceRepository, TaskRepository, UserRepository

__version__ = "0.1.0"

__all__ = [
    "BuilderError",
    "CardinalityError",
    "CompiledQuery",
    "ConfigError",
    "ConfigLoader",
    "ConnectionError",
    "ConnectionManager",
    "Direction",
    "GraphDataError",
    "GraphDataSettings",
    "HealthChecker",
    "Neo4jConnectionConfig",
    "NotFoundError",
    "PoolExhaustedError",
    "ProcessInstanceRepository",
    "QueryBuilder",
    "QueryError",
    "RetryPolicy",
    "SchemaManager",
    "TaskRepository",
    "TimeoutError",
    "TransactionManager",
    "TransactionStateError",
    "TransientError",
    "TxRetriesExhausted",
    "UserRepository",
    "ValidationError",
    "configure_logging",
    "load_config",
    "prop",
    "q",
]
