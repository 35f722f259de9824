"""
Configuration management for graph-data-core.

Provides type-safe configuration loading and validation with support
for multiple configuration sources and priority-based merging.
"""

from ..exceptions import ConfigError
from .loader import ConfigLoader, load_config
from .models import (
    GraphDataSettings,
    LoggingSettings,
    Neo4jSettings,
    PoolSettings,
    RetrySettings,
)

__all__ = [
    "ConfigError",
    "ConfigLoader",
    "GraphDataSettings",
    "LoggingSettings",
    "Neo4jSettings",
    "PoolSettings",
    "RetrySettings",
    "load_config",
]
