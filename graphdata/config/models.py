"""
Configuration models for graph-data-core.

Provides type-safe configuration using pydantic with validation,
defaults, and schema enforcement.
"""

from typing import Annotated, Optional

from pydantic import BaseModel, ConfigDict, Field, SecretStr, field_validator, model_validator

from ..db.connection_manager import Neo4jConnectionConfig
from ..db.transaction import RetryPolicy
from ..exceptions import ConfigError


class Neo4jSettings(BaseModel):
    """Endpoint, credentials and per-call deadlines."""

    uri: str = Field(
        default="bolt://localhost:7687",
        description="Neo4j connection URI",
    )
    user: str = Field(default="neo4j", description="Neo4j username")
    password: Optional[SecretStr] = Field(
        default=None,
        description="Neo4j password (required to connect)",
    )
    database: Optional[str] = Field(
        default=None,
        description="Database name; None uses the server default",
    )
    connection_timeout: Annotated[float, Field(gt=0.0)] = Field(
        default=30.0,
        description="Socket connect timeout in seconds",
    )
    query_timeout: Optional[Annotated[float, Field(gt=0.0)]] = Field(
        default=None,
        description="Default per-query deadline in seconds",
    )
    commit_timeout: Optional[Annotated[float, Field(gt=0.0)]] = Field(
        default=None,
        description="Default commit deadline in seconds",
    )

    @field_validator("uri")
    @classmethod
    def validate_uri(cls, v: str) -> str:
        """Require a scheme the driver understands."""
        schemes = ("bolt://", "bolt+s://", "bolt+ssc://", "neo4j://", "neo4j+s://", "neo4j+ssc://")
        if not v.startswith(schemes):
            raise ValueError(f"URI must start with one of {', '.join(schemes)}")
        return v

    model_config = ConfigDict(extra="forbid")  # Reject unknown fields


class PoolSettings(BaseModel):
    """Session pool bounds."""

    max_pool_size: Annotated[int, Field(gt=0, le=1000)] = Field(
        default=50,
        description="Maximum concurrently checked-out sessions",
    )
    acquisition_timeout: Annotated[float, Field(gt=0.0)] = Field(
        default=30.0,
        description="Max wait for a free session in seconds",
    )

    model_config = ConfigDict(extra="forbid")


class RetrySettings(BaseModel):
    """Retry schedule for transient transaction failures."""

    max_attempts: Annotated[int, Field(ge=1, le=100)] = Field(
        default=5,
        description="Total attempts including the first",
    )
    backoff_base: Annotated[float, Field(ge=0.0)] = Field(
        default=0.1,
        description="Delay after the first failure in seconds",
    )
    backoff_ceiling: Annotated[float, Field(ge=0.0)] = Field(
        default=5.0,
        description="Upper bound for any single delay in seconds",
    )
    jitter: Annotated[float, Field(ge=0.0, le=1.0)] = Field(
        default=0.5,
        description="Fraction of each delay that may be randomly shaved off",
    )

    @model_validator(mode="after")
    def validate_bounds(self) -> "RetrySettings":
        if self.backoff_ceiling < self.backoff_base:
            raise ValueError("backoff_ceiling must be >= backoff_base")
        return self

    model_config = ConfigDict(extra="forbid")


class LoggingSettings(BaseModel):
    level: str = Field(default="INFO", description="Root log level")
    json_output: bool = Field(default=True, description="Render logs as JSON")

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        v = v.upper()
        if v not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Unknown log level: {v}")
        return v

    model_config = ConfigDict(extra="forbid")


class GraphDataSettings(BaseModel):
    """Top-level configuration."""

    neo4j: Neo4jSettings = Field(default_factory=Neo4jSettings)
    pool: PoolSettings = Field(default_factory=PoolSettings)
    retry: RetrySettings = Field(default_factory=RetrySettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    model_config = ConfigDict(extra="forbid")

    def to_connection_config(self) -> Neo4jConnectionConfig:
        """
        Build the connection config handed to ``ConnectionManager.open``.

        Raises:
            ConfigError: If no password is configured
        """
        if self.neo4j.password is None:
            raise ConfigError(
                "neo4j.password is not set",
                recovery_suggestion="Set GRAPHDATA_NEO4J__PASSWORD or neo4j.password in the config file",
            )
        return Neo4jConnectionConfig(
            uri=self.neo4j.uri,
            user=self.neo4j.user,
            password=self.neo4j.password.get_secret_value(),
            database=self.neo4j.database,
            max_pool_size=self.pool.max_pool_size,
            acquisition_timeout=self.pool.acquisition_timeout,
            connection_timeout=self.neo4j.connection_timeout,
            query_timeout=self.neo4j.query_timeout,
            commit_timeout=self.neo4j.commit_timeout,
        )

    def to_retry_policy(self) -> RetryPolicy:
        return RetryPolicy(
            max_attempts=self.retry.max_attempts,
            backoff_base=self.retry.backoff_base,
            backoff_ceiling=self.retry.backoff_ceiling,
            jitter=self.retry.jitter,
        )


__all__ = [
    "GraphDataSettings",
    "LoggingSettings",
    "Neo4jSettings",
    "PoolSettings",
    "RetrySettings",
]
