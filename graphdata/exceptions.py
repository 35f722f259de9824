"""
Custom Exception Hierarchy for graph-data-core

This module provides the exception hierarchy shared by the connection pool,
query builder, transaction manager and repositories. Every failure path
surfaces one of these classified errors, never an ambiguous empty result.

Errors fall into two retry classes:
- transient: re-running the same unit of work may succeed
- permanent: retrying cannot succeed without changing the request
"""

from enum import Enum
from typing import Any, Dict, List, Optional

from neo4j import exceptions as neo4j_exceptions


class ErrorKind(str, Enum):
    """Retry classification of an error."""

    TRANSIENT = "transient"
    PERMANENT = "permanent"


class GraphDataError(Exception):
    """
    Base exception class for all graph-data-core errors.

    Provides structured error information including context, error codes,
    and optional recovery suggestions.
    """

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        cause: Optional[BaseException] = None,
        recovery_suggestion: Optional[str] = None,
    ) -> None:
        """
        Initialize the base exception.

        Args:
            message: Human-readable error message
            error_code: Optional error code for programmatic handling
            context: Optional dictionary with error context
            cause: Optional underlying exception that caused this error
            recovery_suggestion: Optional suggestion for error recovery
        """
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.context = context or {}
        self.cause = cause
        self.recovery_suggestion = recovery_suggestion

    def __str__(self) -> str:
        """Return a formatted error message with context."""
        result = self.message
        if self.error_code:
            result = f"[{self.error_code}] {result}"
        if self.context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            result += f" (context: {context_str})"
        if self.cause:
            result += f" (caused by: {self.cause})"
        if self.recovery_suggestion:
            result += f" (suggestion: {self.recovery_suggestion})"
        return result

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "error_code": self.error_code,
            "context": self.context,
            "cause": str(self.cause) if self.cause else None,
            "recovery_suggestion": self.recovery_suggestion,
        }


# Transport and pool errors
class ConnectionError(GraphDataError):
    """Raised when the endpoint is unreachable or authentication fails."""

    def __init__(self, message: str, uri: Optional[str] = None, **kwargs: Any) -> None:
        context = kwargs.get("context", {})
        if uri:
            # Don't include credentials in context
            safe_uri = uri.split("@")[-1] if "@" in uri else uri
            context["uri"] = safe_uri
        kwargs["context"] = context
        kwargs.setdefault("error_code", "CONNECTION_FAILED")
        kwargs.setdefault(
            "recovery_suggestion",
            "Check connection settings and ensure the database is running",
        )
        super().__init__(message, **kwargs)


class PoolExhaustedError(GraphDataError):
    """Raised when no session could be checked out within the wait timeout."""

    def __init__(
        self,
        message: str,
        max_pool_size: Optional[int] = None,
        waited: Optional[float] = None,
        **kwargs: Any,
    ) -> None:
        context = kwargs.get("context", {})
        if max_pool_size is not None:
            context["max_pool_size"] = max_pool_size
        if waited is not None:
            context["waited_seconds"] = round(waited, 3)
        kwargs["context"] = context
        kwargs.setdefault("error_code", "POOL_EXHAUSTED")
        kwargs.setdefault("recovery_suggestion", "Retry later or raise max_pool_size")
        super().__init__(message, **kwargs)


class TransientError(GraphDataError):
    """Raised for failures where re-running the unit of work may succeed."""

    def __init__(self, message: str, **kwargs: Any) -> None:
        kwargs.setdefault("error_code", "TRANSIENT_FAILURE")
        super().__init__(message, **kwargs)


class TimeoutError(GraphDataError):
    """
    Raised when a deadline expires on a network-facing call.

    A timeout during commit leaves the outcome unknown, so it is only
    retried when ``during_commit`` is False.
    """

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        timeout: Optional[float] = None,
        during_commit: bool = False,
        **kwargs: Any,
    ) -> None:
        context = kwargs.get("context", {})
        if operation:
            context["operation"] = operation
        if timeout is not None:
            context["timeout_seconds"] = timeout
        kwargs["context"] = context
        kwargs.setdefault("error_code", "TIMEOUT")
        super().__init__(message, **kwargs)
        self.operation = operation
        self.timeout = timeout
        self.during_commit = during_commit


class QueryError(GraphDataError):
    """Raised when the database rejects a query permanently."""

    def __init__(
        self,
        message: str,
        query: Optional[str] = None,
        parameters: Optional[Dict[str, Any]] = None,
        **kwargs: Any,
    ) -> None:
        context = kwargs.get("context", {})
        if query:
            # Truncate long queries for readability
            context["query"] = query[:200] + "..." if len(query) > 200 else query
        if parameters:
            context["parameter_count"] = len(parameters)
        kwargs["context"] = context
        kwargs.setdefault("error_code", "QUERY_FAILED")
        super().__init__(message, **kwargs)


class TxRetriesExhausted(GraphDataError):
    """Raised when a unit of work keeps failing transiently past the retry budget."""

    def __init__(
        self,
        message: str,
        last_error: Optional[BaseException] = None,
        attempts: Optional[int] = None,
        **kwargs: Any,
    ) -> None:
        context = kwargs.get("context", {})
        if attempts is not None:
            context["attempts"] = attempts
        kwargs["context"] = context
        kwargs.setdefault("error_code", "TX_RETRIES_EXHAUSTED")
        kwargs.setdefault("cause", last_error)
        super().__init__(message, **kwargs)
        self.last_error = last_error
        self.attempts = attempts


class TransactionStateError(GraphDataError):
    """Raised when a transaction is used after reaching a terminal state."""

    def __init__(self, message: str, state: Optional[str] = None, **kwargs: Any) -> None:
        context = kwargs.get("context", {})
        if state:
            context["state"] = state
        kwargs["context"] = context
        kwargs.setdefault("error_code", "TX_STATE_INVALID")
        super().__init__(message, **kwargs)


# Query construction errors
class BuilderError(GraphDataError):
    """Raised when a query builder chain cannot compile. Always a programming error."""

    def __init__(self, message: str, **kwargs: Any) -> None:
        kwargs.setdefault("error_code", "BUILDER_INVALID")
        super().__init__(message, **kwargs)


class CardinalityError(GraphDataError):
    """Raised when a `.one` query returns more than one row."""

    def __init__(
        self, message: str, expected: str = "one", actual: Optional[int] = None, **kwargs: Any
    ) -> None:
        context = kwargs.get("context", {})
        context["expected"] = expected
        if actual is not None:
            context["actual_rows"] = actual
        kwargs["context"] = context
        kwargs.setdefault("error_code", "CARDINALITY_VIOLATION")
        super().__init__(message, **kwargs)
        self.actual = actual


# Configuration errors
class ConfigError(GraphDataError):
    """Raised when configuration cannot be loaded or fails validation."""

    def __init__(self, message: str, source: Optional[str] = None, **kwargs: Any) -> None:
        context = kwargs.get("context", {})
        if source:
            context["source"] = source
        kwargs["context"] = context
        kwargs.setdefault("error_code", "CONFIG_INVALID")
        super().__init__(message, **kwargs)


# Domain outcomes
class ValidationError(GraphDataError):
    """Raised when repository input fails validation."""

    def __init__(
        self,
        message: str,
        entity: Optional[str] = None,
        validation_errors: Optional[List[str]] = None,
        **kwargs: Any,
    ) -> None:
        context = kwargs.get("context", {})
        if entity:
            context["entity"] = entity
        if validation_errors:
            context["validation_errors"] = validation_errors
        kwargs["context"] = context
        kwargs.setdefault("error_code", "VALIDATION_FAILED")
        super().__init__(message, **kwargs)
        self.validation_errors = validation_errors or []


class NotFoundError(GraphDataError):
    """Raised when a repository write targets an entity that does not exist."""

    def __init__(
        self,
        message: str,
        entity: Optional[str] = None,
        key: Optional[str] = None,
        **kwargs: Any,
    ) -> None:
        context = kwargs.get("context", {})
        if entity:
            context["entity"] = entity
        if key:
            context["key"] = key
        kwargs["context"] = context
        kwargs.setdefault("error_code", "NOT_FOUND")
        super().__init__(message, **kwargs)
        self.entity = entity
        self.key = key


# Utility functions for exception handling
_PERMANENT_TYPES = (
    BuilderError,
    CardinalityError,
    ConfigError,
    ValidationError,
    NotFoundError,
    PoolExhaustedError,
    ConnectionError,
    QueryError,
    TransactionStateError,
    TxRetriesExhausted,
)


def classify_error(exc: BaseException) -> ErrorKind:
    """
    Classify an exception as transient or permanent.

    Args:
        exc: The exception raised inside a unit of work or during commit

    Returns:
        ErrorKind.TRANSIENT if re-running the unit of work may succeed
    """
    if isinstance(exc, TransientError):
        return ErrorKind.TRANSIENT
    if isinstance(exc, TimeoutError):
        return ErrorKind.PERMANENT if exc.during_commit else ErrorKind.TRANSIENT
    if isinstance(exc, _PERMANENT_TYPES):
        return ErrorKind.PERMANENT

    # IncompleteCommit subclasses ServiceUnavailable but may have committed
    if isinstance(exc, neo4j_exceptions.IncompleteCommit):
        return ErrorKind.PERMANENT
    if isinstance(
        exc,
        (
            neo4j_exceptions.TransientError,
            neo4j_exceptions.ServiceUnavailable,
            neo4j_exceptions.SessionExpired,
        ),
    ):
        return ErrorKind.TRANSIENT
    if isinstance(exc, (neo4j_exceptions.Neo4jError, neo4j_exceptions.DriverError)):
        return ErrorKind.TRANSIENT if exc.is_retryable() else ErrorKind.PERMANENT

    return ErrorKind.PERMANENT


def wrap_driver_exception(
    exc: BaseException, context: Optional[Dict[str, Any]] = None
) -> GraphDataError:
    """
    Wrap a driver exception in our exception hierarchy.

    Exceptions that already belong to the hierarchy are returned unchanged.

    Args:
        exc: The original exception
        context: Optional context information

    Returns:
        GraphDataError: Wrapped exception with enhanced context
    """
    if isinstance(exc, GraphDataError):
        return exc

    error_message = str(exc) or type(exc).__name__
    if classify_error(exc) is ErrorKind.TRANSIENT:
        return TransientError(
            f"Transient database failure: {error_message}", context=context, cause=exc
        )

    if isinstance(exc, neo4j_exceptions.AuthError):
        return ConnectionError(
            f"Authentication failed: {error_message}", context=context, cause=exc
        )
    if isinstance(exc, neo4j_exceptions.Neo4jError):
        context = dict(context or {})
        if exc.code:
            context.setdefault("neo4j_code", exc.code)
        return QueryError(f"Query failed: {error_message}", context=context, cause=exc)

    return GraphDataError(
        f"Database operation failed: {error_message}", context=context, cause=exc
    )


__all__ = [
    "BuilderError",
    "CardinalityError",
    "ConfigError",
    "ConnectionError",
    "ErrorKind",
    "GraphDataError",
    "NotFoundError",
    "PoolExhaustedError",
    "QueryError",
    "TimeoutError",
    "TransactionStateError",
    "TransientError",
    "TxRetriesExhausted",
    "ValidationError",
    "classify_error",
    "wrap_driver_exception",
]
