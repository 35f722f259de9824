"""
Type protocols for the property-graph driver boundary.

Philosophy:
- Name only the driver verbs this core relies on
- Allow type checking without concrete implementation dependencies
- Let tests substitute an in-memory driver with the same shape

These protocols match the neo4j-python-driver async API (``AsyncDriver``,
``AsyncSession``, ``AsyncTransaction``, ``AsyncResult``).
"""

from typing import Any, Optional, Protocol


class GraphResult(Protocol):
    """Protocol for driver query result streams."""

    async def data(self, *keys: str) -> list[dict[str, Any]]:
        """
        Consume the stream and return every record as a dictionary.

        Graph entities (nodes, relationships) are converted to their
        property dictionaries.
        """
        ...


class GraphTransaction(Protocol):
    """Protocol for driver explicit transactions."""

    async def run(
        self, query: str, parameters: Optional[dict[str, Any]] = None, **kwargs: Any
    ) -> GraphResult:
        """Execute a query within the transaction."""
        ...

    async def commit(self) -> None:
        """Commit the transaction."""
        ...

    async def rollback(self) -> None:
        """Roll back the transaction."""
        ...

    async def close(self) -> None:
        """Close the transaction, rolling back if still open."""
        ...


class GraphSession(Protocol):
    """Protocol for driver sessions."""

    async def run(
        self, query: str, parameters: Optional[dict[str, Any]] = None, **kwargs: Any
    ) -> GraphResult:
        """Execute a query in an auto-commit transaction."""
        ...

    async def begin_transaction(self, **kwargs: Any) -> GraphTransaction:
        """Begin a new explicit transaction."""
        ...

    async def close(self) -> None:
        """Close the session and return its connection to the driver."""
        ...


class GraphDriver(Protocol):
    """Protocol for driver objects."""

    def session(self, **kwargs: Any) -> GraphSession:
        """
        Create a new session.

        Args:
            **kwargs: Session configuration options (database, access mode)
        """
        ...

    async def verify_connectivity(self) -> None:
        """Verify the driver can reach the database with its credentials."""
        ...

    async def close(self) -> None:
        """Close the driver and all connections."""
        ...


__all__ = [
    "GraphDriver",
    "GraphResult",
    "GraphSession",
    "GraphTransaction",
]
