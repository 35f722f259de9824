"""
Compiled query values and result-cardinality enforcement.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from ..exceptions import CardinalityError

Record = Dict[str, Any]


class Cardinality(str, Enum):
    """Expected result-set size class of a compiled query."""

    ONE = "one"  # at most one row
    ALL = "all"  # zero or more rows


@dataclass(frozen=True)
class CompiledQuery:
    """
    A ``(text, parameters)`` pair ready for the driver.

    Attributes:
        text: Cypher text referencing only generated parameter names
        parameters: Bound values keyed by those names
        cardinality: How many rows the caller expects
    """

    text: str
    parameters: Dict[str, Any] = field(default_factory=dict)
    cardinality: Cardinality = Cardinality.ALL

    def params(self) -> Dict[str, Any]:
        """Return a copy of the parameter map for handing to a driver."""
        return dict(self.parameters)

    def shape(self, records: List[Record]) -> Union[Optional[Record], List[Record]]:
        """
        Apply the cardinality marker to raw records.

        Returns:
            For ``ONE``: the single record or None. For ``ALL``: the list.

        Raises:
            CardinalityError: If a ``ONE`` query produced more than one row
        """
        if self.cardinality is Cardinality.ONE:
            if len(records) > 1:
                raise CardinalityError(
                    f"Expected at most one row, got {len(records)}",
                    actual=len(records),
                    context={"query": self.text[:200]},
                )
            return records[0] if records else None
        return records


__all__ = ["Cardinality", "CompiledQuery", "Record"]
