"""
Query construction for graph-data-core.

Public API:
    q: Shared empty builder, the usual entry point
    QueryBuilder: Immutable fluent builder
    CompiledQuery: ``(text, parameters, cardinality)`` value
    prop, all_of, any_of, not_: Predicate helpers for ``where``
"""

from .builder import Direction, QueryBuilder, q
from .compiled import Cardinality, CompiledQuery, Record
from .predicates import Predicate, Property, all_of, any_of, not_, prop

__all__ = [
    "Cardinality",
    "CompiledQuery",
    "Direction",
    "Predicate",
    "Property",
    "QueryBuilder",
    "Record",
    "all_of",
    "any_of",
    "not_",
    "prop",
    "q",
]
