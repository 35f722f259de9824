"""
Immutable Cypher Query Builder

This module builds parameterized Cypher queries from a fluent API without
injection vulnerabilities.

Philosophy:
- Every builder method returns a new builder; a shared base is never mutated
- Values are always bound parameters, never interpolated into the text
- Identifiers (variables, labels, relationship types, property keys) are
  validated against a strict pattern
- Validation happens in ``compile()`` so chaining stays side-effect free

Example:
    >>> from graphdata.query import q
    >>> compiled = q.match_node("o", "Order", {"businessKey": "BK-1"}).ret("o").one
    >>> print(compiled.text)
    MATCH (o:Order {businessKey: $o_businessKey})
    RETURN o
    >>> compiled.parameters
    {'o_businessKey': 'BK-1'}
"""

import copy
import re
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Set, Tuple

from ..exceptions import BuilderError
from .compiled import Cardinality, CompiledQuery
from .predicates import Predicate

IDENTIFIER_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

# Keywords that cannot be used as bare variable names
RESERVED_WORDS = frozenset(
    {
        "all", "and", "as", "asc", "ascending", "by", "call", "case", "contains",
        "create", "delete", "desc", "descending", "detach", "distinct", "else",
        "end", "ends", "exists", "false", "in", "is", "limit", "match", "merge",
        "not", "null", "optional", "or", "order", "remove", "return", "set",
        "skip", "starts", "then", "true", "union", "unwind", "when", "where",
        "with", "xor", "yield",
    }
)

Properties = Tuple[Tuple[str, Any], ...]


class Direction(str, Enum):
    """Relationship direction relative to ``from_var``."""

    OUTGOING = "outgoing"
    INCOMING = "incoming"
    BOTH = "both"


@dataclass(frozen=True)
class NodePattern:
    variable: str
    label: Optional[str]
    filters: Properties = ()


@dataclass(frozen=True)
class RelationshipPattern:
    from_var: str
    rel_type: str
    to_var: str
    direction: Direction = Direction.OUTGOING
    variable: Optional[str] = None
    filters: Properties = ()


@dataclass(frozen=True)
class CreateNode:
    variable: str
    label: Optional[str]
    properties: Properties = ()


@dataclass(frozen=True)
class CreateRelationship:
    from_var: str
    rel_type: str
    to_var: str
    variable: Optional[str] = None
    properties: Properties = ()


@dataclass(frozen=True)
class SetProperties:
    variable: str
    properties: Properties = ()


@dataclass(frozen=True)
class DetachDelete:
    variable: str


@dataclass(frozen=True)
class OrderItem:
    expression: str
    descending: bool = False


def _freeze(properties: Optional[Mapping[str, Any]]) -> Properties:
    if not properties:
        return ()
    # Snapshot of the caller's mapping
    return tuple((key, copy.deepcopy(value)) for key, value in properties.items())


class _ParameterMap:
    """Allocates collision-free parameter names in compile order."""

    def __init__(self) -> None:
        self.values: Dict[str, Any] = {}

    def bind(self, base: str, value: Any) -> str:
        name = base
        counter = 1
        while name in self.values:
            name = f"{base}_{counter}"
            counter += 1
        self.values[name] = value
        return f"${name}"


@dataclass(frozen=True)
class QueryBuilder:
    """
    Fluent, immutable builder for parameterized Cypher queries.

    Clause order in the compiled text is fixed: MATCH patterns (in the order
    issued), WHERE, write clauses (in the order issued), RETURN, ORDER BY,
    SKIP, LIMIT.
    """

    patterns: Tuple[Any, ...] = ()
    predicates: Tuple[Predicate, ...] = ()
    writes: Tuple[Any, ...] = ()
    projection: Tuple[str, ...] = ()
    ordering: Tuple[OrderItem, ...] = ()
    skip_count: Optional[int] = None
    limit_count: Optional[int] = None

    # ------------------------------------------------------------------
    # Reading clauses
    # ------------------------------------------------------------------
    def match_node(
        self,
        variable: str,
        label: Optional[str] = None,
        filters: Optional[Mapping[str, Any]] = None,
    ) -> "QueryBuilder":
        """Append ``MATCH (variable:label {filters})``."""
        pattern = NodePattern(variable, label, _freeze(filters))
        return replace(self, patterns=self.patterns + (pattern,))

    def match_relationship(
        self,
        from_var: str,
        rel_type: str,
        to_var: str,
        direction: Direction = Direction.OUTGOING,
        variable: Optional[str] = None,
        filters: Optional[Mapping[str, Any]] = None,
    ) -> "QueryBuilder":
        """Append a relationship pattern between two declared variables."""
        pattern = RelationshipPattern(
            from_var, rel_type, to_var, Direction(direction), variable, _freeze(filters)
        )
        return replace(self, patterns=self.patterns + (pattern,))

    def where(self, predicate: Predicate) -> "QueryBuilder":
        """AND a predicate onto the prior predicates."""
        if not isinstance(predicate, Predicate):
            raise TypeError(
                "where() takes a Predicate; build one with prop(...).eq(...) "
                "so values stay parameterized"
            )
        return replace(self, predicates=self.predicates + (predicate,))

    # ------------------------------------------------------------------
    # Write clauses
    # ------------------------------------------------------------------
    def create_node(
        self,
        variable: str,
        label: Optional[str] = None,
        properties: Optional[Mapping[str, Any]] = None,
    ) -> "QueryBuilder":
        clause = CreateNode(variable, label, _freeze(properties))
        return replace(self, writes=self.writes + (clause,))

    def create_relationship(
        self,
        from_var: str,
        rel_type: str,
        to_var: str,
        variable: Optional[str] = None,
        properties: Optional[Mapping[str, Any]] = None,
    ) -> "QueryBuilder":
        clause = CreateRelationship(
            from_var, rel_type, to_var, variable, _freeze(properties)
        )
        return replace(self, writes=self.writes + (clause,))

    def set_properties(
        self, variable: str, properties: Mapping[str, Any]
    ) -> "QueryBuilder":
        clause = SetProperties(variable, _freeze(properties))
        return replace(self, writes=self.writes + (clause,))

    def detach_delete(self, variable: str) -> "QueryBuilder":
        return replace(self, writes=self.writes + (DetachDelete(variable),))

    # ------------------------------------------------------------------
    # Projection and paging
    # ------------------------------------------------------------------
    def ret(self, *items: str) -> "QueryBuilder":
        """Declare the projection. A later call replaces an earlier one."""
        return replace(self, projection=tuple(items))

    def order_by(self, *items: str, descending: bool = False) -> "QueryBuilder":
        """Declare ordering. A later call replaces an earlier one."""
        ordering = tuple(OrderItem(item, descending) for item in items)
        return replace(self, ordering=ordering)

    def skip(self, count: int) -> "QueryBuilder":
        return replace(self, skip_count=count)

    def limit(self, count: int) -> "QueryBuilder":
        return replace(self, limit_count=count)

    # ------------------------------------------------------------------
    # Compilation
    # ------------------------------------------------------------------
    @property
    def one(self) -> CompiledQuery:
        """Compile expecting at most one row."""
        return self.compile(Cardinality.ONE)

    @property
    def all(self) -> CompiledQuery:
        """Compile expecting zero or more rows."""
        return self.compile(Cardinality.ALL)

    def compile(self, cardinality: Cardinality = Cardinality.ALL) -> CompiledQuery:
        """
        Compile the builder state to query text plus parameters.

        Compilation is pure: equal builder state always yields byte-identical
        text and an equal parameter map.

        Raises:
            BuilderError: If the chain is invalid (duplicate or undeclared
                variables, bad identifiers, nothing to return)
        """
        if not (self.patterns or self.writes):
            raise BuilderError("Nothing to compile: no MATCH or write clauses")
        if not self.writes and not self.projection:
            raise BuilderError(
                "A read-only query needs a projection; call ret(...)"
            )

        params = _ParameterMap()
        declared: Set[str] = set()
        lines: List[str] = []

        for pattern in self.patterns:
            if isinstance(pattern, NodePattern):
                self._declare(pattern.variable, declared)
                node = self._render_node(
                    pattern.variable, pattern.label, pattern.filters, params
                )
                lines.append(f"MATCH {node}")
            else:
                self._require(pattern.from_var, declared, "relationship start")
                self._require(pattern.to_var, declared, "relationship end")
                if pattern.variable is not None:
                    self._declare(pattern.variable, declared)
                rel = self._render_relationship(
                    pattern.from_var,
                    pattern.rel_type,
                    pattern.to_var,
                    pattern.direction,
                    pattern.variable,
                    pattern.filters,
                    params,
                )
                lines.append(f"MATCH {rel}")

        if self.predicates:
            rendered = []
            for predicate in self.predicates:
                for variable in sorted(predicate.variables()):
                    self._require(variable, declared, "predicate")
                for reference in predicate.properties():
                    self._check_identifier(reference.name, "property key")
                rendered.append(predicate.render(self._binder(params)))
            lines.append("WHERE " + " AND ".join(rendered))

        for clause in self.writes:
            lines.append(self._render_write(clause, declared, params))

        if self.projection:
            for item in self.projection:
                self._check_reference(item, declared, "projection")
            lines.append("RETURN " + ", ".join(self.projection))

        if self.ordering:
            if not self.projection:
                raise BuilderError("order_by() requires a projection")
            parts = []
            for item in self.ordering:
                self._check_reference(item.expression, declared, "order_by")
                parts.append(item.expression + (" DESC" if item.descending else ""))
            lines.append("ORDER BY " + ", ".join(parts))

        if self.skip_count is not None:
            lines.append("SKIP " + params.bind("skip", self._paging(self.skip_count, "skip")))
        if self.limit_count is not None:
            lines.append(
                "LIMIT " + params.bind("limit", self._paging(self.limit_count, "limit"))
            )

        return CompiledQuery("\n".join(lines), params.values, Cardinality(cardinality))

    # ------------------------------------------------------------------
    # Rendering helpers
    # ------------------------------------------------------------------
    def _render_write(self, clause: Any, declared: Set[str], params: _ParameterMap) -> str:
        if isinstance(clause, CreateNode):
            self._declare(clause.variable, declared)
            node = self._render_node(clause.variable, clause.label, clause.properties, params)
            return f"CREATE {node}"
        if isinstance(clause, CreateRelationship):
            self._require(clause.from_var, declared, "relationship start")
            self._require(clause.to_var, declared, "relationship end")
            if clause.variable is not None:
                self._declare(clause.variable, declared)
            rel = self._render_relationship(
                clause.from_var,
                clause.rel_type,
                clause.to_var,
                Direction.OUTGOING,
                clause.variable,
                clause.properties,
                params,
            )
            return f"CREATE {rel}"
        if isinstance(clause, SetProperties):
            self._require(clause.variable, declared, "set_properties")
            if not clause.properties:
                raise BuilderError(
                    f"set_properties() on '{clause.variable}' has no properties"
                )
            assignments = []
            for key, value in clause.properties:
                self._check_identifier(key, "property key")
                ref = params.bind(f"{clause.variable}_{key}", value)
                assignments.append(f"{clause.variable}.{key} = {ref}")
            return "SET " + ", ".join(assignments)
        self._require(clause.variable, declared, "detach_delete")
        return f"DETACH DELETE {clause.variable}"

    def _render_node(
        self,
        variable: str,
        label: Optional[str],
        properties: Properties,
        params: _ParameterMap,
    ) -> str:
        text = variable
        if label is not None:
            self._check_identifier(label, "label")
            text += f":{label}"
        text += self._render_map(variable, properties, params)
        return f"({text})"

    def _render_relationship(
        self,
        from_var: str,
        rel_type: str,
        to_var: str,
        direction: Direction,
        variable: Optional[str],
        properties: Properties,
        params: _ParameterMap,
    ) -> str:
        self._check_identifier(rel_type, "relationship type")
        base = variable if variable is not None else rel_type.lower()
        body = f"{variable or ''}:{rel_type}" + self._render_map(base, properties, params)
        if direction is Direction.OUTGOING:
            return f"({from_var})-[{body}]->({to_var})"
        if direction is Direction.INCOMING:
            return f"({from_var})<-[{body}]-({to_var})"
        return f"({from_var})-[{body}]-({to_var})"

    def _render_map(self, base: str, properties: Properties, params: _ParameterMap) -> str:
        if not properties:
            return ""
        entries = []
        for key, value in properties:
            self._check_identifier(key, "property key")
            if value is None:
                raise BuilderError(
                    f"Property '{key}' is None; inline maps never match null, "
                    "use prop(...).is_null() instead"
                )
            entries.append(f"{key}: {params.bind(f'{base}_{key}', value)}")
        return " {" + ", ".join(entries) + "}"

    @staticmethod
    def _binder(params: _ParameterMap):
        return params.bind

    # ------------------------------------------------------------------
    # Validation helpers
    # ------------------------------------------------------------------
    @staticmethod
    def _check_identifier(identifier: Any, kind: str) -> None:
        if not isinstance(identifier, str) or not IDENTIFIER_PATTERN.match(identifier):
            raise BuilderError(
                f"Invalid {kind}: {identifier!r}. Must start with a letter or "
                "underscore and contain only letters, digits and underscores."
            )

    def _declare(self, variable: str, declared: Set[str]) -> None:
        self._check_identifier(variable, "variable")
        if variable.lower() in RESERVED_WORDS:
            raise BuilderError(f"Variable '{variable}' is a reserved word")
        if variable in declared:
            raise BuilderError(f"Variable '{variable}' is declared more than once")
        declared.add(variable)

    @staticmethod
    def _require(variable: str, declared: Set[str], where: str) -> None:
        if variable not in declared:
            raise BuilderError(f"Undeclared variable '{variable}' in {where}")

    def _check_reference(self, item: str, declared: Set[str], where: str) -> None:
        if not isinstance(item, str):
            raise BuilderError(f"Invalid {where} item: {item!r}")
        variable, _, key = item.partition(".")
        self._require(variable, declared, where)
        if key:
            self._check_identifier(key, "property key")

    @staticmethod
    def _paging(count: int, name: str) -> int:
        if isinstance(count, bool) or not isinstance(count, int) or count < 0:
            raise BuilderError(f"{name} must be a non-negative integer, got {count!r}")
        return count


# Shared empty base builder
q = QueryBuilder()


__all__ = ["Direction", "QueryBuilder", "q"]
