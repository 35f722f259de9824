"""
Predicate expressions for ``QueryBuilder.where``.

Predicates are small immutable trees. Every compared value is hoisted into
the parameter map when the owning query compiles; the query text only ever
references generated parameter names.

Example:
    >>> from graphdata.query import prop, any_of
    >>> status = prop("p", "status")
    >>> predicate = any_of(status.eq("running"), status.eq("suspended"))
"""

from dataclasses import dataclass
from typing import Any, Callable, FrozenSet, Tuple

# Binds a value under a base name and returns the parameter reference ("$name")
ParamBinder = Callable[[str, Any], str]


@dataclass(frozen=True)
class Property:
    """Reference to ``variable.name`` inside a query."""

    variable: str
    name: str

    def render(self) -> str:
        return f"{self.variable}.{self.name}"

    def _compare(self, operator: str, value: Any) -> "Comparison":
        return Comparison(self, operator, value)

    def eq(self, value: Any) -> "Comparison":
        return self._compare("=", value)

    def ne(self, value: Any) -> "Comparison":
        return self._compare("<>", value)

    def gt(self, value: Any) -> "Comparison":
        return self._compare(">", value)

    def gte(self, value: Any) -> "Comparison":
        return self._compare(">=", value)

    def lt(self, value: Any) -> "Comparison":
        return self._compare("<", value)

    def lte(self, value: Any) -> "Comparison":
        return self._compare("<=", value)

    def in_(self, values: Any) -> "Comparison":
        return self._compare("IN", list(values))

    def contains(self, value: str) -> "Comparison":
        return self._compare("CONTAINS", value)

    def starts_with(self, value: str) -> "Comparison":
        return self._compare("STARTS WITH", value)

    def ends_with(self, value: str) -> "Comparison":
        return self._compare("ENDS WITH", value)

    def is_null(self) -> "NullCheck":
        return NullCheck(self, negated=False)

    def is_not_null(self) -> "NullCheck":
        return NullCheck(self, negated=True)


def prop(variable: str, name: str) -> Property:
    """Shorthand for ``Property(variable, name)``."""
    return Property(variable, name)


class Predicate:
    """Base class for boolean expressions."""

    def variables(self) -> FrozenSet[str]:
        raise NotImplementedError

    def properties(self) -> Tuple[Property, ...]:
        raise NotImplementedError

    def render(self, bind: ParamBinder) -> str:
        raise NotImplementedError

    def __and__(self, other: "Predicate") -> "Predicate":
        return all_of(self, other)

    def __or__(self, other: "Predicate") -> "Predicate":
        return any_of(self, other)

    def __invert__(self) -> "Predicate":
        return not_(self)


@dataclass(frozen=True)
class Comparison(Predicate):
    """``left <operator> value``; ``value`` may itself be a ``Property``."""

    left: Property
    operator: str
    value: Any

    def variables(self) -> FrozenSet[str]:
        names = {self.left.variable}
        if isinstance(self.value, Property):
            names.add(self.value.variable)
        return frozenset(names)

    def properties(self) -> Tuple[Property, ...]:
        if isinstance(self.value, Property):
            return (self.left, self.value)
        return (self.left,)

    def render(self, bind: ParamBinder) -> str:
        if isinstance(self.value, Property):
            right = self.value.render()
        else:
            right = bind(f"{self.left.variable}_{self.left.name}", self.value)
        return f"{self.left.render()} {self.operator} {right}"


@dataclass(frozen=True)
class NullCheck(Predicate):
    target: Property
    negated: bool = False

    def variables(self) -> FrozenSet[str]:
        return frozenset({self.target.variable})

    def properties(self) -> Tuple[Property, ...]:
        return (self.target,)

    def render(self, bind: ParamBinder) -> str:
        suffix = "IS NOT NULL" if self.negated else "IS NULL"
        return f"{self.target.render()} {suffix}"


@dataclass(frozen=True)
class Junction(Predicate):
    operator: str
    operands: Tuple[Predicate, ...]

    def variables(self) -> FrozenSet[str]:
        names: FrozenSet[str] = frozenset()
        for operand in self.operands:
            names = names | operand.variables()
        return names

    def properties(self) -> Tuple[Property, ...]:
        found: Tuple[Property, ...] = ()
        for operand in self.operands:
            found = found + operand.properties()
        return found

    def render(self, bind: ParamBinder) -> str:
        if len(self.operands) == 1:
            return self.operands[0].render(bind)
        rendered = f" {self.operator} ".join(op.render(bind) for op in self.operands)
        return f"({rendered})"


@dataclass(frozen=True)
class Negation(Predicate):
    operand: Predicate

    def variables(self) -> FrozenSet[str]:
        return self.operand.variables()

    def properties(self) -> Tuple[Property, ...]:
        return self.operand.properties()

    def render(self, bind: ParamBinder) -> str:
        return f"NOT ({self.operand.render(bind)})"


def all_of(*predicates: Predicate) -> Predicate:
    if not predicates:
        raise ValueError("all_of() requires at least one predicate")
    return Junction("AND", tuple(predicates))


def any_of(*predicates: Predicate) -> Predicate:
    if not predicates:
        raise ValueError("any_of() requires at least one predicate")
    return Junction("OR", tuple(predicates))


def not_(predicate: Predicate) -> Predicate:
    return Negation(predicate)


__all__ = [
    "Comparison",
    "Junction",
    "Negation",
    "NullCheck",
    "ParamBinder",
    "Predicate",
    "Property",
    "all_of",
    "any_of",
    "not_",
    "prop",
]
