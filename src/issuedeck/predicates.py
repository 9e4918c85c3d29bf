"""Composable predicate expressions over Issues and Tags.

A predicate is a small immutable tree (``Attr``, ``HasTag``, ``And``, ``Or``,
``Not``) that can be evaluated against live in-memory entities or compiled to
a parameterised SQLite ``WHERE`` fragment for count-only queries against the
durable store. Neither side knows about the other's query language.

Entities expose ``attribute_value(name)`` which returns the non-null
boundary value for an attribute, so predicates never see ``None`` titles.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Literal, Protocol

Operator = Literal["eq", "ne", "gt", "ge", "lt", "le", "contains"]

# Columns a predicate may reference in SQL. Anything else is a programming error.
_SQL_COLUMNS = frozenset(
    {
        "id",
        "title",
        "content",
        "creation_date",
        "modification_date",
        "completed",
        "priority",
        "reminder_enabled",
        "reminder_time",
        "name",
    }
)

_SQL_OPERATORS: dict[str, str] = {"eq": "=", "ne": "!=", "gt": ">", "ge": ">=", "lt": "<", "le": "<="}


class Evaluable(Protocol):
    def attribute_value(self, name: str) -> Any: ...


def _sql_param(value: Any) -> Any:
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, datetime):
        return value.isoformat()
    return value


def _escape_like(text: str) -> str:
    return text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class Predicate:
    """Base class: supports ``&``, ``|`` and ``~`` composition."""

    def evaluate(self, entity: Evaluable) -> bool:
        raise NotImplementedError

    def to_sql(self) -> tuple[str, list[Any]]:
        raise NotImplementedError

    def __and__(self, other: Predicate) -> Predicate:
        return And((self, other))

    def __or__(self, other: Predicate) -> Predicate:
        return Or((self, other))

    def __invert__(self) -> Predicate:
        return Not(self)


@dataclass(frozen=True)
class _Constant(Predicate):
    value: bool

    def evaluate(self, entity: Evaluable) -> bool:
        return self.value

    def to_sql(self) -> tuple[str, list[Any]]:
        return ("1" if self.value else "0"), []


TRUE: Predicate = _Constant(True)
FALSE: Predicate = _Constant(False)


@dataclass(frozen=True)
class Attr(Predicate):
    """Compare one attribute against a value.

    ``contains`` is a case-insensitive substring test on string attributes.
    """

    name: str
    op: Operator
    value: Any

    def evaluate(self, entity: Evaluable) -> bool:
        actual = entity.attribute_value(self.name)
        if self.op == "contains":
            return str(self.value).casefold() in str(actual).casefold()
        if self.op == "eq":
            return bool(actual == self.value)
        if self.op == "ne":
            return bool(actual != self.value)
        if self.op == "gt":
            return bool(actual > self.value)
        if self.op == "ge":
            return bool(actual >= self.value)
        if self.op == "lt":
            return bool(actual < self.value)
        if self.op == "le":
            return bool(actual <= self.value)
        msg = f"Unknown operator: {self.op}"
        raise ValueError(msg)

    def to_sql(self) -> tuple[str, list[Any]]:
        if self.name not in _SQL_COLUMNS:
            msg = f"Unknown column for predicate: {self.name}"
            raise ValueError(msg)
        if self.op == "contains":
            pattern = f"%{_escape_like(str(self.value))}%"
            return f"coalesce({self.name}, '') LIKE ? ESCAPE '\\'", [pattern]
        if self.op not in _SQL_OPERATORS:
            msg = f"Unknown operator: {self.op}"
            raise ValueError(msg)
        return f"{self.name} {_SQL_OPERATORS[self.op]} ?", [_sql_param(self.value)]


@dataclass(frozen=True)
class HasTag(Predicate):
    """True when an Issue carries the tag with ``tag_id``."""

    tag_id: str

    def evaluate(self, entity: Evaluable) -> bool:
        return self.tag_id in entity.attribute_value("tag_ids")

    def to_sql(self) -> tuple[str, list[Any]]:
        return "id IN (SELECT issue_id FROM issue_tags WHERE tag_id = ?)", [self.tag_id]


@dataclass(frozen=True)
class And(Predicate):
    children: tuple[Predicate, ...]

    def evaluate(self, entity: Evaluable) -> bool:
        return all(child.evaluate(entity) for child in self.children)

    def to_sql(self) -> tuple[str, list[Any]]:
        return _join(self.children, " AND ", empty="1")


@dataclass(frozen=True)
class Or(Predicate):
    children: tuple[Predicate, ...]

    def evaluate(self, entity: Evaluable) -> bool:
        return any(child.evaluate(entity) for child in self.children)

    def to_sql(self) -> tuple[str, list[Any]]:
        return _join(self.children, " OR ", empty="0")


@dataclass(frozen=True)
class Not(Predicate):
    child: Predicate

    def evaluate(self, entity: Evaluable) -> bool:
        return not self.child.evaluate(entity)

    def to_sql(self) -> tuple[str, list[Any]]:
        clause, params = self.child.to_sql()
        return f"NOT ({clause})", params


def _join(children: tuple[Predicate, ...], sep: str, *, empty: str) -> tuple[str, list[Any]]:
    if not children:
        return empty, []
    clauses: list[str] = []
    params: list[Any] = []
    for child in children:
        clause, child_params = child.to_sql()
        clauses.append(f"({clause})")
        params.extend(child_params)
    return sep.join(clauses), params


def all_of(predicates: list[Predicate]) -> Predicate:
    """Conjunction of *predicates*; a single predicate is returned as-is."""
    if not predicates:
        return TRUE
    if len(predicates) == 1:
        return predicates[0]
    return And(tuple(predicates))


def any_of(predicates: list[Predicate]) -> Predicate:
    """Disjunction of *predicates*; a single predicate is returned as-is."""
    if not predicates:
        return FALSE
    if len(predicates) == 1:
        return predicates[0]
    return Or(tuple(predicates))
