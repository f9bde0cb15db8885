"""
Predicate application.

Translates a ``Predicate`` into a WHERE clause on a SQLAlchemy ``Select`` or
``Delete`` statement. Statements are immutable, so every call returns the
next statement rather than mutating the one passed in.
"""
from __future__ import annotations

from typing import Callable, Dict, Iterable, TypeVar

from sqlalchemy.sql import operators
from sqlalchemy.sql.elements import ColumnElement

from .exceptions import InvalidArgumentError, InvalidFilterError
from .filters import Predicate

StatementT = TypeVar("StatementT")

COMPARISON_OPERATORS: Dict[str, Callable] = {
    "=": operators.eq,
    "==": operators.eq,
    "!=": operators.ne,
    "<>": operators.ne,
    "<": operators.lt,
    "<=": operators.le,
    ">": operators.gt,
    ">=": operators.ge,
    "like": operators.like_op,
    "not like": operators.not_like_op,
    "ilike": operators.ilike_op,
    "not ilike": operators.not_ilike_op,
}


def resolve_column(model, name: str) -> ColumnElement:
    """Return the table column ``name`` of ``model``."""
    table_column = model.__table__.c.get(name)
    if table_column is None:
        raise InvalidArgumentError(f"Unknown column [{name}] on {model.__name__}")
    return table_column


def build_condition(model, predicate: Predicate) -> ColumnElement:
    target = resolve_column(model, predicate.column)
    if predicate.is_where_in:
        return target.in_(predicate.value)

    comparator = COMPARISON_OPERATORS.get(predicate.operator.strip().lower())
    if comparator is None:
        raise InvalidFilterError(f"Unsupported filter operator [{predicate.operator}]")
    return comparator(target, predicate.value)


def attach_where(statement: StatementT, model, predicate: Predicate) -> StatementT:
    """Return ``statement`` narrowed by ``predicate``."""
    return statement.where(build_condition(model, predicate))


def apply_predicates(statement: StatementT, model, predicates: Iterable[Predicate]) -> StatementT:
    for predicate in predicates:
        statement = attach_where(statement, model, predicate)
    return statement
