"""
Filter parsing.

Turns caller-supplied filter input into an ordered list of ``Predicate``
objects. Accepted shapes::

    ["status", "active"]                       # column, value
    ["title", "like", "Dune"]                  # column, operator, value
    [["status", "active"], ["id", "whereIn", [1, 2]]]

The operator defaults to ``=`` when only a column and a value are given.
"""
from __future__ import annotations

from typing import Any, List, Sequence

from pydantic import BaseModel, ConfigDict

from .exceptions import InvalidFilterError

DEFAULT_OPERATOR = "="
LIKE = "LIKE"
WHERE_IN = "WHEREIN"

_SEQUENCE_TYPES = (list, tuple)


class Predicate(BaseModel):
    """A single ``column <operator> value`` condition."""

    column: str
    operator: str = DEFAULT_OPERATOR
    value: Any

    model_config = ConfigDict(frozen=True)

    @property
    def is_where_in(self) -> bool:
        return self.operator.upper() == WHERE_IN


def _is_sequence(value: Any) -> bool:
    return isinstance(value, _SEQUENCE_TYPES)


def _pad(triple: Sequence[Any]) -> tuple:
    padded = list(triple[:3])
    padded.extend([None] * (3 - len(padded)))
    return tuple(padded)


def _coerce_where_in(value: Any) -> List[Any]:
    if isinstance(value, (list, tuple, set, frozenset)):
        return list(value)
    return [value]


def parse_filter(triple: Sequence[Any]) -> Predicate:
    """Normalize one ``(column, operator?, value)`` triple."""
    if not _is_sequence(triple):
        raise InvalidFilterError("Invalid filter applied")

    column, operator, value = _pad(triple)

    # Two-element form: the second slot is the value of an equality test
    if value is None:
        value = operator
        operator = DEFAULT_OPERATOR
    elif operator is None:
        operator = DEFAULT_OPERATOR

    if column is None or value is None:
        raise InvalidFilterError(
            "One of search queries does not specify column and its value for searching"
        )

    operator = str(operator)
    if operator.upper() == LIKE:
        value = f"{value}%"
    elif operator.upper() == WHERE_IN:
        value = _coerce_where_in(value)

    return Predicate(column=str(column), operator=operator, value=value)


def parse_filters(filters: Any) -> List[Predicate]:
    """Normalize raw filter input into predicates, preserving order.

    Raises:
        InvalidFilterError: when the input is not a list/tuple, or a triple is
            missing its column or value.
    """
    if not _is_sequence(filters):
        raise InvalidFilterError("Invalid filter applied")
    if not filters:
        return []

    if not _is_sequence(filters[0]):
        filters = [filters]

    return [parse_filter(triple) for triple in filters]
