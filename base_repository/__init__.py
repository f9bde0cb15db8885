"""
Generic SQLAlchemy repository layer.

``BaseRepository`` wraps CRUD and filtered search over one mapped class,
turns declarative filter lists into WHERE clauses and reports every store
failure as ``RepositoryError``.
"""

from base_repository.db.exceptions import (
    ForbiddenColumnError,
    InvalidArgumentError,
    InvalidFilterError,
    RepositoryError,
    RepositoryException,
    UnknownOperationError,
)
from base_repository.db.filters import Predicate, parse_filters
from base_repository.db.pagination import Page, current_page
from base_repository.db.repositories.base import BaseRepository

__all__ = [
    "BaseRepository",
    "Page",
    "Predicate",
    "current_page",
    "parse_filters",
    # errors
    "RepositoryException",
    "RepositoryError",
    "InvalidFilterError",
    "InvalidArgumentError",
    "ForbiddenColumnError",
    "UnknownOperationError",
]
