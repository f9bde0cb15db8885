"""
Repository error taxonomy.

Store failures surface as ``RepositoryError`` only. Caller-input problems
(bad filters, bad relation names, unknown dynamic methods) get their own
subclasses and are raised directly, never translated.
"""
from __future__ import annotations

from typing import Optional, Union

ErrorCode = Union[int, str]


class RepositoryException(Exception):
    """Base class for every error raised by a repository."""

    def __init__(self, message: str = "", code: Optional[ErrorCode] = None):
        super().__init__(message)
        self.message = message
        self.code = code

    def __str__(self) -> str:
        return self.message


class RepositoryError(RepositoryException):
    """A data-access failure reported by the underlying store."""


class InvalidFilterError(RepositoryException):
    """Filter input does not have a supported shape."""


class InvalidArgumentError(RepositoryException):
    """Relation, projection or paging argument is malformed."""


class ForbiddenColumnError(RepositoryException):
    """Dynamic lookup on a column the repository does not allow filtering by."""


class UnknownOperationError(RepositoryException, AttributeError):
    """No such repository method, static or dynamic."""
