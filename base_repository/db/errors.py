"""
Store error translation.

Every repository operation runs through ``run_through_try_catch`` so that
SQLAlchemy execution failures and not-found lookups reach callers as a single
``RepositoryError``. Anything else propagates untouched.
"""
from __future__ import annotations

import functools
import logging
from typing import Callable, Optional, TypeVar

from sqlalchemy.exc import DBAPIError, NoResultFound, StatementError

from .exceptions import ErrorCode, RepositoryError

logger = logging.getLogger(__name__)

T = TypeVar("T")

STORE_ERRORS = (StatementError, NoResultFound)


def error_code(exc: BaseException) -> Optional[ErrorCode]:
    """Best-effort driver error code for ``exc``.

    psycopg exposes SQLSTATE as ``pgcode`` and sqlite3 an integer
    ``sqlite_errorcode``; MySQL drivers put an integer code
    first in ``args``.
    """
    if not isinstance(exc, DBAPIError) or exc.orig is None:
        return None
    orig = exc.orig
    for attr in ("pgcode", "sqlstate", "sqlite_errorcode"):
        code = getattr(orig, attr, None)
        if code:
            return code
    args = getattr(orig, "args", ())
    if args and isinstance(args[0], int):
        return args[0]
    return None


def error_message(exc: BaseException) -> str:
    if isinstance(exc, DBAPIError) and exc.orig is not None:
        return str(exc.orig)
    return str(exc)


def translate(exc: BaseException) -> RepositoryError:
    return RepositoryError(error_message(exc), error_code(exc))


def run_through_try_catch(
    action: Callable[[], T],
    on_error: Optional[Callable[[BaseException], None]] = None,
) -> T:
    """Run ``action`` and convert store failures into ``RepositoryError``.

    ``on_error`` runs before the translated error is raised (the repository
    uses it to roll its session back).
    """
    try:
        return action()
    except STORE_ERRORS as exc:
        logger.warning("Store operation failed (%s): %s", exc.__class__.__name__, error_message(exc))
        if on_error is not None:
            on_error(exc)
        raise translate(exc) from exc


def translates_errors(method: Callable[..., T]) -> Callable[..., T]:
    """Method decorator applying ``run_through_try_catch``.

    The instance may define ``_before_store_access()``, called before the
    method runs, and ``_on_store_error(exc)`` to react before the translated
    error is raised.
    """

    @functools.wraps(method)
    def wrapper(self, *args, **kwargs):
        before = getattr(self, "_before_store_access", None)
        if before is not None:
            before()
        return run_through_try_catch(
            lambda: method(self, *args, **kwargs),
            on_error=getattr(self, "_on_store_error", None),
        )

    return wrapper
