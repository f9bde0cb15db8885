"""
Database engine and session management.

Builds the SQLAlchemy engine lazily from environment configuration, with an
in-memory SQLite fallback when running under pytest, and exposes session
helpers for callers that construct repositories.
"""
import logging
import os
import sys
from contextlib import contextmanager
from functools import lru_cache

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from base_repository.utils.settings import get_settings

logger = logging.getLogger(__name__)

SQLITE_MEMORY_URL = "sqlite+pysqlite:///:memory:"


def _is_pytest_runtime() -> bool:
    """Best-effort detection that we're executing under pytest.

    ``PYTEST_CURRENT_TEST`` is only set while a test runs, so also look for the
    pytest package in ``sys.modules``. ``PYTEST_RUNNING=1`` forces detection.
    """
    if os.getenv("PYTEST_RUNNING") == "1":
        return True
    if "PYTEST_CURRENT_TEST" in os.environ:
        return True
    return "pytest" in sys.modules


def _resolve_database_url() -> str:
    # Precedence: explicit test DB, configured DB, in-memory sqlite under pytest.
    settings = get_settings()
    if settings.test_database_url:
        return settings.test_database_url
    if settings.database_url:
        return settings.database_url
    if _is_pytest_runtime():
        return SQLITE_MEMORY_URL
    raise ValueError(
        "No database configured: set DATABASE_URL or the POSTGRES_* environment variables"
    )


def _engine_kwargs(url: str) -> dict:
    if not url.startswith("sqlite"):
        return {}
    kwargs = {"connect_args": {"check_same_thread": False}}
    if ":memory:" in url:
        # StaticPool so the in-memory schema survives across connections
        kwargs["poolclass"] = StaticPool
    return kwargs


def build_engine(url: str) -> Engine:
    """Create an engine for ``url`` with dialect-appropriate pool settings."""
    kwargs = _engine_kwargs(url)
    if get_settings().echo_sql:
        kwargs["echo"] = True
    logger.debug("Creating engine for %s", url.split("@")[-1])
    return create_engine(url, **kwargs)


@lru_cache(maxsize=1)
def get_engine() -> Engine:
    """Return the process-wide engine, creating it on first use."""
    return build_engine(_resolve_database_url())


def reset_engine() -> None:
    """Dispose the cached engine so the next call rebuilds it from settings."""
    if get_engine.cache_info().currsize:
        get_engine().dispose()
    get_engine.cache_clear()


SessionLocal = sessionmaker(autocommit=False, autoflush=False)


def new_session() -> Session:
    """Open a session bound to the process-wide engine."""
    return SessionLocal(bind=get_engine())


def get_db():
    """Dependency-style generator yielding a session that is closed afterwards."""
    db = new_session()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def session_scope():
    """
    Context manager for a unit of work.

    Commits on successful exit, rolls back on exception and always closes.

    Usage:
        with session_scope() as session:
            BookRepository(session).first_or_create({"title": "Dune"})
    """
    session = new_session()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
