"""Runtime settings for repositories, sourced from the environment."""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Dict, Optional

DEFAULT_PER_PAGE = 15

_POSTGRES_ENV_VARS = (
    "POSTGRES_USER",
    "POSTGRES_PASSWORD",
    "POSTGRES_HOST",
    "POSTGRES_PORT",
    "POSTGRES_DB",
)


@dataclass(frozen=True)
class RepositorySettings:
    database_url: Optional[str]
    test_database_url: Optional[str]
    default_per_page: int
    echo_sql: bool


def _normalize_bool(value: str | None, default: bool = False) -> bool:
    """Return normalized boolean from environment-style value."""
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"", "0", "false", "no", "off"}:
        return False
    if normalized in {"1", "true", "yes", "on"}:
        return True
    return default


def _normalize_per_page(value: str | None) -> int:
    if value is None:
        return DEFAULT_PER_PAGE
    try:
        parsed = int(value.strip())
    except ValueError:
        return DEFAULT_PER_PAGE
    return parsed if parsed > 0 else DEFAULT_PER_PAGE


def _database_url_from_env() -> Optional[str]:
    """Return DATABASE_URL, or a postgres URL composed from its parts.

    Returns ``None`` when nothing is configured; a partial POSTGRES_* set is a
    configuration error.
    """
    if os.getenv("DATABASE_URL"):
        return os.getenv("DATABASE_URL")

    parts: Dict[str, Optional[str]] = {name: os.getenv(name) for name in _POSTGRES_ENV_VARS}
    if not any(parts.values()):
        return None

    missing = [name for name, value in parts.items() if not value]
    if missing:
        raise ValueError(f"Missing required database environment variables: {', '.join(missing)}")

    return (
        f"postgresql://{parts['POSTGRES_USER']}:{parts['POSTGRES_PASSWORD']}"
        f"@{parts['POSTGRES_HOST']}:{parts['POSTGRES_PORT']}/{parts['POSTGRES_DB']}"
    )


@lru_cache(maxsize=None)
def get_settings() -> RepositorySettings:
    """Return the cached settings sourced from the environment."""
    return RepositorySettings(
        database_url=_database_url_from_env(),
        test_database_url=os.getenv("REPOSITORY_TEST_DB") or None,
        default_per_page=_normalize_per_page(os.getenv("REPOSITORY_PER_PAGE")),
        echo_sql=_normalize_bool(os.getenv("REPOSITORY_ECHO_SQL")),
    )


def refresh_settings() -> None:
    """Invalidate cached settings (useful for tests)."""
    get_settings.cache_clear()
