"""Page results and the context-local current page used by ``find``."""
from __future__ import annotations

import math
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict

from .exceptions import InvalidArgumentError

_current_page: ContextVar[int] = ContextVar("repository_current_page", default=1)


def _normalize_page(page: Any) -> int:
    try:
        page = int(page)
    except (TypeError, ValueError):
        return 1
    return page if page >= 1 else 1


def get_current_page() -> int:
    return _current_page.get()


def set_current_page(page: Any):
    """Set the current page for this context; returns a token for ``reset_current_page``."""
    return _current_page.set(_normalize_page(page))


def reset_current_page(token) -> None:
    _current_page.reset(token)


@contextmanager
def current_page(page: Any):
    """Temporarily set the current page, e.g. for the duration of a request."""
    token = set_current_page(page)
    try:
        yield get_current_page()
    finally:
        reset_current_page(token)


def resolve_page(page: Optional[Any]) -> int:
    if page is None:
        return get_current_page()
    return _normalize_page(page)


def validate_per_page(per_page: Any) -> int:
    if isinstance(per_page, bool) or not isinstance(per_page, int) or per_page < 1:
        raise InvalidArgumentError(f"Invalid page size [{per_page}]")
    return per_page


class Page(BaseModel):
    """One page of entities plus the totals needed to navigate the rest.

    Iterate over ``items``; iterating the page itself yields its fields like
    any other model. ``len(page)`` is the number of items on this page.
    """

    items: List[Any]
    total: int
    per_page: int
    current_page: int

    model_config = ConfigDict(frozen=True)

    @property
    def last_page(self) -> int:
        return max(int(math.ceil(self.total / self.per_page)), 1)

    @property
    def has_more_pages(self) -> bool:
        return self.current_page < self.last_page

    def __len__(self) -> int:
        return len(self.items)
