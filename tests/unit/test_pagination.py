import pytest

from base_repository.db.exceptions import InvalidArgumentError
from base_repository.db.pagination import (
    Page,
    current_page,
    get_current_page,
    reset_current_page,
    resolve_page,
    set_current_page,
    validate_per_page,
)


def test_current_page_defaults_to_first():
    assert get_current_page() == 1
    assert resolve_page(None) == 1


def test_current_page_context_manager_restores_previous():
    with current_page(4) as page:
        assert page == 4
        assert resolve_page(None) == 4
        with current_page("2"):
            assert get_current_page() == 2
        assert get_current_page() == 4
    assert get_current_page() == 1


def test_set_and_reset_current_page():
    token = set_current_page(3)
    try:
        assert get_current_page() == 3
    finally:
        reset_current_page(token)
    assert get_current_page() == 1


@pytest.mark.parametrize("raw,expected", [(0, 1), (-2, 1), ("x", 1), (None, 1), ("5", 5)])
def test_invalid_pages_resolve_to_first(raw, expected):
    with current_page(raw):
        assert get_current_page() == expected


def test_explicit_page_beats_current_page():
    with current_page(9):
        assert resolve_page(2) == 2


@pytest.mark.parametrize("per_page", [0, -1, "15", 2.5, True, None])
def test_invalid_page_size(per_page):
    with pytest.raises(InvalidArgumentError):
        validate_per_page(per_page)


def test_page_navigation():
    page = Page(items=["a", "b"], total=5, per_page=2, current_page=2)
    assert page.last_page == 3
    assert page.has_more_pages is True
    assert page.items == ["a", "b"]
    assert len(page) == 2


def test_empty_page_has_one_last_page():
    page = Page(items=[], total=0, per_page=15, current_page=1)
    assert page.last_page == 1
    assert page.has_more_pages is False


def test_page_behaves_like_a_model_when_iterated():
    page = Page(items=["a"], total=1, per_page=15, current_page=1)
    assert dict(page) == {"items": ["a"], "total": 1, "per_page": 15, "current_page": 1}
    assert page.model_dump()["items"] == ["a"]
