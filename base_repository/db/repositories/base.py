"""
Generic repository over one SQLAlchemy mapped class.

Concrete repositories subclass ``BaseRepository``, bind a model and declare
which columns may be used by the dynamic ``find_by_<column>`` lookups::

    class BookRepository(BaseRepository):
        filterable = ("title", "status")

        def __init__(self, session):
            super().__init__(models.Book, session)

    repo.find([["status", "published"], ["title", "like", "Du"]], per_page=20)
    repo.find_by_status("published")
"""
from __future__ import annotations

import logging
from typing import Any, Callable, List, Mapping, Optional, Sequence, TypeVar, Union

from sqlalchemy import delete as sql_delete
from sqlalchemy import func, inspect, select
from sqlalchemy.orm import Session, load_only, selectinload

from base_repository.db.errors import run_through_try_catch, translates_errors
from base_repository.db.exceptions import (
    ForbiddenColumnError,
    InvalidArgumentError,
    RepositoryError,
    UnknownOperationError,
)
from base_repository.db.filters import parse_filters
from base_repository.db.pagination import Page, resolve_page, validate_per_page
from base_repository.db.predicates import apply_predicates
from base_repository.utils.settings import get_settings

logger = logging.getLogger(__name__)

T = TypeVar("T")

ALL_COLUMNS = ("*",)
FIND_BY_PREFIX = "find_by_"

# Session.info key holding the depth of open repository transactions
_TRANSACTION_DEPTH_KEY = "base_repository.transaction_depth"
# set when a store failure happened inside the open transaction
_TRANSACTION_FAILED_KEY = "base_repository.transaction_failed"

ABORTED_TRANSACTION_MESSAGE = "Transaction was aborted by an earlier store failure"

Relations = Union[str, Sequence[Any], None]


class BaseRepository:
    """CRUD and filtered search over ``model`` through ``session``."""

    # Columns allowed in dynamic find_by_<column> lookups
    filterable: Sequence[str] = ()

    def __init__(self, model, session: Session):
        self._model = model
        self._session = session

    @property
    def model(self):
        return self._model

    @property
    def session(self) -> Session:
        return self._session

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    @translates_errors
    def first_or_create(self, data: Mapping[str, Any]):
        """Return the first entity matching every field of ``data``, creating it if missing."""
        self._check_attributes(data)
        stmt = select(self._model).filter_by(**data).limit(1)
        entity = self._session.scalars(stmt).first()
        if entity is not None:
            return entity

        entity = self._model(**data)
        self._session.add(entity)
        self._commit()
        self._session.refresh(entity)
        logger.debug("Created %s via first_or_create", self._model.__name__)
        return entity

    @translates_errors
    def find_by_id(self, id, columns: Sequence[str] = ALL_COLUMNS, relations: Relations = "") -> List[Any]:
        """Entities whose primary key equals ``id``, with optional projection and eager loads."""
        stmt = select(self._model).where(self._primary_key_column() == id)
        stmt = self._apply_projection(stmt, columns)
        for option in self._relation_options(relations):
            stmt = stmt.options(option)
        return list(self._session.scalars(stmt).all())

    @translates_errors
    def find(
        self,
        filters,
        per_page: Optional[int] = None,
        columns: Sequence[str] = ALL_COLUMNS,
        page: Optional[int] = None,
    ) -> Union[Page, bool]:
        """One page of entities matching ``filters``; ``False`` when no filters are given."""
        if not filters:
            return False

        per_page = validate_per_page(get_settings().default_per_page if per_page is None else per_page)
        predicates = parse_filters(filters)

        count_stmt = apply_predicates(select(func.count()).select_from(self._model), self._model, predicates)
        total = self._session.execute(count_stmt).scalar_one()

        current = resolve_page(page)
        stmt = apply_predicates(select(self._model), self._model, predicates)
        stmt = self._apply_projection(stmt, columns)
        stmt = stmt.order_by(self._primary_key_column()).offset((current - 1) * per_page).limit(per_page)
        items = list(self._session.scalars(stmt).all())
        return Page(items=items, total=total, per_page=per_page, current_page=current)

    @translates_errors
    def count(self, filters=()) -> int:
        """Number of rows matching ``filters`` (all rows when empty)."""
        stmt = select(func.count()).select_from(self._model)
        if filters:
            stmt = apply_predicates(stmt, self._model, parse_filters(filters))
        return self._session.execute(stmt).scalar_one()

    @translates_errors
    def update_by_id(self, id, data: Mapping[str, Any]):
        """Upsert the record made of ``data`` with its primary key set to ``id``."""
        merged = {**data, self._primary_key_name(): id}
        self._check_attributes(merged)
        entity = self._session.merge(self._model(**merged))
        self._commit()
        self._session.refresh(entity)
        return entity

    @translates_errors
    def delete_by_id(self, id) -> bool:
        """Delete the entity with primary key ``id``; a missing row is a store error."""
        stmt = select(self._model).where(self._primary_key_column() == id)
        entity = self._session.scalars(stmt).one()
        self._session.delete(entity)
        self._commit()
        return True

    @translates_errors
    def delete(self, filters) -> bool:
        """Delete every row matching ``filters``; ``False`` when no filters are given."""
        if not filters:
            return False

        stmt = apply_predicates(sql_delete(self._model), self._model, parse_filters(filters))
        result = self._session.execute(stmt.execution_options(synchronize_session=False))
        self._commit()
        logger.debug("Deleted %s %s row(s)", result.rowcount, self._model.__name__)
        return True

    # ------------------------------------------------------------------
    # Dynamic find_by_<column>
    # ------------------------------------------------------------------

    def find_by(self, column: str, value: Any, per_page: Optional[int] = None, columns: Sequence[str] = ALL_COLUMNS):
        """Equality search on ``column``, which must be listed in ``filterable``.

        ``find_by_<column>`` attributes resolve here, except ``find_by_id``,
        which is the primary-key lookup. Use ``find_by("id", value)`` for a
        filterable column named ``id``.
        """
        column = column.lower()
        if column not in self.filterable:
            raise ForbiddenColumnError(f"Cannot filter the model with column [{column}]")
        return self.find([[column, value]], per_page=per_page, columns=columns)

    def __getattr__(self, name: str):
        if name.startswith("_"):
            raise AttributeError(name)
        if not name.startswith(FIND_BY_PREFIX) or len(name) == len(FIND_BY_PREFIX):
            raise UnknownOperationError(f"Cannot find method [{name}] on {type(self).__name__}")

        # filterable is checked when the finder is called
        column = name[len(FIND_BY_PREFIX):]

        def finder(value: Any, per_page: Optional[int] = None, columns: Sequence[str] = ALL_COLUMNS):
            return self.find_by(column, value, per_page=per_page, columns=columns)

        finder.__name__ = name
        return finder

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    def run_through_transaction(self, action: Callable[..., T], *args, **kwargs) -> T:
        """Run ``action(*args, **kwargs)`` in one transaction and return its result.

        Repository writes made by the action are flushed, not committed; the
        outermost call commits once. Exceptions from the action roll back and
        propagate unchanged; a failing commit surfaces as ``RepositoryError``.

        A store failure inside the action aborts the transaction. If the
        action catches the ``RepositoryError`` and carries on, further
        repository calls on the session raise ``RepositoryError`` and the
        outermost call rolls back instead of committing.
        """
        info = self._session.info
        depth = info.get(_TRANSACTION_DEPTH_KEY, 0)
        info[_TRANSACTION_DEPTH_KEY] = depth + 1
        try:
            result = action(*args, **kwargs)
        except Exception:
            info[_TRANSACTION_DEPTH_KEY] = depth
            if depth == 0:
                info.pop(_TRANSACTION_FAILED_KEY, None)
                logger.debug("Rolling back %s transaction", type(self).__name__)
                self._session.rollback()
            raise

        info[_TRANSACTION_DEPTH_KEY] = depth
        if depth == 0:
            if info.pop(_TRANSACTION_FAILED_KEY, False):
                logger.debug("Rolling back aborted %s transaction", type(self).__name__)
                self._session.rollback()
                raise RepositoryError(ABORTED_TRANSACTION_MESSAGE)
            run_through_try_catch(self._session.commit, on_error=lambda exc: self._session.rollback())
        return result

    def in_transaction(self) -> bool:
        return self._session.info.get(_TRANSACTION_DEPTH_KEY, 0) > 0

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _commit(self) -> None:
        if self.in_transaction():
            self._session.flush()
        else:
            self._session.commit()

    def _before_store_access(self) -> None:
        if self.in_transaction() and self._session.info.get(_TRANSACTION_FAILED_KEY):
            raise RepositoryError(ABORTED_TRANSACTION_MESSAGE)

    def _on_store_error(self, exc: BaseException) -> None:
        if self.in_transaction():
            # the outermost run_through_transaction rolls back
            self._session.info[_TRANSACTION_FAILED_KEY] = True
        else:
            self._session.rollback()

    def _check_attributes(self, data: Mapping[str, Any]) -> None:
        attrs = inspect(self._model).attrs
        for name in data:
            if name not in attrs:
                raise InvalidArgumentError(f"Unknown column [{name}] on {self._model.__name__}")

    def _primary_key_column(self):
        return inspect(self._model).primary_key[0]

    def _primary_key_name(self) -> str:
        mapper = inspect(self._model)
        return mapper.get_property_by_column(mapper.primary_key[0]).key

    def _apply_projection(self, stmt, columns: Sequence[str]):
        if columns is None or list(columns) == list(ALL_COLUMNS):
            return stmt
        if isinstance(columns, str):
            columns = [columns]

        attrs = inspect(self._model).column_attrs
        selected = []
        for name in columns:
            if name not in attrs:
                raise InvalidArgumentError(f"Unknown column [{name}] on {self._model.__name__}")
            selected.append(getattr(self._model, name))
        return stmt.options(load_only(*selected))

    def _relation_options(self, relations: Relations) -> List[Any]:
        if not relations:
            return []
        if isinstance(relations, str):
            return [self._relation_loader(relations)]
        if not isinstance(relations, (list, tuple)):
            raise InvalidArgumentError("Invalid argument as relation")

        options = []
        for relation in relations:
            if not isinstance(relation, str):
                raise InvalidArgumentError("Invalid argument as relation")
            options.append(self._relation_loader(relation))
        return options

    def _relation_loader(self, path: str):
        """``selectinload`` chain for a relation name, dotted for nested relations."""
        model = self._model
        loader = None
        for name in path.split("."):
            relationships = inspect(model).relationships
            if name not in relationships:
                raise InvalidArgumentError(f"Unknown relation [{path}] on {self._model.__name__}")
            attr = getattr(model, name)
            loader = selectinload(attr) if loader is None else loader.selectinload(attr)
            model = relationships[name].mapper.class_
        return loader

    def __repr__(self) -> str:
        return f"<{type(self).__name__} model={self._model.__name__}>"
