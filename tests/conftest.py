import os

# Force the in-memory sqlite engine before any package module reads settings
os.environ.setdefault("REPOSITORY_TEST_DB", "sqlite+pysqlite:///:memory:")

import pytest
from sqlalchemy.orm import Session

from base_repository.db import database
from base_repository.utils.settings import refresh_settings
from tests.fixtures import models
from tests.fixtures.repositories import AuthorRepository, BookRepository, TagRepository

refresh_settings()


@pytest.fixture(scope="session")
def engine():
    database.reset_engine()
    eng = database.get_engine()
    models.Base.metadata.create_all(bind=eng)
    yield eng
    models.Base.metadata.drop_all(bind=eng)
    database.reset_engine()


@pytest.fixture(autouse=True)
def clean_data(engine):
    """Empty all tables between tests without dropping metadata."""
    yield
    with engine.begin() as connection:
        for table in reversed(models.Base.metadata.sorted_tables):
            connection.execute(table.delete())


@pytest.fixture
def db_session(engine):
    db = database.new_session()
    try:
        yield db
    finally:
        db.rollback()
        db.close()


@pytest.fixture
def author_repo(db_session: Session):
    return AuthorRepository(db_session)


@pytest.fixture
def book_repo(db_session: Session):
    return BookRepository(db_session)


@pytest.fixture
def tag_repo(db_session: Session):
    return TagRepository(db_session)


@pytest.fixture
def author_factory(db_session: Session):
    def _create(name: str, country: str = None):
        author = models.Author(name=name, country=country)
        db_session.add(author)
        db_session.commit()
        db_session.refresh(author)
        return author
    return _create


@pytest.fixture
def book_factory(db_session: Session):
    def _create(title: str, status: str = 'draft', pages: int = None, author=None, tags=()):
        book = models.Book(title=title, status=status, pages=pages, author=author, tags=list(tags))
        db_session.add(book)
        db_session.commit()
        db_session.refresh(book)
        return book
    return _create
