import itertools
from datetime import date

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from circulation.core.clock import FixedClock
from circulation.core.database import Base, init_db
from circulation.main import Library
from circulation.models.enums import BookCategory, UserType

START = date(2024, 3, 1)

_seq = itertools.count(1)


@pytest.fixture
def db():
    engine = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
    init_db(bind=engine)
    TestingSession = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSession()
    yield session
    session.close()
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def clock():
    return FixedClock(START)


@pytest.fixture
def library(db, clock):
    return Library(db, clock=clock)


@pytest.fixture
def make_user(library):
    def _make_user(user_type=UserType.STUDENT, first_name="Test"):
        n = next(_seq)
        return library.users.register_user(
            first_name, f"User{n}", f"user{n}@example.com", f"555{n:07d}", user_type
        )
    return _make_user


@pytest.fixture
def make_book(library):
    def _make_book(title="Test Book", author="Author", category=BookCategory.FICTION):
        n = next(_seq)
        return library.books.add_book(title, author, f"{9780000000000 + n}", date(2001, 5, 17), category)
    return _make_book
