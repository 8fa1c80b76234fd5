from typing import Optional

from sqlalchemy.orm import Session

from circulation.core.clock import SystemClock
from circulation.core.config import configure_logging
from circulation.core.database import SessionLocal, init_db
from circulation.services.catalog import BookService, UserService
from circulation.services.circulation import CirculationCoordinator
from circulation.services.reports import CirculationReports


class Library:
    """Wires repositories and services around one database session."""

    def __init__(self, db: Session, clock=None) -> None:
        self.db = db
        self.clock = clock or SystemClock()
        self.circulation = CirculationCoordinator.from_session(db, clock=self.clock)
        self.reports = CirculationReports(self.circulation)
        self.books = BookService(self.circulation.books, self.circulation.loans, clock=self.clock)
        self.users = UserService(
            self.circulation.users, self.circulation.loans, self.circulation.reservations, clock=self.clock
        )

    def close(self) -> None:
        self.db.close()


def create_library(db: Optional[Session] = None, clock=None) -> Library:
    configure_logging()
    if db is None:
        init_db()
        db = SessionLocal()
    return Library(db, clock=clock)
