"""SQLAlchemy-backed storage for books, users, loans and reservations.

Every repository wraps a single ``Session``. ``save`` commits immediately so
that each write made by the circulation coordinator is its own unit of work.
"""

from datetime import date
from typing import Generic, List, Optional, Type, TypeVar

from sqlalchemy.orm import Session

from circulation.models import models
from circulation.models.enums import BookCategory, BookStatus, ReservationStatus, UserType

T = TypeVar("T")


class Repository(Generic[T]):
    model: Type[T]

    def __init__(self, db: Session) -> None:
        self.db = db

    def save(self, entity: T) -> T:
        self.db.add(entity)
        self.db.commit()
        self.db.refresh(entity)
        return entity

    def find_by_id(self, entity_id: str) -> Optional[T]:
        return self.db.get(self.model, entity_id)

    def exists_by_id(self, entity_id: str) -> bool:
        return self.find_by_id(entity_id) is not None

    def delete_by_id(self, entity_id: str) -> None:
        entity = self.find_by_id(entity_id)
        if entity is not None:
            self.db.delete(entity)
            self.db.commit()

    def find_all(self) -> List[T]:
        return self.db.query(self.model).all()


class BookRepository(Repository[models.Book]):
    model = models.Book

    def find_by_status(self, status: BookStatus) -> List[models.Book]:
        return self.db.query(models.Book).filter(models.Book.status == status).all()

    def find_by_category(self, category: BookCategory) -> List[models.Book]:
        return self.db.query(models.Book).filter(models.Book.category == category).all()

    def find_by_title_containing(self, keyword: str) -> List[models.Book]:
        return self.db.query(models.Book).filter(models.Book.title.ilike(f"%{keyword}%")).order_by(models.Book.title).all()

    def find_by_author_containing(self, keyword: str) -> List[models.Book]:
        return self.db.query(models.Book).filter(models.Book.author.ilike(f"%{keyword}%")).order_by(models.Book.title).all()

    def find_published_after(self, when: date) -> List[models.Book]:
        return self.db.query(models.Book).filter(models.Book.publish_date > when).all()

    def find_published_before(self, when: date) -> List[models.Book]:
        return self.db.query(models.Book).filter(models.Book.publish_date < when).all()

    def find_published_between(self, start: date, end: date) -> List[models.Book]:
        return self.db.query(models.Book).filter(models.Book.publish_date.between(start, end)).all()


class UserRepository(Repository[models.User]):
    model = models.User

    def find_by_email(self, email: str) -> Optional[models.User]:
        return self.db.query(models.User).filter(models.User.email == email).first()

    def find_by_user_type(self, user_type: UserType) -> List[models.User]:
        return self.db.query(models.User).filter(models.User.user_type == user_type).all()

    def find_by_name_containing(self, keyword: str) -> List[models.User]:
        like_q = f"%{keyword}%"
        query = self.db.query(models.User).filter(
            (models.User.first_name.ilike(like_q)) | (models.User.last_name.ilike(like_q))
        )
        return query.order_by(models.User.last_name, models.User.first_name).all()

    def find_by_account_locked(self, locked: bool) -> List[models.User]:
        return self.db.query(models.User).filter(models.User.account_locked == locked).all()

    def find_by_fine_greater_than(self, amount: float) -> List[models.User]:
        return self.db.query(models.User).filter(models.User.fine_amount > amount).all()


class LoanRepository(Repository[models.Loan]):
    model = models.Loan

    def find_by_user(self, user_id: str) -> List[models.Loan]:
        return self.db.query(models.Loan).filter(models.Loan.user_id == user_id).order_by(models.Loan.loan_date).all()

    def find_by_book(self, book_id: str) -> List[models.Loan]:
        return self.db.query(models.Loan).filter(models.Loan.book_id == book_id).order_by(models.Loan.loan_date).all()

    def find_active_by_user(self, user_id: str) -> List[models.Loan]:
        return self.db.query(models.Loan).filter(
            models.Loan.user_id == user_id, models.Loan.return_date.is_(None)
        ).all()

    def count_active_by_user(self, user_id: str) -> int:
        return self.db.query(models.Loan).filter(
            models.Loan.user_id == user_id, models.Loan.return_date.is_(None)
        ).count()

    def find_active_by_book(self, book_id: str) -> List[models.Loan]:
        return self.db.query(models.Loan).filter(
            models.Loan.book_id == book_id, models.Loan.return_date.is_(None)
        ).all()

    def find_active(self) -> List[models.Loan]:
        return self.db.query(models.Loan).filter(models.Loan.return_date.is_(None)).all()

    def find_active_due_before(self, when: date) -> List[models.Loan]:
        return self.db.query(models.Loan).filter(
            models.Loan.return_date.is_(None), models.Loan.due_date < when
        ).order_by(models.Loan.due_date).all()

    def find_by_due_date(self, due: date) -> List[models.Loan]:
        return self.db.query(models.Loan).filter(models.Loan.due_date == due).all()

    def find_by_loan_date_between(self, start: date, end: date) -> List[models.Loan]:
        return self.db.query(models.Loan).filter(models.Loan.loan_date.between(start, end)).all()


class ReservationRepository(Repository[models.Reservation]):
    model = models.Reservation

    def find_by_user(self, user_id: str) -> List[models.Reservation]:
        return self.db.query(models.Reservation).filter(
            models.Reservation.user_id == user_id
        ).order_by(models.Reservation.reservation_date).all()

    def find_by_book(self, book_id: str) -> List[models.Reservation]:
        return self.db.query(models.Reservation).filter(
            models.Reservation.book_id == book_id
        ).order_by(models.Reservation.reservation_date).all()

    def find_by_status(self, status: ReservationStatus) -> List[models.Reservation]:
        return self.db.query(models.Reservation).filter(models.Reservation.status == status).all()

    def find_by_statuses(self, statuses) -> List[models.Reservation]:
        return self.db.query(models.Reservation).filter(models.Reservation.status.in_(list(statuses))).all()

    def find_by_reservation_date_between(self, start: date, end: date) -> List[models.Reservation]:
        return self.db.query(models.Reservation).filter(
            models.Reservation.reservation_date.between(start, end)
        ).all()
