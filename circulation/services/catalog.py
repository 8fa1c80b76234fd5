import logging
from datetime import date
from typing import List

from pydantic import ValidationError

from circulation.core.clock import SystemClock
from circulation.core.errors import BookNotFound, IllegalStateTransition, InvalidArgument, UserNotFound
from circulation.models import models
from circulation.models.enums import BookCategory, BookStatus, OPEN_RESERVATION_STATUSES, UserType
from circulation.repositories.repositories import (
    BookRepository,
    LoanRepository,
    ReservationRepository,
    UserRepository,
)
from circulation.schemas import schemas
from circulation.services.eligibility import LOCKOUT_THRESHOLD

logger = logging.getLogger("circulation.catalog")


def _validated(schema, context=None, **fields):
    try:
        return schema.model_validate(fields, context=context)
    except ValidationError as exc:
        raise InvalidArgument(str(exc)) from exc


class BookService:
    def __init__(self, books: BookRepository, loans: LoanRepository, clock=None) -> None:
        self.books = books
        self.loans = loans
        self.clock = clock or SystemClock()

    def add_book(self, title: str, author: str, isbn: str, publish_date: date,
                 category: BookCategory = BookCategory.OTHER) -> models.Book:
        data = _validated(schemas.BookCreate, {"today": self.clock.today()},
                          title=title, author=author, isbn=isbn,
                          publish_date=publish_date, category=category)
        book = models.Book(**data.model_dump(), status=BookStatus.AVAILABLE)
        self.books.save(book)
        logger.info(f"Created book id={book.id} title={book.title}")
        return book

    def update_book(self, book_id: str, title: str, author: str, isbn: str, publish_date: date,
                    category: BookCategory = BookCategory.OTHER) -> models.Book:
        data = _validated(schemas.BookUpdate, {"today": self.clock.today()},
                          title=title, author=author, isbn=isbn,
                          publish_date=publish_date, category=category)
        book = self.get_book(book_id)
        for k, v in data.model_dump().items():
            setattr(book, k, v)
        self.books.save(book)
        logger.info(f"Updated book id={book.id}")
        return book

    def delete_book(self, book_id: str) -> None:
        book = self.get_book(book_id)
        # prevent deletion while the book is claimed
        if self.loans.find_active_by_book(book.id):
            raise IllegalStateTransition("Cannot delete book with active loans")
        if book.status == BookStatus.RESERVED:
            raise IllegalStateTransition("Cannot delete book held for a reservation")
        self.books.delete_by_id(book.id)
        logger.info(f"Deleted book id={book_id}")

    def get_book(self, book_id: str) -> models.Book:
        book = self.books.find_by_id(book_id)
        if book is None:
            raise BookNotFound(f"Book not found with ID: {book_id}")
        return book

    def all_books(self) -> List[models.Book]:
        return self.books.find_all()

    def books_by_status(self, status: BookStatus) -> List[models.Book]:
        return self.books.find_by_status(status)

    def books_by_category(self, category: BookCategory) -> List[models.Book]:
        return self.books.find_by_category(category)

    def available_books(self) -> List[models.Book]:
        return self.books.find_by_status(BookStatus.AVAILABLE)

    def search_by_title(self, keyword: str) -> List[models.Book]:
        return self.books.find_by_title_containing(keyword)

    def search_by_author(self, keyword: str) -> List[models.Book]:
        return self.books.find_by_author_containing(keyword)

    def published_after(self, when: date) -> List[models.Book]:
        return self.books.find_published_after(when)

    def published_before(self, when: date) -> List[models.Book]:
        return self.books.find_published_before(when)

    def published_between(self, start: date, end: date) -> List[models.Book]:
        return self.books.find_published_between(start, end)


class UserService:
    def __init__(self, users: UserRepository, loans: LoanRepository,
                 reservations: ReservationRepository, clock=None) -> None:
        self.users = users
        self.loans = loans
        self.reservations = reservations
        self.clock = clock or SystemClock()

    def register_user(self, first_name: str, last_name: str, email: str, phone: str,
                      user_type: UserType = UserType.STUDENT) -> models.User:
        data = _validated(schemas.UserCreate, first_name=first_name, last_name=last_name,
                          email=email, phone=phone, user_type=user_type)
        if self.users.find_by_email(data.email) is not None:
            raise InvalidArgument(f"User with email {data.email} already exists")
        user = models.User(
            **data.model_dump(),
            registration_date=self.clock.today(),
            account_locked=False,
            fine_amount=0.0,
        )
        self.users.save(user)
        logger.info(f"Created user id={user.id} email={user.email}")
        return user

    def update_user(self, user_id: str, first_name: str, last_name: str, email: str, phone: str,
                    user_type: UserType) -> models.User:
        data = _validated(schemas.UserUpdate, first_name=first_name, last_name=last_name,
                          email=email, phone=phone, user_type=user_type)
        user = self.get_user(user_id)
        if data.email != user.email and self.users.find_by_email(data.email) is not None:
            raise InvalidArgument(f"User with email {data.email} already exists")
        for k, v in data.model_dump().items():
            setattr(user, k, v)
        self.users.save(user)
        logger.info(f"Updated user id={user.id}")
        return user

    def delete_user(self, user_id: str) -> None:
        if not self.users.exists_by_id(user_id):
            raise UserNotFound(f"User not found with ID: {user_id}")
        if self.loans.count_active_by_user(user_id):
            raise IllegalStateTransition("Cannot delete user with active loans")
        # a confirmed reservation keeps its book RESERVED until cancelled
        if any(r.status in OPEN_RESERVATION_STATUSES for r in self.reservations.find_by_user(user_id)):
            raise IllegalStateTransition("Cannot delete user with open reservations")
        self.users.delete_by_id(user_id)
        logger.info(f"Deleted user id={user_id}")

    def get_user(self, user_id: str) -> models.User:
        user = self.users.find_by_id(user_id)
        if user is None:
            raise UserNotFound(f"User not found with ID: {user_id}")
        return user

    def get_user_by_email(self, email: str) -> models.User:
        user = self.users.find_by_email(email)
        if user is None:
            raise UserNotFound(f"User not found with email: {email}")
        return user

    def all_users(self) -> List[models.User]:
        return self.users.find_all()

    def users_by_type(self, user_type: UserType) -> List[models.User]:
        return self.users.find_by_user_type(user_type)

    def search_by_name(self, keyword: str) -> List[models.User]:
        return self.users.find_by_name_containing(keyword)

    def locked_users(self) -> List[models.User]:
        return self.users.find_by_account_locked(True)

    def users_with_fines(self) -> List[models.User]:
        return self.users.find_by_fine_greater_than(0.0)

    def lock_account(self, user_id: str) -> models.User:
        user = self.get_user(user_id)
        user.account_locked = True
        self.users.save(user)
        logger.info(f"Locked user id={user.id}")
        return user

    def unlock_account(self, user_id: str) -> models.User:
        user = self.get_user(user_id)
        if user.fine_amount >= LOCKOUT_THRESHOLD:
            raise IllegalStateTransition(
                f"Cannot unlock user {user.id}: fine balance {user.fine_amount:.2f} must be paid down first"
            )
        user.account_locked = False
        self.users.save(user)
        logger.info(f"Unlocked user id={user.id}")
        return user
