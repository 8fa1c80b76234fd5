"""Circulation coordinator.

Entry point for every action that touches more than one entity. Each action
loads what it needs, checks eligibility and lifecycle rules before mutating
anything, then writes in a fixed order: loan/reservation first, book status
second, user fines last. A failure part way through therefore never charges
a fine twice; at worst it leaves a book status that the next action
re-checks.

Callers serialize actions on the same book or user.
"""

import functools
import logging
from typing import Optional

from sqlalchemy.orm import Session

from circulation.core.clock import SystemClock
from circulation.core.errors import (
    CirculationError,
    IllegalStateTransition,
    InvalidArgument,
    LoanNotFound,
    ReservationNotFound,
    UserNotFound,
)
from circulation.models import models
from circulation.models.enums import (
    ADMINISTRATIVE_STATUSES,
    BookStatus,
    OPEN_RESERVATION_STATUSES,
    ReservationStatus,
    policy_for,
)
from circulation.repositories.repositories import (
    BookRepository,
    LoanRepository,
    ReservationRepository,
    UserRepository,
)
from circulation.services.book_status import BookStatusTracker
from circulation.services.eligibility import EligibilityGate
from circulation.services.loans import LoanLifecycle
from circulation.services.reservations import ReservationLifecycle

logger = logging.getLogger("circulation.coordinator")


def logs_refusals(func):
    @functools.wraps(func)
    def wrapper(self, *args, **kwargs):
        try:
            return func(self, *args, **kwargs)
        except CirculationError as exc:
            logger.warning(f"{func.__name__} refused: {exc}")
            raise
    return wrapper


class CirculationCoordinator:
    def __init__(
        self,
        books: BookRepository,
        users: UserRepository,
        loans: LoanRepository,
        reservations: ReservationRepository,
        clock=None,
    ) -> None:
        self.books = books
        self.users = users
        self.loans = loans
        self.reservations = reservations
        self.clock = clock or SystemClock()

        self.tracker = BookStatusTracker(books)
        self.gate = EligibilityGate(loans, reservations, self.clock)
        self.loan_lifecycle = LoanLifecycle(self.clock)
        self.reservation_lifecycle = ReservationLifecycle(self.clock)

    @classmethod
    def from_session(cls, db: Session, clock=None) -> "CirculationCoordinator":
        return cls(
            BookRepository(db),
            UserRepository(db),
            LoanRepository(db),
            ReservationRepository(db),
            clock=clock,
        )

    # ---- lookups
    def get_user(self, user_id: str) -> models.User:
        user = self.users.find_by_id(user_id)
        if user is None:
            raise UserNotFound(f"User not found with ID: {user_id}")
        return user

    def get_loan(self, loan_id: str) -> models.Loan:
        loan = self.loans.find_by_id(loan_id)
        if loan is None:
            raise LoanNotFound(f"Loan not found with ID: {loan_id}")
        return loan

    def get_reservation(self, reservation_id: str) -> models.Reservation:
        reservation = self.reservations.find_by_id(reservation_id)
        if reservation is None:
            raise ReservationNotFound(f"Reservation not found with ID: {reservation_id}")
        return reservation

    # ---- loans
    @logs_refusals
    def borrow(self, user_id: str, book_id: str) -> models.Loan:
        user = self.get_user(user_id)
        book = self.tracker.get_book(book_id)
        if not self.gate.can_borrow(user):
            raise IllegalStateTransition(
                "User cannot borrow books: account locked, outstanding fines or maximum loans reached"
            )
        if book.status != BookStatus.AVAILABLE:
            raise IllegalStateTransition("Book is not available for checkout")

        loan = self.loan_lifecycle.open(user.id, book.id, policy_for(user.user_type).loan_period_days)
        self.loans.save(loan)
        self.tracker.set_status(book.id, BookStatus.CHECKED_OUT)
        logger.info(f"User {user.id} borrowed book {book.id} loan {loan.id} due {loan.due_date}")
        return loan

    @logs_refusals
    def return_loan(self, loan_id: str) -> float:
        """Close a loan, free the book and charge any overdue fine. Returns the fine."""
        loan = self.get_loan(loan_id)
        if not self.loan_lifecycle.is_active(loan):
            raise IllegalStateTransition("Book already returned")

        fine = self.loan_lifecycle.return_book(loan)
        self.loans.save(loan)
        self.tracker.set_status(loan.book_id, BookStatus.AVAILABLE)
        if fine > 0:
            user = self.get_user(loan.user_id)
            self.gate.add_fine(user, fine)
            self.users.save(user)
            logger.info(f"Loan {loan.id} returned late; fine {fine:.2f} charged to user {user.id}")
        else:
            logger.info(f"Loan {loan.id} returned")
        return fine

    @logs_refusals
    def renew_loan(self, loan_id: str) -> models.Loan:
        loan = self.get_loan(loan_id)
        user = self.get_user(loan.user_id)
        self.loan_lifecycle.renew(loan, policy_for(user.user_type).loan_period_days)
        self.loans.save(loan)
        logger.info(f"Loan {loan.id} renewed ({loan.renewal_count}), now due {loan.due_date}")
        return loan

    # ---- reservations
    @logs_refusals
    def reserve(self, user_id: str, book_id: str) -> models.Reservation:
        user = self.get_user(user_id)
        book = self.tracker.get_book(book_id)
        if not self.gate.can_reserve(user):
            raise IllegalStateTransition(
                "User cannot make more reservations: account locked or maximum reservations reached"
            )
        if book.status == BookStatus.AVAILABLE:
            raise IllegalStateTransition("Book is available for checkout, no need to reserve")
        already_reserved = any(
            r.book_id == book.id and self.reservation_lifecycle.is_active(r)
            for r in self.reservations.find_by_user(user.id)
        )
        if already_reserved:
            raise IllegalStateTransition("User already has an active reservation for this book")

        reservation = self.reservation_lifecycle.open(user.id, book.id)
        self.reservations.save(reservation)
        logger.info(
            f"User {user.id} reserved book {book.id} reservation {reservation.id} "
            f"until {reservation.expiration_date}"
        )
        return reservation

    @logs_refusals
    def confirm_reservation(self, reservation_id: str) -> models.Reservation:
        """Hold a returned book for the reservation; the book becomes RESERVED."""
        reservation = self.get_reservation(reservation_id)
        book = self.tracker.get_book(reservation.book_id)
        self.reservation_lifecycle.check_confirm(reservation)
        if book.status != BookStatus.AVAILABLE:
            raise IllegalStateTransition(
                f"Reservation cannot be confirmed: book is {book.status.value}"
            )

        self.reservation_lifecycle.confirm(reservation)
        self.reservations.save(reservation)
        self.tracker.set_status(book.id, BookStatus.RESERVED)
        logger.info(f"Reservation {reservation.id} confirmed; book {book.id} held")
        return reservation

    @logs_refusals
    def fulfill_reservation(self, reservation_id: str, loan_period_days: Optional[int] = None) -> models.Loan:
        """Turn a reservation into a loan for its holder and return the loan.

        The book may be RESERVED (held for this reservation) rather than
        AVAILABLE. A book on loan, or held for a different reservation, is
        refused so that it never carries two claims.
        """
        reservation = self.get_reservation(reservation_id)
        self.reservation_lifecycle.check_fulfill(reservation)
        user = self.get_user(reservation.user_id)
        book = self.tracker.get_book(reservation.book_id)
        if not self.gate.can_borrow(user):
            raise IllegalStateTransition(
                "User cannot borrow books: account locked, outstanding fines or maximum loans reached"
            )
        held_for_this = reservation.status == ReservationStatus.CONFIRMED
        if book.status == BookStatus.RESERVED and not held_for_this:
            raise IllegalStateTransition("Book is held for another reservation")
        if book.status not in (BookStatus.AVAILABLE, BookStatus.RESERVED):
            raise IllegalStateTransition(f"Reservation cannot be fulfilled: book is {book.status.value}")

        if loan_period_days is None:
            loan_period_days = policy_for(user.user_type).loan_period_days
        loan = self.loan_lifecycle.open(user.id, book.id, loan_period_days)
        self.loans.save(loan)
        self.reservation_lifecycle.fulfill(reservation)
        reservation.loan_id = loan.id
        self.reservations.save(reservation)
        self.tracker.set_status(book.id, BookStatus.CHECKED_OUT)
        logger.info(f"Reservation {reservation.id} fulfilled by loan {loan.id}")
        return loan

    @logs_refusals
    def cancel_reservation(self, reservation_id: str) -> models.Reservation:
        reservation = self.get_reservation(reservation_id)
        held = reservation.status == ReservationStatus.CONFIRMED
        self.reservation_lifecycle.cancel(reservation)
        self.reservations.save(reservation)
        if held:
            self._release_hold(reservation.book_id)
        logger.info(f"Reservation {reservation.id} cancelled")
        return reservation

    @logs_refusals
    def extend_reservation(self, reservation_id: str, additional_days: int) -> models.Reservation:
        reservation = self.get_reservation(reservation_id)
        self.reservation_lifecycle.extend(reservation, additional_days)
        self.reservations.save(reservation)
        logger.info(f"Reservation {reservation.id} extended to {reservation.expiration_date}")
        return reservation

    def expire_reservations(self) -> int:
        """Sweep elapsed PENDING/CONFIRMED reservations to EXPIRED.

        Returns how many reservations changed state, so a second sweep on the
        same day returns 0.
        """
        expired = 0
        for reservation in self.reservations.find_by_statuses(OPEN_RESERVATION_STATUSES):
            held = reservation.status == ReservationStatus.CONFIRMED
            if not self.reservation_lifecycle.expire(reservation):
                continue
            self.reservations.save(reservation)
            if held:
                self._release_hold(reservation.book_id)
            expired += 1
        if expired:
            logger.info(f"Expired {expired} reservation(s)")
        return expired

    def _release_hold(self, book_id: str) -> None:
        book = self.books.find_by_id(book_id)
        if book is not None and book.status == BookStatus.RESERVED:
            self.tracker.set_status(book.id, BookStatus.AVAILABLE)

    # ---- fines
    @logs_refusals
    def add_fine(self, user_id: str, amount: float) -> models.User:
        user = self.get_user(user_id)
        self.gate.add_fine(user, amount)
        self.users.save(user)
        logger.info(f"Fine {amount:.2f} added to user {user.id}; balance {user.fine_amount:.2f}")
        return user

    @logs_refusals
    def pay_fine(self, user_id: str, amount: float) -> models.User:
        if amount <= 0:
            raise InvalidArgument("Payment amount must be positive")
        user = self.get_user(user_id)
        if not self.gate.pay_fine(user, amount):
            raise InvalidArgument("Payment amount exceeds outstanding fine")
        self.users.save(user)
        logger.info(f"User {user.id} paid {amount:.2f}; balance {user.fine_amount:.2f}")
        return user

    # ---- administration
    @logs_refusals
    def override_book_status(self, book_id: str, status: BookStatus) -> models.Book:
        """Take a book out of circulation (repair, lost, archived) or put it back."""
        book = self.tracker.get_book(book_id)
        if status in ADMINISTRATIVE_STATUSES:
            if book.status in (BookStatus.CHECKED_OUT, BookStatus.RESERVED) or self.loans.find_active_by_book(book.id):
                raise IllegalStateTransition(f"Book {book.id} is in circulation ({book.status.value})")
        elif status == BookStatus.AVAILABLE:
            if book.status not in ADMINISTRATIVE_STATUSES:
                raise IllegalStateTransition(f"Book {book.id} is {book.status.value}, not out of circulation")
        else:
            raise InvalidArgument(f"{status.value} is set by circulation only")
        return self.tracker.set_status(book.id, status)
