from datetime import date
from typing import List, Optional

from circulation.models import models
from circulation.models.enums import ReservationStatus
from circulation.schemas import schemas
from circulation.services.circulation import CirculationCoordinator


class CirculationReports:
    """Read-only views over loans and reservations.

    Nothing here mutates state; expired reservations are reported as
    inactive even before the sweep has marked them EXPIRED.
    """

    def __init__(self, coordinator: CirculationCoordinator) -> None:
        self.coordinator = coordinator
        self.loans = coordinator.loans
        self.reservations = coordinator.reservations
        self.loan_lifecycle = coordinator.loan_lifecycle
        self.reservation_lifecycle = coordinator.reservation_lifecycle

    # ---- loans
    def active_loans_for_user(self, user_id: str) -> List[models.Loan]:
        self.coordinator.get_user(user_id)
        return self.loans.find_active_by_user(user_id)

    def all_loans_for_user(self, user_id: str) -> List[models.Loan]:
        self.coordinator.get_user(user_id)
        return self.loans.find_by_user(user_id)

    def loan_history_for_book(self, book_id: str) -> List[models.Loan]:
        self.coordinator.tracker.get_book(book_id)
        return self.loans.find_by_book(book_id)

    def active_loan_for_book(self, book_id: str) -> Optional[models.Loan]:
        self.coordinator.tracker.get_book(book_id)
        active = self.loans.find_active_by_book(book_id)
        return active[0] if active else None

    def all_active_loans(self) -> List[models.Loan]:
        return self.loans.find_active()

    def overdue_loans(self) -> List[models.Loan]:
        return self.loans.find_active_due_before(self.coordinator.clock.today())

    def loans_due_on(self, due: date) -> List[models.Loan]:
        return self.loans.find_by_due_date(due)

    def loans_between(self, start: date, end: date) -> List[models.Loan]:
        return self.loans.find_by_loan_date_between(start, end)

    def total_outstanding_fines(self) -> float:
        """Fines that overdue loans would incur if returned today."""
        return sum(self.loan_lifecycle.calculate_current_fine(loan) for loan in self.overdue_loans())

    # ---- reservations
    def active_reservations_for_user(self, user_id: str) -> List[models.Reservation]:
        self.coordinator.get_user(user_id)
        return [r for r in self.reservations.find_by_user(user_id) if self.reservation_lifecycle.is_active(r)]

    def all_reservations_for_user(self, user_id: str) -> List[models.Reservation]:
        self.coordinator.get_user(user_id)
        return self.reservations.find_by_user(user_id)

    def active_reservations_for_book(self, book_id: str) -> List[models.Reservation]:
        self.coordinator.tracker.get_book(book_id)
        return [r for r in self.reservations.find_by_book(book_id) if self.reservation_lifecycle.is_active(r)]

    def all_reservations_for_book(self, book_id: str) -> List[models.Reservation]:
        self.coordinator.tracker.get_book(book_id)
        return self.reservations.find_by_book(book_id)

    def all_active_reservations(self) -> List[models.Reservation]:
        return [r for r in self.reservations.find_all() if self.reservation_lifecycle.is_active(r)]

    def reservations_by_status(self, status: ReservationStatus) -> List[models.Reservation]:
        return self.reservations.find_by_status(status)

    def expired_reservations(self) -> List[models.Reservation]:
        return [r for r in self.reservations.find_all() if self.reservation_lifecycle.is_expired(r)]

    def reservations_between(self, start: date, end: date) -> List[models.Reservation]:
        return self.reservations.find_by_reservation_date_between(start, end)

    # ---- accounts
    def account_summary(self, user_id: str) -> schemas.AccountSummary:
        user = self.coordinator.get_user(user_id)
        loans = self.loans.find_active_by_user(user.id)
        reservations = self.active_reservations_for_user(user.id)
        gate = self.coordinator.gate
        return schemas.AccountSummary(
            user_id=user.id,
            name=user.full_name,
            user_type=user.user_type,
            num_checked_out=len(loans),
            num_overdue=sum(1 for loan in loans if self.loan_lifecycle.is_overdue(loan)),
            num_reservations=len(reservations),
            fine_balance=user.fine_amount,
            accrued_fines=sum(self.loan_lifecycle.calculate_current_fine(loan) for loan in loans),
            account_locked=user.account_locked,
            can_borrow=gate.can_borrow(user),
            can_reserve=gate.can_reserve(user),
            loans=[schemas.LoanOut.model_validate(loan) for loan in loans],
            reservations=[schemas.ReservationOut.model_validate(r) for r in reservations],
        )
