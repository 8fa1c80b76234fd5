"""Rules for a single loan: opening, renewal, return and fines.

Nothing here touches books or users; the coordinator applies the
consequences of each transition to them.
"""

from datetime import date, timedelta
from typing import Optional

from circulation.core.errors import IllegalStateTransition, InvalidArgument
from circulation.models import models

FINE_RATE_PER_DAY = 0.50
MAX_RENEWALS = 2


class LoanLifecycle:
    def __init__(self, clock) -> None:
        self.clock = clock

    def open(self, user_id: str, book_id: str, period_days: int) -> models.Loan:
        if period_days <= 0:
            raise InvalidArgument("Loan period must be positive")
        today = self.clock.today()
        return models.Loan(
            id=models.new_id(),
            user_id=user_id,
            book_id=book_id,
            loan_date=today,
            due_date=today + timedelta(days=period_days),
            return_date=None,
            fine_amount=0.0,
            renewed=False,
            renewal_count=0,
        )

    @staticmethod
    def is_active(loan: models.Loan) -> bool:
        return loan.return_date is None

    def is_overdue(self, loan: models.Loan) -> bool:
        return loan.return_date is None and self.clock.today() > loan.due_date

    def days_overdue(self, loan: models.Loan, on: Optional[date] = None) -> int:
        on = on or self.clock.today()
        return max(0, (on - loan.due_date).days)

    def renew(self, loan: models.Loan, additional_days: int) -> None:
        """Push the due date back; at most ``MAX_RENEWALS`` times and never when overdue."""
        if additional_days <= 0:
            raise InvalidArgument("Renewal period must be positive")
        if loan.return_date is not None:
            raise IllegalStateTransition("Loan cannot be renewed: book already returned")
        if loan.renewal_count >= MAX_RENEWALS:
            raise IllegalStateTransition("Loan cannot be renewed: maximum renewals reached")
        if self.is_overdue(loan):
            raise IllegalStateTransition("Loan cannot be renewed: loan is overdue")
        loan.due_date = loan.due_date + timedelta(days=additional_days)
        loan.renewed = True
        loan.renewal_count += 1

    def return_book(self, loan: models.Loan) -> float:
        """Close the loan and fix its fine.

        Returning an already returned loan is a no-op that yields 0.0.
        """
        if loan.return_date is not None:
            return 0.0
        today = self.clock.today()
        days_late = self.days_overdue(loan, today)
        loan.return_date = today
        loan.fine_amount = days_late * FINE_RATE_PER_DAY
        return loan.fine_amount

    def calculate_current_fine(self, loan: models.Loan) -> float:
        if loan.return_date is not None:
            return loan.fine_amount
        if self.is_overdue(loan):
            return self.days_overdue(loan) * FINE_RATE_PER_DAY
        return 0.0
