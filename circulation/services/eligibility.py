import logging

from circulation.core.errors import InvalidArgument
from circulation.models import models
from circulation.models.enums import OPEN_RESERVATION_STATUSES, policy_for
from circulation.repositories.repositories import LoanRepository, ReservationRepository

logger = logging.getLogger("circulation.eligibility")

# fine at or above which new loans are refused
BORROW_BLOCK_THRESHOLD = 10.0
# fine at or above which the account is locked
LOCKOUT_THRESHOLD = 50.0


class EligibilityGate:
    """Borrow/reserve eligibility and fine accounting for users.

    Active loan and reservation counts are read from the loan and reservation
    repositories, never from the user record. ``add_fine`` and ``pay_fine``
    only mutate the user; persisting it is left to the caller.
    """

    def __init__(self, loans: LoanRepository, reservations: ReservationRepository, clock) -> None:
        self.loans = loans
        self.reservations = reservations
        self.clock = clock

    def active_loan_count(self, user: models.User) -> int:
        return self.loans.count_active_by_user(user.id)

    def active_reservation_count(self, user: models.User) -> int:
        today = self.clock.today()
        return sum(
            1
            for r in self.reservations.find_by_user(user.id)
            if r.status in OPEN_RESERVATION_STATUSES and not today > r.expiration_date
        )

    def can_borrow(self, user: models.User) -> bool:
        policy = policy_for(user.user_type)
        return (
            not user.account_locked
            and self.active_loan_count(user) < policy.max_loans
            and user.fine_amount < BORROW_BLOCK_THRESHOLD
        )

    def can_reserve(self, user: models.User) -> bool:
        policy = policy_for(user.user_type)
        return not user.account_locked and self.active_reservation_count(user) < policy.max_reservations

    @staticmethod
    def add_fine(user: models.User, amount: float) -> None:
        if amount <= 0:
            raise InvalidArgument("Fine amount must be positive")
        user.fine_amount = round(user.fine_amount + amount, 2)
        if user.fine_amount >= LOCKOUT_THRESHOLD and not user.account_locked:
            user.account_locked = True
            logger.warning(f"User {user.id} locked: fine balance {user.fine_amount:.2f}")

    @staticmethod
    def pay_fine(user: models.User, amount: float) -> bool:
        if amount <= 0 or amount > user.fine_amount:
            return False
        user.fine_amount = round(user.fine_amount - amount, 2)
        if user.fine_amount < LOCKOUT_THRESHOLD and user.account_locked:
            user.account_locked = False
            logger.info(f"User {user.id} unlocked: fine balance {user.fine_amount:.2f}")
        return True
