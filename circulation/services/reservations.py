from datetime import timedelta
from typing import Optional

from circulation.core.config import RESERVATION_DAYS
from circulation.core.errors import IllegalStateTransition, InvalidArgument
from circulation.models import models
from circulation.models.enums import OPEN_RESERVATION_STATUSES, ReservationStatus


class ReservationLifecycle:
    """State machine for a single reservation.

    PENDING -> CONFIRMED -> FULFILLED, and PENDING/CONFIRMED -> CANCELLED or
    EXPIRED. Expiry is a function of the clock; the stored status only
    becomes EXPIRED when ``expire`` is applied by the sweep.
    """

    def __init__(self, clock, default_days: int = RESERVATION_DAYS) -> None:
        self.clock = clock
        self.default_days = default_days

    def open(self, user_id: str, book_id: str, days: Optional[int] = None) -> models.Reservation:
        days = self.default_days if days is None else days
        if days <= 0:
            raise InvalidArgument("Reservation period must be positive")
        today = self.clock.today()
        return models.Reservation(
            id=models.new_id(),
            user_id=user_id,
            book_id=book_id,
            reservation_date=today,
            expiration_date=today + timedelta(days=days),
            status=ReservationStatus.PENDING,
        )

    def is_expired(self, reservation: models.Reservation) -> bool:
        return self.clock.today() > reservation.expiration_date

    def is_active(self, reservation: models.Reservation) -> bool:
        return reservation.status in OPEN_RESERVATION_STATUSES and not self.is_expired(reservation)

    def days_until_expiration(self, reservation: models.Reservation) -> int:
        if self.is_expired(reservation):
            return 0
        return (reservation.expiration_date - self.clock.today()).days

    def check_confirm(self, reservation: models.Reservation) -> None:
        if reservation.status != ReservationStatus.PENDING:
            raise IllegalStateTransition(
                f"Reservation cannot be confirmed from status {reservation.status.value}"
            )
        if self.is_expired(reservation):
            raise IllegalStateTransition("Reservation cannot be confirmed: already expired")

    def confirm(self, reservation: models.Reservation) -> None:
        self.check_confirm(reservation)
        reservation.status = ReservationStatus.CONFIRMED

    def check_fulfill(self, reservation: models.Reservation) -> None:
        self._require_open(reservation, "fulfilled")
        if self.is_expired(reservation):
            raise IllegalStateTransition("Reservation cannot be fulfilled: already expired")

    def fulfill(self, reservation: models.Reservation) -> None:
        self.check_fulfill(reservation)
        reservation.status = ReservationStatus.FULFILLED

    def cancel(self, reservation: models.Reservation) -> None:
        self._require_open(reservation, "cancelled")
        reservation.status = ReservationStatus.CANCELLED

    def extend(self, reservation: models.Reservation, days: int) -> None:
        if days <= 0:
            raise InvalidArgument("Additional days must be positive")
        self._require_open(reservation, "extended")
        if self.is_expired(reservation):
            raise IllegalStateTransition("Reservation cannot be extended: already expired")
        reservation.expiration_date = reservation.expiration_date + timedelta(days=days)

    def expire(self, reservation: models.Reservation) -> bool:
        """Mark an elapsed open reservation EXPIRED; False when there is nothing to do."""
        if reservation.status not in OPEN_RESERVATION_STATUSES or not self.is_expired(reservation):
            return False
        reservation.status = ReservationStatus.EXPIRED
        return True

    @staticmethod
    def _require_open(reservation: models.Reservation, action: str) -> None:
        if reservation.status not in OPEN_RESERVATION_STATUSES:
            raise IllegalStateTransition(
                f"Reservation cannot be {action} from status {reservation.status.value}"
            )
