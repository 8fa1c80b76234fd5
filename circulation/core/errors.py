class CirculationError(Exception):
    """Base exception for circulation errors."""


class NotFound(CirculationError):
    """An entity id does not resolve."""


class BookNotFound(NotFound):
    pass


class UserNotFound(NotFound):
    pass


class LoanNotFound(NotFound):
    pass


class ReservationNotFound(NotFound):
    pass


class InvalidArgument(CirculationError):
    """Non-positive amount or day count, or malformed input."""


class IllegalStateTransition(CirculationError):
    """A lifecycle or eligibility precondition is not met."""
