import enum
from typing import Dict, NamedTuple


class BookStatus(str, enum.Enum):
    AVAILABLE = "AVAILABLE"
    CHECKED_OUT = "CHECKED_OUT"
    RESERVED = "RESERVED"
    UNDER_REPAIR = "UNDER_REPAIR"
    LOST = "LOST"
    ARCHIVED = "ARCHIVED"


# statuses a librarian may set by hand; the rest follow circulation
ADMINISTRATIVE_STATUSES = (BookStatus.UNDER_REPAIR, BookStatus.LOST, BookStatus.ARCHIVED)


class BookCategory(str, enum.Enum):
    FICTION = "FICTION"
    NON_FICTION = "NON_FICTION"
    SCIENCE = "SCIENCE"
    HISTORY = "HISTORY"
    BIOGRAPHY = "BIOGRAPHY"
    FANTASY = "FANTASY"
    SCIENCE_FICTION = "SCIENCE_FICTION"
    MYSTERY = "MYSTERY"
    THRILLER = "THRILLER"
    ROMANCE = "ROMANCE"
    CHILDREN = "CHILDREN"
    REFERENCE = "REFERENCE"
    TEXTBOOK = "TEXTBOOK"
    POETRY = "POETRY"
    DRAMA = "DRAMA"
    OTHER = "OTHER"


class ReservationStatus(str, enum.Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    FULFILLED = "FULFILLED"
    CANCELLED = "CANCELLED"
    EXPIRED = "EXPIRED"


OPEN_RESERVATION_STATUSES = (ReservationStatus.PENDING, ReservationStatus.CONFIRMED)


class UserType(str, enum.Enum):
    STUDENT = "STUDENT"
    FACULTY = "FACULTY"
    STAFF = "STAFF"
    RESEARCHER = "RESEARCHER"
    ADMIN = "ADMIN"
    GUEST = "GUEST"


class UserTypePolicy(NamedTuple):
    max_loans: int
    max_reservations: int
    loan_period_days: int


USER_TYPE_POLICIES: Dict[UserType, UserTypePolicy] = {
    UserType.STUDENT: UserTypePolicy(max_loans=3, max_reservations=2, loan_period_days=14),
    UserType.FACULTY: UserTypePolicy(max_loans=5, max_reservations=3, loan_period_days=30),
    UserType.STAFF: UserTypePolicy(max_loans=4, max_reservations=2, loan_period_days=21),
    UserType.RESEARCHER: UserTypePolicy(max_loans=7, max_reservations=5, loan_period_days=60),
    UserType.ADMIN: UserTypePolicy(max_loans=10, max_reservations=5, loan_period_days=30),
    UserType.GUEST: UserTypePolicy(max_loans=1, max_reservations=0, loan_period_days=7),
}


def policy_for(user_type: UserType) -> UserTypePolicy:
    return USER_TYPE_POLICIES[user_type]
