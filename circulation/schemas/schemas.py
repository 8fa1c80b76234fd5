from datetime import date
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, constr, field_validator

from circulation.models.enums import BookCategory, ReservationStatus, UserType

ISBN_PATTERN = r"^(\d{10}|\d{13})$"
EMAIL_PATTERN = r"^[A-Za-z0-9+_.-]+@(.+)$"
PHONE_PATTERN = r"^\d{10}$"


class BookBase(BaseModel):
    title: constr(strip_whitespace=True, min_length=1)
    author: constr(strip_whitespace=True, min_length=1)
    isbn: constr(strip_whitespace=True, pattern=ISBN_PATTERN)
    publish_date: date
    category: BookCategory = BookCategory.OTHER

    @field_validator('publish_date')
    @classmethod
    def ensure_not_in_future(cls, v, info: ValidationInfo):
        today = (info.context or {}).get("today") or date.today()
        if v > today:
            raise ValueError('publication date cannot be in the future')
        return v

class BookCreate(BookBase):
    pass

class BookUpdate(BookBase):
    pass

class UserBase(BaseModel):
    first_name: constr(strip_whitespace=True, min_length=1)
    last_name: constr(strip_whitespace=True, min_length=1)
    email: constr(strip_whitespace=True, pattern=EMAIL_PATTERN)
    phone: constr(strip_whitespace=True, pattern=PHONE_PATTERN)
    user_type: UserType = UserType.STUDENT

class UserCreate(UserBase):
    pass

class UserUpdate(UserBase):
    pass

class LoanOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    book_id: str
    loan_date: date
    due_date: date
    return_date: Optional[date] = None
    fine_amount: float
    renewed: bool
    renewal_count: int

class ReservationOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    book_id: str
    reservation_date: date
    expiration_date: date
    status: ReservationStatus
    loan_id: Optional[str] = None

class AccountSummary(BaseModel):
    """Circulation standing of a single user."""

    user_id: str
    name: str
    user_type: UserType
    num_checked_out: int = 0
    num_overdue: int = 0
    num_reservations: int = 0
    fine_balance: float = 0.0
    accrued_fines: float = 0.0
    account_locked: bool = False
    can_borrow: bool = True
    can_reserve: bool = True
    loans: list[LoanOut] = Field(default_factory=list)
    reservations: list[ReservationOut] = Field(default_factory=list)
