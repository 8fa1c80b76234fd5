import uuid

from sqlalchemy import Boolean, Column, Date, Enum, Float, ForeignKey, Index, Integer, String

from circulation.core.database import Base
from circulation.models.enums import BookCategory, BookStatus, ReservationStatus, UserType


def new_id() -> str:
    return str(uuid.uuid4())


class Book(Base):
    __tablename__ = "books"
    id = Column(String(36), primary_key=True, default=new_id)
    title = Column(String, nullable=False, index=True)
    author = Column(String, nullable=False, index=True)
    isbn = Column(String, nullable=False, index=True)
    publish_date = Column(Date, nullable=True)
    category = Column(Enum(BookCategory), nullable=False, default=BookCategory.OTHER, index=True)
    status = Column(Enum(BookStatus), nullable=False, default=BookStatus.AVAILABLE, index=True)

    def __repr__(self):
        return f"<Book(id={self.id}, title='{self.title}', status={self.status})>"

Index('ix_books_title_author', Book.title, Book.author)

class User(Base):
    __tablename__ = "users"
    id = Column(String(36), primary_key=True, default=new_id)
    first_name = Column(String, nullable=False, index=True)
    last_name = Column(String, nullable=False, index=True)
    email = Column(String, unique=True, nullable=False, index=True)
    phone = Column(String, nullable=False)
    registration_date = Column(Date, nullable=False)
    user_type = Column(Enum(UserType), nullable=False, default=UserType.STUDENT, index=True)
    account_locked = Column(Boolean, nullable=False, default=False, index=True)
    fine_amount = Column(Float, nullable=False, default=0.0)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    def __repr__(self):
        return f"<User(id={self.id}, email='{self.email}', locked={self.account_locked}, fine={self.fine_amount})>"

class Loan(Base):
    __tablename__ = "loans"
    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    book_id = Column(String(36), ForeignKey("books.id"), nullable=False, index=True)
    loan_date = Column(Date, nullable=False, index=True)
    due_date = Column(Date, nullable=False, index=True)
    return_date = Column(Date, nullable=True, index=True)
    fine_amount = Column(Float, nullable=False, default=0.0)
    renewed = Column(Boolean, nullable=False, default=False)
    renewal_count = Column(Integer, nullable=False, default=0)

    def __repr__(self):
        return f"<Loan(id={self.id}, user_id={self.user_id}, book_id={self.book_id}, due={self.due_date}, returned={self.return_date})>"

class Reservation(Base):
    __tablename__ = "reservations"
    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    book_id = Column(String(36), ForeignKey("books.id"), nullable=False, index=True)
    reservation_date = Column(Date, nullable=False, index=True)
    expiration_date = Column(Date, nullable=False)
    status = Column(Enum(ReservationStatus), nullable=False, default=ReservationStatus.PENDING, index=True)
    loan_id = Column(String(36), ForeignKey("loans.id"), nullable=True)

    def __repr__(self):
        return f"<Reservation(id={self.id}, user_id={self.user_id}, book_id={self.book_id}, status={self.status})>"
