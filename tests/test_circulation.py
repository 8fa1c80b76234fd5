from datetime import timedelta

import pytest

from circulation.core.errors import (
    BookNotFound,
    IllegalStateTransition,
    InvalidArgument,
    LoanNotFound,
    ReservationNotFound,
    UserNotFound,
)
from circulation.models.enums import BookStatus, ReservationStatus, UserType


def assert_single_claim(library, book_id):
    """A book carries at most one claim and its status matches that claim."""
    loans = library.circulation.loans.find_active_by_book(book_id)
    held = [
        r for r in library.reports.active_reservations_for_book(book_id)
        if r.status == ReservationStatus.CONFIRMED
    ]
    assert len(loans) + len(held) <= 1
    status = library.circulation.tracker.get_status(book_id)
    if loans:
        assert status == BookStatus.CHECKED_OUT
    elif held:
        assert status == BookStatus.RESERVED


# ---- borrow / return / renew

def test_borrow_checks_out_book(library, clock, make_user, make_book):
    user = make_user()
    book = make_book()
    loan = library.circulation.borrow(user.id, book.id)
    assert loan.user_id == user.id
    assert loan.book_id == book.id
    assert loan.due_date == clock.today() + timedelta(days=14)
    assert library.circulation.tracker.get_status(book.id) == BookStatus.CHECKED_OUT
    assert [l.id for l in library.reports.active_loans_for_user(user.id)] == [loan.id]
    assert_single_claim(library, book.id)


def test_loan_period_follows_user_type(library, clock, make_user, make_book):
    loan = library.circulation.borrow(make_user(UserType.RESEARCHER).id, make_book().id)
    assert loan.due_date == clock.today() + timedelta(days=60)


def test_student_fourth_borrow_fails(library, make_user, make_book):
    user = make_user(UserType.STUDENT)
    for _ in range(3):
        library.circulation.borrow(user.id, make_book().id)
    fourth = make_book()
    with pytest.raises(IllegalStateTransition):
        library.circulation.borrow(user.id, fourth.id)
    assert library.circulation.tracker.get_status(fourth.id) == BookStatus.AVAILABLE


def test_borrow_unavailable_book_fails(library, make_user, make_book):
    book = make_book()
    library.circulation.borrow(make_user().id, book.id)
    with pytest.raises(IllegalStateTransition):
        library.circulation.borrow(make_user().id, book.id)


def test_borrow_unknown_entities(library, make_user, make_book):
    with pytest.raises(UserNotFound):
        library.circulation.borrow("missing", make_book().id)
    with pytest.raises(BookNotFound):
        library.circulation.borrow(make_user().id, "missing")


def test_return_ten_days_late(library, clock, make_user, make_book):
    user = make_user()
    book = make_book()
    loan = library.circulation.borrow(user.id, book.id)
    clock.advance(24)

    fine = library.circulation.return_loan(loan.id)
    assert fine == pytest.approx(5.0)
    assert library.circulation.get_user(user.id).fine_amount == pytest.approx(5.0)
    assert library.circulation.tracker.get_status(book.id) == BookStatus.AVAILABLE
    assert library.circulation.get_loan(loan.id).return_date == clock.today()


def test_return_on_time_charges_nothing(library, clock, make_user, make_book):
    user = make_user()
    loan = library.circulation.borrow(user.id, make_book().id)
    clock.advance(14)
    assert library.circulation.return_loan(loan.id) == 0.0
    assert library.circulation.get_user(user.id).fine_amount == 0.0


def test_return_twice_is_refused_without_double_charge(library, clock, make_user, make_book):
    user = make_user()
    loan = library.circulation.borrow(user.id, make_book().id)
    clock.advance(20)
    library.circulation.return_loan(loan.id)
    with pytest.raises(IllegalStateTransition):
        library.circulation.return_loan(loan.id)
    assert library.circulation.get_user(user.id).fine_amount == pytest.approx(3.0)


def test_return_unknown_loan(library):
    with pytest.raises(LoanNotFound):
        library.circulation.return_loan("missing")


def test_renew_extends_by_loan_period(library, make_user, make_book):
    loan = library.circulation.borrow(make_user(UserType.STAFF).id, make_book().id)
    due = loan.due_date
    renewed = library.circulation.renew_loan(loan.id)
    assert renewed.due_date == due + timedelta(days=21)
    assert renewed.renewal_count == 1


def test_third_renewal_fails(library, make_user, make_book):
    loan = library.circulation.borrow(make_user().id, make_book().id)
    library.circulation.renew_loan(loan.id)
    library.circulation.renew_loan(loan.id)
    due = library.circulation.get_loan(loan.id).due_date
    with pytest.raises(IllegalStateTransition):
        library.circulation.renew_loan(loan.id)
    loan = library.circulation.get_loan(loan.id)
    assert loan.due_date == due
    assert loan.renewal_count == 2


# ---- fines and lockout

def test_fine_at_fifty_locks_and_blocks_borrow(library, make_user, make_book):
    user = make_user(UserType.ADMIN)
    library.circulation.add_fine(user.id, 50.0)
    assert library.circulation.get_user(user.id).account_locked
    with pytest.raises(IllegalStateTransition):
        library.circulation.borrow(user.id, make_book().id)


def test_pay_fine(library, make_user, make_book):
    user = make_user()
    library.circulation.add_fine(user.id, 52.0)
    user = library.circulation.pay_fine(user.id, 44.0)
    assert not user.account_locked
    assert user.fine_amount == pytest.approx(8.0)
    library.circulation.borrow(user.id, make_book().id)


def test_pay_fine_rejects_bad_amounts(library, make_user):
    user = make_user()
    library.circulation.add_fine(user.id, 5.0)
    with pytest.raises(InvalidArgument):
        library.circulation.pay_fine(user.id, 0)
    with pytest.raises(InvalidArgument):
        library.circulation.pay_fine(user.id, 6.0)
    assert library.circulation.get_user(user.id).fine_amount == pytest.approx(5.0)


def test_overdue_returns_accumulate_to_lockout(library, clock, make_user, make_book):
    user = make_user(UserType.FACULTY)
    loans = [library.circulation.borrow(user.id, make_book().id) for _ in range(2)]
    clock.advance(30 + 50)
    for loan in loans:
        library.circulation.return_loan(loan.id)
    user = library.circulation.get_user(user.id)
    assert user.fine_amount == pytest.approx(50.0)
    assert user.account_locked


# ---- reservations

@pytest.fixture
def checked_out(library, make_user, make_book):
    """A book on loan to one user; returns (book, loan)."""
    book = make_book()
    loan = library.circulation.borrow(make_user().id, book.id)
    return book, loan


def test_reserve_available_book_fails(library, make_user, make_book):
    with pytest.raises(IllegalStateTransition):
        library.circulation.reserve(make_user().id, make_book().id)


def test_reserve_checked_out_book(library, clock, make_user, checked_out):
    book, _ = checked_out
    user = make_user()
    r = library.circulation.reserve(user.id, book.id)
    assert r.status == ReservationStatus.PENDING
    assert r.expiration_date == clock.today() + timedelta(days=3)
    assert library.circulation.tracker.get_status(book.id) == BookStatus.CHECKED_OUT


def test_duplicate_reservation_fails(library, make_user, checked_out):
    book, _ = checked_out
    user = make_user()
    library.circulation.reserve(user.id, book.id)
    with pytest.raises(IllegalStateTransition):
        library.circulation.reserve(user.id, book.id)


def test_reservation_limit(library, make_user, make_book):
    holder = make_user(UserType.RESEARCHER)
    books = [make_book() for _ in range(3)]
    for book in books:
        library.circulation.borrow(holder.id, book.id)
    user = make_user(UserType.STUDENT)
    library.circulation.reserve(user.id, books[0].id)
    library.circulation.reserve(user.id, books[1].id)
    with pytest.raises(IllegalStateTransition):
        library.circulation.reserve(user.id, books[2].id)


def test_reserve_confirm_fulfill_flow(library, make_user, checked_out):
    book, loan = checked_out
    user = make_user()
    r = library.circulation.reserve(user.id, book.id)

    with pytest.raises(IllegalStateTransition):
        library.circulation.confirm_reservation(r.id)

    library.circulation.return_loan(loan.id)
    library.circulation.confirm_reservation(r.id)
    assert library.circulation.tracker.get_status(book.id) == BookStatus.RESERVED
    assert_single_claim(library, book.id)

    with pytest.raises(IllegalStateTransition):
        library.circulation.borrow(make_user().id, book.id)

    new_loan = library.circulation.fulfill_reservation(r.id)
    r = library.circulation.get_reservation(r.id)
    assert r.status == ReservationStatus.FULFILLED
    assert r.loan_id == new_loan.id
    assert new_loan.user_id == user.id
    assert library.circulation.tracker.get_status(book.id) == BookStatus.CHECKED_OUT
    assert_single_claim(library, book.id)


def test_confirm_on_day_four_leaves_book_unchanged(library, clock, make_user, checked_out):
    book, loan = checked_out
    r = library.circulation.reserve(make_user().id, book.id)
    library.circulation.return_loan(loan.id)
    clock.advance(4)
    with pytest.raises(IllegalStateTransition, match="expired"):
        library.circulation.confirm_reservation(r.id)
    assert library.circulation.tracker.get_status(book.id) == BookStatus.AVAILABLE
    assert library.circulation.get_reservation(r.id).status == ReservationStatus.PENDING


def test_fulfill_pending_reservation_of_returned_book(library, make_user, checked_out):
    book, loan = checked_out
    r = library.circulation.reserve(make_user().id, book.id)
    library.circulation.return_loan(loan.id)
    library.circulation.fulfill_reservation(r.id, loan_period_days=5)
    active = library.reports.active_loan_for_book(book.id)
    assert (active.due_date - active.loan_date).days == 5


@pytest.mark.parametrize("days", [0, -3])
def test_fulfill_rejects_non_positive_period(library, make_user, checked_out, days):
    book, loan = checked_out
    r = library.circulation.reserve(make_user().id, book.id)
    library.circulation.return_loan(loan.id)
    with pytest.raises(InvalidArgument):
        library.circulation.fulfill_reservation(r.id, loan_period_days=days)
    assert library.circulation.get_reservation(r.id).status == ReservationStatus.PENDING
    assert library.circulation.tracker.get_status(book.id) == BookStatus.AVAILABLE
    assert library.reports.active_loan_for_book(book.id) is None


def test_fulfill_refused_while_book_on_loan(library, make_user, checked_out):
    book, _ = checked_out
    r = library.circulation.reserve(make_user().id, book.id)
    with pytest.raises(IllegalStateTransition):
        library.circulation.fulfill_reservation(r.id)
    assert library.circulation.get_reservation(r.id).status == ReservationStatus.PENDING
    assert_single_claim(library, book.id)


def test_fulfill_refused_when_held_for_another(library, make_user, checked_out):
    book, loan = checked_out
    first = library.circulation.reserve(make_user().id, book.id)
    second = library.circulation.reserve(make_user().id, book.id)
    library.circulation.return_loan(loan.id)
    library.circulation.confirm_reservation(first.id)

    with pytest.raises(IllegalStateTransition):
        library.circulation.confirm_reservation(second.id)
    with pytest.raises(IllegalStateTransition):
        library.circulation.fulfill_reservation(second.id)
    assert_single_claim(library, book.id)


def test_fulfill_refused_for_ineligible_user(library, make_user, checked_out):
    book, loan = checked_out
    user = make_user()
    r = library.circulation.reserve(user.id, book.id)
    library.circulation.return_loan(loan.id)
    library.circulation.confirm_reservation(r.id)
    library.circulation.add_fine(user.id, 15.0)
    with pytest.raises(IllegalStateTransition):
        library.circulation.fulfill_reservation(r.id)
    assert library.circulation.get_reservation(r.id).status == ReservationStatus.CONFIRMED
    assert library.circulation.tracker.get_status(book.id) == BookStatus.RESERVED


def test_cancel_confirmed_reservation_releases_book(library, make_user, checked_out):
    book, loan = checked_out
    r = library.circulation.reserve(make_user().id, book.id)
    library.circulation.return_loan(loan.id)
    library.circulation.confirm_reservation(r.id)

    cancelled = library.circulation.cancel_reservation(r.id)
    assert cancelled.status == ReservationStatus.CANCELLED
    assert library.circulation.tracker.get_status(book.id) == BookStatus.AVAILABLE
    with pytest.raises(IllegalStateTransition):
        library.circulation.cancel_reservation(r.id)


def test_cancel_pending_reservation_keeps_loan_status(library, make_user, checked_out):
    book, _ = checked_out
    r = library.circulation.reserve(make_user().id, book.id)
    library.circulation.cancel_reservation(r.id)
    assert library.circulation.tracker.get_status(book.id) == BookStatus.CHECKED_OUT


def test_extend_reservation(library, make_user, checked_out):
    book, _ = checked_out
    r = library.circulation.reserve(make_user().id, book.id)
    expires = r.expiration_date
    r = library.circulation.extend_reservation(r.id, 4)
    assert r.expiration_date == expires + timedelta(days=4)
    with pytest.raises(InvalidArgument):
        library.circulation.extend_reservation(r.id, 0)


def test_unknown_reservation(library):
    with pytest.raises(ReservationNotFound):
        library.circulation.confirm_reservation("missing")


def test_expire_sweep_is_idempotent(library, clock, make_user, make_book):
    holder = make_user(UserType.FACULTY)
    held_book = make_book()
    other_book = make_book()
    held_loan = library.circulation.borrow(holder.id, held_book.id)
    library.circulation.borrow(holder.id, other_book.id)

    held = library.circulation.reserve(make_user().id, held_book.id)
    pending = library.circulation.reserve(make_user().id, other_book.id)
    library.circulation.return_loan(held_loan.id)
    library.circulation.confirm_reservation(held.id)

    assert library.circulation.expire_reservations() == 0
    clock.advance(4)
    assert library.circulation.expire_reservations() == 2
    assert library.circulation.expire_reservations() == 0

    assert library.circulation.get_reservation(held.id).status == ReservationStatus.EXPIRED
    assert library.circulation.get_reservation(pending.id).status == ReservationStatus.EXPIRED
    assert library.circulation.tracker.get_status(held_book.id) == BookStatus.AVAILABLE
    assert library.circulation.tracker.get_status(other_book.id) == BookStatus.CHECKED_OUT


def test_expire_sweep_skips_terminal_reservations(library, clock, make_user, checked_out):
    book, _ = checked_out
    r = library.circulation.reserve(make_user().id, book.id)
    library.circulation.cancel_reservation(r.id)
    clock.advance(10)
    assert library.circulation.expire_reservations() == 0
    assert library.circulation.get_reservation(r.id).status == ReservationStatus.CANCELLED


# ---- administrative status

def test_override_book_status(library, make_user, make_book):
    book = make_book()
    library.circulation.override_book_status(book.id, BookStatus.UNDER_REPAIR)
    with pytest.raises(IllegalStateTransition):
        library.circulation.borrow(make_user().id, book.id)
    library.circulation.override_book_status(book.id, BookStatus.AVAILABLE)
    library.circulation.borrow(make_user().id, book.id)


def test_override_refused_for_claimed_book(library, checked_out):
    book, _ = checked_out
    with pytest.raises(IllegalStateTransition):
        library.circulation.override_book_status(book.id, BookStatus.LOST)
    with pytest.raises(IllegalStateTransition):
        library.circulation.override_book_status(book.id, BookStatus.AVAILABLE)


def test_override_cannot_set_circulation_statuses(library, make_book):
    book = make_book()
    for status in (BookStatus.CHECKED_OUT, BookStatus.RESERVED):
        with pytest.raises(InvalidArgument):
            library.circulation.override_book_status(book.id, status)
