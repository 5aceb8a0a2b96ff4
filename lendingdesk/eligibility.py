"""Borrowing eligibility and fine rules.

Everything here is a pure function of the loans passed in and the date to
evaluate against; nothing touches storage or reads the clock.
"""

from __future__ import annotations

from datetime import date
from typing import Iterable, Tuple

from .models import Loan, LoanStatus

DEFAULT_FINE_PER_DAY = 10


def is_overdue(loan: Loan, today: date) -> bool:
    return not loan.returned and loan.return_date is not None and loan.return_date < today


def can_borrow(loans: Iterable[Loan], today: date) -> bool:
    """A single overdue, unreturned loan blocks every new borrow."""
    return not any(is_overdue(loan, today) for loan in loans)


def classify_return(loan: Loan, today: date) -> LoanStatus:
    """Terminal status for a loan being returned on ``today``.

    A borrow dated in the future is cancelled, whatever its due date says;
    otherwise a due date already behind us means a fine.
    """
    if loan.borrow_date is not None and loan.borrow_date > today:
        return LoanStatus.BORROW_CANCELLED
    if loan.return_date is not None and loan.return_date < today:
        return LoanStatus.FINE
    return LoanStatus.RETURNED


def calculate_fine(loan: Loan, today: date, fine_per_day: int = DEFAULT_FINE_PER_DAY) -> int:
    if loan.returned or loan.fine_paid:
        return 0
    if loan.return_date is None or not loan.return_date < today:
        return 0
    days_overdue = (today - loan.return_date).days
    return days_overdue * fine_per_day


def fine_status(loans: Iterable[Loan], today: date, fine_per_day: int = DEFAULT_FINE_PER_DAY) -> Tuple[bool, int]:
    """Return ``(has_fine, total)`` over the unreturned loans."""
    total = 0
    has_fine = False
    for loan in loans:
        if loan.returned:
            continue
        fine = calculate_fine(loan, today, fine_per_day)
        if fine > 0:
            total += fine
            has_fine = True
    return has_fine, total
