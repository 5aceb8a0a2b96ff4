"""Lending Desk - library circulation backend

This package contains:
- Borrow/return lifecycle and fine rules (lending.py, eligibility.py)
- OTP password recovery (otp.py)
- Due-date reminders and retention cleanup (sweeper.py)
- Accounts and catalog administration (accounts.py, catalog.py)
- SQLite persistence (database.py, stores.py)
- HTTP API (api.py) and command line (cli.py)
"""

from .errors import (
    AlreadyBorrowedError,
    BookInUseError,
    DuplicateAccountError,
    IneligibleUserError,
    LendingError,
    LoanAlreadyReturnedError,
    NoCopiesAvailableError,
    NotFoundError,
)
from .library import Library
from .models import Book, Loan, LoanStatus, Role, User

__all__ = [
    "Library",
    "Book",
    "Loan",
    "LoanStatus",
    "Role",
    "User",
    "LendingError",
    "NotFoundError",
    "IneligibleUserError",
    "NoCopiesAvailableError",
    "AlreadyBorrowedError",
    "LoanAlreadyReturnedError",
    "DuplicateAccountError",
    "BookInUseError",
]
