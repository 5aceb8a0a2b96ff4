import logging
from datetime import date
from typing import List, Optional, Tuple

from . import eligibility
from .clock import SystemClock
from .database import Database
from .errors import (
    AlreadyBorrowedError,
    IneligibleUserError,
    LoanAlreadyReturnedError,
    NoCopiesAvailableError,
    NotFoundError,
)
from .models import Loan, LoanStatus
from .stores import AccountStore, CatalogStore, LoanStore

logger = logging.getLogger(__name__)


class LendingService:
    """Borrow and return books, and answer questions about a user's loans.

    Each loan moves from ``Pending`` to exactly one of ``Returned``, ``Fine`` or
    ``Borrow Cancelled`` and stays there. Copy counts change only together with
    the loan record, inside one database transaction.
    """

    def __init__(
        self,
        db: Database,
        catalog: CatalogStore,
        accounts: AccountStore,
        loans: LoanStore,
        clock: Optional[SystemClock] = None,
        fine_per_day: int = eligibility.DEFAULT_FINE_PER_DAY,
    ) -> None:
        self.db = db
        self.catalog = catalog
        self.accounts = accounts
        self.loans = loans
        self.clock = clock or SystemClock()
        self.fine_per_day = fine_per_day

    # ------------------------- Borrow / return ------------------------- #
    def borrow(self, user_id: int, book_id: int, borrow_date: Optional[date], return_date: Optional[date]) -> Loan:
        """Create a ``Pending`` loan and take one copy of the book.

        Raises IneligibleUserError, NotFoundError, NoCopiesAvailableError or
        AlreadyBorrowedError, checked in that order.
        """
        with self.db.transaction():
            if not eligibility.can_borrow(self.loans.find_by_user(user_id), self.clock.today()):
                raise IneligibleUserError()

            if self.accounts.get(user_id) is None:
                raise NotFoundError("User", user_id)
            book = self.catalog.get(book_id)
            if book is None:
                raise NotFoundError("Book", book_id)

            if book.available_copies <= 0:
                raise NoCopiesAvailableError()

            if self.loans.exists_active(user_id, book_id):
                raise AlreadyBorrowedError()

            # compare-and-swap on the count; a concurrent borrow may have taken the last copy
            if not self.catalog.take_copy(book_id):
                raise NoCopiesAvailableError()

            loan = self.loans.save(Loan(
                user_id=user_id,
                book_id=book_id,
                borrow_date=borrow_date,
                return_date=return_date,
                returned=False,
                fine_paid=False,
                status=LoanStatus.PENDING,
            ))

        logger.info("User %s borrowed book %s (loan %s, due %s)", user_id, book_id, loan.id, return_date)
        return loan

    def return_loan(self, loan_id: int) -> Loan:
        """Give the copy back and settle the loan's terminal status."""
        today = self.clock.today()
        with self.db.transaction():
            loan = self.loans.get(loan_id)
            if loan is None:
                raise NotFoundError("Loan", loan_id)
            if loan.returned:
                raise LoanAlreadyReturnedError()

            if not self.catalog.release_copy(loan.book_id):
                logger.warning("Book %s already had all copies on the shelf when loan %s came back", loan.book_id, loan_id)

            loan.returned = True
            loan.status = eligibility.classify_return(loan, today)
            self.loans.save(loan)

        logger.info("Loan %s returned with status %s", loan.id, loan.status.value)
        return loan

    # ------------------------- Queries ------------------------- #
    def get_loan(self, loan_id: int) -> Loan:
        loan = self.loans.get(loan_id)
        if loan is None:
            raise NotFoundError("Loan", loan_id)
        return loan

    def loans_for_user(self, user_id: int) -> List[Loan]:
        if self.accounts.get(user_id) is None:
            raise NotFoundError("User", user_id)
        return self.loans.find_by_user(user_id)

    def can_user_borrow(self, user_id: int) -> bool:
        return eligibility.can_borrow(self.loans_for_user(user_id), self.clock.today())

    def already_borrowed(self, user_id: int, book_id: int) -> bool:
        return self.loans.exists_active(user_id, book_id)

    def fine_for_loan(self, loan_id: int) -> int:
        return eligibility.calculate_fine(self.get_loan(loan_id), self.clock.today(), self.fine_per_day)

    def fine_status(self, user_id: int) -> Tuple[bool, int]:
        return eligibility.fine_status(self.loans_for_user(user_id), self.clock.today(), self.fine_per_day)

    def total_unpaid_fine(self, user_id: int) -> int:
        """Sum of fines on the user's unreturned loans. For display only, not enforced."""
        _, total = self.fine_status(user_id)
        return total

    def borrowed_count(self) -> int:
        return self.loans.count_active()
