"""Error types raised by the circulation core.

Every error carries a short ``code`` tag so the HTTP and CLI layers can
translate failures without matching on message text.
"""


class LendingError(Exception):
    """Base class for circulation failures."""

    code = "lending_error"

    def __init__(self, message: str = "") -> None:
        super().__init__(message or self.__class__.__doc__)
        self.message = message or self.__class__.__doc__


class NotFoundError(LendingError, LookupError):
    """Requested record does not exist."""

    code = "not_found"

    def __init__(self, entity: str, key: object) -> None:
        super().__init__(f"{entity} not found: {key}")
        self.entity = entity
        self.key = key


class IneligibleUserError(LendingError):
    """You have overdue books. Return them before borrowing new ones."""

    code = "ineligible_user"


class NoCopiesAvailableError(LendingError):
    """No copies available for this book."""

    code = "no_copies_available"


class AlreadyBorrowedError(LendingError):
    """You have already borrowed this book."""

    code = "already_borrowed"


class LoanAlreadyReturnedError(LendingError):
    """This loan has already been returned."""

    code = "already_returned"


class DuplicateAccountError(LendingError):
    """An account with this email or mobile number already exists."""

    code = "duplicate_account"


class BookInUseError(LendingError):
    """This book has loan records and cannot be deleted."""

    code = "book_in_use"
