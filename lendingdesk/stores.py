"""SQLite-backed stores for books, accounts and loans.

Stores only read and write rows; they hold no business rules. Each store is
handed the shared :class:`~lendingdesk.database.Database`, so calls made inside
``db.transaction()`` join that transaction.
"""

from __future__ import annotations

from datetime import date
from typing import Iterable, List, Optional

from .database import Database
from .models import Book, Loan, User

BOOK_COLUMNS = "id, title, author, category, description, cover, total_copies, available_copies"
USER_COLUMNS = "id, name, email, password_hash, role, mobile, otp, otp_generated_at"
LOAN_COLUMNS = "id, user_id, book_id, borrow_date, return_date, returned, fine_paid, status"


def _iso(value: Optional[date]) -> Optional[str]:
    return value.isoformat() if value is not None else None


class CatalogStore:
    def __init__(self, db: Database) -> None:
        self.db = db

    def get(self, book_id: int) -> Optional[Book]:
        with self.db.connection() as conn:
            row = conn.execute(f"SELECT {BOOK_COLUMNS} FROM books WHERE id = ?", (book_id,)).fetchone()
            return Book.from_dict(dict(row)) if row else None

    def save(self, book: Book) -> Book:
        values = (
            book.title, book.author, book.category, book.description, book.cover,
            book.total_copies, book.available_copies, book.available,
        )
        with self.db.connection() as conn:
            if book.id is None:
                cursor = conn.execute(
                    """
                    INSERT INTO books (title, author, category, description, cover,
                                       total_copies, available_copies, available)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    values,
                )
                book.id = cursor.lastrowid
            else:
                conn.execute(
                    """
                    UPDATE books
                    SET title = ?, author = ?, category = ?, description = ?, cover = ?,
                        total_copies = ?, available_copies = ?, available = ?
                    WHERE id = ?
                    """,
                    values + (book.id,),
                )
        return book

    def take_copy(self, book_id: int) -> bool:
        """Decrement the available count only if a copy is left. Returns False when none was."""
        with self.db.connection() as conn:
            cursor = conn.execute(
                """
                UPDATE books
                SET available_copies = available_copies - 1,
                    available = (available_copies - 1) > 0
                WHERE id = ? AND available_copies > 0
                """,
                (book_id,),
            )
            return cursor.rowcount == 1

    def release_copy(self, book_id: int) -> bool:
        """Increment the available count, never past the total, and mark the book available.

        Returns False when the count was already at the total.
        """
        with self.db.connection() as conn:
            cursor = conn.execute(
                "UPDATE books SET available_copies = available_copies + 1 WHERE id = ? AND available_copies < total_copies",
                (book_id,),
            )
            conn.execute("UPDATE books SET available = 1 WHERE id = ?", (book_id,))
            return cursor.rowcount == 1

    def delete(self, book_id: int) -> bool:
        with self.db.connection() as conn:
            cursor = conn.execute("DELETE FROM books WHERE id = ?", (book_id,))
            return cursor.rowcount > 0

    def list_all(self) -> List[Book]:
        with self.db.connection() as conn:
            rows = conn.execute(f"SELECT {BOOK_COLUMNS} FROM books ORDER BY title").fetchall()
            return [Book.from_dict(dict(row)) for row in rows]

    def list_available(self, category: Optional[str] = None) -> List[Book]:
        query = f"SELECT {BOOK_COLUMNS} FROM books WHERE available_copies > 0"
        params: tuple = ()
        if category is not None:
            query += " AND category = ?"
            params = (category,)
        with self.db.connection() as conn:
            rows = conn.execute(query + " ORDER BY title", params).fetchall()
            return [Book.from_dict(dict(row)) for row in rows]

    def categories(self) -> List[str]:
        with self.db.connection() as conn:
            rows = conn.execute(
                "SELECT DISTINCT category FROM books WHERE category IS NOT NULL ORDER BY category"
            ).fetchall()
            return [row[0] for row in rows]

    def count(self, available_only: bool = False) -> int:
        query = "SELECT COUNT(*) FROM books"
        if available_only:
            query += " WHERE available_copies > 0"
        with self.db.connection() as conn:
            return conn.execute(query).fetchone()[0]


class AccountStore:
    def __init__(self, db: Database) -> None:
        self.db = db

    def _find_one(self, where: str, value) -> Optional[User]:
        with self.db.connection() as conn:
            row = conn.execute(f"SELECT {USER_COLUMNS} FROM users WHERE {where} = ?", (value,)).fetchone()
            return User.from_dict(dict(row)) if row else None

    def get(self, user_id: int) -> Optional[User]:
        return self._find_one("id", user_id)

    def find_by_mobile(self, mobile: str) -> Optional[User]:
        return self._find_one("mobile", mobile)

    def find_by_email(self, email: str) -> Optional[User]:
        return self._find_one("email", email)

    def exists_by_role(self, role: str) -> bool:
        with self.db.connection() as conn:
            row = conn.execute("SELECT 1 FROM users WHERE role = ? LIMIT 1", (role,)).fetchone()
            return row is not None

    def save(self, user: User) -> User:
        values = (
            user.name, user.email, user.password_hash, user.role.value, user.mobile, user.otp,
            user.otp_generated_at.isoformat() if user.otp_generated_at else None,
        )
        with self.db.connection() as conn:
            if user.id is None:
                cursor = conn.execute(
                    """
                    INSERT INTO users (name, email, password_hash, role, mobile, otp, otp_generated_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?)
                    """,
                    values,
                )
                user.id = cursor.lastrowid
            else:
                conn.execute(
                    """
                    UPDATE users
                    SET name = ?, email = ?, password_hash = ?, role = ?, mobile = ?,
                        otp = ?, otp_generated_at = ?
                    WHERE id = ?
                    """,
                    values + (user.id,),
                )
        return user


class LoanStore:
    def __init__(self, db: Database) -> None:
        self.db = db

    def _select(self, where: str, params: tuple) -> List[Loan]:
        with self.db.connection() as conn:
            rows = conn.execute(
                f"SELECT {LOAN_COLUMNS} FROM loans WHERE {where} ORDER BY id", params
            ).fetchall()
            return [Loan.from_dict(dict(row)) for row in rows]

    def get(self, loan_id: int) -> Optional[Loan]:
        loans = self._select("id = ?", (loan_id,))
        return loans[0] if loans else None

    def find_by_user(self, user_id: int) -> List[Loan]:
        return self._select("user_id = ?", (user_id,))

    def find_due_on(self, due: date, returned: bool = False) -> List[Loan]:
        return self._select("return_date = ? AND returned = ?", (due.isoformat(), int(returned)))

    def find_returned_before(self, cutoff: date) -> List[Loan]:
        return self._select("returned = 1 AND return_date < ?", (cutoff.isoformat(),))

    def exists_active(self, user_id: int, book_id: int) -> bool:
        with self.db.connection() as conn:
            row = conn.execute(
                "SELECT 1 FROM loans WHERE user_id = ? AND book_id = ? AND returned = 0 LIMIT 1",
                (user_id, book_id),
            ).fetchone()
            return row is not None

    def exists_for_book(self, book_id: int) -> bool:
        with self.db.connection() as conn:
            row = conn.execute("SELECT 1 FROM loans WHERE book_id = ? LIMIT 1", (book_id,)).fetchone()
            return row is not None

    def count_active(self) -> int:
        with self.db.connection() as conn:
            return conn.execute("SELECT COUNT(*) FROM loans WHERE returned = 0").fetchone()[0]

    def save(self, loan: Loan) -> Loan:
        values = (
            loan.user_id, loan.book_id, _iso(loan.borrow_date), _iso(loan.return_date),
            int(loan.returned), int(loan.fine_paid), loan.status.value,
        )
        with self.db.connection() as conn:
            if loan.id is None:
                cursor = conn.execute(
                    """
                    INSERT INTO loans (user_id, book_id, borrow_date, return_date, returned, fine_paid, status)
                    VALUES (?, ?, ?, ?, ?, ?, ?)
                    """,
                    values,
                )
                loan.id = cursor.lastrowid
            else:
                conn.execute(
                    """
                    UPDATE loans
                    SET user_id = ?, book_id = ?, borrow_date = ?, return_date = ?,
                        returned = ?, fine_paid = ?, status = ?
                    WHERE id = ?
                    """,
                    values + (loan.id,),
                )
        return loan

    def delete_all(self, loans: Iterable[Loan]) -> int:
        ids = [(loan.id,) for loan in loans if loan.id is not None]
        if not ids:
            return 0
        with self.db.transaction() as conn:
            conn.executemany("DELETE FROM loans WHERE id = ?", ids)
        return len(ids)
