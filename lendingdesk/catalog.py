import sqlite3
from typing import List, Optional

from .errors import BookInUseError, NotFoundError
from .models import Book
from .stores import CatalogStore, LoanStore


class CatalogService:
    """Adds, removes and lists books. Copy counts are only moved by lending."""

    def __init__(self, catalog: CatalogStore, loans: LoanStore) -> None:
        self.catalog = catalog
        self.loans = loans

    def add_book(
        self,
        title: str,
        author: str,
        total_copies: int = 1,
        available_copies: Optional[int] = None,
        category: Optional[str] = None,
        description: Optional[str] = None,
        cover: Optional[str] = None,
    ) -> Book:
        if not title or not title.strip():
            raise ValueError("Title cannot be empty.")
        if not author or not author.strip():
            raise ValueError("Author cannot be empty.")
        if total_copies < 0:
            raise ValueError("Total copies cannot be negative.")
        if available_copies is None:
            available_copies = total_copies
        if not 0 <= available_copies <= total_copies:
            raise ValueError("Available copies must be between 0 and total copies.")

        book = Book(
            title=title.strip(),
            author=author.strip(),
            category=category.strip() if category else None,
            description=description,
            cover=cover,
            total_copies=total_copies,
            available_copies=available_copies,
        )
        return self.catalog.save(book)

    def get_book(self, book_id: int) -> Book:
        book = self.catalog.get(book_id)
        if book is None:
            raise NotFoundError("Book", book_id)
        return book

    def delete_book(self, book_id: int) -> None:
        """Remove a title. Books with any loan record, active or returned, are kept."""
        if self.loans.exists_for_book(book_id):
            raise BookInUseError()
        try:
            deleted = self.catalog.delete(book_id)
        except sqlite3.IntegrityError as e:
            # a loan was created after the check
            raise BookInUseError() from e
        if not deleted:
            raise NotFoundError("Book", book_id)

    def list_books(self) -> List[Book]:
        return self.catalog.list_all()

    def available_books(self, category: Optional[str] = None) -> List[Book]:
        return self.catalog.list_available(category)

    def categories(self) -> List[str]:
        return self.catalog.categories()

    def book_count(self) -> int:
        return self.catalog.count()

    def available_count(self) -> int:
        return self.catalog.count(available_only=True)
