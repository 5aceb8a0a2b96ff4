import logging
import sqlite3
import threading
from contextlib import contextmanager
from typing import Iterator, Optional

logger = logging.getLogger(__name__)


class Database:
    """SQLite access with an explicit transactional boundary.

    Store methods call :meth:`connection`. Outside a transaction each call gets
    its own short-lived autocommit connection. Inside
    :meth:`transaction` every store call on the same thread shares one
    connection opened with ``BEGIN IMMEDIATE``, so the whole unit either commits
    or rolls back, and concurrent writers are serialised by SQLite's reserved lock.
    """

    def __init__(self, db_file: str, timeout: float = 30.0) -> None:
        self.db_file = db_file
        self.timeout = timeout
        self._local = threading.local()

    def _connect(self) -> sqlite3.Connection:
        # autocommit mode; transactions are issued explicitly below
        conn = sqlite3.connect(self.db_file, timeout=self.timeout, isolation_level=None)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON;")
        return conn

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """Run the enclosed store calls as one atomic unit. Nested use joins the outer unit."""
        current: Optional[sqlite3.Connection] = getattr(self._local, "conn", None)
        if current is not None:
            yield current
            return

        conn = self._connect()
        conn.execute("BEGIN IMMEDIATE")
        self._local.conn = conn
        try:
            yield conn
            conn.execute("COMMIT")
        except BaseException:
            conn.execute("ROLLBACK")
            raise
        finally:
            self._local.conn = None
            conn.close()

    @contextmanager
    def connection(self) -> Iterator[sqlite3.Connection]:
        current: Optional[sqlite3.Connection] = getattr(self._local, "conn", None)
        if current is not None:
            yield current
            return
        conn = self._connect()
        try:
            yield conn
        finally:
            conn.close()

    def create_tables(self) -> None:
        """Create the required tables if they do not exist yet."""
        conn = self._connect()
        try:
            conn.executescript("""
                CREATE TABLE IF NOT EXISTS books (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    title TEXT NOT NULL,
                    author TEXT NOT NULL,
                    category TEXT,
                    description TEXT,
                    cover TEXT,
                    total_copies INTEGER NOT NULL DEFAULT 0 CHECK(total_copies >= 0),
                    available_copies INTEGER NOT NULL DEFAULT 0
                        CHECK(available_copies >= 0 AND available_copies <= total_copies),
                    available BOOLEAN NOT NULL DEFAULT 0,
                    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                );

                CREATE TABLE IF NOT EXISTS users (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    name TEXT NOT NULL,
                    email TEXT UNIQUE NOT NULL,
                    password_hash TEXT NOT NULL,
                    role TEXT NOT NULL DEFAULT 'user',
                    mobile TEXT UNIQUE NOT NULL,
                    otp TEXT,
                    otp_generated_at TIMESTAMP,
                    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                );

                CREATE TABLE IF NOT EXISTS loans (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id INTEGER NOT NULL,
                    book_id INTEGER NOT NULL,
                    borrow_date TEXT,
                    return_date TEXT,
                    returned BOOLEAN NOT NULL DEFAULT 0,
                    fine_paid BOOLEAN NOT NULL DEFAULT 0,
                    status TEXT NOT NULL DEFAULT 'Pending',
                    FOREIGN KEY (user_id) REFERENCES users(id),
                    FOREIGN KEY (book_id) REFERENCES books(id)
                );

                CREATE INDEX IF NOT EXISTS idx_books_category ON books(category);
                CREATE INDEX IF NOT EXISTS idx_loans_user ON loans(user_id);
                CREATE INDEX IF NOT EXISTS idx_loans_user_book_returned ON loans(user_id, book_id, returned);
                CREATE INDEX IF NOT EXISTS idx_loans_return_date ON loans(return_date, returned);
            """)
        finally:
            conn.close()

    def initialize(self) -> None:
        """Initialise the database, creating tables when needed."""
        self.create_tables()
        logger.debug("Database ready at %s", self.db_file)
