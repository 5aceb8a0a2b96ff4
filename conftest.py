import os
from datetime import datetime

import pytest

from lendingdesk.clock import FixedClock
from lendingdesk.config import Settings
from lendingdesk.library import Library
from lendingdesk.models import Role
from lendingdesk.security import PasswordHasher


class RecordingNotifier:
    """Collects outgoing messages instead of sending them."""

    def __init__(self):
        self.sent = []
        self.fail_for = set()

    def send(self, mobile, message):
        if mobile in self.fail_for:
            return False
        self.sent.append((mobile, message))
        return True


@pytest.fixture
def clock():
    return FixedClock(datetime(2024, 1, 5, 9, 0, 0))


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def test_settings():
    return Settings(
        jwt_secret_key="lendingdesk-test-signing-key-0123456789",
        bcrypt_rounds=4,
        enable_scheduler=False,
    )


@pytest.fixture
def lib(tmp_path, request, clock, notifier, test_settings):
    # A fresh database file for every test
    db_file = str(tmp_path / f"test_{request.node.name}.db")
    lib = Library(
        db_file=db_file,
        config=test_settings,
        clock=clock,
        notifier=notifier,
        hasher=PasswordHasher(rounds=4),
    )
    yield lib
    lib.close()
    if os.path.exists(db_file):
        os.remove(db_file)


@pytest.fixture
def user(lib):
    return lib.accounts.register("Asha Rao", "asha@example.com", "s3cret", "9876543210")


@pytest.fixture
def admin(lib):
    return lib.accounts.register("Head Librarian", "admin@example.com", "adminpass", "9000000001", Role.ADMIN)


@pytest.fixture
def book(lib):
    return lib.catalog.add_book("Dune", "Frank Herbert", total_copies=2, category="Fiction")
