import logging
import sqlite3
from typing import Optional

from .errors import DuplicateAccountError, NotFoundError
from .models import Role, User
from .security import PasswordHasher
from .stores import AccountStore

logger = logging.getLogger(__name__)


class AccountService:
    """Registration and password login."""

    def __init__(self, accounts: AccountStore, hasher: PasswordHasher) -> None:
        self.accounts = accounts
        self.hasher = hasher

    def register(self, name: str, email: str, password: str, mobile: str, role: Role = Role.USER) -> User:
        email = email.strip().lower()
        mobile = mobile.strip()
        if not password:
            raise ValueError("Password cannot be empty.")
        if self.accounts.find_by_email(email):
            raise DuplicateAccountError(f"Email {email} is already registered.")
        if self.accounts.find_by_mobile(mobile):
            raise DuplicateAccountError(f"Mobile number {mobile} is already registered.")

        user = User(
            name=name.strip(),
            email=email,
            password_hash=self.hasher.hash(password),
            mobile=mobile,
            role=Role(role),
        )
        try:
            self.accounts.save(user)
        except sqlite3.IntegrityError as e:
            # lost a race with a concurrent registration
            raise DuplicateAccountError() from e
        logger.info("Registered %s account %s", user.role.value, user.id)
        return user

    def login(self, email: str, password: str) -> Optional[User]:
        user = self.accounts.find_by_email(email.strip().lower())
        if user and self.hasher.verify(password, user.password_hash):
            return user
        return None

    def login_with_role(self, email: str, password: str, role: Role) -> Optional[User]:
        user = self.login(email, password)
        if user and user.role == Role(role):
            return user
        return None

    def get(self, user_id: int) -> User:
        user = self.accounts.get(user_id)
        if user is None:
            raise NotFoundError("User", user_id)
        return user

    def find_by_email(self, email: str) -> Optional[User]:
        return self.accounts.find_by_email(email.strip().lower())

    def find_by_mobile(self, mobile: str) -> Optional[User]:
        return self.accounts.find_by_mobile(mobile.strip())

    def admin_exists(self) -> bool:
        return self.accounts.exists_by_role(Role.ADMIN.value)
