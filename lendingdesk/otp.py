"""One-time codes for password recovery.

Each account has a single OTP slot. Requesting a new code overwrites the old
one; a successful verification empties the slot so the code cannot be reused.
Expiry is checked by comparing timestamps at verification time.
"""

from __future__ import annotations

import logging
import secrets
from datetime import timedelta
from typing import Optional

from .clock import SystemClock
from .errors import NotFoundError
from .models import User
from .security import PasswordHasher
from .stores import AccountStore

logger = logging.getLogger(__name__)

OTP_MIN = 100000
OTP_MAX = 999999


def generate_code() -> str:
    """Six decimal digits, uniform over 100000-999999."""
    return str(OTP_MIN + secrets.randbelow(OTP_MAX - OTP_MIN + 1))


class OtpRecoveryManager:
    def __init__(
        self,
        accounts: AccountStore,
        notifier,
        hasher: PasswordHasher,
        clock: Optional[SystemClock] = None,
        window_seconds: int = 120,
    ) -> None:
        self.accounts = accounts
        self.notifier = notifier
        self.hasher = hasher
        self.clock = clock or SystemClock()
        self.window = timedelta(seconds=window_seconds)

    def request_otp(self, mobile: str) -> None:
        """Issue a fresh code for the account holding ``mobile`` and text it to them."""
        user = self.accounts.find_by_mobile(mobile)
        if user is None:
            raise NotFoundError("Mobile number", mobile)

        user.otp = generate_code()
        user.otp_generated_at = self.clock.now()
        self.accounts.save(user)

        if not self.notifier.send(mobile, f"Your Library OTP is: {user.otp}"):
            logger.warning("OTP for user %s stored but delivery failed", user.id)
        else:
            logger.info("OTP sent to user %s", user.id)

    def verify_otp(self, mobile: str, candidate: str) -> bool:
        """True only for a matching, unexpired code. Never raises for a bad code."""
        user = self.accounts.find_by_mobile(mobile)
        if user is None or user.otp is None or user.otp_generated_at is None:
            return False

        now = self.clock.now()
        if not (user.otp_generated_at <= now < user.otp_generated_at + self.window):
            return False

        if not secrets.compare_digest(user.otp.encode("utf-8"), str(candidate).encode("utf-8")):
            return False

        user.clear_otp()
        self.accounts.save(user)
        return True

    def reset_password(self, mobile: str, new_password: str) -> User:
        """Replace the credential of the account holding ``mobile``.

        The caller must have had ``verify_otp`` succeed first; no proof of that
        is passed in here.
        """
        user = self.accounts.find_by_mobile(mobile)
        if user is None:
            raise NotFoundError("Mobile number", mobile)
        user.password_hash = self.hasher.hash(new_password)
        self.accounts.save(user)
        logger.info("Password reset for user %s", user.id)
        return user
