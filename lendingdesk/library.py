import logging
from typing import Optional

from .accounts import AccountService
from .catalog import CatalogService
from .clock import SystemClock
from .config import Settings, settings as default_settings
from .database import Database
from .lending import LendingService
from .otp import OtpRecoveryManager
from .security import PasswordHasher, TokenIssuer
from .services.sms import build_notifier
from .stores import AccountStore, CatalogStore, LoanStore
from .sweeper import Sweeper

logger = logging.getLogger(__name__)


class Library:
    """Wires the stores and services together around one database file."""

    def __init__(
        self,
        db_file: Optional[str] = None,
        *,
        config: Optional[Settings] = None,
        clock: Optional[SystemClock] = None,
        notifier=None,
        hasher: Optional[PasswordHasher] = None,
    ) -> None:
        self.settings = config or default_settings
        self.clock = clock or SystemClock()
        self.notifier = notifier or build_notifier(self.settings)
        self.hasher = hasher or PasswordHasher(self.settings.bcrypt_rounds)

        self.db = Database(db_file or self.settings.db_file)
        self.db.initialize()

        # stores
        self.catalog_store = CatalogStore(self.db)
        self.account_store = AccountStore(self.db)
        self.loan_store = LoanStore(self.db)

        # services
        self.catalog = CatalogService(self.catalog_store, self.loan_store)
        self.accounts = AccountService(self.account_store, self.hasher)
        self.tokens = TokenIssuer(
            self.settings.jwt_secret_key,
            self.settings.jwt_algorithm,
            self.settings.jwt_expiration_minutes,
        )
        self.lending = LendingService(
            self.db,
            self.catalog_store,
            self.account_store,
            self.loan_store,
            clock=self.clock,
            fine_per_day=self.settings.fine_per_day,
        )
        self.otp = OtpRecoveryManager(
            self.account_store,
            self.notifier,
            self.hasher,
            clock=self.clock,
            window_seconds=self.settings.otp_window_seconds,
        )
        self.sweeper = Sweeper(
            self.loan_store,
            self.account_store,
            self.catalog_store,
            self.notifier,
            clock=self.clock,
            reminder_days_ahead=self.settings.reminder_days_ahead,
            retention_days=self.settings.retention_days,
        )
        logger.debug("Library initialised on %s", self.db.db_file)

    def close(self) -> None:
        """Release the notifier's HTTP client, if it has one."""
        close = getattr(self.notifier, "close", None)
        if callable(close):
            close()
