import logging
from dataclasses import dataclass, field
from datetime import timedelta
from typing import List, Optional

from .clock import SystemClock
from .stores import AccountStore, CatalogStore, LoanStore

logger = logging.getLogger(__name__)


@dataclass
class ReminderReport:
    sent: int = 0
    failed: List[int] = field(default_factory=list)

    @property
    def total(self) -> int:
        return self.sent + len(self.failed)


class Sweeper:
    """Daily housekeeping over the loan records.

    ``send_reminders`` texts users whose loans fall due soon; ``purge_returned``
    deletes returned loans older than the retention cutoff. Deleted records
    are not recoverable.
    """

    def __init__(
        self,
        loans: LoanStore,
        accounts: AccountStore,
        catalog: CatalogStore,
        notifier,
        clock: Optional[SystemClock] = None,
        reminder_days_ahead: int = 2,
        retention_days: int = 2,
    ) -> None:
        self.loans = loans
        self.accounts = accounts
        self.catalog = catalog
        self.notifier = notifier
        self.clock = clock or SystemClock()
        self.reminder_days_ahead = reminder_days_ahead
        self.retention_days = retention_days

    def send_reminders(self) -> ReminderReport:
        due = self.clock.today() + timedelta(days=self.reminder_days_ahead)
        report = ReminderReport()

        for loan in self.loans.find_due_on(due, returned=False):
            try:
                delivered = self._remind(loan)
            except Exception:
                # one bad recipient must not stop the rest of the pass
                logger.exception("Reminder for loan %s failed", loan.id)
                delivered = False
            if delivered:
                report.sent += 1
            else:
                report.failed.append(loan.id)

        logger.info("Reminder pass for %s: %d sent, %d failed", due, report.sent, len(report.failed))
        return report

    def _remind(self, loan) -> bool:
        user = self.accounts.get(loan.user_id)
        book = self.catalog.get(loan.book_id)
        if user is None or book is None:
            logger.warning("Loan %s references a missing user or book, skipping reminder", loan.id)
            return False

        message = (
            f"Reminder: Only {self.reminder_days_ahead} days left to return "
            f"\"{book.title}\" (Due: {loan.return_date.isoformat()})."
        )
        if not self.notifier.send(user.mobile, message):
            return False
        logger.info("Reminder sent to user %s for book: %s", user.id, book.title)
        return True

    def purge_returned(self) -> int:
        cutoff = self.clock.today() - timedelta(days=self.retention_days)
        stale = self.loans.find_returned_before(cutoff)
        if not stale:
            logger.info("No returned loans older than %s", cutoff)
            return 0

        deleted = self.loans.delete_all(stale)
        logger.info("Deleted %d returned loans due before %s", deleted, cutoff)
        return deleted
