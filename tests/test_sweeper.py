from datetime import date, datetime
from unittest.mock import MagicMock

from lendingdesk.services.scheduler import REMINDER_JOB_ID, RETENTION_JOB_ID, build_scheduler


def test_reminders_go_to_loans_due_in_two_days(lib, clock, notifier, user, book):
    other = lib.catalog.add_book("Emma", "Jane Austen", total_copies=1)
    lib.lending.borrow(user.id, book.id, date(2024, 1, 5), date(2024, 1, 7))
    lib.lending.borrow(user.id, other.id, date(2024, 1, 5), date(2024, 1, 9))

    report = lib.sweeper.send_reminders()

    assert report.sent == 1
    assert report.failed == []
    assert notifier.sent == [
        (user.mobile, 'Reminder: Only 2 days left to return "Dune" (Due: 2024-01-07).')
    ]


def test_returned_loans_get_no_reminder(lib, notifier, user, book):
    loan = lib.lending.borrow(user.id, book.id, date(2024, 1, 5), date(2024, 1, 7))
    lib.lending.return_loan(loan.id)

    assert lib.sweeper.send_reminders().total == 0
    assert notifier.sent == []


def test_failed_delivery_does_not_stop_the_pass(lib, notifier, user, admin, book):
    lib.lending.borrow(user.id, book.id, date(2024, 1, 5), date(2024, 1, 7))
    lib.lending.borrow(admin.id, book.id, date(2024, 1, 5), date(2024, 1, 7))
    notifier.fail_for.add(user.mobile)

    report = lib.sweeper.send_reminders()

    assert report.sent == 1
    assert len(report.failed) == 1
    assert [mobile for mobile, _ in notifier.sent] == [admin.mobile]


def test_notifier_exception_is_isolated(lib, user, admin, book):
    first = lib.lending.borrow(user.id, book.id, date(2024, 1, 5), date(2024, 1, 7))
    lib.lending.borrow(admin.id, book.id, date(2024, 1, 5), date(2024, 1, 7))
    lib.sweeper.notifier = MagicMock()
    lib.sweeper.notifier.send.side_effect = [RuntimeError("gateway down"), True]

    report = lib.sweeper.send_reminders()

    assert report.sent == 1
    assert report.failed == [first.id]


def test_purge_deletes_only_old_returned_loans(lib, clock, user, admin, book):
    old = lib.lending.borrow(user.id, book.id, date(2024, 1, 1), date(2024, 1, 3))
    recent = lib.lending.borrow(admin.id, book.id, date(2024, 1, 1), date(2024, 1, 4))
    lib.lending.return_loan(old.id)
    lib.lending.return_loan(recent.id)
    pending = lib.lending.borrow(user.id, book.id, date(2024, 1, 1), date(2024, 1, 2))

    clock.set(datetime(2024, 1, 6, 0, 0))
    # cutoff is 2024-01-04: only the loan due on the 3rd qualifies
    assert lib.sweeper.purge_returned() == 1

    assert lib.lending.get_loan(recent.id) is not None
    assert lib.lending.get_loan(pending.id).returned is False
    assert lib.loan_store.get(old.id) is None


def test_purge_with_nothing_to_delete(lib):
    assert lib.sweeper.purge_returned() == 0


def test_scheduler_registers_daily_jobs(lib):
    scheduler = build_scheduler(lib.sweeper, reminder_hour=10, cleanup_hour=0)

    jobs = {job.id: job for job in scheduler.get_jobs()}
    assert set(jobs) == {REMINDER_JOB_ID, RETENTION_JOB_ID}
    hours = {job_id: {f.name: str(f) for f in job.trigger.fields}["hour"] for job_id, job in jobs.items()}
    assert hours == {REMINDER_JOB_ID: "10", RETENTION_JOB_ID: "0"}
