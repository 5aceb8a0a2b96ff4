import json
import logging
import subprocess
import sys
from datetime import date
from typing import List, Optional

import typer
from rich.console import Console
from rich.table import Table

from .config import settings
from .errors import LendingError
from .library import Library
from .models import Book, Loan

app = typer.Typer(help="Library circulation desk")
console = Console()

# set by the global callback
state = {"db_file": None, "output": "plain"}


def _library() -> Library:
    return Library(db_file=state["db_file"])


@app.callback()
def _global_options(
    db_file: Optional[str] = typer.Option(None, "--db", help="SQLite database file (default from LENDINGDESK_DB_FILE)"),
    output: str = typer.Option("plain", "--output", "-o", help="Output format: plain | json | rich"),
):
    """Global options for every command."""
    logging.basicConfig(level=getattr(logging, settings.log_level.upper(), logging.INFO))
    state["db_file"] = db_file
    state["output"] = output.lower().strip() if output else "plain"


def _print_books(books: List[Book]) -> None:
    if not books:
        print("No books in library.")
        return
    mode = state["output"]
    if mode == "json":
        print(json.dumps([b.to_dict() for b in books], ensure_ascii=False))
    elif mode == "rich":
        table = Table(title="Books", show_lines=True, header_style="bold cyan")
        table.add_column("ID", style="magenta", no_wrap=True)
        table.add_column("Title")
        table.add_column("Author")
        table.add_column("Category")
        table.add_column("Copies", justify="right")
        for b in books:
            table.add_row(str(b.id), b.title, b.author, b.category or "-", f"{b.available_copies}/{b.total_copies}")
        console.print(table)
    else:
        for b in books:
            print(f"{b.id} - {b.title} by {b.author} ({b.available_copies}/{b.total_copies} available)")


def _print_loans(loans: List[Loan]) -> None:
    if not loans:
        print("No loans.")
        return
    mode = state["output"]
    if mode == "json":
        print(json.dumps([loan.to_dict() for loan in loans]))
    elif mode == "rich":
        table = Table(title="Loans", header_style="bold cyan")
        for column in ("ID", "Book", "Borrowed", "Due", "Status"):
            table.add_column(column)
        for loan in loans:
            table.add_row(str(loan.id), str(loan.book_id), str(loan.borrow_date), str(loan.return_date), loan.status.value)
        console.print(table)
    else:
        for loan in loans:
            print(f"{loan.id} - book {loan.book_id} borrowed {loan.borrow_date} due {loan.return_date} [{loan.status.value}]")


@app.command("init-db")
def cli_init_db():
    """Create the database tables if they do not exist."""
    lib = _library()
    print(f"Database ready: {lib.db.db_file}")


@app.command("add-book")
def cli_add_book(
    title: str,
    author: str,
    copies: int = typer.Option(1, "--copies", "-c", help="Total copies"),
    category: Optional[str] = typer.Option(None, "--category", help="Category"),
):
    """Add a title to the catalog."""
    lib = _library()
    try:
        book = lib.catalog.add_book(title, author, total_copies=copies, category=category)
    except ValueError as e:
        print(f"Error: {e}")
        raise typer.Exit(code=1)
    print(f"Added: {book.title} by {book.author} (id {book.id}, {book.total_copies} copies)")


@app.command("books")
def cli_books(
    available: bool = typer.Option(False, "--available", "-a", help="Only titles with copies on the shelf"),
    category: Optional[str] = typer.Option(None, "--category", help="Filter available titles by category"),
):
    """List the catalog."""
    lib = _library()
    if available or category:
        _print_books(lib.catalog.available_books(category))
    else:
        _print_books(lib.catalog.list_books())


@app.command("borrow")
def cli_borrow(
    user_id: int,
    book_id: int,
    due: str = typer.Option(..., "--due", help="Due date (YYYY-MM-DD)"),
    start: Optional[str] = typer.Option(None, "--from", help="Borrow date (YYYY-MM-DD), default today"),
):
    """Lend a copy of a book to a user."""
    lib = _library()
    try:
        borrow_date = date.fromisoformat(start) if start else lib.clock.today()
        due_date = date.fromisoformat(due)
    except ValueError as e:
        print(f"Error: {e}")
        raise typer.Exit(code=1)
    try:
        loan = lib.lending.borrow(user_id, book_id, borrow_date, due_date)
    except LendingError as e:
        print(f"Error: {e.message}")
        raise typer.Exit(code=1)
    print(f"Loan {loan.id} created, due {loan.return_date}")


@app.command("return")
def cli_return(loan_id: int):
    """Record a returned loan."""
    lib = _library()
    try:
        loan = lib.lending.return_loan(loan_id)
    except LendingError as e:
        print(f"Error: {e.message}")
        raise typer.Exit(code=1)
    print(f"Loan {loan.id} closed: {loan.status.value}")


@app.command("loans")
def cli_loans(user_id: int):
    """Show a user's loan history."""
    lib = _library()
    try:
        loans = lib.lending.loans_for_user(user_id)
    except LendingError as e:
        print(f"Error: {e.message}")
        raise typer.Exit(code=1)
    _print_loans(loans)


@app.command("fine")
def cli_fine(user_id: int):
    """Show the outstanding fine on a user's unreturned loans."""
    lib = _library()
    try:
        has_fine, amount = lib.lending.fine_status(user_id)
    except LendingError as e:
        print(f"Error: {e.message}")
        raise typer.Exit(code=1)
    if has_fine:
        print(f"User {user_id} owes {amount}")
    else:
        print(f"User {user_id} has no fine")


@app.command("remind")
def cli_remind():
    """Text reminders for loans falling due soon."""
    lib = _library()
    try:
        report = lib.sweeper.send_reminders()
    finally:
        lib.close()
    print(f"Reminders: {report.sent} sent, {len(report.failed)} failed")


@app.command("purge")
def cli_purge():
    """Delete returned loans past the retention window."""
    deleted = _library().sweeper.purge_returned()
    print(f"Deleted {deleted} returned loans")


@app.command("serve")
def cli_serve(
    host: str = typer.Option(settings.api_host, "--host"),
    port: int = typer.Option(settings.api_port, "--port"),
):
    """Run the HTTP API with uvicorn."""
    print(f"Starting API on http://{host}:{port}/")
    args = [
        sys.executable,
        "-m", "uvicorn",
        "lendingdesk.api:create_app",
        "--factory",
        "--host", host,
        "--port", str(port),
    ]
    try:
        subprocess.run(args, check=False)
    except KeyboardInterrupt:
        print("Server stopped.")


def main():
    app()


if __name__ == "__main__":
    main()
