from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import date, datetime
from enum import Enum
from typing import Optional


class Role(str, Enum):
    USER = "user"
    ADMIN = "admin"


class LoanStatus(str, Enum):
    PENDING = "Pending"
    RETURNED = "Returned"
    FINE = "Fine"
    BORROW_CANCELLED = "Borrow Cancelled"


def _parse_date(value) -> Optional[date]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


def _parse_datetime(value) -> Optional[datetime]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value))


@dataclass
class Book:
    """A title in the catalog together with its copy counts."""

    title: str
    author: str
    total_copies: int = 1
    available_copies: int = 1
    category: Optional[str] = None
    description: Optional[str] = None
    cover: Optional[str] = None
    id: Optional[int] = None

    @property
    def available(self) -> bool:
        return self.available_copies > 0

    def __str__(self) -> str:  # pragma: no cover - string formatting trivial
        return f"{self.title} by {self.author} ({self.available_copies}/{self.total_copies} available)"

    def to_dict(self) -> dict:
        data = asdict(self)
        data["available"] = self.available
        return data

    @staticmethod
    def from_dict(data: dict) -> "Book":
        return Book(
            id=data.get("id"),
            title=data["title"],
            author=data["author"],
            category=data.get("category"),
            description=data.get("description"),
            cover=data.get("cover"),
            total_copies=int(data.get("total_copies") or 0),
            available_copies=int(data.get("available_copies") or 0),
        )


@dataclass
class User:
    """A library account. ``otp``/``otp_generated_at`` hold at most one pending recovery code."""

    name: str
    email: str
    password_hash: str
    mobile: str
    role: Role = Role.USER
    otp: Optional[str] = None
    otp_generated_at: Optional[datetime] = None
    id: Optional[int] = None

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN

    def clear_otp(self) -> None:
        self.otp = None
        self.otp_generated_at = None

    def to_dict(self) -> dict:
        # credentials and OTP state never leave the service
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "mobile": self.mobile,
            "role": self.role.value,
        }

    @staticmethod
    def from_dict(data: dict) -> "User":
        return User(
            id=data.get("id"),
            name=data["name"],
            email=data["email"],
            password_hash=data["password_hash"],
            mobile=data["mobile"],
            role=Role(data.get("role") or Role.USER.value),
            otp=data.get("otp"),
            otp_generated_at=_parse_datetime(data.get("otp_generated_at")),
        )


@dataclass
class Loan:
    """One borrow transaction. ``return_date`` is the due date, not the actual return time."""

    user_id: int
    book_id: int
    borrow_date: Optional[date]
    return_date: Optional[date]
    returned: bool = False
    fine_paid: bool = False
    status: LoanStatus = LoanStatus.PENDING
    id: Optional[int] = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "book_id": self.book_id,
            "borrow_date": self.borrow_date.isoformat() if self.borrow_date else None,
            "return_date": self.return_date.isoformat() if self.return_date else None,
            "returned": self.returned,
            "fine_paid": self.fine_paid,
            "status": self.status.value,
        }

    @staticmethod
    def from_dict(data: dict) -> "Loan":
        return Loan(
            id=data.get("id"),
            user_id=int(data["user_id"]),
            book_id=int(data["book_id"]),
            borrow_date=_parse_date(data.get("borrow_date")),
            return_date=_parse_date(data.get("return_date")),
            returned=bool(data.get("returned")),
            fine_paid=bool(data.get("fine_paid")),
            status=LoanStatus(data.get("status") or LoanStatus.PENDING.value),
        )
