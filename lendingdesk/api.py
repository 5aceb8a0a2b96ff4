"""HTTP API for the circulation desk.

Run with ``uvicorn --factory lendingdesk.api:create_app`` or ``lendingdesk serve``.
"""

import logging
from contextlib import asynccontextmanager
from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel, Field

from .errors import LendingError, NotFoundError
from .library import Library
from .models import Book, Loan, LoanStatus, Role, User
from .services.scheduler import build_scheduler

logger = logging.getLogger(__name__)

ERROR_STATUS = {
    "not_found": 404,
    "ineligible_user": 400,
    "no_copies_available": 400,
    "already_borrowed": 400,
    "already_returned": 400,
    "duplicate_account": 400,
    "book_in_use": 400,
}

RETURN_MESSAGES = {
    LoanStatus.FINE: "Book returned late. Fine applied.",
    LoanStatus.BORROW_CANCELLED: "Borrow cancelled due to invalid dates.",
    LoanStatus.RETURNED: "Book returned successfully.",
}


# --- Models ---
class RegisterModel(BaseModel):
    name: str = Field(min_length=1)
    email: str = Field(min_length=3)
    password: str = Field(min_length=1)
    mobile: str = Field(min_length=1)
    role: Role = Role.USER


class LoginModel(BaseModel):
    email: str
    password: str


class AuthResponse(BaseModel):
    token: str
    email: str
    role: str
    id: int


class UserModel(BaseModel):
    id: int
    name: str
    email: str
    mobile: str
    role: str


class BookCreateModel(BaseModel):
    title: str = Field(min_length=1)
    author: str = Field(min_length=1)
    category: Optional[str] = None
    description: Optional[str] = None
    cover: Optional[str] = None
    total_copies: int = Field(default=1, ge=0)
    available_copies: Optional[int] = Field(default=None, ge=0)


class BookModel(BaseModel):
    id: int
    title: str
    author: str
    category: Optional[str] = None
    description: Optional[str] = None
    cover: Optional[str] = None
    total_copies: int
    available_copies: int
    available: bool


class BorrowModel(BaseModel):
    borrow_date: date
    return_date: date


class LoanModel(BaseModel):
    id: int
    user_id: int
    book_id: int
    borrow_date: Optional[date] = None
    return_date: Optional[date] = None
    returned: bool
    fine_paid: bool
    status: str


def _user_model(user: User) -> UserModel:
    return UserModel(**user.to_dict())


def _book_model(book: Book) -> BookModel:
    return BookModel(**book.to_dict())


def _loan_model(loan: Loan) -> LoanModel:
    return LoanModel(**loan.to_dict())


# --- Dependencies ---
bearer_scheme = HTTPBearer(auto_error=False)


def get_library(request: Request) -> Library:
    return request.app.state.library


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    library: Library = Depends(get_library),
) -> User:
    """Resolve the bearer token to an account."""
    if credentials is None:
        raise HTTPException(status_code=401, detail="Invalid or expired token")
    email = library.tokens.subject(credentials.credentials)
    user = library.accounts.find_by_email(email) if email else None
    if user is None:
        raise HTTPException(status_code=401, detail="Invalid or expired token")
    return user


def require_admin(user: User = Depends(get_current_user)) -> User:
    if not user.is_admin:
        raise HTTPException(status_code=403, detail="Admin access required")
    return user


def _ensure_self_or_admin(current: User, user_id: int) -> None:
    if current.id != user_id and not current.is_admin:
        raise HTTPException(status_code=403, detail="Not allowed to act for another user")


# --- Users ---
users = APIRouter(prefix="/api/users", tags=["users"])


@users.post("/register", response_model=UserModel, status_code=201)
def register(payload: RegisterModel, library: Library = Depends(get_library)):
    user = library.accounts.register(payload.name, payload.email, payload.password, payload.mobile, payload.role)
    return _user_model(user)


def _auth_response(library: Library, user: User) -> AuthResponse:
    return AuthResponse(token=library.tokens.issue(user.email), email=user.email, role=user.role.value, id=user.id)


@users.post("/login", response_model=AuthResponse)
def login(payload: LoginModel, library: Library = Depends(get_library)):
    user = library.accounts.login(payload.email, payload.password)
    if user is None:
        raise HTTPException(status_code=401, detail="Invalid credentials")
    return _auth_response(library, user)


@users.post("/admin/login", response_model=AuthResponse)
def admin_login(payload: LoginModel, library: Library = Depends(get_library)):
    user = library.accounts.login_with_role(payload.email, payload.password, Role.ADMIN)
    if user is None:
        raise HTTPException(status_code=401, detail="Invalid admin credentials")
    return _auth_response(library, user)


@users.post("/send-otp")
def send_otp(mobile: str = Query(...), library: Library = Depends(get_library)):
    library.otp.request_otp(mobile)
    return {"message": "OTP sent successfully"}


@users.post("/verify-otp", response_model=bool)
def verify_otp(mobile: str = Query(...), otp: str = Query(...), library: Library = Depends(get_library)):
    return library.otp.verify_otp(mobile, otp)


@users.post("/reset-password")
def reset_password(
    mobile: str = Query(...),
    new_password: str = Query(..., alias="newPassword", min_length=1),
    library: Library = Depends(get_library),
):
    library.otp.reset_password(mobile, new_password)
    return {"message": "Password reset successfully"}


@users.get("/by-mobile", response_model=UserModel)
def user_by_mobile(mobile: str = Query(...), library: Library = Depends(get_library), _: User = Depends(require_admin)):
    user = library.accounts.find_by_mobile(mobile)
    if user is None:
        raise NotFoundError("Mobile number", mobile)
    return _user_model(user)


@users.get("/validate-token")
def validate_token(_: User = Depends(get_current_user)):
    return {"message": "Token is valid"}


@users.get("/profile", response_model=UserModel)
def profile(user: User = Depends(get_current_user)):
    return _user_model(user)


@users.get("/admin-exists", response_model=bool)
def admin_exists(library: Library = Depends(get_library)):
    return library.accounts.admin_exists()


# --- Books ---
books = APIRouter(prefix="/api/books", tags=["books"])


@books.post("", response_model=BookModel, dependencies=[Depends(require_admin)])
def add_book(payload: BookCreateModel, library: Library = Depends(get_library)):
    try:
        book = library.catalog.add_book(**payload.model_dump())
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return _book_model(book)


@books.get("/all", response_model=List[BookModel])
def all_books(library: Library = Depends(get_library)):
    return [_book_model(b) for b in library.catalog.list_books()]


@books.get("/available", response_model=List[BookModel])
def available_books(library: Library = Depends(get_library)):
    return [_book_model(b) for b in library.catalog.available_books()]


@books.get("/category/{category}", response_model=List[BookModel])
def available_by_category(category: str, library: Library = Depends(get_library)):
    return [_book_model(b) for b in library.catalog.available_books(category)]


@books.get("/categories", response_model=List[str])
def categories(library: Library = Depends(get_library)):
    return library.catalog.categories()


@books.get("/count", response_model=int, dependencies=[Depends(get_current_user)])
def book_count(library: Library = Depends(get_library)):
    return library.catalog.book_count()


@books.get("/count/available", response_model=int, dependencies=[Depends(get_current_user)])
def available_count(library: Library = Depends(get_library)):
    return library.catalog.available_count()


@books.get("/{book_id}", response_model=BookModel)
def get_book(book_id: int, library: Library = Depends(get_library)):
    return _book_model(library.catalog.get_book(book_id))


@books.delete("/{book_id}", status_code=204, dependencies=[Depends(require_admin)])
def delete_book(book_id: int, library: Library = Depends(get_library)):
    library.catalog.delete_book(book_id)


# --- Borrowing ---
borrowing = APIRouter(prefix="/api/borrow", tags=["borrowing"])


@borrowing.post("/user/{user_id}/book/{book_id}", response_model=LoanModel)
def borrow_book(
    user_id: int,
    book_id: int,
    payload: BorrowModel,
    library: Library = Depends(get_library),
    current: User = Depends(get_current_user),
):
    _ensure_self_or_admin(current, user_id)
    loan = library.lending.borrow(user_id, book_id, payload.borrow_date, payload.return_date)
    return _loan_model(loan)


@borrowing.get("/user/{user_id}", response_model=List[LoanModel])
def user_loans(user_id: int, library: Library = Depends(get_library), current: User = Depends(get_current_user)):
    _ensure_self_or_admin(current, user_id)
    return [_loan_model(loan) for loan in library.lending.loans_for_user(user_id)]


@borrowing.put("/return/{loan_id}")
def return_book(loan_id: int, library: Library = Depends(get_library), current: User = Depends(get_current_user)):
    _ensure_self_or_admin(current, library.lending.get_loan(loan_id).user_id)
    loan = library.lending.return_loan(loan_id)
    return {"message": RETURN_MESSAGES[loan.status], "status": loan.status.value}


@borrowing.get("/count/borrowed", response_model=int, dependencies=[Depends(get_current_user)])
def borrowed_count(library: Library = Depends(get_library)):
    return library.lending.borrowed_count()


@borrowing.get("/fine/{loan_id}")
def loan_fine(loan_id: int, library: Library = Depends(get_library)):
    return {"fine": library.lending.fine_for_loan(loan_id)}


@borrowing.get("/can-borrow/{user_id}")
def can_borrow(user_id: int, library: Library = Depends(get_library)):
    return {"canBorrow": library.lending.can_user_borrow(user_id)}


@borrowing.get("/fine-status/{user_id}")
def fine_status(user_id: int, library: Library = Depends(get_library)):
    has_fine, amount = library.lending.fine_status(user_id)
    return {"hasFine": has_fine, "fineAmount": amount}


@borrowing.get("/user/{user_id}/book/{book_id}/already-borrowed")
def already_borrowed(user_id: int, book_id: int, library: Library = Depends(get_library)):
    return {"alreadyBorrowed": library.lending.already_borrowed(user_id, book_id)}


# --- Application ---
async def lending_error_handler(request: Request, exc: LendingError) -> JSONResponse:
    status = ERROR_STATUS.get(exc.code, 400)
    return JSONResponse(status_code=status, content={"error": exc.message, "code": exc.code})


def create_app(library: Optional[Library] = None) -> FastAPI:
    lib = library or Library()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        scheduler = None
        if lib.settings.enable_scheduler:
            scheduler = build_scheduler(lib.sweeper, lib.settings.reminder_hour, lib.settings.cleanup_hour)
            scheduler.start()
            logger.info("Background scheduler started")
        try:
            yield
        finally:
            if scheduler is not None:
                scheduler.shutdown(wait=False)
            lib.close()

    app = FastAPI(title=lib.settings.app_name, version=lib.settings.app_version, lifespan=lifespan)
    app.state.library = lib

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[o.strip() for o in lib.settings.cors_origins.split(",") if o.strip()],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(LendingError, lending_error_handler)

    @app.get("/health")
    async def health():
        return {"status": "healthy", "borrowed": lib.lending.borrowed_count()}

    app.include_router(users)
    app.include_router(books)
    app.include_router(borrowing)
    return app
