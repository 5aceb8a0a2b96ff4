from datetime import date

import pytest
from fastapi.testclient import TestClient

from lendingdesk.api import create_app


@pytest.fixture
def client(lib):
    with TestClient(create_app(lib)) as test_client:
        yield test_client


def _login(client, email, password, path="/api/users/login"):
    response = client.post(path, json={"email": email, "password": password})
    assert response.status_code == 200
    return {"Authorization": f"Bearer {response.json()['token']}"}


@pytest.fixture
def user_headers(client, user):
    return _login(client, user.email, "s3cret")


@pytest.fixture
def admin_headers(client, admin):
    return _login(client, admin.email, "adminpass", "/api/users/admin/login")


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_register_and_login(client):
    payload = {"name": "Ravi", "email": "ravi@example.com", "password": "pw", "mobile": "9123456789"}
    response = client.post("/api/users/register", json=payload)
    assert response.status_code == 201
    assert response.json()["role"] == "user"
    assert "password_hash" not in response.json()

    duplicate = client.post("/api/users/register", json=payload)
    assert duplicate.status_code == 400
    assert duplicate.json()["code"] == "duplicate_account"

    headers = _login(client, "ravi@example.com", "pw")
    profile = client.get("/api/users/profile", headers=headers)
    assert profile.json()["email"] == "ravi@example.com"


def test_bad_credentials(client, user):
    response = client.post("/api/users/login", json={"email": user.email, "password": "nope"})
    assert response.status_code == 401
    # a normal user cannot use the admin login
    response = client.post("/api/users/admin/login", json={"email": user.email, "password": "s3cret"})
    assert response.status_code == 401


def test_protected_routes_need_a_token(client):
    assert client.get("/api/users/profile").status_code == 401
    assert client.get("/api/users/profile", headers={"Authorization": "Bearer garbage"}).status_code == 401


def test_admin_exists(client, admin):
    assert client.get("/api/users/admin-exists").json() is True


def test_otp_flow(client, lib, user, notifier, clock):
    response = client.post("/api/users/send-otp", params={"mobile": user.mobile})
    assert response.status_code == 200
    code = lib.accounts.find_by_mobile(user.mobile).otp
    assert notifier.sent[-1][1] == f"Your Library OTP is: {code}"

    clock.advance(seconds=30)
    assert client.post("/api/users/verify-otp", params={"mobile": user.mobile, "otp": code}).json() is True
    assert client.post("/api/users/verify-otp", params={"mobile": user.mobile, "otp": code}).json() is False

    response = client.post("/api/users/reset-password", params={"mobile": user.mobile, "newPassword": "fresh"})
    assert response.status_code == 200
    _login(client, user.email, "fresh")


def test_send_otp_unknown_mobile(client):
    response = client.post("/api/users/send-otp", params={"mobile": "0000000000"})
    assert response.status_code == 404


def test_by_mobile_is_admin_only(client, user, user_headers, admin_headers):
    assert client.get("/api/users/by-mobile", params={"mobile": user.mobile}, headers=user_headers).status_code == 403
    response = client.get("/api/users/by-mobile", params={"mobile": user.mobile}, headers=admin_headers)
    assert response.status_code == 200
    assert response.json()["id"] == user.id


def test_book_admin_routes(client, user_headers, admin_headers):
    payload = {"title": "Dune", "author": "Frank Herbert", "category": "Fiction", "total_copies": 3}
    assert client.post("/api/books", json=payload, headers=user_headers).status_code == 403

    created = client.post("/api/books", json=payload, headers=admin_headers)
    assert created.status_code == 200
    book = created.json()
    assert book["available_copies"] == 3
    assert book["available"] is True

    assert [b["title"] for b in client.get("/api/books/all").json()] == ["Dune"]
    assert client.get("/api/books/categories").json() == ["Fiction"]
    assert len(client.get("/api/books/category/Fiction").json()) == 1
    assert client.get("/api/books/count", headers=user_headers).json() == 1

    assert client.delete(f"/api/books/{book['id']}", headers=admin_headers).status_code == 204
    assert client.get(f"/api/books/{book['id']}").status_code == 404


def test_invalid_copy_counts(client, admin_headers):
    payload = {"title": "X", "author": "Y", "total_copies": 1, "available_copies": 2}
    assert client.post("/api/books", json=payload, headers=admin_headers).status_code == 400


def test_borrow_and_return(client, lib, clock, user, book, user_headers):
    dates = {"borrow_date": "2024-01-05", "return_date": "2024-01-10"}
    response = client.post(f"/api/borrow/user/{user.id}/book/{book.id}", json=dates, headers=user_headers)
    assert response.status_code == 200
    loan = response.json()
    assert loan["status"] == "Pending"

    again = client.post(f"/api/borrow/user/{user.id}/book/{book.id}", json=dates, headers=user_headers)
    assert again.status_code == 400
    assert again.json()["error"] == "You have already borrowed this book."

    check = client.get(f"/api/borrow/user/{user.id}/book/{book.id}/already-borrowed")
    assert check.json() == {"alreadyBorrowed": True}
    assert client.get("/api/borrow/count/borrowed", headers=user_headers).json() == 1

    clock.set(clock.now().replace(day=15))
    assert client.get(f"/api/borrow/fine/{loan['id']}").json() == {"fine": 50}
    assert client.get(f"/api/borrow/fine-status/{user.id}").json() == {"hasFine": True, "fineAmount": 50}
    assert client.get(f"/api/borrow/can-borrow/{user.id}").json() == {"canBorrow": False}

    returned = client.put(f"/api/borrow/return/{loan['id']}", headers=user_headers)
    assert returned.status_code == 200
    assert returned.json()["status"] == "Fine"

    history = client.get(f"/api/borrow/user/{user.id}", headers=user_headers).json()
    assert [entry["status"] for entry in history] == ["Fine"]

    second = client.put(f"/api/borrow/return/{loan['id']}", headers=user_headers)
    assert second.status_code == 400
    assert second.json()["code"] == "already_returned"


def test_ineligible_user_gets_400(client, lib, clock, user, book, user_headers):
    lib.lending.borrow(user.id, book.id, clock.today(), clock.today())
    other = lib.catalog.add_book("Emma", "Jane Austen")
    clock.advance(days=1)

    response = client.post(
        f"/api/borrow/user/{user.id}/book/{other.id}",
        json={"borrow_date": "2024-01-06", "return_date": "2024-01-16"},
        headers=user_headers,
    )
    assert response.status_code == 400
    assert response.json()["code"] == "ineligible_user"


def test_cannot_borrow_for_someone_else(client, admin, book, user_headers):
    response = client.post(
        f"/api/borrow/user/{admin.id}/book/{book.id}",
        json={"borrow_date": "2024-01-05", "return_date": "2024-01-10"},
        headers=user_headers,
    )
    assert response.status_code == 403


def test_missing_loan_and_user(client, user_headers, admin_headers):
    assert client.get("/api/borrow/fine/999").status_code == 404
    assert client.get("/api/borrow/can-borrow/999").status_code == 404
    assert client.get("/api/borrow/user/999", headers=admin_headers).status_code == 404
    assert client.put("/api/borrow/return/999", headers=user_headers).status_code == 404


def test_deleting_book_on_loan_is_rejected(client, lib, user, book, admin_headers):
    loan = lib.lending.borrow(user.id, book.id, date(2024, 1, 5), date(2024, 1, 10))

    response = client.delete(f"/api/books/{book.id}", headers=admin_headers)
    assert response.status_code == 400
    assert response.json()["code"] == "book_in_use"
    assert lib.lending.get_loan(loan.id).returned is False
