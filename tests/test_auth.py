from datetime import timedelta
from types import SimpleNamespace

import pytest

from workshop_crm.models import User
from workshop_crm.security_utils import (
    TokenExpiredError,
    create_access_token,
    create_refresh_token,
    decode_token,
    hash_password,
)


@pytest.fixture
def staff_user(db):
    user = User(
        email="staff@example.com",
        password_hash=hash_password("correct-horse"),
        role="staff",
        first_name="Sam",
        last_name="Staff",
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def test_access_token_claims():
    user = SimpleNamespace(id="u1", email="a@example.com", role="admin", first_name="A", last_name="B")

    claims = decode_token(create_access_token(user))

    assert claims["userId"] == "u1"
    assert claims["role"] == "admin"
    assert claims["firstName"] == "A"
    assert "exp" in claims


def test_expired_token_is_rejected(client):
    user = SimpleNamespace(id="u1", email="a@example.com", role="admin", first_name="A", last_name="B")
    token = create_access_token(user, expires_delta=timedelta(seconds=-5))

    with pytest.raises(TokenExpiredError):
        decode_token(token)

    response = client.get("/bookings", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 401
    assert response.headers.get("X-Token-Expired") == "true"


def test_missing_and_malformed_tokens(client):
    assert client.get("/bookings").status_code == 401
    assert client.get("/bookings", headers={"Authorization": "Bearer not-a-jwt"}).status_code == 401


def test_refresh_token_is_not_an_access_token(client):
    user = SimpleNamespace(id="u1", email="a@example.com", role="admin", first_name="A", last_name="B")

    response = client.get("/bookings", headers={"Authorization": f"Bearer {create_refresh_token(user)}"})

    assert response.status_code == 401


def test_role_mismatch_is_forbidden(client, customer_headers):
    assert client.get("/tracker-status", headers=customer_headers).status_code == 403
    assert client.get("/bookings", headers=customer_headers).status_code == 200


def test_login_and_refresh(client, staff_user):
    response = client.post("/auth/login", json={"email": " Staff@Example.com ", "password": "correct-horse"})

    assert response.status_code == 200
    body = response.json()
    assert body["user"]["role"] == "staff"
    assert decode_token(body["token"])["userId"] == staff_user.id

    refreshed = client.post("/auth/refresh", json={"refreshToken": body["refreshToken"]})
    assert refreshed.status_code == 200
    assert decode_token(refreshed.json()["token"])["email"] == "staff@example.com"


def test_login_with_wrong_password(client, staff_user):
    response = client.post("/auth/login", json={"email": "staff@example.com", "password": "wrong"})

    assert response.status_code == 401
    assert response.json()["detail"] == "Invalid credentials"


def test_refresh_errors(client, staff_user):
    assert client.post("/auth/refresh", json={}).status_code == 400
    assert client.post("/auth/refresh", json={"refreshToken": "garbage"}).status_code == 401

    access = create_access_token(staff_user)
    assert client.post("/auth/refresh", json={"refreshToken": access}).status_code == 401

    ghost = SimpleNamespace(id="missing", email="x@example.com", role="staff", first_name="X", last_name="Y")
    assert client.post("/auth/refresh", json={"refreshToken": create_refresh_token(ghost)}).status_code == 401
