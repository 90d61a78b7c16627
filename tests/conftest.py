import os

# Must be set before workshop_crm is imported
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["JWT_SECRET"] = "test-secret-key"
os.environ["TRACKER_SAVE_DEBOUNCE_SECONDS"] = "60"
os.environ.pop("REDIS_URL", None)

from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient

from workshop_crm.database import Base, SessionLocal, engine
from workshop_crm.main import app
from workshop_crm.security_utils import create_access_token


@pytest.fixture(autouse=True)
def reset_database():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client():
    with TestClient(app) as c:
        yield c


def make_token(role: str = "admin", user_id: str = "user-1") -> str:
    user = SimpleNamespace(
        id=user_id,
        email=f"{role}@example.com",
        role=role,
        first_name=role.title(),
        last_name="User",
    )
    return create_access_token(user)


def auth_headers(role: str = "admin") -> dict:
    return {"Authorization": f"Bearer {make_token(role)}"}


@pytest.fixture
def admin_headers():
    return auth_headers("admin")


@pytest.fixture
def staff_headers():
    return auth_headers("staff")


@pytest.fixture
def customer_headers():
    return auth_headers("customer")
