"""Pytest configuration and shared fixtures."""

import os
from datetime import timedelta

# Select the test config and in-memory database before app imports
os.environ["APP_ENV"] = "test"
os.environ.setdefault("JWT_SECRET", "test-secret-key-for-testing-only-do-not-use-in-production-0123456789abcdef")
os.environ.setdefault("LOG_LEVEL", "WARNING")

import pytest  # noqa: E402

from api import create_app  # noqa: E402
from models import storage  # noqa: E402
from models.user_store import UserStore  # noqa: E402
from services.auth_service import AuthService  # noqa: E402
from services.revocation import InMemoryRevocationRegistry  # noqa: E402
from utils.security import TokenCodec  # noqa: E402

TEST_SECRET = os.environ["JWT_SECRET"]

ALICE = {
    "username": "alice",
    "email": "alice@x.com",
    "password": "secret1",
    "firstName": "Alice",
    "lastName": "Liddell",
}


@pytest.fixture(autouse=True)
def clean_db():
    """Fresh tables for every test."""
    storage.drop_all()
    storage.reload()
    yield
    storage.close()


@pytest.fixture
def app():
    return create_app("test")


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def auth_service(app):
    return app.extensions["auth_service"]


@pytest.fixture
def codec():
    return TokenCodec(TEST_SECRET, access_ttl=timedelta(minutes=15), refresh_ttl=timedelta(hours=1))


@pytest.fixture
def make_service():
    """Build an AuthService around the shared storage with custom token lifetimes."""

    def _make(access_ttl=timedelta(minutes=15), refresh_ttl=timedelta(hours=1), registry=None):
        return AuthService(
            store=UserStore(storage),
            codec=TokenCodec(TEST_SECRET, access_ttl=access_ttl, refresh_ttl=refresh_ttl),
            registry=registry or InMemoryRevocationRegistry(),
        )

    return _make


@pytest.fixture
def alice(auth_service):
    """Registered active user alice / secret1."""
    return auth_service.register(
        username=ALICE["username"],
        email=ALICE["email"],
        password=ALICE["password"],
        first_name=ALICE["firstName"],
        last_name=ALICE["lastName"],
    )


def bearer(token):
    return {"Authorization": f"Bearer {token}"}
