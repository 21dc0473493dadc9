"""
Shared fixtures: a temporary SQLite database and TestClients for both apps.
"""
from __future__ import annotations

import sys
from datetime import datetime, timezone
from pathlib import Path

import pytest

# Make the kardo package importable when running the tests from a checkout
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from kardo.core import config as core_config
from kardo.core.rate_limiter import limiter
from kardo.core.security import hash_password
from kardo.db import create_tables
from kardo.db import session as db_session
from kardo.repositories.sql_repository import SQLRepository

PASSWORD = "correct-horse-battery"


@pytest.fixture()
def temp_db(tmp_path, monkeypatch):
    """Point DATABASE_URL at a fresh SQLite file and tear it down completely afterwards."""
    db_file = tmp_path / "test.db"
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{db_file}")
    monkeypatch.setenv("UPLOADS_DIR", str(tmp_path / "uploads"))
    monkeypatch.setenv("APP_ENV", "test")
    for name in ("SMTP_HOST", "SMTP_USER", "SMTP_PASSWORD"):
        monkeypatch.delenv(name, raising=False)
    # clear caches so the new environment is picked up
    core_config.get_settings.cache_clear()
    db_session.get_engine.cache_clear()
    db_session._get_sessionmaker.cache_clear()  # type: ignore[attr-defined]
    limiter.reset()

    create_tables.drop_all()
    create_tables.create_all()

    yield db_file

    create_tables.drop_all()
    db_session.get_engine().dispose()
    db_session.get_engine.cache_clear()
    db_session._get_sessionmaker.cache_clear()  # type: ignore[attr-defined]
    core_config.get_settings.cache_clear()


@pytest.fixture()
def repo(temp_db) -> SQLRepository:
    return SQLRepository()


@pytest.fixture()
def make_user(repo):
    """Create a verified user, optionally with a profile."""

    def _make(email: str = "jane.doe@example.com", *, handle: str | None = None, user_type: str = "user", **fields):
        user = repo.create_user(email, hash_password(PASSWORD), email_verified_at=datetime.now(timezone.utc))
        if handle:
            repo.create_profile(user.id, handle, user_type=user_type, **fields)
        return user

    return _make


@pytest.fixture()
def client(temp_db):
    from fastapi.testclient import TestClient

    from kardo.app import app

    with TestClient(app) as c:
        yield c


@pytest.fixture()
def admin_client(temp_db):
    from fastapi.testclient import TestClient

    from kardo.admin_app import app

    with TestClient(app) as c:
        yield c


def csrf_token(client) -> str:
    """Fetch a page so the double-submit cookie is set, then return its value."""
    if not client.cookies.get("kardo_csrf"):
        client.get("/login")
    return client.cookies.get("kardo_csrf")


def login(client, email: str = "jane.doe@example.com", password: str = PASSWORD, next_path: str = "/profile"):
    token = csrf_token(client)
    return client.post(
        "/auth/login",
        data={"email": email, "password": password, "next": next_path, "csrf_token": token},
        follow_redirects=False,
    )
