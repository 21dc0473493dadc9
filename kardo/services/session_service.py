"""Session helpers (issue tokens, cookies, validation)."""
from __future__ import annotations

from datetime import datetime, timedelta, timezone

from fastapi import Request, Response

from kardo.core.config import get_settings
from kardo.repositories.sql_repository import SQLRepository

SESSION_COOKIE_NAME = "kardo_session"

_repo = SQLRepository()


def as_utc(value: datetime | None) -> datetime | None:
    """SQLite hands back naive datetimes; treat them as UTC."""
    if value is None:
        return None
    return value.astimezone(timezone.utc) if value.tzinfo else value.replace(tzinfo=timezone.utc)


def issue_session(user_id: str) -> str:
    """Create a new session token for ``user_id`` and persist it."""
    ttl = max(60, get_settings().session_ttl_seconds)
    expires_at = datetime.now(timezone.utc) + timedelta(seconds=ttl)
    return _repo.create_user_session(user_id, expires_at)


def current_user_id(request: Request) -> str | None:
    """Return the user id bound to the session cookie, if the session is still valid."""
    token = request.cookies.get(SESSION_COOKIE_NAME)
    if not token:
        return None
    entity = _repo.get_user_session(token)
    if not entity:
        return None
    if as_utc(entity.expires_at) < datetime.now(timezone.utc):
        _repo.delete_user_session(token)
        return None
    return entity.user_id


def set_session_cookie(response: Response, token: str) -> None:
    settings = get_settings()
    response.set_cookie(
        SESSION_COOKIE_NAME,
        token,
        httponly=True,
        secure=settings.app_env == "prod",
        samesite="lax",
        max_age=settings.session_ttl_seconds,
        path="/",
    )


def clear_session_cookie(response: Response) -> None:
    response.delete_cookie(SESSION_COOKIE_NAME, path="/")


def delete_session(token: str | None) -> None:
    if not token:
        return
    _repo.delete_user_session(token)
