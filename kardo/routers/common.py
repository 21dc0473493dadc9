"""Helpers shared by the public routers: templates, CSRF-aware rendering, current user."""
from __future__ import annotations

from urllib.parse import quote

from fastapi import Request
from fastapi.responses import RedirectResponse

from kardo.core import csrf
from kardo.db.models import User
from kardo.repositories.sql_repository import SQLRepository
from kardo.services.session_service import current_user_id

_repo = SQLRepository()


def templates(request: Request):
    tpl = getattr(getattr(request.app, "state", None), "templates", None)
    if tpl:
        return tpl
    raise RuntimeError("Templates not configured")


def render(request: Request, name: str, context: dict | None = None, status_code: int = 200):
    """Render a template with a CSRF token and the signed-in user in context."""
    token = csrf.ensure_csrf_token(request)
    ctx = {"csrf_token": token, "current_user": current_user(request)}
    ctx.update(context or {})
    response = templates(request).TemplateResponse(request, name, ctx, status_code=status_code)
    csrf.set_csrf_cookie(response, token)
    return response


def current_user(request: Request) -> User | None:
    cached = getattr(request.state, "kardo_user", None)
    if cached is not None:
        return cached or None
    user_id = current_user_id(request)
    user = _repo.get_user(user_id) if user_id else None
    request.state.kardo_user = user or False
    return user


def login_redirect(next_path: str) -> RedirectResponse:
    return RedirectResponse(f"/login?next={quote(next_path, safe='')}", status_code=303)
