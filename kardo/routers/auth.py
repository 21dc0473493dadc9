from __future__ import annotations

from urllib.parse import quote

from fastapi import APIRouter, Form, Request
from fastapi.responses import RedirectResponse

from kardo.core import csrf
from kardo.core.config import get_settings
from kardo.core.rate_limiter import rate_limit_ip
from kardo.routers.common import render
from kardo.services.auth_service import (
    AccountExistsError,
    AuthService,
    InvalidCredentialsError,
    LoginVerificationRequired,
    RegistrationClosedError,
    RegistrationError,
    TokenInvalidError,
)
from kardo.services.session_service import SESSION_COOKIE_NAME, clear_session_cookie, set_session_cookie

router = APIRouter(prefix="/auth", tags=["auth"])
auth_service = AuthService()


def _login_error(message: str, next_path: str, mode: str = "login") -> RedirectResponse:
    dest = f"/login?mode={mode}&error={quote(message, safe='')}&next={quote(next_path or '', safe='')}"
    return RedirectResponse(dest, status_code=303)


def _confirm_page(request: Request, *, email: str, email_sent: bool, verify_path: str, resent: bool = False):
    context = {
        "email": email,
        "email_sent": email_sent,
        "resent": resent,
        # outside prod the link is shown so local setups work without SMTP
        "dev_verify_path": verify_path if (get_settings().app_env != "prod" or not email_sent) else "",
    }
    return render(request, "confirm_email.html", context)


@router.post("/signup")
def signup(
    request: Request,
    email: str = Form(...),
    password: str = Form(...),
    next: str = Form("/profile"),
    csrf_token: str = Form(""),
):
    rate_limit_ip(request, "auth:signup", limit=5, window_seconds=300)
    csrf.validate_csrf(request, csrf_token)
    try:
        result = auth_service.signup(email, password, next)
    except RegistrationClosedError as exc:
        return _login_error(exc.message, next, "login")
    except AccountExistsError as exc:
        return _login_error(exc.message, next, "login")
    except RegistrationError as exc:
        return _login_error(exc.message, next, "signup")
    return _confirm_page(request, email=result.email, email_sent=result.email_sent, verify_path=result.verify_path)


@router.post("/login")
def do_login(
    request: Request,
    email: str = Form(...),
    password: str = Form(...),
    next: str = Form("/profile"),
    csrf_token: str = Form(""),
):
    rate_limit_ip(request, "auth:login", limit=10, window_seconds=60)
    csrf.validate_csrf(request, csrf_token)
    try:
        outcome = auth_service.login(email, password, next)
    except InvalidCredentialsError as exc:
        return _login_error(exc.message, next)
    if isinstance(outcome, LoginVerificationRequired):
        return _confirm_page(
            request,
            email=outcome.email,
            email_sent=outcome.email_sent,
            verify_path=outcome.verify_path,
            resent=outcome.email_sent,
        )
    resp = RedirectResponse(outcome.next_path, status_code=303)
    set_session_cookie(resp, outcome.session_token)
    return resp


@router.get("/verify")
def verify_email(request: Request, token: str = ""):
    try:
        result = auth_service.verify_email(token)
    except TokenInvalidError as exc:
        return RedirectResponse(f"/login?error={quote(exc.message, safe='')}", status_code=303)
    resp = RedirectResponse(result.next_path, status_code=303)
    set_session_cookie(resp, result.session_token)
    return resp


@router.post("/logout")
def logout(request: Request, csrf_token: str = Form("")):
    csrf.validate_csrf(request, csrf_token)
    auth_service.logout(request.cookies.get(SESSION_COOKIE_NAME))
    resp = RedirectResponse("/", status_code=303)
    clear_session_cookie(resp)
    return resp
