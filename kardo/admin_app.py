from __future__ import annotations

import html
import secrets
from datetime import datetime, timedelta, timezone
from typing import Optional
from urllib.parse import quote

from fastapi import FastAPI, Form, HTTPException, Request
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse

from kardo.core.config import get_settings
from kardo.core.errors import (
    CardNotFoundError,
    ExhaustedAttemptsError,
    InfrastructureError,
    ValidationError,
)
from kardo.core.logging import get_logger, setup_logging
from kardo.core.rate_limiter import rate_limit_ip
from kardo.core.security import verify_password
from kardo.core.utils import safe_next_path
from kardo.db.models import CARD_STATUS_DISABLED
from kardo.repositories.sql_repository import SQLRepository
from kardo.services.admin_service import CARD_FILTERS, STATUS_LABELS, AdminService, ReauthenticationRequired
from kardo.services.session_service import as_utc

settings = get_settings()
setup_logging(settings)
log = get_logger(__name__)

app = FastAPI(title="Kardo Admin")
repo = SQLRepository()
admin_service = AdminService(repo)

ADMIN_COOKIE = "kardo_admin_session"
ADMIN_COOKIE_SECURE = settings.app_env == "prod"


# ---------------------- helpers ----------------------
def _issue_admin_session(user_id: str) -> tuple[str, str]:
    csrf_token = secrets.token_urlsafe(32)
    expires_at = datetime.now(timezone.utc) + timedelta(seconds=settings.admin_session_ttl_seconds)
    token = repo.create_admin_session(user_id, csrf_token, expires_at)
    return token, csrf_token


def _load_admin_session(token: Optional[str]):
    if not token:
        return None
    sess = repo.get_admin_session(token)
    if not sess or as_utc(sess.expires_at) < datetime.now(timezone.utc):
        repo.delete_admin_session(token)
        return None
    return sess


def require_admin(request: Request) -> str:
    sess = _load_admin_session(request.cookies.get(ADMIN_COOKIE))
    if not sess:
        raise HTTPException(401, "not authenticated")
    if not admin_service.is_admin(sess.user_id):
        raise HTTPException(403, "forbidden")
    return sess.user_id


def _csrf_protect(request: Request, form_token: str) -> str:
    """Validate the session-bound CSRF token (form field or X-CSRF-Token header); returns the admin id."""
    admin_id = require_admin(request)
    sess = _load_admin_session(request.cookies.get(ADMIN_COOKIE))
    supplied = (form_token or "").strip() or (request.headers.get("x-csrf-token") or "").strip()
    if not sess or not supplied or not secrets.compare_digest(sess.csrf_token, supplied):
        raise HTTPException(403, "invalid csrf token")
    return admin_id


def _csrf_value(request: Request) -> str:
    sess = _load_admin_session(request.cookies.get(ADMIN_COOKIE))
    return sess.csrf_token if sess else ""


def _back(ok: str = "", error: str = "") -> RedirectResponse:
    if error:
        return RedirectResponse(f"/?error={quote(error, safe='')}", status_code=303)
    return RedirectResponse(f"/?ok={quote(ok, safe='')}", status_code=303)


def _layout(title: str, body: str, csrf_token: str = "") -> HTMLResponse:
    return HTMLResponse(
        f"""
        <!doctype html><html lang='en'><head>
        <meta charset='utf-8'><meta name='viewport' content='width=device-width,initial-scale=1'>
        <link rel="stylesheet" href="https://unpkg.com/@picocss/pico@2.0.6/css/pico.min.css">
        <title>{html.escape(title)}</title>
        <style>table {{font-size:14px}} td,th {{white-space:nowrap}} form.inline {{display:inline}}</style>
        </head><body>
        <main class="container">
          <nav><ul><li><strong>Kardo Admin</strong></li></ul>
              <ul><li><a href="/">Cards</a></li><li><a href="/logout">Sign out</a></li></ul>
          </nav>
          {body}
        </main>
        </body></html>
        """,
        headers={"X-CSRF-Token": csrf_token} if csrf_token else None,
    )


def _password_form(action: str, label: str, csrf_token: str, confirm: str = "") -> str:
    onsubmit = f" onsubmit=\"return confirm('{html.escape(confirm)}');\"" if confirm else ""
    return (
        f"<form method='post' action='{html.escape(action)}' class='inline'{onsubmit}>"
        f"<input type='hidden' name='csrf_token' value='{csrf_token}'>"
        "<input type='password' name='password' placeholder='Your password' required style='width:140px;display:inline'>"
        f"<button class='secondary' style='margin:0 4px'>{html.escape(label)}</button>"
        "</form>"
    )


def _plain_form(action: str, label: str, csrf_token: str) -> str:
    return (
        f"<form method='post' action='{html.escape(action)}' class='inline'>"
        f"<input type='hidden' name='csrf_token' value='{csrf_token}'>"
        f"<button class='secondary' style='margin:0 4px'>{html.escape(label)}</button>"
        "</form>"
    )


def _card_row(c, csrf_token: str) -> str:
    code = html.escape(c.code)
    actions = []
    if c.nfc_tag_assigned:
        # reversing an assignment requires the admin's password; assigning does not
        actions.append(_password_form(f"/cards/{code}/unassign", "Unassign NFC", csrf_token))
    else:
        actions.append(_plain_form(f"/cards/{code}/assign", "Assign NFC", csrf_token))
    if c.profile_id:
        actions.append(_password_form(f"/cards/{code}/unclaim", "Unclaim", csrf_token))
    if c.status != CARD_STATUS_DISABLED:
        actions.append(_plain_form(f"/cards/{code}/disable", "Disable", csrf_token))
    actions.append(
        _password_form(f"/cards/{code}/delete", "Delete", csrf_token, confirm="Delete this card? This cannot be undone.")
    )
    claimed = c.claimed_at.strftime("%Y-%m-%d %H:%M") if c.claimed_at else "—"
    return (
        f"<tr>"
        f"<td><a href='/cards/{code}'><code>{code}</code></a></td>"
        f"<td>{html.escape(STATUS_LABELS.get(c.status, c.status))}</td>"
        f"<td>{'Yes' if c.nfc_tag_assigned else 'No'}</td>"
        f"<td>{html.escape(claimed)}</td>"
        f"<td>{''.join(actions)}</td>"
        f"</tr>"
    )


# ---------------------- auth ----------------------
@app.get("/login", response_class=HTMLResponse)
def login_page(next: str = "/", error: str = ""):
    messages = {
        "credentials": "Invalid credentials.",
        "forbidden": "This account is not an administrator.",
    }
    msg = messages.get(error, "")
    return HTMLResponse(
        f"""
        <!doctype html><html lang='en'><head>
        <meta charset='utf-8'><meta name='viewport' content='width=device-width,initial-scale=1'>
        <link rel="stylesheet" href="https://unpkg.com/@picocss/pico@2.0.6/css/pico.min.css">
        <title>Kardo Admin | Sign in</title></head>
        <body><main class="container">
          <article>
            <h1>Kardo Admin</h1>
            {('<mark role="alert">' + html.escape(msg) + '</mark>') if msg else ''}
            <form method='post' action='/login'>
              <input type='hidden' name='next' value='{html.escape(next)}'>
              <label>E-mail</label><input name='email' type='email' required>
              <label>Password</label><input name='password' type='password' required>
              <button style='margin-top:12px'>Sign in</button>
            </form>
          </article>
        </main></body></html>
        """
    )


@app.post("/login")
def do_login(request: Request, email: str = Form(...), password: str = Form(...), next: str = Form("/")):
    rate_limit_ip(request, "admin:login", limit=5, window_seconds=60)
    user = repo.get_user_by_email(email)
    if not user or not verify_password(password, user.password_hash):
        return RedirectResponse("/login?error=credentials", status_code=303)
    if not admin_service.is_admin(user.id):
        return RedirectResponse("/login?error=forbidden", status_code=303)
    tok, csrf_token = _issue_admin_session(user.id)
    resp = RedirectResponse(safe_next_path(next), status_code=303)
    resp.set_cookie(
        ADMIN_COOKIE,
        value=tok,
        httponly=True,
        samesite="strict",
        secure=ADMIN_COOKIE_SECURE,
        max_age=settings.admin_session_ttl_seconds,
        path="/",
    )
    resp.headers["X-CSRF-Token"] = csrf_token
    return resp


@app.get("/logout")
def logout(request: Request):
    tok = request.cookies.get(ADMIN_COOKIE)
    if tok:
        repo.delete_admin_session(tok)
    resp = RedirectResponse("/login", status_code=303)
    resp.delete_cookie(ADMIN_COOKIE, path="/")
    return resp


# ---------------------- dashboard ----------------------
@app.get("/", response_class=HTMLResponse)
def dashboard(request: Request, filter: str = "all", q: str = "", ok: str = "", error: str = ""):
    try:
        require_admin(request)
    except HTTPException:
        return RedirectResponse("/login?next=/", status_code=303)
    csrf_token = _csrf_value(request)
    stats = admin_service.stats()
    registration = admin_service.registration_enabled()
    cards = admin_service.list_cards(filter, q)
    rows = "\n".join(_card_row(c, csrf_token) for c in cards)
    alert = ""
    if error:
        alert = f"<mark role='alert' style='display:block'>{html.escape(error)}</mark>"
    elif ok:
        alert = f"<mark role='status' style='display:block'>{html.escape(ok)}</mark>"
    options = "".join(
        f"<option value='{name}' {'selected' if name == filter else ''}>{name.capitalize()}</option>"
        for name in CARD_FILTERS
    )
    body = f"""
      {alert}
      <article>
        <h3>Summary</h3>
        <div class='grid'>
          <div>Total <b>{stats.total}</b></div>
          <div>NFC assigned <b>{stats.assigned}</b></div>
          <div>NFC unassigned <b>{stats.unassigned}</b></div>
          <div>Claimed <b>{stats.claimed}</b></div>
          <div>Unclaimed <b>{stats.unclaimed}</b></div>
          <div>Disabled <b>{stats.disabled}</b></div>
        </div>
      </article>
      <article>
        <h3>Registration</h3>
        <p>New signups are <b>{'open' if registration else 'closed'}</b>.</p>
        {_plain_form('/settings/registration', 'Close registration' if registration else 'Open registration', csrf_token)}
      </article>
      <article>
        <h3>Generate cards</h3>
        <form method='post' action='/cards/generate' class='grid'>
          <input type='hidden' name='csrf_token' value='{csrf_token}'>
          <label>Count <input name='count' type='number' min='1' max='1000' value='10' required></label>
          <label>Code length <input name='codeLength' type='number' min='6' max='16' value='8' required></label>
          <button>Generate</button>
        </form>
        <p><small>New cards start unclaimed with no NFC tag assigned.</small></p>
      </article>
      <article>
        <h3>Cards</h3>
        <form class='grid' method='get' action='/'>
          <input name='q' placeholder='code' value='{html.escape(q)}'>
          <select name='filter'>{options}</select>
          <button>Filter</button>
        </form>
        <table role='grid'>
          <thead><tr><th>Code</th><th>Status</th><th>NFC</th><th>Claimed</th><th>Actions</th></tr></thead>
          <tbody>{rows or '<tr><td colspan="5">No cards</td></tr>'}</tbody>
        </table>
      </article>
    """
    return _layout("Kardo Admin | Cards", body, csrf_token=csrf_token)


@app.get("/cards/{code}", response_class=HTMLResponse)
def card_details(code: str, request: Request):
    try:
        require_admin(request)
    except HTTPException:
        return RedirectResponse(f"/login?next=/cards/{quote(code, safe='')}", status_code=303)
    card = repo.get_card(code)
    if not card:
        return _back(error=f"Card {code} not found")
    profile = repo.get_profile(card.profile_id) if card.profile_id else None
    handle = html.escape(profile.handle) if profile else ""
    body = f"""
    <article>
      <h3>Card {html.escape(card.code)}</h3>
      <p><strong>Status:</strong> {html.escape(STATUS_LABELS.get(card.status, card.status))}</p>
      <p><strong>NFC tag assigned:</strong> {'Yes' if card.nfc_tag_assigned else 'No'}</p>
      <p><strong>Created:</strong> {html.escape(str(card.created_at or ''))}</p>
      <p><strong>Claimed:</strong> {html.escape(str(card.claimed_at or '—'))}</p>
      <p><strong>Profile:</strong> {f"<code>{handle}</code>" if handle else '—'}</p>
    </article>
    <p><a class='secondary' href='/'>Back</a></p>
    """
    return _layout(f"Kardo Admin | {card.code}", body, csrf_token=_csrf_value(request))


# ---------------------- generation ----------------------
@app.post("/cards/generate", response_class=HTMLResponse)
def generate_cards_form(request: Request, count: str = Form("1"), codeLength: str = Form("8"), csrf_token: str = Form("")):
    _csrf_protect(request, csrf_token)
    try:
        codes = admin_service.generate_cards(count, codeLength)
    except (ValidationError, ExhaustedAttemptsError, InfrastructureError) as exc:
        return _back(error=exc.message)
    items = "".join(f"<li><code>{html.escape(c)}</code></li>" for c in codes)
    body = f"""
    <article>
      <h3>Generated {len(codes)} cards</h3>
      <ul>{items}</ul>
      <p><a href='/' role='button'>Back to cards</a></p>
    </article>
    """
    return _layout("Kardo Admin | Generated", body, csrf_token=_csrf_value(request))


@app.post("/api/cards/generate")
async def generate_cards_api(request: Request):
    try:
        admin_id = require_admin(request)
    except HTTPException as exc:
        return JSONResponse({"error": "Unauthorized" if exc.status_code == 401 else "Forbidden"}, status_code=exc.status_code)
    try:
        body = await request.json()
    except ValueError:
        body = {}
    if not isinstance(body, dict):
        body = {}
    _csrf_protect(request, str(body.get("csrf_token") or ""))
    try:
        codes = admin_service.generate_cards(body.get("count"), body.get("codeLength"))
    except ValidationError as exc:
        return JSONResponse({"error": exc.message}, status_code=400)
    except ExhaustedAttemptsError as exc:
        return JSONResponse({"error": exc.message}, status_code=409)
    except InfrastructureError as exc:
        log.error("cards.generation_failed", admin_id=admin_id, message=exc.message)
        return JSONResponse({"error": exc.message}, status_code=500)
    return {"success": True, "count": len(codes), "codes": codes}


# ---------------------- card actions ----------------------
def _card_action(fn, ok_message: str) -> RedirectResponse:
    try:
        fn()
    except ReauthenticationRequired as exc:
        return _back(error=exc.message)
    except CardNotFoundError as exc:
        return _back(error=exc.message)
    return _back(ok=ok_message)


@app.post("/cards/{code}/assign")
def assign_nfc(code: str, request: Request, csrf_token: str = Form("")):
    _csrf_protect(request, csrf_token)
    return _card_action(lambda: admin_service.assign_nfc(code), f"Card {code} assigned to an NFC tag")


@app.post("/cards/{code}/unassign")
def unassign_nfc(code: str, request: Request, csrf_token: str = Form(""), password: str = Form("")):
    admin_id = _csrf_protect(request, csrf_token)
    return _card_action(lambda: admin_service.unassign_nfc(admin_id, code, password), f"Card {code} unassigned")


@app.post("/cards/{code}/unclaim")
def unclaim_card(code: str, request: Request, csrf_token: str = Form(""), password: str = Form("")):
    admin_id = _csrf_protect(request, csrf_token)
    return _card_action(lambda: admin_service.unclaim(admin_id, code, password), f"Card {code} has been unclaimed")


@app.post("/cards/{code}/disable")
def disable_card(code: str, request: Request, csrf_token: str = Form("")):
    _csrf_protect(request, csrf_token)
    return _card_action(lambda: admin_service.disable(code), f"Card {code} disabled")


@app.post("/cards/{code}/delete")
def delete_card(code: str, request: Request, csrf_token: str = Form(""), password: str = Form("")):
    admin_id = _csrf_protect(request, csrf_token)
    return _card_action(lambda: admin_service.delete(admin_id, code, password), f"Card {code} deleted")


# ---------------------- settings ----------------------
@app.post("/settings/registration")
def toggle_registration(request: Request, csrf_token: str = Form("")):
    _csrf_protect(request, csrf_token)
    enabled = admin_service.toggle_registration()
    return _back(ok="Registration opened" if enabled else "Registration closed")


def create_admin_app() -> FastAPI:
    """Factory for uvicorn/gunicorn."""
    return app
