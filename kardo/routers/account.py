from __future__ import annotations

from fastapi import APIRouter, Request
from fastapi.responses import HTMLResponse, JSONResponse

from kardo.core import csrf
from kardo.core.rate_limiter import rate_limit_ip
from kardo.routers.common import current_user, login_redirect, render
from kardo.services.auth_service import AuthService
from kardo.services.profile_service import ProfileService
from kardo.services.session_service import clear_session_cookie

router = APIRouter(prefix="", tags=["account"])
auth_service = AuthService()
profile_service = ProfileService()


@router.get("/settings", response_class=HTMLResponse)
def settings_page(request: Request):
    user = current_user(request)
    if not user:
        return login_redirect("/settings")
    return render(request, "settings.html", {"email": user.email})


@router.post("/api/account/delete")
async def delete_account(request: Request):
    user = current_user(request)
    if not user:
        return JSONResponse({"error": "Unauthorized"}, status_code=401)
    rate_limit_ip(request, "account:delete", limit=5, window_seconds=300)
    if "json" in (request.headers.get("content-type") or ""):
        try:
            payload = await request.json()
        except ValueError:
            return JSONResponse({"error": "Invalid JSON body"}, status_code=400)
        if not isinstance(payload, dict):
            return JSONResponse({"error": "Invalid JSON body"}, status_code=400)
    else:
        payload = dict(await request.form())
    csrf.validate_csrf(request, str(payload.get("csrf_token") or ""))
    if not auth_service.confirm_password(user.id, str(payload.get("password") or "")):
        return JSONResponse({"error": "Incorrect password"}, status_code=403)
    released = profile_service.delete_account(user.id)
    resp = JSONResponse({"success": True, "released_cards": released})
    clear_session_cookie(resp)
    return resp
