from __future__ import annotations

from urllib.parse import quote

from fastapi import APIRouter, Form, Request
from fastapi.responses import HTMLResponse, RedirectResponse

from kardo.core import csrf
from kardo.core.errors import KardoError
from kardo.core.rate_limiter import rate_limit_ip
from kardo.domain.codes import normalize_code
from kardo.routers.common import current_user, login_redirect, render
from kardo.services.claim_service import CardAlreadyClaimedError, ClaimService

router = APIRouter(prefix="", tags=["claim"])
claim_service = ClaimService()


@router.get("/claim", response_class=HTMLResponse)
def claim_form(request: Request, code: str = "", error: str = "", claimed: str = ""):
    context = {
        "code": normalize_code(code),
        "error": error,
        "claimed": claimed,
        "is_authenticated": current_user(request) is not None,
    }
    return render(request, "claim.html", context)


@router.post("/claim")
def claim_submit(request: Request, code: str = Form(""), csrf_token: str = Form("")):
    rate_limit_ip(request, "claim", limit=20, window_seconds=60)
    csrf.validate_csrf(request, csrf_token)
    card_code = normalize_code(code)
    user = current_user(request)
    if not user:
        return login_redirect(f"/claim?code={quote(card_code, safe='')}")
    try:
        result = claim_service.claim(card_code, user)
    except CardAlreadyClaimedError as exc:
        # already claimed: let the resolver show whose card it is
        return RedirectResponse(f"/c/{quote(exc.code, safe='')}", status_code=303)
    except KardoError as exc:
        dest = f"/claim?code={quote(card_code, safe='')}&error={quote(exc.message, safe='')}"
        return RedirectResponse(dest, status_code=303)
    return RedirectResponse(f"/profile?claimed={quote(result.code, safe='')}", status_code=303)
