from __future__ import annotations

from fastapi import APIRouter, Request
from fastapi.responses import HTMLResponse, PlainTextResponse

from kardo.core.utils import safe_next_path
from kardo.routers.common import render
from kardo.services.auth_service import AuthService

router = APIRouter(prefix="", tags=["pages"])
auth_service = AuthService()


@router.get("/", response_class=HTMLResponse)
def home(request: Request, deleted: str = ""):
    return render(request, "home.html", {"deleted": bool(deleted)})


@router.get("/unknown-card", response_class=HTMLResponse)
def unknown_card(request: Request):
    return render(request, "unknown_card.html")


@router.get("/card-disabled", response_class=HTMLResponse)
def card_disabled(request: Request):
    return render(request, "card_disabled.html")


@router.get("/login", response_class=HTMLResponse)
def login(request: Request, next: str = "", error: str = "", mode: str = "login"):
    context = {
        "next": safe_next_path(next, "/profile"),
        "error": error,
        "mode": "signup" if mode == "signup" else "login",
        "registration_enabled": auth_service.registration_enabled(),
    }
    return render(request, "login.html", context)


# Silence Chrome devtools probes (avoids noisy 404s in the logs)
@router.get("/.well-known/appspecific/com.chrome.devtools.json")
def chrome_devtools_wellknown():
    return PlainTextResponse("", status_code=204)
