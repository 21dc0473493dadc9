import os

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, Response
from fastapi.staticfiles import StaticFiles
from fastapi.templating import Jinja2Templates
from starlette.middleware.base import BaseHTTPMiddleware

from kardo.core.config import get_settings
from kardo.core.logging import setup_logging
from kardo.routers import account as account_router
from kardo.routers import auth as auth_router
from kardo.routers import cards as cards_router
from kardo.routers import claim as claim_router
from kardo.routers import pages as pages_router
from kardo.routers import profiles as profiles_router
from kardo.services.media_service import UPLOADS_URL_PREFIX


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Inject baseline security headers (CSP, anti clickjacking, referrer policy)."""

    def __init__(self, app, *, enforce_hsts: bool) -> None:
        super().__init__(app)
        self._enforce_hsts = enforce_hsts

    async def dispatch(self, request, call_next):
        response = await call_next(request)
        response.headers.setdefault(
            "Content-Security-Policy",
            "default-src 'self'; "
            "img-src 'self' data:; "
            "style-src 'self' 'unsafe-inline'; "
            "script-src 'self' 'unsafe-inline'",
        )
        response.headers.setdefault("X-Frame-Options", "DENY")
        response.headers.setdefault("X-Content-Type-Options", "nosniff")
        response.headers.setdefault("Referrer-Policy", "strict-origin-when-cross-origin")
        if self._enforce_hsts:
            response.headers.setdefault("Strict-Transport-Security", "max-age=31536000; includeSubDomains")
        return response


class CachedStaticFiles(StaticFiles):
    def set_headers(self, scope, resp, path, stat_result):
        resp.headers["Cache-Control"] = "public, max-age=86400"


BASE = os.path.dirname(__file__)
WEB = os.path.join(BASE, "web")
TEMPLATES = os.path.join(BASE, "templates")

settings = get_settings()
setup_logging(settings)

app = FastAPI(title="Kardo")
app.mount("/static", CachedStaticFiles(directory=WEB), name="static")
os.makedirs(settings.uploads_dir, exist_ok=True)
app.mount(UPLOADS_URL_PREFIX, StaticFiles(directory=settings.uploads_dir), name="uploads")
app.state.templates = Jinja2Templates(directory=TEMPLATES)

allowed_cors = {settings.public_base_url}
if settings.app_env != "prod":
    allowed_cors.update({"http://localhost:8000", "http://127.0.0.1:8000"})
allowed_cors = {origin for origin in allowed_cors if origin}
if allowed_cors:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=sorted(allowed_cors),
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
    )
app.add_middleware(SecurityHeadersMiddleware, enforce_hsts=settings.app_env == "prod")


@app.get("/favicon.ico")
def favicon():
    ico_path = os.path.join(WEB, "favicon.ico")
    if os.path.exists(ico_path):
        return FileResponse(ico_path, media_type="image/x-icon")
    return Response(status_code=204)


app.include_router(pages_router.router)
app.include_router(auth_router.router)
app.include_router(cards_router.router)
app.include_router(profiles_router.router)
app.include_router(claim_router.router)
app.include_router(account_router.router)


def create_app() -> FastAPI:
    """Factory for uvicorn/gunicorn (``uvicorn kardo.app:create_app --factory``)."""
    return app
