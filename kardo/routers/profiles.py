"""Public profile pages, vCard and QR downloads, and the signed-in profile editor."""
from __future__ import annotations

from urllib.parse import quote

from fastapi import APIRouter, File, Form, Request, UploadFile
from fastapi.responses import HTMLResponse, RedirectResponse, Response

from kardo.core import csrf
from kardo.core.errors import InfrastructureError, NotFoundError, ProfileNotFoundError, ValidationError
from kardo.core.logging import get_logger
from kardo.core.utils import profile_path
from kardo.repositories.sql_repository import SQLRepository
from kardo.routers.common import current_user, login_redirect, render
from kardo.services.profile_service import SOCIAL_FIELDS, ProfileService
from kardo.services.qr_service import profile_share_url, qr_png
from kardo.services.vcard_service import VCARD_MEDIA_TYPE, RenderedVCard, VCardService

router = APIRouter(prefix="", tags=["profiles"])
log = get_logger(__name__)
_repo = SQLRepository()
profile_service = ProfileService(_repo)
vcard_service = VCardService(_repo)


def vcard_response(rendered: RenderedVCard) -> Response:
    return Response(
        rendered.body,
        media_type=VCARD_MEDIA_TYPE,
        headers={
            "Content-Disposition": f'inline; filename="{rendered.filename}"',
            "Cache-Control": "no-store",
        },
    )


def _vcard_for_handle(handle: str) -> Response:
    try:
        rendered = vcard_service.render(handle)
    except NotFoundError:
        return Response("Not found", status_code=404, media_type="text/plain")
    except InfrastructureError as exc:
        log.error("vcard.lookup_failed", handle=handle, message=exc.message)
        return Response(exc.message, status_code=500, media_type="text/plain")
    return vcard_response(rendered)


# the .vcf routes must be registered before /u/{handle}
@router.get("/u/{handle}.vcf")
def vcard_download(handle: str):
    return _vcard_for_handle(handle)


@router.get("/u/{handle}/vcf")
def vcard_download_path(handle: str):
    return _vcard_for_handle(handle)


@router.get("/u/{handle}", response_class=HTMLResponse)
def public_profile(handle: str, request: Request):
    try:
        profile = profile_service.get_public(handle)
    except ProfileNotFoundError:
        return render(request, "not_found.html", {"handle": handle}, status_code=404)
    socials = [(name, getattr(profile, name)) for name in SOCIAL_FIELDS if getattr(profile, name)]
    user = current_user(request)
    context = {
        "profile": profile,
        "socials": socials,
        "share_url": profile_share_url(profile.handle),
        "is_owner": bool(user and user.id == profile.id),
    }
    return render(request, "public_profile.html", context)


@router.get("/q/{handle}.png")
def qr(handle: str):
    try:
        profile = profile_service.get_public(handle)
    except ProfileNotFoundError:
        return Response("Not found", status_code=404, media_type="text/plain")
    return Response(qr_png(profile_share_url(profile.handle)), media_type="image/png")


# ------------------------------------------------------------------ editor
@router.get("/profile", response_class=HTMLResponse)
def edit_profile(request: Request, saved: str = "", error: str = ""):
    user = current_user(request)
    if not user:
        return login_redirect("/profile")
    profile = profile_service.get_or_create(user)
    cards = _repo.get_cards_for_profile(profile.id)
    context = {
        "profile": profile,
        "cards": cards,
        "saved": bool(saved),
        "error": error,
        "public_path": profile_path(profile.handle),
    }
    return render(request, "profile_edit.html", context)


@router.post("/profile")
async def save_profile(request: Request):
    user = current_user(request)
    if not user:
        return login_redirect("/profile")
    form = await request.form()
    csrf.validate_csrf(request, str(form.get("csrf_token") or ""))
    profile = profile_service.get_or_create(user)
    values = {key: value for key, value in form.items() if isinstance(value, str)}
    try:
        profile_service.update(profile.id, values)
    except ValidationError as exc:
        return RedirectResponse(f"/profile?error={quote(exc.message, safe='')}", status_code=303)
    return RedirectResponse("/profile?saved=1", status_code=303)


@router.post("/profile/avatar")
async def upload_avatar(request: Request, avatar: UploadFile = File(...)):
    user = current_user(request)
    if not user:
        return login_redirect("/profile")
    form = await request.form()
    csrf.validate_csrf(request, str(form.get("csrf_token") or ""))
    profile = profile_service.get_or_create(user)
    data = await avatar.read()
    try:
        profile_service.replace_avatar(profile.id, data)
    except ValidationError as exc:
        return RedirectResponse(f"/profile?error={quote(exc.message, safe='')}", status_code=303)
    return RedirectResponse("/profile?saved=1", status_code=303)


@router.post("/profile/qr")
async def upload_qr_code(request: Request, qr_image: UploadFile = File(...)):
    user = current_user(request)
    if not user:
        return login_redirect("/profile")
    form = await request.form()
    csrf.validate_csrf(request, str(form.get("csrf_token") or ""))
    profile = profile_service.get_or_create(user)
    data = await qr_image.read()
    try:
        profile_service.replace_qr_code(profile.id, data)
    except ValidationError as exc:
        return RedirectResponse(f"/profile?error={quote(exc.message, safe='')}", status_code=303)
    return RedirectResponse("/profile?saved=1", status_code=303)


@router.post("/profile/qr/generate")
def generate_qr_code(request: Request, csrf_token: str = Form("")):
    user = current_user(request)
    if not user:
        return login_redirect("/profile")
    csrf.validate_csrf(request, csrf_token)
    profile = profile_service.get_or_create(user)
    profile_service.generate_qr_code(profile.id)
    return RedirectResponse("/profile?saved=1", status_code=303)


@router.post("/profile/qr/remove")
def remove_qr_code(request: Request, csrf_token: str = Form("")):
    user = current_user(request)
    if not user:
        return login_redirect("/profile")
    csrf.validate_csrf(request, csrf_token)
    profile = profile_service.get_or_create(user)
    profile_service.remove_qr_code(profile.id)
    return RedirectResponse("/profile?saved=1", status_code=303)
