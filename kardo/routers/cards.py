"""Card code entry points: ``/c/{code}`` redirects and the code-derived vCard."""
from __future__ import annotations

from urllib.parse import quote

from fastapi import APIRouter
from fastapi.responses import JSONResponse, RedirectResponse, Response

from kardo.core.errors import InfrastructureError, NotFoundError
from kardo.core.logging import get_logger
from kardo.core.utils import profile_path
from kardo.repositories.sql_repository import SQLRepository
from kardo.services.card_resolver import Outcome, Resolution, resolve_code
from kardo.services.vcard_service import VCardService
from kardo.routers.profiles import vcard_response

router = APIRouter(prefix="/c", tags=["cards"])
log = get_logger(__name__)
_repo = SQLRepository()
vcard_service = VCardService(_repo)


def resolution_response(resolution: Resolution) -> Response:
    """Map a resolver outcome onto the public HTTP contract."""
    if resolution.outcome is Outcome.RESOLVED:
        return RedirectResponse(profile_path(resolution.handle), status_code=303)
    if resolution.outcome is Outcome.NEEDS_CLAIM:
        return RedirectResponse(f"/claim?code={quote(resolution.code, safe='')}", status_code=303)
    if resolution.outcome is Outcome.DISABLED:
        return RedirectResponse("/card-disabled", status_code=303)
    if resolution.outcome is Outcome.ERROR:
        return JSONResponse({"error": "Card lookup error", "message": resolution.message}, status_code=500)
    return RedirectResponse("/unknown-card", status_code=303)


@router.get("/{code}")
def card_entry(code: str):
    resolution = resolve_code(code, _repo)
    if resolution.outcome is Outcome.ERROR:
        log.error("card.lookup_failed", message=resolution.message)
    return resolution_response(resolution)


@router.get("/{code}/vcf")
def card_vcard(code: str):
    try:
        rendered = vcard_service.render_for_code(code)
    except NotFoundError:
        return Response("Not found", status_code=404, media_type="text/plain")
    except InfrastructureError as exc:
        log.error("vcard.lookup_failed", message=exc.message)
        return Response(exc.message, status_code=500, media_type="text/plain")
    return vcard_response(rendered)
