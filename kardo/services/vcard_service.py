"""Load a profile by handle (or card code) and render it as a vCard."""
from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy.exc import SQLAlchemyError

from kardo.core.errors import InfrastructureError, ProfileNotFoundError
from kardo.domain.handles import normalize_handle
from kardo.domain.vcard import build_vcard
from kardo.repositories.sql_repository import SQLRepository
from kardo.services.card_resolver import Outcome, resolve_code

VCARD_MEDIA_TYPE = "text/vcard; charset=utf-8"


@dataclass(frozen=True)
class RenderedVCard:
    handle: str
    body: str

    @property
    def filename(self) -> str:
        return f"{self.handle}.vcf"


class VCardService:
    def __init__(self, repository=None) -> None:
        self.repository = repository or SQLRepository()

    def render(self, handle: str) -> RenderedVCard:
        lookup = normalize_handle(handle)
        if not lookup:
            raise ProfileNotFoundError("Not found")
        try:
            profile = self.repository.get_profile_by_handle(lookup)
        except SQLAlchemyError as exc:
            raise InfrastructureError(f"Profile lookup error: {exc}") from exc
        if profile is None:
            raise ProfileNotFoundError("Not found")
        return RenderedVCard(handle=lookup, body=build_vcard(profile, fallback_name=lookup))

    def render_for_code(self, raw_code: str) -> RenderedVCard:
        resolution = resolve_code(raw_code, self.repository)
        if resolution.outcome is Outcome.ERROR:
            raise InfrastructureError(resolution.message)
        if resolution.outcome is not Outcome.RESOLVED:
            raise ProfileNotFoundError("Not found")
        return self.render(resolution.handle)
