"""Profile use cases: lazy creation, editing with handle uniqueness, account deletion."""
from __future__ import annotations

import re
from typing import Mapping

from sqlalchemy.exc import IntegrityError

from kardo.core.errors import ProfileNotFoundError, ValidationError
from kardo.core.logging import get_logger
from kardo.db.models import Profile, User
from kardo.domain.handles import handle_from_email, is_valid_handle, normalize_handle
from kardo.repositories.sql_repository import SQLRepository
from kardo.services import media_service, qr_service

log = get_logger(__name__)

TEXT_FIELDS = (
    "display_name",
    "title",
    "phone",
    "country_code",
    "email",
    "website",
    "bio",
    "pronouns",
    "company_name",
    "department",
    "office_address",
    "linkedin",
    "twitter",
    "instagram",
    "facebook",
    "github",
    "youtube",
    "tiktok",
    "whatsapp",
    "telegram",
    "calendar_link",
)
FLAG_FIELDS = ("searchable", "show_qr_code")
SOCIAL_FIELDS = ("linkedin", "twitter", "instagram", "facebook", "github", "youtube", "tiktok", "calendar_link")
MAX_TEXT_LENGTH = 512


class InvalidHandleError(ValidationError):
    pass


class HandleTakenError(ValidationError):
    pass


def sanitize_phone(raw: str) -> str:
    s = (raw or "").strip()
    if not s:
        return ""
    keep_plus = s.startswith("+")
    digits = re.sub(r"\D", "", s)
    return ("+" + digits) if keep_plus else digits


def normalize_external_url(value: str) -> str:
    """Add https:// to bare links (``example.com``); http(s) links are kept as-is."""
    v = (value or "").strip()
    if not v:
        return ""
    if re.match(r"^https?://", v, re.IGNORECASE):
        return v
    if re.match(r"^[a-z][a-z0-9+.-]*:", v, re.IGNORECASE):
        # other schemes (javascript:, data:, ...) are dropped
        return ""
    return "https://" + v.lstrip("/")


def _as_flag(value) -> bool:
    if isinstance(value, bool):
        return value
    return str(value or "").strip().lower() in {"1", "true", "on", "yes"}


class ProfileService:
    def __init__(self, repository: SQLRepository | None = None) -> None:
        self.repository = repository or SQLRepository()

    def _default_handle(self, user: User) -> str:
        fallback = f"user-{user.id.replace('-', '')[:8]}"
        base = handle_from_email(user.email)
        if base and not self.repository.handle_taken(base):
            return base
        return fallback

    def get_or_create(self, user: User) -> Profile:
        """Profiles are created lazily, once per user, on first claim or editor visit."""
        profile = self.repository.get_profile(user.id)
        if profile:
            return profile
        handle = self._default_handle(user)
        try:
            return self.repository.create_profile(
                user.id,
                handle,
                display_name=(user.email or "").split("@", 1)[0] or "User",
            )
        except IntegrityError:
            # a concurrent request created it, or the default handle was taken meanwhile
            profile = self.repository.get_profile(user.id)
            if profile:
                return profile
            fallback = f"user-{user.id.replace('-', '')[:8]}"
            return self.repository.create_profile(user.id, fallback, display_name=fallback)

    def get_public(self, handle: str) -> Profile:
        profile = self.repository.get_profile_by_handle(normalize_handle(handle))
        if not profile:
            raise ProfileNotFoundError("Profile not found")
        return profile

    def update(self, profile_id: str, form: Mapping[str, object]) -> Profile:
        current = self.repository.get_profile(profile_id)
        if not current:
            raise ProfileNotFoundError("Profile not found")
        values: dict[str, object] = {}
        handle = normalize_handle(str(form.get("handle") or current.handle))
        if not is_valid_handle(handle):
            raise InvalidHandleError("Handles use 3-30 characters: a-z, 0-9 and '-'.")
        if handle != current.handle:
            if self.repository.handle_taken(handle, exclude_id=profile_id):
                raise HandleTakenError("This handle is already taken. Please choose another.")
            values["handle"] = handle
        for name in TEXT_FIELDS:
            if name not in form:
                continue
            value = str(form.get(name) or "").strip()[:MAX_TEXT_LENGTH]
            if name in ("phone", "whatsapp"):
                value = sanitize_phone(value)
            elif name == "country_code":
                value = sanitize_phone(value)
                if value and not value.startswith("+"):
                    value = "+" + value
            elif name == "website" or name in SOCIAL_FIELDS:
                value = normalize_external_url(value)
            values[name] = value or None
        for name in FLAG_FIELDS:
            values[name] = _as_flag(form.get(name))
        try:
            self.repository.update_profile(profile_id, values)
        except IntegrityError as exc:
            # the unique index is authoritative when two saves race past the pre-check
            raise HandleTakenError("This handle is already taken. Please choose another.") from exc
        return self.repository.get_profile(profile_id)

    def replace_avatar(self, profile_id: str, data: bytes) -> str:
        profile = self.repository.get_profile(profile_id)
        if not profile:
            raise ProfileNotFoundError("Profile not found")
        url = media_service.save_avatar(profile_id, data)
        self.repository.update_profile(profile_id, {"avatar_url": url})
        if profile.avatar_url:
            media_service.delete_avatar(profile.avatar_url)
        return url

    def replace_qr_code(self, profile_id: str, data: bytes) -> str:
        """Store an uploaded QR image; the previous stored one is removed."""
        profile = self.repository.get_profile(profile_id)
        if not profile:
            raise ProfileNotFoundError("Profile not found")
        return self._swap_qr_code(profile, media_service.save_qr_code(profile_id, data))

    def generate_qr_code(self, profile_id: str) -> str:
        """Render a QR for the public profile URL and store it as the profile's QR image."""
        profile = self.repository.get_profile(profile_id)
        if not profile:
            raise ProfileNotFoundError("Profile not found")
        png = qr_service.qr_png(qr_service.profile_share_url(profile.handle))
        return self._swap_qr_code(profile, media_service.save_qr_code(profile_id, png))

    def remove_qr_code(self, profile_id: str) -> None:
        """Drop the stored QR image; the public page falls back to the live ``/q/<handle>.png``."""
        profile = self.repository.get_profile(profile_id)
        if not profile or not profile.qr_code_url:
            return
        self.repository.update_profile(profile_id, {"qr_code_url": None})
        media_service.delete_qr_code(profile.qr_code_url)

    def _swap_qr_code(self, profile: Profile, url: str) -> str:
        self.repository.update_profile(profile.id, {"qr_code_url": url})
        if profile.qr_code_url:
            media_service.delete_qr_code(profile.qr_code_url)
        return url

    def delete_account(self, user_id: str) -> int:
        """Release every card, drop avatars, profile, sessions and the user. Returns released card count."""
        released = self.repository.unclaim_cards_for_profile(user_id)
        profile = self.repository.get_profile(user_id)
        if profile:
            media_service.delete_avatar(profile.avatar_url)
            media_service.delete_qr_code(profile.qr_code_url)
        media_service.delete_uploads_for_profile(user_id)
        self.repository.delete_profile(user_id)
        self.repository.delete_user_sessions(user_id)
        self.repository.delete_admin_sessions(user_id)
        self.repository.delete_verify_tokens_for_user(user_id)
        self.repository.delete_user(user_id)
        log.info("account.deleted", user_id=user_id, released_cards=released)
        return released
