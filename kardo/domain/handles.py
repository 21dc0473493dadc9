"""Domain helpers for profile handle validation."""
from __future__ import annotations

import re

HANDLE_PATTERN = re.compile(r"[a-z0-9-]{3,30}")
_NOT_HANDLE_CHARS = re.compile(r"[^a-z0-9-]+")
RESERVED_HANDLES = {
    "admin",
    "api",
    "auth",
    "c",
    "card-disabled",
    "claim",
    "login",
    "logout",
    "profile",
    "q",
    "settings",
    "static",
    "u",
    "unknown-card",
}


def normalize_handle(value: str | None) -> str:
    """Handles are case-insensitive; the canonical form is lower-case and trimmed."""
    return (value or "").strip().lower()


def is_valid_handle(value: str | None) -> bool:
    """Return True when the handle matches the allowed pattern and is not reserved."""
    if not value:
        return False
    return bool(HANDLE_PATTERN.fullmatch(value)) and value not in RESERVED_HANDLES


def handle_from_email(email: str | None) -> str:
    """Best-effort handle from the e-mail local part (``Jane.Doe@x`` -> ``jane-doe``)."""
    local = normalize_handle((email or "").split("@", 1)[0])
    candidate = _NOT_HANDLE_CHARS.sub("-", local).strip("-")[:30]
    return candidate if is_valid_handle(candidate) else ""
