"""
vCard 3.0 rendering for public profiles.

vCard is line oriented: every value is cleaned of CR/LF before it is written,
and ``FN`` is mandatory in 3.0, so it falls back to the lookup handle.
"""
from __future__ import annotations

import re
from typing import Any, Mapping
from urllib.parse import urlparse

CRLF = "\r\n"
_NEWLINES = re.compile(r"\r\n|\r|\n")


def clean(value: Any) -> str:
    """Collapse each CR/LF sequence to a single space and trim."""
    if value is None:
        return ""
    return _NEWLINES.sub(" ", str(value)).strip()


def is_http_url(value: str) -> bool:
    try:
        parsed = urlparse(value)
    except ValueError:
        return False
    return parsed.scheme.lower() in ("http", "https") and bool(parsed.netloc)


def _field(profile: Mapping[str, Any] | Any, name: str) -> Any:
    if isinstance(profile, Mapping):
        return profile.get(name)
    return getattr(profile, name, None)


def build_vcard(profile: Mapping[str, Any] | Any, fallback_name: str) -> str:
    """Render ``profile`` (a mapping or a model instance) as a vCard document."""
    name = clean(_field(profile, "display_name")) or clean(fallback_name)
    lines = ["BEGIN:VCARD", "VERSION:3.0", f"FN:{name}"]

    title = clean(_field(profile, "title"))
    if title:
        lines.append(f"TITLE:{title}")

    phone = clean(_field(profile, "phone"))
    if phone:
        lines.append(f"TEL;TYPE=CELL:{clean(_field(profile, 'country_code'))}{phone}")

    email = clean(_field(profile, "email"))
    if email:
        lines.append(f"EMAIL;TYPE=INTERNET:{email}")

    website = clean(_field(profile, "website"))
    if website and is_http_url(website):
        lines.append(f"URL:{website}")

    lines.append("END:VCARD")
    return CRLF.join(lines) + CRLF
