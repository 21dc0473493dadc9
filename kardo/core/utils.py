"""
Utility helpers shared across routers/services.
"""

from typing import Optional
from urllib.parse import quote

from .config import get_settings


def absolute_url(path: str, base: Optional[str] = None) -> str:
    """
    Turn a relative path into an absolute URL using PUBLIC_BASE_URL.
    """
    settings = get_settings()
    base_url = (base or settings.public_base_url).rstrip("/")
    if not path:
        return base_url + "/"
    if path.startswith("http://") or path.startswith("https://"):
        return path
    if not path.startswith("/"):
        path = "/" + path
    return base_url + path


def profile_path(handle: str) -> str:
    return f"/u/{quote(handle or '', safe='')}"


def safe_next_path(value: str | None, default: str = "/") -> str:
    """Only allow same-site relative redirects (``/path``, not ``//host``)."""
    dest = (value or "").strip()
    if not dest.startswith("/") or dest.startswith("//"):
        return default
    return dest
