"""QR codes pointing at a profile's public URL."""
from __future__ import annotations

import io

import qrcode

from kardo.core.utils import absolute_url, profile_path


def profile_share_url(handle: str) -> str:
    return absolute_url(profile_path(handle))


def qr_png(payload: str) -> bytes:
    img = qrcode.make(payload)
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()
