"""Profile images: uploads are re-encoded through Pillow and written to UPLOADS_DIR."""
from __future__ import annotations

import hashlib
import io
import os
import secrets

from PIL import Image, ImageOps, UnidentifiedImageError

from kardo.core.config import get_settings
from kardo.core.errors import ValidationError

UPLOADS_URL_PREFIX = "/uploads"
AVATAR_MAX_SIZE = (512, 512)
QR_MAX_SIZE = (1024, 1024)
UPLOAD_MAX_BYTES = 5 * 1024 * 1024
QR_PREFIX = "qr-"


def _uploads_dir() -> str:
    path = get_settings().uploads_dir
    os.makedirs(path, exist_ok=True)
    return path


def _open_image(data: bytes) -> Image.Image:
    if not data:
        raise ValidationError("Empty upload.")
    if len(data) > UPLOAD_MAX_BYTES:
        raise ValidationError("Image is too large (max 5 MB).")
    try:
        image = Image.open(io.BytesIO(data))
        return ImageOps.exif_transpose(image)
    except (UnidentifiedImageError, OSError) as exc:
        raise ValidationError("Invalid image file.") from exc


def _write(filename: str, payload: bytes) -> str:
    with open(os.path.join(_uploads_dir(), filename), "wb") as fh:
        fh.write(payload)
    etag = hashlib.md5(payload).hexdigest()[:8]
    return f"{UPLOADS_URL_PREFIX}/{filename}?v={etag}"


def save_avatar(profile_id: str, data: bytes) -> str:
    """Store a resized JPEG copy of ``data`` and return its public URL."""
    image = _open_image(data).convert("RGB")
    image.thumbnail(AVATAR_MAX_SIZE, Image.LANCZOS)
    buffer = io.BytesIO()
    image.save(buffer, format="JPEG", quality=85, optimize=True)
    # file names start with the profile id so account deletion can sweep them
    return _write(f"{profile_id}-{secrets.token_hex(4)}.jpg", buffer.getvalue())


def save_qr_code(profile_id: str, data: bytes) -> str:
    """Store a QR image as PNG (lossless, keeps modules sharp) and return its public URL."""
    image = _open_image(data)
    image = image.convert("RGBA" if image.mode in ("RGBA", "LA", "P") else "RGB")
    image.thumbnail(QR_MAX_SIZE, Image.NEAREST)
    buffer = io.BytesIO()
    image.save(buffer, format="PNG", optimize=True)
    return _write(f"{QR_PREFIX}{profile_id}-{secrets.token_hex(4)}.png", buffer.getvalue())


def delete_upload(url: str | None, prefix: str = "") -> bool:
    """Remove a stored image; URLs outside the uploads prefix (or without ``prefix``) are ignored."""
    value = (url or "").split("?", 1)[0]
    if not value.startswith(UPLOADS_URL_PREFIX + "/"):
        return False
    filename = os.path.basename(value)
    if prefix and not filename.startswith(prefix):
        return False
    path = os.path.join(_uploads_dir(), filename)
    if not os.path.isfile(path):
        return False
    os.remove(path)
    return True


def delete_avatar(url: str | None) -> bool:
    return delete_upload(url)


def delete_qr_code(url: str | None) -> bool:
    return delete_upload(url, prefix=QR_PREFIX)


def delete_uploads_for_profile(profile_id: str) -> int:
    removed = 0
    directory = _uploads_dir()
    for name in os.listdir(directory):
        if name.startswith(f"{profile_id}-") or name.startswith(f"{QR_PREFIX}{profile_id}-"):
            os.remove(os.path.join(directory, name))
            removed += 1
    return removed
