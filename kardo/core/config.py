"""
Configuration helpers for the Kardo backend.

Settings are read once from environment variables so that routers/services do
not fetch os.environ directly. Tests clear the cache with
``get_settings.cache_clear()`` after monkeypatching the environment.
"""

from dataclasses import dataclass
from functools import lru_cache
import os


@dataclass(frozen=True)
class Settings:
    """Typed view of environment variables."""

    app_env: str
    public_base_url: str
    database_url: str
    smtp_host: str
    smtp_port: int
    smtp_user: str
    smtp_password: str
    smtp_from: str
    session_ttl_seconds: int
    email_verification_ttl_seconds: int
    admin_session_ttl_seconds: int
    uploads_dir: str
    log_level: str
    log_format: str


@lru_cache
def get_settings() -> Settings:
    """Read the current environment and build a Settings instance."""
    def _int(value: str, default: int = 0) -> int:
        try:
            return int(value)
        except (TypeError, ValueError):
            return default

    base = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
    return Settings(
        app_env=(os.getenv("APP_ENV") or "dev").lower(),
        public_base_url=os.getenv("PUBLIC_BASE_URL", "https://kardo.cards").rstrip("/"),
        database_url=os.getenv("DATABASE_URL", ""),
        smtp_host=os.getenv("SMTP_HOST", ""),
        smtp_port=_int(os.getenv("SMTP_PORT", "465"), 465),
        smtp_user=os.getenv("SMTP_USER", ""),
        smtp_password=os.getenv("SMTP_PASSWORD", ""),
        smtp_from=os.getenv("SMTP_FROM", os.getenv("SMTP_USER", "")),
        session_ttl_seconds=_int(os.getenv("SESSION_TTL_SECONDS", "86400"), 86400),
        email_verification_ttl_seconds=_int(os.getenv("EMAIL_VERIFICATION_TTL_SECONDS", "86400"), 86400),
        admin_session_ttl_seconds=max(600, _int(os.getenv("ADMIN_SESSION_TTL_SECONDS", "43200"), 43200)),
        uploads_dir=os.getenv("UPLOADS_DIR", os.path.join(base, "web", "uploads")),
        log_level=(os.getenv("LOG_LEVEL") or "info").lower(),
        log_format=(os.getenv("LOG_FORMAT") or "console").lower(),
    )
