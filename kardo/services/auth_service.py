"""
Authentication and identity related use cases.
"""

from __future__ import annotations

import re
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from kardo.core.config import get_settings
from kardo.core.logging import get_logger
from kardo.core.mailer import send_email
from kardo.core.security import MIN_PASSWORD_LENGTH, hash_password, needs_rehash, verify_password
from kardo.core.utils import absolute_url, safe_next_path
from kardo.repositories.sql_repository import SQLRepository
from kardo.services.session_service import delete_session, issue_session

log = get_logger(__name__)

REGISTRATION_SETTING = "registration_enabled"
EMAIL_PATTERN = re.compile(r"[^@\s]+@[^@\s]+\.[^@\s]+")
DEFAULT_NEXT = "/profile"


class AuthError(Exception):
    """Base class for authentication-related exceptions."""

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message


class RegistrationError(AuthError):
    pass


class RegistrationClosedError(AuthError):
    pass


class AccountExistsError(AuthError):
    pass


class InvalidCredentialsError(AuthError):
    pass


class TokenInvalidError(AuthError):
    pass


@dataclass
class SignupResult:
    user_id: str
    email: str
    verify_path: str
    verify_url: str
    email_sent: bool


@dataclass
class LoginSuccess:
    user_id: str
    email: str
    session_token: str
    next_path: str


@dataclass
class LoginVerificationRequired:
    email: str
    verify_path: str
    verify_url: str
    email_sent: bool


@dataclass
class VerifyResult:
    user_id: str
    session_token: str
    next_path: str


@dataclass
class AuthService:
    """Handles signup, login, e-mail verification and password re-checks."""

    def __post_init__(self):
        self.settings = get_settings()
        self.repository = SQLRepository()

    # -------------------------------------- helpers --------------------------------------
    def _now(self) -> int:
        return int(time.time())

    def _token_expired(self, created_at: datetime | int | None, now: int, *, ttl_seconds: int | None = None) -> bool:
        ttl = ttl_seconds if ttl_seconds is not None else self.settings.email_verification_ttl_seconds
        if ttl <= 0:
            return False
        if isinstance(created_at, datetime):
            normalized = created_at.astimezone(timezone.utc) if created_at.tzinfo else created_at.replace(tzinfo=timezone.utc)
            created_ts = int(normalized.timestamp())
        else:
            created_ts = int(created_at or 0)
        if not created_ts:
            return True
        return (created_ts + ttl) < now

    def _issue_verify_token(self, user_id: str, next_path: str, force_new: bool = False) -> tuple[str, bool]:
        existing = self.repository.get_verify_token_for_user(user_id)
        if existing and not force_new and not self._token_expired(existing.created_at, self._now()):
            return existing.token, False
        self.repository.delete_verify_tokens_for_user(user_id)
        return self.repository.create_verify_token(user_id, next_path=next_path), True

    def _send_verification(self, email: str, verify_url: str) -> bool:
        html_body = f"""
        <p>Hi!</p>
        <p>Confirm your e-mail address to finish setting up your Kardo account:</p>
        <p><a href="{verify_url}" style="background:#0ea5e9;color:#fff;padding:12px 18px;border-radius:8px;text-decoration:none;">Confirm my e-mail</a></p>
        <p>If the button does not work, paste this link into your browser:</p>
        <p><a href="{verify_url}">{verify_url}</a></p>
        <p>The Kardo team</p>
        """
        return send_email("Confirm your e-mail - Kardo", email, html_body, f"Confirm your e-mail: {verify_url}")

    # -------------------------------------- settings --------------------------------------
    def registration_enabled(self) -> bool:
        value = self.repository.get_setting(REGISTRATION_SETTING, "true")
        return (value or "").strip().lower() in {"1", "true", "yes", "on"}

    def set_registration_enabled(self, enabled: bool) -> None:
        self.repository.set_setting(REGISTRATION_SETTING, "true" if enabled else "false")

    # -------------------------------------- signup --------------------------------------
    def signup(self, email: str, password: str, next_path: str = DEFAULT_NEXT) -> SignupResult:
        if not self.registration_enabled():
            raise RegistrationClosedError("Registration is currently closed")
        raw_email = (email or "").strip().lower()
        if not EMAIL_PATTERN.fullmatch(raw_email):
            raise RegistrationError("Enter a valid e-mail address")
        if len(password or "") < MIN_PASSWORD_LENGTH:
            raise RegistrationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
        next_value = safe_next_path(next_path, DEFAULT_NEXT)
        user = self.repository.get_user_by_email(raw_email)
        if user and user.email_verified_at:
            raise AccountExistsError("An account with this e-mail already exists")
        if user:
            # unconfirmed signup retried: take the new password, resend the link
            self.repository.update_user_password(user.id, hash_password(password))
        else:
            user = self.repository.create_user(raw_email, hash_password(password))
        token, _ = self._issue_verify_token(user.id, next_value, force_new=True)
        verify_path = f"/auth/verify?token={token}"
        verify_url = absolute_url(verify_path)
        email_sent = self._send_verification(raw_email, verify_url)
        log.info("auth.signup", user_id=user.id, email_sent=email_sent)
        return SignupResult(user_id=user.id, email=raw_email, verify_path=verify_path, verify_url=verify_url, email_sent=email_sent)

    # -------------------------------------- login --------------------------------------
    def login(self, email: str, password: str, next_path: str = DEFAULT_NEXT) -> LoginSuccess | LoginVerificationRequired:
        raw_email = (email or "").strip().lower()
        if not raw_email:
            raise InvalidCredentialsError("Invalid credentials")
        user = self.repository.get_user_by_email(raw_email)
        if not user or not verify_password(password, user.password_hash):
            raise InvalidCredentialsError("Invalid credentials")
        if needs_rehash(user.password_hash):
            self.repository.update_user_password(user.id, hash_password(password))

        next_value = safe_next_path(next_path, DEFAULT_NEXT)
        if not user.email_verified_at:
            token, created = self._issue_verify_token(user.id, next_value)
            verify_path = f"/auth/verify?token={token}"
            verify_url = absolute_url(verify_path)
            email_sent = self._send_verification(raw_email, verify_url) if created else False
            return LoginVerificationRequired(email=raw_email, verify_path=verify_path, verify_url=verify_url, email_sent=email_sent)

        token = issue_session(user.id)
        return LoginSuccess(user_id=user.id, email=raw_email, session_token=token, next_path=next_value)

    def confirm_password(self, user_id: str, password: str) -> bool:
        """Re-authentication gate for destructive actions."""
        user = self.repository.get_user(user_id) if user_id else None
        return bool(user and verify_password(password or "", user.password_hash))

    # -------------------------------------- verification --------------------------------------
    def verify_email(self, token: str) -> VerifyResult:
        token_value = (token or "").strip()
        if not token_value:
            raise TokenInvalidError("Invalid or expired link.")
        entity = self.repository.get_verify_token(token_value)
        if not entity or self._token_expired(entity.created_at, self._now()):
            if entity:
                self.repository.delete_verify_tokens_for_user(entity.user_id)
            raise TokenInvalidError("Invalid or expired link.")
        user = self.repository.get_user(entity.user_id)
        if not user:
            raise TokenInvalidError("Invalid or expired link.")
        self.repository.set_user_verified(user.id)
        self.repository.delete_verify_tokens_for_user(user.id)
        session_token = issue_session(user.id)
        return VerifyResult(
            user_id=user.id,
            session_token=session_token,
            next_path=safe_next_path(entity.next_path, DEFAULT_NEXT),
        )

    def logout(self, session_token: Optional[str]) -> None:
        delete_session(session_token)
