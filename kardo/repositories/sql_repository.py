"""High-level data access helpers backed by SQLAlchemy."""
from __future__ import annotations

import secrets
import uuid
from datetime import datetime, timezone
from typing import Iterable, Optional

from sqlalchemy import delete, func, or_, select, update

from kardo.db.models import (
    AdminSession,
    AppSetting,
    Card,
    CARD_STATUS_ACTIVE,
    CARD_STATUS_DISABLED,
    CARD_STATUS_UNCLAIMED,
    Profile,
    User,
    UserSession,
    VerifyToken,
)
from kardo.db.session import get_session


def _now() -> datetime:
    return datetime.now(timezone.utc)


class SQLRepository:
    """CRUD helpers wrapping the SQLAlchemy session."""

    # -------------------------- users --------------------------
    def get_user(self, user_id: str) -> Optional[User]:
        with get_session() as session:
            return session.get(User, user_id)

    def get_user_by_email(self, email: str) -> Optional[User]:
        value = (email or "").strip().lower()
        if not value:
            return None
        with get_session() as session:
            stmt = select(User).where(User.email == value)
            return session.execute(stmt).scalar_one_or_none()

    def create_user(self, email: str, password_hash: str, email_verified_at: datetime | None = None) -> User:
        now = _now()
        user = User(
            id=str(uuid.uuid4()),
            email=(email or "").strip().lower(),
            password_hash=password_hash,
            email_verified_at=email_verified_at,
            created_at=now,
            updated_at=now,
        )
        with get_session() as session:
            session.add(user)
            session.commit()
            return user

    def set_user_verified(self, user_id: str) -> None:
        now = _now()
        with get_session() as session:
            session.execute(update(User).where(User.id == user_id).values(email_verified_at=now, updated_at=now))
            session.commit()

    def update_user_password(self, user_id: str, password_hash: str) -> None:
        with get_session() as session:
            stmt = update(User).where(User.id == user_id).values(password_hash=password_hash, updated_at=_now())
            session.execute(stmt)
            session.commit()

    def delete_user(self, user_id: str) -> None:
        with get_session() as session:
            session.execute(delete(User).where(User.id == user_id))
            session.commit()

    # -------------------------- profiles --------------------------
    def get_profile(self, profile_id: str) -> Optional[Profile]:
        with get_session() as session:
            return session.get(Profile, profile_id)

    def get_profile_by_handle(self, handle: str) -> Optional[Profile]:
        value = (handle or "").strip().lower()
        if not value:
            return None
        with get_session() as session:
            stmt = select(Profile).where(func.lower(Profile.handle) == value)
            return session.execute(stmt).scalar_one_or_none()

    def get_profile_handle(self, profile_id: str) -> Optional[str]:
        with get_session() as session:
            stmt = select(Profile.handle).where(Profile.id == profile_id)
            return session.execute(stmt).scalar_one_or_none()

    def handle_taken(self, handle: str, exclude_id: str | None = None) -> bool:
        value = (handle or "").strip().lower()
        if not value:
            return False
        with get_session() as session:
            stmt = select(Profile.id).where(func.lower(Profile.handle) == value)
            if exclude_id:
                stmt = stmt.where(Profile.id != exclude_id)
            return session.execute(stmt.limit(1)).first() is not None

    def create_profile(self, profile_id: str, handle: str, **fields) -> Profile:
        now = _now()
        profile = Profile(id=profile_id, handle=handle, created_at=now, updated_at=now, **fields)
        with get_session() as session:
            session.add(profile)
            session.commit()
            return profile

    def update_profile(self, profile_id: str, values: dict) -> None:
        """Raises IntegrityError when ``values['handle']`` collides with another profile."""
        with get_session() as session:
            stmt = update(Profile).where(Profile.id == profile_id).values(**values, updated_at=_now())
            session.execute(stmt)
            session.commit()

    def delete_profile(self, profile_id: str) -> None:
        with get_session() as session:
            session.execute(delete(Profile).where(Profile.id == profile_id))
            session.commit()

    # -------------------------- cards --------------------------
    def get_card(self, code: str) -> Optional[Card]:
        with get_session() as session:
            return session.get(Card, code)

    def code_exists(self, code: str) -> bool:
        with get_session() as session:
            stmt = select(Card.code).where(Card.code == code).limit(1)
            return session.execute(stmt).first() is not None

    def insert_cards(self, codes: Iterable[str]) -> list[str]:
        """Insert every code as an unclaimed card in a single transaction."""
        now = _now()
        rows = [
            Card(code=code, status=CARD_STATUS_UNCLAIMED, nfc_tag_assigned=False, created_at=now)
            for code in codes
        ]
        with get_session() as session:
            session.add_all(rows)
            session.commit()
        return [row.code for row in rows]

    def list_cards(self) -> list[Card]:
        with get_session() as session:
            stmt = select(Card).order_by(Card.created_at.desc(), Card.code)
            return list(session.execute(stmt).scalars().all())

    def get_cards_for_profile(self, profile_id: str) -> list[Card]:
        with get_session() as session:
            stmt = select(Card).where(Card.profile_id == profile_id).order_by(Card.claimed_at)
            return list(session.execute(stmt).scalars().all())

    def claim_card(self, code: str, profile_id: str) -> bool:
        """Activate an unclaimed card; False when someone else got there first."""
        with get_session() as session:
            stmt = (
                update(Card)
                .where(
                    Card.code == code,
                    Card.status != CARD_STATUS_DISABLED,
                    or_(Card.status == CARD_STATUS_UNCLAIMED, Card.profile_id.is_(None)),
                )
                .values(status=CARD_STATUS_ACTIVE, profile_id=profile_id, claimed_at=_now())
            )
            result = session.execute(stmt)
            session.commit()
            return result.rowcount == 1

    def unclaim_card(self, code: str) -> None:
        with get_session() as session:
            stmt = (
                update(Card)
                .where(Card.code == code)
                .values(status=CARD_STATUS_UNCLAIMED, profile_id=None, claimed_at=None)
            )
            session.execute(stmt)
            session.commit()

    def unclaim_cards_for_profile(self, profile_id: str) -> int:
        """Release every card of ``profile_id``; disabled cards only lose the link. Returns released count."""
        with get_session() as session:
            released = session.execute(
                update(Card)
                .where(Card.profile_id == profile_id, Card.status != CARD_STATUS_DISABLED)
                .values(status=CARD_STATUS_UNCLAIMED, profile_id=None, claimed_at=None)
            )
            session.execute(update(Card).where(Card.profile_id == profile_id).values(profile_id=None))
            session.commit()
            return int(released.rowcount or 0)

    def update_card_status(self, code: str, status: str) -> None:
        with get_session() as session:
            session.execute(update(Card).where(Card.code == code).values(status=status))
            session.commit()

    def set_nfc_tag_assigned(self, code: str, assigned: bool) -> None:
        with get_session() as session:
            session.execute(update(Card).where(Card.code == code).values(nfc_tag_assigned=bool(assigned)))
            session.commit()

    def delete_card(self, code: str) -> None:
        with get_session() as session:
            session.execute(delete(Card).where(Card.code == code))
            session.commit()

    # -------------------------- settings --------------------------
    def get_setting(self, key: str, default: str | None = None) -> Optional[str]:
        with get_session() as session:
            row = session.get(AppSetting, key)
            return row.value if row else default

    def set_setting(self, key: str, value: str) -> None:
        with get_session() as session:
            session.merge(AppSetting(key=key, value=value, updated_at=_now()))
            session.commit()

    # -------------------------- sessions --------------------------
    def create_user_session(self, user_id: str, expires_at: datetime) -> str:
        token = secrets.token_urlsafe(32)
        with get_session() as session:
            session.add(UserSession(token=token, user_id=user_id, expires_at=expires_at))
            session.commit()
        return token

    def get_user_session(self, token: str) -> Optional[UserSession]:
        with get_session() as session:
            return session.get(UserSession, token)

    def delete_user_session(self, token: str) -> None:
        with get_session() as session:
            session.execute(delete(UserSession).where(UserSession.token == token))
            session.commit()

    def delete_user_sessions(self, user_id: str) -> None:
        with get_session() as session:
            session.execute(delete(UserSession).where(UserSession.user_id == user_id))
            session.commit()

    def create_admin_session(self, user_id: str, csrf_token: str, expires_at: datetime) -> str:
        token = secrets.token_urlsafe(32)
        entity = AdminSession(token=token, user_id=user_id, csrf_token=csrf_token, expires_at=expires_at)
        with get_session() as session:
            session.add(entity)
            session.commit()
        return token

    def get_admin_session(self, token: str) -> Optional[AdminSession]:
        with get_session() as session:
            return session.get(AdminSession, token)

    def delete_admin_session(self, token: str) -> None:
        with get_session() as session:
            session.execute(delete(AdminSession).where(AdminSession.token == token))
            session.commit()

    def delete_admin_sessions(self, user_id: str) -> None:
        with get_session() as session:
            session.execute(delete(AdminSession).where(AdminSession.user_id == user_id))
            session.commit()

    # -------------------------- tokens --------------------------
    def create_verify_token(self, user_id: str, next_path: str | None = None, token: Optional[str] = None) -> str:
        token_value = token or secrets.token_urlsafe(24)
        entity = VerifyToken(token=token_value, user_id=user_id, next_path=next_path, created_at=_now())
        with get_session() as session:
            session.add(entity)
            session.commit()
        return token_value

    def get_verify_token(self, token: str) -> Optional[VerifyToken]:
        with get_session() as session:
            return session.get(VerifyToken, token)

    def get_verify_token_for_user(self, user_id: str) -> Optional[VerifyToken]:
        with get_session() as session:
            stmt = select(VerifyToken).where(VerifyToken.user_id == user_id).order_by(VerifyToken.created_at.desc())
            return session.execute(stmt).scalars().first()

    def delete_verify_tokens_for_user(self, user_id: str) -> None:
        with get_session() as session:
            session.execute(delete(VerifyToken).where(VerifyToken.user_id == user_id))
            session.commit()
