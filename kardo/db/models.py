"""SQLAlchemy models for users, profiles, cards and their supporting tables."""
from __future__ import annotations

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    String,
    Text,
    func,
)
from sqlalchemy.orm import relationship

from .session import Base

CARD_STATUS_UNCLAIMED = "unclaimed"
CARD_STATUS_ACTIVE = "active"
CARD_STATUS_DISABLED = "disabled"
CARD_STATUSES = (CARD_STATUS_UNCLAIMED, CARD_STATUS_ACTIVE, CARD_STATUS_DISABLED)

USER_TYPE_USER = "user"
USER_TYPE_SUPER_ADMIN = "super_admin"


class User(Base):
    __tablename__ = "users"

    id = Column(String(36), primary_key=True)
    email = Column(String(255), unique=True, nullable=False)
    password_hash = Column(Text, nullable=False)
    email_verified_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    profile = relationship("Profile", uselist=False, back_populates="user", cascade="all,delete-orphan")


class Profile(Base):
    __tablename__ = "profiles"

    id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    # stored lower-case; the unique index is the source of truth for conflicts
    handle = Column(String(64), unique=True, nullable=False)
    user_type = Column(String(32), default=USER_TYPE_USER, nullable=False)

    display_name = Column(String(255), nullable=True)
    title = Column(String(255), nullable=True)
    phone = Column(String(64), nullable=True)
    country_code = Column(String(8), nullable=True)
    email = Column(String(255), nullable=True)
    website = Column(String(512), nullable=True)
    bio = Column(Text, nullable=True)
    pronouns = Column(String(64), nullable=True)
    company_name = Column(String(255), nullable=True)
    department = Column(String(255), nullable=True)
    office_address = Column(String(512), nullable=True)

    linkedin = Column(String(512), nullable=True)
    twitter = Column(String(512), nullable=True)
    instagram = Column(String(512), nullable=True)
    facebook = Column(String(512), nullable=True)
    github = Column(String(512), nullable=True)
    youtube = Column(String(512), nullable=True)
    tiktok = Column(String(512), nullable=True)
    whatsapp = Column(String(64), nullable=True)
    telegram = Column(String(255), nullable=True)
    calendar_link = Column(String(512), nullable=True)

    avatar_url = Column(String(512), nullable=True)
    qr_code_url = Column(String(512), nullable=True)
    show_qr_code = Column(Boolean, default=True, nullable=False)
    searchable = Column(Boolean, default=False, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    user = relationship("User", back_populates="profile")
    cards = relationship("Card", back_populates="profile")


class Card(Base):
    __tablename__ = "cards"

    code = Column(String(16), primary_key=True)
    status = Column(String(16), default=CARD_STATUS_UNCLAIMED, nullable=False)
    profile_id = Column(String(36), ForeignKey("profiles.id", ondelete="SET NULL"), nullable=True)
    nfc_tag_assigned = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    claimed_at = Column(DateTime(timezone=True), nullable=True)

    profile = relationship("Profile", back_populates="cards")


class AppSetting(Base):
    __tablename__ = "settings"

    key = Column(String(64), primary_key=True)
    value = Column(String(255), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)


class UserSession(Base):
    __tablename__ = "sessions"

    token = Column(String(128), primary_key=True)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)


class AdminSession(Base):
    __tablename__ = "sessions_admin"

    token = Column(String(128), primary_key=True)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    csrf_token = Column(String(255), nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)


class VerifyToken(Base):
    __tablename__ = "verify_tokens"

    token = Column(String(255), primary_key=True)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    next_path = Column(String(512), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
