"""SQLAlchemy engine/session helpers and the Kardo schema."""

from .models import AdminSession, AppSetting, Card, Profile, User, UserSession, VerifyToken
from .session import Base, get_engine, get_session

__all__ = [
    "AdminSession",
    "AppSetting",
    "Base",
    "Card",
    "Profile",
    "User",
    "UserSession",
    "VerifyToken",
    "get_engine",
    "get_session",
]
