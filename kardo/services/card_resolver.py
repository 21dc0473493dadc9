"""
Card code resolution.

Translates an inbound card code into one routing outcome. Read-only and free of
HTTP concerns: the ``/c/{code}`` route maps each outcome to a redirect.
"""
from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Optional, Protocol

from sqlalchemy.exc import SQLAlchemyError

from kardo.db.models import CARD_STATUS_DISABLED, CARD_STATUS_UNCLAIMED
from kardo.domain.codes import is_valid_code, normalize_code


class CardLookup(Protocol):
    def get_card(self, code: str): ...

    def get_profile_handle(self, profile_id: str) -> Optional[str]: ...


class Outcome(str, enum.Enum):
    UNKNOWN = "unknown"
    DISABLED = "disabled"
    NEEDS_CLAIM = "needs_claim"
    RESOLVED = "resolved"
    ERROR = "error"


@dataclass(frozen=True)
class Resolution:
    outcome: Outcome
    code: str = ""
    handle: str = ""
    message: str = ""

    @classmethod
    def unknown(cls) -> "Resolution":
        return cls(Outcome.UNKNOWN)

    @classmethod
    def disabled(cls) -> "Resolution":
        return cls(Outcome.DISABLED)

    @classmethod
    def needs_claim(cls, code: str) -> "Resolution":
        return cls(Outcome.NEEDS_CLAIM, code=code)

    @classmethod
    def resolved(cls, handle: str) -> "Resolution":
        return cls(Outcome.RESOLVED, handle=handle)

    @classmethod
    def error(cls, message: str) -> "Resolution":
        return cls(Outcome.ERROR, message=message)


def resolve_code(raw_code: str | None, repository: CardLookup) -> Resolution:
    code = normalize_code(raw_code)
    # malformed codes never reach the store
    if not is_valid_code(code):
        return Resolution.unknown()

    try:
        card = repository.get_card(code)
    except SQLAlchemyError as exc:
        return Resolution.error(f"Card lookup error: {exc}")

    if card is None:
        return Resolution.unknown()
    # disabled wins over any claim state
    if card.status == CARD_STATUS_DISABLED:
        return Resolution.disabled()
    if card.status == CARD_STATUS_UNCLAIMED or not card.profile_id:
        return Resolution.needs_claim(code)

    try:
        handle = repository.get_profile_handle(card.profile_id)
    except SQLAlchemyError as exc:
        return Resolution.error(f"Profile lookup error: {exc}")

    if not handle:
        return Resolution.needs_claim(code)
    return Resolution.resolved(handle)
