"""Claiming a card: bind an unclaimed card code to the signed-in user's profile."""
from __future__ import annotations

from dataclasses import dataclass

from kardo.core.errors import CardNotFoundError, KardoError, ValidationError
from kardo.core.logging import get_logger
from kardo.db.models import CARD_STATUS_DISABLED, CARD_STATUS_UNCLAIMED, User
from kardo.domain.codes import is_valid_code, normalize_code
from kardo.repositories.sql_repository import SQLRepository
from kardo.services.profile_service import ProfileService

log = get_logger(__name__)


class InvalidCodeError(ValidationError):
    pass


class CardDisabledError(KardoError):
    pass


class CardAlreadyClaimedError(KardoError):
    def __init__(self, code: str):
        super().__init__("This card has already been claimed.")
        self.code = code


@dataclass
class ClaimResult:
    code: str
    profile_id: str
    handle: str


class ClaimService:
    def __init__(self, repository: SQLRepository | None = None) -> None:
        self.repository = repository or SQLRepository()
        self.profiles = ProfileService(self.repository)

    def claim(self, raw_code: str, user: User) -> ClaimResult:
        code = normalize_code(raw_code)
        if not code:
            raise InvalidCodeError("Please enter a card code.")
        if not is_valid_code(code):
            raise InvalidCodeError("Enter a valid card code (6-16 characters, no I, O, 0 or 1).")
        card = self.repository.get_card(code)
        if not card:
            raise CardNotFoundError("Card not found. Please check the code and try again.")
        if card.status == CARD_STATUS_DISABLED:
            raise CardDisabledError("This card has been disabled.")
        if card.status != CARD_STATUS_UNCLAIMED and card.profile_id:
            raise CardAlreadyClaimedError(code)

        profile = self.profiles.get_or_create(user)
        if not self.repository.claim_card(code, profile.id):
            raise CardAlreadyClaimedError(code)
        log.info("card.claimed", code=code, profile_id=profile.id)
        return ClaimResult(code=code, profile_id=profile.id, handle=profile.handle)
