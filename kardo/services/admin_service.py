"""Administrator use cases over the card inventory."""
from __future__ import annotations

from dataclasses import dataclass

from kardo.core.errors import CardNotFoundError, KardoError
from kardo.core.logging import get_logger
from kardo.db.models import (
    Card,
    CARD_STATUS_ACTIVE,
    CARD_STATUS_DISABLED,
    CARD_STATUS_UNCLAIMED,
    USER_TYPE_SUPER_ADMIN,
)
from kardo.repositories.sql_repository import SQLRepository
from kardo.services.auth_service import AuthService
from kardo.services.code_generator import CodeGenerator

log = get_logger(__name__)

CARD_FILTERS = ("all", "assigned", "unassigned", "claimed", "unclaimed", "disabled")


class ReauthenticationRequired(KardoError):
    """Raised when a destructive action is attempted without the admin's password."""


@dataclass
class CardStats:
    total: int
    assigned: int
    unassigned: int
    claimed: int
    unclaimed: int
    disabled: int


def card_matches(card: Card, card_filter: str, query: str = "") -> bool:
    if card_filter == "assigned" and not card.nfc_tag_assigned:
        return False
    if card_filter == "unassigned" and card.nfc_tag_assigned:
        return False
    if card_filter == "claimed" and card.claimed_at is None:
        return False
    if card_filter == "unclaimed" and card.claimed_at is not None:
        return False
    if card_filter == "disabled" and card.status != CARD_STATUS_DISABLED:
        return False
    q = (query or "").strip().upper()
    return not q or q in card.code


class AdminService:
    def __init__(self, repository: SQLRepository | None = None, auth: AuthService | None = None) -> None:
        self.repository = repository or SQLRepository()
        self.auth = auth or AuthService()
        self.generator = CodeGenerator(self.repository)

    def is_admin(self, user_id: str | None) -> bool:
        if not user_id:
            return False
        user = self.repository.get_user(user_id)
        if not user or not user.email_verified_at:
            return False
        profile = self.repository.get_profile(user_id)
        return bool(profile and profile.user_type == USER_TYPE_SUPER_ADMIN)

    def _require_password(self, admin_id: str, password: str) -> None:
        if not self.auth.confirm_password(admin_id, password):
            raise ReauthenticationRequired("Incorrect password")

    def _require_card(self, code: str) -> Card:
        card = self.repository.get_card(code)
        if not card:
            raise CardNotFoundError(f"Card {code} not found")
        return card

    # -------------------------------------- listing --------------------------------------
    def list_cards(self, card_filter: str = "all", query: str = "") -> list[Card]:
        selected = card_filter if card_filter in CARD_FILTERS else "all"
        return [c for c in self.repository.list_cards() if card_matches(c, selected, query)]

    def stats(self) -> CardStats:
        cards = self.repository.list_cards()
        return CardStats(
            total=len(cards),
            assigned=sum(1 for c in cards if c.nfc_tag_assigned),
            unassigned=sum(1 for c in cards if not c.nfc_tag_assigned),
            claimed=sum(1 for c in cards if c.claimed_at is not None),
            unclaimed=sum(1 for c in cards if c.claimed_at is None),
            disabled=sum(1 for c in cards if c.status == CARD_STATUS_DISABLED),
        )

    # -------------------------------------- generation --------------------------------------
    def generate_cards(self, count, length) -> list[str]:
        codes = self.generator.generate_and_store(count, length)
        log.info("cards.generated", count=len(codes))
        return codes

    # -------------------------------------- card actions --------------------------------------
    def assign_nfc(self, code: str) -> None:
        self._require_card(code)
        self.repository.set_nfc_tag_assigned(code, True)

    def unassign_nfc(self, admin_id: str, code: str, password: str) -> None:
        self._require_password(admin_id, password)
        self._require_card(code)
        self.repository.set_nfc_tag_assigned(code, False)

    def unclaim(self, admin_id: str, code: str, password: str) -> None:
        self._require_password(admin_id, password)
        self._require_card(code)
        self.repository.unclaim_card(code)
        log.info("card.unclaimed", code=code, admin_id=admin_id)

    def disable(self, code: str) -> None:
        card = self._require_card(code)
        if card.status != CARD_STATUS_DISABLED:
            self.repository.update_card_status(code, CARD_STATUS_DISABLED)
            log.info("card.disabled", code=code, previous=card.status)

    def delete(self, admin_id: str, code: str, password: str) -> None:
        self._require_password(admin_id, password)
        self._require_card(code)
        self.repository.delete_card(code)
        log.info("card.deleted", code=code, admin_id=admin_id)

    # -------------------------------------- settings --------------------------------------
    def registration_enabled(self) -> bool:
        return self.auth.registration_enabled()

    def toggle_registration(self) -> bool:
        enabled = not self.auth.registration_enabled()
        self.auth.set_registration_enabled(enabled)
        return enabled


STATUS_LABELS = {
    CARD_STATUS_UNCLAIMED: "Unclaimed",
    CARD_STATUS_ACTIVE: "Active",
    CARD_STATUS_DISABLED: "Disabled",
}
