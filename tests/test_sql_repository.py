"""
Smoke tests for the SQLRepository against a temporary SQLite database.
"""
from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.exc import IntegrityError


def test_claim_and_unclaim_flow(repo, make_user):
    user = make_user(handle="alice")
    repo.insert_cards(["AAAA2222"])
    assert repo.claim_card("AAAA2222", user.id)
    card = repo.get_card("AAAA2222")
    assert card.status == "active"
    assert card.profile_id == user.id
    assert card.claimed_at is not None
    assert repo.get_profile_handle(card.profile_id) == "alice"

    # second claim loses the conditional update
    other = make_user("bob@example.com", handle="bob")
    assert not repo.claim_card("AAAA2222", other.id)

    repo.unclaim_card("AAAA2222")
    card = repo.get_card("AAAA2222")
    assert card.status == "unclaimed"
    assert card.profile_id is None
    assert card.claimed_at is None


def test_disabled_card_cannot_be_claimed(repo, make_user):
    user = make_user(handle="alice")
    repo.insert_cards(["BBBB3333"])
    repo.update_card_status("BBBB3333", "disabled")
    assert not repo.claim_card("BBBB3333", user.id)


def test_duplicate_code_insert_is_atomic(repo):
    repo.insert_cards(["CCCC4444"])
    with pytest.raises(IntegrityError):
        repo.insert_cards(["DDDD5555", "CCCC4444"])
    assert repo.get_card("DDDD5555") is None
    assert repo.code_exists("CCCC4444")
    assert not repo.code_exists("DDDD5555")


def test_handle_lookup_is_case_insensitive(repo, make_user):
    user = make_user(handle="jane-doe")
    assert repo.get_profile_by_handle("JANE-Doe").id == user.id
    assert repo.handle_taken("jane-doe")
    assert not repo.handle_taken("jane-doe", exclude_id=user.id)


def test_unique_handle_enforced_by_schema(repo, make_user):
    make_user(handle="alice")
    bob = make_user("bob@example.com", handle="bob")
    with pytest.raises(IntegrityError):
        repo.update_profile(bob.id, {"handle": "alice"})


def test_unclaim_cards_for_profile(repo, make_user):
    user = make_user(handle="alice")
    repo.insert_cards(["EEEE6666", "FFFF7777", "GGGG8888"])
    repo.claim_card("EEEE6666", user.id)
    repo.claim_card("FFFF7777", user.id)
    assert repo.unclaim_cards_for_profile(user.id) == 2
    assert repo.get_cards_for_profile(user.id) == []


def test_releasing_cards_keeps_disabled_cards_disabled(repo, make_user):
    user = make_user(handle="alice")
    repo.insert_cards(["HHHH9999", "JJJJ2222"])
    repo.claim_card("HHHH9999", user.id)
    repo.claim_card("JJJJ2222", user.id)
    repo.update_card_status("JJJJ2222", "disabled")
    assert repo.unclaim_cards_for_profile(user.id) == 1
    disabled = repo.get_card("JJJJ2222")
    assert disabled.status == "disabled"
    assert disabled.profile_id is None
    assert repo.get_card("HHHH9999").status == "unclaimed"


def test_settings_roundtrip(repo):
    assert repo.get_setting("registration_enabled", "true") == "true"
    repo.set_setting("registration_enabled", "false")
    repo.set_setting("registration_enabled", "false")
    assert repo.get_setting("registration_enabled") == "false"


def test_admin_session(repo, make_user):
    user = make_user()
    expires = datetime.now(timezone.utc) + timedelta(hours=1)
    tok = repo.create_admin_session(user.id, csrf_token="csrf123", expires_at=expires)
    sess = repo.get_admin_session(tok)
    assert sess is not None
    assert sess.csrf_token == "csrf123"
    repo.delete_admin_session(tok)
    assert repo.get_admin_session(tok) is None


def test_verify_tokens(repo, make_user):
    user = make_user()
    tok = repo.create_verify_token(user.id, next_path="/claim?code=AAAA2222")
    assert repo.get_verify_token_for_user(user.id).token == tok
    repo.delete_verify_tokens_for_user(user.id)
    assert repo.get_verify_token(tok) is None
