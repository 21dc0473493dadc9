from __future__ import annotations

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError

from kardo.core.errors import ExhaustedAttemptsError, InfrastructureError, ValidationError
from kardo.domain.codes import CODE_ALPHABET, is_valid_code
from kardo.services.code_generator import (
    ATTEMPTS_PER_CODE,
    INSERT_ATTEMPTS,
    CodeGenerator,
    validate_generation_params,
)


class MemoryStore:
    def __init__(self, existing=(), always_exists=False, collisions=0):
        self.codes = set(existing)
        self.always_exists = always_exists
        self.collisions = collisions
        self.exists_calls = 0
        self.insert_calls = 0

    def code_exists(self, code):
        self.exists_calls += 1
        return self.always_exists or code in self.codes

    def insert_cards(self, codes):
        self.insert_calls += 1
        if self.collisions:
            self.collisions -= 1
            raise IntegrityError("INSERT", {}, Exception("UNIQUE constraint failed: cards.code"))
        self.codes.update(codes)
        return list(codes)


def test_generates_distinct_valid_codes():
    store = MemoryStore()
    codes = CodeGenerator(store).generate(50, 8)
    assert len(codes) == 50
    assert len(set(codes)) == 50
    assert all(len(c) == 8 and is_valid_code(c) for c in codes)
    assert set("".join(codes)) <= set(CODE_ALPHABET)


def test_codes_already_in_store_are_skipped():
    # deterministic source: first draw collides with an existing card
    draws = iter("AAAAAA" + "BBBBBB")
    store = MemoryStore(existing={"AAAAAA"})
    codes = CodeGenerator(store, choice=lambda _alphabet: next(draws)).generate(1, 6)
    assert codes == ["BBBBBB"]


def test_duplicates_within_batch_are_skipped():
    draws = iter("CCCCCC" + "CCCCCC" + "DDDDDD")
    store = MemoryStore()
    codes = CodeGenerator(store, choice=lambda _alphabet: next(draws)).generate(2, 6)
    assert codes == ["CCCCCC", "DDDDDD"]
    # the in-batch duplicate never reached the store
    assert store.exists_calls == 2


def test_exhausted_after_count_times_hundred_draws():
    store = MemoryStore(always_exists=True)
    with pytest.raises(ExhaustedAttemptsError) as excinfo:
        CodeGenerator(store).generate(3, 8)
    assert store.exists_calls == 3 * ATTEMPTS_PER_CODE
    assert excinfo.value.requested == 3
    assert excinfo.value.found == 0
    assert "longer code length" in excinfo.value.message


@pytest.mark.parametrize(
    "count,length",
    [(0, 8), (1001, 8), (-1, 8), (1, 5), (1, 17), ("ten", 8), (1, "x"), (True, 8)],
)
def test_out_of_range_parameters_are_rejected(count, length):
    with pytest.raises(ValidationError):
        validate_generation_params(count, length)


def test_missing_parameters_use_defaults():
    assert validate_generation_params(None, None) == (1, 8)
    assert validate_generation_params("", " ") == (1, 8)
    assert validate_generation_params("25", "10") == (25, 10)


def test_generate_and_store_retries_on_insert_collision():
    store = MemoryStore(collisions=2)
    codes = CodeGenerator(store).generate_and_store(5, 8)
    assert len(codes) == 5
    assert store.insert_calls == 3
    assert store.codes == set(codes)


def test_generate_and_store_gives_up_after_repeated_collisions():
    store = MemoryStore(collisions=INSERT_ATTEMPTS)
    with pytest.raises(InfrastructureError):
        CodeGenerator(store).generate_and_store(2, 8)
    assert store.codes == set()


def test_store_errors_surface_as_infrastructure_errors():
    class BrokenStore(MemoryStore):
        def code_exists(self, code):
            raise OperationalError("SELECT", {}, Exception("disk I/O error"))

    with pytest.raises(InfrastructureError):
        CodeGenerator(BrokenStore()).generate(1, 8)


def test_generate_and_store_persists_unclaimed_cards(repo):
    codes = CodeGenerator(repo).generate_and_store(4, 10)
    cards = {c.code: c for c in repo.list_cards()}
    assert set(codes) == set(cards)
    for code in codes:
        assert cards[code].status == "unclaimed"
        assert cards[code].nfc_tag_assigned is False
        assert cards[code].profile_id is None
