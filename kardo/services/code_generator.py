"""
Batch generation of card codes.

Codes are drawn with a cryptographic random source and checked against both
the current batch and the store. The card code is the table's primary key, so
a concurrent generator that inserts the same code first makes our insert fail
with IntegrityError; the whole batch is then redrawn.
"""
from __future__ import annotations

import secrets
from dataclasses import dataclass, field
from typing import Callable, Iterable, Protocol

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from kardo.core.errors import ExhaustedAttemptsError, InfrastructureError, ValidationError
from kardo.domain.codes import (
    CODE_MAX_LENGTH,
    CODE_MIN_LENGTH,
    DEFAULT_CODE_LENGTH,
    random_code,
)

MIN_COUNT = 1
MAX_COUNT = 1000
DEFAULT_COUNT = 1
ATTEMPTS_PER_CODE = 100
INSERT_ATTEMPTS = 3


class CodeStore(Protocol):
    def code_exists(self, code: str) -> bool: ...

    def insert_cards(self, codes: Iterable[str]) -> list[str]: ...


def _as_int(value, default: int, name: str) -> int:
    if value is None or (isinstance(value, str) and not value.strip()):
        return default
    if isinstance(value, bool):
        raise ValidationError(f"{name} must be an integer")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{name} must be an integer") from None


def validate_generation_params(count, length) -> tuple[int, int]:
    """
    Parse and range-check generation parameters.

    Out-of-range values are rejected rather than clamped, so a caller asking for
    5000 cards gets an error instead of a silent 1000. Missing values use the
    defaults (1 card, 8 characters).
    """
    count_value = _as_int(count, DEFAULT_COUNT, "count")
    length_value = _as_int(length, DEFAULT_CODE_LENGTH, "codeLength")
    if not MIN_COUNT <= count_value <= MAX_COUNT:
        raise ValidationError(f"count must be between {MIN_COUNT} and {MAX_COUNT}")
    if not CODE_MIN_LENGTH <= length_value <= CODE_MAX_LENGTH:
        raise ValidationError(f"codeLength must be between {CODE_MIN_LENGTH} and {CODE_MAX_LENGTH}")
    return count_value, length_value


@dataclass
class CodeGenerator:
    repository: CodeStore
    choice: Callable[[str], str] = field(default=secrets.choice)

    def generate(self, count: int, length: int) -> list[str]:
        """
        Return ``count`` distinct codes that were absent from the store when checked.

        Gives up with ExhaustedAttemptsError after ``count * ATTEMPTS_PER_CODE``
        draws. Store failures surface as InfrastructureError.
        """
        count, length = validate_generation_params(count, length)
        max_attempts = count * ATTEMPTS_PER_CODE
        accepted: list[str] = []
        seen: set[str] = set()
        attempts = 0
        while len(accepted) < count and attempts < max_attempts:
            attempts += 1
            candidate = random_code(length, self.choice)
            if candidate in seen:
                continue
            try:
                exists = self.repository.code_exists(candidate)
            except SQLAlchemyError as exc:
                raise InfrastructureError(f"Card lookup failed: {exc}") from exc
            if exists:
                continue
            seen.add(candidate)
            accepted.append(candidate)
        if len(accepted) < count:
            raise ExhaustedAttemptsError(count, len(accepted), attempts)
        return accepted

    def generate_and_store(self, count: int, length: int) -> list[str]:
        """Generate a full batch and insert it atomically; nothing is stored on failure."""
        for _ in range(INSERT_ATTEMPTS):
            codes = self.generate(count, length)
            try:
                return self.repository.insert_cards(codes)
            except IntegrityError:
                # a concurrent writer claimed one of our codes between check and insert
                continue
            except SQLAlchemyError as exc:
                raise InfrastructureError(f"Failed to create cards: {exc}") from exc
        raise InfrastructureError(
            f"Failed to create cards: code collisions on {INSERT_ATTEMPTS} consecutive inserts"
        )
