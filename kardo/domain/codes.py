"""Card code alphabet, normalization and format validation."""
from __future__ import annotations

import re
import secrets
from typing import Callable

# Crockford-style base32 without I, O, 0 and 1 (ambiguous on printed cards)
CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
CODE_MIN_LENGTH = 6
CODE_MAX_LENGTH = 16
DEFAULT_CODE_LENGTH = 8
CODE_PATTERN = re.compile(r"[A-HJ-NP-Z2-9]{%d,%d}" % (CODE_MIN_LENGTH, CODE_MAX_LENGTH))


def normalize_code(raw: str | None) -> str:
    """Uppercase and trim a code.

    Path and query values arrive already percent-decoded by Starlette; decoding
    again would let ``%2541`` stand in for ``A``.
    """
    return (raw or "").upper().strip()


def is_valid_code(code: str | None) -> bool:
    if not code:
        return False
    return bool(CODE_PATTERN.fullmatch(code))


def random_code(length: int = DEFAULT_CODE_LENGTH, choice: Callable[[str], str] = secrets.choice) -> str:
    """Draw ``length`` symbols independently and uniformly from the alphabet."""
    return "".join(choice(CODE_ALPHABET) for _ in range(length))
