"""
Error taxonomy shared by services and routers.

Services raise (or return) these typed conditions; only the route layer turns
them into HTTP responses.
"""

from __future__ import annotations


class KardoError(Exception):
    """Base class for every domain error."""

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message


class ValidationError(KardoError):
    """Malformed input: bad code format, out-of-range parameters, bad handle."""


class NotFoundError(KardoError):
    """A card or profile that was asked for does not exist."""


class CardNotFoundError(NotFoundError):
    pass


class ProfileNotFoundError(NotFoundError):
    pass


class InfrastructureError(KardoError):
    """The data store (or another backing service) failed."""


class ExhaustedAttemptsError(KardoError):
    """The code generator could not find enough unique codes within its draw budget."""

    def __init__(self, requested: int, found: int, attempts: int):
        super().__init__(
            f"Failed to generate {requested} unique codes after {attempts} attempts "
            f"({found} found). Try a longer code length or a smaller count."
        )
        self.requested = requested
        self.found = found
        self.attempts = attempts
