"""Error kinds raised by the reservation collaborators.

A field that cannot be parsed out of an utterance is not an error: the
parsers return ``None`` and the session re-prompts.
"""

from __future__ import annotations


class ReservationError(Exception):
    """Base class for every error raised by this package."""


class ConfigurationError(ReservationError):
    """A required credential or setting is missing."""


class InputError(ReservationError):
    """A caller-supplied argument is malformed (e.g. an invalid date)."""


class ValidationError(ReservationError):
    """A reservation payload failed field-level validation."""

    def __init__(self, errors: list[str]) -> None:
        self.errors = list(errors)
        super().__init__("; ".join(self.errors) or "Invalid reservation")


class ExternalServiceError(ReservationError):
    """A network call to the weather provider or bookings API failed."""
