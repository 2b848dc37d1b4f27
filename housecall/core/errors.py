# housecall/core/errors.py
"""
Exception taxonomy for the intake engine.

Validation problems and backend failures are exceptions; a zone that is not
serviced is a result state (see ZoneCheckResult), not an error.
"""
from __future__ import annotations

from typing import Optional


class IntakeError(Exception):
    """Base class for every error raised by the intake engine."""


class IntakeValidationError(IntakeError):
    """Input does not fit the shape the current branch requires."""


class InvalidUrgencyError(IntakeValidationError):
    def __init__(self, value: object):
        self.value = value
        super().__init__(f"Unknown urgency value: {value!r}")


class BackendError(IntakeError):
    """A remote call failed (transport error or unexpected status)."""

    def __init__(self, message: str, status_code: Optional[int] = None, endpoint: Optional[str] = None):
        self.status_code = status_code
        self.endpoint = endpoint
        super().__init__(message)


class CatalogResolutionError(IntakeError):
    """Species/breed catalogs came back empty or malformed; scoped to one field."""

    def __init__(self, field: str, message: str):
        self.field = field
        self.message = message
        super().__init__(f"{field}: {message}")


class AlreadySubmittedError(IntakeError):
    """The appointment request for this session was already sent."""
