"""
Domain error taxonomy.

Every error carries a stable ``kind`` (returned to callers as ``error``)
and the HTTP status the API layer maps it to.
"""

from __future__ import annotations

from typing import Any, Optional


class DomainError(Exception):
    kind = "domain_error"
    status_code = 400

    def __init__(self, message: str, details: Optional[list[dict[str, Any]]] = None):
        self.message = message
        self.details = details
        super().__init__(message)


class ValidationError(DomainError):
    """Malformed or out-of-range input."""

    kind = "validation_error"
    status_code = 400


class Unauthenticated(DomainError):
    kind = "unauthenticated"
    status_code = 401


class NotAuthorized(DomainError):
    """Authenticated, but lacking the relationship a guard requires."""

    kind = "not_authorized"
    status_code = 403


class NotFound(DomainError):
    kind = "not_found"
    status_code = 404


class SeatConflict(DomainError):
    """Requested seats exceed the ride's remaining seats at commit time."""

    kind = "seat_conflict"
    status_code = 409


class InvalidStateTransition(DomainError):
    """Raised when a ride or booking status change violates its state machine."""

    kind = "invalid_state_transition"
    status_code = 400


class DuplicateBooking(DomainError):
    kind = "duplicate_booking"
    status_code = 400


class DuplicateReview(DomainError):
    kind = "duplicate_review"
    status_code = 400


class InternalConsistencyError(DomainError):
    """
    Negative derived seats, an exhausted transaction retry or a lock that
    could not be taken in time.  Logged; never shown to callers in detail.
    """

    kind = "internal_consistency_error"
    status_code = 500
