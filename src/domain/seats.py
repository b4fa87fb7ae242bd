"""
Seat availability calculator.

Remaining seats are never stored.  They are derived from the ride's declared
capacity and the bookings that currently hold seats (PENDING or CONFIRMED).
Anything exposing ``seats_booked``, ``status`` and ``id`` can be passed in:
ORM rows and ``BookingSeats`` alike.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional, Protocol

from .enums import OPEN_BOOKING_STATUSES, BookingStatus
from .errors import InternalConsistencyError


class SeatHolder(Protocol):
    id: Optional[str]
    seats_booked: int
    status: BookingStatus


@dataclass(frozen=True)
class BookingSeats:
    seats_booked: int
    status: BookingStatus
    id: Optional[str] = None


def held_seats(
    bookings: Iterable[SeatHolder], exclude_id: Optional[str] = None
) -> int:
    """Sum of seats held by open bookings, optionally ignoring one booking."""
    return sum(
        b.seats_booked
        for b in bookings
        if BookingStatus(b.status) in OPEN_BOOKING_STATUSES
        and (exclude_id is None or b.id != exclude_id)
    )


def remaining_seats(
    capacity: int,
    bookings: Iterable[SeatHolder],
    exclude_id: Optional[str] = None,
) -> int:
    """
    ``capacity - held_seats(bookings)``.

    A negative result means the capacity invariant was already broken by an
    earlier write, so it is raised rather than clamped to zero.
    """
    remaining = capacity - held_seats(bookings, exclude_id=exclude_id)
    if remaining < 0:
        raise InternalConsistencyError(
            f"Derived remaining seats is negative ({remaining}) "
            f"for capacity {capacity}"
        )
    return remaining
