"""
Booking and ride lifecycle guards.

Patterns used
-------------
- **State Pattern** on bookings and rides: ``BOOKING_TRANSITIONS`` and
  ``RIDE_TRANSITIONS`` are the only source of legal status changes.
- **Guards** are pure functions over the loaded ride / booking rows and the
  resolved ``Actor``.  They raise a ``DomainError`` and never write, so the
  services can call them inside the per-ride critical region right before
  committing.

Booking transitions
-------------------
* create   passenger          -> PENDING
* confirm  ride driver        PENDING -> CONFIRMED   (seats re-validated)
* cancel   ride driver        PENDING | CONFIRMED -> CANCELLED
* cancel   passenger          PENDING -> CANCELLED
* cancel   admin              PENDING | CONFIRMED -> CANCELLED
* complete ride completion    CONFIRMED -> COMPLETED (never requested directly)
"""

from __future__ import annotations

from typing import Any, Iterable, Optional

from .entities import Actor
from .enums import (
    BOOKING_TRANSITIONS,
    RIDE_TRANSITIONS,
    TERMINAL_RIDE_STATUSES,
    BookingStatus,
    RideStatus,
)
from .errors import (
    DuplicateBooking,
    InvalidStateTransition,
    NotAuthorized,
    SeatConflict,
    ValidationError,
)
from .seats import held_seats, remaining_seats

# Statuses a driver may request through the booking update endpoint
DRIVER_REQUESTABLE_STATUSES = frozenset(
    {BookingStatus.CONFIRMED, BookingStatus.CANCELLED}
)


def check_booking_transition(
    current: BookingStatus, target: BookingStatus
) -> BookingStatus:
    """Return *target* if the transition is legal, else raise."""
    current, target = BookingStatus(current), BookingStatus(target)
    if target not in BOOKING_TRANSITIONS.get(current, set()):
        raise InvalidStateTransition(
            f"Cannot transition booking from {current.value} to {target.value}"
        )
    return target


def check_ride_transition(current: RideStatus, target: RideStatus) -> RideStatus:
    current, target = RideStatus(current), RideStatus(target)
    if target not in RIDE_TRANSITIONS.get(current, set()):
        raise InvalidStateTransition(
            f"Cannot transition ride from {current.value} to {target.value}"
        )
    return target


# ── Booking guards ────────────────────────────────────────────────────


def guard_booking_create(
    actor: Actor,
    ride: Any,
    seats_requested: int,
    bookings: Iterable[Any],
) -> int:
    """
    Validate a new booking request against the ride's current bookings.

    Returns the remaining seats before the booking is applied.
    """
    if actor.is_service:
        raise NotAuthorized("Service actors cannot book rides")
    if ride.driver_id == actor.id:
        raise ValidationError("Cannot book your own ride")
    if RideStatus(ride.status) != RideStatus.ACTIVE:
        raise InvalidStateTransition("Ride is not available for booking")

    bookings = list(bookings)
    if any(
        b.passenger_id == actor.id
        and BookingStatus(b.status) in (BookingStatus.PENDING, BookingStatus.CONFIRMED)
        for b in bookings
    ):
        raise DuplicateBooking("You already have a booking for this ride")

    remaining = remaining_seats(ride.capacity, bookings)
    if seats_requested > remaining:
        raise SeatConflict(f"Only {remaining} seats available")
    return remaining


def guard_driver_status_change(
    actor: Actor,
    ride: Any,
    booking: Any,
    target: BookingStatus,
    bookings: Iterable[Any] = (),
) -> BookingStatus:
    """Driver-side confirm / reject of a booking on their own ride."""
    if ride.driver_id != actor.id:
        raise NotAuthorized("Only the driver can update booking status")

    target = BookingStatus(target)
    if target not in DRIVER_REQUESTABLE_STATUSES:
        raise InvalidStateTransition(
            f"Booking status {target.value} cannot be requested directly"
        )
    check_booking_transition(booking.status, target)

    if target == BookingStatus.CONFIRMED:
        if RideStatus(ride.status) != RideStatus.ACTIVE:
            raise InvalidStateTransition(
                "Bookings can only be confirmed on an active ride"
            )
        # First come, first served over the seats other bookings leave free
        remaining = remaining_seats(ride.capacity, bookings, exclude_id=booking.id)
        if booking.seats_booked > remaining:
            raise SeatConflict(f"Only {remaining} seats available")
    return target


def guard_passenger_cancel(actor: Actor, booking: Any) -> BookingStatus:
    if booking.passenger_id != actor.id:
        raise NotAuthorized("Not authorized to cancel this booking")
    # Confirmed bookings are released by the driver or an admin only
    if BookingStatus(booking.status) != BookingStatus.PENDING:
        raise InvalidStateTransition("Can only cancel pending bookings")
    return BookingStatus.CANCELLED


def guard_admin_cancel(actor: Actor, booking: Any) -> BookingStatus:
    if not actor.is_admin:
        raise NotAuthorized("Administrator access required")
    return check_booking_transition(booking.status, BookingStatus.CANCELLED)


def guard_booking_visible(actor: Actor, ride: Any, booking: Any) -> None:
    if actor.id not in (booking.passenger_id, ride.driver_id) and not actor.is_admin:
        raise NotAuthorized("Not authorized to view this booking")


def cascade_booking_status(
    ride_status: RideStatus, booking_status: BookingStatus
) -> Optional[BookingStatus]:
    """
    Status a booking takes when its ride moves to *ride_status*.

    ``None`` means the booking is left alone.
    """
    ride_status, booking_status = RideStatus(ride_status), BookingStatus(booking_status)
    if ride_status == RideStatus.COMPLETED:
        if booking_status == BookingStatus.CONFIRMED:
            return BookingStatus.COMPLETED
        if booking_status == BookingStatus.PENDING:
            return BookingStatus.CANCELLED
    elif ride_status == RideStatus.CANCELLED:
        if booking_status in (BookingStatus.PENDING, BookingStatus.CONFIRMED):
            return BookingStatus.CANCELLED
    return None


# ── Ride guards ───────────────────────────────────────────────────────


def guard_ride_owner(actor: Actor, ride: Any, action: str = "update") -> None:
    if ride.driver_id != actor.id and not actor.is_admin:
        raise NotAuthorized(f"Not authorized to {action} this ride")


def guard_ride_edit(
    actor: Actor,
    ride: Any,
    bookings: Iterable[Any],
    new_capacity: Optional[int] = None,
    new_status: Optional[RideStatus] = None,
) -> None:
    guard_ride_owner(actor, ride, "update")
    if RideStatus(ride.status) in TERMINAL_RIDE_STATUSES:
        raise InvalidStateTransition(
            f"Ride is {RideStatus(ride.status).value} and can no longer be edited"
        )
    if new_status is not None and RideStatus(new_status) != RideStatus(ride.status):
        check_ride_transition(ride.status, new_status)
    if new_capacity is not None:
        held = held_seats(bookings)
        if new_capacity < held:
            raise SeatConflict(
                f"Capacity cannot drop below the {held} seats already booked"
            )


def guard_ride_delete(actor: Actor, ride: Any, bookings: Iterable[Any]) -> None:
    guard_ride_owner(actor, ride, "delete")
    # PENDING requests do not block deletion; CONFIRMED ones do
    if any(BookingStatus(b.status) == BookingStatus.CONFIRMED for b in bookings):
        raise InvalidStateTransition("Cannot delete ride with confirmed bookings")
