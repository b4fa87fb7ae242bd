"""
Booking lifecycle service
=========================

Applies the booking state machine transactionally.

Concurrency safety
------------------
Every write that reads or changes the seats held against a ride runs in the
same critical region:

1. **Redis distributed lock** on ``ride:{id}`` serialises writers across
   API processes.
2. **SELECT ... FOR UPDATE** on the ride row inside the transaction, then a
   fresh read of the ride's bookings.
3. The guard re-checks remaining seats and the write is committed before
   the lock is released, so the check and the write form one unit.

Relationship errors that do not depend on seat state (wrong driver, missing
booking) are raised before the lock is taken.
"""

from __future__ import annotations

import logging
from typing import Iterable, Optional

import redis.asyncio as aioredis
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from src.domain.entities import Actor
from src.domain.enums import BookingStatus, RideStatus
from src.domain.errors import DuplicateBooking, NotAuthorized, NotFound
from src.domain.lifecycle import (
    cascade_booking_status,
    guard_admin_cancel,
    guard_booking_create,
    guard_booking_visible,
    guard_driver_status_change,
    guard_passenger_cancel,
)
from src.infrastructure.locks import critical_region, ride_lock
from src.infrastructure.models import BookingModel, RideModel
from src.infrastructure.repositories import (
    BookingRepository,
    RideRepository,
    UserRepository,
)
from src.infrastructure.transactions import run_in_transaction

logger = logging.getLogger(__name__)


class BookingService:
    def __init__(self, session: AsyncSession, redis: aioredis.Redis):
        self.session = session
        self.redis = redis
        self.rides = RideRepository(session)
        self.bookings = BookingRepository(session)
        self.users = UserRepository(session)

    # ── Reads ─────────────────────────────────────────────────────────

    async def get(self, actor: Actor, booking_id: str) -> tuple[BookingModel, RideModel]:
        booking = await self._get_booking(booking_id)
        ride = await self._get_ride(booking.ride_id)
        guard_booking_visible(actor, ride, booking)
        return booking, ride

    async def list_for_passenger(
        self,
        actor: Actor,
        *,
        status: Optional[BookingStatus] = None,
        offset: int = 0,
        limit: int = 10,
    ) -> tuple[list[BookingModel], int]:
        return await self.bookings.list_for_passenger(
            actor.id, status=status, offset=offset, limit=limit
        )

    # ── Transitions ───────────────────────────────────────────────────

    async def create(self, actor: Actor, ride_id: str, seats_booked: int) -> BookingModel:
        """Passenger request: a new PENDING booking, if the seats are there."""
        await self._get_ride(ride_id)

        async def work() -> BookingModel:
            ride = await self._lock_ride(ride_id)
            current = await self.bookings.get_for_ride(ride_id)
            guard_booking_create(actor, ride, seats_booked, current)
            booking = BookingModel(
                ride_id=ride.id,
                passenger_id=actor.id,
                seats_booked=seats_booked,
                total_price=round(seats_booked * ride.price_per_seat, 2),
                status=BookingStatus.PENDING,
            )
            return await self.bookings.create(booking)

        async with critical_region(ride_lock(self.redis, ride_id)):
            try:
                booking = await run_in_transaction(self.session, work)
            except IntegrityError as exc:
                raise DuplicateBooking("You already have a booking for this ride") from exc

        logger.info(
            "Booking %s created on ride %s (%d seats)",
            booking.id,
            ride_id,
            seats_booked,
        )
        return booking

    async def update_status(
        self, actor: Actor, booking_id: str, target: BookingStatus
    ) -> BookingModel:
        """Driver confirm / reject."""
        booking = await self._get_booking(booking_id)
        ride = await self._get_ride(booking.ride_id)
        if ride.driver_id != actor.id:
            raise NotAuthorized("Only the driver can update booking status")
        ride_id = ride.id

        async def work() -> BookingModel:
            locked_ride = await self._lock_ride(ride_id)
            current = await self.bookings.get_for_ride(ride_id)
            locked = _find(current, booking_id)
            new_status = guard_driver_status_change(
                actor, locked_ride, locked, target, current
            )
            locked.status = new_status
            await self.session.flush()
            return locked

        async with critical_region(ride_lock(self.redis, ride_id)):
            updated = await run_in_transaction(self.session, work)

        logger.info("Booking %s -> %s by driver %s", booking_id, target.value, actor.id)
        return updated

    async def cancel_by_passenger(self, actor: Actor, booking_id: str) -> BookingModel:
        booking = await self._get_booking(booking_id)
        if booking.passenger_id != actor.id:
            raise NotAuthorized("Not authorized to cancel this booking")
        ride_id = booking.ride_id

        async def work() -> BookingModel:
            await self._lock_ride(ride_id)
            locked = _find(await self.bookings.get_for_ride(ride_id), booking_id)
            locked.status = guard_passenger_cancel(actor, locked)
            await self.session.flush()
            return locked

        async with critical_region(ride_lock(self.redis, ride_id)):
            cancelled = await run_in_transaction(self.session, work)

        logger.info("Booking %s cancelled by passenger %s", booking_id, actor.id)
        return cancelled

    async def cancel_by_admin(self, actor: Actor, booking_id: str) -> BookingModel:
        booking = await self._get_booking(booking_id)
        ride_id = booking.ride_id

        async def work() -> BookingModel:
            await self._lock_ride(ride_id)
            locked = _find(await self.bookings.get_for_ride(ride_id), booking_id)
            locked.status = guard_admin_cancel(actor, locked)
            await self.session.flush()
            return locked

        async with critical_region(ride_lock(self.redis, ride_id)):
            cancelled = await run_in_transaction(self.session, work)

        logger.warning("Booking %s cancelled by administrator %s", booking_id, actor.id)
        return cancelled

    async def cascade_ride_status(
        self, ride: RideModel, bookings: Iterable[BookingModel], target: RideStatus
    ) -> None:
        """
        Derived transitions when a ride changes status.  Must run inside the
        caller's ride critical region and transaction.
        """
        completed_passengers: set[str] = set()
        for booking in bookings:
            new_status = cascade_booking_status(target, booking.status)
            if new_status is None:
                continue
            booking.status = new_status
            if new_status == BookingStatus.COMPLETED:
                completed_passengers.add(booking.passenger_id)

        if target == RideStatus.COMPLETED:
            await self.users.increment_total_rides(
                {ride.driver_id, *completed_passengers}
            )
        await self.session.flush()
        logger.info(
            "Ride %s -> %s cascaded to its bookings (%d completed)",
            ride.id,
            target.value,
            len(completed_passengers),
        )

    # ── Helpers ───────────────────────────────────────────────────────

    async def _get_booking(self, booking_id: str) -> BookingModel:
        booking = await self.bookings.get_by_id(booking_id)
        if booking is None:
            raise NotFound("Booking not found")
        return booking

    async def _get_ride(self, ride_id: str) -> RideModel:
        ride = await self.rides.get_by_id(ride_id)
        if ride is None:
            raise NotFound("Ride not found")
        return ride

    async def _lock_ride(self, ride_id: str) -> RideModel:
        ride = await self.rides.get_for_update(ride_id)
        if ride is None:
            raise NotFound("Ride not found")
        return ride


def _find(bookings: Iterable[BookingModel], booking_id: str) -> BookingModel:
    for booking in bookings:
        if booking.id == booking_id:
            return booking
    raise NotFound("Booking not found")
