"""
Ride lifecycle & ownership
==========================

* Creation needs an authenticated user actor, who becomes the driver.
* Edits and deletion need the owning driver (or an admin) and run in the
  ride's critical region, because capacity edits, status cascades and the
  confirmed-booking check all read the same booking set that booking writes
  change.
* Reads are public and always report derived ``available_seats``.
"""

from __future__ import annotations

import logging
from contextlib import AsyncExitStack
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Optional

import redis.asyncio as aioredis
from sqlalchemy.ext.asyncio import AsyncSession

from src.domain.entities import Actor
from src.domain.enums import RideStatus
from src.domain.errors import InternalConsistencyError, NotAuthorized, NotFound
from src.domain.lifecycle import guard_ride_delete, guard_ride_edit, guard_ride_owner
from src.domain.seats import remaining_seats
from src.infrastructure.locks import critical_region, rating_lock, ride_lock
from src.infrastructure.models import BookingModel, RideModel, UserModel
from src.infrastructure.repositories import (
    BookingRepository,
    ReviewRepository,
    RideRepository,
    UserRepository,
)
from src.infrastructure.transactions import run_in_transaction
from src.services.bookings import BookingService
from src.services.reviews import RatingAggregator

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = (
    "origin",
    "destination",
    "departure_time",
    "capacity",
    "price_per_seat",
    "description",
)
NULLABLE_FIELDS = ("description",)


@dataclass
class RideView:
    ride: RideModel
    available_seats: int
    bookings: list[BookingModel] = field(default_factory=list)
    driver: Optional[UserModel] = None


class RideService:
    def __init__(self, session: AsyncSession, redis: aioredis.Redis):
        self.session = session
        self.redis = redis
        self.rides = RideRepository(session)
        self.bookings = BookingRepository(session)
        self.reviews = ReviewRepository(session)
        self.users = UserRepository(session)

    # ── Reads ─────────────────────────────────────────────────────────

    async def get(self, ride_id: str) -> RideView:
        ride = await self._get_ride(ride_id)
        seats = await self.bookings.seats_by_ride([ride.id])
        driver = await self.users.get_by_id(ride.driver_id)
        return RideView(ride, remaining_seats(ride.capacity, seats[ride.id]), driver=driver)

    async def list_active(
        self,
        *,
        origin: Optional[str] = None,
        destination: Optional[str] = None,
        departure_date: Optional[date] = None,
        offset: int = 0,
        limit: int = 10,
    ) -> tuple[list[RideView], int]:
        rides, total = await self.rides.list_active(
            origin=origin,
            destination=destination,
            departure_date=departure_date,
            offset=offset,
            limit=limit,
        )
        seats = await self.bookings.seats_by_ride([r.id for r in rides])
        drivers = await self.users.get_many(r.driver_id for r in rides)
        views = [
            RideView(
                r,
                remaining_seats(r.capacity, seats[r.id]),
                driver=drivers.get(r.driver_id),
            )
            for r in rides
        ]
        return views, total

    async def list_for_driver(self, actor: Actor) -> list[RideView]:
        rides = await self.rides.list_by_driver(actor.id)
        bookings = await self.bookings.get_for_rides([r.id for r in rides])
        driver = await self.users.get_by_id(actor.id)
        return [
            RideView(r, remaining_seats(r.capacity, bookings[r.id]), bookings[r.id], driver)
            for r in rides
        ]

    # ── Writes ────────────────────────────────────────────────────────

    async def create(self, actor: Actor, **fields: Any) -> RideView:
        if actor.is_service:
            raise NotAuthorized("Service actors cannot publish rides")

        async def work() -> RideModel:
            return await self.rides.create(
                RideModel(driver_id=actor.id, status=RideStatus.ACTIVE, **fields)
            )

        ride = await run_in_transaction(self.session, work)
        logger.info(
            "Ride %s published by %s (%d seats)", ride.id, actor.id, ride.capacity
        )
        return RideView(ride, ride.capacity, driver=await self.users.get_by_id(actor.id))

    async def update(self, actor: Actor, ride_id: str, changes: dict[str, Any]) -> RideView:
        ride = await self._get_ride(ride_id)
        guard_ride_owner(actor, ride, "update")
        changes = dict(changes)
        new_status = changes.pop("status", None)
        new_capacity = changes.get("capacity")

        async def work() -> RideView:
            locked = await self._lock_ride(ride_id)
            current = await self.bookings.get_for_ride(ride_id)
            guard_ride_edit(
                actor,
                locked,
                current,
                new_capacity=new_capacity,
                new_status=new_status,
            )
            for name in EDITABLE_FIELDS:
                value = changes.get(name)
                if value is not None or (name in NULLABLE_FIELDS and name in changes):
                    setattr(locked, name, value)
            if new_status is not None and RideStatus(new_status) != RideStatus(locked.status):
                locked.status = RideStatus(new_status)
                await BookingService(self.session, self.redis).cascade_ride_status(
                    locked, current, RideStatus(new_status)
                )
            await self.session.flush()
            return RideView(locked, remaining_seats(locked.capacity, current), current)

        async with critical_region(ride_lock(self.redis, ride_id)):
            view = await run_in_transaction(self.session, work)
        view.driver = await self.users.get_by_id(view.ride.driver_id)

        logger.info("Ride %s updated by %s: %s", ride_id, actor.id, sorted(changes))
        return view

    async def delete(self, actor: Actor, ride_id: str) -> None:
        ride = await self._get_ride(ride_id)
        guard_ride_owner(actor, ride, "delete")
        # Reviews left on the ride are deleted with it; their subjects' means
        # are rebuilt in the same transaction, under their rating locks
        reviewed = await self.reviews.reviewed_users_for_ride(ride_id)
        aggregator = RatingAggregator(self.session)

        async def work() -> None:
            locked = await self._lock_ride(ride_id)
            guard_ride_delete(actor, locked, await self.bookings.get_for_ride(ride_id))
            current = await self.reviews.reviewed_users_for_ride(ride_id)
            if not current <= reviewed:
                raise InternalConsistencyError(
                    "Ride received new reviews while being deleted"
                )
            await self.reviews.delete_for_ride(ride_id)
            await self.bookings.delete_for_ride(ride_id)
            await self.rides.delete(ride_id)
            for user_id in sorted(reviewed):
                await aggregator.apply(user_id)

        async with AsyncExitStack() as stack:
            await stack.enter_async_context(critical_region(ride_lock(self.redis, ride_id)))
            for user_id in sorted(reviewed):
                await stack.enter_async_context(
                    critical_region(rating_lock(self.redis, user_id))
                )
            await run_in_transaction(self.session, work)

        logger.info(
            "Ride %s deleted by %s; ratings rebuilt for %s",
            ride_id,
            actor.id,
            sorted(reviewed),
        )

    # ── Helpers ───────────────────────────────────────────────────────

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
