"""
Repository Pattern -- abstracts DB access so domain logic stays DB-agnostic.

Each repository receives an ``AsyncSession`` (unit-of-work) and exposes
domain-relevant queries only.  Repositories flush but never commit; the
services decide where a transaction ends.
"""

from __future__ import annotations

from collections import defaultdict
from datetime import date, datetime, time, timedelta, timezone
from typing import Iterable, Optional, Sequence

from sqlalchemy import Select, delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from .models import BookingModel, ReviewModel, RideModel, UserModel
from src.domain.enums import BookingStatus, RideStatus, UserRole
from src.domain.seats import BookingSeats


async def _paginate(
    session: AsyncSession, query: Select, offset: int, limit: int
) -> tuple[list, int]:
    total = await session.scalar(
        select(func.count()).select_from(query.order_by(None).subquery())
    )
    result = await session.execute(query.offset(offset).limit(limit))
    return list(result.scalars().all()), total or 0


class UserRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(self, user_id: str) -> Optional[UserModel]:
        return await self.session.get(UserModel, user_id)

    async def get_by_username(self, username: str) -> Optional[UserModel]:
        result = await self.session.execute(
            select(UserModel).where(UserModel.username == username)
        )
        return result.scalar_one_or_none()

    async def get_many(self, user_ids: Iterable[str]) -> dict[str, UserModel]:
        ids = set(user_ids)
        if not ids:
            return {}
        result = await self.session.execute(
            select(UserModel).where(UserModel.id.in_(ids))
        )
        return {u.id: u for u in result.scalars().all()}

    async def create(
        self, *, user_id: str, email: str, role: UserRole = UserRole.USER
    ) -> UserModel:
        user = UserModel(id=user_id, email=email, role=role, total_rides=0)
        self.session.add(user)
        await self.session.flush()
        return user

    async def set_rating(self, user_id: str, rating: Optional[float]) -> None:
        await self.session.execute(
            update(UserModel).where(UserModel.id == user_id).values(rating=rating)
        )

    async def increment_total_rides(self, user_ids: Iterable[str]) -> None:
        ids = list(user_ids)
        if not ids:
            return
        await self.session.execute(
            update(UserModel)
            .where(UserModel.id.in_(ids))
            .values(total_rides=UserModel.total_rides + 1)
            .execution_options(synchronize_session=False)
        )

    async def count(self) -> int:
        return await self.session.scalar(select(func.count()).select_from(UserModel)) or 0


class RideRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, ride: RideModel) -> RideModel:
        self.session.add(ride)
        await self.session.flush()
        return ride

    async def get_by_id(self, ride_id: str) -> Optional[RideModel]:
        return await self.session.get(RideModel, ride_id)

    async def get_for_update(self, ride_id: str) -> Optional[RideModel]:
        """SELECT ... FOR UPDATE so concurrent seat writers queue on the row."""
        result = await self.session.execute(
            select(RideModel)
            .where(RideModel.id == ride_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def list_active(
        self,
        *,
        origin: Optional[str] = None,
        destination: Optional[str] = None,
        departure_date: Optional[date] = None,
        offset: int = 0,
        limit: int = 10,
    ) -> tuple[list[RideModel], int]:
        query = select(RideModel).where(RideModel.status == RideStatus.ACTIVE)
        if origin:
            query = query.where(RideModel.origin.ilike(f"%{origin}%"))
        if destination:
            query = query.where(RideModel.destination.ilike(f"%{destination}%"))
        if departure_date:
            start = datetime.combine(departure_date, time.min, tzinfo=timezone.utc)
            query = query.where(
                RideModel.departure_time >= start,
                RideModel.departure_time < start + timedelta(days=1),
            )
        query = query.order_by(RideModel.departure_time, RideModel.id)
        return await _paginate(self.session, query, offset, limit)

    async def list_by_driver(self, driver_id: str) -> list[RideModel]:
        result = await self.session.execute(
            select(RideModel)
            .where(RideModel.driver_id == driver_id)
            .order_by(RideModel.departure_time.desc())
        )
        return list(result.scalars().all())

    async def delete(self, ride_id: str) -> None:
        await self.session.execute(delete(RideModel).where(RideModel.id == ride_id))

    async def count_by_status(self) -> dict[str, int]:
        result = await self.session.execute(
            select(RideModel.status, func.count()).group_by(RideModel.status)
        )
        return {RideStatus(s).value: n for s, n in result.all()}


class BookingRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, booking: BookingModel) -> BookingModel:
        self.session.add(booking)
        await self.session.flush()
        return booking

    async def get_by_id(self, booking_id: str) -> Optional[BookingModel]:
        return await self.session.get(BookingModel, booking_id)

    async def get_for_ride(self, ride_id: str) -> list[BookingModel]:
        result = await self.session.execute(
            select(BookingModel)
            .where(BookingModel.ride_id == ride_id)
            .order_by(BookingModel.created_at)
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    async def get_for_rides(
        self, ride_ids: Sequence[str]
    ) -> dict[str, list[BookingModel]]:
        grouped: dict[str, list[BookingModel]] = defaultdict(list)
        if not ride_ids:
            return grouped
        result = await self.session.execute(
            select(BookingModel)
            .where(BookingModel.ride_id.in_(ride_ids))
            .order_by(BookingModel.created_at)
        )
        for booking in result.scalars().all():
            grouped[booking.ride_id].append(booking)
        return grouped

    async def seats_by_ride(
        self, ride_ids: Sequence[str]
    ) -> dict[str, list[BookingSeats]]:
        """Light-weight seat view of each ride's bookings, for listings."""
        grouped: dict[str, list[BookingSeats]] = defaultdict(list)
        if not ride_ids:
            return grouped
        result = await self.session.execute(
            select(
                BookingModel.ride_id,
                BookingModel.id,
                BookingModel.seats_booked,
                BookingModel.status,
            ).where(BookingModel.ride_id.in_(ride_ids))
        )
        for ride_id, booking_id, seats, status in result.all():
            grouped[ride_id].append(
                BookingSeats(seats_booked=seats, status=status, id=booking_id)
            )
        return grouped

    async def list_for_passenger(
        self,
        passenger_id: str,
        *,
        status: Optional[BookingStatus] = None,
        offset: int = 0,
        limit: int = 10,
    ) -> tuple[list[BookingModel], int]:
        query = select(BookingModel).where(BookingModel.passenger_id == passenger_id)
        if status:
            query = query.where(BookingModel.status == status)
        query = query.order_by(BookingModel.created_at.desc(), BookingModel.id)
        return await _paginate(self.session, query, offset, limit)

    async def has_any_for_passenger(self, ride_id: str, passenger_id: str) -> bool:
        """True for a booking in *any* status, which is what review eligibility needs."""
        found = await self.session.scalar(
            select(BookingModel.id)
            .where(
                BookingModel.ride_id == ride_id,
                BookingModel.passenger_id == passenger_id,
            )
            .limit(1)
        )
        return found is not None

    async def delete_for_ride(self, ride_id: str) -> None:
        await self.session.execute(
            delete(BookingModel).where(BookingModel.ride_id == ride_id)
        )

    async def count_by_status(self) -> dict[str, int]:
        result = await self.session.execute(
            select(BookingModel.status, func.count()).group_by(BookingModel.status)
        )
        return {BookingStatus(s).value: n for s, n in result.all()}


class ReviewRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, review: ReviewModel) -> ReviewModel:
        self.session.add(review)
        await self.session.flush()
        return review

    async def exists(self, ride_id: str, reviewer_id: str, reviewed_user_id: str) -> bool:
        found = await self.session.scalar(
            select(ReviewModel.id).where(
                ReviewModel.ride_id == ride_id,
                ReviewModel.reviewer_id == reviewer_id,
                ReviewModel.reviewed_user_id == reviewed_user_id,
            )
        )
        return found is not None

    async def ratings_for(self, user_id: str) -> list[int]:
        result = await self.session.execute(
            select(ReviewModel.rating).where(ReviewModel.reviewed_user_id == user_id)
        )
        return list(result.scalars().all())

    async def list_for_user(
        self, user_id: str, *, offset: int = 0, limit: int = 10
    ) -> tuple[list[ReviewModel], int]:
        query = (
            select(ReviewModel)
            .where(ReviewModel.reviewed_user_id == user_id)
            .order_by(ReviewModel.created_at.desc(), ReviewModel.id)
        )
        return await _paginate(self.session, query, offset, limit)

    async def reviewed_users_for_ride(self, ride_id: str) -> set[str]:
        result = await self.session.execute(
            select(ReviewModel.reviewed_user_id)
            .where(ReviewModel.ride_id == ride_id)
            .distinct()
        )
        return set(result.scalars().all())

    async def delete_for_ride(self, ride_id: str) -> None:
        await self.session.execute(
            delete(ReviewModel).where(ReviewModel.ride_id == ride_id)
        )

    async def count(self) -> int:
        return await self.session.scalar(select(func.count()).select_from(ReviewModel)) or 0
