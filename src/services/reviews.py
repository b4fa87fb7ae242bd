"""
Reviews and the rating aggregator.

A review insert and the recomputation of the reviewed user's aggregate are
one unit of work, run inside that user's ``user-rating:{id}`` Redis lock.
Either both commit or neither does, and each recompute rescans every review
the user has received, so concurrent reviews are each counted exactly once.
"""

from __future__ import annotations

import logging
from typing import Optional

import redis.asyncio as aioredis
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from src.domain.entities import Actor
from src.domain.errors import DuplicateReview, NotAuthorized, NotFound
from src.domain.ratings import guard_review, mean_rating
from src.infrastructure.locks import critical_region, rating_lock
from src.infrastructure.models import ReviewModel, RideModel
from src.infrastructure.repositories import (
    BookingRepository,
    ReviewRepository,
    RideRepository,
    UserRepository,
)
from src.infrastructure.transactions import run_in_transaction

logger = logging.getLogger(__name__)


class RatingAggregator:
    """Recomputes ``users.rating`` as the plain mean of all received ratings."""

    def __init__(self, session: AsyncSession):
        self.reviews = ReviewRepository(session)
        self.users = UserRepository(session)

    async def apply(self, user_id: str) -> Optional[float]:
        """
        Stage the recomputed rating on the current transaction.

        The caller holds ``rating_lock(user_id)`` and commits.  Reviews
        flushed earlier in the same transaction are part of the scan.
        """
        # Full scan of the user's history; cost grows with review count
        rating = mean_rating(await self.reviews.ratings_for(user_id))
        await self.users.set_rating(user_id, rating)
        return rating


class ReviewService:
    def __init__(self, session: AsyncSession, redis: aioredis.Redis):
        self.session = session
        self.redis = redis
        self.rides = RideRepository(session)
        self.bookings = BookingRepository(session)
        self.reviews = ReviewRepository(session)
        self.aggregator = RatingAggregator(session)

    async def create(
        self,
        actor: Actor,
        *,
        ride_id: str,
        reviewed_user_id: str,
        rating: int,
        comment: Optional[str] = None,
    ) -> ReviewModel:
        if actor.is_service:
            raise NotAuthorized("Service actors cannot write reviews")
        ride = await self.rides.get_by_id(ride_id)
        if ride is None:
            raise NotFound("Ride not found")

        guard_review(
            actor.id,
            reviewed_user_id,
            reviewer_participated=await self._participated(ride, actor.id),
            reviewed_participated=await self._participated(ride, reviewed_user_id),
        )
        if await self.reviews.exists(ride_id, actor.id, reviewed_user_id):
            raise DuplicateReview("You already reviewed this user for this ride")

        async def work() -> tuple[ReviewModel, Optional[float]]:
            review = await self.reviews.create(
                ReviewModel(
                    ride_id=ride_id,
                    reviewer_id=actor.id,
                    reviewed_user_id=reviewed_user_id,
                    rating=rating,
                    comment=comment,
                )
            )
            return review, await self.aggregator.apply(reviewed_user_id)

        try:
            async with critical_region(rating_lock(self.redis, reviewed_user_id)):
                review, aggregate = await run_in_transaction(self.session, work)
        except IntegrityError as exc:
            raise DuplicateReview("You already reviewed this user for this ride") from exc

        logger.info(
            "Review %s by %s for %s on ride %s; rating now %s",
            review.id,
            actor.id,
            reviewed_user_id,
            ride_id,
            aggregate,
        )
        return review

    async def list_for_user(
        self, user_id: str, *, offset: int = 0, limit: int = 10
    ) -> tuple[list[ReviewModel], int]:
        return await self.reviews.list_for_user(user_id, offset=offset, limit=limit)

    async def _participated(self, ride: RideModel, user_id: str) -> bool:
        # A booking in any status counts, cancelled ones included
        if ride.driver_id == user_id:
            return True
        return await self.bookings.has_any_for_passenger(ride.id, user_id)
