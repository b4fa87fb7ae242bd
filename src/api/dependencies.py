"""FastAPI dependency injection helpers."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import redis.asyncio as aioredis
from fastapi import Depends, Query, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from src.config import settings
from src.domain.entities import Actor
from src.domain.errors import NotAuthorized, Unauthenticated
from src.infrastructure.database import async_session_factory
from src.infrastructure.redis_client import get_redis
from src.services.bookings import BookingService
from src.services.identity import IdentityResolver
from src.services.reviews import ReviewService
from src.services.rides import RideService
from src.services.users import UserService

bearer_scheme = HTTPBearer(auto_error=False)

ADMIN_SESSION_HEADER = "X-Admin-Session"


async def get_db() -> AsyncSession:  # type: ignore[misc]
    """Yield an async DB session; commit on success, rollback on error."""
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


# ── Identity ──────────────────────────────────────────────────────────


async def get_optional_actor(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db),
) -> Optional[Actor]:
    """Resolved bearer actor, or ``None`` for an anonymous request."""
    if credentials is None:
        return None
    return await IdentityResolver(db).resolve_bearer(credentials.credentials)


async def get_current_actor(
    actor: Optional[Actor] = Depends(get_optional_actor),
) -> Actor:
    if actor is None:
        raise Unauthenticated("Authentication required")
    return actor


async def get_admin_actor(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db),
) -> Actor:
    """Admin surface: the service session first, then an ADMIN bearer user."""
    resolver = IdentityResolver(db)
    token = request.cookies.get(settings.admin_cookie_name) or request.headers.get(
        ADMIN_SESSION_HEADER
    )
    actor = resolver.resolve_admin_session(token)
    if actor is None:
        if credentials is None:
            raise Unauthenticated("Authentication required")
        actor = await resolver.resolve_bearer(credentials.credentials)
    if not actor.is_admin:
        raise NotAuthorized("Administrator access required")
    return actor


# ── Pagination ────────────────────────────────────────────────────────


@dataclass
class PageParams:
    page: int
    limit: int

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


def get_page(
    page: int = Query(1, ge=1),
    limit: int = Query(settings.default_page_limit, ge=1, le=settings.max_page_limit),
) -> PageParams:
    return PageParams(page=page, limit=limit)


# ── Services ──────────────────────────────────────────────────────────


def get_ride_service(
    db: AsyncSession = Depends(get_db),
    redis: aioredis.Redis = Depends(get_redis),
) -> RideService:
    return RideService(db, redis)


def get_booking_service(
    db: AsyncSession = Depends(get_db),
    redis: aioredis.Redis = Depends(get_redis),
) -> BookingService:
    return BookingService(db, redis)


def get_review_service(
    db: AsyncSession = Depends(get_db),
    redis: aioredis.Redis = Depends(get_redis),
) -> ReviewService:
    return ReviewService(db, redis)


def get_user_service(db: AsyncSession = Depends(get_db)) -> UserService:
    return UserService(db)
