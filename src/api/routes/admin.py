"""
Admin / observability endpoints
===============================

POST /api/v1/admin/login                       -- exchange credentials for a session cookie
GET  /api/v1/admin/overview                    -- user / review counts, rides and bookings per status
POST /api/v1/admin/bookings/{booking_id}/cancel -- cancel any open booking
GET  /api/v1/admin/health                      -- simple health check

Everything but ``login`` and ``health`` accepts either the admin session
(cookie or ``X-Admin-Session`` header) or a bearer token of an ADMIN user.
"""

from fastapi import APIRouter, Depends, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession

from src.api.dependencies import get_admin_actor, get_booking_service, get_db
from src.api.middleware import RATE_LIMIT, limiter
from src.api.schemas import (
    AdminLoginRequest,
    AdminOverviewResponse,
    BookingResponse,
    HealthResponse,
    MessageResponse,
)
from src.config import settings
from src.domain.entities import Actor
from src.infrastructure.repositories import (
    BookingRepository,
    ReviewRepository,
    RideRepository,
    UserRepository,
)
from src.services.bookings import BookingService
from src.services.identity import issue_admin_session

router = APIRouter(prefix="/admin", tags=["admin"])


@router.post("/login", response_model=MessageResponse, summary="Start an admin session")
@limiter.limit(RATE_LIMIT)
async def login(request: Request, response: Response, body: AdminLoginRequest):
    token = issue_admin_session(body.email, body.password)
    response.set_cookie(
        settings.admin_cookie_name,
        token,
        httponly=True,
        samesite="strict",
    )
    return MessageResponse(message="Logged in")


@router.get(
    "/overview",
    response_model=AdminOverviewResponse,
    summary="Platform counters",
)
@limiter.limit(RATE_LIMIT)
async def overview(
    request: Request,
    actor: Actor = Depends(get_admin_actor),
    db: AsyncSession = Depends(get_db),
):
    return AdminOverviewResponse(
        users=await UserRepository(db).count(),
        reviews=await ReviewRepository(db).count(),
        rides=await RideRepository(db).count_by_status(),
        bookings=await BookingRepository(db).count_by_status(),
    )


@router.post(
    "/bookings/{booking_id}/cancel",
    response_model=BookingResponse,
    summary="Cancel any open booking",
)
@limiter.limit(RATE_LIMIT)
async def cancel_booking(
    request: Request,
    booking_id: str,
    actor: Actor = Depends(get_admin_actor),
    service: BookingService = Depends(get_booking_service),
):
    return await service.cancel_by_admin(actor, booking_id)


@router.get("/health", response_model=HealthResponse, summary="Health check")
async def health():
    return HealthResponse()
