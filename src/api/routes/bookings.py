"""
Booking endpoints
=================

POST   /api/v1/bookings               -- request seats on a ride (PENDING)
GET    /api/v1/bookings               -- the caller's own bookings
GET    /api/v1/bookings/{booking_id}  -- detail, passenger or driver only
PUT    /api/v1/bookings/{booking_id}  -- driver confirm / reject
DELETE /api/v1/bookings/{booking_id}  -- passenger cancels a PENDING booking
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request

from src.api.dependencies import (
    PageParams,
    get_booking_service,
    get_current_actor,
    get_page,
)
from src.api.middleware import RATE_LIMIT, limiter
from src.api.schemas import (
    BookingCreateRequest,
    BookingDetailResponse,
    BookingResponse,
    BookingRideSummary,
    BookingUpdateRequest,
    Page,
    Pagination,
)
from src.domain.entities import Actor
from src.domain.enums import BookingStatus
from src.services.bookings import BookingService

router = APIRouter(prefix="/bookings", tags=["bookings"])


@router.post(
    "",
    status_code=201,
    response_model=BookingResponse,
    summary="Request seats on a ride",
    responses={409: {"description": "Not enough seats left on the ride."}},
)
@limiter.limit(RATE_LIMIT)
async def create_booking(
    request: Request,
    body: BookingCreateRequest,
    actor: Actor = Depends(get_current_actor),
    service: BookingService = Depends(get_booking_service),
):
    return await service.create(actor, body.ride_id, body.seats_booked)


@router.get(
    "",
    response_model=Page[BookingResponse],
    summary="List the caller's bookings",
)
@limiter.limit(RATE_LIMIT)
async def list_bookings(
    request: Request,
    status: Optional[BookingStatus] = Query(None),
    page: PageParams = Depends(get_page),
    actor: Actor = Depends(get_current_actor),
    service: BookingService = Depends(get_booking_service),
):
    bookings, total = await service.list_for_passenger(
        actor, status=status, offset=page.offset, limit=page.limit
    )
    return Page[BookingResponse](
        items=[BookingResponse.model_validate(b) for b in bookings],
        pagination=Pagination.build(page.page, page.limit, total),
    )


@router.get(
    "/{booking_id}",
    response_model=BookingDetailResponse,
    summary="Get a booking with its ride",
)
@limiter.limit(RATE_LIMIT)
async def get_booking(
    request: Request,
    booking_id: str,
    actor: Actor = Depends(get_current_actor),
    service: BookingService = Depends(get_booking_service),
):
    booking, ride = await service.get(actor, booking_id)
    return BookingDetailResponse(
        **BookingResponse.model_validate(booking).model_dump(),
        ride=BookingRideSummary.model_validate(ride),
    )


@router.put(
    "/{booking_id}",
    response_model=BookingResponse,
    summary="Confirm or reject a booking (driver only)",
    description=(
        "CONFIRMED re-validates the ride's remaining seats; CANCELLED "
        "releases them.  Other statuses cannot be requested directly."
    ),
)
@limiter.limit(RATE_LIMIT)
async def update_booking(
    request: Request,
    booking_id: str,
    body: BookingUpdateRequest,
    actor: Actor = Depends(get_current_actor),
    service: BookingService = Depends(get_booking_service),
):
    return await service.update_status(actor, booking_id, body.status)


@router.delete(
    "/{booking_id}",
    response_model=BookingResponse,
    summary="Cancel a pending booking (passenger only)",
)
@limiter.limit(RATE_LIMIT)
async def cancel_booking(
    request: Request,
    booking_id: str,
    actor: Actor = Depends(get_current_actor),
    service: BookingService = Depends(get_booking_service),
):
    return await service.cancel_by_passenger(actor, booking_id)
