"""
Ride endpoints
==============

POST   /api/v1/rides            -- publish a ride (caller becomes the driver)
GET    /api/v1/rides            -- search ACTIVE rides, paginated
GET    /api/v1/rides/{ride_id}  -- ride detail with derived seat availability
PUT    /api/v1/rides/{ride_id}  -- edit fields or status (driver / admin)
DELETE /api/v1/rides/{ride_id}  -- delete a ride without confirmed bookings
GET    /api/v1/driver/rides     -- the caller's own rides with their bookings
"""

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request

from src.api.dependencies import PageParams, get_current_actor, get_page, get_ride_service
from src.api.middleware import RATE_LIMIT, limiter
from src.api.schemas import (
    DriverRideResponse,
    MessageResponse,
    Page,
    Pagination,
    RideCreateRequest,
    RideResponse,
    RideUpdateRequest,
)
from src.domain.entities import Actor
from src.services.rides import RideService

router = APIRouter(prefix="/rides", tags=["rides"])
driver_router = APIRouter(prefix="/driver", tags=["rides"])


@router.post(
    "",
    status_code=201,
    response_model=RideResponse,
    summary="Publish a ride",
)
@limiter.limit(RATE_LIMIT)
async def create_ride(
    request: Request,
    body: RideCreateRequest,
    actor: Actor = Depends(get_current_actor),
    service: RideService = Depends(get_ride_service),
):
    view = await service.create(actor, **body.model_dump())
    return RideResponse.from_view(view)


@router.get(
    "",
    response_model=Page[RideResponse],
    summary="Search active rides",
)
@limiter.limit(RATE_LIMIT)
async def list_rides(
    request: Request,
    origin: Optional[str] = Query(None, max_length=255),
    destination: Optional[str] = Query(None, max_length=255),
    departure_date: Optional[date] = Query(None, alias="date"),
    page: PageParams = Depends(get_page),
    service: RideService = Depends(get_ride_service),
):
    views, total = await service.list_active(
        origin=origin,
        destination=destination,
        departure_date=departure_date,
        offset=page.offset,
        limit=page.limit,
    )
    return Page[RideResponse](
        items=[RideResponse.from_view(v) for v in views],
        pagination=Pagination.build(page.page, page.limit, total),
    )


@router.get(
    "/{ride_id}",
    response_model=RideResponse,
    summary="Get a ride",
)
@limiter.limit(RATE_LIMIT)
async def get_ride(
    request: Request,
    ride_id: str,
    service: RideService = Depends(get_ride_service),
):
    return RideResponse.from_view(await service.get(ride_id))


@router.put(
    "/{ride_id}",
    response_model=RideResponse,
    summary="Edit a ride",
    description=(
        "Only the driver (or an administrator) may edit.  Capacity cannot "
        "drop below the seats already held, and a status change cascades "
        "to the ride's bookings."
    ),
)
@limiter.limit(RATE_LIMIT)
async def update_ride(
    request: Request,
    ride_id: str,
    body: RideUpdateRequest,
    actor: Actor = Depends(get_current_actor),
    service: RideService = Depends(get_ride_service),
):
    view = await service.update(actor, ride_id, body.model_dump(exclude_unset=True))
    return RideResponse.from_view(view)


@router.delete(
    "/{ride_id}",
    response_model=MessageResponse,
    summary="Delete a ride",
)
@limiter.limit(RATE_LIMIT)
async def delete_ride(
    request: Request,
    ride_id: str,
    actor: Actor = Depends(get_current_actor),
    service: RideService = Depends(get_ride_service),
):
    await service.delete(actor, ride_id)
    return MessageResponse(message="Ride deleted successfully")


@driver_router.get(
    "/rides",
    response_model=list[DriverRideResponse],
    summary="List the caller's rides with their bookings",
)
@limiter.limit(RATE_LIMIT)
async def list_driver_rides(
    request: Request,
    actor: Actor = Depends(get_current_actor),
    service: RideService = Depends(get_ride_service),
):
    views = await service.list_for_driver(actor)
    return [DriverRideResponse.from_view(v) for v in views]
