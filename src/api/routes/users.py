"""
Profile endpoints
=================

GET /api/v1/users/me        -- the caller's profile, rating and ride count
PUT /api/v1/users/me        -- edit username, full name, phone, bio or avatar
GET /api/v1/driver/profile  -- the caller's driver and vehicle details
PUT /api/v1/driver/profile  -- save vehicle details; requires accept_terms
"""

from fastapi import APIRouter, Depends, Request

from src.api.dependencies import get_current_actor, get_user_service
from src.api.middleware import RATE_LIMIT, limiter
from src.api.schemas import (
    DriverProfileRequest,
    DriverProfileResponse,
    DriverProfileSavedResponse,
    ProfileUpdateRequest,
    UserProfileResponse,
)
from src.domain.entities import Actor
from src.services.users import UserService

router = APIRouter(prefix="/users", tags=["users"])
driver_router = APIRouter(prefix="/driver", tags=["users"])


@router.get("/me", response_model=UserProfileResponse, summary="Get own profile")
@limiter.limit(RATE_LIMIT)
async def get_me(
    request: Request,
    actor: Actor = Depends(get_current_actor),
    service: UserService = Depends(get_user_service),
):
    return await service.get_profile(actor)


@router.put("/me", response_model=UserProfileResponse, summary="Edit own profile")
@limiter.limit(RATE_LIMIT)
async def update_me(
    request: Request,
    body: ProfileUpdateRequest,
    actor: Actor = Depends(get_current_actor),
    service: UserService = Depends(get_user_service),
):
    return await service.update_profile(actor, body.model_dump(exclude_unset=True))


@driver_router.get(
    "/profile", response_model=DriverProfileResponse, summary="Get driver profile"
)
@limiter.limit(RATE_LIMIT)
async def get_driver_profile(
    request: Request,
    actor: Actor = Depends(get_current_actor),
    service: UserService = Depends(get_user_service),
):
    return await service.get_profile(actor)


@driver_router.put(
    "/profile",
    response_model=DriverProfileSavedResponse,
    summary="Save driver profile",
    description="The driver terms must be accepted; the caller becomes a verified driver.",
)
@limiter.limit(RATE_LIMIT)
async def save_driver_profile(
    request: Request,
    body: DriverProfileRequest,
    actor: Actor = Depends(get_current_actor),
    service: UserService = Depends(get_user_service),
):
    changes = body.model_dump(exclude_unset=True, exclude={"accept_terms"})
    user = await service.save_driver_profile(
        actor, changes, accept_terms=body.accept_terms
    )
    return DriverProfileSavedResponse(
        message="Driver profile saved",
        is_driver=user.is_driver,
        driver_verified=user.driver_verified,
    )
