"""
Review endpoints
================

POST /api/v1/reviews                -- review a co-participant of a ride
GET  /api/v1/reviews?user_id=...    -- reviews a user has received
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request

from src.api.dependencies import PageParams, get_current_actor, get_page, get_review_service
from src.api.middleware import RATE_LIMIT, limiter
from src.api.schemas import Page, Pagination, ReviewCreateRequest, ReviewResponse
from src.domain.entities import Actor
from src.domain.errors import ValidationError
from src.services.reviews import ReviewService

router = APIRouter(prefix="/reviews", tags=["reviews"])


@router.post(
    "",
    status_code=201,
    response_model=ReviewResponse,
    summary="Review another participant of a ride",
)
@limiter.limit(RATE_LIMIT)
async def create_review(
    request: Request,
    body: ReviewCreateRequest,
    actor: Actor = Depends(get_current_actor),
    service: ReviewService = Depends(get_review_service),
):
    return await service.create(
        actor,
        ride_id=body.ride_id,
        reviewed_user_id=body.reviewed_user_id,
        rating=body.rating,
        comment=body.comment,
    )


@router.get(
    "",
    response_model=Page[ReviewResponse],
    summary="List reviews received by a user",
)
@limiter.limit(RATE_LIMIT)
async def list_reviews(
    request: Request,
    user_id: Optional[str] = Query(None, max_length=64),
    page: PageParams = Depends(get_page),
    service: ReviewService = Depends(get_review_service),
):
    if not user_id:
        raise ValidationError(
            "user_id is required",
            details=[{"field": "user_id", "message": "Field required"}],
        )
    reviews, total = await service.list_for_user(
        user_id, offset=page.offset, limit=page.limit
    )
    return Page[ReviewResponse](
        items=[ReviewResponse.model_validate(r) for r in reviews],
        pagination=Pagination.build(page.page, page.limit, total),
    )
