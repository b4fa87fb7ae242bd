"""Pydantic request / response schemas for the REST API."""

from __future__ import annotations

import math
from datetime import datetime, timezone
from typing import Generic, Optional, TypeVar

from pydantic import BaseModel, Field, field_validator

from src.domain.enums import BookingStatus, RideStatus, UserRole

T = TypeVar("T")


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


# ── Requests ──────────────────────────────────────────────────────────


class RideCreateRequest(BaseModel):
    origin: str = Field(..., min_length=1, max_length=255)
    destination: str = Field(..., min_length=1, max_length=255)
    departure_time: datetime
    capacity: int = Field(..., ge=1, le=8, description="Declared seats.")
    price_per_seat: float = Field(..., ge=0)
    description: Optional[str] = Field(None, max_length=1000)

    @field_validator("departure_time")
    @classmethod
    def departure_in_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return _as_utc(value)


class RideUpdateRequest(BaseModel):
    origin: Optional[str] = Field(None, min_length=1, max_length=255)
    destination: Optional[str] = Field(None, min_length=1, max_length=255)
    departure_time: Optional[datetime] = None
    capacity: Optional[int] = Field(None, ge=1, le=8)
    price_per_seat: Optional[float] = Field(None, ge=0)
    description: Optional[str] = Field(None, max_length=1000)
    status: Optional[RideStatus] = None

    @field_validator("departure_time")
    @classmethod
    def departure_in_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return _as_utc(value)


class BookingCreateRequest(BaseModel):
    ride_id: str = Field(..., min_length=1, max_length=36)
    seats_booked: int = Field(..., ge=1, le=8)


class BookingUpdateRequest(BaseModel):
    status: BookingStatus


class ReviewCreateRequest(BaseModel):
    reviewed_user_id: str = Field(..., min_length=1, max_length=64)
    ride_id: str = Field(..., min_length=1, max_length=36)
    rating: int = Field(..., ge=1, le=5)
    comment: Optional[str] = Field(None, max_length=500)


class ProfileUpdateRequest(BaseModel):
    username: Optional[str] = Field(None, min_length=3, max_length=20)
    full_name: Optional[str] = Field(None, min_length=1, max_length=100)
    phone: Optional[str] = Field(None, max_length=32)
    bio: Optional[str] = Field(None, max_length=500)
    avatar_url: Optional[str] = Field(None, max_length=500)


class DriverProfileRequest(BaseModel):
    full_name: Optional[str] = Field(None, min_length=1, max_length=100)
    phone: Optional[str] = Field(None, max_length=32)
    bio: Optional[str] = Field(None, max_length=500)
    avatar_url: Optional[str] = Field(None, max_length=500)
    car_make: Optional[str] = Field(None, max_length=50)
    car_model: Optional[str] = Field(None, max_length=50)
    car_year: Optional[int] = Field(None, ge=1900, le=2100)
    car_color: Optional[str] = Field(None, max_length=30)
    car_plate: Optional[str] = Field(None, max_length=20)
    car_photo_url: Optional[str] = Field(None, max_length=500)
    accept_terms: bool = False


class AdminLoginRequest(BaseModel):
    email: str
    password: str


# ── Responses ─────────────────────────────────────────────────────────


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    pages: int

    @classmethod
    def build(cls, page: int, limit: int, total: int) -> "Pagination":
        return cls(page=page, limit=limit, total=total, pages=math.ceil(total / limit))


class Page(BaseModel, Generic[T]):
    items: list[T]
    pagination: Pagination


class DriverSummary(BaseModel):
    id: str
    username: Optional[str] = None
    full_name: Optional[str] = None
    avatar_url: Optional[str] = None
    rating: Optional[float] = None
    total_rides: int = 0

    model_config = {"from_attributes": True}


class RideResponse(BaseModel):
    """Public view: seats are always the derived remaining count."""

    id: str
    driver_id: str
    driver: Optional[DriverSummary] = None
    origin: str
    destination: str
    departure_time: datetime
    price_per_seat: float
    description: Optional[str] = None
    status: RideStatus
    available_seats: int
    created_at: Optional[datetime] = None

    @classmethod
    def from_view(cls, view) -> "RideResponse":
        ride = view.ride
        return cls(
            id=ride.id,
            driver_id=ride.driver_id,
            driver=(
                DriverSummary.model_validate(view.driver)
                if view.driver is not None
                else None
            ),
            origin=ride.origin,
            destination=ride.destination,
            departure_time=ride.departure_time,
            price_per_seat=ride.price_per_seat,
            description=ride.description,
            status=ride.status,
            available_seats=view.available_seats,
            created_at=ride.created_at,
        )


class BookingResponse(BaseModel):
    id: str
    ride_id: str
    passenger_id: str
    seats_booked: int
    total_price: float
    status: BookingStatus
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class BookingRideSummary(BaseModel):
    id: str
    driver_id: str
    origin: str
    destination: str
    departure_time: datetime
    status: RideStatus

    model_config = {"from_attributes": True}


class BookingDetailResponse(BookingResponse):
    ride: BookingRideSummary


class DriverRideResponse(RideResponse):
    """The owner's view adds the declared capacity and every booking."""

    capacity: int
    bookings: list[BookingResponse] = []

    @classmethod
    def from_view(cls, view) -> "DriverRideResponse":
        base = RideResponse.from_view(view).model_dump()
        return cls(
            **base,
            capacity=view.ride.capacity,
            bookings=[BookingResponse.model_validate(b) for b in view.bookings],
        )


class ReviewResponse(BaseModel):
    id: str
    ride_id: str
    reviewer_id: str
    reviewed_user_id: str
    rating: int
    comment: Optional[str] = None
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class UserProfileResponse(BaseModel):
    id: str
    email: str
    username: Optional[str] = None
    full_name: Optional[str] = None
    phone: Optional[str] = None
    bio: Optional[str] = None
    avatar_url: Optional[str] = None
    role: UserRole
    rating: Optional[float] = None
    total_rides: int
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class MessageResponse(BaseModel):
    message: str


class AdminOverviewResponse(BaseModel):
    users: int
    reviews: int
    rides: dict[str, int]
    bookings: dict[str, int]


class HealthResponse(BaseModel):
    status: str = "ok"


class ErrorResponse(BaseModel):
    error: str
    message: str
    details: Optional[list[dict]] = None


class DriverProfileResponse(BaseModel):
    full_name: Optional[str] = None
    avatar_url: Optional[str] = None
    phone: Optional[str] = None
    bio: Optional[str] = None
    is_driver: bool = False
    driver_verified: bool = False
    car_make: Optional[str] = None
    car_model: Optional[str] = None
    car_year: Optional[int] = None
    car_color: Optional[str] = None
    car_plate: Optional[str] = None
    car_photo_url: Optional[str] = None

    model_config = {"from_attributes": True}


class DriverProfileSavedResponse(MessageResponse):
    is_driver: bool
    driver_verified: bool
