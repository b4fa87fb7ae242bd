"""
SQLAlchemy ORM models  (maps to PostgreSQL).

Tables
------
* ``users``     -- identities provisioned from the identity provider
* ``rides``     -- published rides with declared capacity and price
* ``bookings``  -- seat reservations against a ride
* ``reviews``   -- ratings left between participants of a ride

Remaining seats are not a column: they are derived from ``rides.capacity``
and the open rows of ``bookings``.

Indexes
-------
* **Partial unique** on ``bookings (ride_id, passenger_id)`` for open
  bookings, backing the one-open-booking-per-passenger rule.
* **Unique** on ``reviews (ride_id, reviewer_id, reviewed_user_id)``.
* **B-Tree** on status / foreign-key columns used by listings.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
    text,
)

from .database import Base
from src.domain.enums import BookingStatus, RideStatus, UserRole

OPEN_BOOKING_CLAUSE = "status IN ('PENDING', 'CONFIRMED')"


def _uuid() -> str:
    return str(uuid.uuid4())


def _now() -> datetime:
    return datetime.now(timezone.utc)


class UserModel(Base):
    __tablename__ = "users"

    id = Column(String(64), primary_key=True)
    email = Column(String(255), nullable=False)
    username = Column(String(20), unique=True, nullable=True)
    full_name = Column(String(100), nullable=True)
    phone = Column(String(32), nullable=True)
    bio = Column(String(500), nullable=True)
    avatar_url = Column(String(500), nullable=True)
    role = Column(Enum(UserRole), default=UserRole.USER, nullable=False)
    rating = Column(Float, nullable=True)
    total_rides = Column(Integer, default=0, nullable=False)

    # Driver profile; set once the driver terms are accepted
    is_driver = Column(Boolean, default=False, nullable=False)
    driver_verified = Column(Boolean, default=False, nullable=False)
    car_make = Column(String(50), nullable=True)
    car_model = Column(String(50), nullable=True)
    car_year = Column(Integer, nullable=True)
    car_color = Column(String(30), nullable=True)
    car_plate = Column(String(20), nullable=True)
    car_photo_url = Column(String(500), nullable=True)

    created_at = Column(
        DateTime(timezone=True), default=_now, server_default=func.now()
    )
    updated_at = Column(
        DateTime(timezone=True),
        default=_now,
        server_default=func.now(),
        onupdate=_now,
    )


class RideModel(Base):
    __tablename__ = "rides"

    id = Column(String(36), primary_key=True, default=_uuid)
    driver_id = Column(String(64), ForeignKey("users.id"), nullable=False)
    origin = Column(String(255), nullable=False)
    destination = Column(String(255), nullable=False)
    departure_time = Column(DateTime(timezone=True), nullable=False)
    capacity = Column(Integer, nullable=False)
    price_per_seat = Column(Float, nullable=False)
    description = Column(Text, nullable=True)
    status = Column(Enum(RideStatus), default=RideStatus.ACTIVE, nullable=False)

    created_at = Column(
        DateTime(timezone=True), default=_now, server_default=func.now()
    )
    updated_at = Column(
        DateTime(timezone=True),
        default=_now,
        server_default=func.now(),
        onupdate=_now,
    )

    __table_args__ = (
        CheckConstraint("capacity BETWEEN 1 AND 8", name="ck_rides_capacity"),
        CheckConstraint("price_per_seat >= 0", name="ck_rides_price"),
        Index("idx_rides_status", "status"),
        Index("idx_rides_driver", "driver_id"),
        Index("idx_rides_departure", "departure_time"),
    )


class BookingModel(Base):
    __tablename__ = "bookings"

    id = Column(String(36), primary_key=True, default=_uuid)
    ride_id = Column(
        String(36), ForeignKey("rides.id", ondelete="CASCADE"), nullable=False
    )
    passenger_id = Column(String(64), ForeignKey("users.id"), nullable=False)
    seats_booked = Column(Integer, nullable=False)
    # Fixed at creation; later price edits on the ride never touch it
    total_price = Column(Float, nullable=False)
    status = Column(
        Enum(BookingStatus), default=BookingStatus.PENDING, nullable=False
    )

    created_at = Column(
        DateTime(timezone=True), default=_now, server_default=func.now()
    )
    updated_at = Column(
        DateTime(timezone=True),
        default=_now,
        server_default=func.now(),
        onupdate=_now,
    )

    __table_args__ = (
        CheckConstraint("seats_booked BETWEEN 1 AND 8", name="ck_bookings_seats"),
        Index("idx_bookings_ride", "ride_id"),
        Index("idx_bookings_passenger", "passenger_id"),
        Index(
            "uq_bookings_open_passenger",
            "ride_id",
            "passenger_id",
            unique=True,
            postgresql_where=text(OPEN_BOOKING_CLAUSE),
            sqlite_where=text(OPEN_BOOKING_CLAUSE),
        ),
    )


class ReviewModel(Base):
    __tablename__ = "reviews"

    id = Column(String(36), primary_key=True, default=_uuid)
    ride_id = Column(
        String(36), ForeignKey("rides.id", ondelete="CASCADE"), nullable=False
    )
    reviewer_id = Column(String(64), ForeignKey("users.id"), nullable=False)
    reviewed_user_id = Column(String(64), ForeignKey("users.id"), nullable=False)
    rating = Column(Integer, nullable=False)
    comment = Column(String(500), nullable=True)
    created_at = Column(
        DateTime(timezone=True), default=_now, server_default=func.now()
    )

    __table_args__ = (
        UniqueConstraint(
            "ride_id", "reviewer_id", "reviewed_user_id", name="uq_reviews_triple"
        ),
        CheckConstraint("rating BETWEEN 1 AND 5", name="ck_reviews_rating"),
        Index("idx_reviews_reviewed", "reviewed_user_id"),
    )
