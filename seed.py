"""
Seed script -- populates the database with sample data for reviewers.

Run after migrations:
    python seed.py

Creates:
  - 6 sample users (ids match the ``sub`` claim of locally minted tokens),
    three of them drivers with vehicle details
  - 5 sample rides (mix of ACTIVE, COMPLETED and CANCELLED)
  - bookings in every status, and reviews on the completed ride
"""

import asyncio
from datetime import datetime, timedelta, timezone

from src.domain.enums import BookingStatus, RideStatus, UserRole
from src.domain.ratings import mean_rating
from src.infrastructure.database import async_session_factory, engine
from src.infrastructure.models import BookingModel, ReviewModel, RideModel, UserModel

NOW = datetime.now(timezone.utc).replace(minute=0, second=0, microsecond=0)

USERS = [
    {"id": "user-amelia", "email": "amelia@example.com", "username": "amelia", "full_name": "Amelia Clarke"},
    {"id": "user-bruno", "email": "bruno@example.com", "username": "bruno", "full_name": "Bruno Costa"},
    {"id": "user-chen", "email": "chen@example.com", "username": "chenwei", "full_name": "Chen Wei"},
    {"id": "user-dara", "email": "dara@example.com", "username": "dara", "full_name": "Dara Okafor"},
    {"id": "user-elif", "email": "elif@example.com", "username": "elif", "full_name": "Elif Yilmaz"},
    {"id": "user-admin", "email": "admin@example.com", "username": "admin", "full_name": "Site Admin", "role": UserRole.ADMIN},
]

VEHICLES = {
    # Drivers who accepted the terms
    "user-amelia": {"car_make": "Peugeot", "car_model": "308", "car_year": 2020, "car_color": "Grey", "car_plate": "AB-12-CD"},
    "user-bruno": {"car_make": "Toyota", "car_model": "Corolla", "car_year": 2018, "car_color": "White", "car_plate": "EF-34-GH"},
    "user-chen": {"car_make": "Skoda", "car_model": "Octavia", "car_year": 2021, "car_color": "Black", "car_plate": "IJ-56-KL"},
}

RIDES = [
    # (driver, origin, destination, departs in hours, capacity, price, status)
    ("user-amelia", "Lisbon", "Porto", 24, 3, 18.0, RideStatus.ACTIVE),
    ("user-amelia", "Porto", "Braga", 48, 4, 7.5, RideStatus.ACTIVE),
    ("user-bruno", "Coimbra", "Lisbon", 30, 2, 12.0, RideStatus.ACTIVE),
    ("user-bruno", "Lisbon", "Faro", -72, 3, 20.0, RideStatus.COMPLETED),
    ("user-chen", "Faro", "Seville", -24, 4, 15.0, RideStatus.CANCELLED),
]

BOOKINGS = [
    # (ride index, passenger, seats, status)
    (0, "user-chen", 1, BookingStatus.CONFIRMED),
    (0, "user-dara", 1, BookingStatus.PENDING),
    (1, "user-elif", 2, BookingStatus.PENDING),
    (2, "user-amelia", 2, BookingStatus.CONFIRMED),
    (3, "user-dara", 2, BookingStatus.COMPLETED),
    (3, "user-elif", 1, BookingStatus.COMPLETED),
    (4, "user-amelia", 1, BookingStatus.CANCELLED),
]

REVIEWS = [
    # (ride index, reviewer, reviewed, rating, comment)
    (3, "user-dara", "user-bruno", 5, "Smooth drive, on time."),
    (3, "user-elif", "user-bruno", 4, "Friendly, a bit of traffic."),
    (3, "user-bruno", "user-dara", 5, None),
]


async def seed():
    async with async_session_factory() as session:
        # ── Users ─────────────────────────────────────────────────────
        users = {}
        for u in USERS:
            m = UserModel(
                id=u["id"],
                email=u["email"],
                username=u["username"],
                full_name=u["full_name"],
                role=u.get("role", UserRole.USER),
                total_rides=0,
            )
            vehicle = VEHICLES.get(m.id)
            if vehicle:
                for name, value in vehicle.items():
                    setattr(m, name, value)
                m.is_driver = m.driver_verified = True
            session.add(m)
            users[m.id] = m
        await session.flush()
        print(f"  Created {len(users)} users")

        # ── Rides ─────────────────────────────────────────────────────
        rides = []
        for driver, origin, destination, hours, capacity, price, status in RIDES:
            ride = RideModel(
                driver_id=driver,
                origin=origin,
                destination=destination,
                departure_time=NOW + timedelta(hours=hours),
                capacity=capacity,
                price_per_seat=price,
                status=status,
            )
            session.add(ride)
            rides.append(ride)
        await session.flush()
        print(f"  Created {len(rides)} rides")

        # ── Bookings ──────────────────────────────────────────────────
        for index, passenger, seats, status in BOOKINGS:
            ride = rides[index]
            session.add(
                BookingModel(
                    ride_id=ride.id,
                    passenger_id=passenger,
                    seats_booked=seats,
                    total_price=round(seats * ride.price_per_seat, 2),
                    status=status,
                )
            )
            if status == BookingStatus.COMPLETED:
                users[passenger].total_rides += 1
        for ride in rides:
            if ride.status == RideStatus.COMPLETED:
                users[ride.driver_id].total_rides += 1
        await session.flush()
        print(f"  Created {len(BOOKINGS)} bookings")

        # ── Reviews & ratings ─────────────────────────────────────────
        received = {}
        for index, reviewer, reviewed, rating, comment in REVIEWS:
            session.add(
                ReviewModel(
                    ride_id=rides[index].id,
                    reviewer_id=reviewer,
                    reviewed_user_id=reviewed,
                    rating=rating,
                    comment=comment,
                )
            )
            received.setdefault(reviewed, []).append(rating)
        for user_id, ratings in received.items():
            users[user_id].rating = mean_rating(ratings)
        print(f"  Created {len(REVIEWS)} reviews")

        await session.commit()
        print("\nSeed complete!")


async def main():
    print("Seeding database...")
    await seed()
    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
