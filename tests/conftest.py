"""
Shared test fixtures.

Each test gets its own SQLite file (via aiosqlite) so that concurrent
requests run on separate connections, and a ``fakeredis`` server with Lua
support standing in for Redis, so tests run without Docker / PostgreSQL /
Redis.  Bearer tokens are minted with PyJWT against the configured secret.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import AsyncGenerator, Optional

import jwt
import pytest
import pytest_asyncio
from fakeredis import FakeAsyncRedis
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool

from src.config import settings
from src.domain.enums import UserRole
from src.infrastructure.database import Base, session_factory_kwargs
from src.infrastructure.models import UserModel

ADMIN_SESSION_TOKEN = "test-admin-session"

# Users present in every API test; ids are the tokens' ``sub`` claim
USERS = {
    "driver": ("user-driver", "driver@example.com", UserRole.USER),
    "alice": ("user-alice", "alice@example.com", UserRole.USER),
    "bob": ("user-bob", "bob@example.com", UserRole.USER),
    "carol": ("user-carol", "carol@example.com", UserRole.USER),
    "dave": ("user-dave", "dave@example.com", UserRole.USER),
    "admin": ("user-admin", "admin@example.com", UserRole.ADMIN),
}


def make_token(user_id: str, email: Optional[str] = None, **overrides) -> str:
    claims = {
        "sub": user_id,
        "email": email or f"{user_id}@example.com",
        "aud": settings.jwt_audience,
        "exp": datetime.now(timezone.utc) + timedelta(minutes=5),
    }
    claims.update(overrides)
    return jwt.encode(claims, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def auth(name: str) -> dict[str, str]:
    """Authorization header for one of the seeded ``USERS``."""
    user_id, email, _ = USERS[name]
    return {"Authorization": f"Bearer {make_token(user_id, email)}"}


def ride_payload(**overrides) -> dict:
    body = {
        "origin": "Lisbon",
        "destination": "Porto",
        "departure_time": "2030-06-01T09:00:00Z",
        "capacity": 4,
        "price_per_seat": 10.0,
    }
    body.update(overrides)
    return body


# ── Fixtures ──────────────────────────────────────────────────────────


@pytest.fixture(autouse=True)
def admin_settings(monkeypatch):
    monkeypatch.setattr(settings, "admin_session_tokens", [ADMIN_SESSION_TOKEN])
    monkeypatch.setattr(settings, "admin_email", "ops@example.com")
    monkeypatch.setattr(settings, "admin_password", "correct-horse")


@pytest_asyncio.fixture
async def session_factory(tmp_path) -> AsyncGenerator[async_sessionmaker, None]:
    """Create tables in a fresh SQLite file, yield a session factory, dispose."""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
        poolclass=NullPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, **session_factory_kwargs)

    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def redis() -> AsyncGenerator[FakeAsyncRedis, None]:
    client = FakeAsyncRedis(decode_responses=True)
    yield client
    await client.flushall()
    await client.aclose()


@pytest_asyncio.fixture
async def seeded_users(session_factory) -> dict[str, str]:
    async with session_factory() as session:
        for user_id, email, role in USERS.values():
            session.add(UserModel(id=user_id, email=email, role=role, total_rides=0))
        await session.commit()
    return {name: user_id for name, (user_id, _, _) in USERS.items()}


@pytest_asyncio.fixture
async def client(session_factory, redis, seeded_users) -> AsyncGenerator[AsyncClient, None]:
    """AsyncClient backed by the per-test SQLite file and fake Redis."""
    from src.api.app import create_app
    from src.api.dependencies import get_db
    from src.api.middleware import limiter
    from src.infrastructure.redis_client import get_redis

    async def _test_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    async def _test_redis():
        return redis

    limiter.reset()
    app = create_app()
    app.dependency_overrides[get_db] = _test_db
    app.dependency_overrides[get_redis] = _test_redis

    transport = ASGITransport(app=app, raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


# ── Request helpers ───────────────────────────────────────────────────


async def publish_ride(client: AsyncClient, driver: str = "driver", **overrides) -> dict:
    resp = await client.post(
        "/api/v1/rides", json=ride_payload(**overrides), headers=auth(driver)
    )
    assert resp.status_code == 201, resp.text
    return resp.json()


async def book(client: AsyncClient, passenger: str, ride_id: str, seats: int = 1):
    return await client.post(
        "/api/v1/bookings",
        json={"ride_id": ride_id, "seats_booked": seats},
        headers=auth(passenger),
    )


async def set_booking_status(
    client: AsyncClient, booking_id: str, status: str, actor: str = "driver"
):
    return await client.put(
        f"/api/v1/bookings/{booking_id}", json={"status": status}, headers=auth(actor)
    )
