"""Administrative surface: service-actor session, overview and admin cancel."""

from __future__ import annotations

import pytest
from httpx import AsyncClient

from tests.conftest import ADMIN_SESSION_TOKEN, auth, book, publish_ride, set_booking_status

SESSION = {"X-Admin-Session": ADMIN_SESSION_TOKEN}


@pytest.mark.asyncio
async def test_login_sets_http_only_cookie(client: AsyncClient):
    resp = await client.post(
        "/api/v1/admin/login", json={"email": "OPS@example.com", "password": "correct-horse"}
    )
    assert resp.status_code == 200
    assert "httponly" in resp.headers["set-cookie"].lower()
    assert client.cookies.get("admin_session") == ADMIN_SESSION_TOKEN

    # The cookie alone now opens the admin surface
    overview = await client.get("/api/v1/admin/overview")
    assert overview.status_code == 200


@pytest.mark.asyncio
async def test_login_with_wrong_password(client: AsyncClient):
    resp = await client.post(
        "/api/v1/admin/login", json={"email": "ops@example.com", "password": "nope"}
    )
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_overview_counts(client: AsyncClient):
    ride = await publish_ride(client)
    await publish_ride(client, destination="Faro")
    booking = (await book(client, "alice", ride["id"])).json()
    await book(client, "bob", ride["id"])
    await set_booking_status(client, booking["id"], "CONFIRMED")

    resp = await client.get("/api/v1/admin/overview", headers=SESSION)
    assert resp.status_code == 200
    assert resp.json() == {
        "users": 6,
        "reviews": 0,
        "rides": {"ACTIVE": 2},
        "bookings": {"CONFIRMED": 1, "PENDING": 1},
    }


@pytest.mark.asyncio
async def test_overview_for_admin_bearer(client: AsyncClient):
    resp = await client.get("/api/v1/admin/overview", headers=auth("admin"))
    assert resp.status_code == 200


@pytest.mark.asyncio
async def test_overview_forbidden_for_plain_user(client: AsyncClient):
    resp = await client.get("/api/v1/admin/overview", headers=auth("alice"))
    assert resp.status_code == 403


@pytest.mark.asyncio
async def test_overview_requires_credentials(client: AsyncClient):
    resp = await client.get("/api/v1/admin/overview", headers={"X-Admin-Session": "guess"})
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_admin_cancels_confirmed_booking(client: AsyncClient):
    ride = await publish_ride(client, capacity=1)
    booking = (await book(client, "alice", ride["id"])).json()
    await set_booking_status(client, booking["id"], "CONFIRMED")

    resp = await client.post(f"/api/v1/admin/bookings/{booking['id']}/cancel", headers=SESSION)
    assert resp.status_code == 200
    assert resp.json()["status"] == "CANCELLED"

    ride_view = await client.get(f"/api/v1/rides/{ride['id']}")
    assert ride_view.json()["available_seats"] == 1


@pytest.mark.asyncio
async def test_admin_cannot_cancel_twice(client: AsyncClient):
    ride = await publish_ride(client)
    booking = (await book(client, "alice", ride["id"])).json()
    await client.post(f"/api/v1/admin/bookings/{booking['id']}/cancel", headers=SESSION)

    resp = await client.post(f"/api/v1/admin/bookings/{booking['id']}/cancel", headers=SESSION)
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_session_token_is_not_a_bearer_credential(client: AsyncClient):
    # The service actor is scoped to the admin surface only
    resp = await client.post(
        "/api/v1/rides",
        json={"origin": "A", "destination": "B", "departure_time": "2030-01-01T00:00:00Z",
              "capacity": 2, "price_per_seat": 1},
        headers=SESSION,
    )
    assert resp.status_code == 401
