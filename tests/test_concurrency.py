"""
Concurrency safety tests.

Demonstrates:
1. Two concurrent bookings that would jointly overflow a ride: exactly one
   succeeds, the other gets a seat conflict.
2. Distributed lock acquire / release / bounded wait.
3. Transient storage conflicts are retried, then surfaced as retryable.
"""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.exc import OperationalError

from src.config import settings
from src.domain.errors import InternalConsistencyError, SeatConflict
from src.infrastructure.locks import DistributedLock, critical_region, ride_lock
from src.infrastructure.transactions import is_transient, run_in_transaction
from tests.conftest import auth, book, publish_ride, set_booking_status


class TestConcurrentBookings:
    """End-to-end races through the API against one ride."""

    @pytest.mark.asyncio
    async def test_capacity_two_race_has_exactly_one_winner(self, client):
        ride = await publish_ride(client, capacity=2)

        first, second = await asyncio.gather(
            book(client, "alice", ride["id"], seats=2),
            book(client, "bob", ride["id"], seats=2),
        )

        codes = sorted([first.status_code, second.status_code])
        assert codes == [201, 409]
        loser = first if first.status_code == 409 else second
        assert loser.json()["error"] == "seat_conflict"

        resp = await client.get(f"/api/v1/rides/{ride['id']}")
        assert resp.json()["available_seats"] == 0

    @pytest.mark.asyncio
    async def test_many_single_seat_requests_never_oversell(self, client):
        ride = await publish_ride(client, capacity=3)

        results = await asyncio.gather(
            *(
                book(client, name, ride["id"], seats=1)
                for name in ("alice", "bob", "carol", "dave")
            )
        )

        assert sorted(r.status_code for r in results) == [201, 201, 201, 409]
        resp = await client.get(f"/api/v1/rides/{ride['id']}")
        assert resp.json()["available_seats"] == 0

    @pytest.mark.asyncio
    async def test_concurrent_confirms_of_fitting_requests_both_succeed(self, client):
        ride = await publish_ride(client, capacity=2)
        c = (await book(client, "carol", ride["id"], seats=1)).json()
        d = (await book(client, "dave", ride["id"], seats=1)).json()

        confirmations = await asyncio.gather(
            set_booking_status(client, c["id"], "CONFIRMED"),
            set_booking_status(client, d["id"], "CONFIRMED"),
        )
        assert [r.status_code for r in confirmations] == [200, 200]

        resp = await client.get("/api/v1/driver/rides", headers=auth("driver"))
        [view] = resp.json()
        assert {b["status"] for b in view["bookings"]} == {"CONFIRMED"}
        assert view["available_seats"] == 0


class TestDistributedLock:
    """Tests the Redis distributed lock logic (mocked Redis)."""

    @pytest.mark.asyncio
    async def test_acquire_succeeds(self):
        mock_redis = AsyncMock()
        mock_redis.set = AsyncMock(return_value=True)

        lock = DistributedLock(mock_redis, "ride:r1", ttl_seconds=10)
        assert await lock.acquire() is True
        mock_redis.set.assert_called_once_with("lock:ride:r1", lock.token, nx=True, ex=10)

    @pytest.mark.asyncio
    async def test_acquire_fails_if_held(self):
        mock_redis = AsyncMock()
        mock_redis.set = AsyncMock(return_value=False)

        lock = DistributedLock(mock_redis, "ride:r1", ttl_seconds=10)
        assert await lock.acquire() is False

    @pytest.mark.asyncio
    async def test_bounded_wait_polls_until_free(self):
        mock_redis = AsyncMock()
        mock_redis.set = AsyncMock(side_effect=[False, False, True])

        lock = DistributedLock(mock_redis, "ride:r1", retry_interval=0.001)
        assert await lock.acquire(wait_seconds=1.0) is True
        assert mock_redis.set.await_count == 3

    @pytest.mark.asyncio
    async def test_release_calls_eval(self):
        mock_redis = AsyncMock()
        mock_redis.set = AsyncMock(return_value=True)
        mock_redis.eval = AsyncMock(return_value=1)

        lock = DistributedLock(mock_redis, "ride:r1", ttl_seconds=10)
        await lock.acquire()
        await lock.release()

        mock_redis.eval.assert_called_once()

    @pytest.mark.asyncio
    async def test_context_manager_acquire_fail_raises(self):
        mock_redis = AsyncMock()
        mock_redis.set = AsyncMock(return_value=False)

        lock = DistributedLock(mock_redis, "ride:r1", ttl_seconds=10)
        with pytest.raises(RuntimeError, match="Could not acquire lock"):
            async with lock:
                pass

    @pytest.mark.asyncio
    async def test_busy_region_surfaces_as_retryable(self, redis, monkeypatch):
        monkeypatch.setattr(settings, "lock_wait_seconds", 0.05)
        async with critical_region(ride_lock(redis, "r1")):
            with pytest.raises(InternalConsistencyError, match="busy"):
                async with critical_region(ride_lock(redis, "r1")):
                    pass

    @pytest.mark.asyncio
    async def test_release_keeps_a_lock_taken_by_someone_else(self, redis):
        mine = DistributedLock(redis, "ride:r1", ttl_seconds=10)
        theirs = DistributedLock(redis, "ride:r1", ttl_seconds=10)
        assert await mine.acquire()
        # Simulate expiry and a new owner before our release runs
        await redis.delete(mine.key)
        assert await theirs.acquire()

        await mine.release()
        assert await redis.get(theirs.key) == theirs.token


def _operational_error(message: str) -> OperationalError:
    return OperationalError("INSERT ...", {}, Exception(message))


class TestRunInTransaction:
    @pytest.mark.asyncio
    async def test_commits_on_success(self):
        session = MagicMock(commit=AsyncMock(), rollback=AsyncMock())
        work = AsyncMock(return_value="done")

        assert await run_in_transaction(session, work) == "done"
        session.commit.assert_awaited_once()
        session.rollback.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_domain_error_rolls_back_without_retry(self):
        session = MagicMock(commit=AsyncMock(), rollback=AsyncMock())
        work = AsyncMock(side_effect=SeatConflict("Only 0 seats available"))

        with pytest.raises(SeatConflict):
            await run_in_transaction(session, work, attempts=3)
        assert work.await_count == 1
        session.rollback.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_transient_conflict_is_retried(self):
        session = MagicMock(commit=AsyncMock(), rollback=AsyncMock())
        work = AsyncMock(side_effect=[_operational_error("database is locked"), "done"])

        assert await run_in_transaction(session, work, attempts=3) == "done"
        assert work.await_count == 2

    @pytest.mark.asyncio
    async def test_exhausted_retries_are_internal_consistency_errors(self):
        session = MagicMock(commit=AsyncMock(), rollback=AsyncMock())
        work = AsyncMock(side_effect=_operational_error("database is locked"))

        with pytest.raises(InternalConsistencyError):
            await run_in_transaction(session, work, attempts=2)
        assert work.await_count == 2

    @pytest.mark.asyncio
    async def test_other_storage_errors_propagate(self):
        session = MagicMock(commit=AsyncMock(), rollback=AsyncMock())
        work = AsyncMock(side_effect=_operational_error("disk I/O error"))

        with pytest.raises(OperationalError):
            await run_in_transaction(session, work, attempts=3)
        assert work.await_count == 1

    def test_postgres_serialization_failure_is_transient(self):
        orig = Exception("could not serialize access")
        orig.sqlstate = "40001"
        assert is_transient(OperationalError("UPDATE ...", {}, orig))
