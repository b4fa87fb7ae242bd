"""
Unit-of-work helper with bounded retries.

A seat-consuming operation is written as an ``async`` callable that loads
everything it needs, validates, and stages its writes on the session.  The
helper commits it, and when the store reports a transient conflict
(serialization failure, deadlock, SQLite busy) rolls back and runs the whole
callable again against fresh state.
"""

from __future__ import annotations

import logging
from typing import Awaitable, Callable, TypeVar

from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import AsyncSession

from src.config import settings
from src.domain.errors import DomainError, InternalConsistencyError

logger = logging.getLogger(__name__)

T = TypeVar("T")

# PostgreSQL serialization_failure / deadlock_detected
_TRANSIENT_SQLSTATES = {"40001", "40P01"}


def is_transient(exc: DBAPIError) -> bool:
    orig = exc.orig
    sqlstate = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    if sqlstate in _TRANSIENT_SQLSTATES:
        return True
    return "database is locked" in str(orig)


async def run_in_transaction(
    session: AsyncSession,
    work: Callable[[], Awaitable[T]],
    attempts: int | None = None,
) -> T:
    attempts = attempts or settings.transaction_retries
    for attempt in range(1, attempts + 1):
        try:
            result = await work()
            await session.commit()
            return result
        except DomainError:
            await session.rollback()
            raise
        except DBAPIError as exc:
            await session.rollback()
            if not is_transient(exc):
                raise
            if attempt == attempts:
                raise InternalConsistencyError(
                    "Transaction conflict could not be resolved, retry the request"
                ) from exc
            logger.warning(
                "Transient storage conflict (attempt %d/%d): %s",
                attempt,
                attempts,
                exc.orig,
            )
    raise InternalConsistencyError("Transaction was not attempted")
