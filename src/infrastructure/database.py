"""
Async SQLAlchemy engine and session factory.

Every request gets its own ``AsyncSession``; seat-consuming writes take
``SELECT ... FOR UPDATE`` row locks inside it, so the pool has to cover the
requests queued on one ride's critical region as well as the readers.
Pool size and overflow come from settings.
"""

from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from src.config import settings

engine = create_async_engine(
    settings.database_url,
    echo=settings.db_echo,
    pool_size=settings.db_pool_size,
    max_overflow=settings.db_max_overflow,
    # Drop connections the server closed while idle
    pool_pre_ping=True,
)

# Objects stay readable after commit; responses are built from them
session_factory_kwargs = {"class_": AsyncSession, "expire_on_commit": False}
async_session_factory = async_sessionmaker(engine, **session_factory_kwargs)


class Base(DeclarativeBase):
    """Declarative base for the users, rides, bookings and reviews tables."""
