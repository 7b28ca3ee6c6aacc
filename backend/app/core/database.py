"""Async SQLAlchemy engine and the request-scoped session.

One engine per process (asyncpg pool). Each request gets its own
AsyncSession through get_db; the transaction commits when the endpoint
returns normally and rolls back if it raises.
"""

from collections.abc import AsyncGenerator

from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from app.core.config import settings

engine = create_async_engine(
    settings.database_url,
    pool_pre_ping=True,
)

# expire_on_commit=False: the User returned by a service is serialized after
# the router's commit, and must not trigger a lazy reload there.
async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def dispose_engine() -> None:
    """Close pooled connections (application shutdown)."""
    await engine.dispose()
