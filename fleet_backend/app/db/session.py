"""
Database engine and sessions for the trip ledger.

One async engine per process (asyncpg on PostgreSQL). Each request gets its
own session through get_db; the trip service commits at most once per
request, so a session maps onto a single transaction.
"""

from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import declarative_base
from fleet_backend.app.core.config import settings

engine = create_async_engine(
    settings.database_url,
    echo=settings.db_echo,
    pool_size=settings.db_pool_size,
    max_overflow=settings.db_max_overflow,
    future=True,
)

# Objects stay readable after commit: handlers serialize the trip they just wrote
AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False,
)

Base = declarative_base()


async def get_db():
    """Yield a request-scoped session; services receive it as a parameter."""
    async with AsyncSessionLocal() as session:
        try:
            yield session
        finally:
            await session.close()
