"""Database engine and session factory"""

from typing import AsyncGenerator, Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base

from chatorder.config import settings

Base = declarative_base()

# No engine when the store is not configured; the webhook then answers
# every turn with the "temporarily unavailable" message.
engine = (
    create_async_engine(settings.database_url, pool_pre_ping=True)
    if settings.database_url
    else None
)

SessionLocal = (
    async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    if engine is not None
    else None
)


async def get_db() -> AsyncGenerator[Optional[AsyncSession], None]:
    """Yield a database session, or None when no database is configured"""
    if SessionLocal is None:
        yield None
        return

    async with SessionLocal() as session:
        yield session
