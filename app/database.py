"""
Database engine and session management.

Provides the async SQLAlchemy engine, session factory and the
FastAPI dependency used by routes.
"""
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from app.config import settings


engine = create_async_engine(settings.DATABASE_URL, pool_pre_ping=True)

AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def get_db():
    """Yield a database session for the duration of a request."""
    async with AsyncSessionLocal() as session:
        yield session
