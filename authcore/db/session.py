"""
Database session management.

The engine and session factory live on an explicitly constructed
``Database`` handle. The application builds one in its lifespan and stores
it on ``app.state``; request handlers receive sessions through ``get_db``.
"""
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from typing import AsyncGenerator
from fastapi import Request
import logging

from authcore.core.config import DatabaseSettings
from authcore.db.base import Base

logger = logging.getLogger(__name__)


class Database:
    """Async engine plus session factory for one database."""

    def __init__(self, url: str, echo: bool = False, **engine_kwargs):
        self.url = url
        self.engine = create_async_engine(
            url,
            echo=echo,
            future=True,
            pool_pre_ping=True,
            **engine_kwargs,
        )
        self.session_maker = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

    @classmethod
    def from_settings(cls, db_settings: DatabaseSettings) -> "Database":
        """Build a handle from settings; pool sizing only applies to server databases."""
        url = db_settings.url
        kwargs = {}
        if not url.startswith("sqlite"):
            kwargs.update(
                pool_size=db_settings.database_pool_size,
                max_overflow=db_settings.database_max_overflow,
            )
        return cls(url, echo=db_settings.database_echo, **kwargs)

    async def create_all(self) -> None:
        """Create all tables (development and tests; production uses Alembic)."""
        # Import models so they register on the metadata
        import authcore.models  # noqa: F401

        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def dispose(self) -> None:
        """Close all pooled connections."""
        await self.engine.dispose()
        logger.info("Database engine disposed")


async def get_db(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """
    Dependency for database sessions.

    Usage in FastAPI:
        @router.get("/endpoint")
        async def endpoint(db: AsyncSession = Depends(get_db)):
            ...
    """
    database: Database = request.app.state.database
    async with database.session_maker() as session:
        try:
            yield session
        finally:
            await session.close()
