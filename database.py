from contextlib import asynccontextmanager
from typing import AsyncIterator

from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import declarative_base

# Create declarative base for models
Base = declarative_base()


class Database:
    """
    Async engine and session factory for one DATABASE_URL.
    Created once per application and shared by the user store.
    """

    def __init__(self, database_url: str, **engine_kwargs):
        # Force SQLAlchemy to use the asyncpg driver for plain postgres URLs
        if database_url.startswith("postgresql://"):
            database_url = database_url.replace("postgresql://", "postgresql+asyncpg://", 1)
        elif database_url.startswith("sqlite://"):
            database_url = database_url.replace("sqlite://", "sqlite+aiosqlite://", 1)

        self.url = database_url
        self.engine = create_async_engine(
            database_url,
            echo=False,
            future=True,
            **engine_kwargs,
        )
        self.session_factory = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autocommit=False,
            autoflush=False,
        )

    async def init(self):
        """
        Initialize the database by creating all tables.
        This should be called on application startup.
        """
        async with self.engine.begin() as conn:
            # Import models here to ensure they're registered with Base
            import database_models  # noqa: F401
            await conn.run_sync(Base.metadata.create_all)

    async def drop(self):
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)

    async def dispose(self):
        await self.engine.dispose()

    @asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncSession]:
        """
        Yield a session that commits on success and rolls back on error.

        Example:
            async with database.session() as db:
                user = await UserRepository(db).get_user_by_id(user_id)
        """
        async with self.session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise
