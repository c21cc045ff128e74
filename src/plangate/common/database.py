"""Async engine and session handling for the plangate store.

One ``DatabaseManager`` serves the whole process. The tables it creates
hold the feature catalog, users, override rows with their log, and the
audit chain.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from plangate.common.config import PlangateSettings, get_settings
from plangate.common.models import Base

# Catalog, user, override and audit tables register on Base.metadata here.
import plangate.catalog.models  # noqa: F401
import plangate.users.models  # noqa: F401
import plangate.overrides.models  # noqa: F401
import plangate.audit.models  # noqa: F401


class DatabaseManager:
    """Engine and session factory behind every plangate service call.

    Sessions from ``get_session`` commit on exit, so an admin write is
    visible to the next entitlement resolution. They roll back on error.
    """

    def __init__(self, settings: PlangateSettings | None = None):
        self._settings = settings or get_settings()
        self.engine: AsyncEngine | None = None
        self._session_factory: async_sessionmaker[AsyncSession] | None = None

    async def init(self) -> None:
        url = self._settings.db_url
        self.engine = create_async_engine(url, echo=False)
        self._session_factory = async_sessionmaker(
            self.engine, expire_on_commit=False
        )

    @asynccontextmanager
    async def get_session(self) -> AsyncGenerator[AsyncSession, None]:
        if self._session_factory is None:
            raise RuntimeError("DatabaseManager not initialized, call init() first")
        async with self._session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    async def create_all(self) -> None:
        if self.engine is None:
            raise RuntimeError("DatabaseManager not initialized, call init() first")
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def close(self) -> None:
        if self.engine:
            await self.engine.dispose()
            self.engine = None
            self._session_factory = None
