# servicedesk/db/engine.py
"""
SQLModel database engine and session management.
Uses AsyncSession so fastapi-users can share the same session.
Supports SQLite (default) and any async SQLAlchemy URL via DATABASE_URL.

The engine is owned by a `Database` object created at application startup
and disposed at shutdown; request handlers reach it through `get_session`.
"""

import asyncio
import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import Request
from sqlalchemy import event
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlmodel import SQLModel
from sqlmodel.ext.asyncio.session import AsyncSession

from ..core.errors import StoreUnavailable, ValidationError

logger = logging.getLogger(__name__)


class Database:
    def __init__(self, url: str, timeout: float = 5.0, echo: bool = False):
        self.url = url
        self.timeout = timeout
        self._is_sqlite = url.startswith("sqlite")

        # Busy timeout for SQLite, so concurrent writers wait instead of failing
        connect_args = {"check_same_thread": False, "timeout": timeout} if self._is_sqlite else {}
        self.engine = create_async_engine(url, echo=echo, connect_args=connect_args)

        # WAL mode and FK enforcement only for SQLite
        if self._is_sqlite:
            @event.listens_for(self.engine.sync_engine, "connect")
            def set_sqlite_pragma(dbapi_connection, connection_record):
                cursor = dbapi_connection.cursor()
                cursor.execute("PRAGMA journal_mode=WAL;")
                cursor.execute("PRAGMA foreign_keys=ON;")
                cursor.close()

        self.session_maker = async_sessionmaker(
            self.engine, class_=AsyncSession, expire_on_commit=False
        )

    async def create_all(self) -> None:
        """
        Create all tables defined in SQLModel models.
        Call this at application startup after importing all models.
        """
        from .. import models  # noqa: F401  (registers every table)

        async with self.engine.begin() as conn:
            await conn.run_sync(SQLModel.metadata.create_all)

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        async with self.session_maker() as session:
            yield session

    async def dispose(self) -> None:
        await self.engine.dispose()
        logger.info("Database engine disposed")


async def get_session(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """
    Dependency for async SQLModel session injection.
    Usage: session: AsyncSession = Depends(get_session)
    """
    database: Database = request.app.state.database
    async with database.session() as session:
        yield session


@asynccontextmanager
async def unit_of_work(session: AsyncSession, timeout: float):
    """
    Runs the enclosed block as a single transaction.

    Commits when the block finishes, rolls back on any error. Store failures
    and timeouts surface as StoreUnavailable so callers can retry.
    """
    try:
        async with asyncio.timeout(timeout):
            yield session
            await session.commit()
    except IntegrityError as e:
        await session.rollback()
        raise ValidationError("Record conflicts with existing data") from e
    except (OperationalError, TimeoutError) as e:
        await session.rollback()
        logger.error(f"Store unavailable: {e}")
        raise StoreUnavailable("Database unavailable, please retry") from e
    except BaseException:
        await session.rollback()
        raise
