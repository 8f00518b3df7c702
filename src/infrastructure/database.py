"""
Database gateway: async engine, bounded connection pool, sessions and transactions.

One ``Database`` is built at startup (see ``src.main.lifespan``), stored on
``app.state.database`` and disposed at shutdown. Request handlers receive a
session through the ``get_db`` dependency; nothing imports a global engine.
"""
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, List, Optional

from fastapi import Request
from sqlalchemy import event, text
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from src.domain.errors import DatabaseUnconfigured


logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    """Declarative base for all ORM models."""
    pass


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def create_engine_for_url(
    url: str,
    pool_size: int = 20,
    statement_timeout: int = 10,
    echo: bool = False,
) -> AsyncEngine:
    """
    Create the async engine for ``url``.

    PostgreSQL gets a bounded pool (no overflow) whose waiters queue without a
    deadline, plus a per-statement timeout. SQLite gets foreign key enforcement.
    """
    backend = make_url(url).get_backend_name()

    if backend == "sqlite":
        engine = create_async_engine(url, echo=echo)
        event.listen(engine.sync_engine, "connect", _enable_sqlite_foreign_keys)
        return engine

    return create_async_engine(
        url,
        echo=echo,
        pool_size=pool_size,
        max_overflow=0,
        pool_timeout=None,
        pool_pre_ping=True,
        connect_args={"command_timeout": statement_timeout},
    )


class Database:
    """
    Connection pool owner.

    A ``Database`` built without a URL is "unconfigured": the process keeps
    running so health checks answer, but every operation raises
    ``DatabaseUnconfigured``.
    """

    def __init__(
        self,
        url: Optional[str],
        pool_size: int = 20,
        statement_timeout: int = 10,
        echo: bool = False,
    ):
        self.url = url
        self.engine: Optional[AsyncEngine] = None
        self._sessionmaker: Optional[async_sessionmaker[AsyncSession]] = None

        if url:
            self.engine = create_engine_for_url(url, pool_size, statement_timeout, echo)
            self._sessionmaker = async_sessionmaker(
                self.engine,
                class_=AsyncSession,
                expire_on_commit=False,
            )

    @property
    def is_configured(self) -> bool:
        return self.engine is not None

    def _require_engine(self) -> AsyncEngine:
        if self.engine is None:
            raise DatabaseUnconfigured()
        return self.engine

    @asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncSession]:
        """
        Yield a session bound to a pooled connection.

        Any exception rolls back the open transaction; the connection goes
        back to the pool on every exit path.
        """
        self._require_engine()
        session = self._sessionmaker()
        try:
            yield session
        except BaseException:
            await session.rollback()
            raise
        finally:
            await session.close()

    async def query(self, sql: str, params: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        """Run a parameterised statement and return every row as a dict."""
        engine = self._require_engine()
        async with engine.connect() as conn:
            result = await conn.execute(text(sql), params or {})
            return [dict(row) for row in result.mappings().all()]

    async def query_one(self, sql: str, params: Optional[Dict[str, Any]] = None) -> Optional[Dict[str, Any]]:
        """Run a parameterised statement and return the first row, or None."""
        engine = self._require_engine()
        async with engine.connect() as conn:
            result = await conn.execute(text(sql), params or {})
            row = result.mappings().first()
            return dict(row) if row is not None else None

    async def ping(self) -> bool:
        row = await self.query_one("SELECT 1 AS ok")
        return bool(row and row["ok"] == 1)

    async def create_all(self) -> None:
        """Create every table from the ORM metadata (tests and local bootstrap)."""
        engine = self._require_engine()
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def dispose(self) -> None:
        if self.engine is not None:
            await self.engine.dispose()
            logger.info("Database pool disposed")


@asynccontextmanager
async def transaction(session: AsyncSession) -> AsyncIterator[AsyncSession]:
    """
    Commit the session's work when the block succeeds, roll it back otherwise.

    Either every statement issued inside the block is persisted or none is.
    """
    try:
        yield session
        await session.commit()
    except BaseException:
        await session.rollback()
        raise


async def get_db(request: Request) -> AsyncIterator[AsyncSession]:
    """
    Dependency for getting async database sessions.
    """
    database: Optional[Database] = getattr(request.app.state, "database", None)
    if database is None:
        raise DatabaseUnconfigured()

    async with database.session() as session:
        yield session
