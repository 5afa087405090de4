"""Connection management for the ontostate metadata database.

This module provides:
- SQLAlchemy async engine creation from a database URL
- SQLite pragmas (foreign keys, WAL, busy timeout) on every connection
- A session scope that commits on success and rolls back on error

Repositories never commit. The caller owns the transaction, normally through
``session_scope()``.

Usage:
    from ontostate.core.connections import ConnectionManager, ConnectionConfig

    manager = ConnectionManager(ConnectionConfig.from_settings())
    await manager.initialize()

    async with manager.session_scope() as session:
        entity_id = await EntityRepository().upsert_by_natural_key(session, entity, prov)

    await manager.close()
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from sqlalchemy import event
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool, StaticPool

from ontostate.core.config import get_settings
from ontostate.core.logging import get_logger

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator

logger = get_logger(__name__)

IN_MEMORY_URL = "sqlite+aiosqlite:///:memory:"


@dataclass
class ConnectionConfig:
    """Connection configuration.

    Attributes:
        database_url: SQLAlchemy async URL (sqlite+aiosqlite or postgresql+asyncpg)
        pool_size: Connection pool size (PostgreSQL only)
        max_overflow: Maximum overflow connections beyond pool_size
        pool_timeout: Seconds to wait for a connection from pool
        sqlite_timeout: SQLite busy timeout in seconds
        create_tables: Create missing tables during initialize()
        echo_sql: Whether to echo SQL statements (for debugging)
    """

    database_url: str

    pool_size: int = 5
    max_overflow: int = 10
    pool_timeout: float = 30.0
    sqlite_timeout: float = 30.0

    create_tables: bool = True
    echo_sql: bool = False

    @classmethod
    def from_settings(cls, **kwargs: Any) -> ConnectionConfig:
        """Create config from environment settings; kwargs override."""
        settings = get_settings()
        values: dict[str, Any] = {
            "database_url": settings.database_url,
            "pool_size": settings.pool_size,
            "max_overflow": settings.max_overflow,
            "sqlite_timeout": settings.sqlite_timeout,
            "echo_sql": settings.echo_sql,
        }
        values.update(kwargs)
        return cls(**values)

    @classmethod
    def in_memory(cls, **kwargs: Any) -> ConnectionConfig:
        """Create config for an in-memory SQLite database (useful for testing)."""
        return cls(database_url=IN_MEMORY_URL, **kwargs)

    @property
    def is_sqlite(self) -> bool:
        return make_url(self.database_url).get_backend_name() == "sqlite"

    @property
    def is_memory(self) -> bool:
        url = make_url(self.database_url)
        return self.is_sqlite and url.database in (None, "", ":memory:")


def create_engine_for(config: ConnectionConfig) -> AsyncEngine:
    """Create an async engine for the given config.

    SQLite connections get foreign keys, WAL, a busy timeout and an explicit
    BEGIN so savepoints behave. An in-memory database shares a single
    connection so every session sees the same tables.
    """
    kwargs: dict[str, Any] = {"echo": config.echo_sql}
    if config.is_memory:
        kwargs["poolclass"] = StaticPool
    elif config.is_sqlite:
        kwargs["poolclass"] = NullPool
    else:
        kwargs["pool_size"] = config.pool_size
        kwargs["max_overflow"] = config.max_overflow
        kwargs["pool_timeout"] = config.pool_timeout
        kwargs["pool_pre_ping"] = True

    engine = create_async_engine(config.database_url, **kwargs)

    if config.is_sqlite:
        busy_timeout_ms = int(config.sqlite_timeout * 1000)
        use_wal = not config.is_memory

        @event.listens_for(engine.sync_engine, "connect")
        def configure_sqlite(dbapi_conn: Any, connection_record: Any) -> None:
            cursor = dbapi_conn.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            if use_wal:
                # Readers don't block the writer
                cursor.execute("PRAGMA journal_mode=WAL")
                cursor.execute("PRAGMA synchronous=NORMAL")
            cursor.execute(f"PRAGMA busy_timeout={busy_timeout_ms}")
            cursor.close()
            # SQLAlchemy emits BEGIN itself so SAVEPOINT works on SQLite
            dbapi_conn.isolation_level = None

        @event.listens_for(engine.sync_engine, "begin")
        def begin_sqlite(conn: Any) -> None:
            conn.exec_driver_sql("BEGIN")

    return engine


@dataclass
class ConnectionManager:
    """Owns the engine and session factory.

    One session per async task. Safe to initialize and close more than once.
    """

    config: ConnectionConfig
    _engine: AsyncEngine | None = field(default=None, init=False, repr=False)
    _session_factory: async_sessionmaker[AsyncSession] | None = field(
        default=None, init=False, repr=False
    )
    _initialized: bool = field(default=False, init=False, repr=False)
    _init_lock: asyncio.Lock = field(default_factory=asyncio.Lock, init=False, repr=False)

    async def initialize(self) -> None:
        """Create the engine and, if configured, the schema.

        Raises:
            RuntimeError: If initialization fails
        """
        async with self._init_lock:
            if self._initialized:
                return

            try:
                self._engine = create_engine_for(self.config)
                if self.config.create_tables:
                    from ontostate.storage.schema import init_database

                    await init_database(self._engine)
                self._session_factory = async_sessionmaker(
                    self._engine,
                    class_=AsyncSession,
                    expire_on_commit=False,
                )
                self._initialized = True
            except Exception as e:
                await self.close()
                raise RuntimeError(f"Failed to initialize connections: {e}") from e

        logger.debug("connections_initialized", backend=make_url(self.config.database_url).drivername)

    def _ensure_initialized(self) -> None:
        if not self._initialized:
            raise RuntimeError(
                "ConnectionManager not initialized. Call await manager.initialize() first."
            )

    @asynccontextmanager
    async def session_scope(self) -> AsyncGenerator[AsyncSession]:
        """Get a session with commit on success and rollback on error.

        Example:
            async with manager.session_scope() as session:
                await repo.increment_retry_count(session, state_id)
        """
        self._ensure_initialized()
        assert self._session_factory is not None

        session = self._session_factory()
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()

    @property
    def engine(self) -> AsyncEngine:
        self._ensure_initialized()
        assert self._engine is not None
        return self._engine

    async def close(self) -> None:
        """Dispose of the engine. Safe to call multiple times."""
        if self._engine is not None:
            await self._engine.dispose()
            self._engine = None
        self._session_factory = None
        self._initialized = False


async def create_connection_manager(config: ConnectionConfig | None = None) -> ConnectionManager:
    """Create and initialize a ConnectionManager (defaults to environment settings)."""
    manager = ConnectionManager(config or ConnectionConfig.from_settings())
    await manager.initialize()
    return manager
