"""Database schema initialization and management."""

from datetime import UTC, datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession

# Import all model modules to register them with SQLAlchemy Base metadata
# These imports ensure tables are created when init_database() is called
from ontostate.changes import db_models as _changes_models  # noqa: F401
from ontostate.ontology import db_models as _ontology_models  # noqa: F401
from ontostate.storage import models as _storage_models  # noqa: F401
from ontostate.storage.base import Base
from ontostate.storage.models import DBSchemaVersion
from ontostate.workflow import db_models as _workflow_models  # noqa: F401

SCHEMA_VERSION = "0.1.0"


async def init_database(engine: AsyncEngine) -> None:
    """
    Initialize database schema.

    Creates all tables defined in SQLAlchemy models.
    Safe to call multiple times - only creates missing tables.

    Args:
        engine: Async SQLAlchemy engine
    """
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    await _set_schema_version(engine, SCHEMA_VERSION)


async def reset_database(engine: AsyncEngine) -> None:
    """
    Drop and recreate all tables.

    WARNING: This destroys all data. Use only in development/testing.

    Args:
        engine: Async SQLAlchemy engine
    """
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    await _set_schema_version(engine, SCHEMA_VERSION)


async def _set_schema_version(engine: AsyncEngine, version: str) -> None:
    """Record the schema version in the database."""
    async with AsyncSession(engine) as session:
        existing = await session.get(DBSchemaVersion, version)
        if existing is None:
            session.add(DBSchemaVersion(version=version, applied_at=datetime.now(UTC)))
            await session.commit()


async def get_schema_version(session: AsyncSession) -> str | None:
    """Get the most recently applied schema version."""
    result = await session.execute(
        select(DBSchemaVersion.version).order_by(DBSchemaVersion.applied_at.desc()).limit(1)
    )
    return result.scalar_one_or_none()
