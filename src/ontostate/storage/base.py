"""SQLAlchemy base configuration and dialect helpers."""

from __future__ import annotations

from typing import Any

from sqlalchemy import MetaData
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import DeclarativeBase

from ontostate.core.errors import TenantScopeRequiredError

# Naming convention for constraints
# This ensures consistent constraint names across PostgreSQL and SQLite
convention = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}

metadata_obj = MetaData(naming_convention=convention)


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    metadata = metadata_obj


def require_session(session: AsyncSession | None, operation: str) -> AsyncSession:
    """Return the session or raise if the caller supplied none.

    The session is the tenant scope: every read and write runs inside the
    caller's transaction.
    """
    if session is None:
        raise TenantScopeRequiredError(operation)
    return session


def dialect_name(session: AsyncSession) -> str:
    """Name of the dialect the session is bound to ('sqlite', 'postgresql')."""
    return session.get_bind().dialect.name


def dialect_insert(session: AsyncSession, model: Any) -> Any:
    """Return an INSERT construct supporting ON CONFLICT for the session's dialect.

    Both the PostgreSQL and SQLite constructs expose ``excluded``,
    ``on_conflict_do_update`` and ``on_conflict_do_nothing``.

    Raises:
        NotImplementedError: For dialects without ON CONFLICT support
    """
    name = dialect_name(session)
    if name == "postgresql":
        return postgresql.insert(model)
    if name == "sqlite":
        return sqlite.insert(model)
    raise NotImplementedError(f"Upsert is not supported on dialect {name!r}")
