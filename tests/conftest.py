"""Shared pytest fixtures for all tests."""

import pytest
from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from ontostate.core.models import ProvenanceContext
from ontostate.ontology.ontologies import OntologyRepository
from ontostate.storage.models import Ontology
from ontostate.storage.schema import init_database

PROJECT_ID = "proj-1"


@pytest.fixture(scope="function")
async def engine() -> AsyncEngine:
    """Create an in-memory SQLite engine for testing.

    Creates a fresh database for each test function.
    """
    test_engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
    )

    # Enable foreign keys for SQLite, and let SQLAlchemy own BEGIN so
    # repository savepoints work
    @event.listens_for(test_engine.sync_engine, "connect")
    def set_sqlite_pragma(dbapi_conn, connection_record):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()
        dbapi_conn.isolation_level = None

    @event.listens_for(test_engine.sync_engine, "begin")
    def do_begin(conn):
        conn.exec_driver_sql("BEGIN")

    await init_database(test_engine)
    yield test_engine
    await test_engine.dispose()


@pytest.fixture
async def session(engine: AsyncEngine) -> AsyncSession:
    """Create a test database session tied to the test's engine."""
    factory = async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )
    async with factory() as session:
        yield session


@pytest.fixture
async def ontology(session: AsyncSession) -> Ontology:
    """Committed active ontology for PROJECT_ID."""
    row = await OntologyRepository().create(session, PROJECT_ID)
    await session.commit()
    return row


@pytest.fixture
def inference() -> ProvenanceContext:
    return ProvenanceContext.inference()


@pytest.fixture
def manual() -> ProvenanceContext:
    return ProvenanceContext.manual("alice")


@pytest.fixture
def mcp() -> ProvenanceContext:
    return ProvenanceContext.mcp("agent-7")
