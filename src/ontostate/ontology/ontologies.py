"""Ontology container versions per project."""

from __future__ import annotations

from collections.abc import Sequence

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ontostate.core.errors import NotFoundError
from ontostate.core.logging import get_logger
from ontostate.storage.base import require_session
from ontostate.storage.models import Ontology

logger = get_logger(__name__)


class OntologyRepository:
    """Create, look up and tear down ontology versions.

    Creating a new version deactivates the previous active one.
    """

    async def create(self, session: AsyncSession, project_id: str) -> Ontology:
        session = require_session(session, "ontology.create")

        current = await session.execute(
            select(func.max(Ontology.version)).where(Ontology.project_id == project_id)
        )
        version = (current.scalar_one_or_none() or 0) + 1

        await session.execute(
            update(Ontology)
            .where(Ontology.project_id == project_id, Ontology.is_active == True)  # noqa: E712
            .values(is_active=False)
        )
        row = Ontology(project_id=project_id, version=version, is_active=True)
        session.add(row)
        await session.flush()

        logger.info("ontology_created", project_id=project_id, ontology_id=row.ontology_id, version=version)
        return row

    async def get_by_id(self, session: AsyncSession, ontology_id: str) -> Ontology | None:
        session = require_session(session, "ontology.get_by_id")
        result = await session.execute(
            select(Ontology)
            .where(Ontology.ontology_id == ontology_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get_active(self, session: AsyncSession, project_id: str) -> Ontology | None:
        session = require_session(session, "ontology.get_active")
        result = await session.execute(
            select(Ontology)
            .where(Ontology.project_id == project_id, Ontology.is_active == True)  # noqa: E712
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def list_by_project(self, session: AsyncSession, project_id: str) -> Sequence[Ontology]:
        session = require_session(session, "ontology.list_by_project")
        result = await session.execute(
            select(Ontology).where(Ontology.project_id == project_id).order_by(Ontology.version)
        )
        return result.scalars().all()

    async def delete(self, session: AsyncSession, ontology_id: str) -> None:
        """Delete an ontology with everything it contains (database cascade)."""
        session = require_session(session, "ontology.delete")
        result = await session.execute(delete(Ontology).where(Ontology.ontology_id == ontology_id))
        if result.rowcount == 0:
            raise NotFoundError("ontology", ontology_id, "ontology.delete")
        logger.info("ontology_deleted", ontology_id=ontology_id)
