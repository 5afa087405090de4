"""Entity persistence with provenance and staleness tracking.

Every mutating call receives the ProvenanceContext of whoever makes the
change. Creation provenance is written once to ``source``/``created_by``;
later edits only touch ``last_edit_source``/``updated_by``.

Re-discovery goes through ``upsert_by_natural_key``: the (ontology_id, name)
match keeps the row id, keeps a non-empty description when the incoming one
is empty and always clears ``is_stale``.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import UTC, datetime
from uuid import uuid4

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ontostate.core.errors import ConflictError, NotFoundError
from ontostate.core.logging import get_logger
from ontostate.core.models.base import ProvenanceSource
from ontostate.core.models.ontology import EntityInput, EntityUpdate
from ontostate.core.models.provenance import ProvenanceContext, require_provenance
from ontostate.ontology.db_models import OntologyEntity, OntologyEntityAlias
from ontostate.storage.base import dialect_insert, require_session
from ontostate.storage.models import Ontology

logger = get_logger(__name__)


class EntityRepository:
    """Data access for ontology entities and their aliases.

    Stateless: the session passed to each method is the transactional scope.
    Methods flush but never commit.
    """

    # --- create / upsert -------------------------------------------------

    async def create(
        self,
        session: AsyncSession,
        entity: EntityInput,
        prov: ProvenanceContext | None,
    ) -> OntologyEntity:
        """Insert a new entity.

        Raises:
            ConflictError: If the ontology already has an entity with this name.
                Only the failed insert is rolled back (savepoint).
        """
        session = require_session(session, "entity.create")
        prov = require_provenance(prov, "entity.create")

        row = OntologyEntity(
            **entity.model_dump(),
            source=prov.source.value,
            last_edit_source=prov.source.value,
            created_by=prov.user_id,
            updated_by=prov.user_id,
        )
        try:
            async with session.begin_nested():
                session.add(row)
        except IntegrityError as e:
            raise ConflictError(
                "entity", f"{entity.ontology_id}/{entity.name}", "entity.create"
            ) from e
        return row

    async def upsert_by_natural_key(
        self,
        session: AsyncSession,
        entity: EntityInput,
        prov: ProvenanceContext | None,
    ) -> str:
        """Insert the entity or merge it into the existing (ontology_id, name) row.

        On a match:
        - description is kept when the incoming one is empty or None
        - domain is kept when the incoming one is None
        - schema/table/column locators are overwritten
        - last_edit_source/updated_by come from ``prov``; source/created_by never change
        - is_stale is cleared, is_deleted is left alone

        Returns:
            The entity id (the original one when the row already existed).
        """
        session = require_session(session, "entity.upsert")
        prov = require_provenance(prov, "entity.upsert")
        now = datetime.now(UTC)

        stmt = dialect_insert(session, OntologyEntity).values(
            entity_id=str(uuid4()),
            **entity.model_dump(),
            source=prov.source.value,
            last_edit_source=prov.source.value,
            created_by=prov.user_id,
            updated_by=prov.user_id,
            is_stale=False,
            is_deleted=False,
            created_at=now,
            updated_at=now,
        )
        excluded = stmt.excluded
        stmt = stmt.on_conflict_do_update(
            index_elements=[OntologyEntity.ontology_id, OntologyEntity.name],
            set_={
                "description": func.coalesce(
                    func.nullif(excluded.description, ""), OntologyEntity.description
                ),
                "domain": func.coalesce(excluded.domain, OntologyEntity.domain),
                "primary_schema": excluded.primary_schema,
                "primary_table": excluded.primary_table,
                "primary_column": excluded.primary_column,
                "last_edit_source": excluded.last_edit_source,
                "updated_by": excluded.updated_by,
                "is_stale": False,
                "updated_at": now,
            },
        ).returning(OntologyEntity.entity_id)

        result = await session.execute(stmt)
        entity_id = result.scalar_one()

        logger.debug(
            "entity_upserted",
            ontology_id=entity.ontology_id,
            name=entity.name,
            entity_id=entity_id,
            source=prov.source.value,
        )
        return entity_id

    # --- reads -----------------------------------------------------------

    async def get_by_id(self, session: AsyncSession, entity_id: str) -> OntologyEntity | None:
        """Get an entity by id, including soft-deleted ones."""
        session = require_session(session, "entity.get_by_id")
        stmt = (
            select(OntologyEntity)
            .where(OntologyEntity.entity_id == entity_id)
            .execution_options(populate_existing=True)
        )
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_by_name(
        self, session: AsyncSession, ontology_id: str, name: str
    ) -> OntologyEntity | None:
        """Get a live entity by name."""
        session = require_session(session, "entity.get_by_name")
        stmt = (
            select(OntologyEntity)
            .where(
                OntologyEntity.ontology_id == ontology_id,
                OntologyEntity.name == name,
                OntologyEntity.is_deleted == False,  # noqa: E712
            )
            .execution_options(populate_existing=True)
        )
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_by_ontology(
        self, session: AsyncSession, ontology_id: str
    ) -> Sequence[OntologyEntity]:
        """List live entities of an ontology, ordered by name."""
        session = require_session(session, "entity.get_by_ontology")
        stmt = (
            select(OntologyEntity)
            .where(
                OntologyEntity.ontology_id == ontology_id,
                OntologyEntity.is_deleted == False,  # noqa: E712
            )
            .order_by(OntologyEntity.name)
            .execution_options(populate_existing=True)
        )
        result = await session.execute(stmt)
        return result.scalars().all()

    async def get_by_project(
        self, session: AsyncSession, project_id: str
    ) -> Sequence[OntologyEntity]:
        """List live entities of the project's active ontology."""
        session = require_session(session, "entity.get_by_project")
        stmt = (
            select(OntologyEntity)
            .join(Ontology, Ontology.ontology_id == OntologyEntity.ontology_id)
            .where(
                OntologyEntity.project_id == project_id,
                Ontology.is_active == True,  # noqa: E712
                OntologyEntity.is_deleted == False,  # noqa: E712
            )
            .order_by(OntologyEntity.name)
            .execution_options(populate_existing=True)
        )
        result = await session.execute(stmt)
        return result.scalars().all()

    # --- edits -----------------------------------------------------------

    async def _require(self, session: AsyncSession, entity_id: str, operation: str) -> OntologyEntity:
        row = await self.get_by_id(session, entity_id)
        if row is None:
            raise NotFoundError("entity", entity_id, operation)
        return row

    async def update(
        self,
        session: AsyncSession,
        entity_id: str,
        changes: EntityUpdate,
        prov: ProvenanceContext | None,
    ) -> OntologyEntity:
        """Apply a partial edit. Clears is_stale."""
        session = require_session(session, "entity.update")
        prov = require_provenance(prov, "entity.update")
        row = await self._require(session, entity_id, "entity.update")

        for field_name, value in changes.model_dump(exclude_unset=True).items():
            setattr(row, field_name, value)
        row.last_edit_source = prov.source.value
        row.updated_by = prov.user_id
        row.is_stale = False
        await session.flush()
        return row

    async def update_description(
        self,
        session: AsyncSession,
        entity_id: str,
        description: str,
        prov: ProvenanceContext | None,
    ) -> OntologyEntity:
        """Replace the description. Clears is_stale."""
        session = require_session(session, "entity.update_description")
        prov = require_provenance(prov, "entity.update_description")
        row = await self._require(session, entity_id, "entity.update_description")

        row.description = description
        row.last_edit_source = prov.source.value
        row.updated_by = prov.user_id
        row.is_stale = False
        await session.flush()
        return row

    async def soft_delete(
        self, session: AsyncSession, entity_id: str, reason: str | None = None
    ) -> None:
        """Hide the entity from lookups, keeping the row and its id."""
        session = require_session(session, "entity.soft_delete")
        row = await self._require(session, entity_id, "entity.soft_delete")
        row.is_deleted = True
        row.deletion_reason = reason
        await session.flush()
        logger.info("entity_soft_deleted", entity_id=entity_id, reason=reason)

    async def restore(self, session: AsyncSession, entity_id: str) -> None:
        """Undo a soft delete."""
        session = require_session(session, "entity.restore")
        row = await self._require(session, entity_id, "entity.restore")
        row.is_deleted = False
        row.deletion_reason = None
        await session.flush()

    # --- bulk teardown ---------------------------------------------------

    async def delete_by_ontology(self, session: AsyncSession, ontology_id: str) -> int:
        """Hard-delete every entity of an ontology. Aliases and relationships cascade."""
        session = require_session(session, "entity.delete_by_ontology")
        result = await session.execute(
            delete(OntologyEntity).where(OntologyEntity.ontology_id == ontology_id)
        )
        return result.rowcount

    async def delete_by_provenance(
        self, session: AsyncSession, ontology_id: str, source: ProvenanceSource
    ) -> int:
        """Hard-delete the entities of one ontology created with the given provenance.

        Used to discard inference output; manual and MCP rows are untouched
        unless their source is asked for explicitly.
        """
        session = require_session(session, "entity.delete_by_provenance")
        result = await session.execute(
            delete(OntologyEntity).where(
                OntologyEntity.ontology_id == ontology_id,
                OntologyEntity.source == ProvenanceSource(source).value,
            )
        )
        logger.info(
            "entities_deleted_by_provenance",
            ontology_id=ontology_id,
            source=ProvenanceSource(source).value,
            count=result.rowcount,
        )
        return result.rowcount

    # --- staleness -------------------------------------------------------

    async def mark_inference_stale(self, session: AsyncSession, ontology_id: str) -> int:
        """Flag every live inference-created entity of the ontology as stale.

        Idempotent. Manual and MCP entities are never flagged.

        Returns:
            Number of rows flagged
        """
        session = require_session(session, "entity.mark_inference_stale")
        result = await session.execute(
            update(OntologyEntity)
            .where(
                OntologyEntity.ontology_id == ontology_id,
                OntologyEntity.source == ProvenanceSource.INFERENCE.value,
                OntologyEntity.is_deleted == False,  # noqa: E712
            )
            .values(is_stale=True)
        )
        return result.rowcount

    async def clear_stale_flag(self, session: AsyncSession, entity_id: str) -> None:
        session = require_session(session, "entity.clear_stale_flag")
        result = await session.execute(
            update(OntologyEntity)
            .where(OntologyEntity.entity_id == entity_id)
            .values(is_stale=False)
        )
        if result.rowcount == 0:
            raise NotFoundError("entity", entity_id, "entity.clear_stale_flag")

    async def get_stale(self, session: AsyncSession, ontology_id: str) -> Sequence[OntologyEntity]:
        """List live entities still flagged stale, ordered by name."""
        session = require_session(session, "entity.get_stale")
        stmt = (
            select(OntologyEntity)
            .where(
                OntologyEntity.ontology_id == ontology_id,
                OntologyEntity.is_stale == True,  # noqa: E712
                OntologyEntity.is_deleted == False,  # noqa: E712
            )
            .order_by(OntologyEntity.name)
            .execution_options(populate_existing=True)
        )
        result = await session.execute(stmt)
        return result.scalars().all()

    # --- aliases ---------------------------------------------------------

    async def create_alias(
        self,
        session: AsyncSession,
        entity_id: str,
        alias: str,
        prov: ProvenanceContext | None,
    ) -> OntologyEntityAlias:
        """Attach an alias to an entity.

        Raises:
            NotFoundError: If the entity does not exist
            ConflictError: If the entity already has this alias
        """
        session = require_session(session, "entity.create_alias")
        prov = require_provenance(prov, "entity.create_alias")
        await self._require(session, entity_id, "entity.create_alias")

        row = OntologyEntityAlias(entity_id=entity_id, alias=alias, source=prov.source.value)
        try:
            async with session.begin_nested():
                session.add(row)
        except IntegrityError as e:
            raise ConflictError("alias", f"{entity_id}/{alias}", "entity.create_alias") from e
        return row

    async def get_aliases(
        self, session: AsyncSession, entity_id: str
    ) -> Sequence[OntologyEntityAlias]:
        session = require_session(session, "entity.get_aliases")
        stmt = (
            select(OntologyEntityAlias)
            .where(OntologyEntityAlias.entity_id == entity_id)
            .order_by(OntologyEntityAlias.alias)
        )
        result = await session.execute(stmt)
        return result.scalars().all()

    async def delete_alias(self, session: AsyncSession, alias_id: str) -> None:
        session = require_session(session, "entity.delete_alias")
        result = await session.execute(
            delete(OntologyEntityAlias).where(OntologyEntityAlias.alias_id == alias_id)
        )
        if result.rowcount == 0:
            raise NotFoundError("alias", alias_id, "entity.delete_alias")
