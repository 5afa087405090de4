"""Relationship persistence with provenance and staleness tracking.

A relationship is keyed by (ontology_id, source column, target column); each
column is addressed by schema, table and column name. ``create`` is a plain
insert, ``upsert_by_natural_key`` is the re-discovery path.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import UTC, datetime
from uuid import uuid4

from sqlalchemy import delete, func, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ontostate.core.errors import ConflictError, NotFoundError
from ontostate.core.logging import get_logger
from ontostate.core.models.base import ProvenanceSource
from ontostate.core.models.ontology import RelationshipInput, RelationshipUpdate
from ontostate.core.models.provenance import ProvenanceContext, require_provenance
from ontostate.ontology.db_models import EntityRelationship
from ontostate.storage.base import dialect_insert, require_session

logger = get_logger(__name__)

_NATURAL_KEY = (
    EntityRelationship.ontology_id,
    EntityRelationship.source_column_schema,
    EntityRelationship.source_column_table,
    EntityRelationship.source_column_name,
    EntityRelationship.target_column_schema,
    EntityRelationship.target_column_table,
    EntityRelationship.target_column_name,
)


def _row_values(rel: RelationshipInput, prov: ProvenanceContext) -> dict:
    return {
        "ontology_id": rel.ontology_id,
        "source_entity_id": rel.source_entity_id,
        "target_entity_id": rel.target_entity_id,
        "source_column_schema": rel.source_column.schema_name,
        "source_column_table": rel.source_column.table_name,
        "source_column_name": rel.source_column.column_name,
        "target_column_schema": rel.target_column.schema_name,
        "target_column_table": rel.target_column.table_name,
        "target_column_name": rel.target_column.column_name,
        "detection_method": rel.detection_method.value,
        "confidence": rel.confidence,
        "cardinality": rel.cardinality.value,
        "status": rel.status.value,
        "description": rel.description,
        "association": rel.association,
        "source": prov.source.value,
        "last_edit_source": prov.source.value,
        "created_by": prov.user_id,
        "updated_by": prov.user_id,
    }


class RelationshipRepository:
    """Data access for entity relationships."""

    async def create(
        self,
        session: AsyncSession,
        rel: RelationshipInput,
        prov: ProvenanceContext | None,
    ) -> EntityRelationship:
        """Insert a relationship.

        Raises:
            ConflictError: If the column pair is already linked in this ontology.
                Only the failed insert is rolled back (savepoint).
        """
        session = require_session(session, "relationship.create")
        prov = require_provenance(prov, "relationship.create")

        row = EntityRelationship(**_row_values(rel, prov))
        try:
            async with session.begin_nested():
                session.add(row)
        except IntegrityError as e:
            raise ConflictError("relationship", rel.natural_key, "relationship.create") from e
        return row

    async def upsert_by_natural_key(
        self,
        session: AsyncSession,
        rel: RelationshipInput,
        prov: ProvenanceContext | None,
    ) -> str:
        """Insert or merge by column pair; returns the relationship id.

        On a match the detection method, confidence and entity ids are
        overwritten, description and association are kept when the incoming
        value is empty, and is_stale is cleared. Cardinality and status are
        only written on insert, so review decisions survive rediscovery.
        """
        session = require_session(session, "relationship.upsert")
        prov = require_provenance(prov, "relationship.upsert")
        now = datetime.now(UTC)

        stmt = dialect_insert(session, EntityRelationship).values(
            relationship_id=str(uuid4()),
            **_row_values(rel, prov),
            is_stale=False,
            created_at=now,
            updated_at=now,
        )
        excluded = stmt.excluded
        stmt = stmt.on_conflict_do_update(
            index_elements=list(_NATURAL_KEY),
            set_={
                "source_entity_id": excluded.source_entity_id,
                "target_entity_id": excluded.target_entity_id,
                "detection_method": excluded.detection_method,
                "confidence": excluded.confidence,
                "description": func.coalesce(
                    func.nullif(excluded.description, ""), EntityRelationship.description
                ),
                "association": func.coalesce(
                    func.nullif(excluded.association, ""), EntityRelationship.association
                ),
                "last_edit_source": excluded.last_edit_source,
                "updated_by": excluded.updated_by,
                "is_stale": False,
                "updated_at": now,
            },
        ).returning(EntityRelationship.relationship_id)

        result = await session.execute(stmt)
        relationship_id = result.scalar_one()
        logger.debug(
            "relationship_upserted",
            ontology_id=rel.ontology_id,
            key=rel.natural_key,
            relationship_id=relationship_id,
        )
        return relationship_id

    # --- reads -----------------------------------------------------------

    def _select(self):
        return select(EntityRelationship).execution_options(populate_existing=True)

    async def get_by_id(
        self, session: AsyncSession, relationship_id: str
    ) -> EntityRelationship | None:
        session = require_session(session, "relationship.get_by_id")
        result = await session.execute(
            self._select().where(EntityRelationship.relationship_id == relationship_id)
        )
        return result.scalar_one_or_none()

    async def get_by_ontology(
        self, session: AsyncSession, ontology_id: str
    ) -> Sequence[EntityRelationship]:
        """List relationships ordered by source then target column."""
        session = require_session(session, "relationship.get_by_ontology")
        stmt = (
            self._select()
            .where(EntityRelationship.ontology_id == ontology_id)
            .order_by(*_NATURAL_KEY[1:])
        )
        result = await session.execute(stmt)
        return result.scalars().all()

    async def get_by_target_entity(
        self, session: AsyncSession, entity_id: str
    ) -> Sequence[EntityRelationship]:
        """Relationships pointing at an entity (incoming edges)."""
        session = require_session(session, "relationship.get_by_target_entity")
        stmt = (
            self._select()
            .where(EntityRelationship.target_entity_id == entity_id)
            .order_by(*_NATURAL_KEY[1:])
        )
        result = await session.execute(stmt)
        return result.scalars().all()

    async def get_by_entity_pair(
        self,
        session: AsyncSession,
        ontology_id: str,
        entity_a: str,
        entity_b: str,
    ) -> Sequence[EntityRelationship]:
        """Relationships between two entities in either direction."""
        session = require_session(session, "relationship.get_by_entity_pair")
        stmt = (
            self._select()
            .where(
                EntityRelationship.ontology_id == ontology_id,
                or_(
                    (EntityRelationship.source_entity_id == entity_a)
                    & (EntityRelationship.target_entity_id == entity_b),
                    (EntityRelationship.source_entity_id == entity_b)
                    & (EntityRelationship.target_entity_id == entity_a),
                ),
            )
            .order_by(*_NATURAL_KEY[1:])
        )
        result = await session.execute(stmt)
        return result.scalars().all()

    # --- edits -----------------------------------------------------------

    async def _require(
        self, session: AsyncSession, relationship_id: str, operation: str
    ) -> EntityRelationship:
        row = await self.get_by_id(session, relationship_id)
        if row is None:
            raise NotFoundError("relationship", relationship_id, operation)
        return row

    def _touch(self, row: EntityRelationship, prov: ProvenanceContext) -> None:
        row.last_edit_source = prov.source.value
        row.updated_by = prov.user_id
        row.is_stale = False

    async def update(
        self,
        session: AsyncSession,
        relationship_id: str,
        changes: RelationshipUpdate,
        prov: ProvenanceContext | None,
    ) -> EntityRelationship:
        """Apply a partial edit. Clears is_stale."""
        session = require_session(session, "relationship.update")
        prov = require_provenance(prov, "relationship.update")
        row = await self._require(session, relationship_id, "relationship.update")

        for field_name, value in changes.model_dump(mode="json", exclude_unset=True).items():
            setattr(row, field_name, value)
        self._touch(row, prov)
        await session.flush()
        return row

    async def update_description(
        self,
        session: AsyncSession,
        relationship_id: str,
        description: str,
        prov: ProvenanceContext | None,
    ) -> EntityRelationship:
        session = require_session(session, "relationship.update_description")
        prov = require_provenance(prov, "relationship.update_description")
        row = await self._require(session, relationship_id, "relationship.update_description")

        row.description = description
        self._touch(row, prov)
        await session.flush()
        return row

    async def update_description_and_association(
        self,
        session: AsyncSession,
        relationship_id: str,
        description: str,
        association: str | None,
        prov: ProvenanceContext | None,
    ) -> EntityRelationship:
        operation = "relationship.update_description_and_association"
        session = require_session(session, operation)
        prov = require_provenance(prov, operation)
        row = await self._require(session, relationship_id, operation)

        row.description = description
        row.association = association
        self._touch(row, prov)
        await session.flush()
        return row

    async def delete(self, session: AsyncSession, relationship_id: str) -> None:
        session = require_session(session, "relationship.delete")
        result = await session.execute(
            delete(EntityRelationship).where(EntityRelationship.relationship_id == relationship_id)
        )
        if result.rowcount == 0:
            raise NotFoundError("relationship", relationship_id, "relationship.delete")

    async def delete_by_ontology(self, session: AsyncSession, ontology_id: str) -> int:
        session = require_session(session, "relationship.delete_by_ontology")
        result = await session.execute(
            delete(EntityRelationship).where(EntityRelationship.ontology_id == ontology_id)
        )
        return result.rowcount

    async def delete_by_provenance(
        self, session: AsyncSession, ontology_id: str, source: ProvenanceSource
    ) -> int:
        """Hard-delete the relationships of one ontology created with the given provenance."""
        session = require_session(session, "relationship.delete_by_provenance")
        source_value = ProvenanceSource(source).value
        result = await session.execute(
            delete(EntityRelationship).where(
                EntityRelationship.ontology_id == ontology_id,
                EntityRelationship.source == source_value,
            )
        )
        logger.info(
            "relationships_deleted_by_provenance",
            ontology_id=ontology_id,
            source=source_value,
            count=result.rowcount,
        )
        return result.rowcount

    # --- staleness -------------------------------------------------------

    async def mark_inference_stale(self, session: AsyncSession, ontology_id: str) -> int:
        """Flag every inference-created relationship of the ontology as stale."""
        session = require_session(session, "relationship.mark_inference_stale")
        result = await session.execute(
            update(EntityRelationship)
            .where(
                EntityRelationship.ontology_id == ontology_id,
                EntityRelationship.source == ProvenanceSource.INFERENCE.value,
            )
            .values(is_stale=True)
        )
        return result.rowcount

    async def clear_stale_flag(self, session: AsyncSession, relationship_id: str) -> None:
        session = require_session(session, "relationship.clear_stale_flag")
        result = await session.execute(
            update(EntityRelationship)
            .where(EntityRelationship.relationship_id == relationship_id)
            .values(is_stale=False)
        )
        if result.rowcount == 0:
            raise NotFoundError("relationship", relationship_id, "relationship.clear_stale_flag")

    async def get_stale(
        self, session: AsyncSession, ontology_id: str
    ) -> Sequence[EntityRelationship]:
        """Stale relationships ordered by source table and column."""
        session = require_session(session, "relationship.get_stale")
        stmt = (
            self._select()
            .where(
                EntityRelationship.ontology_id == ontology_id,
                EntityRelationship.is_stale == True,  # noqa: E712
            )
            .order_by(
                EntityRelationship.source_column_table,
                EntityRelationship.source_column_name,
                EntityRelationship.target_column_table,
                EntityRelationship.target_column_name,
            )
        )
        result = await session.execute(stmt)
        return result.scalars().all()
