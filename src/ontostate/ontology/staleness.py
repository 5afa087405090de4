"""Refresh-cycle reconciliation of inferred ontology content.

A refresh cycle against one ontology:

1. ``begin_refresh`` flags every inference-created entity and relationship
   stale.
2. Discovery re-runs and upserts what it finds; each upsert clears the flag
   on the matched row.
3. ``finish_refresh`` reports what was never rediscovered.

Manual and MCP content is never flagged, so it survives every cycle. Callers
serialize cycles per ontology; nothing here takes a cycle-level lock.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field

from sqlalchemy.ext.asyncio import AsyncSession

from ontostate.core.errors import OntostateError
from ontostate.core.logging import get_logger, log_context
from ontostate.core.models.base import Result
from ontostate.ontology.db_models import EntityRelationship, OntologyEntity
from ontostate.ontology.entities import EntityRepository
from ontostate.ontology.relationships import RelationshipRepository
from ontostate.storage.base import require_session

logger = get_logger(__name__)


@dataclass(frozen=True)
class StaleCounts:
    """Rows flagged by a mark pass."""

    entities: int = 0
    relationships: int = 0

    @property
    def total(self) -> int:
        return self.entities + self.relationships


@dataclass
class StaleRows:
    """Rows still stale after a refresh."""

    entities: Sequence[OntologyEntity] = field(default_factory=list)
    relationships: Sequence[EntityRelationship] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.entities and not self.relationships

    def counts(self) -> StaleCounts:
        return StaleCounts(entities=len(self.entities), relationships=len(self.relationships))


class StalenessTracker:
    """Marks and reports stale inferred content across entities and relationships."""

    def __init__(
        self,
        entities: EntityRepository | None = None,
        relationships: RelationshipRepository | None = None,
    ):
        self.entities = entities or EntityRepository()
        self.relationships = relationships or RelationshipRepository()

    async def mark_inference_stale(self, session: AsyncSession, ontology_id: str) -> StaleCounts:
        session = require_session(session, "staleness.mark_inference_stale")
        return StaleCounts(
            entities=await self.entities.mark_inference_stale(session, ontology_id),
            relationships=await self.relationships.mark_inference_stale(session, ontology_id),
        )

    async def get_stale(self, session: AsyncSession, ontology_id: str) -> StaleRows:
        session = require_session(session, "staleness.get_stale")
        return StaleRows(
            entities=await self.entities.get_stale(session, ontology_id),
            relationships=await self.relationships.get_stale(session, ontology_id),
        )

    async def begin_refresh(
        self, session: AsyncSession, ontology_id: str
    ) -> Result[StaleCounts]:
        """Start a reconciliation cycle by flagging all inferred rows.

        Precondition errors (no session) propagate; storage failures are
        returned as a failed Result.
        """
        session = require_session(session, "staleness.begin_refresh")
        with log_context(ontology_id=ontology_id, phase="refresh"):
            try:
                counts = await self.mark_inference_stale(session, ontology_id)
            except OntostateError:
                raise
            except Exception as e:
                logger.error("refresh_begin_failed", error=str(e))
                return Result.fail(f"Failed to mark stale rows: {e}")

            logger.info(
                "refresh_started",
                stale_entities=counts.entities,
                stale_relationships=counts.relationships,
            )
        return Result.ok(counts)

    async def finish_refresh(self, session: AsyncSession, ontology_id: str) -> Result[StaleRows]:
        """End a reconciliation cycle and report what was not rediscovered."""
        session = require_session(session, "staleness.finish_refresh")
        with log_context(ontology_id=ontology_id, phase="refresh"):
            try:
                rows = await self.get_stale(session, ontology_id)
            except OntostateError:
                raise
            except Exception as e:
                logger.error("refresh_finish_failed", error=str(e))
                return Result.fail(f"Failed to load stale rows: {e}")

            warnings = []
            if not rows.is_empty:
                counts = rows.counts()
                warnings.append(
                    f"{counts.entities} entities and {counts.relationships} relationships "
                    "were not rediscovered"
                )
            logger.info(
                "refresh_finished",
                stale_entities=len(rows.entities),
                stale_relationships=len(rows.relationships),
            )
        return Result.ok(rows, warnings)
