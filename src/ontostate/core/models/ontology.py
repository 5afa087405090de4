"""Input models for ontology entities and relationships.

Repositories accept these pydantic models and return ORM rows. Provenance is
never part of the input; it travels separately as a ProvenanceContext.
"""

from __future__ import annotations

from pydantic import BaseModel, Field

from ontostate.core.models.base import (
    Cardinality,
    ColumnRef,
    DetectionMethod,
    RelationshipStatus,
)


class EntityInput(BaseModel):
    """An entity as produced by discovery or entered by a user."""

    project_id: str
    ontology_id: str
    name: str
    description: str | None = None
    domain: str | None = None
    primary_schema: str | None = None
    primary_table: str | None = None
    primary_column: str | None = None


class EntityUpdate(BaseModel):
    """Partial edit of an entity. Only fields that are set are written."""

    description: str | None = None
    domain: str | None = None
    primary_schema: str | None = None
    primary_table: str | None = None
    primary_column: str | None = None


class RelationshipInput(BaseModel):
    """A directed column-level relationship between two entities."""

    ontology_id: str
    source_entity_id: str
    target_entity_id: str
    source_column: ColumnRef
    target_column: ColumnRef
    detection_method: DetectionMethod = DetectionMethod.FOREIGN_KEY
    confidence: float = Field(default=1.0, ge=0.0, le=1.0)
    cardinality: Cardinality = Cardinality.UNKNOWN
    status: RelationshipStatus = RelationshipStatus.CONFIRMED
    description: str | None = None
    association: str | None = None

    @property
    def natural_key(self) -> str:
        return f"{self.source_column} -> {self.target_column}"


class RelationshipUpdate(BaseModel):
    """Partial edit of a relationship. Only fields that are set are written."""

    detection_method: DetectionMethod | None = None
    confidence: float | None = Field(default=None, ge=0.0, le=1.0)
    cardinality: Cardinality | None = None
    status: RelationshipStatus | None = None
    description: str | None = None
    association: str | None = None
