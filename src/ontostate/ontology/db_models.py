"""Ontology Database Models.

SQLAlchemy models for discovered entities, their aliases, the relationships
between them and the ontology-level clarification question queue.

Every entity and relationship row records its creation provenance in
``source`` and the provenance of the latest edit in ``last_edit_source``.
Only ``source = 'inference'`` rows take part in stale marking.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any
from uuid import uuid4

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from ontostate.storage.base import Base


class OntologyEntity(Base):
    """A business concept discovered in (or declared for) the schema.

    Identity is (ontology_id, name). Soft-deleted rows stay in the table so
    that a later manual restore keeps the original id.
    """

    __tablename__ = "ontology_entities"
    __table_args__ = (
        UniqueConstraint("ontology_id", "name", name="uq_ontology_entities_ontology_name"),
    )

    entity_id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: str(uuid4()))
    project_id: Mapped[str] = mapped_column(String, nullable=False)
    ontology_id: Mapped[str] = mapped_column(
        ForeignKey("ontologies.ontology_id", ondelete="CASCADE"), nullable=False
    )

    name: Mapped[str] = mapped_column(String, nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    domain: Mapped[str | None] = mapped_column(String)

    # Where the concept lives in the schema
    primary_schema: Mapped[str | None] = mapped_column(String)
    primary_table: Mapped[str | None] = mapped_column(String)
    primary_column: Mapped[str | None] = mapped_column(String)

    # Provenance
    source: Mapped[str] = mapped_column(String, nullable=False)  # 'inference', 'manual', 'mcp'
    last_edit_source: Mapped[str | None] = mapped_column(String)
    created_by: Mapped[str | None] = mapped_column(String)
    updated_by: Mapped[str | None] = mapped_column(String)

    is_stale: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_deleted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    deletion_reason: Mapped[str | None] = mapped_column(Text)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(UTC)
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
    )


class OntologyEntityAlias(Base):
    """Alternative name for an entity (synonym used in questions and queries)."""

    __tablename__ = "ontology_entity_aliases"
    __table_args__ = (
        UniqueConstraint("entity_id", "alias", name="uq_ontology_entity_aliases_entity_alias"),
    )

    alias_id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: str(uuid4()))
    entity_id: Mapped[str] = mapped_column(
        ForeignKey("ontology_entities.entity_id", ondelete="CASCADE"), nullable=False
    )
    alias: Mapped[str] = mapped_column(String, nullable=False)
    source: Mapped[str | None] = mapped_column(String)  # provenance of the alias
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(UTC)
    )


class EntityRelationship(Base):
    """Directed, column-level link between two entities.

    Identity is (ontology_id, source column, target column) where a column is
    addressed by schema, table and column name. The reverse direction is a
    separate row.
    """

    __tablename__ = "entity_relationships"
    __table_args__ = (
        UniqueConstraint(
            "ontology_id",
            "source_column_schema",
            "source_column_table",
            "source_column_name",
            "target_column_schema",
            "target_column_table",
            "target_column_name",
            name="uq_entity_relationships_columns",
        ),
    )

    relationship_id: Mapped[str] = mapped_column(
        String, primary_key=True, default=lambda: str(uuid4())
    )
    ontology_id: Mapped[str] = mapped_column(
        ForeignKey("ontologies.ontology_id", ondelete="CASCADE"), nullable=False
    )
    source_entity_id: Mapped[str] = mapped_column(
        ForeignKey("ontology_entities.entity_id", ondelete="CASCADE"), nullable=False
    )
    target_entity_id: Mapped[str] = mapped_column(
        ForeignKey("ontology_entities.entity_id", ondelete="CASCADE"), nullable=False
    )

    source_column_schema: Mapped[str] = mapped_column(String, nullable=False)
    source_column_table: Mapped[str] = mapped_column(String, nullable=False)
    source_column_name: Mapped[str] = mapped_column(String, nullable=False)
    target_column_schema: Mapped[str] = mapped_column(String, nullable=False)
    target_column_table: Mapped[str] = mapped_column(String, nullable=False)
    target_column_name: Mapped[str] = mapped_column(String, nullable=False)

    detection_method: Mapped[str] = mapped_column(String, nullable=False)  # 'foreign_key', ...
    confidence: Mapped[float] = mapped_column(Float, nullable=False, default=1.0)
    cardinality: Mapped[str] = mapped_column(String, nullable=False, default="unknown")
    status: Mapped[str] = mapped_column(String, nullable=False, default="confirmed")
    description: Mapped[str | None] = mapped_column(Text)
    association: Mapped[str | None] = mapped_column(String)  # e.g. 'placed_by'

    # Provenance
    source: Mapped[str] = mapped_column(String, nullable=False)
    last_edit_source: Mapped[str | None] = mapped_column(String)
    created_by: Mapped[str | None] = mapped_column(String)
    updated_by: Mapped[str | None] = mapped_column(String)

    is_stale: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(UTC)
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
    )


class OntologyQuestion(Base):
    """Clarification question queued for an ontology.

    ``content_hash`` is derived from category and text; the same question is
    stored once per ontology.
    """

    __tablename__ = "ontology_questions"
    __table_args__ = (
        UniqueConstraint(
            "ontology_id", "content_hash", name="uq_ontology_questions_ontology_hash"
        ),
    )

    question_id: Mapped[str] = mapped_column(
        String, primary_key=True, default=lambda: str(uuid4())
    )
    project_id: Mapped[str] = mapped_column(String, nullable=False)
    ontology_id: Mapped[str] = mapped_column(
        ForeignKey("ontologies.ontology_id", ondelete="CASCADE"), nullable=False
    )
    workflow_id: Mapped[str | None] = mapped_column(String)
    parent_question_id: Mapped[str | None] = mapped_column(
        ForeignKey("ontology_questions.question_id", ondelete="SET NULL")
    )
    content_hash: Mapped[str] = mapped_column(String(16), nullable=False)

    text: Mapped[str] = mapped_column(Text, nullable=False)
    reasoning: Mapped[str | None] = mapped_column(Text)
    category: Mapped[str | None] = mapped_column(String)
    priority: Mapped[int] = mapped_column(Integer, nullable=False, default=3)
    is_required: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    affects: Mapped[dict[str, Any] | None] = mapped_column(JSON)
    detected_pattern: Mapped[str | None] = mapped_column(String)

    status: Mapped[str] = mapped_column(String, nullable=False, default="pending")
    status_reason: Mapped[str | None] = mapped_column(Text)
    answer: Mapped[str | None] = mapped_column(Text)
    answered_by: Mapped[str | None] = mapped_column(String)
    answered_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(UTC)
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
    )


Index("idx_ontology_entities_project", OntologyEntity.project_id)
Index("idx_ontology_entities_stale", OntologyEntity.ontology_id, OntologyEntity.is_stale)
Index("idx_entity_relationships_ontology", EntityRelationship.ontology_id)
Index("idx_entity_relationships_target", EntityRelationship.target_entity_id)
Index(
    "idx_ontology_questions_pending",
    OntologyQuestion.ontology_id,
    OntologyQuestion.status,
    OntologyQuestion.priority,
)
