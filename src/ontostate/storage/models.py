"""SQLAlchemy models shared by every feature package.

Note: This module defines database models (SQLAlchemy ORM).
For API/interface models (Pydantic), see core.models.
"""

from datetime import UTC, datetime
from uuid import uuid4

from sqlalchemy import Boolean, DateTime, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from ontostate.storage.base import Base

# ============================================================================
# Schema Version Tracking
# ============================================================================


class DBSchemaVersion(Base):
    """Track schema versions for compatibility.

    Note: Named DBSchemaVersion to avoid conflict with core.models.
    """

    __tablename__ = "schema_version"

    version: Mapped[str] = mapped_column(String, primary_key=True)
    applied_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(UTC)
    )


# ============================================================================
# Ontology container
# ============================================================================


class Ontology(Base):
    """One version of a project's semantic model.

    Entities, relationships, questions and workflow states each belong to
    exactly one ontology. Deleting an ontology cascades to all of them.
    Only one ontology per project is active at a time.
    """

    __tablename__ = "ontologies"
    __table_args__ = (
        UniqueConstraint("project_id", "version", name="uq_ontologies_project_version"),
    )

    ontology_id: Mapped[str] = mapped_column(
        String, primary_key=True, default=lambda: str(uuid4())
    )
    project_id: Mapped[str] = mapped_column(String, nullable=False)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(UTC)
    )


Index("idx_ontologies_project_active", Ontology.project_id, Ontology.is_active)
