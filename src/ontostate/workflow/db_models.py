"""Workflow Database Models.

One row per (workflow, entity) tracks where a global, table or column entity
is in the discovery lifecycle, together with the JSON document of everything
gathered for it so far.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any
from uuid import uuid4

from sqlalchemy import JSON, DateTime, ForeignKey, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from ontostate.storage.base import Base


class WorkflowEntityState(Base):
    """Lifecycle state of one entity within one workflow run.

    entity_key is "" for the global entity, "<table>" for a table and
    "<table>.<column>" for a column.
    """

    __tablename__ = "workflow_entity_states"
    __table_args__ = (
        UniqueConstraint(
            "workflow_id", "entity_type", "entity_key", name="uq_workflow_entity_states_entity"
        ),
    )

    state_id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: str(uuid4()))
    project_id: Mapped[str] = mapped_column(String, nullable=False)
    ontology_id: Mapped[str] = mapped_column(
        ForeignKey("ontologies.ontology_id", ondelete="CASCADE"), nullable=False
    )
    workflow_id: Mapped[str] = mapped_column(String, nullable=False)

    entity_type: Mapped[str] = mapped_column(String, nullable=False)  # 'global', 'table', 'column'
    entity_key: Mapped[str] = mapped_column(String, nullable=False, default="")

    status: Mapped[str] = mapped_column(String, nullable=False, default="pending")
    state_data: Mapped[dict[str, Any] | None] = mapped_column(JSON)
    data_fingerprint: Mapped[str | None] = mapped_column(String)  # change detection
    retry_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_error: Mapped[str | None] = mapped_column(Text)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(UTC)
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
    )


Index("idx_workflow_entity_states_workflow", WorkflowEntityState.workflow_id)
Index(
    "idx_workflow_entity_states_status",
    WorkflowEntityState.workflow_id,
    WorkflowEntityState.status,
)
