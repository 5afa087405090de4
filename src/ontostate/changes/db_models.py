"""Pending Change Database Models.

Proposed schema and data changes waiting for human review before they are
applied to the ontology.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any
from uuid import uuid4

from sqlalchemy import JSON, DateTime, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from ontostate.storage.base import Base


class PendingChange(Base):
    """A detected change and the ontology action suggested for it."""

    __tablename__ = "pending_changes"

    change_id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: str(uuid4()))
    project_id: Mapped[str] = mapped_column(String, nullable=False)

    change_type: Mapped[str] = mapped_column(String, nullable=False)  # 'new_table', ...
    change_source: Mapped[str] = mapped_column(String, nullable=False, default="schema_refresh")
    table_name: Mapped[str | None] = mapped_column(String)
    column_name: Mapped[str | None] = mapped_column(String)
    old_value: Mapped[dict[str, Any] | None] = mapped_column(JSON)
    new_value: Mapped[dict[str, Any] | None] = mapped_column(JSON)

    suggested_action: Mapped[str | None] = mapped_column(String)
    suggested_payload: Mapped[dict[str, Any] | None] = mapped_column(JSON)

    status: Mapped[str] = mapped_column(String, nullable=False, default="pending")
    reviewed_by: Mapped[str | None] = mapped_column(String)
    reviewed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(UTC)
    )


Index("idx_pending_changes_project_status", PendingChange.project_id, PendingChange.status)
Index("idx_pending_changes_project_type", PendingChange.project_id, PendingChange.change_type)
