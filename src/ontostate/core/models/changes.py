"""Pending-change enums and input model."""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class ChangeType(str, Enum):
    """Kind of schema or data change detected."""

    NEW_TABLE = "new_table"
    DROPPED_TABLE = "dropped_table"
    NEW_COLUMN = "new_column"
    DROPPED_COLUMN = "dropped_column"
    MODIFIED_COLUMN = "modified_column"
    NEW_ENUM_VALUE = "new_enum_value"
    CARDINALITY_CHANGE = "cardinality_change"
    NEW_FK_PATTERN = "new_fk_pattern"


class ChangeSource(str, Enum):
    """Where a change proposal came from."""

    SCHEMA_REFRESH = "schema_refresh"  # DDL sync
    DATA_SCAN = "data_scan"  # Data analysis
    MANUAL = "manual"


class ChangeStatus(str, Enum):
    """Review state of a pending change."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    AUTO_APPLIED = "auto_applied"

    @property
    def is_reviewed(self) -> bool:
        return self != ChangeStatus.PENDING


class SuggestedAction(str, Enum):
    """Ontology action recommended for a change."""

    CREATE_ENTITY = "create_entity"
    REVIEW_ENTITY = "review_entity"
    CREATE_COLUMN_METADATA = "create_column_metadata"
    UPDATE_COLUMN_METADATA = "update_column_metadata"
    REVIEW_COLUMN = "review_column"
    CREATE_RELATIONSHIP = "create_relationship"
    UPDATE_RELATIONSHIP = "update_relationship"


class PendingChangeInput(BaseModel):
    """A change proposal as produced by change detection."""

    project_id: str
    change_type: ChangeType
    change_source: ChangeSource = ChangeSource.SCHEMA_REFRESH
    table_name: str | None = None  # "schema.table"
    column_name: str | None = None
    old_value: dict[str, Any] | None = None
    new_value: dict[str, Any] | None = None
    suggested_action: SuggestedAction | None = None
    suggested_payload: dict[str, Any] | None = Field(default=None)
