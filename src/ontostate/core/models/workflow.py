"""Workflow entity state models.

Status lifecycle of a single global/table/column entity during discovery:

    pending → scanning → scanned → analyzing → complete
                                       ↓  ↑
                                   needs_input

Any non-terminal status can move to failed. complete and failed are terminal.

The JSON document stored in ``state_data`` is modelled with pydantic so that
known fields are typed while unknown fields written by other components are
kept on round trip (``extra="allow"``).
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import Enum
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field


class WorkflowEntityType(str, Enum):
    """Granularity of a tracked workflow entity."""

    GLOBAL = "global"
    TABLE = "table"
    COLUMN = "column"


class WorkflowEntityStatus(str, Enum):
    """Extraction status of a workflow entity."""

    PENDING = "pending"
    SCANNING = "scanning"
    SCANNED = "scanned"
    ANALYZING = "analyzing"
    NEEDS_INPUT = "needs_input"
    COMPLETE = "complete"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        """True for complete and failed."""
        return self in (WorkflowEntityStatus.COMPLETE, WorkflowEntityStatus.FAILED)

    def can_transition_to(self, target: WorkflowEntityStatus) -> bool:
        """Check whether moving from this status to ``target`` is allowed."""
        if self.is_terminal:
            return False
        if target == WorkflowEntityStatus.FAILED:
            return True
        return target in _TRANSITIONS[self]


_TRANSITIONS: dict[WorkflowEntityStatus, frozenset[WorkflowEntityStatus]] = {
    WorkflowEntityStatus.PENDING: frozenset({WorkflowEntityStatus.SCANNING}),
    WorkflowEntityStatus.SCANNING: frozenset({WorkflowEntityStatus.SCANNED}),
    WorkflowEntityStatus.SCANNED: frozenset({WorkflowEntityStatus.ANALYZING}),
    WorkflowEntityStatus.ANALYZING: frozenset(
        {WorkflowEntityStatus.NEEDS_INPUT, WorkflowEntityStatus.COMPLETE}
    ),
    WorkflowEntityStatus.NEEDS_INPUT: frozenset({WorkflowEntityStatus.ANALYZING}),
    WorkflowEntityStatus.COMPLETE: frozenset(),
    WorkflowEntityStatus.FAILED: frozenset(),
}


class QuestionStatus(str, Enum):
    """Status of a clarification question."""

    PENDING = "pending"
    SKIPPED = "skipped"
    ANSWERED = "answered"
    ESCALATED = "escalated"
    DISMISSED = "dismissed"
    DELETED = "deleted"


class QuestionCategory(str, Enum):
    """Kinds of clarification the discovery process asks for."""

    BUSINESS_RULES = "business_rules"
    RELATIONSHIP = "relationship"
    TERMINOLOGY = "terminology"
    ENUMERATION = "enumeration"
    TEMPORAL = "temporal"
    DATA_QUALITY = "data_quality"


# === Entity keys ===


def global_entity_key() -> str:
    """Entity key of the single global entity."""
    return ""


def table_entity_key(table_name: str) -> str:
    """Entity key of a table. Never includes the database schema prefix."""
    return table_name


def column_entity_key(table_name: str, column_name: str) -> str:
    """Entity key of a column, e.g. ``orders.status``."""
    return f"{table_name}.{column_name}"


def parse_column_entity_key(entity_key: str) -> tuple[str, str]:
    """Split a column key into (table, column). Returns ("", "") if malformed."""
    table_name, sep, column_name = entity_key.partition(".")
    if not sep:
        return "", ""
    return table_name, column_name


# === state_data document ===


class QuestionAffects(BaseModel):
    """Schema elements a question relates to."""

    model_config = ConfigDict(extra="allow")

    tables: list[str] = Field(default_factory=list)
    columns: list[str] = Field(default_factory=list)  # "table.column"


class WorkflowQuestion(BaseModel):
    """A question stored inside an entity's ``state_data.questions``."""

    model_config = ConfigDict(extra="allow")

    id: str = Field(default_factory=lambda: str(uuid4()))
    text: str
    priority: int = 3  # 1 = most urgent
    is_required: bool = False
    category: str | None = None
    reasoning: str | None = None
    affects: QuestionAffects | None = None
    detected_pattern: str | None = None
    status: QuestionStatus = QuestionStatus.PENDING
    answer: str | None = None
    answered_by: str | None = None
    answered_at: datetime | None = None
    parent_id: str | None = None  # For follow-ups

    @property
    def is_pending(self) -> bool:
        return self.status == QuestionStatus.PENDING

    @property
    def is_answered(self) -> bool:
        return self.status == QuestionStatus.ANSWERED


class WorkflowAnswer(BaseModel):
    """Audit record of an answer and the actions it triggered."""

    model_config = ConfigDict(extra="allow")

    question_id: str
    answer: str
    answered_by: str
    answered_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    entity_updates: list[str] = Field(default_factory=list)
    column_updates: list[str] = Field(default_factory=list)
    knowledge_facts: list[str] = Field(default_factory=list)  # IDs of facts created
    follow_up_id: str | None = None


class WorkflowStateData(BaseModel):
    """Everything gathered for one entity during extraction.

    - gathered: statistics from the scanning phase
    - llm_analysis: intermediate reasoning and conclusions
    - questions: clarification questions for this entity
    - answers: audit trail of answers
    """

    model_config = ConfigDict(extra="allow")

    gathered: dict[str, Any] = Field(default_factory=dict)
    llm_analysis: dict[str, Any] = Field(default_factory=dict)
    questions: list[WorkflowQuestion] = Field(default_factory=list)
    answers: list[WorkflowAnswer] = Field(default_factory=list)

    @classmethod
    def from_json(cls, data: dict[str, Any] | None) -> WorkflowStateData:
        """Load the stored document, tolerating NULL."""
        return cls.model_validate(data or {})

    def to_json(self) -> dict[str, Any]:
        """Serialize for the JSON column, keeping unknown fields."""
        return self.model_dump(mode="json")


class PendingQuestionCounts(BaseModel):
    """Pending questions split by whether they block completion."""

    required: int = 0
    optional: int = 0

    @property
    def total(self) -> int:
        return self.required + self.optional


class WorkflowStateInput(BaseModel):
    """A workflow entity state row to create."""

    project_id: str
    ontology_id: str
    workflow_id: str
    entity_type: WorkflowEntityType
    entity_key: str = ""
    status: WorkflowEntityStatus = WorkflowEntityStatus.PENDING
    state_data: WorkflowStateData = Field(default_factory=WorkflowStateData)
    data_fingerprint: str | None = None
