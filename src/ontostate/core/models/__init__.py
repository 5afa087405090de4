"""Shared pydantic models and enums."""

from ontostate.core.models.base import (
    Cardinality,
    ColumnRef,
    DetectionMethod,
    ProvenanceSource,
    RelationshipStatus,
    Result,
)
from ontostate.core.models.changes import (
    ChangeSource,
    ChangeStatus,
    ChangeType,
    PendingChangeInput,
    SuggestedAction,
)
from ontostate.core.models.ontology import (
    EntityInput,
    EntityUpdate,
    RelationshipInput,
    RelationshipUpdate,
)
from ontostate.core.models.provenance import ProvenanceContext, require_provenance
from ontostate.core.models.questions import QuestionInput, compute_content_hash
from ontostate.core.models.workflow import (
    PendingQuestionCounts,
    QuestionAffects,
    QuestionCategory,
    QuestionStatus,
    WorkflowAnswer,
    WorkflowEntityStatus,
    WorkflowEntityType,
    WorkflowQuestion,
    WorkflowStateData,
    WorkflowStateInput,
    column_entity_key,
    global_entity_key,
    parse_column_entity_key,
    table_entity_key,
)

__all__ = [
    # Base
    "Result",
    "ColumnRef",
    "Cardinality",
    "DetectionMethod",
    "ProvenanceSource",
    "RelationshipStatus",
    # Ontology inputs
    "EntityInput",
    "EntityUpdate",
    "RelationshipInput",
    "RelationshipUpdate",
    # Provenance
    "ProvenanceContext",
    "require_provenance",
    # Workflow
    "WorkflowEntityType",
    "WorkflowEntityStatus",
    "WorkflowQuestion",
    "WorkflowAnswer",
    "WorkflowStateData",
    "WorkflowStateInput",
    "QuestionAffects",
    "QuestionCategory",
    "QuestionStatus",
    "PendingQuestionCounts",
    "global_entity_key",
    "table_entity_key",
    "column_entity_key",
    "parse_column_entity_key",
    # Questions
    "QuestionInput",
    "compute_content_hash",
    # Changes
    "ChangeType",
    "ChangeSource",
    "ChangeStatus",
    "SuggestedAction",
    "PendingChangeInput",
]
