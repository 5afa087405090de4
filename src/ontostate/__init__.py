"""ontostate - provenance-aware ontology state for schema discovery.

Keeps an inferred semantic model (entities, relationships, questions)
consistent across repeated discovery runs, tracks per-entity workflow state
and queues schema changes for review.
"""

from ontostate.changes import PendingChangeRepository
from ontostate.core import ProvenanceContext, ProvenanceSource, Result
from ontostate.core.connections import ConnectionConfig, ConnectionManager
from ontostate.ontology import (
    EntityRepository,
    OntologyQuestionRepository,
    OntologyRepository,
    RelationshipRepository,
    StalenessTracker,
)
from ontostate.workflow import QuestionEngine, WorkflowStateRepository

__version__ = "0.1.0"

__all__ = [
    "ConnectionConfig",
    "ConnectionManager",
    "ProvenanceContext",
    "ProvenanceSource",
    "Result",
    "OntologyRepository",
    "EntityRepository",
    "RelationshipRepository",
    "OntologyQuestionRepository",
    "StalenessTracker",
    "WorkflowStateRepository",
    "QuestionEngine",
    "PendingChangeRepository",
]
