"""Ontology content: entities, relationships, questions and staleness tracking."""

from ontostate.ontology.db_models import (
    EntityRelationship,
    OntologyEntity,
    OntologyEntityAlias,
    OntologyQuestion,
)
from ontostate.ontology.entities import EntityRepository
from ontostate.ontology.ontologies import OntologyRepository
from ontostate.ontology.questions import OntologyQuestionRepository
from ontostate.ontology.relationships import RelationshipRepository
from ontostate.ontology.staleness import StaleCounts, StalenessTracker, StaleRows

__all__ = [
    # DB models
    "OntologyEntity",
    "OntologyEntityAlias",
    "EntityRelationship",
    "OntologyQuestion",
    # Repositories
    "OntologyRepository",
    "EntityRepository",
    "RelationshipRepository",
    "OntologyQuestionRepository",
    # Staleness
    "StalenessTracker",
    "StaleCounts",
    "StaleRows",
]
