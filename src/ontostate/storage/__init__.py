"""Storage layer for ontology state persistence.

This module provides:
- Base: SQLAlchemy declarative base for all models
- Ontology: the container every ontology row belongs to
- Session and dialect helpers used by the repositories
"""

from ontostate.storage.base import (
    Base,
    dialect_insert,
    dialect_name,
    metadata_obj,
    require_session,
)
from ontostate.storage.models import DBSchemaVersion, Ontology

__all__ = [
    # Base and metadata
    "Base",
    "metadata_obj",
    # Core tables
    "DBSchemaVersion",
    "Ontology",
    # Helpers
    "require_session",
    "dialect_name",
    "dialect_insert",
]
