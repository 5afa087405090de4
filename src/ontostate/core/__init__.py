"""Core module - configuration, errors, logging and shared models."""

from ontostate.core.config import Settings, get_settings
from ontostate.core.errors import (
    ConflictError,
    InvalidTransitionError,
    NotFoundError,
    OntostateError,
    PreconditionError,
    ProvenanceRequiredError,
    TenantScopeRequiredError,
)
from ontostate.core.models.base import ProvenanceSource, Result
from ontostate.core.models.provenance import ProvenanceContext

__all__ = [
    # Config
    "Settings",
    "get_settings",
    # Errors
    "OntostateError",
    "PreconditionError",
    "TenantScopeRequiredError",
    "ProvenanceRequiredError",
    "NotFoundError",
    "ConflictError",
    "InvalidTransitionError",
    # Models
    "ProvenanceSource",
    "ProvenanceContext",
    "Result",
]
