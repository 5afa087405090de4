"""Provenance context threaded through every mutating ontology call.

The context is an explicit argument, never ambient state: each create, update
and upsert receives the ProvenanceContext of whoever is making the change.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict

from ontostate.core.errors import ProvenanceRequiredError
from ontostate.core.models.base import ProvenanceSource


class ProvenanceContext(BaseModel):
    """Who is making a change and through which channel."""

    model_config = ConfigDict(frozen=True)

    source: ProvenanceSource
    user_id: str | None = None

    @classmethod
    def inference(cls, user_id: str | None = None) -> ProvenanceContext:
        """Context for automated discovery."""
        return cls(source=ProvenanceSource.INFERENCE, user_id=user_id)

    @classmethod
    def manual(cls, user_id: str) -> ProvenanceContext:
        """Context for a human edit."""
        return cls(source=ProvenanceSource.MANUAL, user_id=user_id)

    @classmethod
    def mcp(cls, user_id: str | None = None) -> ProvenanceContext:
        """Context for an agent edit via MCP tools."""
        return cls(source=ProvenanceSource.MCP, user_id=user_id)


def require_provenance(prov: ProvenanceContext | None, operation: str) -> ProvenanceContext:
    """Return the provenance context or raise if it is missing."""
    if prov is None:
        raise ProvenanceRequiredError(operation)
    return prov
