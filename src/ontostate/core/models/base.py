"""Base models and types used across all modules.

This module contains the fundamental types that don't belong to any specific
domain module (ontology, workflow, changes).
"""

from __future__ import annotations

from collections.abc import Callable
from enum import Enum
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, Field

T = TypeVar("T")


class Result(BaseModel, Generic[T]):
    """Result type for operations that can fail.

    Use this instead of exceptions for expected failures.
    Exceptions are reserved for unexpected/programming errors.
    """

    success: bool
    value: T | None = None
    error: str | None = None
    warnings: list[str] = Field(default_factory=list)

    @classmethod
    def ok(cls, value: T, warnings: list[str] | None = None) -> Result[T]:
        """Create a successful result."""
        return cls(success=True, value=value, warnings=warnings or [])

    @classmethod
    def fail(cls, error: str) -> Result[T]:
        """Create a failed result."""
        return cls(success=False, error=error)

    def unwrap(self) -> T:
        """Get the value or raise if failed."""
        if not self.success:
            raise ValueError(f"Result failed: {self.error}")
        assert self.value is not None
        return self.value

    def map(self, fn: Callable[[T], Any]) -> Result[Any]:
        """Transform the value if successful."""
        if self.success and self.value is not None:
            return Result.ok(fn(self.value), self.warnings)
        return self


# === Enums ===


class ProvenanceSource(str, Enum):
    """Origin of a piece of ontology data."""

    INFERENCE = "inference"  # Automated discovery
    MANUAL = "manual"  # Human-entered through the UI
    MCP = "mcp"  # Agent-entered via protocol tools


class Cardinality(str, Enum):
    """Relationship cardinality."""

    ONE_TO_ONE = "1:1"
    ONE_TO_MANY = "1:N"
    MANY_TO_ONE = "N:1"
    MANY_TO_MANY = "N:M"
    UNKNOWN = "unknown"


class RelationshipStatus(str, Enum):
    """Review status of an entity relationship."""

    CONFIRMED = "confirmed"
    PENDING = "pending"
    REJECTED = "rejected"


class DetectionMethod(str, Enum):
    """How a relationship was discovered."""

    FOREIGN_KEY = "foreign_key"  # Declared database constraint
    PK_MATCH = "pk_match"  # Inferred from primary-key value overlap
    MANUAL = "manual"


# === Identifiers ===


class ColumnRef(BaseModel):
    """Reference to a column by schema, table and name."""

    schema_name: str
    table_name: str
    column_name: str

    def __str__(self) -> str:
        return f"{self.schema_name}.{self.table_name}.{self.column_name}"

    def __hash__(self) -> int:
        return hash((self.schema_name, self.table_name, self.column_name))
