"""Error types raised by the ontostate repositories.

Expected outcomes such as "row not found on lookup" or "question already
exists" are not errors: lookups return None and duplicate questions are
ignored. The exceptions below cover the cases where the caller asked for
something that cannot be done.
"""

from __future__ import annotations


class OntostateError(Exception):
    """Base class for all ontostate errors."""


class PreconditionError(OntostateError):
    """A call was made without the context it requires.

    Never retried: the caller has to supply the missing context.
    """

    def __init__(self, operation: str, message: str):
        self.operation = operation
        self.message = message
        super().__init__(f"{operation}: {message}")


class TenantScopeRequiredError(PreconditionError):
    """No database session (transactional scope) was passed."""

    def __init__(self, operation: str):
        super().__init__(operation, "no tenant scope (database session) supplied")


class ProvenanceRequiredError(PreconditionError):
    """A mutating call was made without a provenance context."""

    def __init__(self, operation: str):
        super().__init__(operation, "provenance context required")


class NotFoundError(OntostateError):
    """An update or delete targeted a row (or embedded item) that does not exist."""

    def __init__(self, kind: str, key: str, operation: str):
        self.kind = kind
        self.key = key
        self.operation = operation
        super().__init__(f"{operation}: {kind} not found: {key}")


class ConflictError(OntostateError):
    """A natural-key or uniqueness constraint was violated outside an upsert."""

    def __init__(self, kind: str, key: str, operation: str):
        self.kind = kind
        self.key = key
        self.operation = operation
        super().__init__(f"{operation}: {kind} already exists: {key}")


class InvalidTransitionError(OntostateError):
    """A status change is not allowed by the lifecycle."""

    def __init__(self, kind: str, key: str, current: str, target: str):
        self.kind = kind
        self.key = key
        self.current = current
        self.target = target
        super().__init__(f"{kind} {key}: cannot transition from {current!r} to {target!r}")
