"""Pending-change ledger feeding the human approval gate."""

from ontostate.changes.db_models import PendingChange
from ontostate.changes.ledger import PendingChangeRepository

__all__ = [
    "PendingChange",
    "PendingChangeRepository",
]
