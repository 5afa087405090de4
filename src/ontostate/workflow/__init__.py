"""Workflow entity state machine and question/answer engine."""

from ontostate.workflow.db_models import WorkflowEntityState
from ontostate.workflow.questions import QuestionEngine
from ontostate.workflow.state import WorkflowStateRepository

__all__ = [
    "WorkflowEntityState",
    "WorkflowStateRepository",
    "QuestionEngine",
]
