"""Question/answer exchange over the questions embedded in workflow states.

Selection order for pending questions across a workflow:

1. lowest ``priority`` (1 is most urgent)
2. entity_type, then entity_key (lexical)
3. position inside the entity's question list

``is_required`` does not affect ordering; it only decides whether a question
blocks completion (see ``get_pending_questions_count``).
"""

from __future__ import annotations

from collections.abc import Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from ontostate.core.logging import get_logger, log_context
from ontostate.core.models.workflow import (
    PendingQuestionCounts,
    QuestionStatus,
    WorkflowAnswer,
    WorkflowQuestion,
    WorkflowStateData,
)
from ontostate.storage.base import require_session
from ontostate.workflow.state import WorkflowStateRepository

logger = get_logger(__name__)


class QuestionEngine:
    """Picks the next question to ask and records answers."""

    def __init__(self, states: WorkflowStateRepository | None = None):
        self.states = states or WorkflowStateRepository()

    async def get_next_pending_question(
        self, session: AsyncSession, workflow_id: str
    ) -> tuple[WorkflowQuestion | None, str | None]:
        """Most urgent pending question of the workflow.

        Returns:
            (question, state_id) or (None, None) when nothing is pending
        """
        session = require_session(session, "questions.get_next_pending_question")
        # States arrive ordered by (entity_type, entity_key), so the first
        # question seen at the lowest priority wins ties.
        best: WorkflowQuestion | None = None
        best_state_id: str | None = None
        for row in await self.states.list_by_workflow(session, workflow_id):
            for question in WorkflowStateData.from_json(row.state_data).questions:
                if not question.is_pending:
                    continue
                if best is None or question.priority < best.priority:
                    best = question
                    best_state_id = row.state_id
        return best, best_state_id

    async def get_pending_questions_count(
        self, session: AsyncSession, workflow_id: str
    ) -> PendingQuestionCounts:
        session = require_session(session, "questions.get_pending_questions_count")
        counts = PendingQuestionCounts()
        for row in await self.states.list_by_workflow(session, workflow_id):
            for question in WorkflowStateData.from_json(row.state_data).questions:
                if not question.is_pending:
                    continue
                if question.is_required:
                    counts.required += 1
                else:
                    counts.optional += 1
        return counts

    async def find_question(
        self, session: AsyncSession, workflow_id: str, question_id: str
    ) -> tuple[WorkflowQuestion | None, str | None]:
        """Locate a question by id anywhere in the workflow."""
        session = require_session(session, "questions.find_question")
        for row in await self.states.list_by_workflow(session, workflow_id):
            for question in WorkflowStateData.from_json(row.state_data).questions:
                if question.id == question_id:
                    return question, row.state_id
        return None, None

    async def answer_question(
        self,
        session: AsyncSession,
        state_id: str,
        question_id: str,
        answer: str,
        answered_by: str,
        entity_updates: Sequence[str] = (),
        column_updates: Sequence[str] = (),
        knowledge_facts: Sequence[str] = (),
        follow_up: WorkflowQuestion | None = None,
    ) -> WorkflowAnswer:
        """Mark a question answered and append the answer to the audit trail.

        A follow-up question, if given, is attached to the same entity with
        ``parent_id`` pointing at the answered question.

        Raises:
            NotFoundError: If the state or the question does not exist
        """
        session = require_session(session, "questions.answer_question")
        with log_context(state_id=state_id, question_id=question_id):
            await self.states.update_question_in_entity(
                session,
                state_id,
                question_id,
                QuestionStatus.ANSWERED,
                answer=answer,
                answered_by=answered_by,
            )

            follow_up_id = None
            if follow_up is not None:
                follow_up = follow_up.model_copy(update={"parent_id": question_id})
                await self.states.add_questions_to_entity(session, state_id, [follow_up])
                follow_up_id = follow_up.id

            record = WorkflowAnswer(
                question_id=question_id,
                answer=answer,
                answered_by=answered_by,
                entity_updates=list(entity_updates),
                column_updates=list(column_updates),
                knowledge_facts=list(knowledge_facts),
                follow_up_id=follow_up_id,
            )
            await self.states.record_answer_in_entity(session, state_id, record)

            logger.info("question_answered", answered_by=answered_by, follow_up_id=follow_up_id)
        return record

    async def skip_question(self, session: AsyncSession, state_id: str, question_id: str) -> None:
        session = require_session(session, "questions.skip_question")
        await self.states.update_question_in_entity(
            session, state_id, question_id, QuestionStatus.SKIPPED
        )
