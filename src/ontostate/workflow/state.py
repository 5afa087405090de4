"""Workflow entity state persistence.

Each (workflow, entity_type, entity_key) row carries a lifecycle status, a
retry counter and the ``state_data`` JSON document. Changes to the embedded
question and answer lists lock the row before rewriting the document.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from datetime import UTC, datetime

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ontostate.core.errors import ConflictError, InvalidTransitionError, NotFoundError
from ontostate.core.logging import get_logger
from ontostate.core.models.workflow import (
    QuestionStatus,
    WorkflowAnswer,
    WorkflowEntityStatus,
    WorkflowEntityType,
    WorkflowQuestion,
    WorkflowStateData,
    WorkflowStateInput,
)
from ontostate.storage.base import require_session
from ontostate.workflow.db_models import WorkflowEntityState

logger = get_logger(__name__)


def _to_row(state: WorkflowStateInput) -> WorkflowEntityState:
    return WorkflowEntityState(
        project_id=state.project_id,
        ontology_id=state.ontology_id,
        workflow_id=state.workflow_id,
        entity_type=state.entity_type.value,
        entity_key=state.entity_key,
        status=state.status.value,
        state_data=state.state_data.to_json(),
        data_fingerprint=state.data_fingerprint,
        retry_count=0,
    )


class WorkflowStateRepository:
    """Data access for workflow entity states."""

    # --- create ----------------------------------------------------------

    async def create(self, session: AsyncSession, state: WorkflowStateInput) -> WorkflowEntityState:
        """Create one state row.

        Raises:
            ConflictError: If the workflow already tracks this entity.
                Only the failed insert is rolled back (savepoint).
        """
        session = require_session(session, "workflow_state.create")
        row = _to_row(state)
        try:
            async with session.begin_nested():
                session.add(row)
        except IntegrityError as e:
            raise ConflictError(
                "workflow_state",
                f"{state.workflow_id}/{state.entity_type.value}/{state.entity_key}",
                "workflow_state.create",
            ) from e
        return row

    async def create_batch(
        self, session: AsyncSession, states: Iterable[WorkflowStateInput]
    ) -> list[WorkflowEntityState]:
        """Create several state rows, all or nothing.

        Raises:
            ConflictError: If any row collides with an existing one or another
                row of the batch. The savepoint is rolled back and no row of the
                batch is kept; earlier work in the transaction survives.
        """
        session = require_session(session, "workflow_state.create_batch")
        rows = [_to_row(state) for state in states]
        if not rows:
            return []

        try:
            async with session.begin_nested():
                session.add_all(rows)
        except IntegrityError as e:
            raise ConflictError(
                "workflow_state", rows[0].workflow_id, "workflow_state.create_batch"
            ) from e

        logger.debug("workflow_states_created", workflow_id=rows[0].workflow_id, count=len(rows))
        return rows

    # --- reads -----------------------------------------------------------

    async def get_by_id(self, session: AsyncSession, state_id: str) -> WorkflowEntityState | None:
        session = require_session(session, "workflow_state.get_by_id")
        stmt = (
            select(WorkflowEntityState)
            .where(WorkflowEntityState.state_id == state_id)
            .execution_options(populate_existing=True)
        )
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_by_entity(
        self,
        session: AsyncSession,
        workflow_id: str,
        entity_type: WorkflowEntityType,
        entity_key: str,
    ) -> WorkflowEntityState | None:
        session = require_session(session, "workflow_state.get_by_entity")
        stmt = (
            select(WorkflowEntityState)
            .where(
                WorkflowEntityState.workflow_id == workflow_id,
                WorkflowEntityState.entity_type == WorkflowEntityType(entity_type).value,
                WorkflowEntityState.entity_key == entity_key,
            )
            .execution_options(populate_existing=True)
        )
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    async def list_by_workflow(
        self, session: AsyncSession, workflow_id: str
    ) -> Sequence[WorkflowEntityState]:
        """All states of a workflow ordered by entity type, then key."""
        session = require_session(session, "workflow_state.list_by_workflow")
        stmt = (
            select(WorkflowEntityState)
            .where(WorkflowEntityState.workflow_id == workflow_id)
            .order_by(WorkflowEntityState.entity_type, WorkflowEntityState.entity_key)
            .execution_options(populate_existing=True)
        )
        result = await session.execute(stmt)
        return result.scalars().all()

    async def list_by_status(
        self,
        session: AsyncSession,
        workflow_id: str,
        status: WorkflowEntityStatus,
    ) -> Sequence[WorkflowEntityState]:
        session = require_session(session, "workflow_state.list_by_status")
        stmt = (
            select(WorkflowEntityState)
            .where(
                WorkflowEntityState.workflow_id == workflow_id,
                WorkflowEntityState.status == WorkflowEntityStatus(status).value,
            )
            .order_by(WorkflowEntityState.entity_type, WorkflowEntityState.entity_key)
            .execution_options(populate_existing=True)
        )
        result = await session.execute(stmt)
        return result.scalars().all()

    # --- status ----------------------------------------------------------

    async def update_status(
        self,
        session: AsyncSession,
        state_id: str,
        status: WorkflowEntityStatus,
        last_error: str | None = None,
    ) -> None:
        """Set status and last_error without checking the lifecycle.

        last_error is overwritten, so passing None clears a previous error.
        """
        session = require_session(session, "workflow_state.update_status")
        result = await session.execute(
            update(WorkflowEntityState)
            .where(WorkflowEntityState.state_id == state_id)
            .values(status=WorkflowEntityStatus(status).value, last_error=last_error)
        )
        if result.rowcount == 0:
            raise NotFoundError("workflow_state", state_id, "workflow_state.update_status")

    async def transition(
        self,
        session: AsyncSession,
        state_id: str,
        target: WorkflowEntityStatus,
        last_error: str | None = None,
    ) -> WorkflowEntityState:
        """Move to ``target`` if the lifecycle allows it.

        Raises:
            NotFoundError: If the row does not exist
            InvalidTransitionError: If the move is not allowed (e.g. out of a
                terminal status)
        """
        session = require_session(session, "workflow_state.transition")
        row = await self._lock(session, state_id, "workflow_state.transition")
        current = WorkflowEntityStatus(row.status)
        target = WorkflowEntityStatus(target)
        if not current.can_transition_to(target):
            raise InvalidTransitionError("workflow_state", state_id, current.value, target.value)

        row.status = target.value
        row.last_error = last_error
        await session.flush()
        logger.debug(
            "workflow_state_transition",
            state_id=state_id,
            from_status=current.value,
            to_status=target.value,
        )
        return row

    async def increment_retry_count(self, session: AsyncSession, state_id: str) -> int:
        """Atomically add one to retry_count and return the new value."""
        session = require_session(session, "workflow_state.increment_retry_count")
        result = await session.execute(
            update(WorkflowEntityState)
            .where(WorkflowEntityState.state_id == state_id)
            .values(retry_count=WorkflowEntityState.retry_count + 1)
            .returning(WorkflowEntityState.retry_count)
        )
        retry_count = result.scalar_one_or_none()
        if retry_count is None:
            raise NotFoundError("workflow_state", state_id, "workflow_state.increment_retry_count")
        return retry_count

    # --- state_data ------------------------------------------------------

    async def _lock(self, session: AsyncSession, state_id: str, operation: str) -> WorkflowEntityState:
        stmt = (
            select(WorkflowEntityState)
            .where(WorkflowEntityState.state_id == state_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        result = await session.execute(stmt)
        row = result.scalar_one_or_none()
        if row is None:
            raise NotFoundError("workflow_state", state_id, operation)
        return row

    async def update_state_data(
        self,
        session: AsyncSession,
        state_id: str,
        data: WorkflowStateData,
    ) -> None:
        """Replace the whole state_data document."""
        session = require_session(session, "workflow_state.update_state_data")
        row = await self._lock(session, state_id, "workflow_state.update_state_data")
        row.state_data = data.to_json()
        await session.flush()

    async def add_questions_to_entity(
        self,
        session: AsyncSession,
        state_id: str,
        questions: Sequence[WorkflowQuestion],
    ) -> None:
        """Append questions to the entity's question list. No-op for an empty list."""
        session = require_session(session, "workflow_state.add_questions_to_entity")
        if not questions:
            return

        row = await self._lock(session, state_id, "workflow_state.add_questions_to_entity")
        doc = WorkflowStateData.from_json(row.state_data)
        doc.questions.extend(questions)
        row.state_data = doc.to_json()
        await session.flush()
        logger.debug("questions_added", state_id=state_id, count=len(questions))

    async def update_question_in_entity(
        self,
        session: AsyncSession,
        state_id: str,
        question_id: str,
        status: QuestionStatus,
        answer: str | None = None,
        answered_by: str | None = None,
    ) -> WorkflowQuestion:
        """Set status (and answer, when given) of one embedded question.

        Raises:
            NotFoundError: If the row or the question does not exist
        """
        session = require_session(session, "workflow_state.update_question_in_entity")
        row = await self._lock(session, state_id, "workflow_state.update_question_in_entity")
        doc = WorkflowStateData.from_json(row.state_data)

        question = next((q for q in doc.questions if q.id == question_id), None)
        if question is None:
            raise NotFoundError(
                "question", question_id, "workflow_state.update_question_in_entity"
            )

        question.status = QuestionStatus(status)
        if answer is not None:
            question.answer = answer
            question.answered_by = answered_by
            question.answered_at = datetime.now(UTC)
        row.state_data = doc.to_json()
        await session.flush()
        return question

    async def record_answer_in_entity(
        self,
        session: AsyncSession,
        state_id: str,
        answer: WorkflowAnswer,
    ) -> None:
        """Append an answer to the entity's audit trail."""
        session = require_session(session, "workflow_state.record_answer_in_entity")
        row = await self._lock(session, state_id, "workflow_state.record_answer_in_entity")
        doc = WorkflowStateData.from_json(row.state_data)
        doc.answers.append(answer)
        row.state_data = doc.to_json()
        await session.flush()

    # --- delete ----------------------------------------------------------

    async def delete(self, session: AsyncSession, state_id: str) -> None:
        session = require_session(session, "workflow_state.delete")
        result = await session.execute(
            delete(WorkflowEntityState).where(WorkflowEntityState.state_id == state_id)
        )
        if result.rowcount == 0:
            raise NotFoundError("workflow_state", state_id, "workflow_state.delete")

    async def delete_by_workflow(self, session: AsyncSession, workflow_id: str) -> int:
        session = require_session(session, "workflow_state.delete_by_workflow")
        result = await session.execute(
            delete(WorkflowEntityState).where(WorkflowEntityState.workflow_id == workflow_id)
        )
        return result.rowcount

    async def delete_by_ontology(self, session: AsyncSession, ontology_id: str) -> int:
        session = require_session(session, "workflow_state.delete_by_ontology")
        result = await session.execute(
            delete(WorkflowEntityState).where(WorkflowEntityState.ontology_id == ontology_id)
        )
        return result.rowcount
