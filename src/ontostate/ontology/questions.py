"""Ontology-level clarification question queue.

Questions are deduplicated by a hash of category and text within one
ontology. A duplicate insert is silently ignored and the first question
wins; the same text in another ontology is a different question.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from datetime import UTC, datetime
from uuid import uuid4

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ontostate.core.config import get_settings
from ontostate.core.errors import NotFoundError
from ontostate.core.logging import get_logger
from ontostate.core.models.questions import QuestionInput
from ontostate.core.models.workflow import PendingQuestionCounts, QuestionStatus
from ontostate.ontology.db_models import OntologyQuestion
from ontostate.storage.base import dialect_insert, require_session

logger = get_logger(__name__)


class OntologyQuestionRepository:
    """Data access for the ontology question queue."""

    async def create(
        self,
        session: AsyncSession,
        project_id: str,
        ontology_id: str,
        question: QuestionInput,
    ) -> str | None:
        """Queue a question unless an identical one exists.

        Returns:
            The new question id, or None when the question was a duplicate
        """
        session = require_session(session, "question.create")
        return await self._insert(session, project_id, ontology_id, question)

    async def create_batch(
        self,
        session: AsyncSession,
        project_id: str,
        ontology_id: str,
        questions: Iterable[QuestionInput],
    ) -> list[str]:
        """Queue several questions, skipping duplicates within the batch and the ontology.

        Returns:
            Ids of the questions actually inserted, in input order
        """
        session = require_session(session, "question.create_batch")

        seen: set[str] = set()
        inserted: list[str] = []
        skipped = 0
        for question in questions:
            content_hash = question.content_hash
            if content_hash in seen:
                skipped += 1
                continue
            seen.add(content_hash)
            question_id = await self._insert(session, project_id, ontology_id, question)
            if question_id is None:
                skipped += 1
            else:
                inserted.append(question_id)

        logger.debug(
            "questions_queued",
            ontology_id=ontology_id,
            inserted=len(inserted),
            duplicates=skipped,
        )
        return inserted

    async def _insert(
        self,
        session: AsyncSession,
        project_id: str,
        ontology_id: str,
        question: QuestionInput,
    ) -> str | None:
        now = datetime.now(UTC)
        stmt = (
            dialect_insert(session, OntologyQuestion)
            .values(
                question_id=str(uuid4()),
                project_id=project_id,
                ontology_id=ontology_id,
                workflow_id=question.workflow_id,
                parent_question_id=question.parent_question_id,
                content_hash=question.content_hash,
                text=question.text,
                reasoning=question.reasoning,
                category=question.category,
                priority=question.priority,
                is_required=question.is_required,
                affects=question.affects.model_dump(mode="json") if question.affects else None,
                detected_pattern=question.detected_pattern,
                status=QuestionStatus.PENDING.value,
                created_at=now,
                updated_at=now,
            )
            .on_conflict_do_nothing(
                index_elements=[OntologyQuestion.ontology_id, OntologyQuestion.content_hash]
            )
            .returning(OntologyQuestion.question_id)
        )
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    # --- reads -----------------------------------------------------------

    async def get_by_id(self, session: AsyncSession, question_id: str) -> OntologyQuestion | None:
        session = require_session(session, "question.get_by_id")
        stmt = (
            select(OntologyQuestion)
            .where(OntologyQuestion.question_id == question_id)
            .execution_options(populate_existing=True)
        )
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    def _pending(self, ontology_id: str):
        return (
            select(OntologyQuestion)
            .where(
                OntologyQuestion.ontology_id == ontology_id,
                OntologyQuestion.status == QuestionStatus.PENDING.value,
            )
            .order_by(
                OntologyQuestion.priority,
                OntologyQuestion.created_at,
                OntologyQuestion.question_id,
            )
            .execution_options(populate_existing=True)
        )

    async def list_pending(
        self, session: AsyncSession, ontology_id: str, limit: int | None = None
    ) -> Sequence[OntologyQuestion]:
        """Pending questions, most urgent first."""
        session = require_session(session, "question.list_pending")
        stmt = self._pending(ontology_id).limit(limit or get_settings().default_question_limit)
        result = await session.execute(stmt)
        return result.scalars().all()

    async def get_next_pending(
        self, session: AsyncSession, ontology_id: str
    ) -> OntologyQuestion | None:
        session = require_session(session, "question.get_next_pending")
        result = await session.execute(self._pending(ontology_id).limit(1))
        return result.scalar_one_or_none()

    async def get_pending_counts(
        self, session: AsyncSession, ontology_id: str
    ) -> PendingQuestionCounts:
        session = require_session(session, "question.get_pending_counts")
        stmt = (
            select(OntologyQuestion.is_required, func.count())
            .where(
                OntologyQuestion.ontology_id == ontology_id,
                OntologyQuestion.status == QuestionStatus.PENDING.value,
            )
            .group_by(OntologyQuestion.is_required)
        )
        result = await session.execute(stmt)
        counts = PendingQuestionCounts()
        for is_required, count in result.all():
            if is_required:
                counts.required = count
            else:
                counts.optional = count
        return counts

    async def list_by_ontology(
        self,
        session: AsyncSession,
        ontology_id: str,
        status: QuestionStatus | None = None,
    ) -> Sequence[OntologyQuestion]:
        session = require_session(session, "question.list_by_ontology")
        stmt = select(OntologyQuestion).where(OntologyQuestion.ontology_id == ontology_id)
        if status is not None:
            stmt = stmt.where(OntologyQuestion.status == QuestionStatus(status).value)
        stmt = stmt.order_by(OntologyQuestion.priority, OntologyQuestion.created_at).execution_options(
            populate_existing=True
        )
        result = await session.execute(stmt)
        return result.scalars().all()

    # --- status changes --------------------------------------------------

    async def update_status(
        self,
        session: AsyncSession,
        question_id: str,
        status: QuestionStatus,
        reason: str | None = None,
    ) -> OntologyQuestion:
        """Set status (skip, dismiss, escalate, ...) with an optional reason."""
        session = require_session(session, "question.update_status")
        row = await self.get_by_id(session, question_id)
        if row is None:
            raise NotFoundError("question", question_id, "question.update_status")

        row.status = QuestionStatus(status).value
        row.status_reason = reason
        await session.flush()
        return row

    async def submit_answer(
        self,
        session: AsyncSession,
        question_id: str,
        answer: str,
        answered_by: str,
    ) -> OntologyQuestion:
        session = require_session(session, "question.submit_answer")
        row = await self.get_by_id(session, question_id)
        if row is None:
            raise NotFoundError("question", question_id, "question.submit_answer")

        row.status = QuestionStatus.ANSWERED.value
        row.answer = answer
        row.answered_by = answered_by
        row.answered_at = datetime.now(UTC)
        await session.flush()
        logger.info("ontology_question_answered", question_id=question_id, answered_by=answered_by)
        return row
