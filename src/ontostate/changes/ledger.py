"""Pending-change ledger.

Change detection appends proposals here; a human (or an auto-apply policy)
reviews each one exactly once. Reviewed changes are never reopened.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from datetime import UTC, datetime

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ontostate.changes.db_models import PendingChange
from ontostate.core.config import get_settings
from ontostate.core.errors import InvalidTransitionError, NotFoundError
from ontostate.core.logging import get_logger
from ontostate.core.models.changes import ChangeStatus, ChangeType, PendingChangeInput
from ontostate.storage.base import require_session

logger = get_logger(__name__)


def _to_row(change: PendingChangeInput) -> PendingChange:
    return PendingChange(**change.model_dump(mode="json"), status=ChangeStatus.PENDING.value)


class PendingChangeRepository:
    """Data access for pending changes."""

    async def create(self, session: AsyncSession, change: PendingChangeInput) -> PendingChange:
        session = require_session(session, "pending_change.create")
        row = _to_row(change)
        session.add(row)
        await session.flush()
        return row

    async def create_batch(
        self, session: AsyncSession, changes: Iterable[PendingChangeInput]
    ) -> Sequence[PendingChange]:
        """Append several changes; every one starts out pending."""
        session = require_session(session, "pending_change.create_batch")
        rows = [_to_row(change) for change in changes]
        if not rows:
            return rows
        session.add_all(rows)
        await session.flush()
        logger.info("pending_changes_recorded", project_id=rows[0].project_id, count=len(rows))
        return rows

    async def get_by_id(self, session: AsyncSession, change_id: str) -> PendingChange | None:
        session = require_session(session, "pending_change.get_by_id")
        result = await session.execute(
            select(PendingChange)
            .where(PendingChange.change_id == change_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def list(
        self,
        session: AsyncSession,
        project_id: str,
        status: ChangeStatus | None = None,
        limit: int | None = None,
    ) -> Sequence[PendingChange]:
        """Newest changes first, optionally filtered by status."""
        session = require_session(session, "pending_change.list")
        stmt = select(PendingChange).where(PendingChange.project_id == project_id)
        if status is not None:
            stmt = stmt.where(PendingChange.status == ChangeStatus(status).value)
        stmt = (
            stmt.order_by(PendingChange.created_at.desc())
            .limit(limit or get_settings().default_change_limit)
            .execution_options(populate_existing=True)
        )
        result = await session.execute(stmt)
        return result.scalars().all()

    async def list_by_type(
        self,
        session: AsyncSession,
        project_id: str,
        change_type: ChangeType,
        limit: int | None = None,
    ) -> Sequence[PendingChange]:
        session = require_session(session, "pending_change.list_by_type")
        stmt = (
            select(PendingChange)
            .where(
                PendingChange.project_id == project_id,
                PendingChange.change_type == ChangeType(change_type).value,
            )
            .order_by(PendingChange.created_at.desc())
            .limit(limit or get_settings().default_change_limit)
            .execution_options(populate_existing=True)
        )
        result = await session.execute(stmt)
        return result.scalars().all()

    async def update_status(
        self,
        session: AsyncSession,
        change_id: str,
        status: ChangeStatus,
        reviewed_by: str,
    ) -> PendingChange:
        """Record the review decision.

        Raises:
            NotFoundError: If the change does not exist
            InvalidTransitionError: If the change was already reviewed or the
                target status is pending
        """
        session = require_session(session, "pending_change.update_status")
        row = await self.get_by_id(session, change_id)
        if row is None:
            raise NotFoundError("pending_change", change_id, "pending_change.update_status")

        target = ChangeStatus(status)
        current = ChangeStatus(row.status)
        if current.is_reviewed or not target.is_reviewed:
            raise InvalidTransitionError("pending_change", change_id, current.value, target.value)

        row.status = target.value
        row.reviewed_by = reviewed_by
        row.reviewed_at = datetime.now(UTC)
        await session.flush()
        logger.info(
            "pending_change_reviewed", change_id=change_id, status=target.value, reviewed_by=reviewed_by
        )
        return row

    async def count_by_status(self, session: AsyncSession, project_id: str) -> dict[str, int]:
        """Number of changes per status; statuses with no rows are omitted."""
        session = require_session(session, "pending_change.count_by_status")
        result = await session.execute(
            select(PendingChange.status, func.count())
            .where(PendingChange.project_id == project_id)
            .group_by(PendingChange.status)
        )
        return {status: count for status, count in result.all()}

    async def delete_by_project(self, session: AsyncSession, project_id: str) -> int:
        session = require_session(session, "pending_change.delete_by_project")
        result = await session.execute(
            delete(PendingChange).where(PendingChange.project_id == project_id)
        )
        return result.rowcount
