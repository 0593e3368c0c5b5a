"""Moderation operations used by the HTTP layer: enqueueing, admin actions, queries."""

import logging
import uuid
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from backend.forge.db.models import (
    Diagram,
    ModerationAction,
    ModerationLog,
    ModerationStatus,
    Visibility,
)
from backend.forge.db.repositories import SqlDiagramRepository, SqlModerationLogRepository
from backend.forge.moderation.engine import ModerationConfig

logger = logging.getLogger(__name__)


class ModerationScheduler(Protocol):
    """Anything that can queue a moderation work item."""

    def schedule_moderation(self, diagram_id: uuid.UUID) -> None: ...


@dataclass(frozen=True)
class ModerationStats:
    pending: int
    approved: int
    rejected: int
    manual_review: int

    @property
    def total(self) -> int:
        return self.pending + self.approved + self.rejected + self.manual_review


class ModerationService:
    """Moderation actions scoped to one database session."""

    def __init__(
        self,
        session: AsyncSession,
        config: ModerationConfig,
        scheduler: ModerationScheduler | None = None,
    ) -> None:
        self._session = session
        self.config = config
        self.scheduler = scheduler
        self._diagrams = SqlDiagramRepository(session)
        self._logs = SqlModerationLogRepository(session)

    def enqueue_moderation(self, diagram: Diagram) -> bool:
        """Queue a moderation work item if the diagram needs one.

        Returns:
            True if a work item was queued
        """
        if not self.config.enabled or diagram.visibility != Visibility.PUBLIC.value:
            return False
        if self.scheduler is None:
            logger.warning(f"No scheduler configured, diagram {diagram.id} not queued")
            return False
        self.scheduler.schedule_moderation(diagram.id)
        return True

    async def change_visibility(
        self, diagram_id: uuid.UUID, visibility: Visibility, *, user_id: uuid.UUID
    ) -> Diagram | None:
        """Change visibility of a diagram owned by user_id.

        Making a diagram public queues it for moderation.

        Returns:
            Updated diagram, or None if missing or not owned by the user
        """
        diagram = await self._diagrams.get(diagram_id)
        if diagram is None or diagram.user_id != user_id:
            return None

        diagram.visibility = visibility.value
        await self._session.commit()

        self.enqueue_moderation(diagram)
        return diagram

    async def admin_approve(
        self,
        diagram_id: uuid.UUID,
        admin_user_id: uuid.UUID,
        reason: str = "Manually approved",
    ) -> Diagram | None:
        diagram = await self._diagrams.get(diagram_id)
        if diagram is None:
            return None
        await self._set_status(
            diagram,
            ModerationStatus.APPROVED,
            ModerationAction.ADMIN_APPROVE,
            reason,
            admin_user_id,
        )
        return diagram

    async def admin_reject(
        self, diagram_id: uuid.UUID, admin_user_id: uuid.UUID, reason: str
    ) -> Diagram | None:
        """Reject a diagram and take it out of public view."""
        diagram = await self._diagrams.get(diagram_id)
        if diagram is None:
            return None
        diagram.visibility = Visibility.PRIVATE.value
        await self._set_status(
            diagram,
            ModerationStatus.REJECTED,
            ModerationAction.ADMIN_REJECT,
            reason,
            admin_user_id,
        )
        return diagram

    async def list_pending_review(self, limit: int = 50) -> list[Diagram]:
        return await self._diagrams.list_by_moderation_status(
            ModerationStatus.MANUAL_REVIEW, limit=limit
        )

    async def moderation_stats(self) -> ModerationStats:
        counts = await self._diagrams.count_by_moderation_status()
        return ModerationStats(
            pending=counts[ModerationStatus.PENDING.value],
            approved=counts[ModerationStatus.APPROVED.value],
            rejected=counts[ModerationStatus.REJECTED.value],
            manual_review=counts[ModerationStatus.MANUAL_REVIEW.value],
        )

    async def list_moderation_logs(
        self, diagram_id: uuid.UUID | None = None, limit: int = 100
    ) -> list[ModerationLog]:
        return await self._logs.list_entries(diagram_id=diagram_id, limit=limit)

    async def _set_status(
        self,
        diagram: Diagram,
        status: ModerationStatus,
        action: ModerationAction,
        reason: str,
        performed_by: uuid.UUID,
    ) -> None:
        self._logs.append(
            diagram_id=diagram.id,
            action=action.value,
            previous_status=diagram.moderation_status,
            new_status=status.value,
            reason=reason,
            performed_by=performed_by,
        )
        diagram.moderation_status = status.value
        diagram.moderation_reason = reason
        diagram.moderated_at = datetime.now(UTC)
        await self._session.commit()
