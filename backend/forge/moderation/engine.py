"""Moderation decision engine.

Scores a public diagram, maps the verdict through the auto-approve
threshold, and writes the new status together with one audit log entry
in a single transaction. Safe to run more than once per diagram: a
diagram that is already approved or rejected is left alone.
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import UTC, datetime

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from backend.forge.config import Settings
from backend.forge.db.models import Diagram, ModerationAction, ModerationStatus, Visibility
from backend.forge.db.repositories import SqlModerationLogRepository
from backend.forge.errors import PersistenceError, ServiceError
from backend.forge.moderation.analyzer import ContentAnalyzer, ModerationVerdict
from backend.forge.pipeline.results import TaskResult
from backend.forge.utils.logging import StructuredPipelineLogger
from backend.forge.utils.metrics import PipelineMetrics

logger = logging.getLogger(__name__)
stage_logger = StructuredPipelineLogger(__name__)

FINAL_STATUSES = (ModerationStatus.APPROVED.value, ModerationStatus.REJECTED.value)


@dataclass(frozen=True)
class ModerationConfig:
    """Immutable moderation settings, passed in at construction."""

    enabled: bool = True
    auto_approve_threshold: float = 0.8

    @classmethod
    def from_settings(cls, settings: Settings) -> "ModerationConfig":
        return cls(
            enabled=settings.moderation_enabled,
            auto_approve_threshold=settings.moderation_auto_approve_threshold,
        )


def decide(
    verdict: ModerationVerdict, threshold: float
) -> tuple[ModerationStatus, ModerationAction]:
    """Map a verdict to the new moderation status and audit action.

    Only approvals at or above the threshold are auto-approved; weaker
    approvals go to manual review.
    """
    if verdict.decision == "approve":
        if verdict.confidence >= threshold:
            return ModerationStatus.APPROVED, ModerationAction.AI_APPROVE
        return ModerationStatus.MANUAL_REVIEW, ModerationAction.AI_MANUAL_REVIEW
    if verdict.decision == "reject":
        return ModerationStatus.REJECTED, ModerationAction.AI_REJECT
    return ModerationStatus.MANUAL_REVIEW, ModerationAction.AI_MANUAL_REVIEW


class ModerationEngine:
    """Runs the moderation work item for a single diagram."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        analyzer: ContentAnalyzer,
        config: ModerationConfig | None = None,
        *,
        metrics: PipelineMetrics | None = None,
    ) -> None:
        self.session_factory = session_factory
        self.analyzer = analyzer
        self.config = config or ModerationConfig()
        self.metrics = metrics or PipelineMetrics()

    async def perform(self, diagram_id: uuid.UUID) -> TaskResult:
        """Moderate one diagram.

        Returns:
            Success when a decision was recorded or nothing needed doing;
            failure with ``retryable=True`` for transient analysis errors

        Raises:
            PersistenceError: The decision could not be written
        """
        async with self.session_factory() as session:
            diagram = await session.get(Diagram, diagram_id)

            if diagram is None:
                logger.warning(f"Diagram not found for moderation: {diagram_id}")
                return TaskResult.success(skipped=True, reason="not_found")

            if diagram.moderation_status in FINAL_STATUSES:
                stage_logger.log_stage(
                    "moderation",
                    "skipped",
                    diagram_id=str(diagram_id),
                    status=diagram.moderation_status,
                )
                return TaskResult.success(skipped=True, reason="already_moderated")

            if diagram.visibility != Visibility.PUBLIC.value:
                stage_logger.log_stage(
                    "moderation",
                    "skipped",
                    diagram_id=str(diagram_id),
                    visibility=diagram.visibility,
                )
                return TaskResult.success(skipped=True, reason="not_public")

            try:
                verdict = await self.analyzer.analyze(diagram)
            except Exception as e:
                if isinstance(e, ServiceError) and e.transient:
                    stage_logger.log_stage(
                        "moderation", "retry", diagram_id=str(diagram_id), reason=e.message
                    )
                    return TaskResult.failure(e.message, retryable=True)
                return await self._record_error(session, diagram, e)

            status, action = decide(verdict, self.config.auto_approve_threshold)
            await self._apply(
                session,
                diagram,
                status=status,
                action=action,
                reason=verdict.reason,
                confidence=verdict.confidence,
                flags=verdict.flags,
            )

        self.metrics.moderation_decision(action.value)
        stage_logger.log_stage(
            "moderation",
            "success",
            diagram_id=str(diagram_id),
            decision=verdict.decision,
            confidence=verdict.confidence,
            status=status.value,
        )
        return TaskResult.success(status=status.value, action=action.value)

    async def _record_error(
        self, session: AsyncSession, diagram: Diagram, error: Exception
    ) -> TaskResult:
        """Park the diagram in manual review after a non-transient failure."""
        message = getattr(error, "message", None) or str(error) or type(error).__name__
        reason = f"Moderation error: {message}"
        logger.error(f"Content moderation failed for diagram {diagram.id}: {message}")

        await self._apply(
            session,
            diagram,
            status=ModerationStatus.MANUAL_REVIEW,
            action=ModerationAction.AI_MANUAL_REVIEW,
            reason=reason,
            confidence=None,
            flags=[],
        )
        self.metrics.moderation_decision("error")
        return TaskResult.failure(reason, retryable=False)

    async def _apply(
        self,
        session: AsyncSession,
        diagram: Diagram,
        *,
        status: ModerationStatus,
        action: ModerationAction,
        reason: str,
        confidence: float | None,
        flags: list[str],
    ) -> None:
        """Write status and audit entry in one transaction."""
        diagram_id = diagram.id
        logs = SqlModerationLogRepository(session)
        logs.append(
            diagram_id=diagram_id,
            action=action.value,
            previous_status=diagram.moderation_status,
            new_status=status.value,
            reason=reason,
            ai_confidence=confidence,
            ai_flags=flags,
        )
        diagram.moderation_status = status.value
        diagram.moderation_reason = reason
        diagram.moderated_at = datetime.now(UTC)

        try:
            await session.commit()
        except SQLAlchemyError as e:
            await session.rollback()
            raise PersistenceError(
                f"Failed to record moderation decision for diagram {diagram_id}",
                {"diagram_id": str(diagram_id), "cause": str(e)},
            ) from e
