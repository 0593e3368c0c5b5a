"""Token usage tracking for generative AI calls."""

import logging
import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Protocol

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from backend.forge.db.models import TokenUsage
from backend.forge.utils.metrics import PipelineMetrics

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UsageRecord:
    """Tokens consumed by a single AI call."""

    user_id: str
    operation: str
    model: str
    input_tokens: int
    output_tokens: int
    recorded_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens


class UsageTracker(Protocol):
    """Protocol for usage tracking backends."""

    async def record(
        self,
        *,
        user_id: str | None,
        operation: str,
        model: str,
        input_tokens: int,
        output_tokens: int,
    ) -> None:
        """Record token usage for one call. Missing user_id is logged and skipped."""
        ...


def _warn_missing_user(operation: str, model: str) -> None:
    logger.warning(
        "Skipping usage tracking: no user_id",
        extra={"structured": {"operation": operation, "model": model}},
    )


class PrometheusUsageTracker:
    """Counts tokens per operation in Prometheus."""

    def __init__(self, metrics: PipelineMetrics | None = None) -> None:
        self.metrics = metrics or PipelineMetrics()

    async def record(
        self,
        *,
        user_id: str | None,
        operation: str,
        model: str,
        input_tokens: int,
        output_tokens: int,
    ) -> None:
        if not user_id:
            _warn_missing_user(operation, model)
            return
        self.metrics.ai_tokens(operation, input_tokens, output_tokens)


class SqlUsageTracker:
    """Persists one token_usage row per call and mirrors the totals to Prometheus.

    Each record is written in its own session so a failed write never
    touches the caller's transaction. A failed write is logged; the AI
    reply it belongs to is still returned.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        metrics: PipelineMetrics | None = None,
    ) -> None:
        self.session_factory = session_factory
        self.metrics = metrics or PipelineMetrics()

    async def record(
        self,
        *,
        user_id: str | None,
        operation: str,
        model: str,
        input_tokens: int,
        output_tokens: int,
    ) -> None:
        if not user_id:
            _warn_missing_user(operation, model)
            return

        try:
            owner = uuid.UUID(user_id)
        except ValueError:
            logger.warning(
                f"Skipping usage tracking: user_id {user_id!r} is not a UUID",
                extra={"structured": {"operation": operation, "model": model}},
            )
            return

        self.metrics.ai_tokens(operation, input_tokens, output_tokens)

        try:
            async with self.session_factory() as session:
                session.add(
                    TokenUsage(
                        user_id=owner,
                        operation=operation,
                        model=model,
                        input_tokens=input_tokens,
                        output_tokens=output_tokens,
                        total_tokens=input_tokens + output_tokens,
                    )
                )
                await session.commit()
        except SQLAlchemyError as e:
            logger.error(
                f"Failed to persist token usage for user {user_id}: {e}",
                extra={"structured": {"operation": operation, "model": model}},
            )


class InMemoryUsageTracker:
    """Keeps usage records in a list (tests, local runs)."""

    def __init__(self) -> None:
        self.records: list[UsageRecord] = []

    async def record(
        self,
        *,
        user_id: str | None,
        operation: str,
        model: str,
        input_tokens: int,
        output_tokens: int,
    ) -> None:
        if not user_id:
            _warn_missing_user(operation, model)
            return
        self.records.append(
            UsageRecord(
                user_id=user_id,
                operation=operation,
                model=model,
                input_tokens=input_tokens,
                output_tokens=output_tokens,
            )
        )

    def total_tokens(self, user_id: str) -> int:
        return sum(r.total_tokens for r in self.records if r.user_id == user_id)
