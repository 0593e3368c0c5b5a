"""SQL repositories for documents, diagrams, moderation logs and token usage."""

import uuid

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from backend.forge.db.models import (
    Diagram,
    Document,
    ModerationLog,
    ModerationStatus,
    SourceType,
    TokenUsage,
    Visibility,
)
from backend.forge.generation.generator import DiagramDraft


class SqlDocumentRepository:
    """Document persistence."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, document_id: uuid.UUID) -> Document | None:
        return await self._session.get(Document, document_id)

    async def create(
        self,
        *,
        user_id: uuid.UUID,
        title: str,
        source_type: SourceType = SourceType.TEXT,
        path: str | None = None,
        raw_text: str | None = None,
    ) -> Document:
        """Create an uploaded document and commit."""
        document = Document(
            user_id=user_id,
            title=title,
            source_type=source_type.value,
            path=path,
            raw_text=raw_text,
            error_message=None,
            completed_at=None,
        )
        self._session.add(document)
        await self._session.commit()
        return document


class SqlDiagramRepository:
    """Diagram persistence."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, diagram_id: uuid.UUID) -> Diagram | None:
        return await self._session.get(Diagram, diagram_id)

    async def existing_chunk_indexes(self, document_id: uuid.UUID) -> set[int]:
        """Chunk indexes that already have a diagram for this document."""
        result = await self._session.execute(
            select(Diagram.chunk_index).where(
                Diagram.document_id == document_id, Diagram.chunk_index.is_not(None)
            )
        )
        return {index for index in result.scalars() if index is not None}

    async def list_for_document(self, document_id: uuid.UUID) -> list[Diagram]:
        result = await self._session.execute(
            select(Diagram)
            .where(Diagram.document_id == document_id)
            .order_by(Diagram.chunk_index)
        )
        return list(result.scalars())

    async def create_from_draft(
        self,
        draft: DiagramDraft,
        *,
        user_id: uuid.UUID | None,
        document_id: uuid.UUID | None = None,
        chunk_index: int | None = None,
        visibility: Visibility = Visibility.UNLISTED,
    ) -> Diagram:
        """Persist a draft and commit.

        If another delivery already stored a diagram for the same
        (document_id, chunk_index), that diagram is returned instead.
        """
        diagram = Diagram(
            document_id=document_id,
            chunk_index=chunk_index,
            user_id=user_id,
            title=draft.title,
            slug=draft.slug,
            tags=list(draft.tags),
            diagram_source=draft.diagram_source,
            format=draft.format,
            summary=draft.summary,
            notes_md=draft.notes_md,
            visibility=visibility.value,
            moderation_reason=None,
            moderated_at=None,
        )
        self._session.add(diagram)
        try:
            await self._session.commit()
        except IntegrityError:
            await self._session.rollback()
            if document_id is None or chunk_index is None:
                raise
            result = await self._session.execute(
                select(Diagram).where(
                    Diagram.document_id == document_id, Diagram.chunk_index == chunk_index
                )
            )
            existing = result.scalar_one_or_none()
            if existing is None:
                raise
            return existing
        return diagram

    async def list_by_moderation_status(
        self, status: ModerationStatus, *, limit: int = 50
    ) -> list[Diagram]:
        result = await self._session.execute(
            select(Diagram)
            .where(Diagram.moderation_status == status.value)
            .order_by(Diagram.created_at)
            .limit(limit)
        )
        return list(result.scalars())

    async def count_by_moderation_status(self) -> dict[str, int]:
        """Counts for every moderation status, zero-filled."""
        result = await self._session.execute(
            select(Diagram.moderation_status, func.count()).group_by(Diagram.moderation_status)
        )
        counts = {status.value: 0 for status in ModerationStatus}
        for status, count in result.all():
            counts[status] = count
        return counts


class SqlModerationLogRepository:
    """Append-only moderation audit log. Never commits on its own."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    def append(
        self,
        *,
        diagram_id: uuid.UUID,
        action: str,
        previous_status: str | None,
        new_status: str,
        reason: str | None,
        ai_confidence: float | None = None,
        ai_flags: list[str] | None = None,
        performed_by: uuid.UUID | None = None,
    ) -> ModerationLog:
        """Stage a log entry in the current transaction."""
        entry = ModerationLog(
            diagram_id=diagram_id,
            action=action,
            previous_status=previous_status,
            new_status=new_status,
            ai_confidence=ai_confidence,
            ai_flags=list(ai_flags or []),
            reason=reason,
            performed_by=performed_by,
        )
        self._session.add(entry)
        return entry

    async def list_entries(
        self, *, diagram_id: uuid.UUID | None = None, limit: int = 100
    ) -> list[ModerationLog]:
        query = select(ModerationLog).order_by(ModerationLog.created_at.desc()).limit(limit)
        if diagram_id is not None:
            query = query.where(ModerationLog.diagram_id == diagram_id)
        result = await self._session.execute(query)
        return list(result.scalars())


class SqlTokenUsageRepository:
    """Read side of the token_usage table."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def list_for_user(self, user_id: uuid.UUID) -> list[TokenUsage]:
        result = await self._session.execute(
            select(TokenUsage)
            .where(TokenUsage.user_id == user_id)
            .order_by(TokenUsage.created_at)
        )
        return list(result.scalars())

    async def totals_by_user(self) -> dict[uuid.UUID, int]:
        """Total tokens per user across all operations."""
        result = await self._session.execute(
            select(TokenUsage.user_id, func.sum(TokenUsage.total_tokens)).group_by(
                TokenUsage.user_id
            )
        )
        return {user_id: int(total) for user_id, total in result.all()}
