"""Document ingestion orchestrator.

Drives one document through extraction, segmentation and per-chunk
diagram generation:

    uploaded -> processing -> ready | error

Terminal states absorb: re-running a finished document does nothing.
A fault barrier around the whole run guarantees the document never stays
in ``processing`` after an unexpected exception.
"""

import logging
import uuid
from datetime import UTC, datetime

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from backend.forge.db.models import Document, DocumentStatus
from backend.forge.db.repositories import SqlDiagramRepository
from backend.forge.docs.chunker import DEFAULT_MAX_CHARS, TextChunk, segment_text
from backend.forge.docs.extraction import TextExtractor
from backend.forge.errors import ExtractionError, PersistenceError
from backend.forge.events.models import (
    DOCUMENTS_TOPIC,
    DocumentProgress,
    GenerationCompleted,
    GenerationFailed,
    GenerationStarted,
    PipelineEvent,
    generation_topic,
)
from backend.forge.events.publisher import EventPublisher
from backend.forge.generation.generator import DiagramGenerator
from backend.forge.llm.client import ChatClient
from backend.forge.llm.options import build_options
from backend.forge.pipeline.results import TaskResult
from backend.forge.utils.logging import StructuredPipelineLogger
from backend.forge.utils.metrics import PipelineMetrics

logger = logging.getLogger(__name__)
stage_logger = StructuredPipelineLogger(__name__)


class DocumentIngestionOrchestrator:
    """Runs the ingestion work item for a single document."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        extractor: TextExtractor,
        generator: DiagramGenerator,
        publisher: EventPublisher,
        *,
        max_chars: int = DEFAULT_MAX_CHARS,
        metrics: PipelineMetrics | None = None,
    ) -> None:
        self.session_factory = session_factory
        self.extractor = extractor
        self.generator = generator
        self.publisher = publisher
        self.max_chars = max_chars
        self.metrics = metrics or PipelineMetrics()

    async def perform(
        self, document_id: uuid.UUID, ai_client: ChatClient | None = None
    ) -> TaskResult:
        """Process one document end to end.

        Returns:
            Success for ready (or already terminal) documents, failure when
            the document is missing or ends in ``error``

        Raises:
            PersistenceError: The error state could not be recorded after a fault
        """
        try:
            return await self._process(document_id, ai_client)
        except Exception as e:
            logger.exception(f"Unexpected failure ingesting document {document_id}")
            await self._record_fault(document_id, str(e) or type(e).__name__)
            return TaskResult.failure(str(e) or type(e).__name__, document_id=str(document_id))

    async def _process(
        self, document_id: uuid.UUID, ai_client: ChatClient | None
    ) -> TaskResult:
        async with self.session_factory() as session:
            document = await session.get(Document, document_id)

            if document is None:
                stage_logger.log_stage("ingestion", "not_found", document_id=str(document_id))
                return TaskResult.failure("Document not found", document_id=str(document_id))

            if DocumentStatus(document.status).is_terminal:
                stage_logger.log_stage(
                    "ingestion", "skipped", document_id=str(document_id), status=document.status
                )
                return TaskResult.success(skipped=True, status=document.status)

            stage_logger.log_stage(
                "ingestion", "started", document_id=str(document_id), title=document.title
            )
            document.status = DocumentStatus.PROCESSING.value
            await session.commit()

            try:
                text = await self.extractor.extract_text(document)
            except ExtractionError as e:
                document.status = DocumentStatus.ERROR.value
                document.error_message = e.message
                document.completed_at = datetime.now(UTC)
                await session.commit()
                self.metrics.document_finished(DocumentStatus.ERROR.value)
                stage_logger.log_stage(
                    "extraction", "error", document_id=str(document_id), reason=e.message
                )
                return TaskResult.failure(e.message, document_id=str(document_id))

            document.raw_text = text
            await session.commit()

            chunks = segment_text(text, self.max_chars)
            stage_logger.log_stage(
                "segmentation",
                "success",
                document_id=str(document_id),
                text_length=len(text),
                chunks=len(chunks),
            )

            succeeded, failed = await self._generate_all(session, document, chunks, ai_client)

            document.status = DocumentStatus.READY.value
            document.completed_at = datetime.now(UTC)
            await session.commit()

        self.metrics.document_finished(DocumentStatus.READY.value)
        stage_logger.log_stage(
            "ingestion",
            "success",
            document_id=str(document_id),
            diagrams_created=succeeded,
            chunks_failed=failed,
        )
        return TaskResult.success(diagrams_created=succeeded, chunks_failed=failed)

    async def _generate_all(
        self,
        session: AsyncSession,
        document: Document,
        chunks: list[TextChunk],
        ai_client: ChatClient | None,
    ) -> tuple[int, int]:
        """Generate a diagram per chunk in order. Returns (succeeded, failed)."""
        # Rollbacks below expire the document, so keep plain copies of its keys
        document_uuid = document.id
        owner_id = document.user_id
        document_id = str(document_uuid)

        diagrams = SqlDiagramRepository(session)
        already_done = await diagrams.existing_chunk_indexes(document_uuid)
        topic = generation_topic(document_id)
        total = len(chunks)
        succeeded = failed = 0

        # Usage is attributed to the document owner
        options = build_options(
            "diagram_generation", user_id=str(owner_id), ai_client=ai_client
        )

        for chunk in chunks:
            await self._publish(
                DOCUMENTS_TOPIC,
                DocumentProgress(document_id=document_id, current=chunk.index, total=total),
            )

            if chunk.index in already_done:
                self.metrics.chunk_outcome("skipped")
                succeeded += 1
                continue

            await self._publish(
                topic, GenerationStarted(document_id=document_id, chunk_index=chunk.index)
            )

            result = await self.generator.generate(chunk.text, options)

            if result.failure is not None:
                stage_logger.log_stage(
                    "generation",
                    "error",
                    document_id=document_id,
                    chunk=chunk.index,
                    kind=result.failure.kind,
                    reason=result.failure.message,
                )
                await self._publish(
                    topic,
                    GenerationFailed(
                        document_id=document_id,
                        chunk_index=chunk.index,
                        kind=result.failure.kind,
                        reason=result.failure.message,
                    ),
                )
                self.metrics.chunk_outcome(result.failure.kind)
                failed += 1
                continue

            assert result.draft is not None
            try:
                diagram = await diagrams.create_from_draft(
                    result.draft,
                    user_id=owner_id,
                    document_id=document_uuid,
                    chunk_index=chunk.index,
                )
            except SQLAlchemyError as e:
                await session.rollback()
                stage_logger.log_stage(
                    "persistence",
                    "error",
                    document_id=document_id,
                    chunk=chunk.index,
                    reason=str(e),
                )
                await self._publish(
                    topic,
                    GenerationFailed(
                        document_id=document_id,
                        chunk_index=chunk.index,
                        kind="persistence",
                        reason="Failed to save diagram",
                    ),
                )
                self.metrics.chunk_outcome("persistence")
                failed += 1
                continue

            await self._publish(
                topic,
                GenerationCompleted(
                    document_id=document_id,
                    chunk_index=chunk.index,
                    diagram_id=str(diagram.id),
                ),
            )
            self.metrics.chunk_outcome("success")
            succeeded += 1

        return succeeded, failed

    async def _publish(self, topic: str, event: PipelineEvent) -> None:
        """Publish an event; a broken bus never fails ingestion."""
        try:
            await self.publisher.publish(topic, event)
        except Exception as e:
            logger.warning(f"Failed to publish {event.type} on {topic}: {e}")

    async def _record_fault(self, document_id: uuid.UUID, message: str) -> None:
        """Force the document into ``error`` using a fresh session.

        The failed run's session may be unusable, so the document is
        re-read by id. A document already ``ready`` or ``error`` is left
        untouched.

        Raises:
            PersistenceError: The error state could not be written
        """
        try:
            async with self.session_factory() as session:
                document = await session.get(Document, document_id)
                if document is None:
                    return
                if DocumentStatus(document.status).is_terminal:
                    stage_logger.log_stage(
                        "ingestion",
                        "fault_ignored",
                        document_id=str(document_id),
                        status=document.status,
                        reason=message,
                    )
                    return
                document.status = DocumentStatus.ERROR.value
                document.error_message = message
                document.completed_at = datetime.now(UTC)
                await session.commit()
        except Exception as e:
            logger.error(f"Could not record failure for document {document_id}: {e}")
            raise PersistenceError(
                f"Failed to mark document {document_id} as error",
                {"document_id": str(document_id), "cause": str(e)},
            ) from e

        self.metrics.document_finished(DocumentStatus.ERROR.value)
        stage_logger.log_stage("ingestion", "error", document_id=str(document_id), reason=message)
