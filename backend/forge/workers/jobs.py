"""Work item entry points: document ingestion and diagram moderation."""

import uuid
from functools import lru_cache

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from backend.forge.config import Settings, get_settings
from backend.forge.content.sanitizer import ContentSanitizer
from backend.forge.db.engine import get_session_factory
from backend.forge.docs.extraction import FileTextExtractor, TextExtractor
from backend.forge.events.publisher import EventPublisher, get_event_publisher
from backend.forge.generation.generator import DiagramGenerator
from backend.forge.llm.client import ChatClient, get_chat_client
from backend.forge.moderation.analyzer import ContentAnalyzer, LLMContentAnalyzer
from backend.forge.moderation.engine import ModerationConfig, ModerationEngine
from backend.forge.pipeline.ingestion import DocumentIngestionOrchestrator
from backend.forge.pipeline.results import TaskResult
from backend.forge.workers.runner import BackgroundJobRunner


class PipelineJobs:
    """Binds the orchestrator and moderation engine to a job runner."""

    def __init__(
        self,
        orchestrator: DocumentIngestionOrchestrator,
        moderation: ModerationEngine,
        runner: BackgroundJobRunner,
    ) -> None:
        self.orchestrator = orchestrator
        self.moderation = moderation
        self.runner = runner

    @classmethod
    def build(
        cls,
        settings: Settings,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        chat_client: ChatClient | None = None,
        publisher: EventPublisher | None = None,
        extractor: TextExtractor | None = None,
        analyzer: ContentAnalyzer | None = None,
        runner: BackgroundJobRunner | None = None,
    ) -> "PipelineJobs":
        """Wire the pipeline from settings; any collaborator can be overridden."""
        chat_client = chat_client or get_chat_client(settings, session_factory=session_factory)
        moderation_config = ModerationConfig.from_settings(settings)
        generator = DiagramGenerator(
            chat_client,
            ContentSanitizer(
                enabled=settings.sanitizer_enabled, strip_links=settings.sanitizer_strip_urls
            ),
        )
        orchestrator = DocumentIngestionOrchestrator(
            session_factory,
            extractor or FileTextExtractor(),
            generator,
            publisher or get_event_publisher(settings),
            max_chars=settings.chunk_max_chars,
        )
        moderation = ModerationEngine(
            session_factory,
            analyzer or LLMContentAnalyzer(chat_client, enabled=moderation_config.enabled),
            moderation_config,
        )
        runner = runner or BackgroundJobRunner(
            max_attempts=settings.job_max_attempts,
            backoff_seconds=settings.job_backoff_seconds,
            backoff_max_seconds=settings.job_backoff_max_seconds,
        )
        return cls(orchestrator, moderation, runner)

    async def perform_ingestion(
        self, document_id: uuid.UUID, ai_client: ChatClient | None = None
    ) -> TaskResult:
        return await self.runner.run(
            f"ingest:{document_id}",
            lambda: self.orchestrator.perform(document_id, ai_client=ai_client),
        )

    async def perform_moderation(self, diagram_id: uuid.UUID) -> TaskResult:
        return await self.runner.run(
            f"moderate:{diagram_id}", lambda: self.moderation.perform(diagram_id)
        )

    def schedule_ingestion(
        self, document_id: uuid.UUID, ai_client: ChatClient | None = None
    ) -> None:
        self.runner.submit(
            f"ingest:{document_id}",
            lambda: self.orchestrator.perform(document_id, ai_client=ai_client),
        )

    def schedule_moderation(self, diagram_id: uuid.UUID) -> None:
        self.runner.submit(f"moderate:{diagram_id}", lambda: self.moderation.perform(diagram_id))


@lru_cache
def get_pipeline_jobs() -> PipelineJobs:
    """Process-wide pipeline wiring (FastAPI dependency)."""
    return PipelineJobs.build(get_settings(), get_session_factory())
