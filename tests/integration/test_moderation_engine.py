"""Integration tests for the moderation engine and its job wiring."""

import uuid
from unittest.mock import patch

import pytest
from pydantic import SecretStr

from backend.forge.config import Settings
from backend.forge.db.models import Diagram, Document
from backend.forge.db.repositories import SqlModerationLogRepository
from backend.forge.errors import MalformedResponseError, ServiceError
from backend.forge.llm.client import DeterministicStubClient, OpenAIChatClient
from backend.forge.llm.usage import SqlUsageTracker
from backend.forge.moderation.analyzer import LLMContentAnalyzer, ModerationVerdict
from backend.forge.moderation.engine import ModerationConfig, ModerationEngine
from backend.forge.workers.jobs import PipelineJobs
from backend.forge.workers.runner import BackgroundJobRunner
from tests.conftest import ScriptedAnalyzer


async def _load(session_factory, diagram_id: uuid.UUID):
    async with session_factory() as session:
        diagram = await session.get(Diagram, diagram_id)
        logs = await SqlModerationLogRepository(session).list_entries(diagram_id=diagram_id)
        return diagram, logs


def _verdict(decision: str, confidence: float, reason: str = "Reviewed technical content.") -> ModerationVerdict:
    return ModerationVerdict(decision=decision, confidence=confidence, reason=reason)


class TestModerationDecisions:
    @pytest.mark.asyncio
    async def test_confident_rejection(self, session_factory, make_diagram) -> None:
        """Reject at 0.95: rejected status, one ai_reject log entry."""
        diagram_id = await make_diagram()
        analyzer = ScriptedAnalyzer(
            ModerationVerdict("reject", 0.95, "Promotional spam content.", ["spam"])
        )

        result = await ModerationEngine(session_factory, analyzer).perform(diagram_id)

        assert result.ok
        assert result.details == {"status": "rejected", "action": "ai_reject"}
        diagram, logs = await _load(session_factory, diagram_id)
        assert diagram.moderation_status == "rejected"
        assert diagram.moderation_reason == "Promotional spam content."
        assert diagram.moderated_at is not None
        assert len(logs) == 1
        assert logs[0].action == "ai_reject"
        assert logs[0].previous_status == "pending"
        assert logs[0].new_status == "rejected"
        assert logs[0].ai_confidence == pytest.approx(0.95)
        assert logs[0].ai_flags == ["spam"]
        assert logs[0].performed_by is None

    @pytest.mark.asyncio
    async def test_confident_approval(self, session_factory, make_diagram) -> None:
        diagram_id = await make_diagram()

        await ModerationEngine(session_factory, ScriptedAnalyzer(_verdict("approve", 0.9))).perform(
            diagram_id
        )

        diagram, logs = await _load(session_factory, diagram_id)
        assert diagram.moderation_status == "approved"
        assert [log.action for log in logs] == ["ai_approve"]

    @pytest.mark.asyncio
    async def test_weak_approval_goes_to_review(self, session_factory, make_diagram) -> None:
        diagram_id = await make_diagram()

        await ModerationEngine(session_factory, ScriptedAnalyzer(_verdict("approve", 0.6))).perform(
            diagram_id
        )

        diagram, logs = await _load(session_factory, diagram_id)
        assert diagram.moderation_status == "manual_review"
        assert [log.action for log in logs] == ["ai_manual_review"]

    @pytest.mark.asyncio
    async def test_custom_threshold(self, session_factory, make_diagram) -> None:
        diagram_id = await make_diagram()
        config = ModerationConfig(auto_approve_threshold=0.5)

        await ModerationEngine(
            session_factory, ScriptedAnalyzer(_verdict("approve", 0.6)), config
        ).perform(diagram_id)

        diagram, _ = await _load(session_factory, diagram_id)
        assert diagram.moderation_status == "approved"

    @pytest.mark.asyncio
    async def test_manual_review_can_be_rerun(self, session_factory, make_diagram) -> None:
        diagram_id = await make_diagram(moderation_status="manual_review")

        result = await ModerationEngine(
            session_factory, ScriptedAnalyzer(_verdict("approve", 0.95))
        ).perform(diagram_id)

        assert result.ok and not result.skipped
        diagram, logs = await _load(session_factory, diagram_id)
        assert diagram.moderation_status == "approved"
        assert logs[0].previous_status == "manual_review"

    @pytest.mark.asyncio
    async def test_with_stub_analyzer(self, session_factory, make_diagram) -> None:
        diagram_id = await make_diagram()
        analyzer = LLMContentAnalyzer(DeterministicStubClient())

        await ModerationEngine(session_factory, analyzer).perform(diagram_id)

        diagram, _ = await _load(session_factory, diagram_id)
        assert diagram.moderation_status == "approved"


class TestModerationSkips:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", ["approved", "rejected"])
    async def test_already_moderated(self, session_factory, make_diagram, status) -> None:
        diagram_id = await make_diagram(moderation_status=status)
        analyzer = ScriptedAnalyzer(_verdict("reject", 0.99))

        result = await ModerationEngine(session_factory, analyzer).perform(diagram_id)

        assert result.skipped
        assert result.details == {"reason": "already_moderated"}
        assert analyzer.calls == []
        diagram, logs = await _load(session_factory, diagram_id)
        assert diagram.moderation_status == status
        assert logs == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("visibility", ["private", "unlisted"])
    async def test_non_public_diagram(self, session_factory, make_diagram, visibility) -> None:
        diagram_id = await make_diagram(visibility=visibility)
        analyzer = ScriptedAnalyzer(_verdict("reject", 0.99))

        result = await ModerationEngine(session_factory, analyzer).perform(diagram_id)

        assert result.skipped
        assert result.details == {"reason": "not_public"}
        assert analyzer.calls == []
        diagram, logs = await _load(session_factory, diagram_id)
        assert diagram.moderation_status == "pending"
        assert logs == []

    @pytest.mark.asyncio
    async def test_missing_diagram(self, session_factory) -> None:
        result = await ModerationEngine(
            session_factory, ScriptedAnalyzer(_verdict("approve", 1.0))
        ).perform(uuid.uuid4())

        assert result.ok
        assert result.details == {"reason": "not_found"}


class TestModerationFailures:
    @pytest.mark.asyncio
    async def test_transient_error_is_retryable(self, session_factory, make_diagram) -> None:
        diagram_id = await make_diagram()
        analyzer = ScriptedAnalyzer(ServiceError("rate limited", transient=True))

        result = await ModerationEngine(session_factory, analyzer).perform(diagram_id)

        assert not result.ok
        assert result.retryable
        diagram, logs = await _load(session_factory, diagram_id)
        assert diagram.moderation_status == "pending"
        assert logs == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "error",
        [
            MalformedResponseError("Invalid moderation response format - unexpected decision value"),
            ServiceError("content policy violation", transient=False),
            RuntimeError("analyzer bug"),
        ],
    )
    async def test_other_errors_park_in_manual_review(
        self, session_factory, make_diagram, error
    ) -> None:
        diagram_id = await make_diagram()

        result = await ModerationEngine(session_factory, ScriptedAnalyzer(error)).perform(diagram_id)

        assert not result.ok
        assert not result.retryable
        diagram, logs = await _load(session_factory, diagram_id)
        assert diagram.moderation_status == "manual_review"
        assert diagram.moderation_reason.startswith("Moderation error: ")
        assert len(logs) == 1
        assert logs[0].action == "ai_manual_review"
        assert logs[0].ai_confidence is None
        assert logs[0].ai_flags == []


class TestModerationJobs:
    @pytest.mark.asyncio
    async def test_transient_failures_retried_then_given_up(
        self, session_factory, publisher, make_diagram
    ) -> None:
        delays: list[float] = []

        async def fake_sleep(delay: float) -> None:
            delays.append(delay)

        diagram_id = await make_diagram()
        analyzer = ScriptedAnalyzer(ServiceError("timeout", transient=True))
        jobs = PipelineJobs.build(
            Settings(openai_api_key=None),
            session_factory,
            chat_client=DeterministicStubClient(),
            publisher=publisher,
            analyzer=analyzer,
            runner=BackgroundJobRunner(max_attempts=3, backoff_seconds=1.0, sleep=fake_sleep),
        )

        result = await jobs.perform_moderation(diagram_id)

        assert not result.ok
        assert len(analyzer.calls) == 3
        assert delays == [1.0, 2.0]
        diagram, _ = await _load(session_factory, diagram_id)
        assert diagram.moderation_status == "pending"

    @pytest.mark.asyncio
    async def test_scheduled_moderation_runs_in_background(
        self, session_factory, publisher, make_diagram
    ) -> None:
        diagram_id = await make_diagram()
        jobs = PipelineJobs.build(
            Settings(openai_api_key=None),
            session_factory,
            chat_client=DeterministicStubClient(),
            publisher=publisher,
        )

        jobs.schedule_moderation(diagram_id)
        await jobs.runner.drain()

        diagram, _ = await _load(session_factory, diagram_id)
        assert diagram.moderation_status == "approved"

    @pytest.mark.asyncio
    async def test_ingestion_job_runs_through_runner(
        self, session_factory, publisher, make_document
    ) -> None:
        document_id = await make_document(raw_text="A short design note.")
        jobs = PipelineJobs.build(
            Settings(openai_api_key=None),
            session_factory,
            chat_client=DeterministicStubClient(),
            publisher=publisher,
        )

        result = await jobs.perform_ingestion(document_id)

        assert result.ok
        assert result.details == {"diagrams_created": 1, "chunks_failed": 0}

    @pytest.mark.asyncio
    async def test_scheduled_ingestion_uses_client_override(
        self, session_factory, publisher, make_document
    ) -> None:
        document_id = await make_document(raw_text="A short design note.")
        default = DeterministicStubClient()
        override = DeterministicStubClient()
        jobs = PipelineJobs.build(
            Settings(openai_api_key=None),
            session_factory,
            chat_client=default,
            publisher=publisher,
        )

        jobs.schedule_ingestion(document_id, ai_client=override)
        await jobs.runner.drain()

        assert default.calls == []
        assert len(override.calls) == 1
        async with session_factory() as session:
            document = await session.get(Document, document_id)
        assert document.status == "ready"

    @pytest.mark.asyncio
    async def test_build_persists_usage_with_openai_client(
        self, session_factory, publisher
    ) -> None:
        with patch("backend.forge.llm.client.AsyncOpenAI"):
            jobs = PipelineJobs.build(
                Settings(openai_api_key=SecretStr("sk-test")),
                session_factory,
                publisher=publisher,
            )

        client = jobs.orchestrator.generator.client
        assert isinstance(client, OpenAIChatClient)
        assert isinstance(client.usage_tracker, SqlUsageTracker)
        assert client.usage_tracker.session_factory is session_factory
