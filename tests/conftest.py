"""Shared pytest fixtures for all test suites."""

import uuid
from collections.abc import AsyncGenerator, Iterable
from pathlib import Path
from typing import Any

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from backend.forge.db.engine import create_session_factory
from backend.forge.db.models import Base, Diagram, Document, Visibility
from backend.forge.events.publisher import InMemoryEventPublisher
from backend.forge.llm.options import GenerationOptions
from backend.forge.moderation.analyzer import ModerationVerdict

OWNER_ID = uuid.UUID("00000000-0000-0000-0000-000000000002")


class ScriptedChatClient:
    """Chat client that replays queued replies; exceptions in the queue are raised."""

    def __init__(self, replies: Iterable[str | Exception] = ()) -> None:
        self.replies: list[str | Exception] = list(replies)
        self.calls: list[tuple[list[dict[str, str]], GenerationOptions]] = []

    async def chat(self, messages: list[dict[str, str]], options: GenerationOptions) -> str:
        self.calls.append((messages, options))
        if not self.replies:
            raise AssertionError("ScriptedChatClient ran out of replies")
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply


class ScriptedAnalyzer:
    """Content analyzer returning a fixed verdict or raising a fixed error."""

    def __init__(self, outcome: ModerationVerdict | Exception) -> None:
        self.outcome = outcome
        self.calls: list[uuid.UUID] = []

    async def analyze(self, diagram: Diagram) -> ModerationVerdict:
        self.calls.append(diagram.id)
        if isinstance(self.outcome, Exception):
            raise self.outcome
        return self.outcome


@pytest_asyncio.fixture
async def engine(tmp_path: Path) -> AsyncGenerator[AsyncEngine, None]:
    """File-backed SQLite engine so every session sees the same database."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", echo=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return create_session_factory(engine)


@pytest.fixture
def publisher() -> InMemoryEventPublisher:
    return InMemoryEventPublisher()


@pytest.fixture
def make_document(session_factory: async_sessionmaker[AsyncSession]) -> Any:
    """Factory fixture inserting a document and returning its id."""

    async def _make(
        *,
        raw_text: str | None = "Some text.",
        status: str = "uploaded",
        source_type: str = "text",
        path: str | None = None,
        user_id: uuid.UUID = OWNER_ID,
    ) -> uuid.UUID:
        async with session_factory() as session:
            document = Document(
                user_id=user_id,
                title="Architecture notes",
                source_type=source_type,
                path=path,
                raw_text=raw_text,
                status=status,
            )
            session.add(document)
            await session.commit()
            return document.id

    return _make


@pytest.fixture
def make_diagram(session_factory: async_sessionmaker[AsyncSession]) -> Any:
    """Factory fixture inserting a diagram and returning its id."""

    async def _make(
        *,
        visibility: str = Visibility.PUBLIC.value,
        moderation_status: str = "pending",
        title: str = "Request lifecycle",
        summary: str | None = "How a request flows through the API gateway.",
        user_id: uuid.UUID = OWNER_ID,
        document_id: uuid.UUID | None = None,
        chunk_index: int | None = None,
    ) -> uuid.UUID:
        async with session_factory() as session:
            diagram = Diagram(
                document_id=document_id,
                chunk_index=chunk_index,
                user_id=user_id,
                title=title,
                slug="request-lifecycle",
                tags=["http"],
                diagram_source="flowchart TD\n  A --> B",
                format="mermaid",
                summary=summary,
                visibility=visibility,
                moderation_status=moderation_status,
            )
            session.add(diagram)
            await session.commit()
            return diagram.id

    return _make
