"""Progress and generation events broadcast during document ingestion."""

from datetime import UTC, datetime
from typing import Literal

from pydantic import BaseModel, Field

DOCUMENTS_TOPIC = "documents"


def generation_topic(document_id: str) -> str:
    """Per-document topic carrying chunk-level generation events."""
    return f"diagram_generation:{document_id}"


class _Event(BaseModel):
    document_id: str
    emitted_at: datetime = Field(default_factory=lambda: datetime.now(UTC))


class DocumentProgress(_Event):
    """Chunk `current` of `total` is about to be processed."""

    type: Literal["document_progress"] = "document_progress"
    current: int = Field(..., ge=1)
    total: int = Field(..., ge=1)


class GenerationStarted(_Event):
    type: Literal["generation_started"] = "generation_started"
    chunk_index: int = Field(..., ge=1)


class GenerationCompleted(_Event):
    type: Literal["generation_completed"] = "generation_completed"
    chunk_index: int = Field(..., ge=1)
    diagram_id: str


class GenerationFailed(_Event):
    type: Literal["generation_failed"] = "generation_failed"
    chunk_index: int = Field(..., ge=1)
    kind: str
    reason: str


PipelineEvent = DocumentProgress | GenerationStarted | GenerationCompleted | GenerationFailed
