"""Request and response bodies for the HTTP API."""

import uuid
from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator


class CreateDocumentRequest(BaseModel):
    """Request body for POST /documents."""

    title: str = Field(..., min_length=1, max_length=200, description="Document title")
    source_type: Literal["pdf", "markdown", "text"] = Field(
        "text", description="Format of the uploaded source"
    )
    text: str | None = Field(None, min_length=1, description="Pasted document text")
    path: str | None = Field(None, min_length=1, description="Server-side path of an upload")

    @model_validator(mode="after")
    def _require_content(self) -> "CreateDocumentRequest":
        if self.text is None and self.path is None:
            raise ValueError("either text or path is required")
        return self


class DocumentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    title: str
    source_type: str
    status: str
    error_message: str | None
    completed_at: datetime | None
    created_at: datetime


class DiagramResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    document_id: uuid.UUID | None
    chunk_index: int | None
    title: str
    slug: str
    tags: list[str]
    diagram_source: str
    format: str
    summary: str | None
    notes_md: str | None
    visibility: str
    moderation_status: str
    moderation_reason: str | None
    created_at: datetime


class DiagramListResponse(BaseModel):
    diagrams: list[DiagramResponse]


class CreateDiagramRequest(BaseModel):
    """Request body for POST /diagrams."""

    prompt: str = Field(..., min_length=1, max_length=2000, description="What to draw")
    visibility: Literal["private", "unlisted", "public"] = "unlisted"


class VisibilityRequest(BaseModel):
    visibility: Literal["private", "unlisted", "public"]


class AdminDecisionRequest(BaseModel):
    reason: str | None = Field(None, max_length=1000)


class ModerationQueueResponse(BaseModel):
    diagrams: list[DiagramResponse]


class ModerationStatsResponse(BaseModel):
    pending: int
    approved: int
    rejected: int
    manual_review: int
    total: int


class UserUsageResponse(BaseModel):
    user_id: uuid.UUID
    total_tokens: int


class UsageTotalsResponse(BaseModel):
    """Tokens per user, largest consumers first."""

    users: list[UserUsageResponse]
