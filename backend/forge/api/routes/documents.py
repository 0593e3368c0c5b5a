"""Document endpoints - POST /documents, GET /documents/{id}, GET /documents/{id}/diagrams."""

import uuid
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from backend.forge.api.auth import RequestContext, get_current_context
from backend.forge.api.schemas import (
    CreateDocumentRequest,
    DiagramListResponse,
    DiagramResponse,
    DocumentResponse,
)
from backend.forge.db.engine import get_session
from backend.forge.db.models import Document, SourceType
from backend.forge.db.repositories import SqlDiagramRepository, SqlDocumentRepository
from backend.forge.workers.jobs import PipelineJobs, get_pipeline_jobs

router = APIRouter(prefix="/documents", tags=["documents"])


async def _owned_document(
    document_id: uuid.UUID, ctx: RequestContext, session: AsyncSession
) -> Document:
    document = await SqlDocumentRepository(session).get(document_id)
    if document is None or (document.user_id != ctx.user_id and not ctx.is_admin):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Document not found")
    return document


@router.post("", response_model=DocumentResponse, status_code=status.HTTP_202_ACCEPTED)
async def create_document(
    request: CreateDocumentRequest,
    ctx: Annotated[RequestContext, Depends(get_current_context)],
    session: Annotated[AsyncSession, Depends(get_session)],
    jobs: Annotated[PipelineJobs, Depends(get_pipeline_jobs)],
) -> DocumentResponse:
    """Register an upload and queue it for ingestion.

    Returns:
        The document in ``uploaded`` state; poll GET /documents/{id} for progress
    """
    document = await SqlDocumentRepository(session).create(
        user_id=ctx.user_id,
        title=request.title,
        source_type=SourceType(request.source_type),
        path=request.path,
        raw_text=request.text,
    )
    response = DocumentResponse.model_validate(document)
    jobs.schedule_ingestion(document.id)
    return response


@router.get("/{document_id}", response_model=DocumentResponse)
async def get_document(
    document_id: uuid.UUID,
    ctx: Annotated[RequestContext, Depends(get_current_context)],
    session: Annotated[AsyncSession, Depends(get_session)],
) -> DocumentResponse:
    document = await _owned_document(document_id, ctx, session)
    return DocumentResponse.model_validate(document)


@router.get("/{document_id}/diagrams", response_model=DiagramListResponse)
async def list_document_diagrams(
    document_id: uuid.UUID,
    ctx: Annotated[RequestContext, Depends(get_current_context)],
    session: Annotated[AsyncSession, Depends(get_session)],
) -> DiagramListResponse:
    """Diagrams generated from a document, in chunk order."""
    await _owned_document(document_id, ctx, session)
    diagrams = await SqlDiagramRepository(session).list_for_document(document_id)
    return DiagramListResponse(diagrams=[DiagramResponse.model_validate(d) for d in diagrams])
