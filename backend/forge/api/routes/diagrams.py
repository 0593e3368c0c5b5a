"""Diagram endpoints - POST /diagrams, PATCH /diagrams/{id}/visibility."""

import logging
import uuid
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from backend.forge.api.auth import RequestContext, get_current_context
from backend.forge.api.schemas import CreateDiagramRequest, DiagramResponse, VisibilityRequest
from backend.forge.db.engine import get_session
from backend.forge.db.models import Visibility
from backend.forge.db.repositories import SqlDiagramRepository
from backend.forge.errors import GenerationError
from backend.forge.moderation.service import ModerationService
from backend.forge.workers.jobs import PipelineJobs, get_pipeline_jobs

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/diagrams", tags=["diagrams"])


@router.post("", response_model=DiagramResponse, status_code=status.HTTP_201_CREATED)
async def create_diagram(
    request: CreateDiagramRequest,
    ctx: Annotated[RequestContext, Depends(get_current_context)],
    session: Annotated[AsyncSession, Depends(get_session)],
    jobs: Annotated[PipelineJobs, Depends(get_pipeline_jobs)],
) -> DiagramResponse:
    """Generate a diagram from a free-form prompt and save it.

    Raises:
        HTTPException: 503 for transient AI failures, 502 for other generation failures
    """
    result = await jobs.orchestrator.generator.generate_from_prompt(
        request.prompt, user_id=str(ctx.user_id)
    )
    try:
        draft = result.unwrap()
    except GenerationError as e:
        logger.warning(f"Ad hoc diagram generation failed ({e.kind}): {e.message}")
        code = (
            status.HTTP_503_SERVICE_UNAVAILABLE
            if e.kind == "transient"
            else status.HTTP_502_BAD_GATEWAY
        )
        raise HTTPException(status_code=code, detail=e.message) from e

    diagram = await SqlDiagramRepository(session).create_from_draft(
        draft, user_id=ctx.user_id, visibility=Visibility(request.visibility)
    )
    ModerationService(session, jobs.moderation.config, scheduler=jobs).enqueue_moderation(diagram)
    return DiagramResponse.model_validate(diagram)


@router.patch("/{diagram_id}/visibility", response_model=DiagramResponse)
async def change_visibility(
    diagram_id: uuid.UUID,
    request: VisibilityRequest,
    ctx: Annotated[RequestContext, Depends(get_current_context)],
    session: Annotated[AsyncSession, Depends(get_session)],
    jobs: Annotated[PipelineJobs, Depends(get_pipeline_jobs)],
) -> DiagramResponse:
    """Change visibility; making a diagram public queues it for moderation."""
    service = ModerationService(session, jobs.moderation.config, scheduler=jobs)
    diagram = await service.change_visibility(
        diagram_id, Visibility(request.visibility), user_id=ctx.user_id
    )
    if diagram is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Diagram not found")
    return DiagramResponse.model_validate(diagram)
