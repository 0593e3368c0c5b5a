"""Admin moderation endpoints - queue, stats, approve, reject."""

import uuid
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from backend.forge.api.auth import RequestContext, require_admin
from backend.forge.api.schemas import (
    AdminDecisionRequest,
    DiagramResponse,
    ModerationQueueResponse,
    ModerationStatsResponse,
)
from backend.forge.db.engine import get_session
from backend.forge.moderation.service import ModerationService
from backend.forge.workers.jobs import PipelineJobs, get_pipeline_jobs

router = APIRouter(prefix="/admin/moderation", tags=["moderation"])


def _service(session: AsyncSession, jobs: PipelineJobs) -> ModerationService:
    return ModerationService(session, jobs.moderation.config, scheduler=jobs)


@router.get("/queue", response_model=ModerationQueueResponse)
async def moderation_queue(
    _admin: Annotated[RequestContext, Depends(require_admin)],
    session: Annotated[AsyncSession, Depends(get_session)],
    jobs: Annotated[PipelineJobs, Depends(get_pipeline_jobs)],
    limit: Annotated[int, Query(ge=1, le=200)] = 50,
) -> ModerationQueueResponse:
    """Diagrams waiting for manual review, oldest first."""
    diagrams = await _service(session, jobs).list_pending_review(limit=limit)
    return ModerationQueueResponse(diagrams=[DiagramResponse.model_validate(d) for d in diagrams])


@router.get("/stats", response_model=ModerationStatsResponse)
async def moderation_stats(
    _admin: Annotated[RequestContext, Depends(require_admin)],
    session: Annotated[AsyncSession, Depends(get_session)],
    jobs: Annotated[PipelineJobs, Depends(get_pipeline_jobs)],
) -> ModerationStatsResponse:
    stats = await _service(session, jobs).moderation_stats()
    return ModerationStatsResponse(
        pending=stats.pending,
        approved=stats.approved,
        rejected=stats.rejected,
        manual_review=stats.manual_review,
        total=stats.total,
    )


@router.post("/{diagram_id}/approve", response_model=DiagramResponse)
async def approve_diagram(
    diagram_id: uuid.UUID,
    request: AdminDecisionRequest,
    admin: Annotated[RequestContext, Depends(require_admin)],
    session: Annotated[AsyncSession, Depends(get_session)],
    jobs: Annotated[PipelineJobs, Depends(get_pipeline_jobs)],
) -> DiagramResponse:
    diagram = await _service(session, jobs).admin_approve(
        diagram_id, admin.user_id, request.reason or "Manually approved"
    )
    if diagram is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Diagram not found")
    return DiagramResponse.model_validate(diagram)


@router.post("/{diagram_id}/reject", response_model=DiagramResponse)
async def reject_diagram(
    diagram_id: uuid.UUID,
    request: AdminDecisionRequest,
    admin: Annotated[RequestContext, Depends(require_admin)],
    session: Annotated[AsyncSession, Depends(get_session)],
    jobs: Annotated[PipelineJobs, Depends(get_pipeline_jobs)],
) -> DiagramResponse:
    """Reject a diagram; it also becomes private."""
    diagram = await _service(session, jobs).admin_reject(
        diagram_id, admin.user_id, request.reason or "Rejected by moderator"
    )
    if diagram is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Diagram not found")
    return DiagramResponse.model_validate(diagram)
