"""Admin usage endpoint - token totals per user."""

from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from backend.forge.api.auth import RequestContext, require_admin
from backend.forge.api.schemas import UsageTotalsResponse, UserUsageResponse
from backend.forge.db.engine import get_session
from backend.forge.db.repositories import SqlTokenUsageRepository

router = APIRouter(prefix="/admin/usage", tags=["usage"])


@router.get("", response_model=UsageTotalsResponse)
async def usage_totals(
    _admin: Annotated[RequestContext, Depends(require_admin)],
    session: Annotated[AsyncSession, Depends(get_session)],
) -> UsageTotalsResponse:
    totals = await SqlTokenUsageRepository(session).totals_by_user()
    ranked = sorted(totals.items(), key=lambda item: item[1], reverse=True)
    return UsageTotalsResponse(
        users=[UserUsageResponse(user_id=user_id, total_tokens=total) for user_id, total in ranked]
    )
