"""Health check endpoints.

- /health: liveness, always ok while the process runs
- /healthz: checks DB and Redis connectivity with component details
"""

from typing import Any

import redis.asyncio as aioredis
from fastapi import APIRouter
from fastapi.responses import JSONResponse
from sqlalchemy import text

from backend.forge.config import Settings, get_settings
from backend.forge.db.engine import get_session_factory

router = APIRouter()


async def check_db() -> tuple[bool, str]:
    """Check database connectivity.

    Returns:
        (is_ok, status_message)
    """
    try:
        async with get_session_factory()() as session:
            await session.execute(text("SELECT 1"))
        return (True, "ok")
    except Exception as e:
        return (False, f"error: {type(e).__name__}")


async def check_redis(settings: Settings) -> tuple[bool, str]:
    """Check Redis connectivity.

    Returns:
        (is_ok, status_message)
    """
    if not settings.redis_url:
        return (True, "not_configured")

    client = aioredis.from_url(settings.redis_url, decode_responses=True)
    try:
        await client.ping()
        return (True, "ok")
    except Exception as e:
        return (False, f"error: {type(e).__name__}")
    finally:
        await client.aclose()


@router.get("/health")
async def health() -> dict[str, str]:
    """Simple health check for Docker/k8s.

    Returns:
        200 OK always (application is running)
    """
    return {"status": "ok"}


@router.get("/healthz", response_model=None)
async def healthz() -> dict[str, Any] | JSONResponse:
    """Readiness check.

    Returns:
        200 with component status if core systems ok
        503 if a critical component fails
    """
    settings = get_settings()

    db_ok, db_status = await check_db()
    redis_ok, redis_status = await check_redis(settings)

    response_body = {
        "status": "ok" if db_ok and redis_ok else "degraded",
        "components": {
            "db": db_status,
            "redis": redis_status,
            "ai": "configured" if settings.openai_api_key else "stub",
        },
    }

    if not (db_ok and redis_ok):
        return JSONResponse(content=response_body, status_code=503)

    return response_body
