"""FastAPI application."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from backend.forge.api.routes.diagrams import router as diagrams_router
from backend.forge.api.routes.documents import router as documents_router
from backend.forge.api.routes.health import router as health_router
from backend.forge.api.routes.metrics import router as metrics_router
from backend.forge.api.routes.moderation import router as moderation_router
from backend.forge.api.routes.usage import router as usage_router
from backend.forge.config import get_settings
from backend.forge.utils.logging import configure_logging


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    configure_logging(get_settings().log_level)
    yield


app = FastAPI(title="Diagram Forge API", version="0.1.0", lifespan=lifespan)

# Register routes
app.include_router(health_router, tags=["health"])
app.include_router(metrics_router, tags=["metrics"])
app.include_router(documents_router)
app.include_router(diagrams_router)
app.include_router(moderation_router)
app.include_router(usage_router)


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint."""
    return {"message": "Diagram Forge API", "version": "0.1.0"}
