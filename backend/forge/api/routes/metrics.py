"""Prometheus metrics endpoint."""

from fastapi import APIRouter, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

router = APIRouter()


@router.get("/metrics")
async def metrics() -> Response:
    """Prometheus metrics endpoint.

    Exposes all registered Prometheus metrics including:
    - documents_processed_total{status}
    - chunks_generated_total{outcome}
    - moderation_decisions_total{action}
    - ai_requests_total{operation, outcome}
    - ai_tokens_total{operation, kind}
    """
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
