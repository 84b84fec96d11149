from __future__ import annotations

from fastapi import APIRouter, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

router = APIRouter(tags=["system"])


@router.get("/metrics")
async def metrics() -> Response:
    """
    Expose Prometheus metrics collected via MetricsMiddleware, the tool registry and the
    upstream client.

    Returns 200 with the latest metrics in Prometheus text format.
    """
    payload = generate_latest()  # bytes
    return Response(content=payload, media_type=CONTENT_TYPE_LATEST)
