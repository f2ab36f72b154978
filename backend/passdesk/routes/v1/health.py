# backend/passdesk/routes/v1/health.py
"""
Health check and metrics endpoints for monitoring probes.
"""

from __future__ import annotations

from datetime import datetime, timezone
import logging

from fastapi import APIRouter, Response

from passdesk import __version__
from passdesk.core.config import settings
from passdesk.monitoring.prometheus_metrics import prometheus_metrics
from passdesk.schemas._strict_base import StrictModel

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


class HealthResponse(StrictModel):
    status: str
    service: str
    version: str
    environment: str
    timestamp: str


@router.get("/health", response_model=HealthResponse)
def health_check() -> HealthResponse:
    """Basic liveness; does not touch the database."""
    return HealthResponse(
        status="healthy",
        service="passdesk-api",
        version=__version__,
        environment=settings.environment,
        timestamp=datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
    )


@router.get("/metrics/prometheus", include_in_schema=False)
def prometheus_endpoint() -> Response:
    return Response(
        content=prometheus_metrics.get_metrics(),
        media_type=prometheus_metrics.get_content_type(),
    )
