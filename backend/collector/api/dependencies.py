"""Shared API dependencies."""

from __future__ import annotations

from fastapi import Request

from ..domain.metrics import MetricsService
from ..domain.storage import SupportsPing

__all__ = ["get_health_pinger", "get_metrics_service"]


def get_metrics_service(request: Request) -> MetricsService:
    """Return the service composed for this application instance."""

    return request.app.state.metrics_service


def get_health_pinger(request: Request) -> SupportsPing | None:
    """Return the durable backend probe, or ``None`` for the volatile backend."""

    storage = request.app.state.metrics_service.storage
    if isinstance(storage, SupportsPing):
        return storage
    return None
