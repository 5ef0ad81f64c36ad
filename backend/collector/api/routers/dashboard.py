"""Dashboard listing of every stored metric."""

from __future__ import annotations

from typing import Dict

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from ...api.dependencies import get_metrics_service
from ...domain.metrics import MetricsService, format_gauge

router = APIRouter(tags=["dashboard"])


class DashboardResponse(BaseModel):
    """Every gauge (canonically formatted) and counter, sorted by name."""

    gauges: Dict[str, str] = Field(default_factory=dict)
    counters: Dict[str, int] = Field(default_factory=dict)


@router.get("/", response_model=DashboardResponse, summary="List Metrics")
def list_metrics(
    service: MetricsService = Depends(get_metrics_service),
) -> DashboardResponse:
    snapshot = service.snapshot()
    return DashboardResponse(
        gauges={name: format_gauge(snapshot.gauges[name]) for name in sorted(snapshot.gauges)},
        counters={name: snapshot.counters[name] for name in sorted(snapshot.counters)},
    )
