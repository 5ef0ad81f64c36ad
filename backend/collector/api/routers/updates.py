"""Metric ingestion endpoints (path-encoded text and JSON envelope)."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse, PlainTextResponse, Response
from starlette.concurrency import run_in_threadpool

from ...api.dependencies import get_metrics_service
from ...api.errors import (
    content_type_allowed,
    plain_text,
    service_error_response,
    unsupported_media_type,
)
from ...api.paths import MetricPathError, parse_metric_path
from ...api.schemas import decode_envelope
from ...domain.metrics import MetricsService, MetricsServiceError

router = APIRouter(prefix="/update", tags=["updates"])


@router.post("/", summary="Update Metric (JSON)")
async def update_metric_json(
    request: Request,
    service: MetricsService = Depends(get_metrics_service),
) -> Response:
    if not content_type_allowed(request, "application/json"):
        return unsupported_media_type("application/json")
    raw = await request.body()
    try:
        envelope = decode_envelope(raw)
        current = await run_in_threadpool(service.update_envelope, envelope)
    except MetricsServiceError as exc:
        return service_error_response(exc)
    return JSONResponse(status_code=status.HTTP_200_OK, content=current.to_dict())


@router.post("/{metric_path:path}", summary="Update Metric (text)")
def update_metric_text(
    metric_path: str,
    request: Request,
    service: MetricsService = Depends(get_metrics_service),
) -> PlainTextResponse:
    if not content_type_allowed(request, "text/plain"):
        return unsupported_media_type("text/plain")
    try:
        target = parse_metric_path(metric_path)
    except MetricPathError as exc:
        return plain_text(status.HTTP_404_NOT_FOUND, exc.message)
    try:
        service.update_metric(target.kind, target.name, target.value)
    except MetricsServiceError as exc:
        return service_error_response(exc)
    return plain_text(status.HTTP_200_OK, "OK")
