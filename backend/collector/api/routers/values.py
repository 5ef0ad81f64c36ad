"""Metric query endpoints (path-encoded text and JSON envelope)."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse, PlainTextResponse, Response
from starlette.concurrency import run_in_threadpool

from ...api.dependencies import get_metrics_service
from ...api.errors import (
    NOT_FOUND,
    content_type_allowed,
    plain_text,
    service_error_response,
    unsupported_media_type,
)
from ...api.paths import MetricPathError, parse_metric_path
from ...api.schemas import decode_envelope
from ...domain.metrics import MetricsService, MetricsServiceError

router = APIRouter(prefix="/value", tags=["values"])


@router.post("/", summary="Get Metric (JSON)")
async def get_metric_json(
    request: Request,
    service: MetricsService = Depends(get_metrics_service),
) -> Response:
    if not content_type_allowed(request, "application/json"):
        return unsupported_media_type("application/json")
    raw = await request.body()
    try:
        envelope = decode_envelope(raw)
        current = await run_in_threadpool(service.get_envelope, envelope)
    except MetricsServiceError as exc:
        return service_error_response(exc)
    if current is None:
        return plain_text(status.HTTP_404_NOT_FOUND, NOT_FOUND)
    return JSONResponse(status_code=status.HTTP_200_OK, content=current.to_dict())


@router.get("/{metric_path:path}", summary="Get Metric (text)")
def get_metric_text(
    metric_path: str,
    service: MetricsService = Depends(get_metrics_service),
) -> PlainTextResponse:
    try:
        target = parse_metric_path(metric_path)
        value = service.get_metric(target.kind, target.name)
    except MetricPathError as exc:
        return plain_text(status.HTTP_404_NOT_FOUND, exc.message)
    except MetricsServiceError as exc:
        return service_error_response(exc)
    if value is None:
        return plain_text(status.HTTP_404_NOT_FOUND, NOT_FOUND)
    return plain_text(status.HTTP_200_OK, value)
