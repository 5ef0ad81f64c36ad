"""Plain-text error responses shared by the metrics routers."""

from __future__ import annotations

from fastapi import Request, status
from fastapi.responses import PlainTextResponse

from ..domain.metrics import MetricsServiceError
from ..domain.storage import StorageError
from ..infra.logging import get_logger

logger = get_logger(__name__)

NOT_FOUND = "not found"
NAME_REQUIRED = "metric name is required"


def plain_text(status_code: int, message: str) -> PlainTextResponse:
    return PlainTextResponse(message, status_code=status_code)


def service_error_response(exc: MetricsServiceError) -> PlainTextResponse:
    return plain_text(int(exc.status_code), exc.message)


def unsupported_media_type(expected: str) -> PlainTextResponse:
    return plain_text(
        status.HTTP_415_UNSUPPORTED_MEDIA_TYPE,
        f"unsupported media type: expected {expected}",
    )


def content_type_allowed(request: Request, expected: str) -> bool:
    """An absent Content-Type is accepted; otherwise it must start with ``expected``."""

    content_type = request.headers.get("content-type", "")
    return not content_type or content_type.lower().startswith(expected)


async def storage_error_handler(request: Request, exc: StorageError) -> PlainTextResponse:
    logger.error(
        "metrics_storage_failed",
        exc_info=exc,
        extra={"path": request.url.path, "method": request.method},
    )
    return plain_text(status.HTTP_500_INTERNAL_SERVER_ERROR, "internal server error")
