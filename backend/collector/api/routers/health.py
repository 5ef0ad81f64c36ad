"""Durable backend connectivity probe."""

from fastapi import APIRouter, Depends, status
from fastapi.responses import PlainTextResponse

from ...api.dependencies import get_health_pinger
from ...api.errors import plain_text
from ...domain.storage import SupportsPing
from ...infra.db import DEFAULT_PING_TIMEOUT

router = APIRouter(tags=["health"])


@router.get("/ping")
def ping(pinger: SupportsPing | None = Depends(get_health_pinger)) -> PlainTextResponse:
    """Return 200 when the SQL backend answers within the probe timeout."""

    if pinger is None:
        return plain_text(status.HTTP_500_INTERNAL_SERVER_ERROR, "DB not configured")
    if not pinger.ping(DEFAULT_PING_TIMEOUT):
        return plain_text(status.HTTP_500_INTERNAL_SERVER_ERROR, "DB ping failed")
    return plain_text(status.HTTP_200_OK, "OK")
