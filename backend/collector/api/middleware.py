"""HTTP middleware: request logging and gzip request decoding."""

from __future__ import annotations

import time
import zlib
from typing import Callable

from starlette.datastructures import Headers
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import PlainTextResponse, Response
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from ..infra.logging import get_logger

logger = get_logger(__name__)

__all__ = ["GzipRequestMiddleware", "RequestLoggingMiddleware"]

MAX_INFLATED_BODY = 8 * 1024 * 1024
_INFLATE_CHUNK = 64 * 1024


class BodyTooLargeError(ValueError):
    """Inflated request body exceeds the configured ceiling."""


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Logs uri, method, status, duration and response size per request."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        start_time = time.perf_counter()
        response = await call_next(request)
        duration_ms = (time.perf_counter() - start_time) * 1000
        uri = request.url.path
        if request.url.query:
            uri = f"{uri}?{request.url.query}"
        logger.info(
            "http_request",
            extra={
                "uri": uri,
                "method": request.method,
                "status": response.status_code,
                "duration_ms": round(duration_ms, 2),
                "size": int(response.headers.get("content-length", 0) or 0),
            },
        )
        return response


class GzipRequestMiddleware:
    """Transparently inflates request bodies sent with ``Content-Encoding: gzip``."""

    def __init__(self, app: ASGIApp, *, max_body_size: int = MAX_INFLATED_BODY) -> None:
        self.app = app
        self.max_body_size = max_body_size

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return
        encoding = Headers(scope=scope).get("content-encoding", "")
        if "gzip" not in encoding.lower():
            await self.app(scope, receive, send)
            return

        body = await _read_body(receive)
        try:
            decoded = _inflate(body, self.max_body_size)
        except BodyTooLargeError:
            logger.warning(
                "gzip_request_too_large",
                extra={"path": scope.get("path"), "limit": self.max_body_size},
            )
            response = PlainTextResponse("request body too large", status_code=413)
            await response(scope, receive, send)
            return
        except zlib.error:
            logger.warning("gzip_request_rejected", extra={"path": scope.get("path")})
            response = PlainTextResponse("invalid gzip body", status_code=400)
            await response(scope, receive, send)
            return

        headers = [
            (key, value)
            for key, value in scope["headers"]
            if key not in (b"content-encoding", b"content-length")
        ]
        headers.append((b"content-length", str(len(decoded)).encode("latin-1")))
        replayed = False

        async def replay() -> Message:
            nonlocal replayed
            if replayed:
                return await receive()
            replayed = True
            return {"type": "http.request", "body": decoded, "more_body": False}

        await self.app(dict(scope, headers=headers), replay, send)


async def _read_body(receive: Receive) -> bytes:
    chunks = []
    while True:
        message = await receive()
        if message["type"] != "http.request":
            break
        chunks.append(message.get("body", b""))
        if not message.get("more_body", False):
            break
    return b"".join(chunks)


def _inflate(body: bytes, limit: int) -> bytes:
    """Decompress a gzip body, refusing to produce more than ``limit`` bytes."""

    decompressor = zlib.decompressobj(16 + zlib.MAX_WBITS)
    output = bytearray()
    pending = body
    while pending:
        output += decompressor.decompress(pending, _INFLATE_CHUNK)
        if len(output) > limit:
            raise BodyTooLargeError(limit)
        pending = decompressor.unconsumed_tail
    output += decompressor.flush()
    if len(output) > limit:
        raise BodyTooLargeError(limit)
    if not decompressor.eof:
        raise zlib.error("truncated gzip stream")
    return bytes(output)
