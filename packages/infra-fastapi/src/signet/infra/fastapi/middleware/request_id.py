"""Request ID and request logging middleware.

This module provides pure ASGI middleware that extracts or generates a
request ID (correlation ID), binds it to structlog context variables for
the request lifecycle, echoes it in the response, and logs one
``request_completed`` event per HTTP request.
"""

from __future__ import annotations

import time
import uuid
from contextvars import ContextVar
from typing import TYPE_CHECKING, Any

import structlog

from signet.infra.observability import get_logger

if TYPE_CHECKING:
    from collections.abc import Callable

# Header name constant
REQUEST_ID_HEADER = "X-Request-ID"

# Context variable for request ID propagation
request_id_ctx: ContextVar[str] = ContextVar("request_id", default="")

logger = get_logger(__name__)


def get_request_id() -> str:
    """Get the current request ID from context.

    Returns the request ID set by RequestLoggingMiddleware for the current
    async context. Returns empty string if called outside of request context.

    Example:
        >>> from signet.infra.fastapi.middleware import get_request_id
        >>> request_id = get_request_id()
    """
    return request_id_ctx.get()


def _is_valid_uuid(value: str | None) -> bool:
    """Check if value is a valid UUID format (any version)."""
    if not value:
        return False
    try:
        uuid.UUID(value)
        return True
    except (ValueError, AttributeError):
        return False


def _extract_header(headers: list[tuple[bytes, bytes]], name: bytes) -> str:
    """Extract a header value from raw ASGI headers."""
    for key, value in headers:
        if key.lower() == name:
            return value.decode("latin-1")
    return ""


class RequestLoggingMiddleware:
    """Pure ASGI middleware for X-Request-ID propagation and access logging.

    This middleware:
    1. Extracts X-Request-ID from incoming request headers
    2. Generates a new UUID4 if the header is missing or not a UUID
    3. Stores the request ID in a context variable and binds it to structlog
    4. Adds X-Request-ID to response headers
    5. Logs ``request_completed`` with method, path, status and duration

    Invalid UUIDs from clients generate new UUIDs rather than returning 400.

    Example:
        >>> from fastapi import FastAPI
        >>> from signet.infra.fastapi.middleware import RequestLoggingMiddleware
        >>>
        >>> app = FastAPI()
        >>> app.add_middleware(RequestLoggingMiddleware)
    """

    def __init__(self, app: Any) -> None:
        self.app = app

    async def __call__(
        self,
        scope: dict[str, Any],
        receive: Callable[..., Any],
        send: Callable[..., Any],
    ) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        headers = scope.get("headers", [])
        request_id = _extract_header(headers, b"x-request-id")

        if not _is_valid_uuid(request_id):
            request_id = str(uuid.uuid4())

        token = request_id_ctx.set(request_id)
        structlog.contextvars.bind_contextvars(request_id=request_id)

        status_code = 500
        started = time.perf_counter()

        async def send_with_request_id(message: dict[str, Any]) -> None:
            nonlocal status_code
            if message["type"] == "http.response.start":
                status_code = message["status"]
                headers = list(message.get("headers", []))
                headers.append((b"x-request-id", request_id.encode("latin-1")))
                message = {**message, "headers": headers}
            await send(message)

        try:
            await self.app(scope, receive, send_with_request_id)
        finally:
            logger.info(
                "request_completed",
                method=scope.get("method", ""),
                path=scope.get("path", ""),
                status=status_code,
                duration_ms=round((time.perf_counter() - started) * 1000, 2),
            )
            request_id_ctx.reset(token)
            structlog.contextvars.unbind_contextvars("request_id")
