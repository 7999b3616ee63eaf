"""ASGI middleware for request correlation and access logging."""

from signet.infra.fastapi.middleware.request_id import (
    REQUEST_ID_HEADER,
    RequestLoggingMiddleware,
    get_request_id,
    request_id_ctx,
)

__all__ = [
    "REQUEST_ID_HEADER",
    "RequestLoggingMiddleware",
    "get_request_id",
    "request_id_ctx",
]
