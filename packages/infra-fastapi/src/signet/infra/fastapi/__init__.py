"""Signet Infra FastAPI -- app factory, error handlers, and middleware."""

from signet.infra.fastapi.app_factory import create_app
from signet.infra.fastapi.error_handlers import ProblemDetail, register_exception_handlers
from signet.infra.fastapi.lifespan import (
    LIFESPAN_PRIORITY_AUTH,
    LIFESPAN_PRIORITY_OBSERVABILITY,
    LifespanContribution,
    compose_lifespan,
)
from signet.infra.fastapi.middleware import RequestLoggingMiddleware, get_request_id
from signet.infra.fastapi.settings import AppSettings, CORSSettings

__all__ = [
    "LIFESPAN_PRIORITY_AUTH",
    "LIFESPAN_PRIORITY_OBSERVABILITY",
    "AppSettings",
    "CORSSettings",
    "LifespanContribution",
    "ProblemDetail",
    "RequestLoggingMiddleware",
    "compose_lifespan",
    "create_app",
    "get_request_id",
    "register_exception_handlers",
]
