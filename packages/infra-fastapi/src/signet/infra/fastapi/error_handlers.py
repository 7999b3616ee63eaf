"""RFC 7807 Problem Details exception handlers for FastAPI.

This module provides exception handlers that translate domain exceptions
into standardized HTTP responses following RFC 7807 Problem Details for
HTTP APIs. All handlers return responses with Content-Type: application/problem+json.

Usage:
    from signet.infra.fastapi.error_handlers import register_exception_handlers

    app = FastAPI()
    register_exception_handlers(app)
"""

from __future__ import annotations

import json
import logging
import re
from datetime import datetime
from typing import TYPE_CHECKING, Any

from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from signet.foundation.domain.exceptions import (
    AuthenticationError,
    DomainError,
    ServiceUnavailableError,
)
from signet.infra.fastapi.middleware.request_id import get_request_id

if TYPE_CHECKING:
    from fastapi import FastAPI, Request

logger = logging.getLogger(__name__)

PROBLEM_MEDIA_TYPE = "application/problem+json"


class ProblemDetail(BaseModel):
    """RFC 7807 Problem Details response model.

    Standard fields:
    - type: URI reference identifying the problem type
    - title: Short human-readable summary
    - status: HTTP status code
    - detail: Human-readable explanation
    - instance: URI reference to specific occurrence

    Extension fields:
    - error_code: Machine-readable error code for client handling
    - context: Structured debugging information
    - correlation_id: Request correlation ID (5xx errors only)
    """

    type: str = Field(
        ...,
        description="URI reference identifying problem type",
        examples=["/errors/token-expired", "/errors/service-unavailable"],
    )
    title: str = Field(
        ...,
        description="Short human-readable summary",
        examples=["Unauthorized", "Service Unavailable"],
    )
    status: int = Field(
        ...,
        ge=400,
        le=599,
        description="HTTP status code",
    )
    detail: str = Field(
        ...,
        description="Human-readable explanation",
    )
    instance: str | None = Field(
        default=None,
        description="URI reference to specific occurrence (request path)",
    )
    error_code: str | None = Field(
        default=None,
        description="Machine-readable error code",
        examples=["TOKEN_EXPIRED", "UNKNOWN_KEY"],
    )
    context: dict[str, Any] | None = Field(
        default=None,
        description="Structured debugging information",
    )
    correlation_id: str | None = Field(
        default=None,
        description="Request correlation ID for support requests",
    )


# Patterns for sensitive data
_SENSITIVE_PATTERNS = [
    (
        re.compile(r"secret\s*=\s*['\"]?[^'\"\s]+['\"]?", re.IGNORECASE),
        "secret=[REDACTED]",
    ),
    (
        re.compile(r"token\s*=\s*['\"]?[^'\"\s]+['\"]?", re.IGNORECASE),
        "token=[REDACTED]",
    ),
    (
        re.compile(r"code_verifier\s*=\s*['\"]?[^'\"\s]+['\"]?", re.IGNORECASE),
        "code_verifier=[REDACTED]",
    ),
    (
        re.compile(r"\beyJ[\w-]*\.[\w-]*\.[\w-]*"),
        "[REDACTED_JWT]",
    ),
]

_SENSITIVE_KEYS = frozenset(
    {"secret", "client_secret", "token", "id_token", "code", "code_verifier", "credential"}
)


def _create_problem_response(problem: ProblemDetail) -> JSONResponse:
    """Create JSONResponse with RFC 7807 content type."""
    return JSONResponse(
        status_code=problem.status,
        content=problem.model_dump(exclude_none=True),
        media_type=PROBLEM_MEDIA_TYPE,
    )


def _get_correlation_id() -> str:
    """Return the request ID set by RequestLoggingMiddleware, or "unknown"."""
    request_id = get_request_id()
    return request_id if request_id else "unknown"


def _sanitize_context(context: dict[str, Any] | None) -> dict[str, Any] | None:
    """Sanitize context dictionary for safe inclusion in responses.

    - Converts datetimes to strings
    - Drops sensitive keys and redacts tokens embedded in strings
    - Handles non-serializable types gracefully

    Args:
        context: Context dictionary from exception

    Returns:
        Sanitized context dictionary, or None if nothing remains
    """
    if context is None:
        return None

    sanitized = {}
    for key, value in context.items():
        if key.lower() in _SENSITIVE_KEYS:
            continue
        sanitized[key] = _sanitize_value(value)

    return sanitized if sanitized else None


def _sanitize_value(value: Any) -> Any:
    """Sanitize a single value for JSON serialization."""
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, str):
        return _redact_sensitive_strings(value)
    if isinstance(value, dict):
        return _sanitize_context(value)
    if isinstance(value, (list, tuple)):
        return [_sanitize_value(v) for v in value]
    try:
        json.dumps(value)
        return value
    except (TypeError, ValueError):
        return str(value)


def _redact_sensitive_strings(text: str) -> str:
    """Redact sensitive patterns from string values."""
    result = text
    for pattern, replacement in _SENSITIVE_PATTERNS:
        result = pattern.sub(replacement, result)
    return result


def _problem_type(error_code: str) -> str:
    return f"/errors/{error_code.lower().replace('_', '-')}"


async def authentication_error_handler(
    request: Request,
    exc: AuthenticationError,
) -> JSONResponse:
    """Translate AuthenticationError to 401 with WWW-Authenticate header.

    Covers every token verification failure. Per RFC 6750 Section 3, all
    401 responses for Bearer token errors MUST include a WWW-Authenticate
    header.

    Args:
        request: FastAPI request object.
        exc: AuthenticationError instance with auth_error and error_code.

    Returns:
        JSONResponse with 401 status, problem details, and WWW-Authenticate header.
    """
    problem = ProblemDetail(
        type=_problem_type(exc.error_code),
        title="Unauthorized",
        status=401,
        detail=_redact_sensitive_strings(exc.message),
        instance=str(request.url.path),
        error_code=exc.error_code,
        context=_sanitize_context(exc.context),
    )
    response = _create_problem_response(problem)
    response.headers["WWW-Authenticate"] = f'Bearer realm="API", error="{exc.auth_error}"'
    return response


async def service_unavailable_handler(
    request: Request,
    exc: ServiceUnavailableError,
) -> JSONResponse:
    """Translate ServiceUnavailableError to 503.

    Raised when the identity provider cannot be reached or authentication
    is not configured.
    """
    logger.warning(
        "service_unavailable",
        extra={"path": str(request.url.path), "detail": exc.message},
    )
    problem = ProblemDetail(
        type="/errors/service-unavailable",
        title="Service Unavailable",
        status=503,
        detail=_redact_sensitive_strings(exc.message),
        instance=str(request.url.path),
        error_code=exc.error_code,
        context=_sanitize_context(exc.context),
        correlation_id=_get_correlation_id(),
    )
    return _create_problem_response(problem)


async def domain_error_handler(
    request: Request,
    exc: DomainError,
) -> JSONResponse:
    """Translate generic DomainError to 400 Bad Request.

    This is the fallback handler for domain errors that don't have
    a more specific handler.
    """
    problem = ProblemDetail(
        type="/errors/domain-error",
        title="Bad Request",
        status=400,
        detail=str(exc),
        instance=str(request.url.path),
        error_code=exc.error_code,
        context=_sanitize_context(exc.context),
    )
    return _create_problem_response(problem)


async def request_validation_handler(
    request: Request,
    exc: RequestValidationError,
) -> JSONResponse:
    """Translate Pydantic RequestValidationError to 422.

    This handles FastAPI's built-in validation of request bodies,
    query parameters, and path parameters.
    """
    errors = [
        {
            "loc": list(error.get("loc", [])),
            "msg": error.get("msg", ""),
            "type": error.get("type", ""),
        }
        for error in exc.errors()
    ]

    problem = ProblemDetail(
        type="/errors/request-validation-error",
        title="Request Validation Error",
        status=422,
        detail="Request validation failed",
        instance=str(request.url.path),
        error_code="REQUEST_VALIDATION_ERROR",
        context={"errors": errors},
    )
    return _create_problem_response(problem)


async def unhandled_exception_handler(
    request: Request,
    exc: Exception,
) -> JSONResponse:
    """Catch-all handler for unhandled exceptions.

    Logs full exception details for debugging but returns a sanitized
    response to the client. Includes correlation ID for support requests.

    Starlette renders its own traceback page instead when the app runs
    with ``debug=True``.
    """
    correlation_id = _get_correlation_id()

    logger.exception(
        "unhandled_exception",
        extra={
            "correlation_id": correlation_id,
            "path": str(request.url.path),
            "method": request.method,
            "exception_type": type(exc).__name__,
        },
    )

    problem = ProblemDetail(
        type="/errors/internal-error",
        title="Internal Server Error",
        status=500,
        detail="An internal error occurred. Please contact support with the correlation ID.",
        instance=str(request.url.path),
        error_code="INTERNAL_ERROR",
        correlation_id=correlation_id,
    )
    return _create_problem_response(problem)


def register_exception_handlers(app: FastAPI) -> None:
    """Register all exception handlers on FastAPI application.

    Handlers are registered from most specific to least specific:
    1. AuthenticationError -> 401 (all verification failures)
    2. ServiceUnavailableError -> 503
    3. DomainError -> 400 (base class fallback)
    4. RequestValidationError -> 422 (Pydantic)
    5. Exception -> 500 (catch-all)

    Args:
        app: FastAPI application instance
    """
    # Note: Type ignores needed due to Starlette's overly strict handler typing
    app.add_exception_handler(
        AuthenticationError,
        authentication_error_handler,  # type: ignore[arg-type]
    )
    app.add_exception_handler(
        ServiceUnavailableError,
        service_unavailable_handler,  # type: ignore[arg-type]
    )
    app.add_exception_handler(
        DomainError,
        domain_error_handler,  # type: ignore[arg-type]
    )
    app.add_exception_handler(
        RequestValidationError,
        request_validation_handler,  # type: ignore[arg-type]
    )
    app.add_exception_handler(Exception, unhandled_exception_handler)
