"""Domain exception hierarchy for type-safe error handling.

This module provides the base exception hierarchy for all domain errors.
Exceptions include structured error codes and context for consistent
API error handling and logging.

Example:
    >>> from signet.foundation.domain.exceptions import AuthenticationError
    >>> raise AuthenticationError("Token has expired", error_code="TOKEN_EXPIRED")
"""

from __future__ import annotations

from typing import Any

__all__ = [
    "AuthenticationError",
    "DomainError",
    "ServiceUnavailableError",
]


class DomainError(Exception):
    """Base class for all domain errors.

    Provides error code and structured context for debugging. All domain
    exceptions inherit from this class to enable consistent API error
    handling and logging.

    Attributes:
        error_code: Machine-readable error code for client handling.
        message: Human-readable error description.
        context: Structured debugging information (key ids, claim names).

    Example:
        >>> raise DomainError("Operation failed", context={"kid": "abc"})
        DomainError: Operation failed (kid=abc)
    """

    error_code: str = "DOMAIN_ERROR"

    def __init__(self, message: str, context: dict[str, Any] | None = None) -> None:
        """Initialize domain error with message and optional context.

        Args:
            message: Human-readable error description.
            context: Structured debugging information. Keys should be snake_case.
                     Values are typically strings or primitive types.
        """
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def __str__(self) -> str:
        """String representation including context for logging."""
        if self.context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            return f"{self.message} ({context_str})"
        return self.message

    def __repr__(self) -> str:
        """Detailed representation for debugging."""
        return f"{self.__class__.__name__}({self.message!r}, context={self.context!r})"


class AuthenticationError(DomainError):
    """Raised when authentication fails (missing, expired, invalid token).

    Maps to HTTP 401 Unauthorized. All 401 responses MUST include
    WWW-Authenticate header per RFC 6750.

    Attributes:
        error_code: Machine-readable error code (e.g., "TOKEN_EXPIRED").
        auth_error: RFC 6750 error code for WWW-Authenticate header.

    Example:
        >>> raise AuthenticationError("Token has expired", auth_error="invalid_token",
        ...     error_code="TOKEN_EXPIRED")
    """

    error_code: str = "AUTHENTICATION_ERROR"

    def __init__(
        self,
        message: str,
        auth_error: str = "invalid_token",
        error_code: str = "AUTHENTICATION_ERROR",
        context: dict[str, Any] | None = None,
    ) -> None:
        """Initialize authentication error.

        Args:
            message: Human-readable error description.
            auth_error: RFC 6750 error code for WWW-Authenticate header.
            error_code: Machine-readable error code for client handling.
            context: Structured debugging information.
        """
        self.auth_error = auth_error
        self.error_code = error_code
        super().__init__(message, context)


class ServiceUnavailableError(DomainError):
    """Raised when a required upstream service or configuration is missing.

    Maps to HTTP 503 Service Unavailable. Used when the identity provider
    cannot be reached or authentication is not configured.

    Attributes:
        error_code: "SERVICE_UNAVAILABLE" (class constant).

    Example:
        >>> raise ServiceUnavailableError("Authentication service not configured")
    """

    error_code: str = "SERVICE_UNAVAILABLE"
