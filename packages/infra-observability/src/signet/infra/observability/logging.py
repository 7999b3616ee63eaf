"""Structured logging configuration using structlog.

This module provides environment-aware structured logging with:
- JSON output for production environments
- Console output with colors for development
- Automatic request ID binding from RequestLoggingMiddleware
- Sensitive data redaction (ID tokens, client secrets, PKCE verifiers)
- Standard library ``logging`` records rendered through the same pipeline,
  including their ``extra={...}`` fields

Usage:
    # During application startup
    from signet.infra.observability.logging import configure_logging
    configure_logging()

    # In application code
    from signet.infra.observability import get_logger
    logger = get_logger(__name__)
    logger.info("request_completed", path="/api/login", status=200)
"""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import TYPE_CHECKING, Any

import structlog
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

if TYPE_CHECKING:
    from collections.abc import MutableMapping

# Type alias for structlog processor
Processor = structlog.types.Processor

# Sensitive field names for redaction
SENSITIVE_FIELDS: frozenset[str] = frozenset(
    {
        "password",
        "token",
        "id_token",
        "authorization",
        "code",
        "code_verifier",
        "client_secret",
        "secret",
        "bearer",
        "credential",
    }
)

REDACTED_VALUE: str = "***REDACTED***"


class LoggingSettings(BaseSettings):
    """Logging configuration settings from environment variables.

    Loads configuration from environment variables:
    - LOG_LEVEL: Minimum log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    - ENVIRONMENT: Environment name (development, staging, production, test)

    Attributes:
        log_level: Minimum log level to output. Default: INFO
        environment: Environment name for format selection. Default: development

    Example:
        >>> settings = LoggingSettings()
        >>> settings.use_json_logs
        False  # development uses console format

        >>> settings = LoggingSettings(log_level="DEBUG", environment="production")
        >>> settings.use_json_logs
        True  # production uses JSON format
    """

    model_config = SettingsConfigDict(
        env_prefix="",
        extra="ignore",
        populate_by_name=True,
    )

    log_level: str = Field(
        default="INFO",
        alias="LOG_LEVEL",
        description="Minimum log level to output",
    )
    environment: str = Field(
        default="development",
        alias="ENVIRONMENT",
        description="Environment name for format selection",
    )

    @field_validator("log_level", mode="before")
    @classmethod
    def normalize_log_level(cls, v: Any) -> str:
        """Normalize log level to uppercase."""
        if isinstance(v, str):
            return v.upper()
        return str(v)

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is a known level.

        Raises:
            ValueError: If log level is not a valid Python logging level.
        """
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v not in valid_levels:
            msg = f"log_level must be one of {valid_levels}"
            raise ValueError(msg)
        return v

    @property
    def use_json_logs(self) -> bool:
        """True for the production environment, False otherwise."""
        return self.environment == "production"

    @property
    def log_level_int(self) -> int:
        """Log level as a :mod:`logging` module constant."""
        return getattr(logging, self.log_level, logging.INFO)


class SensitiveDataProcessor:
    """Structlog processor to redact sensitive fields from log context.

    Redacts values for fields matching:
    1. Exact field names in SENSITIVE_FIELDS (case-insensitive)
    2. Field names containing "password", "token" or "secret" as substrings

    Example:
        >>> processor = SensitiveDataProcessor()
        >>> event_dict = {"event": "callback", "id_token": "eyJ..."}
        >>> result = processor(None, "info", event_dict)
        >>> result["id_token"]
        '***REDACTED***'
    """

    def __call__(
        self,
        logger: Any,
        method_name: str,
        event_dict: MutableMapping[str, Any],
    ) -> MutableMapping[str, Any]:
        for key in list(event_dict.keys()):
            if self._is_sensitive(key):
                event_dict[key] = REDACTED_VALUE
        return event_dict

    def _is_sensitive(self, key: str) -> bool:
        key_lower = key.lower()
        if key_lower in SENSITIVE_FIELDS:
            return True
        return "password" in key_lower or "token" in key_lower or "secret" in key_lower


@lru_cache(maxsize=1)
def get_logging_settings() -> LoggingSettings:
    """Get cached LoggingSettings instance.

    Clear cache with ``get_logging_settings.cache_clear()`` for testing.
    """
    return LoggingSettings()


def _shared_processors() -> list[Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        SensitiveDataProcessor(),
    ]


def _renderer(settings: LoggingSettings) -> Processor:
    if settings.use_json_logs:
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(colors=True)


def _configure_stdlib_logging(settings: LoggingSettings) -> None:
    """Render standard library log records through the structlog pipeline.

    Library modules log with ``logging.getLogger(__name__)`` and pass
    context via ``extra``; ``ExtraAdder`` lifts those fields into the event.
    """
    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=[
            structlog.stdlib.add_logger_name,
            structlog.stdlib.ExtraAdder(),
            *_shared_processors(),
        ],
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            structlog.processors.format_exc_info,
            _renderer(settings),
        ],
    )
    handler = logging.StreamHandler()
    handler.setFormatter(formatter)

    root = logging.getLogger()
    for existing in list(root.handlers):
        if isinstance(existing.formatter, structlog.stdlib.ProcessorFormatter):
            root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(settings.log_level_int)


def configure_logging(settings: LoggingSettings | None = None) -> None:
    """Configure structlog and stdlib logging for structured output.

    Configures structlog with:
    - Context variable merging (for request IDs from RequestLoggingMiddleware)
    - Log level filtering
    - ISO 8601 timestamps (UTC)
    - Sensitive data redaction
    - Environment-aware rendering (JSON for production, console for development)

    Should be called once during application startup (in lifespan handler).

    Args:
        settings: Optional LoggingSettings instance. If not provided,
            settings are loaded from environment variables.
    """
    if settings is None:
        settings = get_logging_settings()

    processors: list[Processor] = _shared_processors()
    processors.append(structlog.processors.format_exc_info)
    processors.append(_renderer(settings))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(settings.log_level_int),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )
    _configure_stdlib_logging(settings)


def get_logger(name: str | None = None) -> structlog.typing.WrappedLogger:
    """Get a structlog logger bound to the given name.

    Args:
        name: Logger name (typically __name__ from calling module).
            If None, returns unbound logger.

    Returns:
        Lazy structlog logger carrying the name as ``logger_name``. It is
        assembled on first use, so module-level loggers pick up
        :func:`configure_logging`.

    Example:
        >>> from signet.infra.observability import get_logger
        >>> logger = get_logger(__name__)
        >>> logger.info("request_started", path="/api/health", method="GET")
    """
    if name is None:
        return structlog.get_logger()
    return structlog.get_logger(logger_name=name)
