"""Signet Infra Observability -- structlog logging configuration."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Any

from signet.infra.observability.logging import (
    LoggingSettings,
    SensitiveDataProcessor,
    configure_logging,
    get_logger,
    get_logging_settings,
)

if TYPE_CHECKING:
    from collections.abc import AsyncIterator


@asynccontextmanager
async def observability_lifespan(app: Any) -> AsyncIterator[None]:
    """Lifespan hook that configures logging on startup.

    Args:
        app: The FastAPI application instance.
    """
    configure_logging()
    yield


__all__ = [
    "LoggingSettings",
    "SensitiveDataProcessor",
    "configure_logging",
    "get_logger",
    "get_logging_settings",
    "observability_lifespan",
]
