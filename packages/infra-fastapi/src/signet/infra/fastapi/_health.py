"""Liveness endpoint.

Reports service status, the configured environment and version, and the
identity provider the service verifies tokens for.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from fastapi import APIRouter, Request

router = APIRouter(prefix="/api", tags=["health"])


@router.get("/health")
async def health(request: Request) -> dict[str, Any]:
    """Return service health.

    Provider details are read from ``app.state.auth_settings`` when the
    auth lifespan has populated it.
    """
    app_settings = getattr(request.app.state, "app_settings", None)
    result: dict[str, Any] = {
        "status": "ok",
        "timestamp": datetime.now(tz=UTC).isoformat(),
        "environment": getattr(app_settings, "environment", "development"),
        "version": request.app.version,
    }

    auth_settings = getattr(request.app.state, "auth_settings", None)
    if auth_settings is not None:
        result["issuer"] = auth_settings.issuer
        result["clientId"] = auth_settings.client_id
    return result
