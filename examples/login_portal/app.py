"""Login Portal application factory.

Demonstrates the consumer pattern: the auth router and lifespan verify
ID tokens issued by the configured OpenID provider, while the app factory
supplies CORS, request logging, RFC 7807 error handlers and the health
endpoint.

Usage::

    from examples.login_portal.app import create_login_portal_app

    app = create_login_portal_app()

Or run the server directly (reads ``AUTH_*``, ``APP_*``, ``CORS_*``,
``LOG_LEVEL``, ``ENVIRONMENT`` and ``PORT`` from the environment)::

    python -m examples.login_portal.app
"""

from __future__ import annotations

import os
from typing import TYPE_CHECKING

from signet.infra.auth import auth_lifespan
from signet.infra.auth import router as auth_router
from signet.infra.fastapi import (
    LIFESPAN_PRIORITY_AUTH,
    LIFESPAN_PRIORITY_OBSERVABILITY,
    AppSettings,
    LifespanContribution,
    create_app,
)
from signet.infra.observability import observability_lifespan

if TYPE_CHECKING:
    from fastapi import FastAPI

    from signet.infra.auth import AuthSettings

DEFAULT_PORT = 3000


def create_login_portal_app(
    auth_settings: AuthSettings | None = None,
    *,
    app_settings: AppSettings | None = None,
    configure_logging: bool = True,
) -> FastAPI:
    """Create the Login Portal backend.

    Args:
        auth_settings: Provider configuration. Defaults to ``AUTH_*``
            environment variables.
        app_settings: App factory settings. Defaults to ``APP_*`` variables.
        configure_logging: Install structlog configuration at startup.
            Tests disable this to keep pytest's log capture intact.
    """
    hooks = [LifespanContribution(hook=auth_lifespan, priority=LIFESPAN_PRIORITY_AUTH)]
    if configure_logging:
        hooks.append(
            LifespanContribution(
                hook=observability_lifespan,
                priority=LIFESPAN_PRIORITY_OBSERVABILITY,
            )
        )

    app = create_app(
        settings=app_settings or AppSettings(title="Login Portal", version="0.1.0"),
        extra_routers=[auth_router],
        extra_lifespan_hooks=hooks,
    )
    if auth_settings is not None:
        app.state.auth_settings = auth_settings
    return app


def main() -> None:
    import uvicorn

    port = int(os.environ.get("PORT", DEFAULT_PORT))
    uvicorn.run(create_login_portal_app(), host="0.0.0.0", port=port)  # noqa: S104


if __name__ == "__main__":
    main()
