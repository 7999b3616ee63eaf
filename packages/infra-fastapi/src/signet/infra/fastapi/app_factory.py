"""FastAPI application factory.

Provides :func:`create_app` which wires CORS, request logging, RFC 7807
exception handlers, the health router, caller-supplied routers and
lifespan hooks into one application.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from fastapi import FastAPI
from starlette.middleware.cors import CORSMiddleware

from signet.infra.fastapi._health import router as health_router
from signet.infra.fastapi.error_handlers import register_exception_handlers
from signet.infra.fastapi.lifespan import LifespanContribution, compose_lifespan
from signet.infra.fastapi.middleware.request_id import RequestLoggingMiddleware
from signet.infra.fastapi.settings import AppSettings

if TYPE_CHECKING:
    from fastapi import APIRouter

logger = logging.getLogger(__name__)


def create_app(
    settings: AppSettings | None = None,
    *,
    extra_routers: list[APIRouter] | None = None,
    extra_lifespan_hooks: list[LifespanContribution] | None = None,
) -> FastAPI:
    """Create a FastAPI application.

    Args:
        settings: Application settings. If ``None``, loaded from environment.
        extra_routers: Routers to include after the health router.
        extra_lifespan_hooks: Lifespan hooks, ordered by priority.

    Returns:
        Configured FastAPI application instance.
    """
    settings = settings or AppSettings()

    app = FastAPI(
        title=settings.title,
        version=settings.version,
        description=settings.description,
        docs_url=settings.docs_url,
        redoc_url=settings.redoc_url,
        openapi_url=settings.openapi_url,
        debug=settings.debug,
        lifespan=compose_lifespan(list(extra_lifespan_hooks or [])),
    )
    app.state.app_settings = settings

    # Added last-to-first: CORS ends up outermost, request logging inside it
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors.allow_origins,
        allow_credentials=settings.cors.allow_credentials,
        allow_methods=settings.cors.allow_methods,
        allow_headers=settings.cors.allow_headers,
        expose_headers=settings.cors.expose_headers,
    )

    register_exception_handlers(app)

    for router in [health_router, *(extra_routers or [])]:
        app.include_router(router)
        logger.info("router_included", extra={"prefix": router.prefix, "tags": router.tags})

    return app
