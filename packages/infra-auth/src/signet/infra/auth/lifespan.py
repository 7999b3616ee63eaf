"""Auth lifespan hook for verifier construction and client cleanup.

Builds the JWKS key cache, the ID-token verifier, and the OIDC token
client once at startup and stores them on ``app.state`` for the routes.
Objects already present on ``app.state`` (injected by tests or by an
embedding application) are left in place.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Any

from signet.infra.auth.jwks import JWKSKeyCache
from signet.infra.auth.oidc_client import OIDCTokenClient
from signet.infra.auth.settings import AuthSettings, get_auth_settings
from signet.infra.auth.verifier import IDTokenVerifier

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

logger = logging.getLogger(__name__)


def build_verifier(settings: AuthSettings) -> IDTokenVerifier:
    """Create a verifier and its key cache from settings.

    Raises:
        ValueError: If the settings are incomplete.
    """
    settings.validate_config()
    key_cache = JWKSKeyCache(
        settings.jwks_uri,
        ttl=settings.jwks_cache_ttl,
        timeout=settings.jwks_fetch_timeout,
        min_refresh_interval=settings.jwks_refresh_interval,
    )
    return IDTokenVerifier(
        key_cache,
        issuer=settings.issuer,
        audience=settings.audience,
        leeway=settings.clock_leeway,
    )


@asynccontextmanager
async def auth_lifespan(app: Any) -> AsyncIterator[None]:
    """Manage auth resources across the application lifecycle.

    Startup:
        1. Resolve AuthSettings (``app.state.auth_settings`` or environment).
        2. Build the ID-token verifier unless one is already on app.state.
        3. Build the OIDC token client unless one is already on app.state.

    Shutdown:
        1. Close the HTTP clients created here.

    Args:
        app: The application instance.
    """
    settings: AuthSettings = getattr(app.state, "auth_settings", None) or get_auth_settings()
    app.state.auth_settings = settings

    owned_cache: JWKSKeyCache | None = None
    owned_client: OIDCTokenClient | None = None

    if getattr(app.state, "id_token_verifier", None) is None:
        if settings.is_configured():
            verifier = build_verifier(settings)
            owned_cache = verifier.key_cache
            app.state.id_token_verifier = verifier
            logger.info(
                "auth_lifespan: ID token verifier initialized",
                extra={"issuer": settings.issuer, "jwks_uri": settings.jwks_uri},
            )
        else:
            app.state.id_token_verifier = None
            logger.warning("auth_lifespan: issuer or client id not configured")

    if getattr(app.state, "oidc_token_client", None) is None:
        owned_client = OIDCTokenClient(
            settings.token_endpoint,
            client_id=settings.client_id,
            client_secret=settings.client_secret,
        )
        app.state.oidc_token_client = owned_client

    try:
        yield
    finally:
        if owned_cache is not None:
            owned_cache.close()
        if owned_client is not None:
            await owned_client.aclose()
        logger.info("auth_lifespan: shutdown complete")
