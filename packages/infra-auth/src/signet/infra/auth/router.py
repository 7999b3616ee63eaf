"""Login API endpoints backed by the ID-token verifier.

Endpoints:
    POST /api/login     Verify an ID token obtained by the client
    POST /api/callback  Exchange an authorization code, then verify the ID token
    GET  /api/jwks      Inspect the cached provider keys
    GET  /api/config    OpenID configuration summary for the login UI

Verification failures propagate as domain exceptions and are rendered as
RFC 7807 problem details by the registered exception handlers.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import Annotated, Any

import httpx
from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, ConfigDict, Field
from starlette.concurrency import run_in_threadpool

from signet.foundation.domain.exceptions import (
    AuthenticationError,
    DomainError,
    ServiceUnavailableError,
)
from signet.foundation.domain.identity import VerifiedIdentity
from signet.infra.auth.exceptions import KeyFetchError, UnknownKeyError
from signet.infra.auth.oidc_client import OIDCTokenClient, TokenExchangeError
from signet.infra.auth.settings import AuthSettings, get_auth_settings
from signet.infra.auth.verifier import IDTokenVerifier

router = APIRouter(prefix="/api", tags=["auth"])
logger = logging.getLogger(__name__)

RESPONSE_TYPES_SUPPORTED = ["code", "id_token", "code id_token"]


class LoginRequest(BaseModel):
    """Body of POST /api/login."""

    token: str | None = None


class CallbackRequest(BaseModel):
    """Body of POST /api/callback."""

    code: str | None = None
    redirect_uri: str = ""
    code_verifier: str | None = None


class UserInfo(BaseModel):
    """Identity returned to the login UI."""

    id: str
    name: str
    email: str | None = None
    username: str | None = None

    @classmethod
    def from_identity(cls, identity: VerifiedIdentity) -> UserInfo:
        return cls(
            id=identity.id,
            name=identity.name,
            email=identity.email,
            username=identity.username,
        )


class LoginResponse(BaseModel):
    """Successful login payload."""

    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    user: UserInfo
    id_token: str | None = Field(default=None, serialization_alias="idToken")


def get_settings(request: Request) -> AuthSettings:
    """Return the AuthSettings the app was started with."""
    settings = getattr(request.app.state, "auth_settings", None)
    return settings if settings is not None else get_auth_settings()


def get_verifier(request: Request) -> IDTokenVerifier:
    """Return the app's ID-token verifier.

    Raises:
        ServiceUnavailableError: If authentication is not configured.
    """
    verifier = getattr(request.app.state, "id_token_verifier", None)
    if verifier is None:
        raise ServiceUnavailableError("Authentication service not configured")
    return verifier


def get_token_client(request: Request) -> OIDCTokenClient:
    """Return the app's OIDC token client.

    Raises:
        ServiceUnavailableError: If the lifespan did not create one.
    """
    client = getattr(request.app.state, "oidc_token_client", None)
    if client is None:
        raise ServiceUnavailableError("Authorization code exchange not configured")
    return client


def authenticate(verifier: IDTokenVerifier, token: str) -> VerifiedIdentity:
    """Verify ``token``, forcing one key refresh if its kid is unknown.

    The verifier never retries. When the kid is missing from a key set
    that was still fresh, the provider may have rotated keys since the
    last fetch, so the key set is refetched once and the token verified
    again. A kid missing right after a fetch fails immediately, and so
    does one arriving within the cache's minimum refresh interval of the
    previous fetch.

    Raises:
        VerificationError: Verification failed.
        ServiceUnavailableError: The provider's key set could not be fetched.
    """
    try:
        try:
            return verifier.authenticate(token)
        except UnknownKeyError as exc:
            if exc.refreshed:
                raise
            logger.info("jwks_forced_refresh", extra={"kid": exc.key_id})
            if not verifier.key_cache.refresh_if_older_than():
                raise
            return verifier.authenticate(token)
    except KeyFetchError as exc:
        raise ServiceUnavailableError(
            f"Identity provider keys unavailable: {exc.message}",
            context=exc.context,
        ) from exc


def _log_authenticated(identity: VerifiedIdentity) -> None:
    logger.info(
        "user_authenticated",
        extra={
            "sub": identity.id,
            "display_name": identity.name,
            "email": identity.email,
            "username": identity.username,
        },
    )


@router.post("/login", response_model=LoginResponse, response_model_exclude_none=True)
def login(
    body: LoginRequest,
    verifier: Annotated[IDTokenVerifier, Depends(get_verifier)],
) -> LoginResponse:
    """Verify an ID token and return the authenticated user."""
    if not body.token:
        raise DomainError("Token is required")

    identity = authenticate(verifier, body.token)
    _log_authenticated(identity)
    return LoginResponse(user=UserInfo.from_identity(identity))


@router.post("/callback", response_model=LoginResponse, response_model_exclude_none=True)
async def callback(
    body: CallbackRequest,
    verifier: Annotated[IDTokenVerifier, Depends(get_verifier)],
    token_client: Annotated[OIDCTokenClient, Depends(get_token_client)],
) -> LoginResponse:
    """Exchange an authorization code for tokens and verify the ID token."""
    if not body.code:
        raise DomainError("Authorization code is required")

    logger.info("oidc_code_received", extra={"redirect_uri": body.redirect_uri})
    try:
        tokens = await token_client.exchange_code(
            body.code,
            redirect_uri=body.redirect_uri,
            code_verifier=body.code_verifier,
        )
    except TokenExchangeError as exc:
        raise AuthenticationError(
            str(exc),
            auth_error="invalid_grant",
            error_code="TOKEN_EXCHANGE_FAILED",
            context={"provider_error": exc.error},
        ) from exc
    except httpx.HTTPError as exc:
        raise ServiceUnavailableError(f"Identity provider unreachable: {exc}") from exc

    if not tokens.id_token:
        raise AuthenticationError(
            "ID token not found in response",
            error_code="ID_TOKEN_MISSING",
        )

    identity = await run_in_threadpool(authenticate, verifier, tokens.id_token)
    _log_authenticated(identity)
    return LoginResponse(user=UserInfo.from_identity(identity), id_token=tokens.id_token)


@router.get("/jwks")
def jwks(
    verifier: Annotated[IDTokenVerifier, Depends(get_verifier)],
) -> dict[str, Any]:
    """Report the cached provider keys, fetching them if stale."""
    cache = verifier.key_cache
    try:
        keys = cache.list_keys()
    except KeyFetchError as exc:
        raise ServiceUnavailableError(
            f"Identity provider keys unavailable: {exc.message}",
            context=exc.context,
        ) from exc

    return {
        "keysCount": len(keys),
        "keyIds": list(keys),
        "cacheExpiry": datetime.fromtimestamp(cache.expires_at, tz=UTC).isoformat(),
        "jwksUri": cache.jwks_uri,
        "note": f"Public keys are cached for {int(cache.ttl)} seconds",
    }


@router.get("/config")
def config(settings: Annotated[AuthSettings, Depends(get_settings)]) -> dict[str, Any]:
    """Return the provider endpoints the login UI needs."""
    return {
        "issuer": settings.issuer,
        "authorizationEndpoint": settings.authorization_endpoint,
        "tokenEndpoint": settings.token_endpoint,
        "userinfoEndpoint": settings.userinfo_endpoint,
        "jwksUri": settings.jwks_uri,
        "clientId": settings.client_id,
        "scopesSupported": settings.scopes.split(),
        "responseTypesSupported": RESPONSE_TYPES_SUPPORTED,
    }
