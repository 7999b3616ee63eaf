"""Async HTTP client for the OIDC authorization code exchange.

Posts the authorization code (and optional PKCE verifier) received by the
login callback to the provider's token endpoint and returns the parsed
token response. The ID token it contains is verified separately by
:class:`~signet.infra.auth.verifier.IDTokenVerifier`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

import httpx

logger = logging.getLogger(__name__)

_FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"
_DEFAULT_TIMEOUT = 10.0


@dataclass(frozen=True, slots=True)
class TokenResponse:
    """Parsed response from the OIDC token endpoint.

    Attributes:
        id_token: OIDC ID token (None if the provider omitted it).
        access_token: Access token, if issued.
        token_type: Token type, usually "Bearer".
        expires_in: Access token TTL in seconds, if reported.
    """

    id_token: str | None
    access_token: str | None
    token_type: str
    expires_in: int | None


def _json_object(response: httpx.Response) -> dict[str, Any] | None:
    """Return the response body if it is a JSON object, else None."""
    try:
        body = response.json()
    except ValueError:
        return None
    return body if isinstance(body, dict) else None


def _expires_in(value: Any) -> int | None:
    """Whole seconds from an ``expires_in`` member; None if absent or unusable."""
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(float(value))
    except (TypeError, ValueError, OverflowError):
        logger.warning("oidc_expires_in_ignored", extra={"expires_in": str(value)})
        return None


class TokenExchangeError(Exception):
    """Raised when the authorization code exchange fails.

    Attributes:
        status_code: HTTP status from the identity provider.
        error: OAuth 2.0 error code (e.g., "invalid_grant").
        error_description: Human-readable error from the provider.
    """

    def __init__(self, status_code: int, error: str, error_description: str) -> None:
        self.status_code = status_code
        self.error = error
        self.error_description = error_description
        super().__init__(f"Failed to exchange code: {error} ({status_code})")


class OIDCTokenClient:
    """Async HTTP client for the provider's token endpoint.

    Supports both per-request and shared httpx.AsyncClient modes:
    - If ``client`` is provided, it is reused across calls (caller manages lifecycle).
    - If ``client`` is omitted, an internal client is created lazily on first use.
      Call :meth:`aclose` to release the internal client when done.

    Args:
        token_endpoint: Full URL of the provider's token endpoint.
        client_id: OAuth application client_id.
        client_secret: OAuth application client_secret.
        timeout: HTTP request timeout in seconds.
        client: Optional shared httpx.AsyncClient instance.
    """

    def __init__(
        self,
        token_endpoint: str,
        client_id: str,
        client_secret: str,
        timeout: float = _DEFAULT_TIMEOUT,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._token_endpoint = token_endpoint
        self._client_id = client_id
        self._client_secret = client_secret
        self._timeout = timeout
        self._external_client = client is not None
        self._client: httpx.AsyncClient | None = client

    async def exchange_code(
        self,
        code: str,
        redirect_uri: str,
        code_verifier: str | None = None,
    ) -> TokenResponse:
        """Exchange an authorization code for tokens.

        Args:
            code: Authorization code from the callback query parameter.
            redirect_uri: Must match the value used in the authorization request.
            code_verifier: PKCE verifier, when the client used PKCE.

        Returns:
            TokenResponse with the ID token.

        Raises:
            TokenExchangeError: On 4xx/5xx from the identity provider, or when
                a successful response is not a JSON object.
            httpx.HTTPError: On network failure.
        """
        data = {
            "grant_type": "authorization_code",
            "code": code,
            "redirect_uri": redirect_uri,
            "client_id": self._client_id,
            "client_secret": self._client_secret,
        }
        if code_verifier:
            data["code_verifier"] = code_verifier

        client = self._get_client()
        try:
            response = await client.post(
                self._token_endpoint,
                data=data,
                headers={"Content-Type": _FORM_CONTENT_TYPE},
                timeout=self._timeout,
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            body = _json_object(exc.response) or {}
            error = str(body.get("error") or "unknown")
            logger.error(
                "oidc_token_exchange_failed",
                extra={"status": exc.response.status_code, "error": error},
            )
            raise TokenExchangeError(
                status_code=exc.response.status_code,
                error=error,
                error_description=str(body.get("error_description") or exc),
            ) from exc

        body_json = _json_object(response)
        if body_json is None:
            logger.error(
                "oidc_token_response_invalid",
                extra={"status": response.status_code},
            )
            raise TokenExchangeError(
                status_code=response.status_code,
                error="invalid_response",
                error_description="Token endpoint did not return a JSON object",
            )

        return TokenResponse(
            id_token=(str(body_json["id_token"]) if body_json.get("id_token") else None),
            access_token=(
                str(body_json["access_token"]) if body_json.get("access_token") else None
            ),
            token_type=str(body_json.get("token_type") or "Bearer"),
            expires_in=_expires_in(body_json.get("expires_in")),
        )

    def _get_client(self) -> httpx.AsyncClient:
        """Return the shared or lazily-created httpx.AsyncClient."""
        if self._client is None:
            self._client = httpx.AsyncClient()
        return self._client

    async def aclose(self) -> None:
        """Close the internal httpx.AsyncClient if we own it.

        No-op if the client was provided externally or not yet created.
        """
        if self._client is not None and not self._external_client:
            await self._client.aclose()
            self._client = None
