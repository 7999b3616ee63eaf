"""Shared fixtures for integration tests: a Login Portal app wired to fake provider endpoints."""

from __future__ import annotations

import base64
import time
from typing import Any
from urllib.parse import parse_qs

import httpx
import jwt
import pytest
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.hazmat.primitives.asymmetric.rsa import RSAPrivateKey
from fastapi import FastAPI
from fastapi.testclient import TestClient

from examples.login_portal.app import create_login_portal_app
from signet.infra.auth import AuthSettings, IDTokenVerifier, JWKSKeyCache, OIDCTokenClient

ISSUER = "https://id.example.com"
CLIENT_ID = "portal-client"


def _b64url_uint(value: int) -> str:
    data = value.to_bytes((value.bit_length() + 7) // 8, "big")
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


class FakeProvider:
    """In-memory identity provider serving JWKS and the token endpoint."""

    def __init__(self, signing_key: RSAPrivateKey, kid: str = "key-1") -> None:
        self.signing_key = signing_key
        self.kid = kid
        self.jwks_calls = 0
        self.token_requests: list[dict[str, list[str]]] = []
        self.issued_codes: dict[str, str] = {}
        self.raw_token_body: str | None = None

    def mint(self, **overrides: Any) -> str:
        now = int(time.time())
        claims: dict[str, Any] = {
            "iss": ISSUER,
            "aud": CLIENT_ID,
            "sub": "user-123",
            "iat": now,
            "exp": now + 3600,
            "given_name": "Alice",
            "family_name": "Smith",
            "email": "alice@example.com",
            "preferred_username": "alice99",
        }
        claims.update(overrides)
        return jwt.encode(claims, self.signing_key, algorithm="RS256", headers={"kid": self.kid})

    def rotate(self, signing_key: RSAPrivateKey, kid: str) -> None:
        self.signing_key = signing_key
        self.kid = kid

    def jwks(self) -> dict[str, Any]:
        numbers = self.signing_key.public_key().public_numbers()
        return {
            "keys": [
                {
                    "kty": "RSA",
                    "kid": self.kid,
                    "use": "sig",
                    "alg": "RS256",
                    "n": _b64url_uint(numbers.n),
                    "e": _b64url_uint(numbers.e),
                }
            ]
        }

    def handler(self, request: httpx.Request) -> httpx.Response:
        if request.url.path == "/.well-known/jwks.json":
            self.jwks_calls += 1
            return httpx.Response(200, json=self.jwks())
        if request.url.path == "/token":
            form = parse_qs(request.content.decode("ascii"))
            self.token_requests.append(form)
            if self.raw_token_body is not None:
                return httpx.Response(200, text=self.raw_token_body)
            id_token = self.issued_codes.pop(form["code"][0], None)
            if id_token is None:
                return httpx.Response(
                    400,
                    json={"error": "invalid_grant", "error_description": "Unknown code"},
                )
            return httpx.Response(
                200,
                json={"id_token": id_token, "access_token": "at", "token_type": "Bearer"},
            )
        return httpx.Response(404)


@pytest.fixture(scope="session")
def signing_key() -> RSAPrivateKey:
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture()
def provider(signing_key: RSAPrivateKey) -> FakeProvider:
    return FakeProvider(signing_key)


@pytest.fixture()
def auth_settings() -> AuthSettings:
    return AuthSettings(
        _env_file=None,  # type: ignore[call-arg]
        issuer=ISSUER,
        client_id=CLIENT_ID,
        client_secret="portal-secret",
    )


@pytest.fixture()
def refresh_interval() -> float:
    """Minimum seconds between forced key fetches; zero lets rotation tests run instantly."""
    return 0.0


@pytest.fixture()
def login_portal_app(
    provider: FakeProvider, auth_settings: AuthSettings, refresh_interval: float
) -> FastAPI:
    """Login Portal app whose provider traffic goes to ``provider``."""
    transport = httpx.MockTransport(provider.handler)
    app = create_login_portal_app(auth_settings, configure_logging=False)
    app.state.id_token_verifier = IDTokenVerifier(
        JWKSKeyCache(
            auth_settings.jwks_uri,
            client=httpx.Client(transport=transport),
            min_refresh_interval=refresh_interval,
        ),
        issuer=auth_settings.issuer,
        audience=auth_settings.audience,
    )
    app.state.oidc_token_client = OIDCTokenClient(
        auth_settings.token_endpoint,
        client_id=auth_settings.client_id,
        client_secret=auth_settings.client_secret,
        client=httpx.AsyncClient(transport=transport),
    )
    return app


@pytest.fixture()
def client(login_portal_app: FastAPI) -> TestClient:
    """TestClient for the Login Portal app (lifespan hooks executed)."""
    with TestClient(login_portal_app, raise_server_exceptions=False) as c:
        yield c  # type: ignore[misc]
