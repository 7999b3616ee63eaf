"""Shared fixtures for infra-auth tests: RSA keys, JWKS documents, signed tokens."""

from __future__ import annotations

import base64
import json
from collections.abc import Callable
from typing import Any

import httpx
import jwt
import pytest
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.hazmat.primitives.asymmetric.rsa import RSAPrivateKey

from signet.infra.auth.jwks import JWKSKeyCache

ISSUER = "https://id.example.com"
CLIENT_ID = "portal-client"
JWKS_URI = f"{ISSUER}/.well-known/jwks.json"
NOW = 1_700_000_000.0


def _b64url_uint(value: int) -> str:
    data = value.to_bytes((value.bit_length() + 7) // 8, "big")
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def public_jwk(private_key: RSAPrivateKey, kid: str, **extra: Any) -> dict[str, Any]:
    numbers = private_key.public_key().public_numbers()
    jwk: dict[str, Any] = {
        "kty": "RSA",
        "kid": kid,
        "use": "sig",
        "alg": "RS256",
        "n": _b64url_uint(numbers.n),
        "e": _b64url_uint(numbers.e),
    }
    jwk.update(extra)
    return jwk


class FakeClock:
    """Manually advanced Unix clock."""

    def __init__(self, now: float = NOW) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeJWKSEndpoint:
    """Serves a mutable JWKS document through ``httpx.MockTransport``."""

    def __init__(self, document: dict[str, Any]) -> None:
        self.document: Any = document
        self.status_code = 200
        self.body: bytes | None = None
        self.error: Exception | None = None
        self.calls = 0

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.calls += 1
        if self.error is not None:
            raise self.error
        if self.body is not None:
            return httpx.Response(self.status_code, content=self.body)
        return httpx.Response(self.status_code, json=self.document)

    def client(self) -> httpx.Client:
        return httpx.Client(transport=httpx.MockTransport(self.handler))


@pytest.fixture(scope="session")
def signing_key() -> RSAPrivateKey:
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def other_key() -> RSAPrivateKey:
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def jwks_endpoint(signing_key: RSAPrivateKey) -> FakeJWKSEndpoint:
    return FakeJWKSEndpoint({"keys": [public_jwk(signing_key, "key-1")]})


@pytest.fixture()
def jwk_factory() -> Callable[..., dict[str, Any]]:
    return public_jwk


@pytest.fixture()
def claims() -> dict[str, Any]:
    return {
        "iss": ISSUER,
        "aud": CLIENT_ID,
        "sub": "user-123",
        "iat": int(NOW) - 60,
        "exp": int(NOW) + 3600,
        "name": "Alice Smith",
        "email": "alice@example.com",
        "preferred_username": "alice99",
    }


@pytest.fixture()
def make_token(signing_key: RSAPrivateKey) -> Callable[..., str]:
    """Return a factory minting RS256 tokens signed with ``signing_key``."""

    def _make(
        payload: dict[str, Any],
        *,
        kid: str | None = "key-1",
        key: RSAPrivateKey | None = None,
    ) -> str:
        headers = {"kid": kid} if kid is not None else None
        return jwt.encode(payload, key or signing_key, algorithm="RS256", headers=headers)

    return _make


@pytest.fixture()
def encode_segment() -> Callable[[dict[str, Any]], str]:
    """Return a base64url encoder for hand-built token segments."""

    def _encode(data: dict[str, Any]) -> str:
        raw = json.dumps(data).encode("utf-8")
        return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")

    return _encode


@pytest.fixture()
def key_cache(jwks_endpoint: FakeJWKSEndpoint, clock: FakeClock) -> JWKSKeyCache:
    """Key cache backed by ``jwks_endpoint`` with a one-hour TTL."""
    client = jwks_endpoint.client()
    cache = JWKSKeyCache(JWKS_URI, ttl=3600, client=client, clock=clock)
    yield cache  # type: ignore[misc]
    client.close()
