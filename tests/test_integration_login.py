"""Integration tests: Login Portal end to end against a fake identity provider."""

from __future__ import annotations

import time

import pytest
from cryptography.hazmat.primitives.asymmetric import rsa


@pytest.mark.integration
class TestLogin:
    def test_login_with_valid_token(self, client, provider) -> None:
        resp = client.post("/api/login", json={"token": provider.mint()})
        assert resp.status_code == 200
        assert resp.json()["user"] == {
            "id": "user-123",
            "name": "Alice Smith",
            "email": "alice@example.com",
            "username": "alice99",
        }
        assert "x-request-id" in resp.headers

    def test_keys_cached_across_logins(self, client, provider) -> None:
        for _ in range(3):
            assert client.post("/api/login", json={"token": provider.mint()}).status_code == 200
        assert provider.jwks_calls == 1

    def test_expired_token_rejected(self, client, provider) -> None:
        now = int(time.time())
        resp = client.post(
            "/api/login", json={"token": provider.mint(iat=now - 7200, exp=now - 3600)}
        )
        assert resp.status_code == 401
        assert resp.headers["content-type"] == "application/problem+json"
        assert resp.json()["error_code"] == "TOKEN_EXPIRED"

    def test_token_for_other_client_rejected(self, client, provider) -> None:
        resp = client.post("/api/login", json={"token": provider.mint(aud="other-app")})
        assert resp.status_code == 401
        assert resp.json()["error_code"] == "INVALID_AUDIENCE"

    def test_provider_key_rotation(self, client, provider) -> None:
        assert client.post("/api/login", json={"token": provider.mint()}).status_code == 200

        provider.rotate(rsa.generate_private_key(public_exponent=65537, key_size=2048), "key-2")
        resp = client.post("/api/login", json={"token": provider.mint()})

        assert resp.status_code == 200
        assert provider.jwks_calls == 2

    @pytest.mark.parametrize("refresh_interval", [60.0])
    def test_unknown_kids_do_not_refetch_keys_per_request(self, client, provider) -> None:
        assert client.post("/api/login", json={"token": provider.mint()}).status_code == 200

        provider.rotate(rsa.generate_private_key(public_exponent=65537, key_size=2048), "key-2")
        for _ in range(10):
            resp = client.post("/api/login", json={"token": provider.mint()})
            assert resp.json()["error_code"] == "UNKNOWN_KEY"

        assert provider.jwks_calls == 1

    def test_missing_token(self, client) -> None:
        resp = client.post("/api/login", json={})
        assert resp.status_code == 400


@pytest.mark.integration
class TestCallback:
    def test_code_exchange(self, client, provider) -> None:
        id_token = provider.mint(name="Alice S.")
        provider.issued_codes["code-1"] = id_token

        resp = client.post(
            "/api/callback",
            json={
                "code": "code-1",
                "redirect_uri": "http://localhost:5173/callback",
                "code_verifier": "pkce-verifier",
            },
        )

        assert resp.status_code == 200
        body = resp.json()
        assert body["user"]["name"] == "Alice S."
        assert body["idToken"] == id_token
        form = provider.token_requests[0]
        assert form["grant_type"] == ["authorization_code"]
        assert form["client_secret"] == ["portal-secret"]
        assert form["code_verifier"] == ["pkce-verifier"]

    def test_unknown_code(self, client, provider) -> None:
        resp = client.post("/api/callback", json={"code": "nope"})
        assert resp.status_code == 401
        assert resp.json()["error_code"] == "TOKEN_EXCHANGE_FAILED"

    def test_token_endpoint_returns_html(self, client, provider) -> None:
        provider.raw_token_body = "<html>Service maintenance</html>"
        resp = client.post("/api/callback", json={"code": "code-1"})
        assert resp.status_code == 401
        assert resp.json()["error_code"] == "TOKEN_EXCHANGE_FAILED"


@pytest.mark.integration
class TestInfoEndpoints:
    def test_health(self, client) -> None:
        resp = client.get("/api/health")
        assert resp.status_code == 200
        body = resp.json()
        assert body["status"] == "ok"
        assert body["version"] == "0.1.0"
        assert body["issuer"] == "https://id.example.com"
        assert body["clientId"] == "portal-client"

    def test_config(self, client) -> None:
        resp = client.get("/api/config")
        assert resp.status_code == 200
        assert resp.json()["tokenEndpoint"] == "https://id.example.com/token"

    def test_jwks(self, client, provider) -> None:
        resp = client.get("/api/jwks")
        assert resp.status_code == 200
        assert resp.json()["keyIds"] == ["key-1"]
        assert provider.jwks_calls == 1

    def test_cors_preflight(self, client) -> None:
        resp = client.options(
            "/api/login",
            headers={
                "Origin": "http://localhost:5173",
                "Access-Control-Request-Method": "POST",
            },
        )
        assert "access-control-allow-origin" in resp.headers


@pytest.mark.integration
def test_unconfigured_service_returns_503() -> None:
    from fastapi.testclient import TestClient

    from examples.login_portal.app import create_login_portal_app
    from signet.infra.auth import AuthSettings

    app = create_login_portal_app(
        AuthSettings(_env_file=None),  # type: ignore[call-arg]
        configure_logging=False,
    )
    with TestClient(app, raise_server_exceptions=False) as client:
        resp = client.post("/api/login", json={"token": "a.b.c"})
    assert resp.status_code == 503
