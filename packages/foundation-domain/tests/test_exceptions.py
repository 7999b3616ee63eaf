"""Tests for domain exception hierarchy."""

from __future__ import annotations

import pytest

from signet.foundation.domain.exceptions import (
    AuthenticationError,
    DomainError,
    ServiceUnavailableError,
)


@pytest.mark.unit
class TestDomainError:
    """Tests for base DomainError."""

    def test_message_and_code(self) -> None:
        err = DomainError("Something failed")
        assert err.message == "Something failed"
        assert err.error_code == "DOMAIN_ERROR"
        assert err.context == {}

    def test_context_dict(self) -> None:
        ctx = {"kid": "key-1", "count": 42}
        err = DomainError("Failed", context=ctx)
        assert err.context == ctx

    def test_str_without_context(self) -> None:
        err = DomainError("Simple failure")
        assert str(err) == "Simple failure"

    def test_str_with_context(self) -> None:
        err = DomainError("Failed", context={"a": "1"})
        assert str(err) == "Failed (a=1)"

    def test_repr(self) -> None:
        err = DomainError("Failed", context={"a": "1"})
        assert "DomainError" in repr(err)
        assert "Failed" in repr(err)

    def test_is_exception(self) -> None:
        assert issubclass(DomainError, Exception)


@pytest.mark.unit
class TestAuthenticationError:
    """Tests for AuthenticationError."""

    def test_defaults(self) -> None:
        err = AuthenticationError("Token has expired")
        assert err.auth_error == "invalid_token"
        assert err.error_code == "AUTHENTICATION_ERROR"

    def test_custom_codes(self) -> None:
        err = AuthenticationError(
            "Code rejected",
            auth_error="invalid_grant",
            error_code="TOKEN_EXCHANGE_FAILED",
            context={"provider_error": "invalid_grant"},
        )
        assert err.auth_error == "invalid_grant"
        assert err.error_code == "TOKEN_EXCHANGE_FAILED"
        assert err.context == {"provider_error": "invalid_grant"}

    def test_is_domain_error(self) -> None:
        assert isinstance(AuthenticationError("x"), DomainError)


@pytest.mark.unit
class TestServiceUnavailableError:
    """Tests for ServiceUnavailableError."""

    def test_error_code(self) -> None:
        err = ServiceUnavailableError("Authentication service not configured")
        assert err.error_code == "SERVICE_UNAVAILABLE"
        assert str(err) == "Authentication service not configured"

    def test_is_domain_error_not_authentication_error(self) -> None:
        err = ServiceUnavailableError("down")
        assert isinstance(err, DomainError)
        assert not isinstance(err, AuthenticationError)
