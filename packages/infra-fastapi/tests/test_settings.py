"""Unit tests for signet.infra.fastapi.settings."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from signet.infra.fastapi.settings import AppSettings, CORSSettings


class TestCORSSettings:
    @pytest.mark.unit
    def test_defaults(self) -> None:
        settings = CORSSettings()
        assert settings.allow_origins == ["*"]
        assert settings.allow_credentials is False
        assert settings.expose_headers == ["X-Request-ID"]

    @pytest.mark.unit
    def test_comma_separated_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("CORS_ALLOW_ORIGINS", "http://localhost:5173, https://app.example.com")
        monkeypatch.setenv("CORS_ALLOW_CREDENTIALS", "true")
        settings = CORSSettings()
        assert settings.allow_origins == ["http://localhost:5173", "https://app.example.com"]
        assert settings.allow_credentials is True

    @pytest.mark.unit
    def test_credentials_with_wildcard_rejected(self) -> None:
        with pytest.raises(ValidationError, match="allow_credentials"):
            CORSSettings(allow_credentials=True)


class TestAppSettings:
    @pytest.mark.unit
    def test_defaults(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("ENVIRONMENT", raising=False)
        monkeypatch.delenv("APP_TITLE", raising=False)
        settings = AppSettings()
        assert settings.title == "Signet Login Service"
        assert settings.environment == "development"
        assert settings.docs_url == "/docs"

    @pytest.mark.unit
    def test_environment_shared_variable(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("ENVIRONMENT", "production")
        monkeypatch.setenv("APP_TITLE", "Portal")
        settings = AppSettings()
        assert settings.environment == "production"
        assert settings.title == "Portal"

    @pytest.mark.unit
    def test_init_by_field_name(self) -> None:
        assert AppSettings(environment="staging").environment == "staging"
