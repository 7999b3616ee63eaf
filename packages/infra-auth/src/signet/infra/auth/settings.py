"""Authentication configuration settings.

Loaded from environment variables with AUTH_ prefix.
Follows Pydantic BaseSettings pattern for type-safe configuration.
Values are read once at startup and are immutable afterwards.

Environment Variables:
    AUTH_ISSUER: OIDC issuer URL (required)
    AUTH_CLIENT_ID: OAuth client_id registered with the provider (required)
    AUTH_CLIENT_SECRET: OAuth client secret for the code exchange
    AUTH_AUDIENCE: Expected ID token audience (defaults to client_id)
    AUTH_JWKS_URI: JWKS endpoint (defaults to {issuer}/.well-known/jwks.json)
    AUTH_AUTHORIZATION_ENDPOINT: Authorization endpoint (defaults to {issuer}/auth)
    AUTH_TOKEN_ENDPOINT: Token endpoint (defaults to {issuer}/token)
    AUTH_USERINFO_ENDPOINT: Userinfo endpoint (defaults to {issuer}/me)
    AUTH_JWKS_CACHE_TTL: JWKS key cache TTL in seconds
    AUTH_JWKS_FETCH_TIMEOUT: JWKS HTTP timeout in seconds
    AUTH_JWKS_REFRESH_INTERVAL: Minimum seconds between forced key set fetches
    AUTH_CLOCK_LEEWAY: Allowed clock skew for exp/nbf in seconds
    AUTH_SCOPES: OAuth scopes (space-separated)
"""

from __future__ import annotations

from functools import lru_cache

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class AuthSettings(BaseSettings):
    """Identity provider configuration loaded from environment variables.

    Endpoint URLs left empty are derived from the issuer.

    Example:
        >>> settings = AuthSettings(issuer="https://id.example.com", client_id="portal")
        >>> settings.audience
        'portal'
        >>> settings.jwks_uri
        'https://id.example.com/.well-known/jwks.json'
    """

    model_config = SettingsConfigDict(
        env_prefix="AUTH_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    issuer: str = Field(
        default="",
        description="OIDC issuer URL",
    )
    client_id: str = Field(
        default="",
        description="OAuth application client_id",
    )
    client_secret: str = Field(
        default="",
        repr=False,  # Security: never log client secret
        description="OAuth application client_secret",
    )
    audience: str = Field(
        default="",
        description="Expected ID token audience claim (defaults to client_id)",
    )
    jwks_uri: str = Field(
        default="",
        description="JWKS endpoint URL",
    )
    authorization_endpoint: str = Field(
        default="",
        description="Authorization endpoint URL",
    )
    token_endpoint: str = Field(
        default="",
        description="Token endpoint URL used for the authorization code exchange",
    )
    userinfo_endpoint: str = Field(
        default="",
        description="Userinfo endpoint URL",
    )
    jwks_cache_ttl: int = Field(
        default=3600,
        ge=30,
        le=86400,
        description="JWKS key cache TTL in seconds",
    )
    jwks_fetch_timeout: float = Field(
        default=10.0,
        gt=0,
        le=120,
        description="JWKS endpoint HTTP timeout in seconds",
    )
    jwks_refresh_interval: float = Field(
        default=60.0,
        ge=0,
        le=3600,
        description="Minimum seconds between key set fetches forced by an unknown kid",
    )
    clock_leeway: int = Field(
        default=0,
        ge=0,
        le=300,
        description="Allowed clock skew for exp/nbf checks in seconds",
    )
    scopes: str = Field(
        default="openid profile email",
        description="OAuth scopes requested during authorization",
    )

    @model_validator(mode="after")
    def _derive_defaults(self) -> AuthSettings:
        self.issuer = self.issuer.rstrip("/")
        if not self.audience:
            self.audience = self.client_id
        if self.issuer:
            self.jwks_uri = self.jwks_uri or f"{self.issuer}/.well-known/jwks.json"
            self.authorization_endpoint = self.authorization_endpoint or f"{self.issuer}/auth"
            self.token_endpoint = self.token_endpoint or f"{self.issuer}/token"
            self.userinfo_endpoint = self.userinfo_endpoint or f"{self.issuer}/me"
        return self

    def validate_config(self) -> None:
        """Validate that token verification can be configured.

        Raises:
            ValueError: If issuer or client_id is missing or malformed.
        """
        if not self.issuer:
            raise ValueError("AUTH_ISSUER is required for ID token verification")

        if not self.issuer.startswith("http://") and not self.issuer.startswith("https://"):
            raise ValueError("AUTH_ISSUER must be a valid HTTP(S) URL")

        if not self.audience:
            raise ValueError("AUTH_CLIENT_ID (or AUTH_AUDIENCE) is required")

    def is_configured(self) -> bool:
        """Check if verification configuration is complete (non-throwing).

        Returns:
            True if issuer and audience are set.
        """
        return bool(self.issuer and self.audience)


@lru_cache(maxsize=1)
def get_auth_settings() -> AuthSettings:
    """Get singleton AuthSettings instance.

    Cached for performance - settings are loaded once per application lifecycle.
    Clear cache with ``get_auth_settings.cache_clear()`` for testing.

    Returns:
        AuthSettings instance with configuration from environment.
    """
    return AuthSettings()
