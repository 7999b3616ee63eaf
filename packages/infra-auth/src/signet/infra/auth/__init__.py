"""Signet Infra Auth -- OIDC ID-token verification against a rotating JWKS.

Provides the JWKS key cache, JWK transcoding, unverified header decoding,
RS256 signature and claims verification, the authorization code exchange
client, settings, the auth lifespan hook, and the login API router.
"""

from signet.infra.auth.exceptions import (
    ExpiredTokenError,
    InvalidAudienceError,
    InvalidIssuerError,
    InvalidSignatureError,
    KeyFetchError,
    MalformedTokenError,
    UnknownKeyError,
    UnsupportedAlgorithmError,
    VerificationError,
)
from signet.infra.auth.jwk import InvalidJWKError, rsa_public_key_from_jwk
from signet.infra.auth.jwks import JWKSKeyCache
from signet.infra.auth.lifespan import auth_lifespan, build_verifier
from signet.infra.auth.oidc_client import OIDCTokenClient, TokenExchangeError, TokenResponse
from signet.infra.auth.router import router
from signet.infra.auth.settings import AuthSettings, get_auth_settings
from signet.infra.auth.token_header import TokenHeader, decode_header
from signet.infra.auth.verifier import IDTokenVerifier, verify_token

__all__ = [
    "AuthSettings",
    "ExpiredTokenError",
    "IDTokenVerifier",
    "InvalidAudienceError",
    "InvalidIssuerError",
    "InvalidJWKError",
    "InvalidSignatureError",
    "JWKSKeyCache",
    "KeyFetchError",
    "MalformedTokenError",
    "OIDCTokenClient",
    "TokenExchangeError",
    "TokenHeader",
    "TokenResponse",
    "UnknownKeyError",
    "UnsupportedAlgorithmError",
    "VerificationError",
    "auth_lifespan",
    "build_verifier",
    "decode_header",
    "get_auth_settings",
    "router",
    "rsa_public_key_from_jwk",
    "verify_token",
]
