"""ID-token verification failure kinds.

Every failure raised by the header decoder, the JWKS key cache, and the
verifier is a :class:`VerificationError`. Subclasses are distinct and
non-overlapping so callers can branch on the kind (e.g., force a key
refresh once on :class:`UnknownKeyError`).

All kinds inherit from :class:`~signet.foundation.domain.AuthenticationError`
and therefore map to HTTP 401 at the API boundary, except
:class:`KeyFetchError`, which the login routes re-raise as a 503
:class:`~signet.foundation.domain.ServiceUnavailableError`.
"""

from __future__ import annotations

from typing import Any

from signet.foundation.domain.exceptions import AuthenticationError

__all__ = [
    "ExpiredTokenError",
    "InvalidAudienceError",
    "InvalidIssuerError",
    "InvalidSignatureError",
    "KeyFetchError",
    "MalformedTokenError",
    "UnknownKeyError",
    "UnsupportedAlgorithmError",
    "VerificationError",
]


class VerificationError(AuthenticationError):
    """Base class and catch-all for token verification failures.

    Raised directly for failures that fit no specific kind, such as an
    unexpected error inside the signature layer or a token that is not
    yet valid.
    """

    error_code: str = "TOKEN_VERIFICATION_FAILED"

    def __init__(self, message: str, context: dict[str, Any] | None = None) -> None:
        super().__init__(
            message,
            auth_error="invalid_token",
            error_code=type(self).error_code,
            context=context,
        )


class MalformedTokenError(VerificationError):
    """Token is not a structurally valid compact JWS (segments, header, claims)."""

    error_code: str = "MALFORMED_TOKEN"


class UnsupportedAlgorithmError(VerificationError):
    """Token header declares an algorithm other than RS256."""

    error_code: str = "UNSUPPORTED_ALGORITHM"

    def __init__(self, algorithm: str) -> None:
        self.algorithm = algorithm
        super().__init__(f"Unsupported algorithm: {algorithm}. Only RS256 is supported")


class KeyFetchError(VerificationError):
    """The identity provider's JWKS endpoint could not be read.

    Attributes:
        status_code: HTTP status returned by the provider, or None for
            transport failures (DNS, connect, timeout) and unusable bodies.
    """

    error_code: str = "KEY_FETCH_FAILED"

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.status_code = status_code
        context = {"status_code": status_code} if status_code is not None else None
        super().__init__(message, context)


class UnknownKeyError(VerificationError):
    """No key with the token's kid exists in the current key set.

    Attributes:
        key_id: The kid taken from the token header.
        refreshed: True if the key set was fetched during the failing call.
            False means the lookup was served from a fresh cache and a forced
            refresh may still find a newly rotated key.
    """

    error_code: str = "UNKNOWN_KEY"

    def __init__(self, key_id: str, *, refreshed: bool) -> None:
        self.key_id = key_id
        self.refreshed = refreshed
        super().__init__(
            f"Public key with kid={key_id} not found in JWKS. "
            "The identity provider may have rotated keys."
        )


class InvalidSignatureError(VerificationError):
    """Signature does not verify under the resolved public key."""

    error_code: str = "INVALID_SIGNATURE"


class ExpiredTokenError(VerificationError):
    """Signature is valid but the ``exp`` claim has passed."""

    error_code: str = "TOKEN_EXPIRED"


class InvalidIssuerError(VerificationError):
    """``iss`` claim does not match the configured issuer."""

    error_code: str = "INVALID_ISSUER"

    def __init__(self, issuer: Any, expected: str) -> None:
        self.issuer = issuer
        self.expected = expected
        super().__init__(f"Invalid issuer: {issuer}. Must be {expected}")


class InvalidAudienceError(VerificationError):
    """``aud`` claim does not name the configured client."""

    error_code: str = "INVALID_AUDIENCE"

    def __init__(self, audience: Any, expected: str) -> None:
        self.audience = audience
        self.expected = expected
        super().__init__(f"Invalid audience: {audience}. Must be {expected}")
