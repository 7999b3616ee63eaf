"""RS256 ID-token verification against a JWKS key cache.

Verification order (each step short-circuits):

1. Decode the unverified header; reject any ``alg`` other than RS256
   before a key is even looked up (algorithm-confusion guard)
2. Resolve the public key for the header's ``kid`` through the cache
3. Verify the signature over ``header.payload``; decode the payload only
   after the signature checks out, then enforce ``exp`` / ``nbf``
4. Compare ``iss`` with the configured issuer
5. Compare ``aud`` with the configured audience (client id)

The JWS signature step uses PyJWT's ``PyJWS`` with the allowed algorithm
list pinned to RS256. Claim validation is done here so that every failure
maps onto exactly one :mod:`signet.infra.auth.exceptions` kind.
"""

from __future__ import annotations

import json
import logging
import math
import time
from typing import TYPE_CHECKING, Any

from jwt import PyJWS
from jwt.exceptions import DecodeError, InvalidAlgorithmError
from jwt.exceptions import InvalidSignatureError as JWSSignatureError

from signet.foundation.domain.identity import TokenClaims, VerifiedIdentity
from signet.infra.auth.exceptions import (
    ExpiredTokenError,
    InvalidAudienceError,
    InvalidIssuerError,
    InvalidSignatureError,
    MalformedTokenError,
    UnsupportedAlgorithmError,
    VerificationError,
)
from signet.infra.auth.jwk import SUPPORTED_ALGORITHM
from signet.infra.auth.token_header import decode_header

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping

    from cryptography.hazmat.primitives.asymmetric.rsa import RSAPublicKey

    from signet.infra.auth.jwks import JWKSKeyCache

logger = logging.getLogger(__name__)

_jws = PyJWS(algorithms=[SUPPORTED_ALGORITHM])


def _numeric_date(payload: Mapping[str, Any], claim: str) -> float | None:
    value = payload.get(claim)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise MalformedTokenError(f"Claim '{claim}' must be a numeric date")
    try:
        number = float(value)
    except OverflowError as exc:
        raise MalformedTokenError(f"Claim '{claim}' is out of range") from exc
    if not math.isfinite(number):
        raise MalformedTokenError(f"Claim '{claim}' must be a finite numeric date")
    return number


def _verify_signature(token: str, key: RSAPublicKey) -> dict[str, Any]:
    """Check the RS256 signature and return the decoded payload object.

    Raises:
        InvalidSignatureError: Signature does not match.
        MalformedTokenError: Segments are not decodable, the header declares
            no algorithm, or the payload is not a JSON object.
        VerificationError: Any other failure inside the JWS layer.
    """
    try:
        decoded = _jws.decode_complete(token, key=key, algorithms=[SUPPORTED_ALGORITHM])
    except JWSSignatureError as exc:
        raise InvalidSignatureError("Invalid token: signature verification failed") from exc
    except DecodeError as exc:
        raise MalformedTokenError(f"Invalid token: {exc}") from exc
    except InvalidAlgorithmError as exc:
        raise MalformedTokenError("Invalid token: header does not declare the RS256 algorithm") from exc
    except Exception as exc:
        logger.exception("jws_verification_unexpected_error")
        raise VerificationError(f"Token verification failed: {exc}") from exc

    try:
        payload = json.loads(decoded["payload"])
    except (ValueError, UnicodeDecodeError) as exc:
        raise MalformedTokenError(f"Invalid token payload: {exc}") from exc
    if not isinstance(payload, dict):
        raise MalformedTokenError("Invalid token payload: claims are not a JSON object")
    return payload


def _audience_matches(aud: Any, expected: str) -> bool:
    if isinstance(aud, str):
        return aud == expected
    if isinstance(aud, list):
        return expected in aud
    return False


def verify_token(
    token: str,
    key_cache: JWKSKeyCache,
    expected_issuer: str,
    expected_audience: str,
    *,
    leeway: float = 0,
    now: float | None = None,
) -> TokenClaims:
    """Verify an RS256 ID token and return its claims.

    Args:
        token: Raw compact-serialized JWT.
        key_cache: Source of the provider's public keys.
        expected_issuer: Required ``iss`` value.
        expected_audience: Required ``aud`` value (client id).
        leeway: Clock skew tolerance in seconds for ``exp`` and ``nbf``.
        now: Current Unix time; defaults to ``time.time()``.

    Returns:
        TokenClaims decoded from the verified payload.

    Raises:
        MalformedTokenError: Structural problems with the token or its claims.
        UnsupportedAlgorithmError: Header ``alg`` is not RS256.
        KeyFetchError: The key set had to be fetched and could not be.
        UnknownKeyError: No key with the header's ``kid``.
        InvalidSignatureError: Signature does not verify.
        ExpiredTokenError: ``exp`` has passed.
        InvalidIssuerError: ``iss`` mismatch.
        InvalidAudienceError: ``aud`` mismatch.
        VerificationError: Any other verification failure.
    """
    header = decode_header(token)
    if header.algorithm != SUPPORTED_ALGORITHM:
        raise UnsupportedAlgorithmError(header.algorithm)

    key = key_cache.resolve_key(header.key_id)
    payload = _verify_signature(token, key)

    current = time.time() if now is None else now
    exp = _numeric_date(payload, "exp")
    if exp is None:
        raise MalformedTokenError("Token is missing required claim: exp")
    if exp <= current - leeway:
        raise ExpiredTokenError("Token expired", context={"exp": int(exp)})

    nbf = _numeric_date(payload, "nbf")
    if nbf is not None and nbf > current + leeway:
        raise VerificationError("Token is not yet valid", context={"nbf": int(nbf)})

    if payload.get("iss") != expected_issuer:
        raise InvalidIssuerError(payload.get("iss"), expected_issuer)

    if not _audience_matches(payload.get("aud"), expected_audience):
        raise InvalidAudienceError(payload.get("aud"), expected_audience)

    try:
        claims = TokenClaims.from_payload(payload)
    except ValueError as exc:
        raise MalformedTokenError(f"Invalid token claims: {exc}") from exc

    logger.debug("token_verified", extra={"kid": header.key_id, "sub": claims.sub})
    return claims


class IDTokenVerifier:
    """ID-token verifier bound to one provider configuration.

    Holds the issuer, audience, and key cache fixed at startup. Never
    retries: a failed verification is final for that token, and the caller
    decides whether a forced key refresh is worth one more attempt.

    Args:
        key_cache: Shared JWKS key cache.
        issuer: Required ``iss`` claim value.
        audience: Required ``aud`` claim value (client id).
        leeway: Clock skew tolerance in seconds.
        clock: Returns the current Unix time; injectable for tests.

    Raises:
        ValueError: If issuer or audience is empty.
    """

    def __init__(
        self,
        key_cache: JWKSKeyCache,
        issuer: str,
        audience: str,
        leeway: float = 0,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if not issuer:
            raise ValueError("Issuer is required for ID token verification")
        if not audience:
            raise ValueError("Audience (client id) is required for ID token verification")
        self._key_cache = key_cache
        self._issuer = issuer
        self._audience = audience
        self._leeway = leeway
        self._clock = clock

    def verify(self, token: str) -> TokenClaims:
        """Verify ``token`` and return its claims.

        Raises:
            VerificationError: Any verification failure (see :func:`verify_token`).
        """
        try:
            return verify_token(
                token,
                self._key_cache,
                self._issuer,
                self._audience,
                leeway=self._leeway,
                now=self._clock(),
            )
        except VerificationError as exc:
            logger.info(
                "token_verification_failed",
                extra={"error_code": exc.error_code, "reason": exc.message},
            )
            raise

    def authenticate(self, token: str) -> VerifiedIdentity:
        """Verify ``token`` and project the caller's identity."""
        return VerifiedIdentity.from_claims(self.verify(token))

    @property
    def key_cache(self) -> JWKSKeyCache:
        """The JWKS key cache used for key resolution."""
        return self._key_cache

    @property
    def issuer(self) -> str:
        """The configured issuer."""
        return self._issuer

    @property
    def audience(self) -> str:
        """The configured audience (client id)."""
        return self._audience
