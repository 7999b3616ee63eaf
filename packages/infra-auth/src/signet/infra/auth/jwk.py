"""JWK to RSA public key transcoding.

Stateless helpers that turn one JSON Web Key (RFC 7517) into a
``cryptography`` RSA public key. Kept independent of caching so the
conversion can be tested in isolation.

Entry policy applied by :func:`is_usable_signing_key`:

- ``kty`` must be ``RSA``
- ``use``, when present, must be ``sig``
- ``alg``, when present, must be ``RS256``
- ``kid`` must be a non-empty string

Entries failing the policy are skipped by the key cache. Entries passing
it must convert cleanly; a conversion failure aborts the whole refresh.
"""

from __future__ import annotations

import base64
import binascii
from typing import TYPE_CHECKING, Any

from cryptography.hazmat.primitives.asymmetric.rsa import RSAPublicKey, RSAPublicNumbers

if TYPE_CHECKING:
    from collections.abc import Mapping

SUPPORTED_ALGORITHM = "RS256"
SUPPORTED_KEY_TYPE = "RSA"


class InvalidJWKError(ValueError):
    """Raised when a JWK cannot be converted into an RSA public key."""


def base64url_decode(value: str) -> bytes:
    """Decode unpadded base64url text (RFC 7515 section 2).

    Raises:
        ValueError: If the text is not valid base64url.
    """
    padded = value + "=" * (-len(value) % 4)
    try:
        return base64.urlsafe_b64decode(padded.encode("ascii"))
    except (binascii.Error, UnicodeEncodeError) as exc:
        raise ValueError(f"invalid base64url data: {exc}") from exc


def _b64url_to_int(jwk: Mapping[str, Any], member: str) -> int:
    raw = jwk.get(member)
    if not isinstance(raw, str) or not raw:
        raise InvalidJWKError(f"JWK member '{member}' is missing or not a string")
    try:
        data = base64url_decode(raw)
    except ValueError as exc:
        raise InvalidJWKError(f"JWK member '{member}' is not base64url: {exc}") from exc
    if not data:
        raise InvalidJWKError(f"JWK member '{member}' is empty")
    return int.from_bytes(data, "big")


def is_usable_signing_key(jwk: Mapping[str, Any]) -> bool:
    """Check whether a JWK entry is an RS256 signing key we can select by kid."""
    if jwk.get("kty") != SUPPORTED_KEY_TYPE:
        return False
    if jwk.get("use") not in (None, "sig"):
        return False
    if jwk.get("alg") not in (None, SUPPORTED_ALGORITHM):
        return False
    kid = jwk.get("kid")
    return isinstance(kid, str) and bool(kid)


def rsa_public_key_from_jwk(jwk: Mapping[str, Any]) -> RSAPublicKey:
    """Convert an RSA JWK (modulus ``n`` + exponent ``e``) to a public key.

    Args:
        jwk: One entry of a JWKS ``keys`` array.

    Returns:
        RSA public key usable for RS256 signature verification.

    Raises:
        InvalidJWKError: If the key type is not RSA or ``n``/``e`` are
            missing, not base64url, or do not form a valid RSA key.

    Example:
        >>> key = rsa_public_key_from_jwk({"kty": "RSA", "n": "...", "e": "AQAB"})
    """
    if jwk.get("kty") != SUPPORTED_KEY_TYPE:
        raise InvalidJWKError(f"Unsupported key type: {jwk.get('kty')!r}")

    n = _b64url_to_int(jwk, "n")
    e = _b64url_to_int(jwk, "e")
    try:
        return RSAPublicNumbers(e, n).public_key()
    except ValueError as exc:
        raise InvalidJWKError(f"Invalid RSA key material: {exc}") from exc
