"""Identity value objects derived from verified ID-token claims.

Pure domain objects with no external dependencies. Immutable (frozen
dataclasses). Built by the token verifier after the signature and the
issuer/audience contracts have been checked.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Mapping


def _optional_str(payload: Mapping[str, Any], key: str) -> str | None:
    value = payload.get(key)
    if value is None:
        return None
    return str(value)


@dataclass(frozen=True, slots=True)
class TokenClaims:
    """Claims decoded from a verified OIDC ID token.

    Attributes:
        iss: Issuer identifier of the identity provider.
        aud: Audience the token was issued for (client id, or a tuple of them).
        sub: Subject -- unique user identifier at the provider.
        iat: Issued-at time (Unix timestamp).
        exp: Expiry time (Unix timestamp).
        name: Full display name, if released by the provider.
        email: Email address, if released.
        preferred_username: Login/username, if released.
        given_name: First name, if released.
        family_name: Last name, if released.
        raw: The complete decoded payload, including non-standard claims.
    """

    iss: str
    aud: str | tuple[str, ...]
    sub: str
    iat: int
    exp: int
    name: str | None = None
    email: str | None = None
    preferred_username: str | None = None
    given_name: str | None = None
    family_name: str | None = None
    raw: Mapping[str, Any] = field(default_factory=dict)

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> TokenClaims:
        """Build claims from a decoded token payload.

        Args:
            payload: JSON object decoded from the token's second segment.

        Returns:
            TokenClaims with ``raw`` holding a copy of the payload.

        Raises:
            ValueError: If a required claim is missing or has the wrong type.
        """
        for required in ("iss", "aud", "sub", "iat", "exp"):
            if payload.get(required) in (None, ""):
                raise ValueError(f"missing required claim: {required}")

        aud = payload["aud"]
        if isinstance(aud, list):
            aud = tuple(str(a) for a in aud)
        else:
            aud = str(aud)

        try:
            iat = int(payload["iat"])
            exp = int(payload["exp"])
        except (TypeError, ValueError, OverflowError) as exc:
            raise ValueError(f"numeric date claim is not a finite number: {exc}") from exc

        return cls(
            iss=str(payload["iss"]),
            aud=aud,
            sub=str(payload["sub"]),
            iat=iat,
            exp=exp,
            name=_optional_str(payload, "name"),
            email=_optional_str(payload, "email"),
            preferred_username=_optional_str(payload, "preferred_username"),
            given_name=_optional_str(payload, "given_name"),
            family_name=_optional_str(payload, "family_name"),
            raw=dict(payload),
        )


def display_name(claims: TokenClaims) -> str:
    """Derive a human-readable name from claims.

    First non-empty candidate wins:

    1. ``name``
    2. ``given_name`` + ``family_name`` (only when both are present)
    3. ``preferred_username``
    4. ``sub`` (always present)

    Example:
        >>> display_name(TokenClaims(iss="i", aud="a", sub="user-123", iat=0, exp=0))
        'user-123'
    """
    if claims.name:
        return claims.name
    if claims.given_name and claims.family_name:
        return f"{claims.given_name} {claims.family_name}"
    if claims.preferred_username:
        return claims.preferred_username
    return claims.sub


@dataclass(frozen=True, slots=True)
class VerifiedIdentity:
    """Authenticated user as returned to calling code.

    Attributes:
        id: Subject identifier from the ``sub`` claim.
        name: Display name resolved by :func:`display_name`.
        email: Email from the ``email`` claim. None if absent.
        username: ``preferred_username`` claim. None if absent.
    """

    id: str
    name: str
    email: str | None = None
    username: str | None = None

    @classmethod
    def from_claims(cls, claims: TokenClaims) -> VerifiedIdentity:
        return cls(
            id=claims.sub,
            name=display_name(claims),
            email=claims.email,
            username=claims.preferred_username,
        )
