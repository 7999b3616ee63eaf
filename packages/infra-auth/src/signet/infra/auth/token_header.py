"""Unverified JWT header decoding.

Extracts the key id and declared algorithm from the first segment of a
compact-serialized token. Nothing here checks the signature: the values
returned only select the verification key and are never trusted on their
own.
"""

from __future__ import annotations

import json
from dataclasses import dataclass

from signet.infra.auth.exceptions import MalformedTokenError
from signet.infra.auth.jwk import SUPPORTED_ALGORITHM, base64url_decode


@dataclass(frozen=True, slots=True)
class TokenHeader:
    """Key id and algorithm declared by a token header."""

    key_id: str
    algorithm: str


def split_token(token: str) -> tuple[str, str, str]:
    """Split a compact JWS into header, payload, and signature segments.

    Raises:
        MalformedTokenError: If the token does not have exactly three segments.
    """
    parts = token.split(".")
    if len(parts) != 3:
        raise MalformedTokenError(
            "Invalid JWT format: must have 3 parts (header.payload.signature)",
            context={"segments": len(parts)},
        )
    header, payload, signature = parts
    return header, payload, signature


def decode_header(token: str) -> TokenHeader:
    """Decode the header of ``token`` without verifying it.

    Args:
        token: Raw compact-serialized JWT.

    Returns:
        TokenHeader with ``kid`` and ``alg`` (``RS256`` when absent).

    Raises:
        MalformedTokenError: Wrong segment count, undecodable header, or a
            header without ``kid``.
    """
    header_segment, _, _ = split_token(token)

    try:
        header = json.loads(base64url_decode(header_segment).decode("utf-8"))
    except (ValueError, UnicodeDecodeError) as exc:
        raise MalformedTokenError(f"Failed to decode JWT header: {exc}") from exc

    if not isinstance(header, dict):
        raise MalformedTokenError("Failed to decode JWT header: header is not a JSON object")

    kid = header.get("kid")
    if not kid or not isinstance(kid, str):
        raise MalformedTokenError("JWT header missing kid (key ID)")

    alg = header.get("alg") or SUPPORTED_ALGORITHM
    return TokenHeader(key_id=kid, algorithm=str(alg))
