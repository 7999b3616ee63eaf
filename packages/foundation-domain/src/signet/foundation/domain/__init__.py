"""Signet Foundation Domain -- pure Python domain primitives.

This package provides the exception hierarchy and the identity value
objects shared by the token verifier and the HTTP layer.
"""

from signet.foundation.domain.exceptions import (
    AuthenticationError,
    DomainError,
    ServiceUnavailableError,
)
from signet.foundation.domain.identity import (
    TokenClaims,
    VerifiedIdentity,
    display_name,
)

__all__ = [
    "AuthenticationError",
    "DomainError",
    "ServiceUnavailableError",
    "TokenClaims",
    "VerifiedIdentity",
    "display_name",
]
