"""JWKS key cache for ID-token signature verification.

Holds the identity provider's RSA public keys keyed by ``kid``:

- Keys are fetched on demand from the JWKS endpoint (no background task)
- The whole key set expires ``ttl`` seconds after a successful fetch
- A refresh replaces the key set atomically; it is never merged
- A failed refresh leaves the previous state untouched and raises
  :class:`KeyFetchError`; an expired key set is never served
- Refreshes forced for an unknown ``kid`` are rate limited, so tokens
  with made-up key ids cannot make every request refetch the key set

Lifecycle: Created once during app lifespan startup, stored in app.state.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import TYPE_CHECKING, Any

import httpx

from signet.infra.auth.exceptions import KeyFetchError, UnknownKeyError
from signet.infra.auth.jwk import InvalidJWKError, is_usable_signing_key, rsa_public_key_from_jwk

if TYPE_CHECKING:
    from collections.abc import Callable

    from cryptography.hazmat.primitives.asymmetric.rsa import RSAPublicKey

logger = logging.getLogger(__name__)

DEFAULT_CACHE_TTL = 3600.0
DEFAULT_MIN_REFRESH_INTERVAL = 60.0
_DEFAULT_TIMEOUT = 10.0


def parse_key_set(document: Any) -> dict[str, RSAPublicKey]:
    """Convert a JWKS document into a kid -> public key mapping.

    Entries rejected by :func:`is_usable_signing_key` are skipped. Any
    usable entry that fails conversion fails the whole document.

    Args:
        document: Decoded JSON body of the JWKS endpoint.

    Returns:
        New mapping of key id to RSA public key.

    Raises:
        KeyFetchError: If the document is not ``{"keys": [...]}`` or an
            entry has invalid key material.
    """
    if not isinstance(document, dict) or not isinstance(document.get("keys"), list):
        raise KeyFetchError("Invalid JWKS response: expected an object with a 'keys' array")

    keys: dict[str, RSAPublicKey] = {}
    for entry in document["keys"]:
        if not isinstance(entry, dict) or not is_usable_signing_key(entry):
            logger.debug(
                "jwk_entry_skipped",
                extra={
                    "kid": entry.get("kid") if isinstance(entry, dict) else None,
                    "kty": entry.get("kty") if isinstance(entry, dict) else None,
                },
            )
            continue
        try:
            keys[entry["kid"]] = rsa_public_key_from_jwk(entry)
        except InvalidJWKError as exc:
            raise KeyFetchError(f"Invalid key material for kid={entry['kid']}: {exc}") from exc
    return keys


class JWKSKeyCache:
    """Thread-safe, time-bounded cache of the provider's signing keys.

    A single lock guards "check expiry -> fetch -> replace", so concurrent
    callers on a cold cache wait for one fetch and then share its result.

    Supports both per-instance and shared httpx.Client modes:
    - If ``client`` is provided, it is reused across fetches (caller manages lifecycle).
    - If ``client`` is omitted, an internal client is created lazily on first fetch.
      Call :meth:`close` to release it.

    Args:
        jwks_uri: URL of the provider's JWKS endpoint.
        ttl: Seconds a fetched key set stays fresh (default 3600).
        timeout: HTTP timeout for the JWKS request in seconds.
        client: Optional shared httpx.Client instance.
        min_refresh_interval: Seconds that must pass after a fetch before
            :meth:`refresh_if_older_than` fetches again (default 60).
        clock: Returns the current Unix time; injectable for tests.

    Raises:
        ValueError: If jwks_uri is empty.

    Example:
        >>> cache = JWKSKeyCache("https://id.example.com/.well-known/jwks.json")
        >>> key = cache.resolve_key("2024-signing-key")
    """

    def __init__(
        self,
        jwks_uri: str,
        ttl: float = DEFAULT_CACHE_TTL,
        timeout: float = _DEFAULT_TIMEOUT,
        client: httpx.Client | None = None,
        min_refresh_interval: float = DEFAULT_MIN_REFRESH_INTERVAL,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if not jwks_uri:
            raise ValueError("JWKS URI is required for key resolution")

        self._jwks_uri = jwks_uri
        self._ttl = ttl
        self._timeout = timeout
        self._external_client = client is not None
        self._client: httpx.Client | None = client
        self._min_refresh_interval = min_refresh_interval
        self._clock = clock

        self._lock = threading.Lock()
        self._keys: dict[str, RSAPublicKey] = {}
        self._expires_at: float = 0.0
        self._fetched_at: float | None = None

    def resolve_key(self, key_id: str) -> RSAPublicKey:
        """Return the public key for ``key_id``, refreshing if stale.

        Args:
            key_id: ``kid`` from the token header.

        Returns:
            RSA public key registered under ``key_id``.

        Raises:
            KeyFetchError: If a needed refresh failed.
            UnknownKeyError: If ``key_id`` is not in the current key set.
        """
        with self._lock:
            refreshed = not self._is_fresh()
            if refreshed:
                self._refresh_locked()
            keys = self._keys

        key = keys.get(key_id)
        if key is None:
            logger.warning(
                "jwks_key_not_found",
                extra={"kid": key_id, "refreshed": refreshed, "known_kids": sorted(keys)},
            )
            raise UnknownKeyError(key_id, refreshed=refreshed)
        return key

    def list_keys(self) -> dict[str, RSAPublicKey]:
        """Return a copy of the current key set, refreshing if stale.

        Raises:
            KeyFetchError: If a needed refresh failed.
        """
        with self._lock:
            if not self._is_fresh():
                self._refresh_locked()
            return dict(self._keys)

    def refresh(self) -> dict[str, RSAPublicKey]:
        """Fetch the key set now, regardless of expiry.

        Returns:
            Copy of the new key set.

        Raises:
            KeyFetchError: If the fetch or a key conversion failed.
        """
        with self._lock:
            self._refresh_locked()
            return dict(self._keys)

    def refresh_if_older_than(self, min_age: float | None = None) -> bool:
        """Fetch the key set unless the last fetch is more recent than ``min_age``.

        Used when a token names a kid missing from a fresh key set. Callers
        waiting on the lock while another thread fetches see that fetch as
        recent and do not repeat it.

        Args:
            min_age: Seconds since the last fetch required before fetching
                again. Defaults to the cache's ``min_refresh_interval``.

        Returns:
            True if a fetch happened, False if it was skipped.

        Raises:
            KeyFetchError: If the fetch or a key conversion failed.
        """
        if min_age is None:
            min_age = self._min_refresh_interval
        with self._lock:
            if self._fetched_at is not None and self._clock() - self._fetched_at < min_age:
                logger.info(
                    "jwks_refresh_skipped",
                    extra={"jwks_uri": self._jwks_uri, "min_age": min_age},
                )
                return False
            self._refresh_locked()
            return True

    def invalidate(self) -> None:
        """Mark the key set stale so the next lookup refetches it."""
        with self._lock:
            self._expires_at = 0.0

    @property
    def expires_at(self) -> float:
        """Unix time at which the current key set goes stale (0 if never fetched)."""
        return self._expires_at

    @property
    def jwks_uri(self) -> str:
        """The JWKS endpoint URL."""
        return self._jwks_uri

    @property
    def ttl(self) -> float:
        """Seconds a fetched key set stays fresh."""
        return self._ttl

    @property
    def min_refresh_interval(self) -> float:
        """Seconds between fetches that :meth:`refresh_if_older_than` allows."""
        return self._min_refresh_interval

    def close(self) -> None:
        """Close the internal httpx.Client if we own it.

        No-op if the client was provided externally or not yet created.
        """
        if self._client is not None and not self._external_client:
            self._client.close()
            self._client = None

    def _is_fresh(self) -> bool:
        return bool(self._keys) and self._clock() < self._expires_at

    def _get_client(self) -> httpx.Client:
        """Return the shared or lazily-created httpx.Client."""
        if self._client is None:
            self._client = httpx.Client(timeout=self._timeout)
        return self._client

    def _refresh_locked(self) -> None:
        """Fetch, convert, and swap in a new key set. Caller holds the lock."""
        fetched_at = self._clock()
        self._fetched_at = fetched_at
        logger.info("jwks_fetch_started", extra={"jwks_uri": self._jwks_uri})

        client = self._get_client()
        try:
            response = client.get(self._jwks_uri, timeout=self._timeout)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            status = exc.response.status_code
            logger.error(
                "jwks_fetch_failed",
                extra={"jwks_uri": self._jwks_uri, "status": status},
            )
            raise KeyFetchError(
                f"Failed to fetch JWKS: {status} {exc.response.reason_phrase}",
                status_code=status,
            ) from exc
        except httpx.HTTPError as exc:
            logger.error(
                "jwks_fetch_failed",
                extra={"jwks_uri": self._jwks_uri, "error": str(exc)},
            )
            raise KeyFetchError(f"Failed to fetch JWKS: {exc}") from exc

        try:
            document = response.json()
        except ValueError as exc:
            raise KeyFetchError(
                f"Invalid JWKS response: body is not JSON ({exc})",
                status_code=response.status_code,
            ) from exc

        keys = parse_key_set(document)

        self._keys = keys
        self._expires_at = fetched_at + self._ttl
        logger.info(
            "jwks_refreshed",
            extra={"jwks_uri": self._jwks_uri, "keys_count": len(keys), "kids": sorted(keys)},
        )
