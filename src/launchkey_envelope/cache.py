"""
Public key caching.

The service signs and encrypts with a key pair it rotates; clients fetch the
public half from the ping endpoint. PublicKeyCache keeps the fetched key in
a pluggable key/value Cache for a configured TTL.

Cache backends are an optimization, never a correctness dependency: any
exception raised by ``get`` is treated as a miss and any exception raised by
``set`` is ignored. Both are logged.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from typing import Protocol

from launchkey_envelope._logging import get_logger
from launchkey_envelope.constants import CACHE_KEY_PUBLIC_KEY, DEFAULT_PUBLIC_KEY_TTL

__all__ = [
    "Cache",
    "MemoryCache",
    "PublicKeyCache",
]

_logger = get_logger(__name__)


class Cache(Protocol):
    """Minimal key/value store with per-entry TTL."""

    def get(self, key: str) -> str | None:
        """Return the stored value, or None if absent or expired."""
        ...

    def set(self, key: str, value: str, ttl: int) -> None:
        """Store a value for ``ttl`` seconds."""
        ...


class MemoryCache:
    """
    In-process Cache backed by a dict.

    A ``ttl`` of zero or less stores the value without expiry.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._entries: dict[str, tuple[str, float | None]] = {}

    def get(self, key: str) -> str | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if expires_at is not None and self._clock() >= expires_at:
            self._entries.pop(key, None)
            return None
        return value

    def set(self, key: str, value: str, ttl: int) -> None:
        expires_at = self._clock() + ttl if ttl > 0 else None
        self._entries[key] = (value, expires_at)


class PublicKeyCache:
    """
    Get-or-fetch holder for the service's current public key.

    Concurrent misses may both fetch; the fetch is idempotent so no lock is
    taken. Fetch errors propagate to the caller unchanged and are never
    retried here.
    """

    def __init__(
        self,
        cache: Cache,
        fetch: Callable[[], str],
        ttl: int = DEFAULT_PUBLIC_KEY_TTL,
        logger: logging.Logger | None = None,
    ) -> None:
        """
        Args:
            cache: Backend storing the key
            fetch: Callable returning a fresh PEM key from the service
            ttl: Seconds the fetched key may be served from the cache
            logger: Logger replacing the module logger
        """
        self.cache = cache
        self.ttl = ttl
        self._fetch = fetch
        self._logger = logger or _logger

    def get_public_key(self) -> str:
        """Return the cached key, fetching and caching it on a miss."""
        public_key: str | None = None
        try:
            public_key = self.cache.get(CACHE_KEY_PUBLIC_KEY)
        except Exception:  # noqa: BLE001
            self._logger.error("Cache get failed: key=%s", CACHE_KEY_PUBLIC_KEY, exc_info=True)

        if public_key:
            self._logger.debug("Public key cache hit: key=%s", CACHE_KEY_PUBLIC_KEY)
            return public_key

        self._logger.debug("Public key cache miss: key=%s", CACHE_KEY_PUBLIC_KEY)
        public_key = self._fetch()
        try:
            self.cache.set(CACHE_KEY_PUBLIC_KEY, public_key, self.ttl)
            self._logger.debug("Public key cached: key=%s ttl=%ds", CACHE_KEY_PUBLIC_KEY, self.ttl)
        except Exception:  # noqa: BLE001
            self._logger.error("Cache set failed: key=%s", CACHE_KEY_PUBLIC_KEY, exc_info=True)
        return public_key
