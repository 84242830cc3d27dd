"""
Time-expiring data key cache.

This module provides:
- fingerprint(): Fixed-length (128-bit) lookup key for key ids and wrapped keys
- CacheEntry: Cached plaintext/wrapped data key pair
- KeyCache: Thread-safe, lazily self-cleaning cache of data keys

Expired entries are removed on every access. There is no background thread;
the eviction pass and the read or write that follows it happen under a single
lock acquisition, so a reader never observes an entry another caller is
evicting.
"""

from __future__ import annotations

import hashlib
import threading
import time
from dataclasses import dataclass
from datetime import timedelta
from typing import Callable, Dict, Optional, Union

from .crypto import SecureKey
from .logger import get_logger

logger = get_logger(__name__)

FINGERPRINT_SIZE: int = 16  # 128 bits


def fingerprint(identifier: Union[str, bytes]) -> bytes:
    """
    Hash a key id or wrapped key blob to a constant-size cache key.

    Not a security boundary; MD5 is used only to normalise lookup keys.
    """
    if isinstance(identifier, str):
        identifier = identifier.encode("utf-8")
    return hashlib.md5(identifier, usedforsecurity=False).digest()


@dataclass(frozen=True)
class CacheEntry:
    """A data key as returned by key management."""

    plaintext_key: SecureKey
    wrapped_key: bytes
    inserted_at: float


class KeyCache:
    """
    Cache of data keys indexed by fingerprint.

    Entries older than ``expiration`` are never returned. A miss is always
    recoverable by asking key management again.
    """

    def __init__(
        self,
        expiration: timedelta,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """
        Initialize an empty cache.

        Args:
            expiration: How long an entry stays valid after insertion
            clock: Source of the current time in seconds
        """
        if expiration.total_seconds() < 0:
            raise ValueError("expiration must not be negative")
        self._entries: Dict[bytes, CacheEntry] = {}
        self._expiration = expiration.total_seconds()
        self._clock = clock
        self._lock = threading.Lock()

    @property
    def expiration(self) -> timedelta:
        return timedelta(seconds=self._expiration)

    def put(
        self,
        key: bytes,
        plaintext_key: Union[SecureKey, bytes],
        wrapped_key: bytes,
    ) -> None:
        """Store a data key under ``key`` (a fingerprint)."""
        if not isinstance(plaintext_key, SecureKey):
            plaintext_key = SecureKey(plaintext_key)

        with self._lock:
            now = self._clock()
            self._evict_locked(now)
            self._entries[key] = CacheEntry(
                plaintext_key=plaintext_key,
                wrapped_key=bytes(wrapped_key),
                inserted_at=now,
            )

    def get(self, key: bytes) -> Optional[CacheEntry]:
        """Return the live entry for ``key``, or None on a miss."""
        with self._lock:
            self._evict_locked(self._clock())
            return self._entries.get(key)

    def evict_expired(self) -> int:
        """Remove expired entries. Returns the number removed."""
        with self._lock:
            return self._evict_locked(self._clock())

    def _evict_locked(self, now: float) -> int:
        expired = [
            key
            for key, entry in self._entries.items()
            if now - entry.inserted_at > self._expiration
        ]
        for key in expired:
            del self._entries[key]

        if expired:
            logger.debug("key cache entries evicted", count=len(expired))
        return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
