"""
Envelope encryption of payloads with key-management data keys.

This module provides:
- WrappedKey: The on-wire envelope of an encrypted payload
- KeyProvider: Encrypts and decrypts payloads, caching data keys

Flow:
- encrypt: data key (cache or key management) -> AES-256-GCM(payload) -> WrappedKey
- decrypt: unwrap data key (cache or key management) -> AES-256-GCM open

When caching is enabled a freshly generated data key is stored twice: under
the fingerprint of the key id, so the next encrypt for that key id is served
locally, and under the fingerprint of the wrapped key, so decrypting a payload
this process encrypted needs no unwrap call either.
"""

from __future__ import annotations

import base64
import binascii
import json
from dataclasses import dataclass
from datetime import timedelta
from typing import Callable, Optional

from .cache import KeyCache, fingerprint
from .crypto import AesGcmCipher, SecureKey
from .errors import SerializationError
from .logger import get_logger
from .transport import DataKey, KeyManagementTransport

logger = get_logger(__name__)


@dataclass(frozen=True)
class WrappedKey:
    """
    Encrypted payload together with the wrapped data key that opens it.

    Serialized verbatim as the message body. Byte fields are standard base64
    in JSON.
    """

    wrapped_bytes: bytes
    key_id: str
    ciphertext_payload: bytes

    def to_json(self) -> bytes:
        return json.dumps(
            {
                "encryptedEncryptionKey": base64.standard_b64encode(
                    self.wrapped_bytes
                ).decode("ascii"),
                "keyId": self.key_id,
                "payload": base64.standard_b64encode(self.ciphertext_payload).decode(
                    "ascii"
                ),
            },
            separators=(",", ":"),
        ).encode("utf-8")

    @classmethod
    def from_json(cls, data: bytes) -> WrappedKey:
        try:
            document = json.loads(data)
            return cls(
                wrapped_bytes=base64.b64decode(
                    document.get("encryptedEncryptionKey") or "", validate=True
                ),
                key_id=document.get("keyId") or "",
                ciphertext_payload=base64.b64decode(
                    document.get("payload") or "", validate=True
                ),
            )
        except (ValueError, TypeError, AttributeError, binascii.Error) as e:
            raise SerializationError(f"Failed to deserialize encrypted payload: {e}") from e


class KeyProvider:
    """
    Encrypts payloads under data keys from a key management service.

    The cache is optional. With caching disabled every encrypt generates a
    new data key and every decrypt unwraps one; behaviour is otherwise
    identical.
    """

    def __init__(
        self,
        transport: KeyManagementTransport,
        cache_enabled: bool = False,
        cache_expiration: timedelta = timedelta(minutes=5),
        clock: Optional[Callable[[], float]] = None,
    ) -> None:
        """
        Initialize a KeyProvider.

        Args:
            transport: Key management collaborator
            cache_enabled: Cache data keys between calls
            cache_expiration: Lifetime of a cached data key
            clock: Time source for the cache (defaults to wall-clock time)
        """
        self._transport = transport
        self._cache: Optional[KeyCache] = None
        if cache_enabled:
            if clock is None:
                self._cache = KeyCache(cache_expiration)
            else:
                self._cache = KeyCache(cache_expiration, clock=clock)

    @property
    def cache(self) -> Optional[KeyCache]:
        return self._cache

    def encrypt_payload(self, key_id: str, plaintext: bytes) -> WrappedKey:
        """
        Encrypt ``plaintext`` under a data key for master key ``key_id``.

        Raises:
            TransportError: If key management fails
            CryptoError: If encryption fails
        """
        data_key = self._data_key(key_id)
        ciphertext = AesGcmCipher.encrypt(data_key.plaintext, plaintext)

        return WrappedKey(
            wrapped_bytes=data_key.ciphertext_blob,
            key_id=data_key.key_id,
            ciphertext_payload=ciphertext,
        )

    def decrypt_payload(self, wrapped: WrappedKey) -> bytes:
        """
        Decrypt the payload held in ``wrapped``.

        Raises:
            TransportError: If key management fails
            CryptoError: If the payload does not authenticate
        """
        plaintext_key = self._unwrap(wrapped.wrapped_bytes)
        return AesGcmCipher.decrypt(plaintext_key, wrapped.ciphertext_payload)

    def _data_key(self, key_id: str) -> DataKey:
        if self._cache is not None:
            entry = self._cache.get(fingerprint(key_id))
            if entry is not None:
                logger.debug("data key cache hit", key_id=key_id)
                return DataKey(
                    plaintext=entry.plaintext_key,
                    ciphertext_blob=entry.wrapped_key,
                    key_id=key_id,
                )

        logger.debug("generating data key", key_id=key_id)
        data_key = self._transport.generate_data_key(key_id)

        if self._cache is not None:
            self._cache.put(
                fingerprint(key_id), data_key.plaintext, data_key.ciphertext_blob
            )
            self._cache.put(
                fingerprint(data_key.ciphertext_blob),
                data_key.plaintext,
                data_key.ciphertext_blob,
            )

        return data_key

    def _unwrap(self, wrapped_bytes: bytes) -> SecureKey:
        if self._cache is not None:
            entry = self._cache.get(fingerprint(wrapped_bytes))
            if entry is not None:
                logger.debug("unwrapped key cache hit")
                return entry.plaintext_key

        logger.debug("unwrapping data key")
        plaintext_key = self._transport.decrypt_data_key(wrapped_bytes)

        if self._cache is not None:
            self._cache.put(fingerprint(wrapped_bytes), plaintext_key, wrapped_bytes)

        return plaintext_key
