"""
Cryptographic primitives for payload encryption.

This module provides:
- SecureKey: Plaintext data key wrapper with redacted repr and zeroization
- AesGcmCipher: AES-256-GCM encryption/decryption of raw payload bytes

Ciphertexts use the AEAD blob layout: nonce(12) || ciphertext || tag(16).
"""

from __future__ import annotations

import secrets
from typing import Optional

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from .errors import CryptoError

# Cryptographic constants
AES_256_KEY_SIZE: int = 32  # 256 bits
NONCE_SIZE: int = 12  # 96 bits (standard for AES-GCM)
TAG_SIZE: int = 16  # 128 bits (authentication tag)


class SecureKey:
    """
    Plaintext data key with automatic memory cleanup on deletion.

    Uses bytearray internally for mutable zeroing in __del__.
    Note: Python's garbage collector doesn't guarantee immediate cleanup,
    so this is best-effort zeroization.
    """

    __slots__ = ("_bytes",)

    def __init__(self, key_bytes: bytes | bytearray) -> None:
        if not isinstance(key_bytes, (bytes, bytearray)):
            raise CryptoError("Key must be bytes or bytearray")
        self._bytes = bytearray(key_bytes)

    def as_bytes(self) -> bytes:
        """Return key as immutable bytes."""
        return bytes(self._bytes)

    def __len__(self) -> int:
        return len(self._bytes)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, SecureKey):
            return NotImplemented
        return secrets.compare_digest(bytes(self._bytes), bytes(other._bytes))

    def __hash__(self) -> int:
        return id(self)

    def __repr__(self) -> str:
        return "SecureKey([REDACTED])"

    def __del__(self) -> None:
        if hasattr(self, "_bytes"):
            for i in range(len(self._bytes)):
                self._bytes[i] = 0


def _key_bytes(key: SecureKey | bytes) -> bytes:
    raw = key.as_bytes() if isinstance(key, SecureKey) else key
    if not isinstance(raw, (bytes, bytearray)):
        raise CryptoError("Key must be bytes or SecureKey")
    if len(raw) != AES_256_KEY_SIZE:
        raise CryptoError(
            f"Invalid key size: expected {AES_256_KEY_SIZE}, got {len(raw)}"
        )
    return bytes(raw)


class AesGcmCipher:
    """
    AES-256-GCM authenticated encryption.

    Stateless; every encrypt call draws a fresh random nonce which is
    prefixed to the returned ciphertext.
    """

    @staticmethod
    def encrypt(
        key: SecureKey | bytes,
        plaintext: bytes,
        aad: Optional[bytes] = None,
    ) -> bytes:
        """
        Encrypt plaintext with AES-256-GCM.

        Args:
            key: 32-byte data key
            plaintext: Data to encrypt
            aad: Optional Additional Authenticated Data

        Returns:
            nonce || ciphertext || tag

        Raises:
            CryptoError: If the key size is invalid, the entropy source fails
                or encryption fails
        """
        raw_key = _key_bytes(key)

        try:
            nonce = secrets.token_bytes(NONCE_SIZE)
        except OSError as e:
            raise CryptoError(f"Nonce generation failed: {e}") from e

        try:
            ciphertext = AESGCM(raw_key).encrypt(nonce, bytes(plaintext), aad)
        except (ValueError, TypeError, OverflowError) as e:
            raise CryptoError(f"Encryption error: {e}") from e

        return nonce + ciphertext

    @staticmethod
    def decrypt(
        key: SecureKey | bytes,
        blob: bytes,
        aad: Optional[bytes] = None,
    ) -> bytes:
        """
        Decrypt an AEAD blob produced by ``encrypt``.

        Raises:
            CryptoError: If the key size is invalid, the blob is truncated or
                the authentication tag does not verify
        """
        raw_key = _key_bytes(key)

        min_size = NONCE_SIZE + TAG_SIZE
        if len(blob) < min_size:
            raise CryptoError(
                f"AEAD blob too small: expected at least {min_size} bytes, got {len(blob)}"
            )

        nonce, ciphertext = bytes(blob[:NONCE_SIZE]), bytes(blob[NONCE_SIZE:])
        try:
            return AESGCM(raw_key).decrypt(nonce, ciphertext, aad)
        except InvalidTag:
            # Generic error to prevent oracle attacks
            raise CryptoError("Decryption failed") from None
