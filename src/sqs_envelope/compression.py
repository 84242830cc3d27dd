"""
Payload compression.

Payloads are gzip-compressed and then base64-encoded, since the queue only
carries text and raw gzip output would be rejected.
"""

from __future__ import annotations

import base64
import binascii
import gzip
import zlib

from .errors import CompressionError


class Compressor:
    """gzip + base64 codec."""

    def __init__(self, level: int = 9) -> None:
        if not 0 <= level <= 9:
            raise ValueError("compression level must be between 0 and 9")
        self._level = level

    def compress(self, data: bytes) -> bytes:
        """Compress ``data`` and return it as base64 ASCII bytes."""
        # mtime=0 keeps the output deterministic for equal input.
        compressed = gzip.compress(bytes(data), compresslevel=self._level, mtime=0)
        return base64.standard_b64encode(compressed)

    def decompress(self, data: bytes) -> bytes:
        """
        Reverse ``compress``.

        Raises:
            CompressionError: If ``data`` is not valid base64 or not a
                complete gzip stream
        """
        try:
            compressed = base64.b64decode(data, validate=True)
        except (binascii.Error, ValueError) as e:
            raise CompressionError(f"Invalid base64 in compressed payload: {e}") from e

        try:
            return gzip.decompress(compressed)
        except (OSError, EOFError, zlib.error) as e:
            raise CompressionError(f"Corrupt or truncated gzip stream: {e}") from e
