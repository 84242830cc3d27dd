"""
Offloading of oversized payloads to a blob store.

This module provides:
- BlobDescriptor: Pointer to an offloaded payload, sent as the message body
- BlobOffloader: Uploads payloads under unique names and downloads them back

Uploaded objects are never deleted by this library. Configure a lifecycle
rule on the bucket to expire them.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Dict, Optional
from uuid import uuid4

from .errors import SerializationError
from .logger import get_logger
from .transport import BlobTransport

logger = get_logger(__name__)


@dataclass(frozen=True)
class BlobDescriptor:
    """Location and size of an offloaded payload. Unset fields are omitted on the wire."""

    size: Optional[int] = None
    bucket: Optional[str] = None
    filename: Optional[str] = None

    def to_json(self) -> bytes:
        document: Dict[str, Any] = {}
        if self.size is not None:
            document["size"] = self.size
        if self.bucket is not None:
            document["bucket"] = self.bucket
        if self.filename is not None:
            document["filename"] = self.filename
        return json.dumps(document, separators=(",", ":")).encode("utf-8")

    @classmethod
    def from_json(cls, data: bytes) -> BlobDescriptor:
        try:
            document = json.loads(data)
            if not isinstance(document, dict):
                raise TypeError("descriptor must be a JSON object")
            size = document.get("size")
            return cls(
                size=int(size) if size is not None else None,
                bucket=document.get("bucket"),
                filename=document.get("filename"),
            )
        except (ValueError, TypeError, OverflowError) as e:
            raise SerializationError(f"Failed to deserialize blob descriptor: {e}") from e


class BlobOffloader:
    """Moves payloads to and from a blob store."""

    def __init__(self, transport: BlobTransport) -> None:
        self._transport = transport

    def upload(self, container: str, payload: bytes) -> BlobDescriptor:
        """
        Upload ``payload`` under a fresh UUID name.

        Returns:
            Descriptor recording the exact uploaded size

        Raises:
            TransportError: If the upload fails
        """
        name = str(uuid4())
        self._transport.put(container, name, payload)
        logger.debug("payload offloaded", bucket=container, filename=name, size=len(payload))

        return BlobDescriptor(size=len(payload), bucket=container, filename=name)

    def download(self, descriptor: BlobDescriptor) -> bytes:
        """
        Fetch the payload ``descriptor`` points at.

        Raises:
            SerializationError: If the descriptor has no bucket or filename
            TransportError: If the download fails
        """
        if not descriptor.bucket or not descriptor.filename:
            raise SerializationError("Blob descriptor is missing bucket or filename")

        payload = self._transport.get(descriptor.bucket, descriptor.filename)
        logger.debug(
            "offloaded payload fetched",
            bucket=descriptor.bucket,
            filename=descriptor.filename,
            size=len(payload),
        )
        return payload
