"""
The message transformation pipeline.

This module provides:
- Pipeline: Prepares outbound payloads and resolves inbound ones
- CompressionStage, EncryptionStage, OffloadStage: The reversible stages

Outbound order is fixed:

    raw -> compress (if enabled) -> encrypt (if key id) -> offload (if forced
    or oversized, and a bucket is set) -> final

Each stage that runs adds its marker attribute. Inbound resolution is driven
only by the markers present on the message and runs in mirror order: offload,
then encryption, then compression. The offload size check measures the
message after compression and encryption have run, attributes included.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Dict, List, Mapping, Optional

from .blob import BlobDescriptor, BlobOffloader
from .compression import Compressor
from .config import ClientSettings
from .errors import (
    ConfigError,
    EnvelopeError,
    PayloadTooLargeError,
    TooManyAttributesError,
)
from .keys import KeyProvider, WrappedKey
from .logger import get_logger
from .models import (
    ATTRIBUTE_COMPRESSION,
    ATTRIBUTE_KMS_KEY,
    ATTRIBUTE_PAYLOAD_BUCKET,
    COMPRESSION_GZIP,
    AttributeValue,
    Message,
)
from .transport import BlobTransport, KeyManagementTransport

logger = get_logger(__name__)


class Stage(ABC):
    """A reversible payload transformation tagged by a marker attribute."""

    name: str
    marker: str

    def should_apply(self, message: Message) -> bool:
        return True

    @abstractmethod
    def apply(self, message: Message) -> Message:
        """Transform an outbound message and add the marker."""
        ...

    @abstractmethod
    def revert(self, message: Message) -> Message:
        """Undo ``apply`` on an inbound message and strip the marker."""
        ...

    def _tagged(self, message: Message, body: bytes, value: str) -> Message:
        attributes = dict(message.attributes)
        attributes[self.marker] = AttributeValue(string_value=value)
        return Message(body=body, attributes=attributes)

    def _untagged(self, message: Message, body: bytes) -> Message:
        attributes = {k: v for k, v in message.attributes.items() if k != self.marker}
        return Message(body=body, attributes=attributes)


class CompressionStage(Stage):
    name = "compression"
    marker = ATTRIBUTE_COMPRESSION

    def __init__(self, compressor: Compressor) -> None:
        self._compressor = compressor

    def apply(self, message: Message) -> Message:
        body = self._compressor.compress(message.body)
        return self._tagged(message, body, COMPRESSION_GZIP)

    def revert(self, message: Message) -> Message:
        body = self._compressor.decompress(message.body)
        return self._untagged(message, body)


class EncryptionStage(Stage):
    name = "encryption"
    marker = ATTRIBUTE_KMS_KEY

    def __init__(self, provider: KeyProvider, key_id: str = "") -> None:
        self._provider = provider
        self._key_id = key_id

    def apply(self, message: Message) -> Message:
        wrapped = self._provider.encrypt_payload(self._key_id, message.body)
        return self._tagged(message, wrapped.to_json(), self._key_id)

    def revert(self, message: Message) -> Message:
        wrapped = WrappedKey.from_json(message.body)
        body = self._provider.decrypt_payload(wrapped)
        return self._untagged(message, body)


class OffloadStage(Stage):
    name = "offload"
    marker = ATTRIBUTE_PAYLOAD_BUCKET

    def __init__(
        self,
        offloader: BlobOffloader,
        bucket: str = "",
        force: bool = False,
        max_payload_bytes: int = 0,
    ) -> None:
        self._offloader = offloader
        self._bucket = bucket
        self._force = force
        self._max_payload_bytes = max_payload_bytes

    def should_apply(self, message: Message) -> bool:
        return self._force or message.size() > self._max_payload_bytes

    def apply(self, message: Message) -> Message:
        descriptor = self._offloader.upload(self._bucket, message.body)
        return self._tagged(message, descriptor.to_json(), self._bucket)

    def revert(self, message: Message) -> Message:
        descriptor = BlobDescriptor.from_json(message.body)
        body = self._offloader.download(descriptor)
        return self._untagged(message, body)


def _run(stage: Stage, step, message: Message) -> Message:
    try:
        return step(message)
    except EnvelopeError as e:
        if e.stage is None:
            e.stage = stage.name
        raise


class Pipeline:
    """
    Applies and reverses the compression, encryption and offload stages.

    The outbound stage list holds only the stages enabled by ``settings``.
    The inbound list holds every stage whose collaborator is available, since
    a receiver must be able to undo whatever a sender applied.

    Stateless apart from the key cache; safe to share between threads.
    """

    def __init__(
        self,
        settings: ClientSettings,
        blob_transport: Optional[BlobTransport] = None,
        key_transport: Optional[KeyManagementTransport] = None,
        key_provider: Optional[KeyProvider] = None,
    ) -> None:
        """
        Initialize a Pipeline.

        Args:
            settings: Frozen client settings
            blob_transport: Blob store, required when a bucket is configured
            key_transport: Key management, required when a key id is configured
            key_provider: Prebuilt KeyProvider (overrides ``key_transport``)

        Raises:
            ConfigError: If an enabled stage has no collaborator
        """
        self._settings = settings

        if key_provider is None and key_transport is not None:
            key_provider = KeyProvider(
                key_transport,
                cache_enabled=settings.key_cache_enabled,
                cache_expiration=settings.key_cache_expiration,
            )
        self._key_provider = key_provider

        if settings.offload_enabled and blob_transport is None:
            raise ConfigError("payload_bucket is set but no blob transport was given")
        if settings.encryption_enabled and key_provider is None:
            raise ConfigError("kms_key_id is set but no key transport was given")

        compression = CompressionStage(Compressor())
        encryption = (
            EncryptionStage(key_provider, settings.kms_key_id)
            if key_provider is not None
            else None
        )
        offload = (
            OffloadStage(
                BlobOffloader(blob_transport),
                bucket=settings.payload_bucket,
                force=settings.force_offload,
                max_payload_bytes=settings.max_payload_bytes,
            )
            if blob_transport is not None
            else None
        )

        self._outbound: List[Stage] = []
        if settings.compression_enabled:
            self._outbound.append(compression)
        if settings.encryption_enabled:
            self._outbound.append(encryption)
        if settings.offload_enabled:
            self._outbound.append(offload)

        self._inbound: Dict[str, Stage] = {compression.marker: compression}
        if encryption is not None:
            self._inbound[encryption.marker] = encryption
        if offload is not None:
            self._inbound[offload.marker] = offload

    @property
    def settings(self) -> ClientSettings:
        return self._settings

    @property
    def key_provider(self) -> Optional[KeyProvider]:
        return self._key_provider

    def prepare_outbound(
        self,
        payload: bytes,
        attributes: Optional[Mapping[str, AttributeValue]] = None,
    ) -> Message:
        """
        Run ``payload`` through the enabled stages.

        The pipeline adds up to three marker attributes; callers sending close
        to the attribute limit must leave room for them.

        Returns:
            The message to hand to the queue transport

        Raises:
            TooManyAttributesError: If the caller passed too many attributes
            PayloadTooLargeError: If the final message exceeds the size limit
            CompressionError, CryptoError, TransportError: If a stage fails
        """
        attributes = dict(attributes or {})
        if len(attributes) > self._settings.max_attribute_count:
            raise TooManyAttributesError(
                f"maximum number of attributes of {self._settings.max_attribute_count} exceeded"
            )

        message = Message(body=bytes(payload), attributes=attributes)
        for stage in self._outbound:
            if not stage.should_apply(message):
                continue
            message = _run(stage, stage.apply, message)
            logger.debug("outbound stage applied", stage=stage.name, size=message.size())

        if message.size() > self._settings.max_payload_bytes:
            raise PayloadTooLargeError(
                f"maximum message size of {self._settings.max_payload_bytes} bytes exceeded"
            )

        return message

    def resolve_inbound(
        self,
        payload: bytes,
        attributes: Optional[Mapping[str, AttributeValue]] = None,
    ) -> Message:
        """
        Undo every stage whose marker is present, in reverse order.

        Returns:
            The original payload with markers removed from the attributes

        Raises:
            ConfigError: If a marker is present but its stage is unavailable
            SerializationError: If an offload or encryption envelope is malformed
            CompressionError, CryptoError, TransportError: If a stage fails
        """
        message = Message(body=bytes(payload), attributes=dict(attributes or {}))

        for marker in (ATTRIBUTE_PAYLOAD_BUCKET, ATTRIBUTE_KMS_KEY, ATTRIBUTE_COMPRESSION):
            if not message.has_marker(marker):
                continue
            stage = self._inbound.get(marker)
            if stage is None:
                raise ConfigError(
                    f"message carries the {marker!r} marker but no collaborator is configured to resolve it"
                )
            message = _run(stage, stage.revert, message)
            logger.debug("inbound stage reverted", stage=stage.name, size=len(message.body))

        return message
