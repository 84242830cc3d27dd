"""
High-level queue client.

This module provides:
- Client: Sends, batches, receives, backs off and deletes messages, running
  every payload through the Pipeline
- ReceiveResult, ReceiveFailure: Per-message outcome of a receive

Quick Start
-----------
```python
from sqs_envelope import Client, ClientSettings

settings = ClientSettings(
    payload_bucket="large-payloads",
    kms_key_id="alias/queue-payloads",
    compression_enabled=True,
    key_cache_enabled=True,
)
client = Client.from_settings(settings)

client.send_message("orders", b'{"order_id": 1}')

result = client.receive_messages("orders")
for message in result.successful:
    handle(message.body)
    client.delete_message("orders", message.receipt_handle)
for failure in result.failed:
    client.backoff("orders", failure.message)
```
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

import boto3

from .aws import KmsKeyTransport, S3BlobTransport, SqsQueueTransport
from .batch import LOCAL_FAILURE_CODE, Batch, SendBatchResult
from .config import ClientSettings
from .errors import EnvelopeError, ValidationError
from .keys import KeyProvider
from .logger import get_logger
from .models import AttributeValue, ReceivedMessage
from .pipeline import Pipeline
from .transport import (
    BatchRequestEntry,
    BatchResultError,
    BlobTransport,
    KeyManagementTransport,
    QueueTransport,
)

logger = get_logger(__name__)


@dataclass
class ReceiveFailure:
    """A received message that could not be resolved. ``message`` is as received."""

    message: ReceivedMessage
    error: EnvelopeError


@dataclass
class ReceiveResult:
    successful: List[ReceivedMessage] = field(default_factory=list)
    failed: List[ReceiveFailure] = field(default_factory=list)


class Client:
    """
    Queue client with transparent compression, encryption and blob offload.

    Safe to share between threads. Each client owns its pipeline and key
    cache; two clients never share cached keys.
    """

    def __init__(
        self,
        settings: ClientSettings,
        queue_transport: QueueTransport,
        blob_transport: Optional[BlobTransport] = None,
        key_transport: Optional[KeyManagementTransport] = None,
        key_provider: Optional[KeyProvider] = None,
    ) -> None:
        """
        Initialize a Client.

        Args:
            settings: Frozen client settings
            queue_transport: Queue collaborator
            blob_transport: Blob store collaborator, required with a bucket
            key_transport: Key management collaborator, required with a key id
            key_provider: Prebuilt KeyProvider (overrides ``key_transport``)

        Raises:
            ConfigError: If an enabled stage has no collaborator
        """
        self._settings = settings
        self._queue = queue_transport
        self._pipeline = Pipeline(
            settings,
            blob_transport=blob_transport,
            key_transport=key_transport,
            key_provider=key_provider,
        )
        self._queue_urls: Dict[str, str] = {}
        self._queue_urls_lock = threading.Lock()

        logger.debug(
            "queue client initialized",
            compression=settings.compression_enabled,
            encryption=settings.encryption_enabled,
            offload=settings.offload_enabled,
            key_cache=settings.key_cache_enabled,
        )

    @classmethod
    def from_settings(
        cls, settings: Optional[ClientSettings] = None, session: Any = None
    ) -> Client:
        """
        Build a Client on boto3 clients from ``session``.

        S3 and KMS clients are only created when a bucket or key id is set.
        """
        settings = settings or ClientSettings()
        session = session or boto3.session.Session(region_name=settings.aws_region)

        blob_transport = None
        if settings.offload_enabled:
            blob_transport = S3BlobTransport(session.client("s3"))

        key_transport = None
        if settings.encryption_enabled:
            key_transport = KmsKeyTransport(session.client("kms"))

        return cls(
            settings,
            SqsQueueTransport(session.client("sqs")),
            blob_transport=blob_transport,
            key_transport=key_transport,
        )

    @property
    def settings(self) -> ClientSettings:
        return self._settings

    @property
    def pipeline(self) -> Pipeline:
        return self._pipeline

    def queue_url(self, queue_name: str) -> str:
        """
        Resolve and memoize the locator of ``queue_name``.

        The lookup runs outside the lock, so a slow resolution never blocks
        senders to queues already resolved. Concurrent misses on the same
        queue may both resolve; the first stored locator wins.
        """
        with self._queue_urls_lock:
            url = self._queue_urls.get(queue_name)
        if url is not None:
            return url

        url = self._queue.resolve_destination(queue_name)
        with self._queue_urls_lock:
            return self._queue_urls.setdefault(queue_name, url)

    def send_message(self, queue_name: str, payload: bytes) -> str:
        """Send ``payload`` without custom attributes. Returns the message id."""
        return self.send_message_with_attributes(queue_name, payload, None)

    def send_message_with_attributes(
        self,
        queue_name: str,
        payload: bytes,
        attributes: Optional[Mapping[str, AttributeValue]],
    ) -> str:
        """
        Send ``payload`` with ``attributes`` through the pipeline.

        The pipeline may add up to three marker attributes, so the queue can
        reject a message sent with close to ten attributes.

        Returns:
            The message id assigned by the queue

        Raises:
            ValidationError: If the message is too large or has too many attributes
            CompressionError, CryptoError, TransportError: If a stage or the send fails
        """
        message = self._pipeline.prepare_outbound(payload, attributes)
        return self._queue.send(
            self.queue_url(queue_name),
            message.body,
            message.attributes,
            self._settings.delay_seconds,
        )

    def send_message_batch(self, queue_name: str, batch: Batch) -> SendBatchResult:
        """
        Send every message in ``batch``.

        Messages that fail in the pipeline are reported in ``failed`` and the
        rest are still sent. A batch can be sent once.

        Raises:
            BatchAlreadySentError: If ``batch`` was already sent
            TransportError: If the batch call itself fails
        """
        entries = batch.take_for_send()
        result = SendBatchResult()

        prepared: List[BatchRequestEntry] = []
        for entry in entries:
            try:
                message = self._pipeline.prepare_outbound(entry.payload, entry.attributes)
            except EnvelopeError as e:
                result.failed.append(
                    BatchResultError(
                        id=entry.id,
                        code=LOCAL_FAILURE_CODE,
                        message=f"client error when sending batch: {e}",
                        sender_fault=True,
                    )
                )
                continue

            prepared.append(
                BatchRequestEntry(
                    id=entry.id,
                    body=message.body,
                    attributes=message.attributes,
                    delay_seconds=self._settings.delay_seconds,
                )
            )

        if prepared:
            successful, failed = self._queue.send_batch(self.queue_url(queue_name), prepared)
            result.successful.extend(successful)
            result.failed.extend(failed)

        logger.debug(
            "batch processed",
            queue=queue_name,
            successful=len(result.successful),
            failed=len(result.failed),
        )
        return result

    def receive_messages(self, queue_name: str) -> ReceiveResult:
        """
        Poll ``queue_name`` and resolve each message through the pipeline.

        Offloaded payloads are fetched but never deleted from the bucket.

        Raises:
            TransportError: If the receive call fails
        """
        messages = self._queue.receive(
            self.queue_url(queue_name),
            max_messages=self._settings.max_number_of_messages,
            wait_seconds=self._settings.wait_time_seconds,
            visibility_timeout=self._settings.initial_visibility_timeout,
            attribute_names=self._settings.attribute_names,
            message_attribute_names=self._settings.message_attribute_names,
        )

        result = ReceiveResult()
        for received in messages:
            try:
                resolved = self._pipeline.resolve_inbound(
                    received.body, received.message_attributes
                )
            except EnvelopeError as e:
                result.failed.append(ReceiveFailure(message=received, error=e))
                continue

            result.successful.append(
                ReceivedMessage(
                    message_id=received.message_id,
                    receipt_handle=received.receipt_handle,
                    body=resolved.body,
                    attributes=dict(received.attributes),
                    message_attributes=resolved.attributes,
                )
            )

        return result

    def change_message_visibility(
        self, queue_name: str, message: ReceivedMessage, timeout: int
    ) -> None:
        """Hide ``message`` from other consumers for ``timeout`` seconds."""
        self._queue.change_visibility(
            self.queue_url(queue_name), message.receipt_handle, timeout
        )

    def backoff(self, queue_name: str, message: ReceivedMessage) -> int:
        """
        Change visibility of ``message`` by the configured backoff function.

        Returns:
            The visibility timeout applied

        Raises:
            ValidationError: If the message has no usable ApproximateReceiveCount
        """
        receive_count = message.receive_count()
        if receive_count is None:
            raise ValidationError("error getting received count")

        timeout = self._settings.backoff_function(
            receive_count,
            self._settings.initial_visibility_timeout,
            self._settings.max_visibility_timeout,
            self._settings.backoff_factor,
        )
        self.change_message_visibility(queue_name, message, timeout)
        return timeout

    def delete_message(self, queue_name: str, receipt_handle: str) -> None:
        """Remove a message from the queue."""
        self._queue.delete(self.queue_url(queue_name), receipt_handle)
