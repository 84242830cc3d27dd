"""
Thread-safe in-memory transports for testing.

This module provides:
- InMemoryQueueTransport: Per-queue FIFO with a bounded wait for arrivals
- InMemoryBlobTransport: Dictionary-backed blob store
- InMemoryKeyTransport: Local key management that really wraps data keys

They behave like the AWS services closely enough for tests (attribute
allow-lists, receipt handles, receive counts) and count calls so tests can
assert how often a collaborator was used.
"""

from __future__ import annotations

import secrets
import threading
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Deque, Dict, List, Mapping, Optional, Sequence, Tuple
from uuid import uuid4

from .crypto import AES_256_KEY_SIZE, AesGcmCipher, SecureKey
from .errors import CryptoError, TransportError
from .models import APPROXIMATE_RECEIVE_COUNT, Attributes, AttributeValue, ReceivedMessage
from .transport import (
    BatchRequestEntry,
    BatchResultEntry,
    BatchResultError,
    BlobTransport,
    DataKey,
    KeyManagementTransport,
    QueueTransport,
)


def select_attributes(
    names: Sequence[str], attributes: Mapping[str, AttributeValue]
) -> Attributes:
    """Filter ``attributes`` by an SQS-style allow-list (All, .*, name, prefix.*)."""
    if "All" in names or ".*" in names:
        return dict(attributes)

    prefixes = [name[:-2] for name in names if name.endswith(".*")]
    exact = set(names)
    return {
        key: value
        for key, value in attributes.items()
        if key in exact or any(key.startswith(prefix + ".") for prefix in prefixes)
    }


@dataclass
class _StoredMessage:
    message_id: str
    body: bytes
    attributes: Attributes
    receive_count: int = 0
    receipt_handle: Optional[str] = None


@dataclass
class _Queue:
    pending: Deque[_StoredMessage] = field(default_factory=deque)
    in_flight: Dict[str, _StoredMessage] = field(default_factory=dict)


class InMemoryQueueTransport(QueueTransport):
    """
    In-memory queue. Queues must be created with ``create_queue`` first.

    Delays are ignored; a message is receivable as soon as it is sent.
    Visibility changes are recorded, and a timeout of 0 makes the message
    receivable again.
    """

    def __init__(self) -> None:
        self._queues: Dict[str, _Queue] = {}
        self._cond = threading.Condition()
        self.send_calls = 0
        self.send_batch_calls = 0
        self.receive_calls = 0
        self.visibility_changes: List[Tuple[str, str, int]] = []
        self.deleted: List[Tuple[str, str]] = []

    def create_queue(self, name: str) -> str:
        with self._cond:
            self._queues.setdefault(name, _Queue())
        return name

    def _queue(self, destination: str) -> _Queue:
        queue = self._queues.get(destination)
        if queue is None:
            raise TransportError(
                f"queue {destination!r} does not exist",
                error_code="AWS.SimpleQueueService.NonExistentQueue",
            )
        return queue

    def resolve_destination(self, name: str) -> str:
        with self._cond:
            self._queue(name)
        return name

    def send(
        self,
        destination: str,
        body: bytes,
        attributes: Mapping[str, AttributeValue],
        delay_seconds: int,
    ) -> str:
        with self._cond:
            self.send_calls += 1
            message_id = self._enqueue(destination, body, attributes)
            self._cond.notify_all()
            return message_id

    def send_batch(
        self, destination: str, entries: Sequence[BatchRequestEntry]
    ) -> Tuple[List[BatchResultEntry], List[BatchResultError]]:
        with self._cond:
            self.send_batch_calls += 1
            successful = [
                BatchResultEntry(
                    id=entry.id,
                    message_id=self._enqueue(destination, entry.body, entry.attributes),
                )
                for entry in entries
            ]
            self._cond.notify_all()
            return successful, []

    def _enqueue(
        self, destination: str, body: bytes, attributes: Mapping[str, AttributeValue]
    ) -> str:
        queue = self._queue(destination)
        message = _StoredMessage(
            message_id=str(uuid4()), body=bytes(body), attributes=dict(attributes)
        )
        queue.pending.append(message)
        return message.message_id

    def receive(
        self,
        destination: str,
        max_messages: int,
        wait_seconds: int,
        visibility_timeout: int,
        attribute_names: Sequence[str],
        message_attribute_names: Sequence[str],
    ) -> List[ReceivedMessage]:
        with self._cond:
            self.receive_calls += 1
            queue = self._queue(destination)
            if wait_seconds > 0:
                self._cond.wait_for(lambda: len(queue.pending) > 0, timeout=wait_seconds)

            received = []
            while queue.pending and len(received) < max_messages:
                message = queue.pending.popleft()
                message.receive_count += 1
                message.receipt_handle = str(uuid4())
                queue.in_flight[message.receipt_handle] = message
                received.append(
                    self._to_received(message, attribute_names, message_attribute_names)
                )
            return received

    @staticmethod
    def _to_received(
        message: _StoredMessage,
        attribute_names: Sequence[str],
        message_attribute_names: Sequence[str],
    ) -> ReceivedMessage:
        system = {APPROXIMATE_RECEIVE_COUNT: str(message.receive_count)}
        if "All" not in attribute_names:
            system = {k: v for k, v in system.items() if k in attribute_names}

        return ReceivedMessage(
            message_id=message.message_id,
            receipt_handle=message.receipt_handle or "",
            body=message.body,
            attributes=system,
            message_attributes=select_attributes(
                message_attribute_names, message.attributes
            ),
        )

    def change_visibility(
        self, destination: str, receipt_handle: str, timeout_seconds: int
    ) -> None:
        with self._cond:
            queue = self._queue(destination)
            message = queue.in_flight.get(receipt_handle)
            if message is None:
                raise TransportError(
                    "receipt handle is invalid", error_code="ReceiptHandleIsInvalid"
                )
            self.visibility_changes.append((destination, receipt_handle, timeout_seconds))
            if timeout_seconds == 0:
                del queue.in_flight[receipt_handle]
                queue.pending.appendleft(message)
                self._cond.notify_all()

    def delete(self, destination: str, receipt_handle: str) -> None:
        with self._cond:
            queue = self._queue(destination)
            if queue.in_flight.pop(receipt_handle, None) is None:
                raise TransportError(
                    "receipt handle is invalid", error_code="ReceiptHandleIsInvalid"
                )
            self.deleted.append((destination, receipt_handle))

    def wait_for_messages(
        self, destination: str, count: int, timeout: float = 5.0
    ) -> List[ReceivedMessage]:
        """
        Wait until ``count`` messages are queued, then receive exactly those.

        Attributes are returned unfiltered, as sent on the wire.

        Raises:
            TimeoutError: If fewer than ``count`` messages arrive in time
        """
        deadline = time.monotonic() + timeout
        with self._cond:
            queue = self._queue(destination)
            while len(queue.pending) < count:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    raise TimeoutError(
                        f"expected {count} messages on {destination!r}, got {len(queue.pending)}"
                    )
                self._cond.wait(remaining)

            received = []
            for _ in range(count):
                message = queue.pending.popleft()
                message.receive_count += 1
                message.receipt_handle = str(uuid4())
                queue.in_flight[message.receipt_handle] = message
                received.append(self._to_received(message, ["All"], ["All"]))
            return received

    def pending_count(self, destination: str) -> int:
        with self._cond:
            return len(self._queue(destination).pending)


class InMemoryBlobTransport(BlobTransport):
    """Dictionary-backed blob store."""

    def __init__(self) -> None:
        self._objects: Dict[Tuple[str, str], bytes] = {}
        self._lock = threading.Lock()
        self.put_calls = 0
        self.get_calls = 0

    def put(self, container: str, name: str, data: bytes) -> None:
        with self._lock:
            self.put_calls += 1
            self._objects[(container, name)] = bytes(data)

    def get(self, container: str, name: str) -> bytes:
        with self._lock:
            self.get_calls += 1
            data = self._objects.get((container, name))
        if data is None:
            raise TransportError(
                f"object {container}/{name} does not exist", error_code="NoSuchKey"
            )
        return data

    def objects(self) -> Dict[Tuple[str, str], bytes]:
        with self._lock:
            return dict(self._objects)


class InMemoryKeyTransport(KeyManagementTransport):
    """
    Local key management.

    Data keys are random and wrapped with a per-instance master key, so only
    this instance can unwrap them, as with a real KMS key.
    """

    def __init__(self, master_key: Optional[bytes] = None) -> None:
        self._master_key = SecureKey(master_key or _random_key())
        self._lock = threading.Lock()
        self.generate_calls = 0
        self.decrypt_calls = 0

    def generate_data_key(self, key_id: str) -> DataKey:
        with self._lock:
            self.generate_calls += 1
        if not key_id:
            raise TransportError("key id must not be empty", error_code="NotFoundException")

        plaintext = _random_key()
        wrapped = AesGcmCipher.encrypt(self._master_key, plaintext, key_id.encode("utf-8"))
        header = len(key_id.encode("utf-8")).to_bytes(2, "big") + key_id.encode("utf-8")
        return DataKey(
            plaintext=SecureKey(plaintext),
            ciphertext_blob=header + wrapped,
            key_id=key_id,
        )

    def decrypt_data_key(self, ciphertext_blob: bytes) -> SecureKey:
        with self._lock:
            self.decrypt_calls += 1

        try:
            length = int.from_bytes(ciphertext_blob[:2], "big")
            key_id = ciphertext_blob[2 : 2 + length]
            plaintext = AesGcmCipher.decrypt(
                self._master_key, ciphertext_blob[2 + length :], key_id
            )
        except CryptoError as e:
            raise TransportError(
                "ciphertext blob was not produced by this key store",
                error_code="InvalidCiphertextException",
            ) from e
        return SecureKey(plaintext)


def _random_key() -> bytes:
    return secrets.token_bytes(AES_256_KEY_SIZE)
