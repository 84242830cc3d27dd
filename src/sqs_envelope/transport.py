"""
Collaborator interfaces consumed by the pipeline and client.

This module provides:
- QueueTransport: Send, receive, change visibility and delete on a queue
- BlobTransport: Put and get objects in a blob store
- KeyManagementTransport: Generate and decrypt data keys
- DataKey, BatchRequestEntry, BatchResultEntry, BatchResultError: Value types

Implementations raise TransportError for collaborator failures. Timeouts and
retries are the implementation's business; callers never retry.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import List, Mapping, Sequence, Tuple

from .crypto import SecureKey
from .models import Attributes, AttributeValue, ReceivedMessage


@dataclass
class DataKey:
    """A data key in plaintext and wrapped form."""

    plaintext: SecureKey
    ciphertext_blob: bytes
    key_id: str


@dataclass
class BatchRequestEntry:
    """One prepared message in a batch send."""

    id: str
    body: bytes
    attributes: Attributes = field(default_factory=dict)
    delay_seconds: int = 0


@dataclass
class BatchResultEntry:
    """A batch entry the queue accepted."""

    id: str
    message_id: str


@dataclass
class BatchResultError:
    """A batch entry that failed, either locally or at the queue."""

    id: str
    code: str
    message: str
    sender_fault: bool = True


class QueueTransport(ABC):
    """Abstract queue operations."""

    @abstractmethod
    def resolve_destination(self, name: str) -> str:
        """Resolve a queue name to the locator used by the other calls."""
        ...

    @abstractmethod
    def send(
        self,
        destination: str,
        body: bytes,
        attributes: Mapping[str, AttributeValue],
        delay_seconds: int,
    ) -> str:
        """Send one message. Returns the message id."""
        ...

    @abstractmethod
    def send_batch(
        self, destination: str, entries: Sequence[BatchRequestEntry]
    ) -> Tuple[List[BatchResultEntry], List[BatchResultError]]:
        """Send up to ten messages. Returns per-entry successes and failures."""
        ...

    @abstractmethod
    def receive(
        self,
        destination: str,
        max_messages: int,
        wait_seconds: int,
        visibility_timeout: int,
        attribute_names: Sequence[str],
        message_attribute_names: Sequence[str],
    ) -> List[ReceivedMessage]:
        """Receive messages, returning only the allow-listed attributes."""
        ...

    @abstractmethod
    def change_visibility(
        self, destination: str, receipt_handle: str, timeout_seconds: int
    ) -> None:
        ...

    @abstractmethod
    def delete(self, destination: str, receipt_handle: str) -> None:
        ...


class BlobTransport(ABC):
    """Abstract blob store operations."""

    @abstractmethod
    def put(self, container: str, name: str, data: bytes) -> None:
        ...

    @abstractmethod
    def get(self, container: str, name: str) -> bytes:
        ...


class KeyManagementTransport(ABC):
    """Abstract key management operations."""

    @abstractmethod
    def generate_data_key(self, key_id: str) -> DataKey:
        """Generate a new 256-bit data key under the master key ``key_id``."""
        ...

    @abstractmethod
    def decrypt_data_key(self, ciphertext_blob: bytes) -> SecureKey:
        """Unwrap a data key previously returned by ``generate_data_key``."""
        ...
