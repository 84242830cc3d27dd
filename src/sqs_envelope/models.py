"""
Message data structures and queue limits.

This module provides:
- AttributeValue: A string-typed message attribute
- Message: Payload plus attributes, as handed to or received from the pipeline
- ReceivedMessage: A message as returned by the queue transport
- Reserved attribute names used as stage markers
- message_size(): The queue's size accounting for body plus attributes
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Mapping, Optional

# Stage markers. These names are a wire contract shared by senders and
# receivers and must not change.
ATTRIBUTE_PAYLOAD_BUCKET: str = "payloadBucket"
ATTRIBUTE_KMS_KEY: str = "kmsKey"
ATTRIBUTE_COMPRESSION: str = "compression"
MARKER_ATTRIBUTES = (ATTRIBUTE_PAYLOAD_BUCKET, ATTRIBUTE_KMS_KEY, ATTRIBUTE_COMPRESSION)

COMPRESSION_GZIP: str = "gzip"

# System attribute used to compute visibility backoff.
APPROXIMATE_RECEIVE_COUNT: str = "ApproximateReceiveCount"

# Queue limits
MAX_MESSAGE_SIZE: int = 256 * 1024  # 262,144 bytes
MAX_NUMBER_OF_ATTRIBUTES: int = 10
MAX_BATCH_SIZE: int = 10


@dataclass(frozen=True)
class AttributeValue:
    """Message attribute. Only the string variant is modelled."""

    string_value: str
    data_type: str = "String"

    def size(self) -> int:
        return len(self.data_type.encode("utf-8")) + len(
            self.string_value.encode("utf-8")
        )

    def to_sqs(self) -> Dict[str, str]:
        return {"DataType": self.data_type, "StringValue": self.string_value}

    @classmethod
    def from_sqs(cls, value: Mapping[str, str]) -> AttributeValue:
        return cls(
            string_value=value.get("StringValue", ""),
            data_type=value.get("DataType", "String"),
        )


Attributes = Dict[str, AttributeValue]


def attributes_size(attributes: Mapping[str, AttributeValue]) -> int:
    """Bytes counted against the message size limit for ``attributes``."""
    return sum(
        len(name.encode("utf-8")) + value.size() for name, value in attributes.items()
    )


def message_size(body: bytes, attributes: Mapping[str, AttributeValue]) -> int:
    """Total size of a message as the queue counts it."""
    return len(body) + attributes_size(attributes)


@dataclass
class Message:
    """A payload and its attributes."""

    body: bytes
    attributes: Attributes = field(default_factory=dict)

    def size(self) -> int:
        return message_size(self.body, self.attributes)

    def has_marker(self, name: str) -> bool:
        return name in self.attributes


@dataclass
class ReceivedMessage:
    """
    A message as returned by a queue transport.

    ``attributes`` are the queue's system attributes (e.g.
    ApproximateReceiveCount); ``message_attributes`` are the user and
    stage-marker attributes.
    """

    message_id: str
    receipt_handle: str
    body: bytes
    attributes: Dict[str, str] = field(default_factory=dict)
    message_attributes: Attributes = field(default_factory=dict)

    def receive_count(self) -> Optional[int]:
        value = self.attributes.get(APPROXIMATE_RECEIVE_COUNT)
        if value is None:
            return None
        try:
            return int(value)
        except ValueError:
            return None
