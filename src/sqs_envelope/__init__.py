"""
SQS Envelope

A queue client that transparently compresses, encrypts and offloads message
payloads, so that applications can send payloads larger than the queue allows
and keep them confidential in transit, without changing how they send,
receive, back off or delete messages.

Quick Start
-----------
```python
from sqs_envelope import Client, ClientSettings

settings = ClientSettings(
    payload_bucket="large-payloads",
    kms_key_id="alias/queue-payloads",
    compression_enabled=True,
)
client = Client.from_settings(settings)
client.send_message("orders", b"...")

for message in client.receive_messages("orders").successful:
    client.delete_message("orders", message.receipt_handle)
```

Key Features
------------
- **Compression**: gzip + base64, marked with the ``compression`` attribute
- **Encryption**: AES-256-GCM under KMS data keys, marked with ``kmsKey``
- **Blob offload**: Oversized payloads go to S3, marked with ``payloadBucket``
- **Key caching**: Optional time-limited cache of data keys
- **Batches**: Per-message failures without failing the whole batch

Modules
-------
- `pipeline`: Ordered outbound stages and marker-driven inbound resolution
- `client`: High-level send / batch / receive / backoff / delete API
- `keys`: KMS data key envelope encryption and `cache`: the data key cache
- `crypto`: AES-256-GCM primitives
- `blob`, `compression`: Offload and compression stages
- `aws`, `memory`: boto3 and in-memory transports
- `config`: Settings; `errors`: Exception classes
"""

__version__ = "0.1.0"

# ============================================================================
# Crypto and Cache Exports
# ============================================================================

from .crypto import (
    AES_256_KEY_SIZE,
    NONCE_SIZE,
    TAG_SIZE,
    AesGcmCipher,
    SecureKey,
)

from .cache import (
    CacheEntry,
    KeyCache,
    fingerprint,
)

# ============================================================================
# Error Exports
# ============================================================================

from .errors import (
    BatchAlreadySentError,
    BatchFullError,
    BatchStateError,
    CompressionError,
    ConfigError,
    CryptoError,
    DuplicateIDError,
    EnvelopeError,
    PayloadTooLargeError,
    SerializationError,
    TooManyAttributesError,
    TransportError,
    ValidationError,
)

# ============================================================================
# Message and Stage Exports
# ============================================================================

from .models import (
    ATTRIBUTE_COMPRESSION,
    ATTRIBUTE_KMS_KEY,
    ATTRIBUTE_PAYLOAD_BUCKET,
    MAX_BATCH_SIZE,
    MAX_MESSAGE_SIZE,
    MAX_NUMBER_OF_ATTRIBUTES,
    AttributeValue,
    Message,
    ReceivedMessage,
)

from .blob import BlobDescriptor, BlobOffloader
from .compression import Compressor
from .keys import KeyProvider, WrappedKey
from .pipeline import Pipeline

# ============================================================================
# Transport Exports
# ============================================================================

from .transport import (
    BatchRequestEntry,
    BatchResultEntry,
    BatchResultError,
    BlobTransport,
    DataKey,
    KeyManagementTransport,
    QueueTransport,
)

from .aws import KmsKeyTransport, S3BlobTransport, SqsQueueTransport
from .memory import InMemoryBlobTransport, InMemoryKeyTransport, InMemoryQueueTransport

# ============================================================================
# Client Exports (Primary API)
# ============================================================================

from .backoff import exponential_backoff, linear_backoff
from .batch import Batch, SendBatchResult
from .client import Client, ReceiveFailure, ReceiveResult
from .config import ClientSettings
from .logger import configure_logging, get_logger

# ============================================================================
# Public API
# ============================================================================

__all__ = [
    # Version
    "__version__",
    # Crypto
    "AES_256_KEY_SIZE",
    "NONCE_SIZE",
    "TAG_SIZE",
    "AesGcmCipher",
    "SecureKey",
    # Cache
    "KeyCache",
    "CacheEntry",
    "fingerprint",
    # Errors
    "EnvelopeError",
    "ValidationError",
    "PayloadTooLargeError",
    "TooManyAttributesError",
    "CryptoError",
    "CompressionError",
    "SerializationError",
    "ConfigError",
    "TransportError",
    "BatchStateError",
    "DuplicateIDError",
    "BatchAlreadySentError",
    "BatchFullError",
    # Messages
    "ATTRIBUTE_COMPRESSION",
    "ATTRIBUTE_KMS_KEY",
    "ATTRIBUTE_PAYLOAD_BUCKET",
    "MAX_BATCH_SIZE",
    "MAX_MESSAGE_SIZE",
    "MAX_NUMBER_OF_ATTRIBUTES",
    "AttributeValue",
    "Message",
    "ReceivedMessage",
    # Stages
    "BlobDescriptor",
    "BlobOffloader",
    "Compressor",
    "KeyProvider",
    "WrappedKey",
    "Pipeline",
    # Transports
    "QueueTransport",
    "BlobTransport",
    "KeyManagementTransport",
    "DataKey",
    "BatchRequestEntry",
    "BatchResultEntry",
    "BatchResultError",
    "SqsQueueTransport",
    "S3BlobTransport",
    "KmsKeyTransport",
    "InMemoryQueueTransport",
    "InMemoryBlobTransport",
    "InMemoryKeyTransport",
    # Client (Primary API)
    "Client",
    "ClientSettings",
    "Batch",
    "SendBatchResult",
    "ReceiveResult",
    "ReceiveFailure",
    "exponential_backoff",
    "linear_backoff",
    "configure_logging",
    "get_logger",
]
