"""
Exception classes for the message transformation pipeline.

Every error carries an optional ``stage`` naming the pipeline stage that
raised it ("compression", "encryption", "offload", ...). The original cause,
when there is one, is chained with ``raise ... from``.
"""

from __future__ import annotations

from typing import Optional


class EnvelopeError(Exception):
    """Base exception for all pipeline and client operations."""

    def __init__(self, message: str, stage: Optional[str] = None) -> None:
        super().__init__(message)
        self.stage = stage

    def __str__(self) -> str:
        message = super().__str__()
        if self.stage:
            return f"[{self.stage}] {message}"
        return message


class ValidationError(EnvelopeError):
    """The request is malformed relative to the configured limits."""

    pass


class PayloadTooLargeError(ValidationError):
    """Message size exceeds the maximum and cannot be offloaded."""

    pass


class TooManyAttributesError(ValidationError):
    """Message carries more attributes than the queue allows."""

    pass


class CryptoError(EnvelopeError):
    """Cryptographic operation failed (encryption, decryption, key handling)."""

    pass


class CompressionError(EnvelopeError):
    """Compressed payload could not be decoded or inflated."""

    pass


class SerializationError(EnvelopeError):
    """Serialization or deserialization of a message body failed."""

    pass


class ConfigError(EnvelopeError):
    """Configuration error."""

    pass


class TransportError(EnvelopeError):
    """A queue, blob store or key management call failed."""

    def __init__(
        self,
        message: str,
        stage: Optional[str] = None,
        error_code: Optional[str] = None,
    ) -> None:
        super().__init__(message, stage)
        self.error_code = error_code


class BatchStateError(EnvelopeError):
    """A batch was used in a way its lifecycle does not allow."""

    pass


class DuplicateIDError(BatchStateError):
    """An id was added to a batch twice."""

    pass


class BatchAlreadySentError(BatchStateError):
    """The batch has already been submitted."""

    pass


class BatchFullError(BatchStateError):
    """The batch already holds the maximum number of entries."""

    pass
