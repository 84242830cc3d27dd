"""
Client configuration using pydantic-settings.

Settings are read from keyword arguments, ``SQS_ENVELOPE_*`` environment
variables and an optional ``.env`` file, validated once, and frozen. A Client
and its Pipeline keep the instance they were built with for their whole
lifetime.
"""

from __future__ import annotations

from datetime import timedelta
from typing import Callable, List, Optional

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .backoff import exponential_backoff
from .models import (
    APPROXIMATE_RECEIVE_COUNT,
    MARKER_ATTRIBUTES,
    MAX_MESSAGE_SIZE,
    MAX_NUMBER_OF_ATTRIBUTES,
)

BackoffFunction = Callable[[int, int, int, int], int]


def _with_required(names: List[str], required: tuple) -> List[str]:
    merged = list(required)
    for name in names:
        if name not in merged:
            merged.append(name)
    return merged


class ClientSettings(BaseSettings):
    """Immutable configuration for a Client and its Pipeline."""

    model_config = SettingsConfigDict(
        env_prefix="SQS_ENVELOPE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        frozen=True,
    )

    # AWS settings
    aws_region: Optional[str] = Field(
        default=None, description="AWS region; boto3 default resolution when unset"
    )

    # Sending
    delay_seconds: int = Field(
        default=30, ge=0, le=900, description="Seconds a sent message stays invisible"
    )

    # Receiving
    max_number_of_messages: int = Field(
        default=10, ge=1, le=10, description="Maximum messages returned per receive"
    )
    wait_time_seconds: int = Field(
        default=20, ge=0, le=20, description="Long-poll wait per receive call"
    )
    attribute_names: List[str] = Field(
        default_factory=list,
        validate_default=True,
        description="System attributes to request; ApproximateReceiveCount is always included",
    )
    message_attribute_names: List[str] = Field(
        default_factory=list,
        validate_default=True,
        description="Message attributes to request; stage markers are always included",
    )

    # Visibility backoff
    initial_visibility_timeout: int = Field(default=60, ge=0, le=43200)
    max_visibility_timeout: int = Field(default=900, ge=0, le=43200)
    backoff_factor: int = Field(default=2, ge=0)
    backoff_function: BackoffFunction = Field(
        default=exponential_backoff,
        exclude=True,
        description="f(receive_count, initial, max, factor) -> visibility timeout",
    )

    # Blob offload
    payload_bucket: str = Field(
        default="", description="Bucket for offloaded payloads; empty disables offload"
    )
    force_offload: bool = Field(
        default=False, description="Offload every payload regardless of size"
    )

    # Encryption
    kms_key_id: str = Field(
        default="", description="KMS key used for data keys; empty disables encryption"
    )
    key_cache_enabled: bool = Field(
        default=False,
        description="Cache data keys to reduce key management calls",
    )
    key_cache_expiration: timedelta = Field(default=timedelta(minutes=5))

    # Compression
    compression_enabled: bool = Field(default=False)

    # Queue limits
    max_payload_bytes: int = Field(default=MAX_MESSAGE_SIZE, gt=0)
    max_attribute_count: int = Field(default=MAX_NUMBER_OF_ATTRIBUTES, ge=0)

    @field_validator("attribute_names")
    @classmethod
    def include_receive_count(cls, v: List[str]) -> List[str]:
        """ApproximateReceiveCount is needed to compute backoff."""
        return _with_required(v, (APPROXIMATE_RECEIVE_COUNT,))

    @field_validator("message_attribute_names")
    @classmethod
    def include_markers(cls, v: List[str]) -> List[str]:
        """Receivers must always see the stage markers."""
        return _with_required(v, MARKER_ATTRIBUTES)

    @field_validator("key_cache_expiration")
    @classmethod
    def validate_expiration(cls, v: timedelta) -> timedelta:
        if v.total_seconds() < 0:
            raise ValueError("key_cache_expiration must not be negative")
        return v

    @model_validator(mode="after")
    def validate_visibility_range(self) -> ClientSettings:
        if self.initial_visibility_timeout > self.max_visibility_timeout:
            raise ValueError(
                "initial_visibility_timeout must not exceed max_visibility_timeout"
            )
        return self

    @property
    def encryption_enabled(self) -> bool:
        return bool(self.kms_key_id)

    @property
    def offload_enabled(self) -> bool:
        return bool(self.payload_bucket)
