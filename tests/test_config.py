"""
Tests for client settings.
"""

from __future__ import annotations

from datetime import timedelta

import pytest
from pydantic import ValidationError as PydanticValidationError

from sqs_envelope import ClientSettings, exponential_backoff


class TestClientSettings:
    def test_defaults(self):
        settings = ClientSettings(_env_file=None)

        assert settings.delay_seconds == 30
        assert settings.max_number_of_messages == 10
        assert settings.wait_time_seconds == 20
        assert settings.initial_visibility_timeout == 60
        assert settings.max_visibility_timeout == 900
        assert settings.backoff_factor == 2
        assert settings.backoff_function is exponential_backoff
        assert settings.key_cache_expiration == timedelta(minutes=5)
        assert settings.max_payload_bytes == 262_144
        assert settings.max_attribute_count == 10
        assert not settings.encryption_enabled
        assert not settings.offload_enabled

    def test_required_names_always_requested(self):
        """Markers and the receive count are requested even when not configured."""
        settings = ClientSettings(
            _env_file=None, attribute_names=["SentTimestamp"], message_attribute_names=["traceId"]
        )

        assert settings.attribute_names == ["ApproximateReceiveCount", "SentTimestamp"]
        assert settings.message_attribute_names == [
            "payloadBucket",
            "kmsKey",
            "compression",
            "traceId",
        ]

    def test_required_names_by_default(self):
        settings = ClientSettings(_env_file=None)

        assert settings.attribute_names == ["ApproximateReceiveCount"]
        assert settings.message_attribute_names == ["payloadBucket", "kmsKey", "compression"]

    def test_required_names_not_duplicated(self):
        settings = ClientSettings(_env_file=None, message_attribute_names=["kmsKey", "traceId"])

        assert settings.message_attribute_names.count("kmsKey") == 1

    def test_frozen(self):
        settings = ClientSettings(_env_file=None)

        with pytest.raises(PydanticValidationError):
            settings.delay_seconds = 0

    def test_enabled_flags(self):
        settings = ClientSettings(_env_file=None, payload_bucket="b", kms_key_id="alias/k")

        assert settings.offload_enabled
        assert settings.encryption_enabled

    def test_from_environment(self, monkeypatch):
        monkeypatch.setenv("SQS_ENVELOPE_PAYLOAD_BUCKET", "env-bucket")
        monkeypatch.setenv("SQS_ENVELOPE_COMPRESSION_ENABLED", "true")
        monkeypatch.setenv("SQS_ENVELOPE_DELAY_SECONDS", "5")

        settings = ClientSettings(_env_file=None)

        assert settings.payload_bucket == "env-bucket"
        assert settings.compression_enabled
        assert settings.delay_seconds == 5

    @pytest.mark.parametrize(
        "overrides",
        [
            {"delay_seconds": 901},
            {"max_number_of_messages": 11},
            {"max_number_of_messages": 0},
            {"wait_time_seconds": 21},
            {"key_cache_expiration": timedelta(seconds=-1)},
            {"initial_visibility_timeout": 1000, "max_visibility_timeout": 900},
        ],
    )
    def test_invalid_values(self, overrides):
        with pytest.raises(PydanticValidationError):
            ClientSettings(_env_file=None, **overrides)
