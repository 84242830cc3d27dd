"""
Tests for KMS envelope encryption of payloads.
"""

from __future__ import annotations

import base64
import json
from datetime import timedelta
from unittest.mock import patch

import pytest

from conftest import TEST_KEY_ID
from sqs_envelope import (
    AesGcmCipher,
    CryptoError,
    InMemoryKeyTransport,
    KeyProvider,
    SerializationError,
    TransportError,
    WrappedKey,
)


class TestWrappedKey:
    def test_json_field_names(self):
        """The envelope uses the wire field names with base64 byte fields."""
        wrapped = WrappedKey(
            wrapped_bytes=b"\x01\x02", key_id="alias/k", ciphertext_payload=b"\xff"
        )

        document = json.loads(wrapped.to_json())

        assert document == {
            "encryptedEncryptionKey": base64.standard_b64encode(b"\x01\x02").decode(),
            "keyId": "alias/k",
            "payload": base64.standard_b64encode(b"\xff").decode(),
        }

    def test_from_json(self):
        data = b'{"encryptedEncryptionKey":"AQI=","keyId":"alias/k","payload":"/w=="}'

        wrapped = WrappedKey.from_json(data)

        assert wrapped == WrappedKey(
            wrapped_bytes=b"\x01\x02", key_id="alias/k", ciphertext_payload=b"\xff"
        )

    @pytest.mark.parametrize(
        "data",
        [
            b"not json",
            b"[]",
            b'{"encryptedEncryptionKey":"!!!","keyId":"k","payload":"AA=="}',
            b'{"encryptedEncryptionKey":"AA==","keyId":"k","payload":42}',
        ],
    )
    def test_malformed_envelope(self, data):
        with pytest.raises(SerializationError):
            WrappedKey.from_json(data)


class TestKeyProvider:
    def test_round_trip(self, key_transport):
        provider = KeyProvider(key_transport)

        wrapped = provider.encrypt_payload(TEST_KEY_ID, b"Testpayload")

        assert wrapped.key_id == TEST_KEY_ID
        assert wrapped.ciphertext_payload != b"Testpayload"
        assert provider.decrypt_payload(wrapped) == b"Testpayload"

    def test_round_trip_through_json(self, key_transport):
        provider = KeyProvider(key_transport)
        wrapped = provider.encrypt_payload(TEST_KEY_ID, b"Testpayload")

        restored = WrappedKey.from_json(wrapped.to_json())

        assert provider.decrypt_payload(restored) == b"Testpayload"

    def test_cache_disabled_calls_key_management_every_time(self, key_transport):
        """Without a cache each encrypt generates and each decrypt unwraps."""
        # Arrange
        provider = KeyProvider(key_transport, cache_enabled=False)

        # Act
        wrapped = [provider.encrypt_payload(TEST_KEY_ID, b"payload") for _ in range(3)]
        for item in wrapped:
            provider.decrypt_payload(item)

        # Assert
        assert provider.cache is None
        assert key_transport.generate_calls == 3
        assert key_transport.decrypt_calls == 3

    def test_cache_serves_repeat_encrypts(self, key_transport):
        """N encrypts within the expiration make one generate call but N cipher calls."""
        # Arrange
        provider = KeyProvider(key_transport, cache_enabled=True)

        # Act
        with patch.object(
            AesGcmCipher, "encrypt", wraps=AesGcmCipher.encrypt
        ) as encrypt:
            for _ in range(5):
                provider.encrypt_payload(TEST_KEY_ID, b"payload")

        # Assert
        assert key_transport.generate_calls == 1
        assert encrypt.call_count == 5

    def test_cache_serves_decrypt_of_own_payloads(self, key_transport):
        """A payload encrypted by this provider decrypts without an unwrap call."""
        provider = KeyProvider(key_transport, cache_enabled=True)
        wrapped = provider.encrypt_payload(TEST_KEY_ID, b"payload")

        assert provider.decrypt_payload(wrapped) == b"payload"
        assert key_transport.decrypt_calls == 0

    def test_cache_serves_repeat_unwraps(self, key_transport):
        """A receiver unwraps a data key once and reuses it."""
        # Arrange
        sender = KeyProvider(key_transport, cache_enabled=True)
        receiver = KeyProvider(key_transport, cache_enabled=True)
        wrapped = [sender.encrypt_payload(TEST_KEY_ID, b"payload") for _ in range(4)]

        # Act
        plaintexts = [receiver.decrypt_payload(item) for item in wrapped]

        # Assert
        assert plaintexts == [b"payload"] * 4
        assert key_transport.decrypt_calls == 1

    def test_cache_expiration_regenerates(self, key_transport, clock):
        """After the expiration a new data key is generated."""
        provider = KeyProvider(
            key_transport,
            cache_enabled=True,
            cache_expiration=timedelta(seconds=60),
            clock=clock,
        )
        first = provider.encrypt_payload(TEST_KEY_ID, b"payload")

        clock.advance(61)
        second = provider.encrypt_payload(TEST_KEY_ID, b"payload")

        assert key_transport.generate_calls == 2
        assert first.wrapped_bytes != second.wrapped_bytes

    def test_separate_key_ids_cached_separately(self, key_transport):
        provider = KeyProvider(key_transport, cache_enabled=True)

        provider.encrypt_payload("alias/one", b"payload")
        provider.encrypt_payload("alias/two", b"payload")
        provider.encrypt_payload("alias/one", b"payload")

        assert key_transport.generate_calls == 2

    def test_tampered_payload_fails(self, key_transport):
        provider = KeyProvider(key_transport)
        wrapped = provider.encrypt_payload(TEST_KEY_ID, b"payload")
        tampered = WrappedKey(
            wrapped_bytes=wrapped.wrapped_bytes,
            key_id=wrapped.key_id,
            ciphertext_payload=wrapped.ciphertext_payload[:-1]
            + bytes([wrapped.ciphertext_payload[-1] ^ 1]),
        )

        with pytest.raises(CryptoError):
            provider.decrypt_payload(tampered)

    def test_foreign_wrapped_key_fails(self, key_transport):
        """A data key wrapped by another key store cannot be unwrapped."""
        other = KeyProvider(InMemoryKeyTransport())
        wrapped = other.encrypt_payload(TEST_KEY_ID, b"payload")

        with pytest.raises(TransportError) as exc_info:
            KeyProvider(key_transport).decrypt_payload(wrapped)

        assert exc_info.value.error_code == "InvalidCiphertextException"

    def test_key_management_failure_propagates(self, key_transport):
        provider = KeyProvider(key_transport)

        with pytest.raises(TransportError):
            provider.encrypt_payload("", b"payload")
