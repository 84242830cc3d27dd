"""
Tests for blob offload of oversized payloads.
"""

from __future__ import annotations

import json
import uuid

import pytest

from conftest import TEST_BUCKET
from sqs_envelope import BlobDescriptor, BlobOffloader, SerializationError, TransportError


class TestBlobDescriptor:
    def test_omits_unset_fields(self):
        assert json.loads(BlobDescriptor(bucket="b").to_json()) == {"bucket": "b"}

    def test_wire_format(self):
        descriptor = BlobDescriptor(size=12, bucket="b", filename="f")

        assert json.loads(descriptor.to_json()) == {"size": 12, "bucket": "b", "filename": "f"}
        assert BlobDescriptor.from_json(descriptor.to_json()) == descriptor

    @pytest.mark.parametrize(
        "data",
        [b"", b"not json", b"[1, 2]", b'{"size": "big"}', b'{"size": 1e400}'],
    )
    def test_malformed(self, data):
        with pytest.raises(SerializationError):
            BlobDescriptor.from_json(data)


class TestBlobOffloader:
    def test_upload_records_exact_size(self, blob_transport):
        """The descriptor names the bucket, a UUID file name and the exact size."""
        # Arrange
        offloader = BlobOffloader(blob_transport)
        payload = b"p" * 262_145

        # Act
        descriptor = offloader.upload(TEST_BUCKET, payload)

        # Assert
        assert descriptor.bucket == TEST_BUCKET
        assert descriptor.size == 262_145
        uuid.UUID(descriptor.filename)
        assert blob_transport.objects() == {(TEST_BUCKET, descriptor.filename): payload}

    def test_unique_names(self, blob_transport):
        offloader = BlobOffloader(blob_transport)

        first = offloader.upload(TEST_BUCKET, b"same")
        second = offloader.upload(TEST_BUCKET, b"same")

        assert first.filename != second.filename
        assert blob_transport.put_calls == 2

    def test_download(self, blob_transport):
        offloader = BlobOffloader(blob_transport)
        descriptor = offloader.upload(TEST_BUCKET, b"payload")

        assert offloader.download(descriptor) == b"payload"

    def test_download_missing_object(self, blob_transport):
        offloader = BlobOffloader(blob_transport)

        with pytest.raises(TransportError) as exc_info:
            offloader.download(BlobDescriptor(bucket=TEST_BUCKET, filename="missing"))

        assert exc_info.value.error_code == "NoSuchKey"

    @pytest.mark.parametrize(
        "descriptor", [BlobDescriptor(bucket=TEST_BUCKET), BlobDescriptor(filename="f")]
    )
    def test_download_incomplete_descriptor(self, blob_transport, descriptor):
        with pytest.raises(SerializationError):
            BlobOffloader(blob_transport).download(descriptor)

        assert blob_transport.get_calls == 0
