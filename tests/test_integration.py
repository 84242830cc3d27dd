"""
Round trip against real AWS.

Runs only when SQS_ENVELOPE_TEST_QUEUE names an existing queue (in the
environment or a .env file). SQS_ENVELOPE_TEST_BUCKET and
SQS_ENVELOPE_TEST_KEY_ID additionally enable offload and encryption.
"""

from __future__ import annotations

import os

import pytest
from dotenv import load_dotenv

from sqs_envelope import Client, ClientSettings

load_dotenv()

TEST_QUEUE = os.getenv("SQS_ENVELOPE_TEST_QUEUE")

pytestmark = pytest.mark.skipif(
    not TEST_QUEUE, reason="SQS_ENVELOPE_TEST_QUEUE is not set"
)


@pytest.fixture
def client() -> Client:
    settings = ClientSettings(
        delay_seconds=0,
        wait_time_seconds=10,
        compression_enabled=True,
        payload_bucket=os.getenv("SQS_ENVELOPE_TEST_BUCKET", ""),
        force_offload=bool(os.getenv("SQS_ENVELOPE_TEST_BUCKET")),
        kms_key_id=os.getenv("SQS_ENVELOPE_TEST_KEY_ID", ""),
        key_cache_enabled=True,
    )
    return Client.from_settings(settings)


def test_round_trip(client):
    payload = os.urandom(16).hex().encode()

    client.send_message(TEST_QUEUE, payload)

    for _ in range(5):
        result = client.receive_messages(TEST_QUEUE)
        for message in result.successful:
            client.delete_message(TEST_QUEUE, message.receipt_handle)
            if message.body == payload:
                return
    pytest.fail("sent message was not received")
