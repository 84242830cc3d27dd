"""
Pytest configuration and fixtures for sqs_envelope tests.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Iterator

import boto3
import pytest
from moto import mock_aws

from sqs_envelope import (
    Client,
    ClientSettings,
    InMemoryBlobTransport,
    InMemoryKeyTransport,
    InMemoryQueueTransport,
)

TEST_QUEUE = "test-queue"
TEST_BUCKET = "test-bucket"
TEST_KEY_ID = "alias/test-key"


class FakeClock:
    """Manually advanced time source."""

    def __init__(self, start: float = 1_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def make_settings() -> Callable[..., ClientSettings]:
    """Build settings that ignore .env files and never delay or long-poll."""

    def _make(**overrides) -> ClientSettings:
        values = {"delay_seconds": 0, "wait_time_seconds": 0}
        values.update(overrides)
        return ClientSettings(_env_file=None, **values)

    return _make


@pytest.fixture
def queue_transport() -> InMemoryQueueTransport:
    """In-memory queue with the test queue created."""
    transport = InMemoryQueueTransport()
    transport.create_queue(TEST_QUEUE)
    return transport


@pytest.fixture
def blob_transport() -> InMemoryBlobTransport:
    return InMemoryBlobTransport()


@pytest.fixture
def key_transport() -> InMemoryKeyTransport:
    return InMemoryKeyTransport()


@pytest.fixture
def make_client(
    make_settings, queue_transport, blob_transport, key_transport
) -> Callable[..., Client]:
    """Build a Client on the in-memory transports."""

    def _make(**overrides) -> Client:
        settings = make_settings(**overrides)
        return Client(
            settings,
            queue_transport,
            blob_transport=blob_transport,
            key_transport=key_transport,
        )

    return _make


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def aws_credentials(monkeypatch: pytest.MonkeyPatch) -> None:
    """Fake credentials so boto3 never reaches real AWS."""
    monkeypatch.setenv("AWS_ACCESS_KEY_ID", "testing")
    monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "testing")
    monkeypatch.setenv("AWS_SECURITY_TOKEN", "testing")
    monkeypatch.setenv("AWS_SESSION_TOKEN", "testing")
    monkeypatch.setenv("AWS_DEFAULT_REGION", "us-east-1")


@dataclass
class MockedAws:
    session: boto3.session.Session
    key_id: str


@pytest.fixture
def aws(aws_credentials) -> Iterator[MockedAws]:
    """Mocked AWS account with the test queue, the test bucket and a KMS key."""
    with mock_aws():
        session = boto3.session.Session(region_name="us-east-1")
        session.client("sqs").create_queue(QueueName=TEST_QUEUE)
        session.client("s3").create_bucket(Bucket=TEST_BUCKET)
        key = session.client("kms").create_key(Description="sqs-envelope tests")
        yield MockedAws(session=session, key_id=key["KeyMetadata"]["KeyId"])
