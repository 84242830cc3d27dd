"""
boto3-backed transports for SQS, S3 and KMS.

This module provides:
- SqsQueueTransport: QueueTransport on an SQS client
- S3BlobTransport: BlobTransport on an S3 client
- KmsKeyTransport: KeyManagementTransport on a KMS client

Every botocore failure is re-raised as TransportError carrying the AWS error
code. Retries and timeouts are configured on the boto3 clients themselves.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Mapping, Optional, Sequence, Tuple

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from .batch import LOCAL_FAILURE_CODE
from .crypto import SecureKey
from .errors import TransportError, ValidationError
from .logger import get_logger
from .models import AttributeValue, ReceivedMessage
from .transport import (
    BatchRequestEntry,
    BatchResultEntry,
    BatchResultError,
    BlobTransport,
    DataKey,
    KeyManagementTransport,
    QueueTransport,
)

logger = get_logger(__name__)


@contextmanager
def translate_errors(operation: str) -> Iterator[None]:
    """Re-raise botocore errors from ``operation`` as TransportError."""
    try:
        yield
    except ClientError as e:
        error = e.response.get("Error", {})
        raise TransportError(
            f"{operation} failed: {error.get('Message') or e}",
            error_code=error.get("Code"),
        ) from e
    except BotoCoreError as e:
        raise TransportError(f"{operation} failed: {e}") from e


def _sqs_attributes(attributes: Mapping[str, AttributeValue]) -> Dict[str, Dict[str, str]]:
    return {name: value.to_sqs() for name, value in attributes.items()}


def _text_body(body: bytes) -> str:
    try:
        return bytes(body).decode("utf-8")
    except UnicodeDecodeError as e:
        raise ValidationError(
            "SQS message bodies must be UTF-8 text; enable compression for binary payloads"
        ) from e


class SqsQueueTransport(QueueTransport):
    """Queue operations on Amazon SQS."""

    def __init__(self, client: Any = None, region_name: Optional[str] = None) -> None:
        """
        Initialize the transport.

        Args:
            client: boto3 SQS client (created from the default session if None)
            region_name: Region used when creating the client
        """
        self._sqs = client or boto3.client("sqs", region_name=region_name)

    def resolve_destination(self, name: str) -> str:
        with translate_errors("GetQueueUrl"):
            return self._sqs.get_queue_url(QueueName=name)["QueueUrl"]

    def send(
        self,
        destination: str,
        body: bytes,
        attributes: Mapping[str, AttributeValue],
        delay_seconds: int,
    ) -> str:
        params: Dict[str, Any] = {
            "QueueUrl": destination,
            "MessageBody": _text_body(body),
            "DelaySeconds": delay_seconds,
        }
        if attributes:
            params["MessageAttributes"] = _sqs_attributes(attributes)

        with translate_errors("SendMessage"):
            response = self._sqs.send_message(**params)

        logger.debug("message sent", queue_url=destination, message_id=response["MessageId"])
        return response["MessageId"]

    def send_batch(
        self, destination: str, entries: Sequence[BatchRequestEntry]
    ) -> Tuple[List[BatchResultEntry], List[BatchResultError]]:
        """
        Send ``entries`` in one SendMessageBatch call.

        Entries whose body is not UTF-8 text are reported in the failed list
        and never sent; the others still go out.
        """
        request_entries = []
        rejected: List[BatchResultError] = []
        for entry in entries:
            try:
                body = _text_body(entry.body)
            except ValidationError as e:
                rejected.append(
                    BatchResultError(
                        id=entry.id,
                        code=LOCAL_FAILURE_CODE,
                        message=f"client error when sending batch: {e}",
                        sender_fault=True,
                    )
                )
                continue

            request: Dict[str, Any] = {
                "Id": entry.id,
                "MessageBody": body,
                "DelaySeconds": entry.delay_seconds,
            }
            if entry.attributes:
                request["MessageAttributes"] = _sqs_attributes(entry.attributes)
            request_entries.append(request)

        if not request_entries:
            return [], rejected

        with translate_errors("SendMessageBatch"):
            response = self._sqs.send_message_batch(
                QueueUrl=destination, Entries=request_entries
            )

        successful = [
            BatchResultEntry(id=item["Id"], message_id=item["MessageId"])
            for item in response.get("Successful", [])
        ]
        failed = rejected + [
            BatchResultError(
                id=item["Id"],
                code=item.get("Code", ""),
                message=item.get("Message", ""),
                sender_fault=item.get("SenderFault", False),
            )
            for item in response.get("Failed", [])
        ]
        logger.debug(
            "message batch sent",
            queue_url=destination,
            successful=len(successful),
            failed=len(failed),
        )
        return successful, failed

    def receive(
        self,
        destination: str,
        max_messages: int,
        wait_seconds: int,
        visibility_timeout: int,
        attribute_names: Sequence[str],
        message_attribute_names: Sequence[str],
    ) -> List[ReceivedMessage]:
        with translate_errors("ReceiveMessage"):
            response = self._sqs.receive_message(
                QueueUrl=destination,
                AttributeNames=list(attribute_names),
                MessageAttributeNames=list(message_attribute_names),
                MaxNumberOfMessages=max_messages,
                VisibilityTimeout=visibility_timeout,
                WaitTimeSeconds=wait_seconds,
            )

        messages = [
            ReceivedMessage(
                message_id=item["MessageId"],
                receipt_handle=item["ReceiptHandle"],
                body=item.get("Body", "").encode("utf-8"),
                attributes=dict(item.get("Attributes", {})),
                message_attributes={
                    name: AttributeValue.from_sqs(value)
                    for name, value in item.get("MessageAttributes", {}).items()
                    if "StringValue" in value
                },
            )
            for item in response.get("Messages", [])
        ]
        logger.debug("messages received", queue_url=destination, count=len(messages))
        return messages

    def change_visibility(
        self, destination: str, receipt_handle: str, timeout_seconds: int
    ) -> None:
        with translate_errors("ChangeMessageVisibility"):
            self._sqs.change_message_visibility(
                QueueUrl=destination,
                ReceiptHandle=receipt_handle,
                VisibilityTimeout=timeout_seconds,
            )

    def delete(self, destination: str, receipt_handle: str) -> None:
        with translate_errors("DeleteMessage"):
            self._sqs.delete_message(QueueUrl=destination, ReceiptHandle=receipt_handle)


class S3BlobTransport(BlobTransport):
    """Blob operations on Amazon S3."""

    def __init__(self, client: Any = None, region_name: Optional[str] = None) -> None:
        self._s3 = client or boto3.client("s3", region_name=region_name)

    def put(self, container: str, name: str, data: bytes) -> None:
        with translate_errors("PutObject"):
            self._s3.put_object(Bucket=container, Key=name, Body=bytes(data))

    def get(self, container: str, name: str) -> bytes:
        with translate_errors("GetObject"):
            response = self._s3.get_object(Bucket=container, Key=name)
            body = response["Body"]
            try:
                return body.read()
            finally:
                body.close()


class KmsKeyTransport(KeyManagementTransport):
    """Data key operations on AWS KMS."""

    KEY_SPEC = "AES_256"

    def __init__(self, client: Any = None, region_name: Optional[str] = None) -> None:
        self._kms = client or boto3.client("kms", region_name=region_name)

    def generate_data_key(self, key_id: str) -> DataKey:
        with translate_errors("GenerateDataKey"):
            response = self._kms.generate_data_key(KeyId=key_id, KeySpec=self.KEY_SPEC)

        return DataKey(
            plaintext=SecureKey(response["Plaintext"]),
            ciphertext_blob=response["CiphertextBlob"],
            key_id=response.get("KeyId") or key_id,
        )

    def decrypt_data_key(self, ciphertext_blob: bytes) -> SecureKey:
        with translate_errors("Decrypt"):
            response = self._kms.decrypt(CiphertextBlob=bytes(ciphertext_blob))
        return SecureKey(response["Plaintext"])
