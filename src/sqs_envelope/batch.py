"""
Batches of outbound messages.

This module provides:
- Batch: Up to ten messages with unique ids, sendable exactly once
- BatchEntry: A message waiting in a batch
- SendBatchResult: Per-entry outcome of a batch send
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional

from .errors import BatchAlreadySentError, BatchFullError, DuplicateIDError
from .models import MAX_BATCH_SIZE, Attributes, AttributeValue
from .transport import BatchResultEntry, BatchResultError

# Code used for entries that failed before reaching the queue.
LOCAL_FAILURE_CODE: str = "custom"


@dataclass
class BatchEntry:
    id: str
    payload: bytes
    attributes: Attributes = field(default_factory=dict)


@dataclass
class SendBatchResult:
    """Outcome of a batch send. Failed holds both local and queue failures."""

    successful: List[BatchResultEntry] = field(default_factory=list)
    failed: List[BatchResultError] = field(default_factory=list)

    def failed_ids(self) -> List[str]:
        return [entry.id for entry in self.failed]


class Batch:
    """
    Messages to send together.

    Ids must be unique within the batch. A batch can be submitted once;
    later submissions raise BatchAlreadySentError without touching the queue.
    """

    def __init__(self, max_size: int = MAX_BATCH_SIZE) -> None:
        self._max_size = max_size
        self._entries: List[BatchEntry] = []
        self._ids: Dict[str, None] = {}
        self._sent = False
        self._lock = threading.Lock()

    def add(
        self,
        id: str,
        payload: bytes,
        attributes: Optional[Mapping[str, AttributeValue]] = None,
    ) -> int:
        """
        Add a message to the batch.

        Returns:
            The number of messages in the batch

        Raises:
            BatchAlreadySentError: If the batch was already submitted
            BatchFullError: If the batch is full
            DuplicateIDError: If ``id`` is already in the batch
        """
        with self._lock:
            if self._sent:
                raise BatchAlreadySentError("batch has already been sent")
            if len(self._entries) >= self._max_size:
                raise BatchFullError(f"maximum batch size of {self._max_size} exceeded")
            if id in self._ids:
                raise DuplicateIDError(f"id {id!r} is already in the batch")

            self._entries.append(
                BatchEntry(id=id, payload=bytes(payload), attributes=dict(attributes or {}))
            )
            self._ids[id] = None
            return len(self._entries)

    def size(self) -> int:
        with self._lock:
            return len(self._entries)

    def __len__(self) -> int:
        return self.size()

    @property
    def sent(self) -> bool:
        with self._lock:
            return self._sent

    def take_for_send(self) -> List[BatchEntry]:
        """
        Mark the batch sent and return its entries.

        Raises:
            BatchAlreadySentError: If the batch was already taken
        """
        with self._lock:
            if self._sent:
                raise BatchAlreadySentError("batch has already been sent")
            self._sent = True
            return list(self._entries)
