"""
ledger.py — Status ledger and FIFO dispatch queue.

The ledger maps message identifiers to their DeliveryRecord. The
queue holds identifiers awaiting admission. Both are plain in-memory
structures; durability across restarts is out of scope.
"""

from __future__ import annotations

from collections import deque
from datetime import datetime, timezone
from typing import Deque, Dict, Iterator, List, Optional

from backend.app.messaging.models import (
    DeliveryRecord,
    DeliveryStatus,
    MessageIdentifier,
)


class StatusLedger:
    """In-memory message_id → DeliveryRecord store."""

    def __init__(self) -> None:
        self._records: Dict[MessageIdentifier, DeliveryRecord] = {}

    def __contains__(self, message_id: object) -> bool:
        return message_id in self._records

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[DeliveryRecord]:
        return iter(list(self._records.values()))

    def get(self, message_id: MessageIdentifier) -> Optional[DeliveryRecord]:
        return self._records.get(message_id)

    def create(self, message_id: MessageIdentifier) -> Optional[DeliveryRecord]:
        """
        Create a pending record for a new identifier.

        Returns None when a record already exists; the existing record
        is left untouched.
        """
        if message_id in self._records:
            return None
        record = DeliveryRecord(message_id=message_id)
        self._records[message_id] = record
        return record

    def update(
        self,
        message_id: MessageIdentifier,
        status: DeliveryStatus,
        retry_count: int,
    ) -> DeliveryRecord:
        """Set status and retry count, stamping last_updated."""
        record = self._records.get(message_id)
        if record is None:
            record = DeliveryRecord(message_id=message_id)
            self._records[message_id] = record
        record.status = status
        record.retry_count = retry_count
        record.last_updated = datetime.now(timezone.utc)
        return record

    def records(self, status: Optional[DeliveryStatus] = None) -> List[DeliveryRecord]:
        """All records in submission order, optionally filtered by status."""
        if status is None:
            return list(self._records.values())
        return [r for r in self._records.values() if r.status == status]

    def counts(self) -> Dict[str, int]:
        counts = {s.value: 0 for s in DeliveryStatus}
        for record in self._records.values():
            counts[record.status.value] += 1
        return counts


class DispatchQueue:
    """FIFO of identifiers awaiting admission."""

    def __init__(self) -> None:
        self._items: Deque[MessageIdentifier] = deque()

    def __len__(self) -> int:
        return len(self._items)

    def __bool__(self) -> bool:
        return bool(self._items)

    def enqueue(self, message_id: MessageIdentifier) -> None:
        self._items.append(message_id)

    def dequeue(self) -> Optional[MessageIdentifier]:
        """Pop the oldest identifier, or None when empty."""
        if not self._items:
            return None
        return self._items.popleft()

    def snapshot(self) -> List[MessageIdentifier]:
        return list(self._items)
