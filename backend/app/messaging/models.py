"""
models.py — Shared data structures for the dispatch core.

Defines:
    • DeliveryStatus — pending / sent / failed
    • DeliveryRecord — per-message status entry held by the ledger
    • DispatchStats  — read-only snapshot for the stats and health probes

═══════════════════════════════════════════════════════════════════════════
RECORD LIFECYCLE
═══════════════════════════════════════════════════════════════════════════

    submit()          retry engine                 retry engine
       │                   │                            │
       ▼                   ▼                            ▼
    PENDING ──────────▶ SENT (terminal)          FAILED ──▶ re-queued
    retry_count=0      retry_count=n              retry_count=max
                                                       │
                                                       └──▶ next admission
                                                            may end SENT

A FAILED record is not final: the identifier goes back on the
dispatch queue and the next admission cycle starts again at n=0.
Records are never deleted by the core.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional


MessageIdentifier = str


class DeliveryStatus(str, Enum):
    """Delivery state per message."""
    PENDING = "pending"   # submitted, awaiting (re-)admission
    SENT    = "sent"      # provider accepted the message
    FAILED  = "failed"    # retry budget exhausted; re-queued


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class DeliveryRecord:
    """
    Current delivery state of one message.

    Attributes
    ----------
    message_id : str
        Externally supplied identifier; the ledger key.
    status : DeliveryStatus
    retry_count : int
        Attempt index (0-based) at which the last chain resolved.
    last_updated : datetime
        UTC time of the last status change.
    """
    message_id: MessageIdentifier
    status: DeliveryStatus = DeliveryStatus.PENDING
    retry_count: int = 0
    last_updated: datetime = field(default_factory=_now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "message_id": self.message_id,
            "status": self.status.value,
            "retry_count": self.retry_count,
            "last_updated": self.last_updated.isoformat(),
        }


@dataclass(frozen=True)
class DispatchStats:
    """Point-in-time view of the dispatcher."""
    queue_depth: int
    in_flight: int
    rate_limit: int
    running: bool
    current_provider_index: int
    current_provider: str
    failure_tally: List[int]
    records_by_status: Dict[str, int]
    queued_ids: Optional[List[MessageIdentifier]] = None

    @property
    def saturated(self) -> bool:
        return self.in_flight >= self.rate_limit

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {
            "queue_depth": self.queue_depth,
            "in_flight": self.in_flight,
            "rate_limit": self.rate_limit,
            "saturated": self.saturated,
            "running": self.running,
            "provider": {
                "current_index": self.current_provider_index,
                "current": self.current_provider,
                "failure_tally": list(self.failure_tally),
            },
            "records_by_status": dict(self.records_by_status),
        }
        if self.queued_ids is not None:
            d["queued_ids"] = list(self.queued_ids)
        return d
