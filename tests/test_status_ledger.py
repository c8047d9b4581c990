"""
test_status_ledger.py — Tests for the dispatch data model, status
ledger, dispatch queue and queued-event notifier.

Covers:
    • DeliveryStatus / DeliveryRecord / DispatchStats
    • StatusLedger create / update / filter / counts
    • DispatchQueue FIFO behaviour
    • EventNotifier ordering and error isolation
    • Idempotent submission through MessageDispatcher.submit

Run with:
    pytest tests/test_status_ledger.py -v
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

import pytest

from backend.app.messaging.dispatcher import MessageDispatcher
from backend.app.messaging.events import EventNotifier
from backend.app.messaging.ledger import DispatchQueue, StatusLedger
from backend.app.messaging.models import (
    DeliveryRecord,
    DeliveryStatus,
    DispatchStats,
)
from backend.app.messaging.providers.simulated import SimulatedProvider


# ═══════════════════════════════════════════════════════════════════════════
# Test Fixtures
# ═══════════════════════════════════════════════════════════════════════════

def _make_dispatcher(**kwargs) -> MessageDispatcher:
    """Dispatcher with one always-succeeding provider; never started."""
    return MessageDispatcher([SimulatedProvider(0.0, name="ok")], **kwargs)


# ═══════════════════════════════════════════════════════════════════════════
# Section 1: Data Model Tests
# ═══════════════════════════════════════════════════════════════════════════

class TestDeliveryStatus:
    """Test DeliveryStatus enum."""

    def test_values(self):
        assert {s.value for s in DeliveryStatus} == {"pending", "sent", "failed"}

    def test_is_str(self):
        assert DeliveryStatus.SENT == "sent"


class TestDeliveryRecord:
    """Test DeliveryRecord dataclass."""

    def test_defaults(self):
        r = DeliveryRecord(message_id="m1")
        assert r.status == DeliveryStatus.PENDING
        assert r.retry_count == 0
        assert r.last_updated.tzinfo is not None

    def test_to_dict(self):
        ts = datetime(2026, 1, 1, tzinfo=timezone.utc)
        r = DeliveryRecord("m1", DeliveryStatus.FAILED, 5, ts)
        d = r.to_dict()
        assert d == {
            "message_id": "m1",
            "status": "failed",
            "retry_count": 5,
            "last_updated": "2026-01-01T00:00:00+00:00",
        }


class TestDispatchStats:
    """Test DispatchStats snapshot."""

    def _stats(self, in_flight: int) -> DispatchStats:
        return DispatchStats(
            queue_depth=2,
            in_flight=in_flight,
            rate_limit=5,
            running=True,
            current_provider_index=0,
            current_provider="ok",
            failure_tally=[0, 1],
            records_by_status={"pending": 2, "sent": 0, "failed": 0},
        )

    def test_saturated(self):
        assert self._stats(5).saturated is True
        assert self._stats(4).saturated is False

    def test_to_dict_omits_queue_by_default(self):
        d = self._stats(1).to_dict()
        assert "queued_ids" not in d
        assert d["provider"]["failure_tally"] == [0, 1]
        assert d["saturated"] is False


# ═══════════════════════════════════════════════════════════════════════════
# Section 2: Status Ledger Tests
# ═══════════════════════════════════════════════════════════════════════════

class TestStatusLedger:
    """Test StatusLedger."""

    def test_create_new(self):
        ledger = StatusLedger()
        record = ledger.create("m1")
        assert record is not None
        assert "m1" in ledger
        assert len(ledger) == 1

    def test_create_existing_returns_none(self):
        ledger = StatusLedger()
        first = ledger.create("m1")
        first.status = DeliveryStatus.SENT
        assert ledger.create("m1") is None
        assert ledger.get("m1").status == DeliveryStatus.SENT

    def test_get_unknown(self):
        assert StatusLedger().get("nope") is None

    def test_update_stamps_time(self):
        ledger = StatusLedger()
        record = ledger.create("m1")
        before = record.last_updated
        updated = ledger.update("m1", DeliveryStatus.FAILED, 5)
        assert updated is record
        assert record.status == DeliveryStatus.FAILED
        assert record.retry_count == 5
        assert record.last_updated >= before

    def test_records_filter_and_counts(self):
        ledger = StatusLedger()
        for mid in ("a", "b", "c"):
            ledger.create(mid)
        ledger.update("b", DeliveryStatus.SENT, 0)

        assert [r.message_id for r in ledger.records()] == ["a", "b", "c"]
        assert [r.message_id for r in ledger.records(DeliveryStatus.PENDING)] == ["a", "c"]
        assert ledger.counts() == {"pending": 2, "sent": 1, "failed": 0}


# ═══════════════════════════════════════════════════════════════════════════
# Section 3: Dispatch Queue Tests
# ═══════════════════════════════════════════════════════════════════════════

class TestDispatchQueue:
    """Test DispatchQueue FIFO."""

    def test_fifo(self):
        q = DispatchQueue()
        for mid in ("a", "b", "c"):
            q.enqueue(mid)
        assert q.snapshot() == ["a", "b", "c"]
        assert q.dequeue() == "a"
        assert q.dequeue() == "b"
        assert len(q) == 1

    def test_empty_dequeue(self):
        q = DispatchQueue()
        assert not q
        assert q.dequeue() is None

    def test_same_id_may_reappear(self):
        q = DispatchQueue()
        q.enqueue("a")
        q.dequeue()
        q.enqueue("a")
        assert q.snapshot() == ["a"]


# ═══════════════════════════════════════════════════════════════════════════
# Section 4: Event Notifier Tests
# ═══════════════════════════════════════════════════════════════════════════

class TestEventNotifier:
    """Test EventNotifier."""

    def test_registration_order(self):
        notifier = EventNotifier()
        calls = []
        notifier.on_queued(lambda mid: calls.append(("first", mid)))
        notifier.on_queued(lambda mid: calls.append(("second", mid)))
        notifier.emit_queued("m1")
        assert calls == [("first", "m1"), ("second", "m1")]

    def test_failing_observer_isolated(self, caplog):
        notifier = EventNotifier()
        calls = []

        def boom(mid):
            raise RuntimeError("observer broke")

        notifier.on_queued(boom)
        notifier.on_queued(calls.append)

        with caplog.at_level(logging.ERROR, logger="backend.app.messaging.events"):
            notifier.emit_queued("m1")

        assert calls == ["m1"]
        assert any("observer" in r.getMessage().lower() for r in caplog.records)


# ═══════════════════════════════════════════════════════════════════════════
# Section 5: Submission Tests
# ═══════════════════════════════════════════════════════════════════════════

class TestSubmit:
    """Test MessageDispatcher.submit / get_status / on_queued."""

    def test_first_submission_creates_pending(self):
        d = _make_dispatcher()
        assert d.submit("user@example.com") is True

        record = d.get_status("user@example.com")
        assert record.status == DeliveryStatus.PENDING
        assert record.retry_count == 0
        assert d.queue.snapshot() == ["user@example.com"]

    def test_duplicate_is_noop(self):
        d = _make_dispatcher()
        events = []
        d.on_queued(events.append)

        assert d.submit("m1") is True
        assert d.submit("m1") is False

        assert len(d.ledger) == 1
        assert d.queue.snapshot() == ["m1"]
        assert events == ["m1"]

    def test_duplicate_after_terminal_is_noop(self):
        d = _make_dispatcher()
        d.submit("m1")
        d.queue.dequeue()
        d.ledger.update("m1", DeliveryStatus.SENT, 0)

        assert d.submit("m1") is False
        assert d.get_status("m1").status == DeliveryStatus.SENT
        assert len(d.queue) == 0

    def test_unknown_status(self):
        assert _make_dispatcher().get_status("missing") is None

    def test_on_queued_fires_per_new_message(self):
        d = _make_dispatcher()
        seen = []
        d.on_queued(seen.append)
        for mid in ("a", "b", "a", "c"):
            d.submit(mid)
        assert seen == ["a", "b", "c"]

    def test_submit_survives_observer_error(self):
        d = _make_dispatcher()
        d.on_queued(lambda mid: 1 / 0)
        assert d.submit("m1") is True
        assert d.get_status("m1") is not None
