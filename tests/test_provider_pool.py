"""
test_provider_pool.py — Tests for provider selection and failover.

Covers:
    • current() / advance() round-robin cursor
    • Failure tally bumped on the newly selected provider
    • Warning + reset when a tally reaches the threshold

Run with:
    pytest tests/test_provider_pool.py -v
"""

from __future__ import annotations

import logging

import pytest

from backend.app.messaging.provider_pool import ProviderPool
from backend.app.messaging.providers.simulated import SimulatedProvider

POOL_LOGGER = "backend.app.messaging.provider_pool"


def _make_pool(size: int = 2, **kwargs) -> ProviderPool:
    return ProviderPool(
        [SimulatedProvider(0.0, name=f"p{i}") for i in range(size)],
        **kwargs,
    )


def _threshold_warnings(caplog):
    return [
        r for r in caplog.records
        if r.levelno == logging.WARNING and "failure threshold" in r.getMessage()
    ]


# ═══════════════════════════════════════════════════════════════════════════
# Section 1: Cursor
# ═══════════════════════════════════════════════════════════════════════════

class TestCursor:
    """Test round-robin selection."""

    def test_starts_at_first(self):
        pool = _make_pool(3)
        assert pool.current_index == 0
        assert pool.current().name == "p0"
        assert pool.failure_tally == [0, 0, 0]

    def test_advance_wraps(self):
        pool = _make_pool(3)
        names = [pool.advance().name for _ in range(4)]
        assert names == ["p1", "p2", "p0", "p1"]
        assert pool.current().name == "p1"

    def test_len_and_providers_copy(self):
        pool = _make_pool(2)
        assert len(pool) == 2
        pool.providers.clear()
        assert len(pool) == 2


# ═══════════════════════════════════════════════════════════════════════════
# Section 2: Failure Tally
# ═══════════════════════════════════════════════════════════════════════════

class TestFailureTally:
    """Test tally semantics: the provider switched TO is counted."""

    def test_tally_on_new_index(self):
        pool = _make_pool(2)
        pool.advance()
        assert pool.failure_tally == [0, 1]
        pool.advance()
        assert pool.failure_tally == [1, 1]

    def test_single_provider_three_advances(self, caplog):
        pool = _make_pool(1)
        caplog.set_level(logging.WARNING, logger=POOL_LOGGER)

        pool.advance()
        pool.advance()
        assert pool.failure_tally == [2]
        assert _threshold_warnings(caplog) == []

        pool.advance()
        assert pool.failure_tally == [0]
        assert len(_threshold_warnings(caplog)) == 1

    def test_two_providers_warn_on_third_landing(self, caplog):
        pool = _make_pool(2)
        caplog.set_level(logging.WARNING, logger=POOL_LOGGER)

        for _ in range(4):
            pool.advance()
        assert pool.failure_tally == [2, 2]
        assert _threshold_warnings(caplog) == []

        pool.advance()  # lands on index 1 for the third time
        assert pool.current_index == 1
        assert pool.failure_tally == [2, 0]
        assert len(_threshold_warnings(caplog)) == 1

        pool.advance()  # index 0, third time
        assert pool.failure_tally == [0, 0]
        assert len(_threshold_warnings(caplog)) == 2

    @pytest.mark.parametrize("threshold", [1, 2, 5])
    def test_custom_threshold(self, threshold, caplog):
        pool = _make_pool(1, warning_threshold=threshold)
        caplog.set_level(logging.WARNING, logger=POOL_LOGGER)
        for _ in range(threshold):
            pool.advance()
        assert pool.failure_tally == [0]
        assert len(_threshold_warnings(caplog)) == 1
