"""
scheduler.py — Tick-gated, capacity-gated admission control.

═══════════════════════════════════════════════════════════════════════════
ADMISSION RULES
═══════════════════════════════════════════════════════════════════════════

Every ``tick_seconds`` (default 1s) the scheduler runs one tick:

    if in_flight < rate_limit and queue is non-empty:
        message_id ← queue.dequeue()
        in_flight += 1
        spawn retry chain           (in_flight -= 1 when it resolves)

    • At most ONE admission per tick, whatever the spare capacity.
      Drain rate is therefore capped at 1 message / tick.
    • Capacity bounds how many chains run concurrently (default 5).
    • Ticks fire unconditionally; they never wait for chains.
    • A chain stuck in backoff holds one unit of capacity and nothing
      else, so later ticks keep admitting while capacity remains.

All counter updates happen between awaits on the event loop thread,
so concurrent chains never interleave a read-modify-write.

stop() cancels the tick task only. In-flight chains run on to SENT or
EXHAUSTED; wait_inflight() awaits them.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional, Set

from backend.app.messaging.ledger import DispatchQueue
from backend.app.messaging.models import MessageIdentifier
from backend.app.messaging.retry_engine import RetryEngine, SleepFunc

logger = logging.getLogger(__name__)


class AdmissionScheduler:
    """Periodically admits queued messages into the retry engine."""

    def __init__(
        self,
        queue: DispatchQueue,
        engine: RetryEngine,
        *,
        rate_limit: int = 5,
        tick_seconds: float = 1.0,
        sleep: SleepFunc = asyncio.sleep,
    ):
        self.queue = queue
        self.engine = engine
        self.rate_limit = rate_limit
        self.tick_seconds = tick_seconds
        self._sleep = sleep
        self.in_flight = 0
        self._chains: Set[asyncio.Task] = set()
        self._task_tick: Optional[asyncio.Task] = None

    @property
    def is_running(self) -> bool:
        return self._task_tick is not None and not self._task_tick.done()

    @property
    def has_capacity(self) -> bool:
        return self.in_flight < self.rate_limit

    # ── Lifecycle ──

    def start(self) -> None:
        """Start the repeating tick task (no-op if already running)."""
        if self.is_running:
            return
        self._task_tick = asyncio.create_task(self._tick_loop(), name="dispatch-tick-loop")
        logger.info(
            "Scheduler started (rate_limit=%d, tick=%.2fs)",
            self.rate_limit, self.tick_seconds,
        )

    async def stop(self) -> None:
        """Stop ticking. In-flight chains are left to finish."""
        task, self._task_tick = self._task_tick, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.info(
            "Scheduler stopped (%d in flight, %d queued)",
            self.in_flight, len(self.queue),
            extra={"in_flight": self.in_flight, "queue_depth": len(self.queue)},
        )

    async def wait_inflight(self) -> None:
        """Wait for every chain in flight at call time to resolve."""
        pending = list(self._chains)
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

    # ── Admission ──

    async def _tick_loop(self) -> None:
        while True:
            self.tick()
            await self._sleep(self.tick_seconds)

    def tick(self) -> Optional[MessageIdentifier]:
        """Admit at most one queued message. Returns the admitted id."""
        if not self.has_capacity or not self.queue:
            return None

        message_id = self.queue.dequeue()
        if message_id is None:
            return None

        self.in_flight += 1
        logger.debug(
            "Admitted %s (%d/%d in flight, %d queued)",
            message_id, self.in_flight, self.rate_limit, len(self.queue),
            extra={
                "message_id": message_id,
                "in_flight": self.in_flight,
                "queue_depth": len(self.queue),
            },
        )
        task = asyncio.create_task(self._run_chain(message_id), name=f"dispatch-chain-{message_id}")
        self._chains.add(task)
        task.add_done_callback(self._chains.discard)
        return message_id

    async def _run_chain(self, message_id: MessageIdentifier) -> None:
        try:
            await self.engine.run(message_id)
        except Exception:
            logger.exception("Retry chain for %s crashed", message_id)
        finally:
            self.in_flight -= 1
