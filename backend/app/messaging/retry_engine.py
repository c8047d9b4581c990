"""
retry_engine.py — Per-message attempt / backoff / re-attempt chain.

═══════════════════════════════════════════════════════════════════════════
CHAIN STATE MACHINE
═══════════════════════════════════════════════════════════════════════════

    admission
        │
        ▼
    ATTEMPTING(0) ──success──▶ SENT        ledger: sent, retry_count=n
        │
      failure, n < max_retries
        │   await sleep(backoff(n))
        ▼
    ATTEMPTING(n+1)  … same provider for every attempt …
        │
      failure, n >= max_retries
        ▼
    EXHAUSTED                              ledger: failed, retry_count=n
                                           pool.advance()
                                           identifier re-enqueued

Backoff (no jitter, no cap):

    backoff(n) = backoff_base_seconds × 2^n

    n:      0   1   2   3   4
    delay:  1s  2s  4s  8s  16s      (defaults: base 1s, max_retries 5)

With the defaults a chain makes exactly six attempts (n=0..5) and
waits 31s in total before exhausting.

A provider that raises is treated exactly like one that returns
False. Nothing escapes the chain; callers observe outcomes through
the status ledger.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable, Callable, List, Optional

from backend.app.core.logging_config import set_dispatch_context
from backend.app.messaging.ledger import DispatchQueue, StatusLedger
from backend.app.messaging.models import DeliveryStatus, MessageIdentifier
from backend.app.messaging.provider_pool import ProviderPool
from backend.app.messaging.providers.base import Provider, provider_name

logger = logging.getLogger(__name__)

SleepFunc = Callable[[float], Awaitable[None]]


# ═══════════════════════════════════════════════════════════════════════════
# Retry Configuration
# ═══════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class RetryPolicy:
    """Retry budget and exponential backoff parameters."""
    max_retries: int = 5
    backoff_base_seconds: float = 1.0

    def backoff(self, retry: int) -> float:
        """Delay in seconds after failed attempt ``retry`` (0-based)."""
        return self.backoff_base_seconds * (2 ** retry)


class ChainState(str, Enum):
    ATTEMPTING = "attempting"
    SENT       = "sent"
    EXHAUSTED  = "exhausted"


@dataclass
class RetryChain:
    """Progress of one admission cycle for one message."""
    message_id: MessageIdentifier
    provider: Provider
    retry: int = 0
    state: ChainState = ChainState.ATTEMPTING
    delays: List[float] = field(default_factory=list)

    @property
    def done(self) -> bool:
        return self.state is not ChainState.ATTEMPTING


# ═══════════════════════════════════════════════════════════════════════════
# Engine
# ═══════════════════════════════════════════════════════════════════════════

class RetryEngine:
    """
    Drives retry chains against the shared provider pool.

    Parameters
    ----------
    pool : ProviderPool
    ledger : StatusLedger
    queue : DispatchQueue
        Exhausted identifiers are appended here.
    policy : RetryPolicy | None
    sleep : async callable
        Backoff wait; defaults to asyncio.sleep.
    """

    def __init__(
        self,
        pool: ProviderPool,
        ledger: StatusLedger,
        queue: DispatchQueue,
        *,
        policy: Optional[RetryPolicy] = None,
        sleep: SleepFunc = asyncio.sleep,
    ):
        self.pool = pool
        self.ledger = ledger
        self.queue = queue
        self.policy = policy or RetryPolicy()
        self._sleep = sleep

    async def run(self, message_id: MessageIdentifier) -> RetryChain:
        """Run one chain to SENT or EXHAUSTED."""
        chain = RetryChain(message_id=message_id, provider=self.pool.current())
        while not chain.done:
            await self._step(chain)
        return chain

    async def _step(self, chain: RetryChain) -> None:
        set_dispatch_context(message_id=chain.message_id, attempt=chain.retry)

        if await self._attempt(chain.provider, chain.message_id):
            self.ledger.update(chain.message_id, DeliveryStatus.SENT, chain.retry)
            chain.state = ChainState.SENT
            logger.info(
                "Message sent successfully: %s via %s (retry %d)",
                chain.message_id, provider_name(chain.provider), chain.retry,
                extra={"message_id": chain.message_id, "retry_count": chain.retry},
            )
            return

        if chain.retry < self.policy.max_retries:
            delay = self.policy.backoff(chain.retry)
            logger.info(
                "Retry %d/%d for %s via %s in %.1fs",
                chain.retry + 1, self.policy.max_retries,
                chain.message_id, provider_name(chain.provider), delay,
                extra={"message_id": chain.message_id, "delay_seconds": delay},
            )
            chain.delays.append(delay)
            await self._sleep(delay)
            chain.retry += 1
            return

        self._exhaust(chain)

    async def _attempt(self, provider: Provider, message_id: MessageIdentifier) -> bool:
        try:
            return bool(await provider.attempt_delivery(message_id))
        except Exception as exc:
            logger.warning(
                "Delivery attempt failed for %s via %s: %s",
                message_id, provider_name(provider), exc,
                extra={"message_id": message_id, "provider": provider_name(provider)},
            )
            return False

    def _exhaust(self, chain: RetryChain) -> None:
        self.ledger.update(chain.message_id, DeliveryStatus.FAILED, chain.retry)
        chain.state = ChainState.EXHAUSTED
        logger.warning(
            "Failed to send message after retries: %s (%d attempts via %s); re-queueing",
            chain.message_id, chain.retry + 1, provider_name(chain.provider),
            extra={"message_id": chain.message_id, "retry_count": chain.retry},
        )
        self.pool.advance()
        self.queue.enqueue(chain.message_id)
