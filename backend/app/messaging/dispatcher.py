"""
dispatcher.py — Facade wiring ledger, queue, pool, engine and scheduler.

This is the only object host code needs:

    dispatcher = build_dispatcher()
    dispatcher.on_queued(lambda mid: print("queued", mid))
    dispatcher.start()

    dispatcher.submit("msg-001")
    record = dispatcher.get_status("msg-001")

    await dispatcher.shutdown()

All mutable dispatch state (queue, ledger, in-flight counter, provider
cursor and tallies) lives on one MessageDispatcher instance. Nothing
is module-global, so several dispatchers can coexist in one process.

Submission never raises for delivery problems. Outcomes are observed
by polling get_status().
"""

from __future__ import annotations

import asyncio
import logging
from typing import List, Optional, Sequence

from backend.app.core.config import Settings, settings as default_settings
from backend.app.core.errors import ConfigurationError
from backend.app.messaging.events import EventNotifier, QueuedCallback
from backend.app.messaging.ledger import DispatchQueue, StatusLedger
from backend.app.messaging.models import (
    DeliveryRecord,
    DispatchStats,
    MessageIdentifier,
)
from backend.app.messaging.provider_pool import DEFAULT_WARNING_THRESHOLD, ProviderPool
from backend.app.messaging.providers.base import Provider, provider_name
from backend.app.messaging.providers.simulated import SimulatedProvider
from backend.app.messaging.providers.webhook import WebhookProvider
from backend.app.messaging.retry_engine import RetryEngine, RetryPolicy, SleepFunc
from backend.app.messaging.scheduler import AdmissionScheduler

logger = logging.getLogger(__name__)


class MessageDispatcher:
    """
    Resilient outbound-message dispatcher.

    Parameters
    ----------
    providers : sequence of Provider
        Failover order. Must not be empty.
    rate_limit : int
        Max concurrent retry chains.
    tick_seconds : float
        Scheduler period; one admission per tick.
    policy : RetryPolicy | None
    warning_threshold : int
        Failover tally at which the pool warns and resets.
    sleep : async callable
        Used for both backoff waits and the tick period.
    """

    def __init__(
        self,
        providers: Sequence[Provider],
        *,
        rate_limit: int = 5,
        tick_seconds: float = 1.0,
        policy: Optional[RetryPolicy] = None,
        warning_threshold: int = DEFAULT_WARNING_THRESHOLD,
        sleep: SleepFunc = asyncio.sleep,
    ):
        self.ledger = StatusLedger()
        self.queue = DispatchQueue()
        self.events = EventNotifier()
        self.pool = ProviderPool(providers, warning_threshold=warning_threshold)
        self.engine = RetryEngine(
            self.pool, self.ledger, self.queue, policy=policy, sleep=sleep,
        )
        self.scheduler = AdmissionScheduler(
            self.queue, self.engine,
            rate_limit=rate_limit, tick_seconds=tick_seconds, sleep=sleep,
        )

    # ── Submission API ──

    def submit(self, message_id: MessageIdentifier) -> bool:
        """
        Queue a message for delivery.

        Returns True when a new pending record was created. A message
        that already has a record (pending, sent or failed) is dropped
        and False is returned.
        """
        record = self.ledger.create(message_id)
        if record is None:
            logger.debug(
                "Message already queued or sent: %s", message_id,
                extra={"message_id": message_id},
            )
            return False

        self.queue.enqueue(message_id)
        self.events.emit_queued(message_id)
        logger.info(
            "Message queued: %s", message_id,
            extra={"message_id": message_id, "queue_depth": len(self.queue)},
        )
        return True

    def get_status(self, message_id: MessageIdentifier) -> Optional[DeliveryRecord]:
        return self.ledger.get(message_id)

    def on_queued(self, callback: QueuedCallback) -> None:
        self.events.on_queued(callback)

    # ── Lifecycle ──

    @property
    def is_running(self) -> bool:
        return self.scheduler.is_running

    @property
    def in_flight(self) -> int:
        return self.scheduler.in_flight

    @property
    def rate_limit(self) -> int:
        return self.scheduler.rate_limit

    def start(self) -> None:
        self.scheduler.start()

    async def shutdown(self) -> None:
        """Stop the scheduler. Does not drain or cancel in-flight chains."""
        await self.scheduler.stop()

    async def aclose(self) -> None:
        """
        Stop the scheduler, then release provider resources.

        Providers exposing an async ``close()`` (the webhook provider's
        httpx client) are closed. Call this on process exit; chains
        still in flight after it returns may fail their attempts.
        """
        await self.shutdown()
        for provider in self.pool.providers:
            close = getattr(provider, "close", None)
            if close is not None:
                await close()
        logger.info("Dispatcher closed (%d provider(s))", len(self.pool))

    def tick(self) -> Optional[MessageIdentifier]:
        return self.scheduler.tick()

    async def wait_inflight(self) -> None:
        await self.scheduler.wait_inflight()

    # ── Introspection ──

    def stats(self, *, include_queue: bool = False) -> DispatchStats:
        return DispatchStats(
            queue_depth=len(self.queue),
            in_flight=self.scheduler.in_flight,
            rate_limit=self.scheduler.rate_limit,
            running=self.scheduler.is_running,
            current_provider_index=self.pool.current_index,
            current_provider=provider_name(self.pool.current()),
            failure_tally=list(self.pool.failure_tally),
            records_by_status=self.ledger.counts(),
            queued_ids=self.queue.snapshot() if include_queue else None,
        )


# ═══════════════════════════════════════════════════════════════════════════
# Factory
# ═══════════════════════════════════════════════════════════════════════════

def provider_from_spec(spec: str, *, webhook_timeout: float = 10.0) -> Provider:
    """
    Build a provider from a DISPATCH_PROVIDERS entry.

        "simulation"          → SimulatedProvider(failure_rate=0.0)
        "simulation:0.25"     → SimulatedProvider(failure_rate=0.25)
        "https://host/hook"   → WebhookProvider(url)
    """
    spec = spec.strip()
    if spec.startswith(("http://", "https://")):
        return WebhookProvider(spec, timeout_seconds=webhook_timeout)

    kind, _, arg = spec.partition(":")
    if kind == "simulation":
        try:
            rate = float(arg) if arg else 0.0
            return SimulatedProvider(rate)
        except ValueError as exc:
            raise ConfigurationError(
                f"Invalid simulation provider '{spec}': {exc}",
                setting="DISPATCH_PROVIDERS",
            ) from exc

    raise ConfigurationError(
        f"Unknown provider '{spec}'. Use 'simulation[:rate]' or an http(s) URL.",
        setting="DISPATCH_PROVIDERS",
    )


def build_dispatcher(
    config: Optional[Settings] = None,
    *,
    providers: Optional[Sequence[Provider]] = None,
    sleep: SleepFunc = asyncio.sleep,
) -> MessageDispatcher:
    """Build a dispatcher from settings; explicit providers override the config."""
    cfg = config or default_settings

    if providers is None:
        built: List[Provider] = [
            provider_from_spec(spec, webhook_timeout=cfg.WEBHOOK_TIMEOUT_SECONDS)
            for spec in cfg.DISPATCH_PROVIDERS
        ]
    else:
        built = list(providers)

    if not built:
        raise ConfigurationError(
            "At least one delivery provider is required",
            setting="DISPATCH_PROVIDERS",
        )

    dispatcher = MessageDispatcher(
        built,
        rate_limit=cfg.DISPATCH_RATE_LIMIT,
        tick_seconds=cfg.DISPATCH_TICK_SECONDS,
        policy=RetryPolicy(
            max_retries=cfg.DISPATCH_MAX_RETRIES,
            backoff_base_seconds=cfg.DISPATCH_BACKOFF_BASE_SECONDS,
        ),
        warning_threshold=cfg.FAILOVER_WARNING_THRESHOLD,
        sleep=sleep,
    )
    logger.info(
        "Dispatcher built with %d provider(s): %s",
        len(built), [provider_name(p) for p in built],
    )
    return dispatcher
