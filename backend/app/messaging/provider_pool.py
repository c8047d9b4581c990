"""
provider_pool.py — Ordered providers, a shared cursor, and failover.

═══════════════════════════════════════════════════════════════════════════
FAILOVER POLICY
═══════════════════════════════════════════════════════════════════════════

One round-robin cursor is shared by every in-flight message. A chain
picks ``current()`` when it is admitted and keeps that provider for
all of its attempts. When a chain exhausts its retry budget it calls
``advance()``:

    current_index  ← (current_index + 1) mod len(providers)
    failure_tally[current_index] += 1
    if failure_tally[current_index] >= threshold:
        log WARNING, failure_tally[current_index] ← 0

The tally that moves is the one for the provider just switched TO,
not the one that failed (see DESIGN.md, "Open questions").

The pool does not validate its size. build_dispatcher() refuses an
empty provider list before a pool is ever constructed.
"""

from __future__ import annotations

import logging
from typing import List, Sequence

from backend.app.messaging.providers.base import Provider, provider_name

logger = logging.getLogger(__name__)

DEFAULT_WARNING_THRESHOLD = 3


class ProviderPool:
    """Round-robin provider selection with a per-index failure tally."""

    def __init__(
        self,
        providers: Sequence[Provider],
        *,
        warning_threshold: int = DEFAULT_WARNING_THRESHOLD,
    ):
        self._providers: List[Provider] = list(providers)
        self.warning_threshold = warning_threshold
        self.current_index = 0
        self.failure_tally: List[int] = [0] * len(self._providers)

    def __len__(self) -> int:
        return len(self._providers)

    @property
    def providers(self) -> List[Provider]:
        return list(self._providers)

    def current(self) -> Provider:
        return self._providers[self.current_index]

    def advance(self) -> Provider:
        """Switch to the next provider and bump its tally."""
        previous = self.current_index
        self.current_index = (self.current_index + 1) % len(self._providers)
        self.failure_tally[self.current_index] += 1

        logger.info(
            "Provider failover: %s → %s (tally %d)",
            provider_name(self._providers[previous]),
            provider_name(self._providers[self.current_index]),
            self.failure_tally[self.current_index],
            extra={"provider": provider_name(self._providers[self.current_index])},
        )

        if self.failure_tally[self.current_index] >= self.warning_threshold:
            logger.warning(
                "Switching providers due to failure threshold (%s reached %d)",
                provider_name(self._providers[self.current_index]),
                self.warning_threshold,
            )
            self.failure_tally[self.current_index] = 0

        return self._providers[self.current_index]
