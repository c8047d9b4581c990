"""
simulated.py — Simulated delivery provider for development and tests.

Fails a configurable fraction of attempts, chosen at random.

    failure_rate = 0.0  → always delivers
    failure_rate = 1.0  → always fails
    failure_rate = 0.5  → coin flip per attempt

Pass a seeded random.Random for reproducible sequences.
"""

from __future__ import annotations

import logging
import random
from typing import Optional

from backend.app.core.errors import DeliveryFailure
from backend.app.messaging.models import MessageIdentifier

logger = logging.getLogger(__name__)


class SimulatedProvider:
    """Provider that fails with probability ``failure_rate``."""

    def __init__(
        self,
        failure_rate: float = 0.0,
        *,
        name: Optional[str] = None,
        rng: Optional[random.Random] = None,
    ):
        if not 0.0 <= failure_rate <= 1.0:
            raise ValueError(f"failure_rate must be within [0, 1], got {failure_rate}")
        self.failure_rate = failure_rate
        self.name = name or f"simulation:{failure_rate:g}"
        self._rng = rng or random.Random()
        self.attempts = 0
        self.deliveries = 0

    async def attempt_delivery(self, message_id: MessageIdentifier) -> bool:
        self.attempts += 1
        if self._rng.random() < self.failure_rate:
            raise DeliveryFailure(self.name, message_id, "Simulated provider failure")

        self.deliveries += 1
        logger.debug("[%s] Delivered %s", self.name, message_id)
        return True

    def __repr__(self) -> str:
        return f"SimulatedProvider(failure_rate={self.failure_rate!r}, name={self.name!r})"
