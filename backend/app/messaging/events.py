"""
events.py — Observer hook fired when a message is newly queued.

Observers are called synchronously, in registration order, once per
first-time submission. Re-queues after retry exhaustion do not fire.
"""

from __future__ import annotations

import logging
from typing import Callable, List

from backend.app.messaging.models import MessageIdentifier

logger = logging.getLogger(__name__)

QueuedCallback = Callable[[MessageIdentifier], None]


class EventNotifier:
    """In-process "queued" event fan-out."""

    def __init__(self) -> None:
        self._queued: List[QueuedCallback] = []

    def on_queued(self, callback: QueuedCallback) -> None:
        self._queued.append(callback)

    def emit_queued(self, message_id: MessageIdentifier) -> None:
        # Observer errors are logged; later observers still run.
        for callback in list(self._queued):
            try:
                callback(message_id)
            except Exception:
                logger.exception(
                    "Queued observer %r failed for %s", callback, message_id,
                )

    def __len__(self) -> int:
        return len(self._queued)
