"""
base.py — Provider capability shared by every delivery backend.

A provider makes one delivery attempt and reports success (True) or
failure (False). Raising is tolerated: the retry engine treats any
exception from attempt_delivery as a failed attempt.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from backend.app.messaging.models import MessageIdentifier


@runtime_checkable
class Provider(Protocol):
    """Interface that all delivery providers implement."""

    name: str

    async def attempt_delivery(self, message_id: MessageIdentifier) -> bool:
        """Attempt delivery of one message."""
        ...


def provider_name(provider: object) -> str:
    """Display name for logs and stats."""
    return getattr(provider, "name", None) or type(provider).__name__
