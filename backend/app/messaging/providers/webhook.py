"""
webhook.py — HTTP webhook delivery provider.

Delivery mechanism:
    App  →  HTTP POST {"message_id": ...}  →  downstream sender service

    2xx                → delivered
    any other status   → failed attempt
    transport error    → failed attempt

The provider never retries on its own; one call is one attempt.
"""

from __future__ import annotations

import logging
import time
from typing import Optional

import httpx

from backend.app.messaging.models import MessageIdentifier

logger = logging.getLogger(__name__)


class WebhookProvider:
    """POST each message identifier to a fixed URL."""

    def __init__(
        self,
        url: str,
        *,
        timeout_seconds: float = 10.0,
        name: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.url = url
        self.timeout_seconds = timeout_seconds
        self.name = name or f"webhook:{httpx.URL(url).host}"
        self._http_client = client

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._http_client is None or self._http_client.is_closed:
            self._http_client = httpx.AsyncClient(timeout=self.timeout_seconds)
        return self._http_client

    async def close(self) -> None:
        """Close HTTP client."""
        if self._http_client and not self._http_client.is_closed:
            await self._http_client.aclose()

    async def attempt_delivery(self, message_id: MessageIdentifier) -> bool:
        client = await self._get_client()
        start = time.perf_counter()
        try:
            response = await client.post(self.url, json={"message_id": message_id})
        except httpx.HTTPError as exc:
            logger.warning(
                "[%s] Transport error for %s: %s", self.name, message_id, exc,
                extra={"message_id": message_id, "provider": self.name},
            )
            return False

        duration_ms = (time.perf_counter() - start) * 1000
        if response.is_success:
            logger.debug(
                "[%s] %s accepted → %d (%.1fms)",
                self.name, message_id, response.status_code, duration_ms,
                extra={"status_code": response.status_code, "duration_ms": duration_ms},
            )
            return True

        logger.warning(
            "[%s] %s rejected → %d (%.1fms)",
            self.name, message_id, response.status_code, duration_ms,
            extra={
                "message_id": message_id,
                "provider": self.name,
                "status_code": response.status_code,
                "duration_ms": duration_ms,
            },
        )
        return False

    def __repr__(self) -> str:
        return f"WebhookProvider(url={self.url!r})"
