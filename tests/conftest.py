"""Shared fakes for dispatch tests: recording sleep and scripted providers."""

from __future__ import annotations

import asyncio
from typing import Dict, List, Optional, Sequence

import pytest


class RecordingSleep:
    """Stands in for asyncio.sleep: records the delay, yields once."""

    def __init__(self) -> None:
        self.delays: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)
        await asyncio.sleep(0)


class ScriptedProvider:
    """
    Returns outcomes from a script, repeating the last entry.

    An outcome of None raises instead of returning False.
    """

    def __init__(self, outcomes: Sequence[Optional[bool]], name: str = "scripted"):
        self.outcomes = list(outcomes)
        self.name = name
        self.calls: List[str] = []

    async def attempt_delivery(self, message_id: str) -> bool:
        idx = min(len(self.calls), len(self.outcomes) - 1)
        self.calls.append(message_id)
        await asyncio.sleep(0)
        outcome = self.outcomes[idx]
        if outcome is None:
            raise RuntimeError("provider exploded")
        return outcome


class GatedProvider:
    """Succeeds only once the gate for that message (or the shared gate) opens."""

    def __init__(self, name: str = "gated"):
        self.name = name
        self.gate = asyncio.Event()
        self.gates: Dict[str, asyncio.Event] = {}
        self.calls: List[str] = []

    def gate_for(self, message_id: str) -> asyncio.Event:
        return self.gates.setdefault(message_id, asyncio.Event())

    async def attempt_delivery(self, message_id: str) -> bool:
        self.calls.append(message_id)
        own = self.gate_for(message_id)
        shared = asyncio.ensure_future(self.gate.wait())
        mine = asyncio.ensure_future(own.wait())
        done, pending = await asyncio.wait(
            {shared, mine}, return_when=asyncio.FIRST_COMPLETED,
        )
        for task in pending:
            task.cancel()
        return True


async def spin(iterations: int = 50) -> None:
    """Let the event loop run pending tasks."""
    for _ in range(iterations):
        await asyncio.sleep(0)


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def scripted_provider():
    return ScriptedProvider


@pytest.fixture
def gated_provider():
    return GatedProvider


@pytest.fixture
def run_loop():
    return spin
