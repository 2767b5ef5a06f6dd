"""
Shared fixtures: a controllable clock, contact stores, and a recording
stub gateway standing in for the delivery provider.
"""

from __future__ import annotations

from typing import List, Optional, Tuple

import pytest

from backend.app.alerts.contact_store import ContactStore
from backend.app.core.cache import MemoryKeyValueStore
from backend.app.core.errors import GatewayError


class FakeClock:
    """Epoch-seconds clock that only moves when told to."""

    def __init__(self, start: float = 1_760_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, *, hours: float = 0.0, seconds: float = 0.0) -> None:
        self.now += hours * 3600 + seconds


class StubGateway:
    """Records every text and call; can be told to fail either step."""

    name = "stub"

    def __init__(
        self,
        *,
        fail_text: Optional[str] = None,
        fail_call: Optional[str] = None,
    ):
        self.fail_text = fail_text
        self.fail_call = fail_call
        self.texts: List[Tuple[str, str]] = []
        self.calls: List[Tuple[str, str]] = []

    async def send_text(self, to: str, body: str) -> str:
        if self.fail_text:
            raise GatewayError(self.fail_text, provider="stub", code=21211, status=400)
        self.texts.append((to, body))
        return f"SM{len(self.texts):04d}"

    async def place_call(self, to: str, twiml: str) -> str:
        if self.fail_call:
            raise GatewayError(self.fail_call, provider="stub", code=20003, status=401)
        self.calls.append((to, twiml))
        return f"CA{len(self.calls):04d}"

    @property
    def total_calls(self) -> int:
        return len(self.texts) + len(self.calls)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def memory_backend() -> MemoryKeyValueStore:
    return MemoryKeyValueStore()


@pytest.fixture
def contact_store(memory_backend, clock) -> ContactStore:
    return ContactStore(memory_backend, default_ttl_hours=96.0, clock=clock)


@pytest.fixture
def stub_gateway():
    """Factory: ``stub_gateway(fail_call="...")``."""
    def _make(**kwargs) -> StubGateway:
        return StubGateway(**kwargs)
    return _make
