"""Shared fixtures: in-memory stores, a recording gateway, the core objects."""

import asyncio
from typing import Any, Optional

import pytest

from nickchat.coordinator import SessionCoordinator
from nickchat.router import DeliveryRouter
from nickchat.stores.memory import MemoryIdentityStore, MemoryMessageStore


class RecordingGateway:
    """Gateway double: records every emit, can be told to fail for some sessions."""

    def __init__(self) -> None:
        self.events: list[tuple[str, Any, Optional[str]]] = []
        self.fail_for: set[Optional[str]] = set()

    async def emit(self, event: str, data: Any, to: Optional[str] = None) -> None:
        if to in self.fail_for:
            raise ConnectionResetError(f"session {to} is gone")
        self.events.append((event, data, to))

    def sent(self, event: str) -> list[tuple[Any, Optional[str]]]:
        return [(data, to) for e, data, to in self.events if e == event]

    def clear(self) -> None:
        self.events.clear()


class SlowIdentityStore(MemoryIdentityStore):
    """Yields to the loop inside every write so concurrent joins interleave."""

    def __init__(self, delay: float = 0.01) -> None:
        super().__init__()
        self.delay = delay

    async def mark_online(self, nickname: str, session_token: str):
        await asyncio.sleep(self.delay)
        return await super().mark_online(nickname, session_token)


@pytest.fixture
def gateway() -> RecordingGateway:
    return RecordingGateway()


@pytest.fixture
def identities() -> MemoryIdentityStore:
    return MemoryIdentityStore()


@pytest.fixture
def messages() -> MemoryMessageStore:
    return MemoryMessageStore()


@pytest.fixture
def coordinator(identities, gateway) -> SessionCoordinator:
    return SessionCoordinator(identities, gateway, store_timeout=1.0)


@pytest.fixture
def router(coordinator, messages, gateway) -> DeliveryRouter:
    return DeliveryRouter(coordinator, messages, gateway, store_timeout=1.0)
