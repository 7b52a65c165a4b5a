"""
Durable store interfaces and the timeout guard used on every store call.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Awaitable, Optional, TypeVar

from nickchat.errors import ChatError, StoreUnavailable
from nickchat.models.identity import Identity
from nickchat.models.message import Message

T = TypeVar("T")

logger = logging.getLogger(__name__)


class IdentityStore(ABC):
    @abstractmethod
    async def get(self, nickname: str) -> Optional[Identity]: ...

    @abstractmethod
    async def mark_online(self, nickname: str, session_token: str) -> Identity:
        """Upsert the record: bind the session, set online, refresh last_seen."""

    @abstractmethod
    async def mark_offline(self, nickname: str, session_token: str) -> Optional[Identity]:
        """Clear the record only if it is still bound to `session_token`."""

    @abstractmethod
    async def reset_all(self) -> int:
        """Force every record offline and unbound. Returns records changed."""

    @abstractmethod
    async def list_online(self) -> list[Identity]: ...


class MessageStore(ABC):
    @abstractmethod
    async def save(self, message: Message) -> Message:
        """Persist and return the message with its id assigned."""

    @abstractmethod
    async def recent_between(self, a: str, b: str, limit: int) -> list[Message]:
        """Most recent `limit` messages in either direction, newest first."""

    @abstractmethod
    async def mark_read(self, sender: str, recipient: str) -> int: ...

    @abstractmethod
    async def unread_count(self, recipient: str) -> int: ...


async def guarded(call: Awaitable[T], *, op: str, timeout: float) -> T:
    """Await a store call; timeouts and store failures become StoreUnavailable."""
    try:
        return await asyncio.wait_for(call, timeout=timeout)
    except asyncio.TimeoutError:
        logger.warning(f"Store call {op} timed out after {timeout}s")
        raise StoreUnavailable(f"Storage timed out during {op}, please retry", {"op": op})
    except ChatError:
        raise
    except Exception as e:
        logger.warning(f"Store call {op} failed: {e}")
        raise StoreUnavailable(f"Storage unavailable during {op}, please retry", {"op": op}) from e
