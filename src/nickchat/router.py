"""
Delivery router: persist a message, then push it to the recipient.

Persistence defines success: once the store accepted the message, the
sender gets it back even if the push to the recipient fails.
Sends from the same sender to the same recipient are persisted and pushed
in call order; different pairs run independently.
"""

import asyncio
import logging
import weakref
from typing import Any, Optional

from nickchat.coordinator import Gateway, SessionCoordinator
from nickchat.errors import InvalidMessage, RecipientOffline, StoreUnavailable, Unauthenticated
from nickchat.models.events import NotificationEvent, S2CEvent
from nickchat.models.identity import utcnow, validate_nickname
from nickchat.models.message import Message, Notification, SendRequest
from nickchat.stores.base import MessageStore, guarded

logger = logging.getLogger(__name__)

DEFAULT_HISTORY_LIMIT = 100
MAX_HISTORY_LIMIT = 500


class DeliveryRouter:
    def __init__(
        self,
        coordinator: SessionCoordinator,
        messages: MessageStore,
        gateway: Gateway,
        store_timeout: float = 5.0,
        history_default_limit: int = DEFAULT_HISTORY_LIMIT,
        history_max_limit: int = MAX_HISTORY_LIMIT,
    ):
        self._coordinator = coordinator
        self._messages = messages
        self._gateway = gateway
        self._store_timeout = store_timeout
        self._history_default_limit = history_default_limit
        self._history_max_limit = history_max_limit
        self._pair_locks: "weakref.WeakValueDictionary[tuple[str, str], asyncio.Lock]" = (
            weakref.WeakValueDictionary()
        )

    def _require_nickname(self, session: str) -> str:
        nickname = self._coordinator.nickname_of(session)
        if nickname is None:
            raise Unauthenticated()
        return nickname

    def _pair_lock(self, sender: str, recipient: str) -> asyncio.Lock:
        key = (sender, recipient)
        lock = self._pair_locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._pair_locks[key] = lock
        return lock

    async def send(self, session: str, payload: Any) -> Message:
        sender = self._require_nickname(session)
        request = SendRequest.parse(payload)
        if not self._coordinator.is_present(request.to):
            raise RecipientOffline(request.to)

        message = request.to_message(sender, utcnow())
        # acquired before the first suspension point, so call order is kept
        async with self._pair_lock(sender, request.to):
            saved = await guarded(self._messages.save(message), op="save_message", timeout=self._store_timeout)
            await self._push(saved)
        return saved

    async def _push(self, message: Message) -> None:
        target = self._coordinator.session_of(message.to)
        if target is None:
            logger.info(f"Recipient {message.to!r} left before delivery; message {message.id} stored only")
            return
        notification = Notification.for_message(message)
        try:
            await self._gateway.emit(S2CEvent.MESSAGE_RECEIVED, message.to_wire(), to=target)
            await self._gateway.emit(NotificationEvent.NEW_MESSAGE, notification.to_wire(), to=target)
        except Exception as e:
            logger.warning(f"Push of message {message.id} to {message.to!r} failed: {e}")
            return
        logger.info(f"Message from {message.sender!r} to {message.to!r}: {notification.preview}")

    async def load_history(self, session: str, counterpart: Any, limit: Optional[int] = None) -> list[Message]:
        """Most recent messages between the session's nickname and `counterpart`, oldest first."""
        nickname = self._require_nickname(session)
        counterpart = validate_nickname(counterpart)
        if limit is None:
            limit = self._history_default_limit
        if limit <= 0:
            raise InvalidMessage("History limit must be positive")
        limit = min(limit, self._history_max_limit)

        newest_first = await guarded(
            self._messages.recent_between(nickname, counterpart, limit), op="load_history",
            timeout=self._store_timeout,
        )
        logger.info(f"Loaded {len(newest_first)} messages between {nickname!r} and {counterpart!r}")
        return list(reversed(newest_first))

    async def mark_read(self, session: str, counterpart: Any) -> int:
        """Best effort: mark messages from `counterpart` as read. Never raises for store failures."""
        nickname = self._coordinator.nickname_of(session)
        if nickname is None or not isinstance(counterpart, str):
            return 0
        try:
            count = await guarded(
                self._messages.mark_read(counterpart, nickname), op="mark_read", timeout=self._store_timeout,
            )
        except StoreUnavailable as e:
            logger.warning(f"mark_read {counterpart!r} -> {nickname!r} dropped: {e}")
            return 0
        if count:
            logger.info(f"Marked {count} messages as read ({counterpart!r} -> {nickname!r})")
        return count

    async def unread_count(self, session: str) -> int:
        nickname = self._require_nickname(session)
        return await guarded(self._messages.unread_count(nickname), op="unread_count", timeout=self._store_timeout)
