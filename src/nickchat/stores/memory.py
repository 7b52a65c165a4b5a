"""
In-memory stores: the default when no MongoDB URL is configured.
"""

import uuid
from typing import Optional

from nickchat.models.identity import Identity, utcnow
from nickchat.models.message import Message
from nickchat.stores.base import IdentityStore, MessageStore


class MemoryIdentityStore(IdentityStore):
    def __init__(self) -> None:
        self._records: dict[str, Identity] = {}

    async def get(self, nickname: str) -> Optional[Identity]:
        record = self._records.get(nickname)
        return record.model_copy() if record else None

    async def mark_online(self, nickname: str, session_token: str) -> Identity:
        record = Identity(nickname=nickname, session_token=session_token, online=True, last_seen=utcnow())
        self._records[nickname] = record
        return record.model_copy()

    async def mark_offline(self, nickname: str, session_token: str) -> Optional[Identity]:
        record = self._records.get(nickname)
        if record is None or record.session_token != session_token:
            return None
        record.online = False
        record.session_token = None
        record.last_seen = utcnow()
        return record.model_copy()

    async def reset_all(self) -> int:
        changed = 0
        for record in self._records.values():
            if record.online or record.session_token is not None:
                changed += 1
            record.online = False
            record.session_token = None
        return changed

    async def list_online(self) -> list[Identity]:
        return [r.model_copy() for r in self._records.values() if r.online]


class MemoryMessageStore(MessageStore):
    def __init__(self) -> None:
        self._messages: list[Message] = []

    async def save(self, message: Message) -> Message:
        saved = message.model_copy(update={"id": uuid.uuid4().hex})
        self._messages.append(saved)
        return saved.model_copy()

    async def recent_between(self, a: str, b: str, limit: int) -> list[Message]:
        pair = {(a, b), (b, a)}
        matches = [m for m in self._messages if (m.sender, m.to) in pair]
        # insertion order breaks ties between equal timestamps
        ordered = sorted(enumerate(matches), key=lambda im: (im[1].created_at, im[0]), reverse=True)
        return [m.model_copy() for _, m in ordered[:limit]]

    async def mark_read(self, sender: str, recipient: str) -> int:
        count = 0
        for m in self._messages:
            if m.sender == sender and m.to == recipient and not m.read:
                m.read = True
                count += 1
        return count

    async def unread_count(self, recipient: str) -> int:
        return sum(1 for m in self._messages if m.to == recipient and not m.read)
