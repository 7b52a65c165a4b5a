"""
Presence table: the in-memory authority on who can receive a push.

Every method is synchronous. Under the asyncio event loop each call runs
to completion without yielding, so check-then-claim in `reserve` is atomic
with respect to every other join and leave.
"""

from typing import Optional

from nickchat.errors import IdentityInUse


class PresenceTable:
    def __init__(self) -> None:
        self._entries: dict[str, str] = {}
        # nicknames claimed by a join whose durable write is still in flight
        self._pending: dict[str, str] = {}

    def reserve(self, nickname: str, session: str) -> None:
        """Claim a nickname for a session, or raise IdentityInUse."""
        if nickname in self._entries or nickname in self._pending:
            raise IdentityInUse()
        self._pending[nickname] = session

    def commit(self, nickname: str, session: str) -> None:
        if self._pending.get(nickname) != session:
            raise KeyError(f"No reservation for {nickname!r} by session {session!r}")
        del self._pending[nickname]
        self._entries[nickname] = session

    def release(self, nickname: str, session: str) -> None:
        if self._pending.get(nickname) == session:
            del self._pending[nickname]

    def remove(self, nickname: str, session: str) -> bool:
        """Remove the entry if it is still bound to `session`."""
        if self._entries.get(nickname) != session:
            return False
        del self._entries[nickname]
        return True

    def session_of(self, nickname: str) -> Optional[str]:
        return self._entries.get(nickname)

    def roster(self) -> list[str]:
        return sorted(self._entries)

    def snapshot(self) -> list[dict[str, str]]:
        return [{"nickname": n, "session": s} for n, s in sorted(self._entries.items())]

    def __contains__(self, nickname: object) -> bool:
        return nickname in self._entries

    def __len__(self) -> int:
        return len(self._entries)
