"""
Session coordinator: binds nicknames to transport sessions.

Join sequence:
1. syntactic nickname check
2. presence reservation (atomic, fails with IdentityInUse)
3. durable lookup; a stale "online" record is overwritten, not rejected
4. durable upsert (online, session, last_seen)
5. presence commit
6. session → nickname association
7. roster broadcast to every connected session
8. reply with the roster taken after the commit

join and leave for the same session are serialized, so a disconnect that
arrives mid-join runs only after the join's durable write has finished.
"""

import asyncio
import logging
from datetime import datetime
from typing import Any, Optional, Protocol

from nickchat.errors import IdentityInUse, StoreUnavailable, Unauthenticated
from nickchat.models.events import S2CEvent
from nickchat.models.identity import utcnow, validate_nickname
from nickchat.presence import PresenceTable
from nickchat.stores.base import IdentityStore, guarded

logger = logging.getLogger(__name__)

DEFAULT_STORE_TIMEOUT = 5.0


class Gateway(Protocol):
    async def emit(self, event: str, data: Any, to: Optional[str] = None) -> None:
        """Send an event to one session, or to every session when `to` is None."""


class JoinResult:
    __slots__ = ("nickname", "roster", "joined_at")

    def __init__(self, nickname: str, roster: list[str], joined_at: datetime):
        self.nickname = nickname
        self.roster = roster
        self.joined_at = joined_at

    def __repr__(self) -> str:
        return f"JoinResult(nickname={self.nickname!r}, roster={self.roster!r})"


class SessionCoordinator:
    def __init__(
        self,
        identities: IdentityStore,
        gateway: Gateway,
        presence: Optional[PresenceTable] = None,
        store_timeout: float = DEFAULT_STORE_TIMEOUT,
    ):
        self._identities = identities
        self._gateway = gateway
        self._presence = presence or PresenceTable()
        self._store_timeout = store_timeout
        self._sessions: dict[str, str] = {}
        self._session_locks: dict[str, asyncio.Lock] = {}

    @property
    def presence(self) -> PresenceTable:
        return self._presence

    def nickname_of(self, session: str) -> Optional[str]:
        return self._sessions.get(session)

    def session_of(self, nickname: str) -> Optional[str]:
        return self._presence.session_of(nickname)

    def is_present(self, nickname: str) -> bool:
        return nickname in self._presence

    def roster(self) -> list[str]:
        return self._presence.roster()

    def _lock_for(self, session: str) -> asyncio.Lock:
        lock = self._session_locks.get(session)
        if lock is None:
            lock = self._session_locks[session] = asyncio.Lock()
        return lock

    async def reconcile(self) -> int:
        """Clear stale online flags left by a previous run. Call before accepting connections."""
        changed = await guarded(self._identities.reset_all(), op="reset_all", timeout=self._store_timeout)
        logger.info(f"Startup reconciliation: {changed} identity records reset to offline")
        return changed

    async def join(self, nickname: Any, session: str) -> JoinResult:
        nickname = validate_nickname(nickname)

        lock = self._lock_for(session)
        async with lock:
            if self._session_locks.get(session) is not lock:
                raise Unauthenticated("Session closed before join completed")
            current = self._sessions.get(session)
            if current is not None:
                if current == nickname:
                    return JoinResult(nickname, self._presence.roster(), utcnow())
                raise IdentityInUse(f"This session already joined as {current!r}")

            self._presence.reserve(nickname, session)
            write = asyncio.ensure_future(self._persist_join(nickname, session))
            try:
                await asyncio.shield(write)
            except asyncio.CancelledError:
                await self._abandon_join(nickname, session, write)
                raise
            except BaseException:
                self._presence.release(nickname, session)
                raise

            self._presence.commit(nickname, session)
            self._sessions[session] = nickname
            roster = self._presence.roster()

        await self._broadcast_roster()
        logger.info(f"User {nickname!r} joined (session {session}). Online: {len(roster)}")
        return JoinResult(nickname, roster, utcnow())

    async def _persist_join(self, nickname: str, session: str) -> None:
        existing = await guarded(self._identities.get(nickname), op="get_identity", timeout=self._store_timeout)
        if existing and existing.online and existing.session_token != session:
            # durable "online" is advisory; the presence table already said the name is free
            logger.warning(
                f"User {nickname!r} was marked online in storage (session {existing.session_token}) "
                f"but is not present; overwriting stale record"
            )
        await guarded(
            self._identities.mark_online(nickname, session), op="mark_online", timeout=self._store_timeout,
        )

    async def _abandon_join(self, nickname: str, session: str, write: "asyncio.Future[None]") -> None:
        """Cancelled mid-join: let the durable write land, then undo it."""
        self._presence.release(nickname, session)
        try:
            await write
            await guarded(
                self._identities.mark_offline(nickname, session), op="mark_offline",
                timeout=self._store_timeout,
            )
        except StoreUnavailable as e:
            logger.warning(f"Abandoned join for {nickname!r} left storage unreconciled: {e}")

    async def leave(self, session: str) -> Optional[str]:
        """Unbind a disconnected session. Returns the nickname it carried, if any."""
        async with self._lock_for(session):
            nickname = self._sessions.pop(session, None)
            if nickname is None:
                self._session_locks.pop(session, None)
                logger.debug(f"Session {session} left without joining")
                return None

            self._presence.remove(nickname, session)
            try:
                await guarded(
                    self._identities.mark_offline(nickname, session), op="mark_offline",
                    timeout=self._store_timeout,
                )
            except StoreUnavailable as e:
                logger.warning(f"Could not record {nickname!r} offline: {e}")
            self._session_locks.pop(session, None)

        await self._broadcast_roster()
        logger.info(f"User {nickname!r} left (session {session}). Online: {len(self._presence)}")
        return nickname

    async def _broadcast_roster(self) -> None:
        """Emit the roster as it stands now, never an earlier snapshot."""
        try:
            await self._gateway.emit(S2CEvent.USERS_LIST, self._presence.roster())
        except Exception as e:
            logger.error(f"Roster broadcast failed: {e}")
