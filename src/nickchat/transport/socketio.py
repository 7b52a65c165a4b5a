"""
Socket.IO transport: maps client events onto the coordinator and router.

Events (see models/events.py):
  user:join           {nickname}                       ack {success, nickname, roster, joined_at}
  message:send        {to, kind, content|file|location} ack {success, message}
  messages:load       {counterpart, limit?}            ack {success, messages}
  messages:mark_read  {from}                           no ack
  messages:unread     {}                               ack {success, count}
  disconnect                                           triggers leave
"""

import logging
from typing import Any, Awaitable, Callable, Optional

import socketio
from pydantic import ValidationError

from nickchat.coordinator import SessionCoordinator
from nickchat.errors import ChatError, InvalidMessage
from nickchat.models.events import C2SEvent
from nickchat.models.message import HistoryRequest, MarkReadRequest
from nickchat.router import DeliveryRouter
from nickchat.transport.envelope import error_reply, internal_error_reply, ok_reply

logger = logging.getLogger(__name__)


class SocketIOGateway:
    """Gateway over a socketio.AsyncServer: one session per sid."""

    def __init__(self, sio: socketio.AsyncServer):
        self._sio = sio

    async def emit(self, event: str, data: Any, to: Optional[str] = None) -> None:
        await self._sio.emit(event, data, to=to)


class ChatServer:
    def __init__(self, coordinator: SessionCoordinator, router: DeliveryRouter):
        self._coordinator = coordinator
        self._router = router

    def attach(self, sio: socketio.AsyncServer) -> None:
        sio.on("connect", self.on_connect)
        sio.on("disconnect", self.on_disconnect)
        sio.on(C2SEvent.USER_JOIN, self.on_join)
        sio.on(C2SEvent.MESSAGE_SEND, self.on_send)
        sio.on(C2SEvent.MESSAGES_LOAD, self.on_load_history)
        sio.on(C2SEvent.MESSAGES_MARK_READ, self.on_mark_read)
        sio.on(C2SEvent.MESSAGES_UNREAD, self.on_unread)

    async def _reply(self, event: str, sid: str, op: Callable[[], Awaitable[dict[str, Any]]]) -> dict[str, Any]:
        try:
            return ok_reply(**await op())
        except ChatError as e:
            logger.info(f"{event} from {sid} rejected: {e.code}: {e.message}")
            return error_reply(e)
        except Exception:
            logger.exception(f"Unhandled error in {event} from {sid}")
            return internal_error_reply()

    async def on_connect(self, sid: str, environ: dict[str, Any], auth: Any = None) -> None:
        logger.info(f"Client connected: {sid}")

    async def on_disconnect(self, sid: str, *_args: Any) -> None:
        try:
            nickname = await self._coordinator.leave(sid)
        except Exception:
            logger.exception(f"Error while handling disconnect of {sid}")
            return
        if nickname is None:
            logger.info(f"Client {sid} disconnected (not joined)")

    async def on_join(self, sid: str, data: Any = None) -> dict[str, Any]:
        async def op() -> dict[str, Any]:
            nickname = data.get("nickname") if isinstance(data, dict) else None
            result = await self._coordinator.join(nickname, sid)
            return {
                "nickname": result.nickname,
                "roster": result.roster,
                "joined_at": result.joined_at.isoformat(),
            }
        return await self._reply(C2SEvent.USER_JOIN, sid, op)

    async def on_send(self, sid: str, data: Any = None) -> dict[str, Any]:
        async def op() -> dict[str, Any]:
            message = await self._router.send(sid, data)
            return {"message": message.to_wire()}
        return await self._reply(C2SEvent.MESSAGE_SEND, sid, op)

    async def on_load_history(self, sid: str, data: Any = None) -> dict[str, Any]:
        async def op() -> dict[str, Any]:
            request = _parse(HistoryRequest, data)
            messages = await self._router.load_history(sid, request.counterpart, request.limit)
            return {"messages": [m.to_wire() for m in messages]}
        return await self._reply(C2SEvent.MESSAGES_LOAD, sid, op)

    async def on_mark_read(self, sid: str, data: Any = None) -> None:
        """Fire-and-forget: nothing is acknowledged, failures are only logged."""
        try:
            request = _parse(MarkReadRequest, data)
        except InvalidMessage as e:
            logger.info(f"{C2SEvent.MESSAGES_MARK_READ} from {sid} ignored: {e.message}")
            return
        await self._router.mark_read(sid, request.sender)

    async def on_unread(self, sid: str, data: Any = None) -> dict[str, Any]:
        async def op() -> dict[str, Any]:
            return {"count": await self._router.unread_count(sid)}
        return await self._reply(C2SEvent.MESSAGES_UNREAD, sid, op)


def _parse(model: Any, data: Any) -> Any:
    if not isinstance(data, dict):
        raise InvalidMessage("Payload must be an object")
    try:
        return model.model_validate(data)
    except ValidationError as e:
        err = e.errors()[0]
        field = ".".join(str(p) for p in err.get("loc", ()))
        raise InvalidMessage(f"{field}: {err['msg']}" if field else err["msg"])
