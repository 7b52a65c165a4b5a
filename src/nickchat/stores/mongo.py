"""
MongoDB stores backed by motor.

Collections:
  users     {nickname, session_token, online, last_seen}
  messages  {from, to, kind, content, file, location, created_at, read}
"""

import logging
from typing import Any, Optional

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING, ReturnDocument

from nickchat.config import Settings
from nickchat.models.identity import Identity, utcnow
from nickchat.models.message import Message
from nickchat.stores.base import IdentityStore, MessageStore

logger = logging.getLogger(__name__)


def connect_mongo(settings: Settings) -> tuple[AsyncIOMotorClient, AsyncIOMotorDatabase]:
    timeout_ms = int(settings.store_timeout * 1000)
    client = AsyncIOMotorClient(
        settings.mongodb_url,
        serverSelectionTimeoutMS=timeout_ms,
        connectTimeoutMS=timeout_ms,
        tz_aware=True,
    )
    return client, client[settings.database_name]


def _identity_from_doc(doc: dict[str, Any]) -> Identity:
    return Identity(
        nickname=doc["nickname"],
        session_token=doc.get("session_token"),
        online=doc.get("online", False),
        last_seen=doc.get("last_seen") or utcnow(),
    )


def _message_from_doc(doc: dict[str, Any]) -> Message:
    data = {k: v for k, v in doc.items() if k != "_id"}
    data["id"] = str(doc["_id"])
    return Message.model_validate(data)


class MongoIdentityStore(IdentityStore):
    def __init__(self, db: AsyncIOMotorDatabase):
        self._users = db["users"]

    async def ensure_indexes(self) -> None:
        await self._users.create_index([("nickname", ASCENDING)], unique=True)
        await self._users.create_index([("session_token", ASCENDING)])

    async def get(self, nickname: str) -> Optional[Identity]:
        doc = await self._users.find_one({"nickname": nickname})
        return _identity_from_doc(doc) if doc else None

    async def mark_online(self, nickname: str, session_token: str) -> Identity:
        doc = await self._users.find_one_and_update(
            {"nickname": nickname},
            {"$set": {"session_token": session_token, "online": True, "last_seen": utcnow()}},
            upsert=True,
            return_document=ReturnDocument.AFTER,
        )
        return _identity_from_doc(doc)

    async def mark_offline(self, nickname: str, session_token: str) -> Optional[Identity]:
        doc = await self._users.find_one_and_update(
            {"nickname": nickname, "session_token": session_token},
            {"$set": {"session_token": None, "online": False, "last_seen": utcnow()}},
            return_document=ReturnDocument.AFTER,
        )
        return _identity_from_doc(doc) if doc else None

    async def reset_all(self) -> int:
        result = await self._users.update_many(
            {"$or": [{"online": True}, {"session_token": {"$ne": None}}]},
            {"$set": {"online": False, "session_token": None}},
        )
        return result.modified_count

    async def list_online(self) -> list[Identity]:
        cursor = self._users.find({"online": True})
        return [_identity_from_doc(doc) async for doc in cursor]


class MongoMessageStore(MessageStore):
    def __init__(self, db: AsyncIOMotorDatabase):
        self._messages = db["messages"]

    async def ensure_indexes(self) -> None:
        await self._messages.create_index([("from", ASCENDING), ("to", ASCENDING), ("created_at", DESCENDING)])
        await self._messages.create_index([("to", ASCENDING), ("read", ASCENDING)])

    async def save(self, message: Message) -> Message:
        doc = message.model_dump(by_alias=True, exclude={"id"})
        doc["kind"] = message.kind.value
        result = await self._messages.insert_one(doc)
        return message.model_copy(update={"id": str(result.inserted_id)})

    async def recent_between(self, a: str, b: str, limit: int) -> list[Message]:
        cursor = (
            self._messages.find({"$or": [{"from": a, "to": b}, {"from": b, "to": a}]})
            .sort([("created_at", DESCENDING), ("_id", DESCENDING)])
            .limit(limit)
        )
        return [_message_from_doc(doc) async for doc in cursor]

    async def mark_read(self, sender: str, recipient: str) -> int:
        result = await self._messages.update_many(
            {"from": sender, "to": recipient, "read": False},
            {"$set": {"read": True}},
        )
        return result.modified_count

    async def unread_count(self, recipient: str) -> int:
        return await self._messages.count_documents({"to": recipient, "read": False})
