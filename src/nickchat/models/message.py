"""
Message models: persisted records, client payloads and notifications.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field, ValidationError, model_validator

from nickchat.errors import InvalidMessage

MESSAGE_MAX_LENGTH = 1000
PREVIEW_LENGTH = 30
DEFAULT_LOCATION_LABEL = "Shared location"


class MessageKind(str, Enum):
    TEXT = "text"
    IMAGE = "image"
    FILE = "file"
    AUDIO = "audio"
    LOCATION = "location"


FILE_KINDS = {MessageKind.IMAGE, MessageKind.FILE, MessageKind.AUDIO}

PREVIEW_LABELS = {
    MessageKind.IMAGE: "📷 Image",
    MessageKind.AUDIO: "🎵 Audio",
    MessageKind.FILE: "📎 File",
    MessageKind.LOCATION: "📍 Location",
}


class FileRef(BaseModel):
    """Reference to a blob returned by the upload endpoint."""
    url: str = Field(min_length=1)
    name: str = Field(min_length=1)
    size: int = Field(default=0, ge=0)
    mime_type: Optional[str] = None


class GeoPoint(BaseModel):
    lat: float = Field(ge=-90, le=90)
    lon: float = Field(ge=-180, le=180)
    address: Optional[str] = Field(default=None, max_length=MESSAGE_MAX_LENGTH)


class Message(BaseModel):
    """A persisted message. Immutable once saved except for `read`."""
    id: Optional[str] = None
    sender: str = Field(alias="from")
    to: str
    kind: MessageKind = MessageKind.TEXT
    content: str
    file: Optional[FileRef] = None
    location: Optional[GeoPoint] = None
    created_at: datetime
    read: bool = False

    model_config = {"populate_by_name": True}

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class SendRequest(BaseModel):
    """Client payload of message:send."""
    to: str = Field(min_length=1)
    kind: MessageKind = MessageKind.TEXT
    content: Optional[str] = None
    file: Optional[FileRef] = None
    location: Optional[GeoPoint] = None

    @model_validator(mode="after")
    def check_shape(self) -> "SendRequest":
        if self.kind == MessageKind.TEXT:
            text = (self.content or "").strip()
            if not text:
                raise ValueError("Message cannot be empty")
            if len(text) > MESSAGE_MAX_LENGTH:
                raise ValueError(f"Message is too long (max. {MESSAGE_MAX_LENGTH} characters)")
            self.content = text
        elif self.kind == MessageKind.LOCATION:
            if self.location is None:
                raise ValueError("Location messages require coordinates")
        elif self.file is None:
            raise ValueError(f"{self.kind.value.capitalize()} messages require file metadata")
        return self

    @classmethod
    def parse(cls, data: Any) -> "SendRequest":
        """Validate a raw payload, mapping pydantic errors to InvalidMessage."""
        if not isinstance(data, dict):
            raise InvalidMessage("Message payload must be an object")
        try:
            return cls.model_validate(data)
        except ValidationError as e:
            raise InvalidMessage(_first_error(e), details={"errors": e.error_count()})

    def to_message(self, sender: str, created_at: datetime) -> Message:
        if self.kind == MessageKind.TEXT:
            content = self.content or ""
        elif self.kind == MessageKind.LOCATION:
            content = (self.location.address if self.location else None) or DEFAULT_LOCATION_LABEL
        else:
            content = self.file.name if self.file else ""
        return Message(
            sender=sender,
            to=self.to,
            kind=self.kind,
            content=content,
            file=self.file if self.kind in FILE_KINDS else None,
            location=self.location if self.kind == MessageKind.LOCATION else None,
            created_at=created_at,
        )


class Notification(BaseModel):
    """Lightweight notification:new_message payload."""
    sender: str = Field(alias="from")
    preview: str
    kind: MessageKind
    timestamp: datetime

    model_config = {"populate_by_name": True}

    @classmethod
    def for_message(cls, message: Message) -> "Notification":
        return cls(
            sender=message.sender,
            preview=preview_for(message.kind, message.content),
            kind=message.kind,
            timestamp=message.created_at,
        )

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class HistoryRequest(BaseModel):
    counterpart: str
    limit: Optional[int] = None


class MarkReadRequest(BaseModel):
    sender: str = Field(alias="from")

    model_config = {"populate_by_name": True}


def preview_for(kind: MessageKind, content: str) -> str:
    if kind == MessageKind.TEXT:
        if len(content) > PREVIEW_LENGTH:
            return content[:PREVIEW_LENGTH] + "..."
        return content
    return PREVIEW_LABELS[kind]


def _first_error(e: ValidationError) -> str:
    err = e.errors()[0]
    cause = (err.get("ctx") or {}).get("error")
    if cause is not None:
        return str(cause)
    loc = ".".join(str(p) for p in err.get("loc", ()))
    return f"{loc}: {err['msg']}" if loc else err["msg"]
