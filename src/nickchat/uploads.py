"""
Upload boundary: stores one blob and returns a reference a message can carry.

Files land in <upload_dir>/{images,audio,files}/ and are served under /uploads.
"""

import asyncio
import logging
import random
import re
import time
from pathlib import Path

from pydantic import BaseModel

from nickchat.config import Settings
from nickchat.errors import UploadRejected
from nickchat.models.message import MessageKind

logger = logging.getLogger(__name__)

KIND_DIRS = {
    MessageKind.IMAGE: "images",
    MessageKind.AUDIO: "audio",
    MessageKind.FILE: "files",
}
MAX_STEM_LENGTH = 50


class UploadedFile(BaseModel):
    url: str
    original_name: str
    size: int
    mime_type: str
    kind: MessageKind


def infer_kind(mime_type: str) -> MessageKind:
    major = mime_type.split("/", 1)[0]
    if major == "image":
        return MessageKind.IMAGE
    if major == "audio":
        return MessageKind.AUDIO
    return MessageKind.FILE


def storage_name(original_name: str) -> str:
    """Sanitized stem plus a unique suffix, keeping the original extension."""
    path = Path(original_name or "upload")
    stem = re.sub(r"[^A-Za-z0-9]", "_", path.stem)[:MAX_STEM_LENGTH] or "upload"
    suffix = f"{int(time.time() * 1000)}-{random.randint(0, 10**9)}"
    return f"{stem}-{suffix}{path.suffix}"


class UploadService:
    def __init__(self, settings: Settings):
        self._root = Path(settings.upload_dir)
        self._max_bytes = settings.upload_max_bytes
        self._allowed = set(settings.upload_allowed_types)
        for subdir in KIND_DIRS.values():
            (self._root / subdir).mkdir(parents=True, exist_ok=True)

    @property
    def root(self) -> Path:
        return self._root

    @property
    def max_bytes(self) -> int:
        return self._max_bytes

    def check(self, mime_type: str, size: int) -> None:
        if mime_type not in self._allowed:
            raise UploadRejected(f"File type not allowed: {mime_type}")
        if size > self._max_bytes:
            raise UploadRejected(f"File is too large (max {self._max_bytes // (1024 * 1024)}MB)")

    async def store(self, original_name: str, mime_type: str, data: bytes) -> UploadedFile:
        self.check(mime_type, len(data))
        kind = infer_kind(mime_type)
        subdir = KIND_DIRS[kind]
        filename = storage_name(original_name)
        await asyncio.to_thread((self._root / subdir / filename).write_bytes, data)
        logger.info(f"Stored upload {original_name!r} ({len(data)} bytes) as {subdir}/{filename}")
        return UploadedFile(
            url=f"/uploads/{subdir}/{filename}",
            original_name=original_name,
            size=len(data),
            mime_type=mime_type,
            kind=kind,
        )
