"""
Identity record: one per nickname, owned by the identity store.
"""

import re
from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import BaseModel, Field

from nickchat.errors import InvalidIdentity

NICKNAME_MIN_LENGTH = 3
NICKNAME_MAX_LENGTH = 20
NICKNAME_PATTERN = re.compile(r"^[A-Za-z0-9_]+$")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Identity(BaseModel):
    nickname: str
    session_token: Optional[str] = None
    online: bool = False
    last_seen: datetime = Field(default_factory=utcnow)


def validate_nickname(value: Any) -> str:
    """Return the stripped nickname or raise InvalidIdentity."""
    if not value or not isinstance(value, str):
        raise InvalidIdentity("Nickname is required")
    nickname = value.strip()
    if len(nickname) < NICKNAME_MIN_LENGTH:
        raise InvalidIdentity(f"Nickname must be at least {NICKNAME_MIN_LENGTH} characters")
    if len(nickname) > NICKNAME_MAX_LENGTH:
        raise InvalidIdentity(f"Nickname cannot be longer than {NICKNAME_MAX_LENGTH} characters")
    if not NICKNAME_PATTERN.match(nickname):
        raise InvalidIdentity("Nickname may only contain letters, digits and underscores")
    return nickname
