"""
nickchat: real-time one-to-one chat server.

Nickname presence and message delivery over Socket.IO.
"""

__version__ = "0.1.0"

from nickchat.coordinator import SessionCoordinator, JoinResult
from nickchat.router import DeliveryRouter
from nickchat.presence import PresenceTable
from nickchat.errors import (
    ChatError,
    InvalidIdentity,
    IdentityInUse,
    Unauthenticated,
    InvalidMessage,
    RecipientOffline,
    StoreUnavailable,
    UploadRejected,
)
from nickchat.models.events import C2SEvent, S2CEvent, NotificationEvent

__all__ = [
    "SessionCoordinator",
    "JoinResult",
    "DeliveryRouter",
    "PresenceTable",
    "ChatError",
    "InvalidIdentity",
    "IdentityInUse",
    "Unauthenticated",
    "InvalidMessage",
    "RecipientOffline",
    "StoreUnavailable",
    "UploadRejected",
    "C2SEvent",
    "S2CEvent",
    "NotificationEvent",
]
