"""
nickchat error types: one class per reply error code.
"""

from typing import Any, Optional


class ChatError(Exception):
    retryable = False

    def __init__(self, code: str, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.code = code
        self.message = message
        self.details = details


class InvalidIdentity(ChatError):
    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__("invalid_identity", message, details)


class IdentityInUse(ChatError):
    def __init__(self, message: str = "This nickname is already in use. Please choose another."):
        super().__init__("identity_in_use", message)


class Unauthenticated(ChatError):
    def __init__(self, message: str = "You must join the chat first"):
        super().__init__("unauthenticated", message)


class InvalidMessage(ChatError):
    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__("invalid_message", message, details)


class RecipientOffline(ChatError):
    def __init__(self, recipient: str):
        super().__init__("recipient_offline", "The recipient user is not connected", {"to": recipient})


class StoreUnavailable(ChatError):
    retryable = True

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__("store_unavailable", message, details)


class UploadRejected(ChatError):
    def __init__(self, message: str):
        super().__init__("upload_rejected", message)
