"""
Acknowledgement envelopes returned to Socket.IO callbacks.

Success:  {"success": true, ...data}
Failure:  {"success": false, "error": <reason>, "code": <code>, "retryable": <bool>}
"""

from typing import Any

from pydantic import BaseModel

from nickchat.errors import ChatError


class ErrorReply(BaseModel):
    success: bool = False
    error: str
    code: str
    retryable: bool = False


def ok_reply(**data: Any) -> dict[str, Any]:
    return {"success": True, **data}


def error_reply(err: ChatError) -> dict[str, Any]:
    return ErrorReply(error=err.message, code=err.code, retryable=err.retryable).model_dump()


def internal_error_reply(message: str = "Internal server error") -> dict[str, Any]:
    return ErrorReply(error=message, code="internal_error", retryable=True).model_dump()
