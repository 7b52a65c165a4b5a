"""
Socket.IO event names: the wire contract between clients and the server.
"""


class C2SEvent:
    """Client → server events. All but mark_read expect an acknowledgement."""
    USER_JOIN = "user:join"
    MESSAGE_SEND = "message:send"
    MESSAGES_LOAD = "messages:load"
    MESSAGES_MARK_READ = "messages:mark_read"
    MESSAGES_UNREAD = "messages:unread"


class S2CEvent:
    """Server → client events."""
    USERS_LIST = "users:list"            # roster changed, sent to every session
    MESSAGE_RECEIVED = "message:received"  # full message, recipient only


class NotificationEvent:
    NEW_MESSAGE = "notification:new_message"
