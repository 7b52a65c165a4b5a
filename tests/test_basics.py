"""Basic unit tests for the nickchat package."""

import re

from nickchat import (
    ChatError,
    DeliveryRouter,
    IdentityInUse,
    InvalidIdentity,
    InvalidMessage,
    RecipientOffline,
    SessionCoordinator,
    StoreUnavailable,
    Unauthenticated,
    UploadRejected,
    C2SEvent,
    S2CEvent,
    NotificationEvent,
    __version__,
)


def test_version():
    assert __version__ == "0.1.0"


def test_public_exports():
    assert SessionCoordinator is not None
    assert DeliveryRouter is not None


def test_error_hierarchy():
    for cls in (InvalidIdentity, IdentityInUse, Unauthenticated, InvalidMessage,
                RecipientOffline, StoreUnavailable, UploadRejected):
        assert issubclass(cls, ChatError)


def test_error_attributes():
    err = ChatError(code="test_code", message="something broke")
    assert err.code == "test_code"
    assert str(err) == "something broke"
    assert err.details is None
    assert err.retryable is False

    offline = RecipientOffline("bob")
    assert offline.code == "recipient_offline"
    assert offline.details == {"to": "bob"}

    unavailable = StoreUnavailable("db down")
    assert unavailable.code == "store_unavailable"
    assert unavailable.retryable is True


def test_event_constants():
    assert C2SEvent.USER_JOIN == "user:join"
    assert C2SEvent.MESSAGE_SEND == "message:send"
    assert S2CEvent.USERS_LIST == "users:list"
    assert S2CEvent.MESSAGE_RECEIVED == "message:received"
    assert NotificationEvent.NEW_MESSAGE == "notification:new_message"


def test_store_drivers_declared():
    from importlib.metadata import requires

    declared = {re.split(r"[<>=\[ ;]", r, maxsplit=1)[0].lower() for r in requires("nickchat")}
    assert {"motor", "pymongo"} <= declared
