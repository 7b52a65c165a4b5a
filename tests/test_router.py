"""Delivery router: persistence, targeted push, history and read state."""

import asyncio
import random

import pytest
import pytest_asyncio

from nickchat.errors import InvalidIdentity, InvalidMessage, RecipientOffline, StoreUnavailable, Unauthenticated
from nickchat.models.events import NotificationEvent, S2CEvent
from nickchat.models.message import MessageKind
from nickchat.router import DeliveryRouter
from nickchat.stores.memory import MemoryMessageStore

IMAGE = {"url": "/uploads/images/cat-1-2.png", "name": "cat.png", "size": 2048, "mime_type": "image/png"}


@pytest_asyncio.fixture
async def joined(coordinator, gateway):
    await coordinator.join("alice", "sa")
    await coordinator.join("bob", "sb")
    gateway.clear()


class TestSend:
    @pytest.mark.asyncio
    async def test_send_then_history_round_trip(self, router, joined):
        sent = await router.send("sa", {"to": "bob", "content": "hi"})
        assert sent.id
        assert sent.sender == "alice"
        assert sent.kind == MessageKind.TEXT

        history = await router.load_history("sb", "alice")
        assert [(m.sender, m.content) for m in history] == [("alice", "hi")]

    @pytest.mark.asyncio
    async def test_push_goes_to_recipient_only(self, router, gateway, joined):
        sent = await router.send("sa", {"to": "bob", "kind": "text", "content": "hello bob"})

        delivered = gateway.sent(S2CEvent.MESSAGE_RECEIVED)
        assert len(delivered) == 1
        payload, to = delivered[0]
        assert to == "sb"
        assert payload["from"] == "alice"
        assert payload["id"] == sent.id
        assert payload["content"] == "hello bob"

        notes = gateway.sent(NotificationEvent.NEW_MESSAGE)
        assert notes == [({
            "from": "alice",
            "preview": "hello bob",
            "kind": "text",
            "timestamp": payload["created_at"],
        }, "sb")]
        assert gateway.sent(S2CEvent.USERS_LIST) == []

    @pytest.mark.asyncio
    async def test_notification_preview_truncates_long_text(self, router, gateway, joined):
        await router.send("sa", {"to": "bob", "content": "x" * 40})
        (note, _), = gateway.sent(NotificationEvent.NEW_MESSAGE)
        assert note["preview"] == "x" * 30 + "..."

    @pytest.mark.asyncio
    async def test_unauthenticated_send_rejected(self, router, messages, joined):
        with pytest.raises(Unauthenticated):
            await router.send("stranger", {"to": "bob", "content": "hi"})
        assert await messages.recent_between("alice", "bob", 10) == []

    @pytest.mark.asyncio
    async def test_offline_recipient_rejected_and_not_persisted(self, router, gateway, messages, joined):
        with pytest.raises(RecipientOffline):
            await router.send("sa", {"to": "carol", "content": "hi"})
        assert await messages.recent_between("alice", "carol", 10) == []
        assert gateway.events == []

    @pytest.mark.asyncio
    async def test_image_without_file_metadata_rejected(self, router, gateway, messages, joined):
        with pytest.raises(InvalidMessage):
            await router.send("sa", {"to": "bob", "kind": "image"})
        assert await messages.recent_between("alice", "bob", 10) == []
        assert gateway.events == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("payload", [
        {"to": "bob", "content": ""},
        {"to": "bob", "content": "   "},
        {"to": "bob", "content": "y" * 1001},
        {"to": "bob", "kind": "video", "content": "hi"},
        {"to": "bob", "kind": "location"},
        "not a dict",
    ])
    async def test_malformed_payloads_rejected(self, router, joined, payload):
        with pytest.raises(InvalidMessage):
            await router.send("sa", payload)

    @pytest.mark.asyncio
    async def test_image_message_uses_file_name_as_content(self, router, gateway, joined):
        sent = await router.send("sa", {"to": "bob", "kind": "image", "file": IMAGE})
        assert sent.content == "cat.png"
        assert sent.file.url == IMAGE["url"]
        (note, _), = gateway.sent(NotificationEvent.NEW_MESSAGE)
        assert note["preview"] == "📷 Image"

    @pytest.mark.asyncio
    async def test_location_message_defaults_label(self, router, joined):
        sent = await router.send("sa", {"to": "bob", "kind": "location", "location": {"lat": 40.4, "lon": -3.7}})
        assert sent.content == "Shared location"
        with_address = await router.send("sa", {
            "to": "bob", "kind": "location",
            "location": {"lat": 40.4, "lon": -3.7, "address": "Puerta del Sol"},
        })
        assert with_address.content == "Puerta del Sol"

    @pytest.mark.asyncio
    async def test_push_failure_still_returns_persisted_message(self, router, gateway, messages, joined):
        gateway.fail_for.add("sb")
        sent = await router.send("sa", {"to": "bob", "content": "are you there?"})
        assert sent.id
        stored = await messages.recent_between("alice", "bob", 10)
        assert [m.id for m in stored] == [sent.id]

    @pytest.mark.asyncio
    async def test_persistence_failure_is_fatal_and_nothing_pushed(self, coordinator, gateway, joined):
        class BrokenMessageStore(MemoryMessageStore):
            async def save(self, message):
                raise RuntimeError("disk full")

        router = DeliveryRouter(coordinator, BrokenMessageStore(), gateway)
        with pytest.raises(StoreUnavailable):
            await router.send("sa", {"to": "bob", "content": "hi"})
        assert gateway.events == []

    @pytest.mark.asyncio
    async def test_recipient_leaving_before_push_still_persists(self, coordinator, gateway, joined):
        class LeaveDuringSave(MemoryMessageStore):
            async def save(self, message):
                await coordinator.leave("sb")
                return await super().save(message)

        store = LeaveDuringSave()
        router = DeliveryRouter(coordinator, store, gateway)
        sent = await router.send("sa", {"to": "bob", "content": "bye"})
        assert sent.id
        assert gateway.sent(S2CEvent.MESSAGE_RECEIVED) == []
        assert len(await store.recent_between("alice", "bob", 10)) == 1

    @pytest.mark.asyncio
    async def test_same_pair_sends_keep_call_order(self, coordinator, gateway, joined):
        class JitteryStore(MemoryMessageStore):
            async def save(self, message):
                await asyncio.sleep(random.uniform(0, 0.01))
                return await super().save(message)

        store = JitteryStore()
        router = DeliveryRouter(coordinator, store, gateway)
        texts = [f"msg {i}" for i in range(10)]
        await asyncio.gather(*(router.send("sa", {"to": "bob", "content": t}) for t in texts))

        pushed = [payload["content"] for payload, _ in gateway.sent(S2CEvent.MESSAGE_RECEIVED)]
        assert pushed == texts
        history = await router.load_history("sa", "bob")
        assert [m.content for m in history] == texts


class TestHistory:
    @pytest.mark.asyncio
    async def test_history_is_oldest_first_and_limited(self, router, joined):
        for i in range(5):
            await router.send("sa" if i % 2 == 0 else "sb", {"to": "bob" if i % 2 == 0 else "alice", "content": f"m{i}"})
        history = await router.load_history("sa", "bob", limit=3)
        assert [m.content for m in history] == ["m2", "m3", "m4"]

    @pytest.mark.asyncio
    async def test_history_requires_join(self, router):
        with pytest.raises(Unauthenticated):
            await router.load_history("nobody", "alice")

    @pytest.mark.asyncio
    async def test_history_rejects_bad_limit_and_counterpart(self, router, joined):
        with pytest.raises(InvalidMessage):
            await router.load_history("sa", "bob", limit=0)
        with pytest.raises(InvalidIdentity):
            await router.load_history("sa", "x")

    @pytest.mark.asyncio
    async def test_history_limit_is_clamped(self, coordinator, messages, gateway, joined):
        router = DeliveryRouter(coordinator, messages, gateway, history_max_limit=2)
        for i in range(4):
            await router.send("sa", {"to": "bob", "content": f"m{i}"})
        assert len(await router.load_history("sa", "bob", limit=100)) == 2


class TestReadState:
    @pytest.mark.asyncio
    async def test_mark_read_is_idempotent(self, router, joined):
        await router.send("sa", {"to": "bob", "content": "one"})
        await router.send("sa", {"to": "bob", "content": "two"})
        assert await router.mark_read("sb", "alice") == 2
        assert await router.mark_read("sb", "alice") == 0

    @pytest.mark.asyncio
    async def test_mark_read_only_touches_that_direction(self, router, joined):
        await router.send("sa", {"to": "bob", "content": "to bob"})
        await router.send("sb", {"to": "alice", "content": "to alice"})
        assert await router.mark_read("sb", "alice") == 1
        assert await router.unread_count("sa") == 1
        assert await router.unread_count("sb") == 0

    @pytest.mark.asyncio
    async def test_mark_read_unauthenticated_is_silent(self, router):
        assert await router.mark_read("nobody", "alice") == 0

    @pytest.mark.asyncio
    async def test_mark_read_swallows_store_failure(self, coordinator, gateway, joined):
        class BrokenMarkRead(MemoryMessageStore):
            async def mark_read(self, sender, recipient):
                raise RuntimeError("timeout")

        router = DeliveryRouter(coordinator, BrokenMarkRead(), gateway)
        assert await router.mark_read("sb", "alice") == 0

    @pytest.mark.asyncio
    async def test_unread_count_requires_join(self, router):
        with pytest.raises(Unauthenticated):
            await router.unread_count("nobody")
