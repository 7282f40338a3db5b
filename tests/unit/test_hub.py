"""
Tests for the messaging hub: joins, public chat, direct messages, typing and
presence fan-out.
"""

import asyncio
import json
from unittest.mock import AsyncMock, patch

import pytest

from viralboost.errors import StoreError
from viralboost.realtime.connection import ConnectionState
from viralboost.realtime.hub import MessagingHub, dm_thread_key
from viralboost.store.base import PUBLIC_CHANNEL


def _frame(**fields) -> str:
    return json.dumps(fields)


# ---------------------------------------------------------------------------
# join
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_join_sends_snapshots_then_presence(join):
    _, transport = await join("u1", name="Alice")

    assert transport.types() == [
        "history",
        "projects_history",
        "posts_history",
        "online_users",
        "user_joined",
    ]
    online = transport.of_type("online_users")[0]["users"]
    assert online == [{"id": "u1", "name": "Alice", "plan": "free", "avatar": "👤"}]
    assert transport.of_type("user_joined")[0]["user"]["id"] == "u1"


@pytest.mark.asyncio
async def test_join_defaults_profile(join, hub):
    await join("u1")

    profile = hub.presence.profile("u1")
    assert (profile.name, profile.plan, profile.avatar) == ("Anonyme", "free", "👤")


@pytest.mark.asyncio
async def test_second_join_rebinds_identity(join, hub):
    watcher, watcher_transport = await join("u9")
    conn, _ = await join("u1")
    watcher_transport.clear()

    await hub.handle_frame(conn, _frame(type="join", userId="u2"))

    assert conn.user_id == "u2"
    assert conn.state is ConnectionState.JOINED
    assert not hub.presence.is_online("u1")
    assert hub.presence.is_online("u2")
    assert watcher_transport.of_type("user_left") == [{"type": "user_left", "userId": "u1"}]


@pytest.mark.asyncio
async def test_join_skips_failing_welcome_snapshot(join, store):
    with patch.object(store.projects, "list", AsyncMock(side_effect=StoreError("down"))):
        _, transport = await join("u1")

    assert "projects_history" not in transport.types()
    assert "posts_history" in transport.types()
    assert "user_joined" in transport.types()


# ---------------------------------------------------------------------------
# public channel
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_hello_reaches_every_connection_including_senders_other_tab(join, hub):
    tab_a, transport_a = await join("u1", name="Alice")
    _, transport_b = await join("u1", name="Alice")
    _, transport_c = await join("u2", name="Bob")
    for t in (transport_a, transport_b, transport_c):
        t.clear()

    await hub.handle_frame(tab_a, _frame(type="message", text="hello"))

    for t in (transport_a, transport_b, transport_c):
        [event] = t.of_type("message")
        assert event["message"]["text"] == "hello"
        assert event["message"]["senderId"] == "u1"
        assert event["message"]["senderName"] == "Alice"


@pytest.mark.asyncio
async def test_message_is_truncated_and_persisted(join, hub, store):
    conn, transport = await join("u1")

    await hub.handle_frame(conn, _frame(type="message", text="x" * 600))

    [event] = transport.of_type("message")
    assert len(event["message"]["text"]) == 500
    [stored] = await store.chat_messages.items(PUBLIC_CHANNEL)
    assert stored["id"] == event["message"]["id"]
    assert stored["timestamp"].endswith("Z")


@pytest.mark.asyncio
async def test_blank_message_is_dropped(join, hub, store):
    conn, transport = await join("u1")
    transport.clear()

    await hub.handle_frame(conn, _frame(type="message", text="   "))

    assert transport.sent == []
    assert await store.chat_messages.items(PUBLIC_CHANNEL) == []


@pytest.mark.asyncio
async def test_replay_is_bounded_to_last_fifty(join, hub, store):
    sender, _ = await join("u1")
    for i in range(500):
        await hub.handle_frame(sender, _frame(type="message", text=f"m{i}"))

    _, newcomer = await join("u2")

    [history] = newcomer.of_type("history")
    texts = [m["text"] for m in history["messages"]]
    assert texts == [f"m{i}" for i in range(450, 500)]
    assert hub.public_buffer_size == 200
    assert len(await store.chat_messages.items(PUBLIC_CHANNEL)) == 500


@pytest.mark.asyncio
async def test_start_reloads_public_buffer(store, make_transport):
    for i in range(250):
        await store.chat_messages.append(
            PUBLIC_CHANNEL,
            {
                "id": f"msg_{i}",
                "senderId": "u1",
                "senderName": "Alice",
                "senderPlan": "free",
                "text": f"m{i}",
                "timestamp": "2024-06-10T12:00:00.000Z",
                "avatar": "👤",
            },
        )
    await store.chat_messages.append(PUBLIC_CHANNEL, {"garbage": True})

    hub = MessagingHub(store)
    await hub.start()

    assert hub.public_buffer_size == 199
    assert hub.recent_messages()[-1].text == "m249"


@pytest.mark.asyncio
async def test_concurrent_messages_arrive_in_same_order_everywhere(join, hub):
    a, transport_a = await join("u1")
    b, transport_b = await join("u2")
    _, transport_c = await join("u3")

    await asyncio.gather(
        *(hub.handle_frame(a if i % 2 else b, _frame(type="message", text=f"m{i}")) for i in range(40))
    )

    orders = [[e["message"]["id"] for e in t.of_type("message")] for t in (transport_a, transport_b, transport_c)]
    assert len(orders[0]) == 40
    assert orders[0] == orders[1] == orders[2]
    assert [m.id for m in hub.recent_messages()][-40:] == orders[0]


# ---------------------------------------------------------------------------
# persistence failures
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_persistence_failure_still_broadcasts(join, hub, store):
    conn, transport = await join("u1")

    with patch.object(store.chat_messages, "append", AsyncMock(side_effect=StoreError("disk full"))):
        await hub.handle_frame(conn, _frame(type="message", text="still here"))

    assert [e["message"]["text"] for e in transport.of_type("message")] == ["still here"]
    assert hub.public_buffer_size == 1


@pytest.mark.asyncio
async def test_strict_persistence_drops_unrecorded_message(store, make_transport):
    hub = MessagingHub(store, strict_persistence=True)
    transport = make_transport()
    conn = hub.connect(transport)
    await hub.handle_frame(conn, _frame(type="join", userId="u1"))

    with patch.object(store.chat_messages, "append", AsyncMock(side_effect=StoreError("disk full"))):
        await hub.handle_frame(conn, _frame(type="message", text="lost"))

    assert transport.of_type("message") == []
    assert hub.public_buffer_size == 0


# ---------------------------------------------------------------------------
# anonymous and malformed input
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_anonymous_connection_cannot_post(hub, store, join, make_transport):
    _, watcher = await join("u1")
    watcher.clear()
    anon_transport = make_transport()
    anon = hub.connect(anon_transport)

    await hub.handle_frame(anon, _frame(type="message", text="spam"))
    await hub.handle_frame(anon, _frame(type="dm", toId="u1", text="spam"))
    await hub.handle_frame(anon, _frame(type="typing", isTyping=True))

    assert watcher.sent == []
    assert anon_transport.sent == []
    assert await store.chat_messages.items(PUBLIC_CHANNEL) == []
    assert anon.state is ConnectionState.ANONYMOUS


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "raw",
    [
        "not json",
        "[1, 2, 3]",
        _frame(type="bogus"),
        _frame(type="join"),
        _frame(type="join", userId=""),
        _frame(type="get_dm_history"),
    ],
)
async def test_malformed_frames_are_dropped(hub, make_transport, raw):
    transport = make_transport()
    conn = hub.connect(transport)

    await hub.handle_frame(conn, raw)

    assert transport.sent == []
    assert conn.state is ConnectionState.ANONYMOUS


# ---------------------------------------------------------------------------
# direct messages
# ---------------------------------------------------------------------------


def test_dm_thread_key_is_order_independent():
    assert dm_thread_key("bob", "alice") == dm_thread_key("alice", "bob") == "alice:bob"


@pytest.mark.asyncio
async def test_dm_delivered_to_recipient_and_echoed_to_sender(join, hub):
    alice, alice_tab1 = await join("alice", name="Alice")
    _, alice_tab2 = await join("alice", name="Alice")
    _, bob = await join("bob")
    _, carol = await join("carol")
    for t in (alice_tab1, alice_tab2, bob, carol):
        t.clear()

    await hub.handle_frame(alice, _frame(type="dm", toId="bob", text="psst"))

    [received] = bob.of_type("dm")
    assert received["message"]["fromId"] == "alice"
    assert received["message"]["fromName"] == "Alice"
    assert received["message"]["toId"] == "bob"
    assert received["message"]["read"] is False
    assert len(alice_tab1.of_type("dm_sent")) == 1
    assert len(alice_tab2.of_type("dm_sent")) == 1
    assert carol.sent == []


@pytest.mark.asyncio
async def test_dm_history_is_identical_for_both_participants(join, hub):
    alice, alice_t = await join("alice")
    bob, bob_t = await join("bob")

    await hub.handle_frame(alice, _frame(type="dm", toId="bob", text="a"))
    await hub.handle_frame(bob, _frame(type="dm", toId="alice", text="b"))
    await hub.handle_frame(alice, _frame(type="dm", toId="bob", text="c"))

    await hub.handle_frame(alice, _frame(type="get_dm_history", withId="bob"))
    await hub.handle_frame(bob, _frame(type="get_dm_history", withId="alice"))

    [alice_history] = alice_t.of_type("dm_history")
    [bob_history] = bob_t.of_type("dm_history")
    assert alice_history["withId"] == "bob"
    assert [m["text"] for m in alice_history["messages"]] == ["a", "b", "c"]
    assert alice_history["messages"] == bob_history["messages"]


@pytest.mark.asyncio
async def test_self_dm_is_dropped(join, hub, store):
    alice, transport = await join("alice")
    transport.clear()

    await hub.handle_frame(alice, _frame(type="dm", toId="alice", text="me"))
    await hub.handle_frame(alice, _frame(type="dm", text="nobody"))

    assert transport.sent == []
    assert await store.dm_threads.items("alice:alice") == []


@pytest.mark.asyncio
async def test_dm_to_offline_user_is_persisted(join, hub, store):
    alice, _ = await join("alice")

    await hub.handle_frame(alice, _frame(type="dm", toId="bob", text="see you"))

    stored = await store.dm_threads.items(dm_thread_key("alice", "bob"))
    assert [m["text"] for m in stored] == ["see you"]

    bob, bob_t = await join("bob")
    await hub.handle_frame(bob, _frame(type="get_dm_history", withId="alice"))
    [history] = bob_t.of_type("dm_history")
    assert [m["text"] for m in history["messages"]] == ["see you"]


@pytest.mark.asyncio
async def test_dm_thread_loads_from_store_after_restart(store, join, hub, make_transport):
    alice, _ = await join("alice")
    await hub.handle_frame(alice, _frame(type="dm", toId="bob", text="before restart"))

    restarted = MessagingHub(store)
    await restarted.start()
    transport = make_transport()
    bob = restarted.connect(transport)
    await restarted.handle_frame(bob, _frame(type="join", userId="bob"))
    await restarted.handle_frame(bob, _frame(type="get_dm_history", withId="alice"))

    [history] = transport.of_type("dm_history")
    assert [m["text"] for m in history["messages"]] == ["before restart"]
    assert history["messages"][0]["fromId"] == "alice"


# ---------------------------------------------------------------------------
# typing
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_typing_is_broadcast_and_not_persisted(join, hub, store):
    alice, _ = await join("alice", name="Alice")
    _, bob = await join("bob")
    bob.clear()

    await hub.handle_frame(alice, _frame(type="typing", name="Alice", isTyping=True))

    assert bob.of_type("typing") == [
        {"type": "typing", "userId": "alice", "name": "Alice", "isTyping": True}
    ]
    assert await store.chat_messages.items(PUBLIC_CHANNEL) == []


@pytest.mark.asyncio
async def test_dm_typing_reaches_only_recipient(join, hub):
    alice, _ = await join("alice")
    _, bob = await join("bob")
    _, carol = await join("carol")
    bob.clear()
    carol.clear()

    await hub.handle_frame(alice, _frame(type="dm_typing", toId="bob", name="Alice", isTyping=True))

    assert len(bob.of_type("dm_typing")) == 1
    assert carol.sent == []


# ---------------------------------------------------------------------------
# disconnects
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_user_left_only_after_last_connection_closes(join, hub):
    tab1, _ = await join("alice")
    tab2, _ = await join("alice")
    _, bob = await join("bob")
    bob.clear()

    await hub.disconnect(tab1)
    assert bob.sent == []
    assert hub.presence.is_online("alice")

    await hub.disconnect(tab2)
    assert bob.types() == ["user_left", "online_users"]
    assert bob.sent[0]["userId"] == "alice"
    assert [u["id"] for u in bob.sent[1]["users"]] == ["bob"]


@pytest.mark.asyncio
async def test_dead_connection_is_reaped_after_failed_send(join, hub):
    alice, alice_t = await join("alice")
    _, bob_t = await join("bob")
    alice_t.clear()
    bob_t.fail = True

    await hub.handle_frame(alice, _frame(type="message", text="anyone?"))

    assert not hub.presence.is_online("bob")
    assert alice_t.types() == ["message", "user_left", "online_users"]
    assert alice_t.sent[1]["userId"] == "bob"


@pytest.mark.asyncio
async def test_closed_connection_ignores_frames(join, hub, store):
    alice, _ = await join("alice")
    await hub.disconnect(alice)

    await hub.handle_frame(alice, _frame(type="message", text="ghost"))

    assert alice.state is ConnectionState.CLOSED
    assert await store.chat_messages.items(PUBLIC_CHANNEL) == []
