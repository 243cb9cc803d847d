from __future__ import annotations

import jwt
import pytest
from asgiref.sync import sync_to_async
from channels.layers import InMemoryChannelLayer
from django.conf import settings

from messaging.utils import broadcast_to_conversation, broadcast_to_group, send_to_user


async def established(communicator):
    frame = await communicator.receive_json_from()
    assert frame["type"] == "CONNECTION_ESTABLISHED"
    return frame


async def assert_rejected(communicator, message):
    assert await communicator.receive_json_from() == {"type": "CONNECTION_ERROR", "message": message}
    closing = await communicator.receive_output()
    assert closing["type"] == "websocket.close"
    assert closing["code"] == 4000
    assert closing["reason"] == message


@pytest.mark.asyncio
async def test_connection_established_snapshot(connect, hub):
    alice = await connect("/ws/conversations/C1", "alice")
    first = await established(alice)
    assert first == {
        "type": "CONNECTION_ESTABLISHED",
        "entityType": "conversations",
        "entityId": "C1",
        "userId": "alice",
        "onlineUsers": ["alice"],
        "typingUsers": [],
    }

    hub.presence.set_typing("alice", "conversations", "C1", hub.now())
    bob = await connect("/ws/conversations/C1", "bob")
    second = await established(bob)
    assert sorted(second["onlineUsers"]) == ["alice", "bob"]
    assert second["typingUsers"] == ["alice"]
    assert hub.connection_stats() == {"conversations": 1, "groups": 0, "users": 2}


@pytest.mark.asyncio
async def test_connect_chat_disconnect(connect, hub):
    alice = await connect("/ws/conversations/C1", "alice")
    await established(alice)
    bob = await connect("/ws/conversations/C1", "bob")
    await established(bob)

    await alice.send_json_to({"type": "CHAT_MESSAGE", "message": {"content": "hi"}})

    received = await bob.receive_json_from()
    assert received["type"] == "NEW_MESSAGE"
    assert received["message"]["content"] == "hi"
    assert received["message"]["senderId"] == "alice"
    assert received["message"]["entityType"] == "conversations"
    assert received["message"]["entityId"] == "C1"

    echoed = await alice.receive_json_from()
    assert echoed["type"] == "NEW_MESSAGE"
    delivered = await alice.receive_json_from()
    assert delivered == {"type": "MESSAGE_DELIVERED", "messageId": received["message"]["id"]}

    await alice.disconnect()

    assert await bob.receive_json_from() == {
        "type": "USER_STATUS_UPDATE",
        "userId": "alice",
        "isOnline": False,
        "onlineUsers": ["bob"],
    }

    await bob.disconnect()
    assert hub.connection_stats() == {"conversations": 0, "groups": 0, "users": 0}
    assert hub.presence.online == {}


@pytest.mark.asyncio
async def test_chat_message_keeps_caller_supplied_id(connect):
    alice = await connect("/ws/groups/G1", "alice")
    await established(alice)

    await alice.send_json_to({"type": "CHAT_MESSAGE", "message": {"content": "saved", "id": 314}})

    assert (await alice.receive_json_from())["message"]["id"] == "314"
    assert await alice.receive_json_from() == {"type": "MESSAGE_DELIVERED", "messageId": "314"}


@pytest.mark.asyncio
async def test_empty_chat_content_is_rejected(connect):
    alice = await connect("/ws/conversations/C1", "alice")
    await established(alice)
    bob = await connect("/ws/conversations/C1", "bob")
    await established(bob)

    await alice.send_json_to({"type": "CHAT_MESSAGE", "message": {}})

    assert await alice.receive_json_from() == {"type": "ERROR", "message": "Invalid message format"}
    assert await bob.receive_nothing()


@pytest.mark.asyncio
async def test_unknown_type_is_answered_and_connection_survives(connect):
    alice = await connect("/ws/conversations/C1", "alice")
    await established(alice)
    bob = await connect("/ws/conversations/C1", "bob")
    await established(bob)

    await alice.send_json_to({"type": "NOT_A_TYPE"})

    assert await alice.receive_json_from() == {"type": "ERROR", "message": "Unknown message type: NOT_A_TYPE"}
    assert await alice.receive_nothing()
    assert await bob.receive_nothing()

    await alice.send_json_to({"type": "PING", "timestamp": 42})
    assert await alice.receive_json_from() == {"type": "PONG", "timestamp": 42}


@pytest.mark.asyncio
async def test_malformed_json_gets_an_error_frame(connect):
    alice = await connect("/ws/conversations/C1", "alice")
    await established(alice)

    await alice.send_to(text_data="{not json")

    frame = await alice.receive_json_from()
    assert frame["type"] == "ERROR"
    assert frame["message"].startswith("Invalid JSON")


@pytest.mark.asyncio
async def test_typing_round_trip(connect, hub):
    alice = await connect("/ws/conversations/C1", "alice")
    await established(alice)
    bob = await connect("/ws/conversations/C1", "bob")
    await established(bob)

    await alice.send_json_to({"type": "TYPING_STATUS", "isTyping": True})
    assert await bob.receive_json_from() == {
        "type": "TYPING_UPDATE", "userId": "alice", "isTyping": True, "typingUsers": ["alice"],
    }

    await alice.send_json_to({"type": "TYPING_STATUS", "isTyping": False})
    assert await bob.receive_json_from() == {
        "type": "TYPING_UPDATE", "userId": "alice", "isTyping": False, "typingUsers": [],
    }
    assert hub.presence.typing == {}


@pytest.mark.asyncio
async def test_message_read_is_relayed_to_the_room(connect):
    alice = await connect("/ws/conversations/C1", "alice")
    await established(alice)
    bob = await connect("/ws/conversations/C1", "bob")
    await established(bob)

    await bob.send_json_to({"type": "MESSAGE_READ", "messageId": "m-1"})

    assert await alice.receive_json_from() == {"type": "MESSAGE_READ", "messageId": "m-1", "userId": "bob"}


@pytest.mark.asyncio
async def test_topic_change_always_goes_to_the_group_with_that_id(connect):
    member = await connect("/ws/groups/7", "alice")
    await established(member)
    chatter = await connect("/ws/conversations/7", "bob")
    await established(chatter)

    await chatter.send_json_to({"type": "GROUP_TOPIC_CHANGE", "topic": "Finals"})

    frame = await member.receive_json_from()
    assert frame["type"] == "TOPIC_CHANGED"
    assert frame["topic"]["topic"] == "Finals"
    assert frame["topic"]["setBy"] == "bob"
    assert frame["topic"]["setAt"].endswith("Z")
    assert await chatter.receive_nothing()


@pytest.mark.asyncio
async def test_ping_refreshes_presence_and_echoes_client_time(connect, hub, clock):
    alice = await connect("/ws/conversations/C1", "alice")
    await established(alice)
    bob = await connect("/ws/conversations/C1", "bob")
    await established(bob)
    connected_at = hub.presence.online["alice"].last_seen

    clock.advance(20_000)
    await alice.send_json_to({"type": "PING", "timestamp": "client-time"})

    assert await alice.receive_json_from() == {"type": "PONG", "timestamp": "client-time"}
    assert hub.presence.online["alice"].last_seen == connected_at + 20_000
    assert await bob.receive_nothing()

    clock.advance(20_000)
    await hub.reap()
    assert "alice" in hub.presence.online


@pytest.mark.asyncio
async def test_bad_token_is_rejected_without_registering(connect, hub):
    communicator = await connect("/ws/conversations/C1?token=validA-but-not-really")

    await assert_rejected(communicator, "Authentication failed")
    assert hub.connection_stats() == {"conversations": 0, "groups": 0, "users": 0}
    assert hub.presence.online == {}


@pytest.mark.asyncio
async def test_missing_token_is_rejected(connect):
    communicator = await connect("/ws/conversations/C1")
    await assert_rejected(communicator, "Authentication failed")


@pytest.mark.asyncio
async def test_token_in_subprotocol_header_wins(connect, token):
    communicator = await connect(f"/ws/conversations/C1?token={token('bob')}", subprotocols=[token("alice")])

    frame = await established(communicator)
    assert frame["userId"] == "alice"


@pytest.mark.asyncio
async def test_subprotocol_token_is_echoed_on_accept(hub, token):
    from channels.routing import URLRouter
    from channels.testing import WebsocketCommunicator

    from messaging.routing import websocket_urlpatterns

    alice_token = token("alice")
    communicator = WebsocketCommunicator(
        URLRouter(websocket_urlpatterns(hub)), "/ws/groups/G1", subprotocols=[alice_token],
    )
    connected, subprotocol = await communicator.connect()
    try:
        assert connected
        assert subprotocol == alice_token
    finally:
        await communicator.disconnect()


@pytest.mark.asyncio
@pytest.mark.parametrize("path", ["/ws/courses/1", "/ws/conversations", "/ws/conversations/C1/extra", "/ws"])
async def test_invalid_paths_are_rejected(connect, hub, path):
    communicator = await connect(path, "alice")

    await assert_rejected(communicator, "Invalid connection path")
    assert hub.connection_stats() == {"conversations": 0, "groups": 0, "users": 0}


@pytest.mark.asyncio
@pytest.mark.parametrize("entity_id", ["room:1", "user@example.com", "a" * 65])
async def test_any_non_empty_segment_is_an_entity_id(connect, hub, entity_id):
    alice = await connect(f"/ws/conversations/{entity_id}", "alice")
    frame = await established(alice)
    assert frame["entityId"] == entity_id
    bob = await connect(f"/ws/conversations/{entity_id}", "bob")
    await established(bob)

    await alice.send_json_to({"type": "CHAT_MESSAGE", "message": {"content": "hi"}})

    received = await bob.receive_json_from()
    assert received["message"]["entityId"] == entity_id
    assert hub.connection_stats() == {"conversations": 1, "groups": 0, "users": 2}


@pytest.mark.asyncio
async def test_unexpected_error_while_connecting_rejects_and_registers_nothing(connect, hub, monkeypatch):
    def unavailable(token):
        raise RuntimeError("token store unavailable")

    monkeypatch.setattr("messaging.consumers.verify_token", unavailable)

    communicator = await connect("/ws/conversations/C1", "alice")

    await assert_rejected(communicator, "token store unavailable")
    assert hub.connection_stats() == {"conversations": 0, "groups": 0, "users": 0}
    assert hub.presence.online == {}


@pytest.mark.asyncio
async def test_error_after_registering_undoes_the_registration(connect, hub, monkeypatch):
    def broken_snapshot(scope_type, scope_id):
        raise RuntimeError("snapshot failed")

    monkeypatch.setattr(hub, "snapshot", broken_snapshot)

    communicator = await connect("/ws/groups/G1", "alice")

    await assert_rejected(communicator, "snapshot failed")
    assert hub.connection_stats() == {"conversations": 0, "groups": 0, "users": 0}
    assert hub.presence.online == {}


@pytest.mark.asyncio
async def test_channel_layer_outage_does_not_block_live_chat(connect, monkeypatch):
    async def unreachable(self, group, channel):
        raise ConnectionError("redis unreachable")

    monkeypatch.setattr(InMemoryChannelLayer, "group_add", unreachable)

    alice = await connect("/ws/conversations/C1", "alice")
    await established(alice)
    bob = await connect("/ws/conversations/C1", "bob")
    await established(bob)

    await alice.send_json_to({"type": "CHAT_MESSAGE", "message": {"content": "still here"}})

    received = await bob.receive_json_from()
    assert received["type"] == "NEW_MESSAGE"
    assert received["message"]["content"] == "still here"


@pytest.mark.asyncio
async def test_groups_need_a_user_id(connect, hub):
    anonymous = jwt.encode({"role": "guest"}, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)

    communicator = await connect(f"/ws/groups/G1?token={anonymous}")
    await assert_rejected(communicator, "Invalid connection path")

    conversation = await connect(f"/ws/conversations/C1?token={anonymous}")
    frame = await established(conversation)
    assert frame["userId"] is None
    assert hub.connection_stats() == {"conversations": 1, "groups": 0, "users": 0}


@pytest.mark.asyncio
async def test_abrupt_disconnect_tears_down_like_a_close(connect, hub):
    alice = await connect("/ws/groups/G1", "alice")
    await established(alice)
    bob = await connect("/ws/groups/G1", "bob")
    await established(bob)

    await alice.disconnect(code=1006)

    frame = await bob.receive_json_from()
    assert frame["type"] == "USER_STATUS_UPDATE"
    assert frame["isOnline"] is False
    assert hub.registry.user_socket("alice") is None


@pytest.mark.asyncio
async def test_rest_side_relays_reach_open_sockets(connect):
    alice = await connect("/ws/conversations/C1", "alice")
    await established(alice)
    member = await connect("/ws/groups/G1", "bob")
    await established(member)

    await sync_to_async(broadcast_to_conversation)("C1", {"type": "NEW_MESSAGE", "message": {"id": "db-1"}})
    assert await alice.receive_json_from() == {"type": "NEW_MESSAGE", "message": {"id": "db-1"}}

    await sync_to_async(broadcast_to_group)("G1", {"type": "TOPIC_CHANGED", "topic": {"topic": "x"}})
    assert (await member.receive_json_from())["type"] == "TOPIC_CHANGED"

    await sync_to_async(send_to_user)("alice", {"type": "NOTICE"})
    assert await alice.receive_json_from() == {"type": "NOTICE"}
    assert await member.receive_nothing()


@pytest.mark.asyncio
async def test_shutdown_closes_live_sockets_with_1001(connect, hub):
    alice = await connect("/ws/conversations/C1", "alice")
    await established(alice)

    await hub.shutdown()

    closing = await alice.receive_output()
    assert closing == {"type": "websocket.close", "code": 1001, "reason": "Server shutting down"}
