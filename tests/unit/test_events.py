"""
Tests for parsing inbound frames and serializing outbound events.
"""

import json

import pytest

from viralboost.realtime.events import (
    DirectMessage,
    DirectMessageCommand,
    DirectMessageEvent,
    JoinCommand,
    OnlineUsersEvent,
    PresenceProfile,
    TypingCommand,
    VoteUpdateEvent,
    parse_command,
)


def test_join_frame_parses_camel_case_fields():
    command = parse_command(json.dumps({"type": "join", "userId": "u1", "name": "Alice", "plan": "pro"}))

    assert isinstance(command, JoinCommand)
    assert command.user_id == "u1"
    assert command.plan == "pro"
    assert command.avatar is None


def test_numeric_user_id_is_coerced_to_string():
    command = parse_command(json.dumps({"type": "join", "userId": 42}))

    assert command.user_id == "42"


def test_unknown_fields_are_ignored():
    command = parse_command(json.dumps({"type": "typing", "isTyping": True, "extra": 1}))

    assert isinstance(command, TypingCommand)
    assert command.is_typing is True


def test_dm_without_recipient_still_parses():
    command = parse_command(json.dumps({"type": "dm", "text": "hi"}))

    assert isinstance(command, DirectMessageCommand)
    assert command.to_id is None


@pytest.mark.parametrize(
    "raw",
    [
        b"",
        "{",
        "null",
        json.dumps({"text": "no type"}),
        json.dumps({"type": "explode"}),
        json.dumps({"type": "dm_typing", "isTyping": True}),
    ],
)
def test_invalid_frames_parse_to_none(raw):
    assert parse_command(raw) is None


def test_outbound_events_use_camel_case_keys():
    message = DirectMessage(
        id="dm_1",
        from_id="alice",
        from_name="Alice",
        from_plan="free",
        to_id="bob",
        text="hi",
        timestamp="2024-06-10T12:00:00.000Z",
    )

    payload = json.loads(DirectMessageEvent(message=message).model_dump_json(by_alias=True))

    assert payload == {
        "type": "dm",
        "message": {
            "id": "dm_1",
            "fromId": "alice",
            "fromName": "Alice",
            "fromPlan": "free",
            "toId": "bob",
            "text": "hi",
            "timestamp": "2024-06-10T12:00:00.000Z",
            "read": False,
        },
    }


def test_state_change_event_shape():
    assert VoteUpdateEvent(project_id="p1", votes=3).to_wire() == {
        "type": "vote_update",
        "projectId": "p1",
        "votes": 3,
    }


def test_online_users_event_lists_profiles():
    event = OnlineUsersEvent(users=[PresenceProfile(id="u1", name="A", plan="free", avatar="👤")])

    assert event.to_wire()["users"] == [{"id": "u1", "name": "A", "plan": "free", "avatar": "👤"}]
