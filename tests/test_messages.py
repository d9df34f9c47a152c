import json

import pytest
from pydantic import ValidationError

from agnost.realtime.messages import (
    ConnectedMessage,
    Envelope,
    ErrorMessage,
    JoinMessage,
    LeaveMessage,
    MemberLeftMessage,
    PresenceMessage,
    message_to_json,
    parse_incoming_message,
)


def test_parse_connected():
    message = parse_incoming_message('{"type": "connected", "connection_id": "abc"}')

    assert isinstance(message, ConnectedMessage)
    assert message.connection_id == "abc"


def test_parse_envelope_from_dict():
    message = parse_incoming_message(
        {"type": "message", "channel": None, "event": "hello", "payload": [1, 2], "origin_id": "x"}
    )

    assert isinstance(message, Envelope)
    assert message.channel is None
    assert message.payload == [1, 2]


def test_parse_presence_frames():
    left = parse_incoming_message(b'{"type": "member-left", "channel": "room", "member": {"id": "m1"}}')
    presence = parse_incoming_message(
        '{"type": "presence", "channel": "room", "members": [{"id": "m1", "data": {"name": "a"}}]}'
    )

    assert isinstance(left, MemberLeftMessage)
    assert left.member.data is None
    assert isinstance(presence, PresenceMessage)
    assert presence.members[0].data == {"name": "a"}


def test_parse_error_frame():
    message = parse_incoming_message('{"type": "error", "code": "rate_limited"}')

    assert isinstance(message, ErrorMessage)
    assert message.message is None


@pytest.mark.parametrize(
    "raw",
    [
        "not json",
        '{"type": "unknown"}',
        '{"type": "connected", "connection_id": ""}',
        '{"type": "member-joined", "channel": "room"}',
    ],
)
def test_parse_rejects_malformed_frames(raw):
    with pytest.raises(ValidationError):
        parse_incoming_message(raw)


def test_join_frame_omits_missing_profile():
    assert json.loads(message_to_json(JoinMessage(channel="room"))) == {"type": "join", "channel": "room"}
    assert json.loads(message_to_json(JoinMessage(channel="room", profile={"n": 1}))) == {
        "type": "join",
        "channel": "room",
        "profile": {"n": 1},
    }


def test_outgoing_frames():
    assert json.loads(message_to_json(LeaveMessage(channel="room"))) == {"type": "leave", "channel": "room"}
    assert json.loads(message_to_json(Envelope(channel=None, event="e", payload=None, origin_id="c1"))) == {
        "type": "message",
        "channel": None,
        "event": "e",
        "payload": None,
        "origin_id": "c1",
    }
