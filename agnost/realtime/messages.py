from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, Field, TypeAdapter


class MemberPayload(BaseModel):
    id: str
    data: Any = None


# Incoming Messages (from server)


class ConnectedMessage(BaseModel):
    """Handshake completion, carries the id assigned to this connection."""

    type: Literal["connected"]
    connection_id: str = Field(..., min_length=1)


class Envelope(BaseModel):
    """A custom event sent to a channel, or to every client if channel is None.

    Used in both directions.
    """

    type: Literal["message"] = "message"
    channel: Optional[str] = None
    event: str
    payload: Any = None
    origin_id: Optional[str] = None


class MemberJoinedMessage(BaseModel):
    type: Literal["member-joined"]
    channel: str
    member: MemberPayload


class MemberLeftMessage(BaseModel):
    type: Literal["member-left"]
    channel: str
    member: MemberPayload


class MemberUpdatedMessage(BaseModel):
    type: Literal["member-updated"]
    channel: str
    member: MemberPayload


class PresenceMessage(BaseModel):
    """Full member list of a channel, sent by the server after a join."""

    type: Literal["presence"]
    channel: str
    members: list[MemberPayload] = Field(default_factory=list)


class ErrorMessage(BaseModel):
    type: Literal["error"]
    code: str
    message: Optional[str] = None


IncomingMessage = Annotated[
    Union[
        ConnectedMessage,
        Envelope,
        MemberJoinedMessage,
        MemberLeftMessage,
        MemberUpdatedMessage,
        PresenceMessage,
        ErrorMessage,
    ],
    Field(discriminator="type"),
]

IncomingMessageAdapter = TypeAdapter(IncomingMessage)

# Outgoing Messages (to server)


class JoinMessage(BaseModel):
    type: Literal["join"] = "join"
    channel: str
    profile: Any = None


class LeaveMessage(BaseModel):
    type: Literal["leave"] = "leave"
    channel: str


OutgoingMessage = Union[JoinMessage, LeaveMessage, Envelope]


def parse_incoming_message(data: Union[str, bytes, dict]) -> IncomingMessage:
    """
    Parse an incoming websocket frame.

    Args:
        data: Raw JSON text or an already decoded dictionary

    Returns:
        Parsed message instance

    Raises:
        ValidationError: If the frame is not valid JSON or has an unknown shape
    """
    if isinstance(data, dict):
        return IncomingMessageAdapter.validate_python(data)
    return IncomingMessageAdapter.validate_json(data)


def message_to_json(message: OutgoingMessage) -> str:
    if isinstance(message, JoinMessage):
        return message.model_dump_json(exclude_none=True)
    return message.model_dump_json()
