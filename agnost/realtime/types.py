from dataclasses import dataclass
from typing import Any, Callable, Literal, Optional


ConnectionState = Literal["disconnected", "connecting", "connected", "reconnecting", "closed"]

PresenceKind = Literal["join", "leave", "update"]

MEMBER_JOINED = "member-joined"
MEMBER_LEFT = "member-left"
MEMBER_UPDATED = "member-updated"

PRESENCE_EVENTS: dict[PresenceKind, str] = {
    "join": MEMBER_JOINED,
    "leave": MEMBER_LEFT,
    "update": MEMBER_UPDATED,
}

RESERVED_EVENTS = frozenset(PRESENCE_EVENTS.values())


@dataclass(frozen=True)
class MemberData:
    """A channel member and the profile data it published."""

    id: str
    """Connection id of the member."""
    data: Any = None


@dataclass(frozen=True)
class EventData:
    """Payload handed to realtime listeners."""

    channel: Optional[str]
    """Channel the message was sent to, or None for app-wide broadcasts."""
    message: Any


ListenerFunction = Callable[[EventData], None]
AnyListenerFunction = Callable[[str, EventData], None]
