from .client import RealtimeManager, build_realtime_url
from .connection import ConnectionController, SessionProvider
from .messages import Envelope, MemberPayload
from .transport import Transport, WebSocketTransport
from .types import ConnectionState, EventData, ListenerFunction, MemberData

__all__ = [
    "RealtimeManager",
    "build_realtime_url",
    "ConnectionController",
    "SessionProvider",
    "Envelope",
    "MemberPayload",
    "Transport",
    "WebSocketTransport",
    "ConnectionState",
    "EventData",
    "ListenerFunction",
    "MemberData",
]
