import functools
import logging
from typing import Any, Awaitable, Callable, Optional, TypeVar
from urllib.parse import urlencode, urlsplit, urlunsplit

from .buffer import OutboundBuffer
from .channels import ChannelRegistry
from .connection import ConnectionConfiguration, ConnectionController, SessionProvider
from .listeners import ListenerRegistry
from .messages import (
    Envelope,
    ErrorMessage,
    IncomingMessage,
    JoinMessage,
    LeaveMessage,
    MemberJoinedMessage,
    MemberLeftMessage,
    MemberUpdatedMessage,
    PresenceMessage,
)
from .transport import Transport
from .types import (
    MEMBER_UPDATED,
    RESERVED_EVENTS,
    AnyListenerFunction,
    ConnectionState,
    EventData,
    ListenerFunction,
    MemberData,
)
from ..errors import AgnostError, InvalidValueError, NotConnectedError, ServerError
from ..types import APIResult, RealtimeOptions

logger = logging.getLogger(__name__)

REALTIME_PATH = "/realtime"

F = TypeVar("F", bound=Callable[..., Awaitable[Any]])


def _as_result(method: F) -> F:
    """Return the outcome of a realtime call as an APIResult instead of raising."""

    @functools.wraps(method)
    async def wrapper(self: "RealtimeManager", *args: Any, **kwargs: Any) -> APIResult:
        try:
            data = await method(self, *args, **kwargs)
        except AgnostError as error:
            logger.debug(f"{method.__name__} failed: {error}")
            return APIResult(errors=error.to_api_error())
        return APIResult(data=data)

    return wrapper  # type: ignore[return-value]


def build_realtime_url(base_url: str, echo_messages: bool) -> str:
    parts = urlsplit(base_url)
    scheme = "wss" if parts.scheme == "https" else "ws"
    path = parts.path.rstrip("/") + REALTIME_PATH
    query = urlencode({"echo": "true" if echo_messages else "false"})
    return urlunsplit((scheme, parts.netloc, path, query, ""))


def _check_name(kind: str, value: Any) -> str:
    if not isinstance(value, str) or not value.strip():
        raise InvalidValueError(f"{kind} name needs to be a non-empty string")
    return value


class RealtimeManager:
    """
    Publish/subscribe messaging over a single websocket connection.

    Channel membership and unsent messages survive disconnects: after each
    reconnection the client re-joins its channels and then sends whatever
    was buffered, in order.

    Example:
        ```python
        realtime = client.realtime
        realtime.on("chat", lambda event: print(event.channel, event.message))
        await realtime.connect()
        await realtime.join("lobby")
        await realtime.send("lobby", "chat", {"text": "hi"})
        ```
    """

    def __init__(
        self,
        base_url: str,
        api_key: str,
        options: Optional[RealtimeOptions] = None,
        session_provider: Optional[SessionProvider] = None,
        transport_factory: Optional[Callable[[], Transport]] = None,
    ) -> None:
        self._options = options or RealtimeOptions()
        self._listeners = ListenerRegistry()
        self._channels = ChannelRegistry()
        self._buffer = OutboundBuffer(self._options.buffer_limit, self._options.buffer_overflow)

        config = ConnectionConfiguration(
            url=build_realtime_url(base_url, self._options.echo_messages),
            api_key=api_key,
            options=self._options,
            session_provider=session_provider,
            on_message=self._handle_message,
            on_state_change=self._listeners.emit_connection_change,
            on_error=self._listeners.emit_error,
        )
        if transport_factory is not None:
            config.transport_factory = transport_factory
        self._controller = ConnectionController(config, self._channels, self._buffer)

    @property
    def options(self) -> RealtimeOptions:
        return self._options

    @property
    def state(self) -> ConnectionState:
        return self._controller.state

    @property
    def connection_id(self) -> Optional[str]:
        """Id assigned by the server to the current connection."""
        return self._controller.connection_id

    @property
    def buffered(self) -> int:
        return len(self._buffer)

    def is_connected(self) -> bool:
        return self._controller.is_connected()

    async def __aenter__(self) -> "RealtimeManager":
        await self._controller.connect()
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.disconnect()

    @_as_result
    async def connect(self) -> ConnectionState:
        """
        Open the realtime connection.

        A failed attempt is not an error: it is reported to the ``on_error``
        listeners and retried in the background.

        Returns:
            APIResult whose data is the connection state after the attempt,
            or whose errors carry ``session_required`` / ``session_expired``
        """
        await self._controller.connect()
        return self._controller.state

    @_as_result
    async def disconnect(self) -> None:
        """Close the connection for good. Buffered messages are discarded."""
        await self._controller.disconnect()

    @_as_result
    async def join(self, channel: str) -> None:
        _check_name("Channel", channel)
        self._ensure_open()
        self._channels.add(channel)
        await self._controller.send_membership(JoinMessage(channel=channel, profile=self._controller.profile))

    @_as_result
    async def leave(self, channel: str) -> None:
        _check_name("Channel", channel)
        self._ensure_open()
        await self._leave(channel)

    @_as_result
    async def leave_all(self) -> None:
        self._ensure_open()
        for channel in self._channels.channels:
            await self._leave(channel)

    async def _leave(self, channel: str) -> None:
        if not self._channels.remove(channel):
            return
        await self._controller.send_membership(LeaveMessage(channel=channel))

    @_as_result
    async def send(self, channel: Optional[str], event: str, payload: Any = None) -> None:
        """
        Send an event to a channel, or to every connected client if ``channel`` is None.

        While offline the envelope is buffered (``buffer_messages``) or the call
        fails with ``not_connected``.
        """
        if channel is not None:
            _check_name("Channel", channel)
        _check_name("Event", event)
        if event in RESERVED_EVENTS:
            raise InvalidValueError(f"'{event}' is a reserved event name")
        await self._controller.send(Envelope(channel=channel, event=event, payload=payload))

    async def broadcast(self, event: str, payload: Any = None) -> APIResult:
        return await self.send(None, event, payload)

    @_as_result
    async def update(self, payload: Any) -> None:
        """Publish this client's profile data to every joined channel."""
        self._ensure_open()
        self._controller.profile = payload
        for channel in self._channels.channels:
            await self._controller.send(Envelope(channel=channel, event=MEMBER_UPDATED, payload=payload))

    def get_channels(self) -> list[str]:
        return self._channels.channels

    def get_members(self, channel: str) -> list[MemberData]:
        """Members of ``channel`` as last reported by the server, excluding this client."""
        return self._channels.members(channel)

    def on(self, event: str, callback: ListenerFunction) -> None:
        self._listeners.add(event, callback)

    def off(self, event: str, callback: Optional[ListenerFunction] = None) -> None:
        self._listeners.remove(event, callback)

    def on_any(self, callback: AnyListenerFunction) -> None:
        self._listeners.add_any(callback)

    def off_any(self, callback: Optional[AnyListenerFunction] = None) -> None:
        self._listeners.remove_any(callback)

    def on_join(self, callback: ListenerFunction, channel: Optional[str] = None) -> None:
        self._listeners.add_presence("join", callback, channel)

    def on_leave(self, callback: ListenerFunction, channel: Optional[str] = None) -> None:
        self._listeners.add_presence("leave", callback, channel)

    def on_update(self, callback: ListenerFunction, channel: Optional[str] = None) -> None:
        self._listeners.add_presence("update", callback, channel)

    def off_join(self, callback: ListenerFunction, channel: Optional[str] = None) -> None:
        self._listeners.remove_presence("join", callback, channel)

    def off_leave(self, callback: ListenerFunction, channel: Optional[str] = None) -> None:
        self._listeners.remove_presence("leave", callback, channel)

    def off_update(self, callback: ListenerFunction, channel: Optional[str] = None) -> None:
        self._listeners.remove_presence("update", callback, channel)

    def on_error(self, callback: Callable[[AgnostError], None]) -> None:
        self._listeners.add_error(callback)

    def off_error(self, callback: Callable[[AgnostError], None]) -> None:
        self._listeners.remove_error(callback)

    def on_connection_change(self, callback: Callable[[ConnectionState], None]) -> None:
        self._listeners.add_connection(callback)

    def off_connection_change(self, callback: Callable[[ConnectionState], None]) -> None:
        self._listeners.remove_connection(callback)

    def _ensure_open(self) -> None:
        if self._controller.state == "closed":
            raise NotConnectedError("Realtime connection has been closed")

    def _handle_message(self, message: IncomingMessage) -> None:
        if isinstance(message, Envelope):
            if (
                not self._options.echo_messages
                and message.origin_id is not None
                and message.origin_id == self._controller.connection_id
            ):
                logger.debug(f"Suppressed echo of '{message.event}'")
                return
            self._listeners.emit(message.event, EventData(channel=message.channel, message=message.payload))
        elif isinstance(message, MemberJoinedMessage):
            member = MemberData(id=message.member.id, data=message.member.data)
            self._channels.member_joined(message.channel, member)
            self._listeners.emit_presence("join", EventData(channel=message.channel, message=member))
        elif isinstance(message, MemberLeftMessage):
            member = MemberData(id=message.member.id, data=message.member.data)
            self._channels.member_left(message.channel, member.id)
            self._listeners.emit_presence("leave", EventData(channel=message.channel, message=member))
        elif isinstance(message, MemberUpdatedMessage):
            member = MemberData(id=message.member.id, data=message.member.data)
            self._channels.member_updated(message.channel, member)
            self._listeners.emit_presence("update", EventData(channel=message.channel, message=member))
        elif isinstance(message, PresenceMessage):
            self._channels.set_members(
                message.channel,
                [MemberData(id=m.id, data=m.data) for m in message.members],
            )
        elif isinstance(message, ErrorMessage):
            logger.warning(f"Realtime server error [{message.code}]: {message.message}")
            self._listeners.emit_error(ServerError(message.message or message.code, code=message.code))
