import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional, Protocol, Union

from pydantic import ValidationError
from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception,
    wait_exponential,
)

from .buffer import OutboundBuffer
from .channels import ChannelRegistry
from .messages import (
    ConnectedMessage,
    Envelope,
    ErrorMessage,
    IncomingMessage,
    JoinMessage,
    LeaveMessage,
    OutgoingMessage,
    message_to_json,
    parse_incoming_message,
)
from .transport import Transport, WebSocketTransport
from .types import ConnectionState
from ..errors import (
    AgnostError,
    ConnectionTimeoutError,
    NotConnectedError,
    SessionExpiredError,
    SessionRequiredError,
    TransportError,
    is_recoverable,
)
from ..types import RealtimeOptions, Session

logger = logging.getLogger(__name__)

CLIENT_HEADER = "agnost-python"

# Close code and error frame codes the server uses for an invalidated session
SESSION_EXPIRED_CLOSE_CODE = 4401
SESSION_EXPIRED_CODES = frozenset({"session_expired", "invalid_session", "missing_session"})

MIN_RECONNECT_DELAY_S = 0.01


def _log_close_failure(task: asyncio.Task) -> None:
    if not task.cancelled() and task.exception() is not None:
        logger.warning(f"Failed to close realtime transport: {task.exception()}")


class SessionProvider(Protocol):
    def current_session(self) -> Optional[Session]: ...


@dataclass
class ConnectionConfiguration:
    url: str
    api_key: str
    options: RealtimeOptions
    session_provider: Optional[SessionProvider] = None
    transport_factory: Callable[[], Transport] = WebSocketTransport
    on_message: Optional[Callable[[IncomingMessage], None]] = None
    on_state_change: Optional[Callable[[ConnectionState], None]] = None
    on_error: Optional[Callable[[AgnostError], None]] = None


class ConnectionController:
    """Owns the realtime transport and its lifecycle.

    disconnected -> connecting -> connected -> reconnecting -> connecting ...
    Any state moves to closed on disconnect(); closed is terminal.
    """

    def __init__(
        self,
        configuration: ConnectionConfiguration,
        channels: ChannelRegistry,
        buffer: OutboundBuffer,
    ) -> None:
        self._config = configuration
        self._options = configuration.options
        self._channels = channels
        self._buffer = buffer
        self._state: ConnectionState = "disconnected"
        self._connection_id: Optional[str] = None
        self._transport: Optional[Transport] = None
        self._handshake: Optional[asyncio.Future] = None
        # set when the socket of an attempt closes after its handshake frame
        self._dropped: Optional[AgnostError] = None
        self._replaying = False
        self._reconnect_task: Optional[asyncio.Task] = None
        self._close_task: Optional[asyncio.Task] = None
        self._send_lock = asyncio.Lock()
        # bumped by disconnect() and session expiry so in-flight attempts give up
        self._generation = 0
        self.profile: Any = None

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def connection_id(self) -> Optional[str]:
        return self._connection_id

    def is_connected(self) -> bool:
        return self._state == "connected"

    async def connect(self) -> None:
        """
        Open the connection, rejoin channels and flush buffered frames.

        A failed attempt is reported to the error listener and retried in the
        background; only session problems are raised to the caller.

        Raises:
            NotConnectedError: If the controller has been closed
            SessionRequiredError: If a session is required and none exists
            SessionExpiredError: If the server rejects the session
        """
        if self._state == "closed":
            raise NotConnectedError("Realtime connection has been closed")
        if self._state in ("connecting", "connected"):
            return
        self._check_session()
        self._cancel_reconnect()

        try:
            await self._open()
        except AgnostError as error:
            if not is_recoverable(error):
                raise
            self._schedule_reconnect()

    async def disconnect(self) -> None:
        if self._state == "closed":
            return
        self._generation += 1
        self._set_state("closed")

        task, self._reconnect_task = self._reconnect_task, None
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

        if self._handshake is not None and not self._handshake.done():
            self._handshake.set_exception(NotConnectedError("Realtime connection has been closed"))
        self._handshake = None

        transport, self._transport = self._transport, None
        self._connection_id = None
        self._channels.local_id = None
        self._channels.reset_presence()
        dropped = len(self._buffer)
        self._buffer.clear()
        if dropped:
            logger.info(f"Discarded {dropped} buffered frame(s) on disconnect")
        if transport is not None:
            await transport.close()
        close_task, self._close_task = self._close_task, None
        if close_task is not None and not close_task.done():
            await asyncio.wait([close_task])

    async def send(self, message: OutgoingMessage) -> None:
        """
        Transmit ``message`` now, or buffer it while the connection is unusable.

        Raises:
            NotConnectedError: If closed, or offline with buffering disabled
            BufferFullError: If the buffer is bounded and rejects new frames
        """
        if self._state == "closed":
            raise NotConnectedError("Realtime connection has been closed")

        if self._state == "connected":
            async with self._send_lock:
                if self._state == "connected" and self._transport is not None:
                    try:
                        await self._transmit(self._transport, message)
                        return
                    except TransportError as error:
                        if not self._options.buffer_messages:
                            raise NotConnectedError(f"Realtime connection lost: {error.message}") from error
                        logger.debug("Send failed, buffering frame until reconnection")

        if not self._options.buffer_messages:
            raise NotConnectedError()
        self._buffer.append(message)

    async def send_membership(self, message: Union[JoinMessage, LeaveMessage]) -> None:
        """
        Send a join or leave frame.

        While channels are being rejoined the frame is queued behind the
        replay. Otherwise, when not connected, the frame is only buffered if
        rejoining is off; with rejoining on the next connection announces the
        membership anyway.

        Raises:
            NotConnectedError: If the controller has been closed
        """
        if self._state == "closed":
            raise NotConnectedError("Realtime connection has been closed")
        if self._replaying:
            self._buffer.append(message)
        elif self._state == "connected":
            await self.send(message)
        elif not self._options.auto_join_channels and self._options.buffer_messages:
            self._buffer.append(message)

    def _check_session(self) -> Optional[Session]:
        provider = self._config.session_provider
        session = provider.current_session() if provider is not None else None
        if session is None and self._options.require_session:
            raise SessionRequiredError()
        return session

    def _headers(self, session: Optional[Session]) -> dict[str, str]:
        headers = {
            "Authorization": self._config.api_key,
            "X-Client": CLIENT_HEADER,
        }
        if session is not None:
            headers["Session"] = session.token
        return headers

    async def _open(self) -> None:
        generation = self._generation
        try:
            session = self._check_session()
        except SessionRequiredError as error:
            self._set_state("disconnected")
            self._report(error)
            raise

        self._set_state("connecting")
        transport = self._config.transport_factory()
        transport.on_message = lambda raw: self._handle_frame(transport, raw)
        transport.on_close = lambda code, reason: self._handle_close(transport, code, reason)
        transport.on_error = self._report
        self._transport = transport
        self._dropped = None
        handshake = asyncio.get_running_loop().create_future()
        self._handshake = handshake

        timeout_s = self._options.timeout / 1000
        try:
            connection_id = await asyncio.wait_for(
                self._open_transport(transport, session, handshake, timeout_s),
                timeout=timeout_s,
            )
            if generation != self._generation:
                await transport.close()
                return
            await self._on_open(transport, connection_id)
        except asyncio.TimeoutError as err:
            await self._abandon(transport, handshake, generation, ConnectionTimeoutError(self._options.timeout), err)
        except AgnostError as err:
            await self._abandon(transport, handshake, generation, err)

    async def _abandon(
        self,
        transport: Transport,
        handshake: asyncio.Future,
        generation: int,
        error: AgnostError,
        cause: Optional[BaseException] = None,
    ) -> None:
        """Tear down a failed attempt, report it and re-raise ``error``."""
        if self._handshake is handshake:
            self._handshake = None
        if self._transport is transport:
            self._transport = None
        await transport.close()
        if generation != self._generation:
            return
        self._connection_id = None
        self._channels.local_id = None
        logger.warning(f"Realtime connection attempt failed: {error}")
        if is_recoverable(error):
            self._set_state("reconnecting")
        else:
            self._set_state("disconnected")
        self._report(error)
        if cause is not None:
            raise error from cause
        raise error

    async def _open_transport(
        self,
        transport: Transport,
        session: Optional[Session],
        handshake: asyncio.Future,
        timeout_s: float,
    ) -> str:
        await transport.open(self._config.url, self._headers(session), timeout_s)
        return await handshake

    async def _on_open(self, transport: Transport, connection_id: str) -> None:
        self._connection_id = connection_id
        self._channels.local_id = connection_id
        logger.info(f"Realtime connection established ({connection_id})")

        rejoin = self._channels.channels if self._options.auto_join_channels else []
        # joins and leaves made from here on queue behind the replay
        self._replaying = True
        try:
            async with self._send_lock:
                # rejoin frames go out before any buffered frame
                for channel in rejoin:
                    self._check_current(transport)
                    await self._transmit(transport, JoinMessage(channel=channel, profile=self.profile))

                while self._buffer:
                    self._check_current(transport)
                    message = self._buffer.popleft()
                    try:
                        await self._transmit(transport, message)
                    except TransportError:
                        self._buffer.requeue(message)
                        raise

                self._check_current(transport)
                self._handshake = None
                self._set_state("connected")
        except TransportError:
            # a close seen while sending carries the more precise error
            self._check_current(transport)
            raise
        finally:
            self._replaying = False

    def _check_current(self, transport: Transport) -> None:
        """Raise if ``transport`` closed or was replaced while the attempt was finishing."""
        if self._transport is not transport:
            raise self._dropped or TransportError("Connection closed before it was ready")

    async def _transmit(self, transport: Transport, message: OutgoingMessage) -> None:
        if isinstance(message, Envelope) and message.origin_id is None:
            message = message.model_copy(update={"origin_id": self._connection_id})
        frame = message_to_json(message)
        logger.debug(f"-> {frame}")
        await transport.send(frame)

    def _handle_frame(self, transport: Transport, raw: str) -> None:
        if transport is not self._transport:
            return
        try:
            message = parse_incoming_message(raw)
        except ValidationError as e:
            logger.warning(f"Ignoring malformed realtime frame: {e}")
            return

        if isinstance(message, ConnectedMessage):
            if self._handshake is not None and not self._handshake.done():
                self._handshake.set_result(message.connection_id)
            return

        if isinstance(message, ErrorMessage) and message.code in SESSION_EXPIRED_CODES:
            self._expire_session(SessionExpiredError(message.message or "The user session is no longer valid"))
            return

        if self._config.on_message:
            self._config.on_message(message)

    def _handle_close(self, transport: Transport, code: Optional[int], reason: str) -> None:
        if transport is not self._transport or self._state == "closed":
            return

        if self._handshake is not None:
            # the attempt has not finished yet, it fails and _open reports it
            if code == SESSION_EXPIRED_CLOSE_CODE:
                error: AgnostError = SessionExpiredError()
            else:
                error = TransportError("Connection closed during handshake", details={"code": code})
            if self._handshake.done():
                self._transport = None
                self._dropped = error
            else:
                self._handshake.set_exception(error)
            return

        self._transport = None
        self._connection_id = None
        self._channels.local_id = None
        self._channels.reset_presence()

        if code == SESSION_EXPIRED_CLOSE_CODE:
            self._set_state("disconnected")
            self._report(SessionExpiredError())
            return

        logger.warning(f"Realtime connection lost (code={code}, reason={reason!r})")
        self._report(TransportError("Realtime connection lost", details={"code": code, "reason": reason}))
        self._schedule_reconnect()

    def _expire_session(self, error: SessionExpiredError) -> None:
        if self._handshake is not None and not self._handshake.done():
            self._handshake.set_exception(error)
            return

        self._generation += 1
        self._cancel_reconnect()
        self._handshake = None
        transport, self._transport = self._transport, None
        self._connection_id = None
        self._channels.local_id = None
        self._channels.reset_presence()
        self._set_state("disconnected")
        self._report(error)
        if transport is not None:
            self._close_task = asyncio.ensure_future(transport.close())
            self._close_task.add_done_callback(_log_close_failure)

    def _schedule_reconnect(self) -> None:
        if self._state == "closed":
            return
        self._set_state("reconnecting")
        if self._reconnect_task is not None and not self._reconnect_task.done():
            return
        self._reconnect_task = asyncio.ensure_future(self._reconnect())

    def _cancel_reconnect(self) -> None:
        task, self._reconnect_task = self._reconnect_task, None
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()

    async def _reconnect(self) -> None:
        generation = self._generation
        try:
            await asyncio.sleep(self._reconnect_delay())
            await self._retry_reconnect(generation)
        except asyncio.CancelledError:
            # Task cancelled by disconnect() or a manual connect()
            pass
        except AgnostError as error:
            # already reported by _open
            logger.info(f"Stopped reconnecting: {error}")

    async def _retry_reconnect(self, generation: int) -> None:
        delay = self._reconnect_delay()
        max_delay = max(self._options.reconnection_delay_max / 1000, delay)

        @retry(
            wait=wait_exponential(multiplier=delay, min=delay, max=max_delay),
            retry=retry_if_exception(is_recoverable),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )
        async def _attempt():
            if generation != self._generation or self._state == "closed":
                raise asyncio.CancelledError("Reconnect cancelled")
            await self._open()

        await _attempt()

    def _reconnect_delay(self) -> float:
        return max(self._options.reconnection_delay / 1000, MIN_RECONNECT_DELAY_S)

    def _set_state(self, state: ConnectionState) -> None:
        if self._state == state:
            return
        logger.debug(f"Realtime state {self._state} -> {state}")
        self._state = state
        if self._config.on_state_change:
            self._config.on_state_change(state)

    def _report(self, error: AgnostError) -> None:
        if self._config.on_error:
            self._config.on_error(error)
