"""Websocket transport for realtime connections."""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Optional, Protocol

import aiohttp

from ..errors import AgnostError, ConnectionTimeoutError, SessionExpiredError, TransportError

logger = logging.getLogger(__name__)

HEARTBEAT_S = 25.0


class Transport(Protocol):
    """Bidirectional frame channel used by the connection controller.

    ``on_close`` is only called for closes the transport did not initiate.
    """

    on_message: Optional[Callable[[str], None]]
    on_close: Optional[Callable[[Optional[int], str], None]]
    on_error: Optional[Callable[[AgnostError], None]]

    async def open(self, url: str, headers: dict[str, str], timeout: float) -> None: ...

    async def send(self, frame: str) -> None: ...

    async def close(self) -> None: ...


class WebSocketTransport:
    """Transport on top of an aiohttp client websocket."""

    def __init__(
        self,
        session: Optional[aiohttp.ClientSession] = None,
        *,
        heartbeat: float = HEARTBEAT_S,
    ) -> None:
        self._session = session
        self._owns_session = session is None
        self._heartbeat = heartbeat
        self._ws: Optional[aiohttp.ClientWebSocketResponse] = None
        self._reader: Optional[asyncio.Task] = None
        self._closing = False
        self.on_message: Optional[Callable[[str], None]] = None
        self.on_close: Optional[Callable[[Optional[int], str], None]] = None
        self.on_error: Optional[Callable[[AgnostError], None]] = None

    async def open(self, url: str, headers: dict[str, str], timeout: float) -> None:
        """Open the websocket.

        Args:
            url: ws:// or wss:// endpoint
            headers: Handshake headers (API key and session token)
            timeout: Handshake timeout in seconds

        Raises:
            ConnectionTimeoutError: If the handshake does not finish in time
            SessionExpiredError: If the server rejects the session (HTTP 401)
            TransportError: On any other network or handshake failure
        """
        if self._session is None:
            self._session = aiohttp.ClientSession()
        self._closing = False
        try:
            self._ws = await asyncio.wait_for(
                self._session.ws_connect(url, headers=headers, heartbeat=self._heartbeat),
                timeout=timeout,
            )
        except asyncio.TimeoutError as err:
            await self._release_session()
            raise ConnectionTimeoutError(timeout * 1000) from err
        except aiohttp.WSServerHandshakeError as err:
            await self._release_session()
            if err.status == 401:
                raise SessionExpiredError(cause=err) from err
            raise TransportError(
                f"Websocket handshake failed: {err.status} {err.message}",
                details={"status": err.status},
                cause=err,
            ) from err
        except (aiohttp.ClientError, OSError) as err:
            await self._release_session()
            raise TransportError(f"Websocket connection failed: {err}", cause=err) from err

        self._reader = asyncio.ensure_future(self._read(self._ws))

    async def send(self, frame: str) -> None:
        if self._ws is None or self._ws.closed:
            raise TransportError("Websocket is not open")
        try:
            await self._ws.send_str(frame)
        except (aiohttp.ClientError, ConnectionResetError) as err:
            raise TransportError(f"Failed to send frame: {err}", cause=err) from err

    async def close(self) -> None:
        self._closing = True
        if self._ws is not None and not self._ws.closed:
            await self._ws.close()
        if self._reader is not None and not self._reader.done():
            self._reader.cancel()
            try:
                await self._reader
            except asyncio.CancelledError:
                pass
        self._ws = None
        self._reader = None
        await self._release_session()

    async def _read(self, ws: aiohttp.ClientWebSocketResponse) -> None:
        async for msg in ws:
            if msg.type == aiohttp.WSMsgType.TEXT:
                self._emit_message(msg.data)
            elif msg.type == aiohttp.WSMsgType.BINARY:
                self._emit_message(msg.data.decode("utf-8"))
            elif msg.type == aiohttp.WSMsgType.ERROR:
                error = ws.exception()
                logger.warning(f"Websocket error: {error}")
                if self.on_error:
                    self.on_error(TransportError(str(error), cause=error if isinstance(error, Exception) else None))

        if not self._closing and self.on_close:
            logger.debug(f"Websocket closed by peer with code {ws.close_code}")
            self.on_close(ws.close_code, str(ws.exception() or ""))

    def _emit_message(self, data: str) -> None:
        if self.on_message:
            self.on_message(data)

    async def _release_session(self) -> None:
        if self._owns_session and self._session is not None and not self._session.closed:
            await self._session.close()
            self._session = None
