import logging
from collections import defaultdict
from typing import Any, Callable, Optional

from .types import (
    PRESENCE_EVENTS,
    AnyListenerFunction,
    ConnectionState,
    EventData,
    ListenerFunction,
    PresenceKind,
)
from ..errors import AgnostError, ListenerError

logger = logging.getLogger(__name__)


class ListenerRegistry:
    """Callback lists for realtime events.

    Callbacks run synchronously in registration order. A callback that raises
    is logged and reported to the error listeners; the callbacks after it
    still run.
    """

    def __init__(self) -> None:
        self._listeners: defaultdict[str, list[ListenerFunction]] = defaultdict(list)
        self._any_listeners: list[AnyListenerFunction] = []
        self._presence_listeners: dict[PresenceKind, list[tuple[Optional[str], ListenerFunction]]] = {
            kind: [] for kind in PRESENCE_EVENTS
        }
        self._error_callbacks: list[Callable[[AgnostError], None]] = []
        self._connection_callbacks: list[Callable[[ConnectionState], None]] = []

    def add(self, event: str, callback: ListenerFunction) -> None:
        self._listeners[event].append(callback)

    def remove(self, event: str, callback: Optional[ListenerFunction] = None) -> None:
        """Remove one registration of ``callback``, or every callback of ``event``."""
        if callback is None:
            self._listeners.pop(event, None)
            return
        callbacks = self._listeners.get(event)
        if not callbacks:
            return
        try:
            callbacks.remove(callback)
        except ValueError:
            pass
        if not callbacks:
            del self._listeners[event]

    def add_any(self, callback: AnyListenerFunction) -> None:
        self._any_listeners.append(callback)

    def remove_any(self, callback: Optional[AnyListenerFunction] = None) -> None:
        if callback is None:
            self._any_listeners.clear()
            return
        try:
            self._any_listeners.remove(callback)
        except ValueError:
            pass

    def add_presence(
        self, kind: PresenceKind, callback: ListenerFunction, channel: Optional[str] = None
    ) -> None:
        self._presence_listeners[kind].append((channel, callback))

    def remove_presence(
        self, kind: PresenceKind, callback: ListenerFunction, channel: Optional[str] = None
    ) -> None:
        try:
            self._presence_listeners[kind].remove((channel, callback))
        except ValueError:
            pass

    def add_error(self, callback: Callable[[AgnostError], None]) -> None:
        self._error_callbacks.append(callback)

    def remove_error(self, callback: Callable[[AgnostError], None]) -> None:
        try:
            self._error_callbacks.remove(callback)
        except ValueError:
            pass

    def add_connection(self, callback: Callable[[ConnectionState], None]) -> None:
        self._connection_callbacks.append(callback)

    def remove_connection(self, callback: Callable[[ConnectionState], None]) -> None:
        try:
            self._connection_callbacks.remove(callback)
        except ValueError:
            pass

    def emit(self, event: str, data: EventData) -> None:
        for callback in list(self._listeners.get(event, ())):
            self._invoke(event, callback, data)
        for any_callback in list(self._any_listeners):
            self._invoke(event, any_callback, event, data)

    def emit_presence(self, kind: PresenceKind, data: EventData) -> None:
        """Run the presence listeners first, then the listeners of the frame's event."""
        event = PRESENCE_EVENTS[kind]
        for channel, callback in list(self._presence_listeners[kind]):
            if channel is None or channel == data.channel:
                self._invoke(event, callback, data)
        self.emit(event, data)

    def emit_error(self, error: AgnostError) -> None:
        for callback in list(self._error_callbacks):
            try:
                callback(error)
            except Exception as e:
                logger.exception(f"Error in error callback: {e}")

    def emit_connection_change(self, state: ConnectionState) -> None:
        for callback in list(self._connection_callbacks):
            self._invoke("connection_change", callback, state)

    def _invoke(self, event: str, callback: Callable[..., Any], *args: Any) -> None:
        try:
            callback(*args)
        except Exception as e:
            logger.exception(f"Error in '{event}' callback: {e}")
            self.emit_error(ListenerError(event, e))
