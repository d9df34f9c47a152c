from typing import Optional, Protocol, runtime_checkable


@runtime_checkable
class ClientStorage(Protocol):
    """Key/value store the client keeps user and session data in.

    Any object with these three methods can be passed as ``storage`` in the
    client options, e.g. a wrapper around a keyring or a file.
    """

    def get_item(self, key: str) -> Optional[str]: ...

    def set_item(self, key: str, value: str) -> None: ...

    def remove_item(self, key: str) -> None: ...


class MemoryStorage:
    """Process-local storage, used when no storage handler is configured."""

    def __init__(self) -> None:
        self._items: dict[str, str] = {}

    def get_item(self, key: str) -> Optional[str]:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._items[key] = value

    def remove_item(self, key: str) -> None:
        self._items.pop(key, None)
