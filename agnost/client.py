import os
from typing import Any, Callable, Optional, Union

import aiohttp
from pydantic import ValidationError

from .auth import AuthManager
from .buckets import StorageManager
from .endpoint import EndpointManager
from .errors import InvalidAPIKeyError, InvalidBaseURLError, InvalidOptionsError
from .fetcher import Fetcher
from .realtime.client import RealtimeManager
from .realtime.transport import Transport
from .types import ClientOptions


class AgnostClient:
    """
    Client for a backend app version hosted on Agnost.

    Each client talks to a single app version. It owns one manager of each
    kind for its whole lifetime:

    * ``auth``: stored user and session
    * ``endpoint``: HTTP requests to app endpoints
    * ``storage(name)``: file uploads to storage buckets
    * ``realtime``: pub/sub messaging over a websocket

    Args:
        base_url: App version base URL (falls back to AGNOST_BASE_URL)
        api_key: App version API key (falls back to AGNOST_API_KEY)
        options: ClientOptions or a dict of its fields

    Example:
        ```python
        client = AgnostClient("https://api.example.agnost.dev/env-x1y2", api_key="ak-...")
        result = await client.endpoint.get("/health")
        ```
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        options: Optional[Union[ClientOptions, dict[str, Any]]] = None,
        *,
        http_session: Optional[aiohttp.ClientSession] = None,
        transport_factory: Optional[Callable[[], Transport]] = None,
    ) -> None:
        base_url = base_url if base_url is not None else os.environ.get("AGNOST_BASE_URL")
        api_key = api_key if api_key is not None else os.environ.get("AGNOST_API_KEY")

        if not base_url or not base_url.strip().startswith(("http://", "https://")):
            raise InvalidBaseURLError(base_url)

        if not isinstance(api_key, str) or not api_key.strip():
            raise InvalidAPIKeyError()

        try:
            settings = options if isinstance(options, ClientOptions) else ClientOptions.model_validate(options or {})
        except ValidationError as e:
            raise InvalidOptionsError(f"Invalid client options: {e}") from e

        self.base_url = base_url.strip().rstrip("/")
        self.api_key = api_key
        self.settings = settings

        self._fetcher = Fetcher(self.base_url, api_key, timeout=settings.timeout, session=http_session)
        self.auth = AuthManager(self._fetcher, settings.storage)
        self.endpoint = EndpointManager(self._fetcher)
        self.realtime = RealtimeManager(
            self.base_url,
            api_key,
            settings.realtime,
            session_provider=self.auth,
            transport_factory=transport_factory,
        )

    def storage(self, storage_name: str) -> StorageManager:
        return StorageManager(storage_name, self._fetcher)

    async def close(self) -> None:
        """Close the realtime connection and release HTTP resources."""
        await self.realtime.disconnect()
        await self._fetcher.close()

    async def __aenter__(self) -> "AgnostClient":
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.close()


def create_client(
    base_url: Optional[str] = None,
    api_key: Optional[str] = None,
    options: Optional[Union[ClientOptions, dict[str, Any]]] = None,
    **kwargs: Any,
) -> AgnostClient:
    return AgnostClient(base_url, api_key, options, **kwargs)
