from typing import Any, Optional

from .fetcher import Fetcher
from .types import APIResult


class APIBase:
    """Base class of the managers that talk to the app through the Fetcher."""

    def __init__(self, fetcher: Fetcher) -> None:
        self.fetcher = fetcher


class EndpointManager(APIBase):
    """
    Makes HTTP requests to the app's endpoints.

    Example:
        ```python
        result = await client.endpoint.get("/orders", params={"page": 2})
        if result.errors is None:
            print(result.data)
        ```
    """

    async def get(self, path: str, params: Optional[dict] = None, headers: Optional[dict] = None) -> APIResult:
        return await self.fetcher.get(path, params=params, headers=headers)

    async def post(
        self, path: str, body: Any = None, params: Optional[dict] = None, headers: Optional[dict] = None
    ) -> APIResult:
        return await self.fetcher.post(path, body, params=params, headers=headers)

    async def put(
        self, path: str, body: Any = None, params: Optional[dict] = None, headers: Optional[dict] = None
    ) -> APIResult:
        return await self.fetcher.put(path, body, params=params, headers=headers)

    async def delete(
        self, path: str, body: Any = None, params: Optional[dict] = None, headers: Optional[dict] = None
    ) -> APIResult:
        return await self.fetcher.delete(path, body, params=params, headers=headers)
