import asyncio
import logging
from typing import Any, Optional

import aiohttp

from .types import APIError, APIResult, ErrorEntry, Session

logger = logging.getLogger(__name__)

CLIENT_HEADER = "agnost-python"
DEFAULT_TIMEOUT_S = 300


def _error_from_body(status: int, status_text: str, body: Any) -> APIError:
    if isinstance(body, dict) and isinstance(body.get("errors"), list):
        items = [ErrorEntry.model_validate(item) for item in body["errors"]]
    elif isinstance(body, dict) and "code" in body:
        items = [
            ErrorEntry(
                origin=body.get("origin", "server_error"),
                code=body["code"],
                message=body.get("message", status_text),
                details=body.get("details"),
            )
        ]
    else:
        items = [
            ErrorEntry(
                origin="server_error",
                code="http_error",
                message=str(body) if body else status_text,
            )
        ]
    return APIError(status=status, status_text=status_text, items=items)


def network_error(message: str, code: str = "network_error") -> APIError:
    return APIError(
        status=503,
        status_text="Service Unavailable",
        items=[ErrorEntry(origin="client_error", code=code, message=message)],
    )


class Fetcher:
    """
    HTTP client every manager uses to talk to the app's API server.

    Args:
        base_url: App version base URL
        api_key: API key sent in the Authorization header
        timeout: Total request timeout in seconds
        session: Optional aiohttp session to reuse; created on first use otherwise
    """

    def __init__(
        self,
        base_url: str,
        api_key: str,
        timeout: float = DEFAULT_TIMEOUT_S,
        session: Optional[aiohttp.ClientSession] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._headers = {"Authorization": api_key, "X-Client": CLIENT_HEADER}
        self._timeout = aiohttp.ClientTimeout(total=timeout)
        self._http_session = session
        self._owns_session = session is None
        self._session_token: Optional[str] = None

    @property
    def session_token(self) -> Optional[str]:
        return self._session_token

    def set_session(self, session: Optional[Session]) -> None:
        self._session_token = session.token if session is not None else None

    def url(self, path: str) -> str:
        return f"{self.base_url}/{path.lstrip('/')}"

    def headers(self, extra: Optional[dict[str, str]] = None) -> dict[str, str]:
        headers = dict(self._headers)
        if self._session_token:
            headers["Session"] = self._session_token
        if extra:
            headers.update(extra)
        return headers

    async def get(self, path: str, params: Optional[dict] = None, headers: Optional[dict] = None) -> APIResult:
        return await self._request("GET", path, params=params, headers=headers)

    async def post(
        self, path: str, body: Any = None, params: Optional[dict] = None, headers: Optional[dict] = None
    ) -> APIResult:
        return await self._request("POST", path, json=body, params=params, headers=headers)

    async def put(
        self, path: str, body: Any = None, params: Optional[dict] = None, headers: Optional[dict] = None
    ) -> APIResult:
        return await self._request("PUT", path, json=body, params=params, headers=headers)

    async def delete(
        self, path: str, body: Any = None, params: Optional[dict] = None, headers: Optional[dict] = None
    ) -> APIResult:
        return await self._request("DELETE", path, json=body, params=params, headers=headers)

    async def upload(self, path: str, form: aiohttp.FormData, params: Optional[dict] = None) -> APIResult:
        return await self._request("POST", path, data=form, params=params)

    async def close(self) -> None:
        if self._owns_session and self._http_session is not None and not self._http_session.closed:
            await self._http_session.close()
        self._http_session = None

    def _client_session(self) -> aiohttp.ClientSession:
        if self._http_session is None:
            self._http_session = aiohttp.ClientSession(timeout=self._timeout)
            self._owns_session = True
        return self._http_session

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json: Any = None,
        data: Any = None,
        params: Optional[dict] = None,
        headers: Optional[dict] = None,
    ) -> APIResult:
        url = self.url(path)
        kwargs: dict[str, Any] = {"headers": self.headers(headers), "timeout": self._timeout}
        if params:
            kwargs["params"] = params
        if json is not None:
            kwargs["json"] = json
        if data is not None:
            kwargs["data"] = data

        logger.debug(f"{method} {url}")
        try:
            async with self._client_session().request(method, url, **kwargs) as response:
                body = await self._read_body(response)
                if response.status >= 400:
                    status_text = response.reason or "Error"
                    logger.debug(f"{method} {url} failed with {response.status}")
                    return APIResult(errors=_error_from_body(response.status, status_text, body))
                return APIResult(data=body)
        except asyncio.TimeoutError:
            return APIResult(errors=network_error(f"Request to {url} timed out", code="request_timeout"))
        except aiohttp.ClientError as e:
            logger.warning(f"{method} {url} failed: {e}")
            return APIResult(errors=network_error(f"Cannot reach the server: {e}"))

    @staticmethod
    async def _read_body(response: aiohttp.ClientResponse) -> Any:
        if response.status == 204:
            return None
        try:
            return await response.json(content_type=None)
        except ValueError:
            return await response.text()
