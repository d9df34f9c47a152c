import asyncio

import aiohttp
import pytest

from agnost.fetcher import Fetcher
from agnost.types import Session

from .conftest import create_mock_response


def _fetcher(mock_session):
    return Fetcher("https://api.example.test/env-1/", "test-key", timeout=5, session=mock_session)


@pytest.mark.asyncio
async def test_get_returns_json_data(mock_session):
    mock_session.request.return_value = create_mock_response(200, {"status": "ok"})
    fetcher = _fetcher(mock_session)

    result = await fetcher.get("/health", params={"verbose": "1"})

    assert result.errors is None
    assert result.data == {"status": "ok"}
    args, kwargs = mock_session.request.call_args
    assert args == ("GET", "https://api.example.test/env-1/health")
    assert kwargs["params"] == {"verbose": "1"}
    assert kwargs["headers"] == {"Authorization": "test-key", "X-Client": "agnost-python"}


@pytest.mark.asyncio
async def test_session_token_is_sent(mock_session):
    mock_session.request.return_value = create_mock_response(200, {})
    fetcher = _fetcher(mock_session)
    fetcher.set_session(Session(userId="u1", token="tok"))

    await fetcher.post("orders", {"id": 1}, headers={"X-Trace": "t"})

    _, kwargs = mock_session.request.call_args
    assert kwargs["json"] == {"id": 1}
    assert kwargs["headers"]["Session"] == "tok"
    assert kwargs["headers"]["X-Trace"] == "t"

    fetcher.set_session(None)
    assert "Session" not in fetcher.headers()


@pytest.mark.asyncio
async def test_text_body_when_not_json(mock_session):
    mock_session.request.return_value = create_mock_response(200, text_data="plain")
    fetcher = _fetcher(mock_session)

    result = await fetcher.put("/notes/1", {"text": "x"})

    assert result.data == "plain"


@pytest.mark.asyncio
async def test_server_error_list_is_kept(mock_session):
    errors = [{"origin": "client_error", "code": "invalid_value", "message": "bad id"}]
    mock_session.request.return_value = create_mock_response(400, {"errors": errors}, reason="Bad Request")
    fetcher = _fetcher(mock_session)

    result = await fetcher.delete("/orders/x")

    assert result.data is None
    assert result.errors.status == 400
    assert result.errors.status_text == "Bad Request"
    assert result.errors.items[0].code == "invalid_value"


@pytest.mark.asyncio
async def test_unstructured_error_body(mock_session):
    mock_session.request.return_value = create_mock_response(502, text_data="upstream down", reason="Bad Gateway")
    fetcher = _fetcher(mock_session)

    result = await fetcher.get("/health")

    item = result.errors.items[0]
    assert (item.origin, item.code, item.message) == ("server_error", "http_error", "upstream down")


@pytest.mark.asyncio
async def test_network_failure(mock_session):
    mock_session.request.side_effect = aiohttp.ClientConnectionError("refused")
    fetcher = _fetcher(mock_session)

    result = await fetcher.get("/health")

    assert result.errors.status == 503
    assert result.errors.items[0].code == "network_error"


@pytest.mark.asyncio
async def test_request_timeout(mock_session):
    mock_session.request.side_effect = asyncio.TimeoutError()
    fetcher = _fetcher(mock_session)

    result = await fetcher.get("/slow")

    assert result.errors.items[0].code == "request_timeout"


@pytest.mark.asyncio
async def test_close_leaves_shared_session_open(mock_session):
    fetcher = _fetcher(mock_session)

    await fetcher.close()

    mock_session.close.assert_not_called()
