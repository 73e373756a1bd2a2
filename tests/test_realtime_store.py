from __future__ import annotations

import json
from collections.abc import AsyncIterator
from typing import Any

import aiohttp
import pytest

from fishfeeder.config import FeederConfig
from fishfeeder.exceptions import FeederConfigError, FeederStoreError, FeederWriteError
from fishfeeder.store.realtime import RealtimeDatabaseStore, apply_stream_event


class _FakeContent:
    def __init__(self, lines: list[bytes]) -> None:
        self._lines = lines

    def __aiter__(self) -> AsyncIterator[bytes]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[bytes]:
        for line in self._lines:
            yield line


class _FakeResponse:
    def __init__(
        self,
        status: int = 200,
        text: str = "null",
        lines: list[bytes] | None = None,
        text_error: Exception | None = None,
    ) -> None:
        self.status = status
        self._text = text
        self._text_error = text_error
        self.content = _FakeContent(lines or [])

    async def __aenter__(self) -> _FakeResponse:
        return self

    async def __aexit__(self, *exc: Any) -> None:
        return None

    async def text(self) -> str:
        if self._text_error is not None:
            raise self._text_error
        return self._text


class _FakeSession:
    def __init__(self, response: _FakeResponse | None = None, error: Exception | None = None) -> None:
        self.response = response or _FakeResponse()
        self.error = error
        self.calls: list[tuple[str, str, dict[str, Any]]] = []

    def request(self, method: str, url: str, **kwargs: Any) -> _FakeResponse:
        self.calls.append((method, url, kwargs))
        if self.error is not None:
            raise self.error
        return self.response

    def get(self, url: str, **kwargs: Any) -> _FakeResponse:
        self.calls.append(("GET", url, kwargs))
        if self.error is not None:
            raise self.error
        return self.response


def _config(**overrides: Any) -> FeederConfig:
    values: dict[str, Any] = {"database_url": "https://feeder.example.com/", "auth_token": "tok"}
    values.update(overrides)
    return FeederConfig(**values)


def _store(session: _FakeSession, **overrides: Any) -> RealtimeDatabaseStore:
    return RealtimeDatabaseStore(_config(**overrides), session=session)  # type: ignore[arg-type]


def test_requires_database_url() -> None:
    with pytest.raises(FeederConfigError):
        RealtimeDatabaseStore(FeederConfig())


def test_url_for_joins_root_path() -> None:
    store = _store(_FakeSession())
    assert store.url_for("status/drops_today") == "https://feeder.example.com/fish_feeder/status/drops_today.json"
    assert store.url_for("") == "https://feeder.example.com/fish_feeder.json"
    root_store = _store(_FakeSession(), root_path="")
    assert root_store.url_for("") == "https://feeder.example.com/.json"


@pytest.mark.asyncio
async def test_read_once_parses_json() -> None:
    session = _FakeSession(_FakeResponse(text=json.dumps({"status": {"drops_today": 3}})))
    store = _store(session)

    tree = await store.read_once()

    assert tree == {"status": {"drops_today": 3}}
    method, url, kwargs = session.calls[0]
    assert method == "GET"
    assert url.endswith("/fish_feeder.json")
    assert kwargs["params"] == {"auth": "tok"}


@pytest.mark.asyncio
async def test_increment_uses_server_value() -> None:
    session = _FakeSession()
    store = _store(session)

    await store.increment("status/drops_today", 1)

    method, url, kwargs = session.calls[0]
    assert method == "PUT"
    assert url.endswith("/fish_feeder/status/drops_today.json")
    assert json.loads(kwargs["data"]) == {".sv": {"increment": 1}}


@pytest.mark.asyncio
async def test_write_error_status_raises_write_error() -> None:
    session = _FakeSession(_FakeResponse(status=401, text='{"error": "Permission denied"}'))
    store = _store(session)

    with pytest.raises(FeederWriteError) as excinfo:
        await store.write("commands/mode", 1)
    assert excinfo.value.status_code == 401
    assert excinfo.value.path == "commands/mode"


@pytest.mark.asyncio
async def test_client_error_is_wrapped() -> None:
    session = _FakeSession(error=aiohttp.ClientConnectionError("refused"))
    store = _store(session)

    with pytest.raises(FeederWriteError):
        await store.write("commands/mode", 2)
    with pytest.raises(FeederStoreError):
        await store.read_once()


@pytest.mark.asyncio
async def test_invalid_json_raises_store_error() -> None:
    session = _FakeSession(_FakeResponse(text="<html>"))
    store = _store(session)

    with pytest.raises(FeederStoreError):
        await store.read_once()


@pytest.mark.asyncio
async def test_undecodable_response_raises_store_error() -> None:
    error = UnicodeDecodeError("utf-8", b"\xff", 0, 1, "invalid start byte")
    session = _FakeSession(_FakeResponse(text_error=error))
    store = _store(session)

    with pytest.raises(FeederStoreError):
        await store.read_once()


@pytest.mark.asyncio
async def test_subscribe_skips_undecodable_event() -> None:
    lines = [
        b"event: put\n",
        b'data: {"path": "/", "data": \xff}\n',
        b"\n",
        b"event: put\n",
        b'data: {"path": "/", "data": 7.5}\n',
        b"\n",
    ]
    store = _store(_FakeSession(_FakeResponse(lines=lines)))

    values: list[Any] = []
    with pytest.raises(FeederStoreError, match="ended"):
        async for change in store.subscribe("status/stock_remaining"):
            values.append(change.value)

    assert values == [7.5]


@pytest.mark.asyncio
async def test_subscribe_parses_event_stream_until_cancel() -> None:
    lines = [
        b"event: put\n",
        b'data: {"path": "/", "data": 4.2}\n',
        b"\n",
        b"event: keep-alive\n",
        b"data: null\n",
        b"\n",
        b"event: put\n",
        b'data: {"path":"/","data":9.9}\n',
        b"\n",
        b"event: cancel\n",
        b"data: null\n",
        b"\n",
    ]
    session = _FakeSession(_FakeResponse(lines=lines))
    store = _store(session)

    values: list[Any] = []
    with pytest.raises(FeederStoreError):
        async for change in store.subscribe("status/stock_remaining"):
            assert change.path == "status/stock_remaining"
            values.append(change.value)

    assert values == [4.2, 9.9]
    _method, _url, kwargs = session.calls[0]
    assert kwargs["headers"] == {"accept": "text/event-stream"}


@pytest.mark.asyncio
async def test_subscribe_open_failure() -> None:
    session = _FakeSession(_FakeResponse(status=404, text="not found"))
    store = _store(session)

    with pytest.raises(FeederStoreError) as excinfo:
        async for _change in store.subscribe("status/stock_remaining"):
            pass
    assert excinfo.value.status_code == 404


def test_apply_stream_event_put_and_patch() -> None:
    assert apply_stream_event(None, "put", "/", 3) == 3
    assert apply_stream_event(3, "put", "/", None) is None

    tree = apply_stream_event(None, "put", "/", {"a": 1})
    tree = apply_stream_event(tree, "patch", "/", {"b": 2})
    assert tree == {"a": 1, "b": 2}

    tree = apply_stream_event(tree, "put", "/c/d", 5)
    assert tree == {"a": 1, "b": 2, "c": {"d": 5}}

    tree = apply_stream_event(tree, "patch", "/", {"a": None})
    assert tree == {"b": 2, "c": {"d": 5}}

    tree = apply_stream_event(tree, "put", "/c/d", None)
    assert tree == {"b": 2, "c": {}}
