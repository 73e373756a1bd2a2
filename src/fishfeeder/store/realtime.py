"""aiohttp adapter for a Firebase-style realtime database REST API."""

from __future__ import annotations

import copy
import json
import logging
from collections.abc import AsyncIterator
from typing import Any

import aiohttp

from fishfeeder._redact import redact_for_log, redact_url
from fishfeeder.config import FeederConfig
from fishfeeder.exceptions import FeederConfigError, FeederStoreError, FeederWriteError
from fishfeeder.store.base import FieldChange, join_path, normalize_path

_logger = logging.getLogger(__name__)

_STREAM_HEADERS = {"accept": "text/event-stream"}
_JSON_HEADERS = {"content-type": "application/json; charset=UTF-8"}


def apply_stream_event(current: Any, event: str, path: str, data: Any) -> Any:
    """Fold one ``put``/``patch`` stream event into the cached value.

    *path* is relative to the subscribed location; ``"/"`` addresses the
    location itself.
    """
    parts = [part for part in path.split("/") if part]
    if not parts:
        if event == "patch" and isinstance(data, dict):
            merged = dict(current) if isinstance(current, dict) else {}
            for key, value in data.items():
                if value is None:
                    merged.pop(key, None)
                else:
                    merged[key] = value
            return merged or None
        return data

    root: dict[str, Any] = copy.deepcopy(current) if isinstance(current, dict) else {}
    node = root
    for part in parts[:-1]:
        child = node.get(part)
        if not isinstance(child, dict):
            child = {}
            node[part] = child
        node = child
    leaf = parts[-1]
    node[leaf] = apply_stream_event(node.get(leaf), event, "/", data)
    if node[leaf] is None:
        node.pop(leaf)
    return root or None


class RealtimeDatabaseStore:
    """REST + event-stream client for the shared feeder store.

    Usage::

        async with RealtimeDatabaseStore(config) as store:
            tree = await store.read_once()
    """

    def __init__(
        self,
        config: FeederConfig,
        *,
        session: aiohttp.ClientSession | None = None,
    ) -> None:
        if not config.database_url:
            raise FeederConfigError("database_url is required for RealtimeDatabaseStore")
        self._config = config
        self._base_url = config.database_url.rstrip("/")
        self._external_session = session is not None
        self._http_session = session

    # ------------------------------------------------------------------
    # Context manager lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> RealtimeDatabaseStore:
        if self._http_session is None:
            self._http_session = aiohttp.ClientSession()
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.close()

    async def close(self) -> None:
        if not self._external_session and self._http_session is not None:
            await self._http_session.close()
        self._http_session = None

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _require_session(self) -> aiohttp.ClientSession:
        if self._http_session is None:
            raise FeederStoreError("Store not opened. Use 'async with RealtimeDatabaseStore(...) as store:'")
        return self._http_session

    def url_for(self, path: str) -> str:
        full = join_path(self._config.root_path, path)
        return f"{self._base_url}/{full}.json" if full else f"{self._base_url}/.json"

    def _params(self) -> dict[str, str]:
        if self._config.auth_token:
            return {"auth": self._config.auth_token}
        return {}

    def _timeout(self) -> aiohttp.ClientTimeout:
        return aiohttp.ClientTimeout(total=self._config.request_timeout)

    async def _request(
        self,
        method: str,
        path: str,
        *,
        body: Any = None,
        error_cls: type[FeederStoreError] = FeederStoreError,
    ) -> Any:
        http = self._require_session()
        url = self.url_for(path)
        data = None if body is None else json.dumps(body, separators=(",", ":"))

        _logger.debug("%s %s", method, redact_url(url))
        if self._config.api_trace_enabled:
            _logger.debug("Store request path=%s body=%s", path, redact_for_log(body))

        try:
            async with http.request(
                method,
                url,
                params=self._params(),
                data=data,
                headers=_JSON_HEADERS,
                timeout=self._timeout(),
            ) as resp:
                text = await resp.text()
                if resp.status != 200:
                    raise error_cls(
                        f"HTTP {resp.status} from {path or '/'}: {text[:200]}",
                        path=path,
                        status_code=resp.status,
                    )
        except FeederStoreError:
            raise
        except (aiohttp.ClientError, TimeoutError) as exc:
            raise error_cls(f"Request to {path or '/'} failed: {exc}", path=path) from exc
        except UnicodeDecodeError as exc:
            raise error_cls(f"Undecodable response from {path or '/'}: {exc}", path=path) from exc

        try:
            result = json.loads(text) if text else None
        except json.JSONDecodeError as exc:
            raise error_cls(f"Invalid JSON from {path or '/'}: {text[:200]}", path=path) from exc

        if self._config.api_trace_enabled:
            _logger.debug("Store response path=%s body=%s", path, redact_for_log(result))
        return result

    # ------------------------------------------------------------------
    # FieldStore
    # ------------------------------------------------------------------

    async def read_once(self, path: str = "") -> Any:
        return await self._request("GET", normalize_path(path))

    async def write(self, path: str, value: Any) -> None:
        await self._request("PUT", normalize_path(path), body=value, error_cls=FeederWriteError)

    async def increment(self, path: str, delta: int | float) -> None:
        """Server-side atomic increment via the ``.sv`` server value."""
        await self._request(
            "PUT",
            normalize_path(path),
            body={".sv": {"increment": delta}},
            error_cls=FeederWriteError,
        )

    async def subscribe(self, path: str) -> AsyncIterator[FieldChange]:
        """Stream changes of *path* over ``text/event-stream``.

        The server opens with a ``put`` of the full current value.  The
        stream ends with :class:`FeederStoreError` when the server cancels
        it or revokes the auth token; callers decide whether to reconnect.
        """
        key = normalize_path(path)
        http = self._require_session()
        url = self.url_for(key)
        timeout = aiohttp.ClientTimeout(total=None, sock_connect=self._config.request_timeout)

        _logger.debug("STREAM %s", redact_url(url))
        try:
            async with http.get(url, params=self._params(), headers=_STREAM_HEADERS, timeout=timeout) as resp:
                if resp.status != 200:
                    text = await resp.text()
                    raise FeederStoreError(
                        f"HTTP {resp.status} opening stream {key}: {text[:200]}",
                        path=key,
                        status_code=resp.status,
                    )

                value: Any = None
                event_name = ""
                data_lines: list[str] = []
                async for raw_line in resp.content:
                    line = raw_line.decode("utf-8", errors="replace").rstrip("\r\n")
                    if line.startswith("event:"):
                        event_name = line[6:].strip()
                        continue
                    if line.startswith("data:"):
                        data_lines.append(line[5:].strip())
                        continue
                    if line:
                        continue

                    # Blank line terminates one event.
                    name, payload = event_name, "\n".join(data_lines)
                    event_name, data_lines = "", []
                    if not name or name == "keep-alive":
                        continue
                    if name in {"cancel", "auth_revoked"}:
                        raise FeederStoreError(f"Stream {key} closed by server: {name}", path=key)
                    if name not in {"put", "patch"}:
                        _logger.debug("Ignoring stream event %s on %s", name, key)
                        continue
                    try:
                        message = json.loads(payload)
                    except json.JSONDecodeError:
                        _logger.debug("Malformed stream payload on %s: %s", key, payload[:200])
                        continue
                    if not isinstance(message, dict):
                        continue
                    value = apply_stream_event(value, name, str(message.get("path") or "/"), message.get("data"))
                    yield FieldChange(path=key, value=copy.deepcopy(value))
        except FeederStoreError:
            raise
        except (aiohttp.ClientError, ValueError) as exc:
            # ValueError covers oversized lines from the stream reader.
            raise FeederStoreError(f"Stream {key} failed: {exc}", path=key) from exc
        raise FeederStoreError(f"Stream {key} ended", path=key)
