"""In-process store used by tests and local runs."""

from __future__ import annotations

import asyncio
import copy
import logging
from collections.abc import AsyncIterator, Mapping
from typing import Any

from fishfeeder.exceptions import FeederStoreError, FeederWriteError
from fishfeeder.store.base import FieldChange, normalize_path

_logger = logging.getLogger(__name__)

_OPERATIONS = frozenset({"read", "write", "increment"})


def _split(path: str) -> list[str]:
    normalized = normalize_path(path)
    return normalized.split("/") if normalized else []


def _is_related(a: str, b: str) -> bool:
    """Whether one path is the other, or an ancestor of it."""
    if not a or not b or a == b:
        return True
    return a.startswith(b + "/") or b.startswith(a + "/")


class MemoryFieldStore:
    """Nested-dict store with per-path fan-out and atomic increment.

    ``writes`` records every successful write and increment made through
    the public API as ``(operation, path, value)`` tuples.  Use
    :meth:`set_remote` to simulate a write made by the device itself.
    Failures can be injected per operation with :meth:`fail`.
    """

    def __init__(self, initial: Mapping[str, Any] | None = None) -> None:
        self._tree: dict[str, Any] = copy.deepcopy(dict(initial)) if initial else {}
        self._subscribers: dict[str, list[asyncio.Queue[FieldChange]]] = {}
        self._failures: dict[tuple[str, str | None], FeederStoreError] = {}
        self.writes: list[tuple[str, str, Any]] = []

    # ------------------------------------------------------------------
    # Failure injection
    # ------------------------------------------------------------------

    def fail(self, operation: str, path: str | None = None, error: FeederStoreError | None = None) -> None:
        """Make *operation* fail, for *path* only or for every path."""
        if operation not in _OPERATIONS:
            raise ValueError(f"operation must be one of {sorted(_OPERATIONS)}, got {operation!r}")
        key = normalize_path(path) if path is not None else None
        if error is None:
            cls = FeederStoreError if operation == "read" else FeederWriteError
            error = cls(f"Injected {operation} failure", path=key or "")
        self._failures[(operation, key)] = error

    def clear_failures(self) -> None:
        self._failures.clear()

    def _raise_if_failing(self, operation: str, path: str) -> None:
        error = self._failures.get((operation, path)) or self._failures.get((operation, None))
        if error is not None:
            raise error

    # ------------------------------------------------------------------
    # Tree access
    # ------------------------------------------------------------------

    def get(self, path: str = "") -> Any:
        node: Any = self._tree
        for part in _split(path):
            if not isinstance(node, dict) or part not in node:
                return None
            node = node[part]
        return copy.deepcopy(node)

    def _set(self, path: str, value: Any) -> None:
        parts = _split(path)
        if not parts:
            self._tree = copy.deepcopy(value) if isinstance(value, dict) else {}
            return
        node = self._tree
        for part in parts[:-1]:
            child = node.get(part)
            if not isinstance(child, dict):
                child = {}
                node[part] = child
            node = child
        if value is None:
            node.pop(parts[-1], None)
        else:
            node[parts[-1]] = copy.deepcopy(value)

    def _publish(self, changed: str) -> None:
        for path, queues in self._subscribers.items():
            if not _is_related(path, changed):
                continue
            change = FieldChange(path=path, value=self.get(path))
            for queue in queues:
                queue.put_nowait(change)

    def set_remote(self, path: str, value: Any) -> None:
        """Change a value as the device would, without recording it in ``writes``."""
        key = normalize_path(path)
        self._set(key, value)
        self._publish(key)

    # ------------------------------------------------------------------
    # FieldStore
    # ------------------------------------------------------------------

    async def read_once(self, path: str = "") -> Any:
        key = normalize_path(path)
        self._raise_if_failing("read", key)
        return self.get(key)

    async def write(self, path: str, value: Any) -> None:
        key = normalize_path(path)
        self._raise_if_failing("write", key)
        self._set(key, value)
        self.writes.append(("write", key, copy.deepcopy(value)))
        _logger.debug("write %s=%r", key, value)
        self._publish(key)

    async def increment(self, path: str, delta: int | float) -> None:
        key = normalize_path(path)
        self._raise_if_failing("increment", key)
        current = self.get(key)
        if isinstance(current, bool) or not isinstance(current, (int, float)):
            current = 0
        self._set(key, current + delta)
        self.writes.append(("increment", key, delta))
        _logger.debug("increment %s by %r", key, delta)
        self._publish(key)

    async def subscribe(self, path: str) -> AsyncIterator[FieldChange]:
        key = normalize_path(path)
        queue: asyncio.Queue[FieldChange] = asyncio.Queue()
        self._subscribers.setdefault(key, []).append(queue)
        try:
            yield FieldChange(path=key, value=self.get(key))
            while True:
                yield await queue.get()
        finally:
            queues = self._subscribers.get(key, [])
            if queue in queues:
                queues.remove(queue)
            if not queues:
                self._subscribers.pop(key, None)

    @property
    def subscriber_count(self) -> int:
        return sum(len(queues) for queues in self._subscribers.values())
