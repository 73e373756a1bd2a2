"""Structural store interface and shared path helpers."""

from __future__ import annotations

from collections.abc import AsyncIterator
from dataclasses import dataclass
from typing import Any, Protocol


@dataclass(frozen=True)
class FieldChange:
    """A value-change event for one subscribed path.

    ``value`` is ``None`` when the path currently holds no value.
    """

    path: str
    value: Any


class FieldStore(Protocol):
    """Operations the engine needs from the shared store.

    Having a protocol here makes it easy to pass test doubles while
    keeping the production adapter concrete.
    """

    def subscribe(self, path: str) -> AsyncIterator[FieldChange]:
        """Stream value changes for *path*, starting with the current value."""
        ...

    async def read_once(self, path: str = "") -> Any:
        ...

    async def write(self, path: str, value: Any) -> None:
        ...

    async def increment(self, path: str, delta: int | float) -> None:
        ...


def normalize_path(path: str) -> str:
    """Strip redundant slashes: ``"/status//drops_today/"`` -> ``"status/drops_today"``."""
    return "/".join(part for part in path.split("/") if part)


def join_path(*parts: str) -> str:
    return normalize_path("/".join(parts))
