from __future__ import annotations

import asyncio

import pytest

from fishfeeder.exceptions import FeederStoreError, FeederWriteError
from fishfeeder.store.memory import MemoryFieldStore


@pytest.mark.asyncio
async def test_read_write_and_increment() -> None:
    store = MemoryFieldStore({"status": {"drops_today": 1}})

    await store.write("/commands/mode/", 2)
    await store.increment("status/drops_today", 1)
    await store.increment("status/unset", 5)

    assert await store.read_once("commands/mode") == 2
    assert await store.read_once("status/drops_today") == 2
    assert await store.read_once("status/unset") == 5
    assert (await store.read_once())["commands"] == {"mode": 2}
    assert store.writes == [
        ("write", "commands/mode", 2),
        ("increment", "status/drops_today", 1),
        ("increment", "status/unset", 5),
    ]


@pytest.mark.asyncio
async def test_subscribe_emits_current_then_changes() -> None:
    store = MemoryFieldStore({"status": {"stock_remaining": 6.0}})
    stream = store.subscribe("status/stock_remaining")

    first = await stream.__anext__()
    assert first.value == 6.0

    store.set_remote("status/stock_remaining", 7.5)
    second = await asyncio.wait_for(stream.__anext__(), 1.0)
    assert second.path == "status/stock_remaining"
    assert second.value == 7.5

    await stream.aclose()
    assert store.subscriber_count == 0


@pytest.mark.asyncio
async def test_parent_write_reaches_leaf_subscribers() -> None:
    store = MemoryFieldStore()
    stream = store.subscribe("data/countdown_remaining")
    assert (await stream.__anext__()).value is None

    await store.write("data", {"countdown_remaining": 30})
    change = await asyncio.wait_for(stream.__anext__(), 1.0)
    assert change.value == 30
    await stream.aclose()


@pytest.mark.asyncio
async def test_injected_failures() -> None:
    store = MemoryFieldStore()
    store.fail("read")
    store.fail("increment", "status/drops_today")

    with pytest.raises(FeederStoreError):
        await store.read_once()
    with pytest.raises(FeederWriteError):
        await store.increment("status/drops_today", 1)
    await store.increment("status/other", 1)

    store.clear_failures()
    assert await store.read_once("status/other") == 1

    with pytest.raises(ValueError):
        store.fail("delete")
