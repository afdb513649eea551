# SPDX-License-Identifier: Apache-2.0
"""Tests for the change notification poller.

Scope:
- Immediate delivery on subscribe.
- Order-independent diffing: identical sets never notify, real changes notify once.
- Unsubscribe takes effect immediately; the last one stops the task and clears the snapshot.
- Background ticks deliver changes and are skipped while paused.
- Overlapping refreshes deliver in order and drop sets that are already stale.
"""

from __future__ import annotations

import asyncio
from typing import List

import pytest

from stockgrid.exceptions import UnavailableError
from stockgrid.runtime.models import InventoryItem, ItemUpdate, NewItem, StoreResponse
from stockgrid.runtime.poller import ChangePoller


def make_item(item_id: str, quantity: int = 10) -> InventoryItem:
    new = NewItem(reference=f"REF{item_id}", description="Item", quantity=quantity, aisle="A", column=1, shelf=1)
    return InventoryItem.create(new, item_id=item_id, now="2026-01-01T00:00:00Z")


class FakeSource:
    def __init__(self, items: List[InventoryItem]):
        self.items = list(items)
        self.fail = False
        self.fetches = 0

    async def fetch(self) -> StoreResponse[List[InventoryItem]]:
        self.fetches += 1
        if self.fail:
            return StoreResponse.failure(UnavailableError("offline"))
        return StoreResponse.success(list(self.items))


class Recorder:
    def __init__(self):
        self.deliveries: List[List[InventoryItem]] = []

    def __call__(self, items: List[InventoryItem]) -> None:
        self.deliveries.append(items)


@pytest.fixture
async def source_and_poller():
    source = FakeSource([make_item("1"), make_item("2")])
    poller = ChangePoller(source.fetch, interval=60)
    yield source, poller
    await poller.close()


@pytest.mark.asyncio
async def test_subscribe_delivers_current_set_and_starts_task(source_and_poller):
    source, poller = source_and_poller
    recorder = Recorder()

    await poller.subscribe(recorder)

    assert len(recorder.deliveries) == 1
    assert [i.id for i in recorder.deliveries[0]] == ["1", "2"]
    assert poller.running
    assert poller.subscriber_count == 1


@pytest.mark.asyncio
async def test_reordered_identical_set_does_not_notify(source_and_poller):
    source, poller = source_and_poller
    recorder = Recorder()
    await poller.subscribe(recorder)

    source.items.reverse()
    for _ in range(3):
        assert await poller.refresh() is False

    assert len(recorder.deliveries) == 1


@pytest.mark.asyncio
async def test_real_change_notifies_exactly_once(source_and_poller):
    source, poller = source_and_poller
    recorder = Recorder()
    await poller.subscribe(recorder)

    source.items[0] = source.items[0].merged(ItemUpdate(quantity=99), now="2026-01-02T00:00:00Z")

    assert await poller.refresh() is True
    assert await poller.refresh() is False
    assert len(recorder.deliveries) == 2
    assert recorder.deliveries[-1][0].quantity == 99


@pytest.mark.asyncio
async def test_invalidate_and_refresh_always_delivers(source_and_poller):
    _, poller = source_and_poller
    recorder = Recorder()
    await poller.subscribe(recorder)

    assert await poller.invalidate_and_refresh() is True
    assert len(recorder.deliveries) == 2


@pytest.mark.asyncio
async def test_failed_fetch_keeps_snapshot(source_and_poller):
    source, poller = source_and_poller
    await poller.subscribe(Recorder())
    snapshot = poller.snapshot

    source.fail = True

    assert await poller.refresh() is False
    assert poller.snapshot == snapshot


@pytest.mark.asyncio
async def test_unsubscribed_callback_is_not_invoked(source_and_poller):
    source, poller = source_and_poller
    first, second = Recorder(), Recorder()
    unsubscribe_first = await poller.subscribe(first)
    await poller.subscribe(second)

    unsubscribe_first()
    source.items.append(make_item("3"))
    await poller.refresh()

    assert len(first.deliveries) == 1
    assert len(second.deliveries) == 2


@pytest.mark.asyncio
async def test_last_unsubscribe_stops_task_and_clears_snapshot(source_and_poller):
    _, poller = source_and_poller
    unsubscribe = await poller.subscribe(Recorder())
    assert poller.snapshot is not None

    unsubscribe()
    unsubscribe()

    assert not poller.running
    assert poller.snapshot is None
    assert await poller.refresh() is False


@pytest.mark.asyncio
async def test_subscriber_errors_do_not_block_others(source_and_poller):
    source, poller = source_and_poller

    def broken(items):
        raise RuntimeError("subscriber broke")

    recorder = Recorder()
    await poller.subscribe(broken)
    await poller.subscribe(recorder)
    source.items.append(make_item("3"))

    assert await poller.refresh() is True
    assert len(recorder.deliveries) == 2


@pytest.mark.asyncio
async def test_async_subscribers_are_awaited(source_and_poller):
    _, poller = source_and_poller
    seen = []

    async def subscriber(items):
        await asyncio.sleep(0)
        seen.append(len(items))

    await poller.subscribe(subscriber)

    assert seen == [2]


@pytest.mark.asyncio
async def test_background_tick_delivers_changes():
    source = FakeSource([make_item("1")])
    poller = ChangePoller(source.fetch, interval=0.01)
    recorder = Recorder()
    try:
        await poller.subscribe(recorder)
        source.items.append(make_item("2"))
        for _ in range(100):
            if len(recorder.deliveries) == 2:
                break
            await asyncio.sleep(0.01)
    finally:
        await poller.close()

    assert len(recorder.deliveries) == 2
    assert [i.id for i in recorder.deliveries[1]] == ["1", "2"]


@pytest.mark.asyncio
async def test_paused_poller_skips_ticks():
    source = FakeSource([make_item("1")])
    poller = ChangePoller(source.fetch, interval=0.01, paused=lambda: True)
    try:
        await poller.subscribe(Recorder())
        await asyncio.sleep(0.1)
    finally:
        await poller.close()

    assert source.fetches == 1


def test_interval_must_be_positive():
    async def fetch():
        return StoreResponse.success([])

    with pytest.raises(ValueError):
        ChangePoller(fetch, interval=0)


@pytest.mark.asyncio
async def test_slow_delivery_never_overwrites_a_newer_set(source_and_poller):
    source, poller = source_and_poller
    source.items = [make_item("1", quantity=1)]
    entered, gate = asyncio.Event(), asyncio.Event()
    slow_seen: List[int] = []

    async def slow(items):
        if items[0].quantity == 2:
            entered.set()
            await gate.wait()
        slow_seen.append(items[0].quantity)

    recorder = Recorder()
    await poller.subscribe(slow)
    await poller.subscribe(recorder)

    source.items = [make_item("1", quantity=2)]
    first = asyncio.create_task(poller.refresh())
    await asyncio.wait_for(entered.wait(), timeout=1)

    source.items = [make_item("1", quantity=3)]
    second = asyncio.create_task(poller.refresh())
    while poller.snapshot[0].quantity != 3:
        await asyncio.sleep(0)
    gate.set()
    await asyncio.wait_for(asyncio.gather(first, second), timeout=1)

    assert [items[0].quantity for items in recorder.deliveries] == [1, 3]
    assert slow_seen == [1, 2, 3]
    assert poller.snapshot[0].quantity == 3


@pytest.mark.asyncio
async def test_subscriber_may_refresh_from_inside_a_delivery(source_and_poller):
    source, poller = source_and_poller
    seen: List[int] = []

    async def mutating(items):
        seen.append(len(items))
        if len(items) == 3:
            source.items.append(make_item("4"))
            await poller.refresh()

    await poller.subscribe(mutating)
    source.items.append(make_item("3"))

    assert await asyncio.wait_for(poller.refresh(), timeout=1) is True
    assert seen == [2, 3, 4]
    assert len(poller.snapshot) == 4
