# SPDX-License-Identifier: Apache-2.0
"""File: src/stockgrid/runtime/poller.py

Project: stockgrid

Description:
    Change Notification Poller. The row store has no event stream, so changes
    are detected by periodically re-fetching the full item set and diffing it
    against the last delivered snapshot.

Overview
--------
- `subscribe(cb)` delivers the current set to the new subscriber right away
  and starts the background task if it is not running.
- The background task is a single `asyncio` task: sleep -> refresh -> sleep.
  Ticks never overlap; a refresh lock also serializes ticks with the
  mutation-triggered refresh path.
- Subscribers are notified only when the set really changed (order-independent
  structural comparison).
- The snapshot is replaced by a single assignment, never mutated in place.
- `unsubscribe()` is effective once it returns: the delivery loop re-checks
  membership before every invocation. The last unsubscribe stops the task and
  clears the snapshot.
- Deliveries are serialized by their own lock and run outside the refresh
  lock. Before each callback the delivery re-checks that its set is still the
  current snapshot, so an older set never overwrites a newer one.

"""

from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Any, Awaitable, Callable, List, Optional, Tuple

from stockgrid.runtime.models import InventoryItem, StoreResponse, same_items

logger = logging.getLogger(__name__)

Subscriber = Callable[[List[InventoryItem]], Any]
Fetcher = Callable[[], Awaitable[StoreResponse[List[InventoryItem]]]]

DEFAULT_POLL_INTERVAL = 5.0


class ChangePoller:
    """Periodic diff-and-notify loop over the full item set."""

    def __init__(
        self,
        fetch: Fetcher,
        *,
        interval: float = DEFAULT_POLL_INTERVAL,
        paused: Optional[Callable[[], bool]] = None,
    ) -> None:
        if interval <= 0:
            raise ValueError("interval must be > 0")
        self._fetch = fetch
        self.interval = interval
        self._paused = paused or (lambda: False)
        self._subscribers: List[Subscriber] = []
        self._snapshot: Optional[Tuple[InventoryItem, ...]] = None
        self._task: Optional[asyncio.Task] = None
        self._refresh_lock = asyncio.Lock()
        self._deliver_lock = asyncio.Lock()
        self._delivering: Optional[asyncio.Task] = None

    @property
    def snapshot(self) -> Optional[Tuple[InventoryItem, ...]]:
        return self._snapshot

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    async def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Registers `callback`; returns the function that unregisters it."""
        self._subscribers.append(callback)

        snapshot: Optional[Tuple[InventoryItem, ...]] = None
        targets: List[Subscriber] = [callback]
        async with self._refresh_lock:
            result = await self._fetch()
            if result.ok and result.data is not None:
                items = list(result.data)
                if self._snapshot is not None and same_items(self._snapshot, items):
                    snapshot = self._snapshot
                else:
                    # a newer set reaches every subscriber, not only the new one
                    snapshot = self._snapshot = tuple(items)
                    targets = list(self._subscribers)
        if snapshot is not None:
            await self._deliver(snapshot, targets)

        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self._run(), name="stockgrid-change-poller")

        def unsubscribe() -> None:
            self._unsubscribe(callback)

        return unsubscribe

    def _unsubscribe(self, callback: Subscriber) -> None:
        try:
            self._subscribers.remove(callback)
        except ValueError:
            return
        if not self._subscribers:
            self._stop_task()
            self._snapshot = None

    def invalidate(self) -> None:
        """Drops the snapshot so the next refresh always delivers."""
        self._snapshot = None

    async def invalidate_and_refresh(self) -> bool:
        """Mutation path: invalidate, then refresh immediately."""
        self.invalidate()
        return await self.refresh()

    async def refresh(self) -> bool:
        """
        Fetch the current set and deliver it if it differs from the snapshot.

        Returns:
            bool: True if subscribers were notified
        """
        if not self._subscribers:
            return False
        async with self._refresh_lock:
            result = await self._fetch()
            if not result.ok or result.data is None:
                logger.warning("Change poll failed: %s", result.error)
                return False
            items = list(result.data)
            if self._snapshot is not None and same_items(self._snapshot, items):
                logger.debug("No data changes detected, skipping update")
                return False
            logger.info("Data changes detected, updating %d subscriber(s)", len(self._subscribers))
            snapshot = self._snapshot = tuple(items)
        # delivered outside the refresh lock so a subscriber may trigger a mutation
        await self._deliver(snapshot, list(self._subscribers))
        return True

    async def _deliver(self, snapshot: Tuple[InventoryItem, ...], targets: List[Subscriber]) -> None:
        """
        Deliveries run one at a time, in snapshot order. A delivery stops as
        soon as a newer snapshot exists; the newer one reaches every subscriber.
        """
        if self._delivering is not None and self._delivering is asyncio.current_task():
            # re-entered from a subscriber; the outer delivery stops at its next check
            await self._deliver_now(snapshot, targets)
            return
        async with self._deliver_lock:
            self._delivering = asyncio.current_task()
            try:
                await self._deliver_now(snapshot, targets)
            finally:
                self._delivering = None

    async def _deliver_now(self, snapshot: Tuple[InventoryItem, ...], targets: List[Subscriber]) -> None:
        for callback in targets:
            if self._snapshot is not snapshot:
                logger.debug("Dropping stale delivery, a newer item set is pending")
                return
            if callback not in self._subscribers:
                continue
            await self._invoke(callback, list(snapshot))

    @staticmethod
    async def _invoke(callback: Subscriber, items: List[InventoryItem]) -> None:
        try:
            outcome = callback(items)
            if inspect.isawaitable(outcome):
                await outcome
        except Exception as e:  # noqa: BLE001 - one subscriber must not break the others
            logger.error("Subscriber %r failed: %s", callback, e, exc_info=True)

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            if self._paused():
                continue
            try:
                await self.refresh()
            except asyncio.CancelledError:
                raise
            except Exception as e:  # noqa: BLE001 - keep the loop alive
                logger.error("Error during auto-refresh: %s", e, exc_info=True)

    def _stop_task(self) -> None:
        if self._task is not None:
            self._task.cancel()
            self._task = None

    async def close(self) -> None:
        """Stops the background task and drops every subscriber."""
        task, self._task = self._task, None
        self._subscribers.clear()
        self._snapshot = None
        if task is not None:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
