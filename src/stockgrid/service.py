# SPDX-License-Identifier: Apache-2.0
"""File: src/stockgrid/service.py

Project: stockgrid

Description:
    Warehouse service: the one object a process constructs at start-up and
    hands to every collaborator (UI, scripts). It wires the request client,
    fallback state, local cache, inventory store, change poller and the slot
    grid, and owns their lifecycle (`init()` / `shutdown()`).

    Grid mutations go through `apply()`, which yields the new grid and the row
    writes; the service executes the writes through the store. The grid is
    then refreshed from the rows delivered by the poller, so ids assigned on
    insert are always reflected.

Usage (example)
---------------
>>> async with WarehouseService(StockgridConfig.from_env()) as service:
...     await service.add_reference(SlotAddress("A", 1, 1), "REF001", "Strap", 25)
...     result = service.search("ref001")

"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Callable, List, Optional

import httpx
import redis.asyncio as redis

from stockgrid.clients.sheet_client import SheetClient
from stockgrid.config import StockgridConfig
from stockgrid.exceptions import ConfigurationError, NotFoundError, StockgridError
from stockgrid.gateway.cache import FileSnapshotCache, MemorySnapshotCache, RedisSnapshotCache, SnapshotCache
from stockgrid.gateway.fallback import FallbackState
from stockgrid.runtime.export import export_items
from stockgrid.runtime.grid import (
    AddReference,
    AdjustQuantity,
    Grid,
    Mutation,
    RemoveReference,
    RowWrite,
    SetQuantity,
    SlotAddress,
    WriteKind,
    apply,
)
from stockgrid.runtime.models import InventoryItem, StoreResponse
from stockgrid.runtime.poller import ChangePoller, Subscriber
from stockgrid.runtime.ranking import SearchResult, rank
from stockgrid.runtime.stats import WarehouseStats, warehouse_stats
from stockgrid.runtime.store import InventoryStore

logger = logging.getLogger(__name__)

# (address, code, name, quantity)
DEMO_REFERENCES = (
    (SlotAddress("A", 1, 1), "REF001", "Sport Harness", 25),
    (SlotAddress("A", 1, 1), "REF002", "Adjustable Collar", 45),
    (SlotAddress("A", 1, 2), "REF001", "Sport Harness", 120),
    (SlotAddress("A", 2, 1), "REF003", "Extendable Leash", 15),
    (SlotAddress("B", 1, 1), "REF002", "Adjustable Collar", 80),
    (SlotAddress("C", 3, 3), "REF004", "Orthopedic Bed", 5),
)


def build_cache(config: StockgridConfig, redis_client: Optional[redis.Redis] = None) -> SnapshotCache:
    backend = config.cache.backend
    if backend == "memory":
        return MemorySnapshotCache()
    if backend == "file":
        return FileSnapshotCache(config.cache.directory, config.cache.key)
    if redis_client is None:
        if not config.cache.redis_url:
            raise ConfigurationError("REDIS_URL is required for the redis cache backend.")
        redis_client = redis.from_url(config.cache.redis_url)
    return RedisSnapshotCache(redis_client, config.cache.key)


class WarehouseService:
    def __init__(
        self,
        config: StockgridConfig,
        *,
        http_client: Optional[httpx.AsyncClient] = None,
        cache: Optional[SnapshotCache] = None,
        redis_client: Optional[redis.Redis] = None,
    ) -> None:
        self.config = config
        self._redis = redis_client
        self.fallback = FallbackState()
        self.client = SheetClient(config.base_url, self.fallback, retry=config.retry, http_client=http_client)
        self.cache = cache if cache is not None else build_cache(config, redis_client)
        self.store = InventoryStore(
            self.client,
            self.cache,
            self.fallback,
            resource_candidates=config.resource_candidates,
            mirror_reads=config.mirror_reads,
        )
        self.poller = ChangePoller(
            self.store.select_all,
            interval=config.poll_interval,
            paused=self.store.is_fallback_mode,
        )
        self.store.set_change_listener(self.poller.invalidate_and_refresh)

        self._grid = Grid.empty(config.grid)
        self._grid_version = 0
        self._mutation_lock = asyncio.Lock()
        self._unsubscribe: Optional[Callable[[], None]] = None

    # ------------------------------------------------------------------ #
    # Lifecycle
    # ------------------------------------------------------------------ #

    async def init(self) -> None:
        """Resolves the remote resource and starts keeping the grid current."""
        if self._unsubscribe is not None:
            return
        await self.store.initialize()
        self._unsubscribe = await self.poller.subscribe(self._on_items)
        mode = "local storage fallback" if self.is_fallback_mode() else f"resource {self.store.resource_name!r}"
        logger.info("Warehouse service started (%s)", mode)

    async def shutdown(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        await self.poller.close()
        await self.client.aclose()
        if isinstance(self.cache, RedisSnapshotCache) and self._redis is None:
            await self.cache.redis_client.aclose()
        logger.info("Warehouse service stopped")

    async def __aenter__(self) -> "WarehouseService":
        await self.init()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.shutdown()

    # ------------------------------------------------------------------ #
    # Read side
    # ------------------------------------------------------------------ #

    @property
    def grid(self) -> Grid:
        return self._grid

    def is_fallback_mode(self) -> bool:
        return self.store.is_fallback_mode()

    def fallback_reason(self) -> str:
        return self.store.fallback_reason()

    async def items(self) -> StoreResponse[List[InventoryItem]]:
        return await self.store.select_all()

    async def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        return await self.poller.subscribe(callback)

    def search(self, term: str) -> SearchResult:
        return rank(self._grid, term)

    def stats(self) -> WarehouseStats:
        return warehouse_stats(self._grid)

    async def export(self, directory: Path | str) -> StoreResponse[Path]:
        result = await self.store.select_all()
        if not result.ok:
            return StoreResponse.failure(result.error)
        return StoreResponse.success(await export_items(result.data, directory))

    def _on_items(self, items: List[InventoryItem]) -> None:
        self._grid = Grid.from_items(items, self.config.grid)
        self._grid_version += 1
        logger.debug("Grid rebuilt from %d item(s)", len(items))

    # ------------------------------------------------------------------ #
    # Mutations
    # ------------------------------------------------------------------ #

    async def add_reference(
        self, address: SlotAddress, code: str, name: str, quantity: int
    ) -> StoreResponse[Grid]:
        return await self.apply(AddReference(address, code, name, quantity))

    async def adjust_quantity(self, address: SlotAddress, code: str, delta: int) -> StoreResponse[Grid]:
        return await self.apply(AdjustQuantity(address, code, delta))

    async def set_quantity(self, address: SlotAddress, code: str, quantity: int) -> StoreResponse[Grid]:
        return await self.apply(SetQuantity(address, code, quantity))

    async def remove_reference(self, address: SlotAddress, code: str) -> StoreResponse[Grid]:
        return await self.apply(RemoveReference(address, code))

    async def apply(self, mutation: Mutation) -> StoreResponse[Grid]:
        """Derives the transition from the current grid and persists its writes."""
        async with self._mutation_lock:
            try:
                transition = apply(self._grid, mutation, location_format=self.config.location_format)
            except StockgridError as e:
                return StoreResponse.failure(e)

            version = self._grid_version
            optimistic = transition.grid
            for write in transition.writes:
                result = await self._persist(write)
                if not result.ok:
                    return StoreResponse.failure(result.error)
                if write.kind is WriteKind.INSERT:
                    new = write.new_item
                    optimistic = optimistic.bind_item_id(
                        SlotAddress(new.aisle, new.column, new.shelf), new.reference, result.data.id
                    )

            if self._grid_version == version:
                # no delivery arrived; keep the optimistic grid
                self._grid = optimistic
            return StoreResponse.success(self._grid)

    async def _persist(self, write: RowWrite) -> StoreResponse:
        if write.kind is WriteKind.INSERT:
            return await self.store.insert(write.new_item)
        if write.item_id is None:
            return StoreResponse.failure(NotFoundError("<unsaved>", what="Row for reference"))
        if write.kind is WriteKind.UPDATE:
            return await self.store.update(write.item_id, write.update)
        return await self.store.delete(write.item_id)

    async def reset(self, *, seed: bool = True) -> StoreResponse[Grid]:
        """Deletes every row and, when `seed`, stores the demo references."""
        current = await self.store.select_all()
        if not current.ok:
            return StoreResponse.failure(current.error)
        for item in current.data:
            deleted = await self.store.delete(item.id)
            if not deleted.ok:
                return StoreResponse.failure(deleted.error)
        self._on_items([])

        if seed:
            for address, code, name, quantity in DEMO_REFERENCES:
                result = await self.add_reference(address, code, name, quantity)
                if not result.ok:
                    return result
        logger.info("Warehouse reset (seed=%s)", seed)
        return StoreResponse.success(self._grid)
