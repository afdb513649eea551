# SPDX-License-Identifier: Apache-2.0
"""File: src/stockgrid/runtime/store.py

Project: stockgrid

Description:
    Inventory Store: the CRUD facade over the remote row store and the local
    durable cache. It is the only component that reads or writes either one.

    Routing
    -------
    - REMOTE mode: calls go through `SheetClient`. A quota signal (or the
      client refusing because fallback was entered concurrently) re-executes
      the same operation against the local cache, so callers still see success.
    - FALLBACK mode: everything is served by the local cache.

    Every public operation returns `StoreResponse(data, error)` and does not
    raise for expected failures. `NotFoundError` is always surfaced.

    Successful mutations notify the change listener (normally the poller's
    `invalidate_and_refresh`).

"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Union

from pydantic import ValidationError

from stockgrid.clients.sheet_client import SheetClient
from stockgrid.exceptions import (
    BadRequestError,
    InvalidMutationError,
    NotFoundError,
    QuotaExceededError,
    StockgridError,
    UnavailableError,
)
from stockgrid.gateway.cache import SnapshotCache
from stockgrid.gateway.fallback import FallbackState
from stockgrid.runtime.models import (
    InventoryItem,
    ItemUpdate,
    NewItem,
    StoreResponse,
    item_to_row,
    row_to_item,
    rows_to_items,
    utc_now_iso,
)

logger = logging.getLogger(__name__)

ChangeListener = Callable[[], Awaitable[Any]]

# Errors after which the operation is replayed against the local cache.
LOCAL_REROUTE = (QuotaExceededError, UnavailableError)

SHEET_NOT_FOUND = "Sheet not found - using local storage"
SHEET_ACCESS_ERROR = "Sheet access error - using local storage"
SHEET_INIT_FAILED = "Sheet initialization failed - using local storage"


class InventoryStore:
    def __init__(
        self,
        client: SheetClient,
        cache: SnapshotCache,
        fallback: FallbackState,
        *,
        resource_candidates: Sequence[str],
        mirror_reads: bool = True,
    ) -> None:
        if not resource_candidates:
            raise ValueError("At least one resource candidate is required.")
        self.client = client
        self.cache = cache
        self.fallback = fallback
        self.resource_candidates = list(resource_candidates)
        self.mirror_reads = mirror_reads
        self._resource_name: Optional[str] = None
        self._resolve_lock = asyncio.Lock()
        self._write_lock = asyncio.Lock()
        self._listener: Optional[ChangeListener] = None

    # ------------------------------------------------------------------ #
    # Wiring / state
    # ------------------------------------------------------------------ #

    def set_change_listener(self, listener: Optional[ChangeListener]) -> None:
        self._listener = listener

    @property
    def resource_name(self) -> Optional[str]:
        return self._resource_name

    def is_fallback_mode(self) -> bool:
        return self.fallback.is_fallback

    def fallback_reason(self) -> str:
        return self.fallback.reason

    async def initialize(self) -> None:
        """Resolves the resource name eagerly; failure puts the store in fallback mode."""
        if self.fallback.is_fallback:
            return
        name = await self._resolve_resource()
        if name is None:
            self.fallback.enter(SHEET_INIT_FAILED)
        else:
            logger.info("Row store service initialized with resource: %s", name)

    async def _resolve_resource(self) -> Optional[str]:
        if self._resource_name is not None:
            return self._resource_name
        async with self._resolve_lock:
            if self._resource_name is not None:
                return self._resource_name
            for candidate in self.resource_candidates:
                logger.debug("Trying resource name: %s", candidate)
                if await self.client.probe(candidate):
                    self._resource_name = candidate
                    return candidate
        logger.warning("Could not find a valid resource name among %s", self.resource_candidates)
        return None

    async def _notify(self) -> None:
        if self._listener is None:
            return
        try:
            await self._listener()
        except Exception as e:  # noqa: BLE001 - a listener must not undo a committed write
            logger.error("Change listener failed: %s", e, exc_info=True)

    # ------------------------------------------------------------------ #
    # Reads
    # ------------------------------------------------------------------ #

    async def select_all(self) -> StoreResponse[List[InventoryItem]]:
        try:
            return StoreResponse.success(await self._select_all())
        except StockgridError as e:
            logger.error("Error selecting items: %s", e)
            return StoreResponse.failure(e)

    async def select_by_aisle(self, aisle: str) -> StoreResponse[List[InventoryItem]]:
        result = await self.select_all()
        if not result.ok:
            return result
        return StoreResponse.success([item for item in result.data if item.aisle == aisle])

    async def _select_all(self) -> List[InventoryItem]:
        if self.fallback.is_fallback:
            return await self.cache.load()

        resource = await self._resolve_resource()
        if resource is None:
            self.fallback.enter(SHEET_NOT_FOUND)
            return await self.cache.load()

        try:
            rows = await self.client.request("GET", resource)
        except LOCAL_REROUTE:
            return await self.cache.load()
        except BadRequestError as e:
            logger.warning("Row store error, switching to local storage: %s", e.message)
            self.fallback.enter(SHEET_ACCESS_ERROR)
            return await self.cache.load()

        items = rows_to_items(rows)
        if self.mirror_reads:
            try:
                await self.cache.save(items)
            except UnavailableError as e:
                logger.warning("Could not mirror remote items into the local cache: %s", e)
        return items

    # ------------------------------------------------------------------ #
    # Writes
    # ------------------------------------------------------------------ #

    async def insert(self, new_item: Union[NewItem, Dict[str, Any]]) -> StoreResponse[InventoryItem]:
        try:
            new = new_item if isinstance(new_item, NewItem) else NewItem.model_validate(new_item)
        except ValidationError as e:
            return StoreResponse.failure(InvalidMutationError(f"Invalid item: {e}"))

        async with self._write_lock:
            try:
                item = await self._insert(new)
            except StockgridError as e:
                logger.error("Error inserting item: %s", e)
                return StoreResponse.failure(e)
        await self._notify()
        return StoreResponse.success(item)

    async def _insert(self, new: NewItem) -> InventoryItem:
        item = InventoryItem.create(new)
        if not self.fallback.is_fallback:
            resource = await self._resolve_resource()
            if resource is None:
                self.fallback.enter(SHEET_NOT_FOUND)
            else:
                try:
                    response = await self.client.request("POST", resource, [item_to_row(item)])
                except LOCAL_REROUTE:
                    pass
                else:
                    if isinstance(response, list) and response and isinstance(response[0], dict):
                        return row_to_item(response[0])
                    return item

        items = await self.cache.load()
        items.append(item)
        await self.cache.save(items)
        return item

    async def update(
        self, item_id: str, changes: Union[ItemUpdate, Dict[str, Any]]
    ) -> StoreResponse[InventoryItem]:
        try:
            update = changes if isinstance(changes, ItemUpdate) else ItemUpdate.model_validate(changes)
        except ValidationError as e:
            return StoreResponse.failure(InvalidMutationError(f"Invalid update: {e}"))

        async with self._write_lock:
            try:
                item = await self._update(item_id, update)
            except StockgridError as e:
                logger.error("Error updating item %s: %s", item_id, e)
                return StoreResponse.failure(e)
        await self._notify()
        return StoreResponse.success(item)

    async def _update(self, item_id: str, update: ItemUpdate) -> InventoryItem:
        if not self.fallback.is_fallback:
            current = await self._select_all()
            if not self.fallback.is_fallback:
                existing = _find(current, item_id)
                updated = existing.merged(update, now=utc_now_iso())
                try:
                    await self.client.request(
                        "PUT",
                        self._resource_name,
                        {"condition": {"id": item_id}, "set": item_to_row(updated)},
                    )
                    return updated
                except LOCAL_REROUTE:
                    pass

        items = await self.cache.load()
        index = _index_of(items, item_id)
        updated = items[index].merged(update, now=utc_now_iso())
        items[index] = updated
        await self.cache.save(items)
        return updated

    async def delete(self, item_id: str) -> StoreResponse[bool]:
        async with self._write_lock:
            try:
                await self._delete(item_id)
            except StockgridError as e:
                logger.error("Error deleting item %s: %s", item_id, e)
                return StoreResponse(data=False, error=e)
        await self._notify()
        return StoreResponse.success(True)

    async def _delete(self, item_id: str) -> None:
        if not self.fallback.is_fallback:
            current = await self._select_all()
            if not self.fallback.is_fallback:
                _find(current, item_id)
                try:
                    await self.client.request("DELETE", self._resource_name, {"condition": {"id": item_id}})
                    return
                except LOCAL_REROUTE:
                    pass

        items = await self.cache.load()
        del items[_index_of(items, item_id)]
        await self.cache.save(items)


def _index_of(items: List[InventoryItem], item_id: str) -> int:
    for index, item in enumerate(items):
        if item.id == item_id:
            return index
    raise NotFoundError(item_id)


def _find(items: List[InventoryItem], item_id: str) -> InventoryItem:
    return items[_index_of(items, item_id)]
