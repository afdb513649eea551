# SPDX-License-Identifier: Apache-2.0
"""
Local Durable Cache

Key-value persistence of the full item list: one keyed record holding the
JSON-encoded list. Backends:

- FileSnapshotCache: `<directory>/<key>.json`, replaced atomically
- RedisSnapshotCache: one string key in Redis
- MemorySnapshotCache: process-local, no durability
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Iterable, List, Optional, Protocol

import redis.asyncio as redis
from pydantic import ValidationError

from stockgrid.exceptions import UnavailableError
from stockgrid.runtime.models import InventoryItem

logger = logging.getLogger(__name__)


class SnapshotCache(Protocol):
    """Contract shared by every backend"""

    async def load(self) -> List[InventoryItem]: ...

    async def save(self, items: Iterable[InventoryItem]) -> None: ...


def encode_items(items: Iterable[InventoryItem]) -> str:
    return json.dumps([item.model_dump() for item in items], ensure_ascii=False)


def decode_items(raw: Optional[str | bytes], *, source: str) -> List[InventoryItem]:
    """Decodes a stored list; corrupt data is logged and treated as empty."""
    if not raw:
        return []
    try:
        payload = json.loads(raw)
        if not isinstance(payload, list):
            raise ValueError("stored value is not a list")
        return [InventoryItem.model_validate(entry) for entry in payload]
    except (ValueError, ValidationError) as e:
        logger.error("Error parsing cached inventory from %s: %s", source, e)
        return []


class MemorySnapshotCache:
    """In-process cache"""

    def __init__(self, items: Optional[Iterable[InventoryItem]] = None):
        self._items: tuple[InventoryItem, ...] = tuple(items or ())

    async def load(self) -> List[InventoryItem]:
        return list(self._items)

    async def save(self, items: Iterable[InventoryItem]) -> None:
        self._items = tuple(items)


class FileSnapshotCache:
    """JSON file cache with atomic replacement"""

    def __init__(self, directory: Path | str, key: str):
        self.directory = Path(directory).expanduser()
        self.key = key

    @property
    def path(self) -> Path:
        return self.directory / f"{self.key}.json"

    async def load(self) -> List[InventoryItem]:
        try:
            raw = await asyncio.to_thread(self._read)
        except OSError as e:
            raise UnavailableError(f"local cache unreadable: {e}") from e
        return decode_items(raw, source=str(self.path))

    async def save(self, items: Iterable[InventoryItem]) -> None:
        data = encode_items(items)
        try:
            await asyncio.to_thread(self._write, data)
        except OSError as e:
            raise UnavailableError(f"local cache unwritable: {e}") from e

    def _read(self) -> Optional[str]:
        if not self.path.exists():
            return None
        return self.path.read_text(encoding="utf-8")

    def _write(self, data: str) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=self.directory, prefix=f".{self.key}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(data)
                fh.flush()
                os.fsync(fh.fileno())
            os.replace(tmp_name, self.path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise


class RedisSnapshotCache:
    """Cache implementation backed by a single Redis key"""

    def __init__(self, redis_client: redis.Redis, key: str):
        self.redis_client = redis_client
        self.key = key

    @property
    def redis_key(self) -> str:
        return f"stockgrid:{self.key}"

    async def load(self) -> List[InventoryItem]:
        try:
            raw = await self.redis_client.get(self.redis_key)
        except redis.RedisError as e:
            raise UnavailableError(f"local cache unreadable: {e}") from e
        return decode_items(raw, source=self.redis_key)

    async def save(self, items: Iterable[InventoryItem]) -> None:
        # SET replaces the whole value in one command
        try:
            await self.redis_client.set(self.redis_key, encode_items(items))
        except redis.RedisError as e:
            raise UnavailableError(f"local cache unwritable: {e}") from e
