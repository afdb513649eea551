# SPDX-License-Identifier: Apache-2.0
"""
JSON export of the current item set as a timestamped file.
"""

from __future__ import annotations

import asyncio
import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, Optional

from stockgrid.runtime.models import InventoryItem

logger = logging.getLogger(__name__)

EXPORT_PREFIX = "warehouse-inventory"


def export_filename(now: Optional[datetime] = None) -> str:
    stamp = (now or datetime.now(timezone.utc)).date().isoformat()
    return f"{EXPORT_PREFIX}-{stamp}.json"


async def export_items(
    items: Iterable[InventoryItem], directory: Path | str, *, now: Optional[datetime] = None
) -> Path:
    """Writes `warehouse-inventory-YYYY-MM-DD.json` into `directory` and returns its path."""
    target = Path(directory).expanduser() / export_filename(now)
    payload = json.dumps([item.model_dump() for item in items], ensure_ascii=False, indent=2)

    def _write() -> None:
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(payload, encoding="utf-8")

    await asyncio.to_thread(_write)
    logger.info("Inventory exported to %s", target)
    return target
