# SPDX-License-Identifier: Apache-2.0
import json
from datetime import datetime, timezone

import pytest

from stockgrid.runtime.export import export_filename, export_items
from stockgrid.runtime.models import InventoryItem, NewItem


def test_export_filename_uses_date():
    assert export_filename(datetime(2026, 3, 7, 23, 59, tzinfo=timezone.utc)) == "warehouse-inventory-2026-03-07.json"


@pytest.mark.asyncio
async def test_export_writes_items(tmp_path):
    new = NewItem(reference="REF001", description="Arnés deportivo", quantity=25, aisle="A", column=1, shelf=1)
    item = InventoryItem.create(new, item_id="1", now="2026-01-01T00:00:00Z")

    path = await export_items([item], tmp_path / "out", now=datetime(2026, 1, 2, tzinfo=timezone.utc))

    assert path.name == "warehouse-inventory-2026-01-02.json"
    payload = json.loads(path.read_text(encoding="utf-8"))
    assert payload == [item.model_dump()]
    assert "Arnés" in path.read_text(encoding="utf-8")
