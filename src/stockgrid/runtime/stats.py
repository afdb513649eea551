# SPDX-License-Identifier: Apache-2.0
"""Warehouse-wide occupancy, stock-level and accessibility counters."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict

from stockgrid.runtime.grid import Grid
from stockgrid.runtime.ranking import LOW_STOCK_LIMIT, MEDIUM_STOCK_LIMIT, accessibility


@dataclass(frozen=True)
class WarehouseStats:
    total_references: int = 0
    total_units: int = 0
    unique_references: int = 0
    low_stock_items: int = 0
    medium_stock_items: int = 0
    high_stock_items: int = 0
    occupied_boxes: int = 0
    total_boxes: int = 0
    high_accessibility_boxes: int = 0
    medium_accessibility_boxes: int = 0
    low_accessibility_boxes: int = 0
    occupied_by_aisle: Dict[str, int] = field(default_factory=dict)

    @property
    def occupancy_rate(self) -> float:
        """Percentage of occupied boxes."""
        return self.occupied_boxes / self.total_boxes * 100 if self.total_boxes else 0.0

    @property
    def free_boxes(self) -> int:
        return self.total_boxes - self.occupied_boxes

    @property
    def average_units_per_reference(self) -> float:
        return self.total_units / self.total_references if self.total_references else 0.0

    @property
    def references_per_occupied_box(self) -> float:
        return self.total_references / self.occupied_boxes if self.occupied_boxes else 0.0


def warehouse_stats(grid: Grid) -> WarehouseStats:
    counts = {
        "total_references": 0,
        "total_units": 0,
        "low_stock_items": 0,
        "medium_stock_items": 0,
        "high_stock_items": 0,
        "occupied_boxes": 0,
        "total_boxes": 0,
        "high_accessibility_boxes": 0,
        "medium_accessibility_boxes": 0,
        "low_accessibility_boxes": 0,
    }
    codes = set()
    by_aisle = {aisle: 0 for aisle in grid.geometry.aisles}

    for slot in grid.slots():
        counts["total_boxes"] += 1
        if slot.occupied:
            counts["occupied_boxes"] += 1
            by_aisle[slot.address.aisle] += 1
            level = {3: "high", 2: "medium"}.get(accessibility(grid, slot.address), "low")
            counts[f"{level}_accessibility_boxes"] += 1

        for ref in slot.references:
            counts["total_references"] += 1
            counts["total_units"] += ref.quantity
            codes.add(ref.code)
            if ref.quantity <= LOW_STOCK_LIMIT:
                counts["low_stock_items"] += 1
            elif ref.quantity <= MEDIUM_STOCK_LIMIT:
                counts["medium_stock_items"] += 1
            else:
                counts["high_stock_items"] += 1

    return WarehouseStats(unique_references=len(codes), occupied_by_aisle=by_aisle, **counts)
