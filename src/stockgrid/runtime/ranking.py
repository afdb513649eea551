# SPDX-License-Identifier: Apache-2.0
"""File: src/stockgrid/runtime/ranking.py

Project: stockgrid

Description:
    Location Ranking Engine. Scores every slot reference matching a search
    term and returns them best-first.

    Scores (higher is better):
        accessibility  1..3   obstruction above the slot and its height
        proximity      1..N   aisle distance from the entrance (N = aisle count)
        priority       1..3   low remaining stock is picked first

    Composite (0..5):
        (priority/3*5)*0.40 + (accessibility/3*5)*0.35 + (proximity/N*5)*0.25

"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Tuple

from stockgrid.config import GridGeometry
from stockgrid.exceptions import NotFoundError
from stockgrid.runtime.grid import Grid, Reference, SlotAddress

PRIORITY_WEIGHT = 0.40
ACCESSIBILITY_WEIGHT = 0.35
PROXIMITY_WEIGHT = 0.25
SCORE_SCALE = 5.0

# level thresholds for accessibility
EASY_REACH_LEVEL = 2
MEDIUM_REACH_LEVEL = 4

LOW_STOCK_LIMIT = 50
MEDIUM_STOCK_LIMIT = 100


@dataclass(frozen=True)
class RankedLocation:
    address: SlotAddress
    reference_code: str
    reference_name: str
    quantity: int
    accessibility: int
    priority: int
    proximity: int
    score: float
    item_id: str | None = None


@dataclass(frozen=True)
class SearchResult:
    term: str
    total_units: int = 0
    locations: Tuple[RankedLocation, ...] = field(default_factory=tuple)

    @property
    def found(self) -> bool:
        return bool(self.locations)


def accessibility(grid: Grid, address: SlotAddress) -> int:
    column = grid.column_slots(address.aisle, address.column)
    target = next((slot for slot in column if slot.address.level == address.level), None)
    if target is None:
        raise NotFoundError(str(address), what="Slot")
    if not target.occupied:
        return 3

    above = sum(1 for slot in column if slot.address.level > address.level and slot.occupied)
    if above == 0 and address.level <= EASY_REACH_LEVEL:
        return 3
    if above <= 1 and address.level <= MEDIUM_REACH_LEVEL:
        return 2
    return 1


def proximity(geometry: GridGeometry, aisle: str) -> int:
    try:
        offset = geometry.aisles.index(aisle)
    except ValueError:
        raise NotFoundError(aisle, what="Aisle") from None
    return len(geometry.aisles) - offset


def priority(quantity: int) -> int:
    if quantity <= LOW_STOCK_LIMIT:
        return 3
    if quantity <= MEDIUM_STOCK_LIMIT:
        return 2
    return 1


def composite_score(priority_value: int, accessibility_value: int, proximity_value: int, aisle_count: int) -> float:
    return (
        (priority_value / 3 * SCORE_SCALE) * PRIORITY_WEIGHT
        + (accessibility_value / 3 * SCORE_SCALE) * ACCESSIBILITY_WEIGHT
        + (proximity_value / aisle_count * SCORE_SCALE) * PROXIMITY_WEIGHT
    )


def matches(reference: Reference, term: str) -> bool:
    needle = term.lower()
    return needle in reference.code.lower() or needle in reference.name.lower()


def rank(grid: Grid, term: str) -> SearchResult:
    """Ranks every matching reference, best first; ties keep traversal order."""
    needle = term.strip()
    if not needle:
        return SearchResult(term=term)

    aisle_count = len(grid.geometry.aisles)
    locations: List[RankedLocation] = []
    total_units = 0
    for slot in grid.slots():
        hits = [ref for ref in slot.references if matches(ref, needle)]
        if not hits:
            continue
        access = accessibility(grid, slot.address)
        near = proximity(grid.geometry, slot.address.aisle)
        for ref in hits:
            total_units += ref.quantity
            prio = priority(ref.quantity)
            locations.append(
                RankedLocation(
                    address=slot.address,
                    reference_code=ref.code,
                    reference_name=ref.name,
                    quantity=ref.quantity,
                    accessibility=access,
                    priority=prio,
                    proximity=near,
                    score=composite_score(prio, access, near, aisle_count),
                    item_id=ref.item_id,
                )
            )

    # sorted() is stable
    locations = sorted(locations, key=lambda loc: loc.score, reverse=True)
    return SearchResult(term=term, total_units=total_units, locations=tuple(locations))


def highlights(grid: Grid, result: SearchResult) -> List[Tuple[SlotAddress, int]]:
    """Distinct slots of a result in traversal order, with their accessibility."""
    seen = {loc.address for loc in result.locations}
    return [
        (slot.address, accessibility(grid, slot.address))
        for slot in grid.slots()
        if slot.address in seen
    ]
