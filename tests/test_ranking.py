# SPDX-License-Identifier: Apache-2.0
"""Tests for accessibility, proximity, priority and composite ranking."""

from __future__ import annotations

import pytest

from stockgrid.config import GridGeometry
from stockgrid.exceptions import NotFoundError
from stockgrid.runtime.grid import Grid, SlotAddress
from stockgrid.runtime.models import InventoryItem, NewItem
from stockgrid.runtime.ranking import (
    accessibility,
    composite_score,
    highlights,
    priority,
    proximity,
    rank,
)


def stored(item_id, reference, quantity, aisle="A", column=1, shelf=1, name=None):
    new = NewItem(
        reference=reference,
        description=name or f"{reference} name",
        quantity=quantity,
        aisle=aisle,
        column=column,
        shelf=shelf,
    )
    return InventoryItem.create(new, item_id=item_id, now="2026-01-01T00:00:00Z")


def test_empty_slot_is_fully_accessible():
    assert accessibility(Grid.empty(), SlotAddress("A", 1, 6)) == 3


@pytest.mark.parametrize(
    "occupied_levels, target, expected",
    [
        ([1], 1, 3),
        ([2], 2, 3),
        ([3], 3, 2),
        ([1, 2], 1, 2),
        ([4, 5], 4, 2),
        ([1, 2, 3], 1, 1),
        ([5], 5, 1),
        ([6], 6, 1),
    ],
)
def test_accessibility_levels(occupied_levels, target, expected):
    items = [stored(str(level), "REF001", 10, shelf=level) for level in occupied_levels]
    grid = Grid.from_items(items)

    assert accessibility(grid, SlotAddress("A", 1, target)) == expected


def test_accessibility_only_counts_the_same_column():
    grid = Grid.from_items([stored("1", "REF001", 1), stored("2", "REF002", 1, column=2, shelf=2)])

    assert accessibility(grid, SlotAddress("A", 1, 1)) == 3


def test_proximity_decreases_away_from_entrance():
    geometry = GridGeometry()

    assert proximity(geometry, "A") == 9
    assert proximity(geometry, "I") == 1
    assert [proximity(geometry, a) for a in geometry.aisles] == sorted(
        (proximity(geometry, a) for a in geometry.aisles), reverse=True
    )
    with pytest.raises(NotFoundError):
        proximity(geometry, "Z")


@pytest.mark.parametrize("quantity, expected", [(0, 3), (50, 3), (51, 2), (100, 2), (101, 1), (150, 1)])
def test_priority_thresholds(quantity, expected):
    assert priority(quantity) == expected


def test_composite_score_bounds():
    assert composite_score(3, 3, 9, 9) == pytest.approx(5.0)
    assert composite_score(1, 1, 1, 9) == pytest.approx(5 / 3 * 0.40 + 5 / 3 * 0.35 + 5 / 9 * 0.25)


def test_low_stock_ranks_first():
    grid = Grid.from_items(
        [
            stored("1", "REF001", 150, column=1),
            stored("2", "REF001", 30, column=2),
        ]
    )

    result = rank(grid, "REF001")

    assert [loc.quantity for loc in result.locations] == [30, 150]
    assert result.total_units == 180
    assert result.found
    assert result.locations[0].item_id == "2"


def test_search_is_case_insensitive_on_code_and_name():
    grid = Grid.from_items([stored("1", "REF001", 5, name="Sport Harness"), stored("2", "REF002", 5, column=2)])

    assert [loc.reference_code for loc in rank(grid, "ref001").locations] == ["REF001"]
    assert [loc.reference_code for loc in rank(grid, "harness").locations] == ["REF001"]


def test_every_matching_reference_in_a_slot_is_returned():
    grid = Grid.from_items([stored("1", "REF001", 5), stored("2", "REF0011", 7)])

    result = rank(grid, "ref001")

    assert sorted(loc.reference_code for loc in result.locations) == ["REF001", "REF0011"]
    assert result.total_units == 12


def test_ties_keep_traversal_order():
    grid = Grid.from_items([stored("2", "REF001", 5, column=2), stored("1", "REF001", 5, column=1)])

    result = rank(grid, "REF001")

    assert [loc.address for loc in result.locations] == [SlotAddress("A", 1, 1), SlotAddress("A", 2, 1)]


@pytest.mark.parametrize("term", ["", "   "])
def test_blank_term_finds_nothing(term):
    grid = Grid.from_items([stored("1", "REF001", 5)])

    result = rank(grid, term)

    assert not result.found
    assert result.total_units == 0


def test_highlights_are_distinct_slots():
    grid = Grid.from_items([stored("1", "REF001", 5), stored("2", "REF001", 6), stored("3", "REF001", 7, aisle="B")])

    marks = highlights(grid, rank(grid, "REF001"))

    assert marks == [(SlotAddress("A", 1, 1), 3), (SlotAddress("B", 1, 1), 3)]
