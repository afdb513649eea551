# SPDX-License-Identifier: Apache-2.0
"""File: src/stockgrid/runtime/grid.py

Project: stockgrid

Description:
    Slot grid built from inventory rows, and the pure mutation transition.

    `apply(grid, mutation)` derives, from one source of truth, both the new
    in-memory grid and the row-level writes that persist it. Callers execute
    the writes through the store; the grid itself is never edited in place.

    Merge policy: adding a reference code already present in the same slot
    sums the quantities into the existing row. Building a grid from rows
    (`Grid.from_items`) appends every row as its own reference; rows with no
    stock are absent from the grid.

"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Dict, Iterable, Iterator, List, Optional, Tuple, Union

from stockgrid.config import GridGeometry
from stockgrid.exceptions import InvalidMutationError, NotFoundError
from stockgrid.runtime.models import InventoryItem, ItemUpdate, NewItem

logger = logging.getLogger(__name__)

DEFAULT_LOCATION_FORMAT = "Aisle {aisle}-Column {column}-Level {level}"


@dataclass(frozen=True, order=True)
class SlotAddress:
    aisle: str
    column: int
    level: int

    def __str__(self) -> str:
        return f"{self.aisle}-C{self.column}-L{self.level}"


@dataclass(frozen=True)
class Reference:
    """A stocked product code inside one slot."""

    code: str
    name: str
    quantity: int
    item_id: Optional[str] = None


@dataclass(frozen=True)
class Slot:
    address: SlotAddress
    references: Tuple[Reference, ...] = ()

    @property
    def occupied(self) -> bool:
        return bool(self.references)

    def find(self, code: str) -> Optional[Reference]:
        for ref in self.references:
            if ref.code == code:
                return ref
        return None


class Grid:
    """Immutable aisle x column x level structure. All slots always exist."""

    __slots__ = ("geometry", "_slots")

    def __init__(self, geometry: GridGeometry, slots: Dict[SlotAddress, Slot]):
        self.geometry = geometry
        self._slots = slots

    @classmethod
    def empty(cls, geometry: Optional[GridGeometry] = None) -> "Grid":
        geometry = geometry or GridGeometry()
        slots = {address: Slot(address) for address in iter_addresses(geometry)}
        return cls(geometry, slots)

    @classmethod
    def from_items(cls, items: Iterable[InventoryItem], geometry: Optional[GridGeometry] = None) -> "Grid":
        geometry = geometry or GridGeometry()
        refs: Dict[SlotAddress, List[Reference]] = {}
        for item in items:
            if item.quantity <= 0:
                logger.debug("Skipping item %s with no stock", item.id)
                continue
            address = SlotAddress(item.aisle, item.column, item.shelf)
            if not contains(geometry, address):
                logger.warning("Item %s has an address outside the grid: %s", item.id, address)
                continue
            refs.setdefault(address, []).append(
                Reference(code=item.reference, name=item.description, quantity=item.quantity, item_id=item.id)
            )
        slots = {
            address: Slot(address, tuple(refs.get(address, ())))
            for address in iter_addresses(geometry)
        }
        return cls(geometry, slots)

    def slot(self, address: SlotAddress) -> Slot:
        try:
            return self._slots[address]
        except KeyError:
            raise NotFoundError(str(address), what="Slot") from None

    def slots(self) -> Iterator[Slot]:
        """Traversal order: aisle, then column, then level."""
        for address in iter_addresses(self.geometry):
            yield self._slots[address]

    def column_slots(self, aisle: str, column: int) -> List[Slot]:
        return [self._slots[SlotAddress(aisle, column, level)] for level in range(1, self.geometry.levels + 1)]

    def bind_item_id(self, address: SlotAddress, code: str, item_id: str) -> "Grid":
        """Attaches the row id assigned on insert to the first unsaved reference `code`."""
        slot = self.slot(address)
        for ref in slot.references:
            if ref.code == code and ref.item_id is None:
                refs = tuple(replace(r, item_id=item_id) if r is ref else r for r in slot.references)
                return self.with_slot(replace(slot, references=refs))
        return self

    def with_slot(self, slot: Slot) -> "Grid":
        slots = dict(self._slots)
        slots[slot.address] = slot
        return Grid(self.geometry, slots)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Grid):
            return NotImplemented
        return self.geometry == other.geometry and self._slots == other._slots

    def __repr__(self) -> str:
        occupied = sum(1 for s in self._slots.values() if s.occupied)
        return f"Grid({len(self._slots)} slots, {occupied} occupied)"


def iter_addresses(geometry: GridGeometry) -> Iterator[SlotAddress]:
    for aisle in geometry.aisles:
        for column in range(1, geometry.columns + 1):
            for level in range(1, geometry.levels + 1):
                yield SlotAddress(aisle, column, level)


def contains(geometry: GridGeometry, address: SlotAddress) -> bool:
    return (
        address.aisle in geometry.aisles
        and 1 <= address.column <= geometry.columns
        and 1 <= address.level <= geometry.levels
    )


# --------------------------------------------------------------------------- #
# Mutations
# --------------------------------------------------------------------------- #

@dataclass(frozen=True)
class AddReference:
    address: SlotAddress
    code: str
    name: str
    quantity: int


@dataclass(frozen=True)
class AdjustQuantity:
    address: SlotAddress
    code: str
    delta: int


@dataclass(frozen=True)
class SetQuantity:
    address: SlotAddress
    code: str
    quantity: int


@dataclass(frozen=True)
class RemoveReference:
    address: SlotAddress
    code: str


Mutation = Union[AddReference, AdjustQuantity, SetQuantity, RemoveReference]


class WriteKind(str, Enum):
    INSERT = "insert"
    UPDATE = "update"
    DELETE = "delete"


@dataclass(frozen=True)
class RowWrite:
    kind: WriteKind
    item_id: Optional[str] = None
    new_item: Optional[NewItem] = None
    update: Optional[ItemUpdate] = None


@dataclass(frozen=True)
class Transition:
    grid: Grid
    writes: Tuple[RowWrite, ...] = field(default_factory=tuple)


def apply(grid: Grid, mutation: Mutation, *, location_format: str = DEFAULT_LOCATION_FORMAT) -> Transition:
    """Pure transition: returns the new grid and the row writes that persist it."""
    slot = grid.slot(mutation.address)

    if isinstance(mutation, AddReference):
        return _add(grid, slot, mutation, location_format)

    existing = slot.find(mutation.code)
    if existing is None:
        raise NotFoundError(mutation.code, what=f"Reference in slot {slot.address}")

    if isinstance(mutation, AdjustQuantity):
        new_quantity = max(0, existing.quantity + mutation.delta)
    elif isinstance(mutation, SetQuantity):
        if mutation.quantity < 0:
            raise InvalidMutationError("Quantity cannot be negative.")
        new_quantity = mutation.quantity
    elif isinstance(mutation, RemoveReference):
        return _remove(grid, slot, existing)
    else:
        raise InvalidMutationError(f"Unsupported mutation: {mutation!r}")

    return _set_quantity(grid, slot, existing, new_quantity)


def _add(grid: Grid, slot: Slot, mutation: AddReference, location_format: str) -> Transition:
    code, name = mutation.code.strip(), mutation.name.strip()
    if not code or not name:
        raise InvalidMutationError("Reference code and name are required.")
    if mutation.quantity <= 0:
        raise InvalidMutationError("Quantity must be greater than zero.")

    existing = slot.find(code)
    if existing is not None:
        merged = replace(existing, quantity=existing.quantity + mutation.quantity)
        refs = tuple(merged if ref is existing else ref for ref in slot.references)
        write = RowWrite(WriteKind.UPDATE, item_id=existing.item_id, update=ItemUpdate(quantity=merged.quantity))
        return Transition(grid.with_slot(replace(slot, references=refs)), (write,))

    address = slot.address
    new_item = NewItem(
        reference=code,
        description=name,
        quantity=mutation.quantity,
        location=location_format.format(aisle=address.aisle, column=address.column, level=address.level),
        aisle=address.aisle,
        column=address.column,
        shelf=address.level,
    )
    refs = slot.references + (Reference(code=code, name=name, quantity=mutation.quantity),)
    return Transition(grid.with_slot(replace(slot, references=refs)), (RowWrite(WriteKind.INSERT, new_item=new_item),))


def _remove(grid: Grid, slot: Slot, existing: Reference) -> Transition:
    refs = tuple(ref for ref in slot.references if ref is not existing)
    write = RowWrite(WriteKind.DELETE, item_id=existing.item_id)
    return Transition(grid.with_slot(replace(slot, references=refs)), (write,))


def _set_quantity(grid: Grid, slot: Slot, existing: Reference, quantity: int) -> Transition:
    if quantity == 0:
        return _remove(grid, slot, existing)
    if quantity == existing.quantity:
        return Transition(grid, ())
    updated = replace(existing, quantity=quantity)
    refs = tuple(updated if ref is existing else ref for ref in slot.references)
    write = RowWrite(WriteKind.UPDATE, item_id=existing.item_id, update=ItemUpdate(quantity=quantity))
    return Transition(grid.with_slot(replace(slot, references=refs)), (write,))
