# SPDX-License-Identifier: Apache-2.0
# src/stockgrid/runtime/models.py
"""Pydantic v2 data models for inventory rows and store responses.

- `InventoryItem`: one stored row (immutable).
- `NewItem`: insert payload, without id/timestamps.
- `ItemUpdate`: partial update; only explicitly set fields are applied.
- `StoreResponse`: `(data, error)` pair returned by every store operation.

Row mapping is tolerant on read (missing numbers -> 0, missing strings -> "",
missing timestamps -> now) and complete on write.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Generic, Iterable, List, Mapping, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field

from stockgrid.exceptions import StockgridError

T = TypeVar("T")

ROW_FIELDS = (
    "id",
    "reference",
    "description",
    "quantity",
    "location",
    "aisle",
    "column",
    "shelf",
    "created_at",
    "updated_at",
)


def utc_now_iso() -> str:
    """Current UTC time in the ISO-8601 form stored in rows."""
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def generate_id() -> str:
    return str(uuid.uuid4())


class StockgridModel(BaseModel):
    """Base model: strict field set, immutable instances."""

    model_config = ConfigDict(
        extra="forbid",
        str_strip_whitespace=True,
        frozen=True,
    )


class NewItem(StockgridModel):
    """An item as supplied by a collaborator, before id and timestamps exist."""

    reference: str = Field(..., description="Product code; not unique across items.")
    description: str = Field("", description="Product name.")
    quantity: int = Field(..., ge=0)
    location: str = Field("", description="Free-text location derived from the slot.")
    aisle: str
    column: int
    shelf: int


class InventoryItem(NewItem):
    id: str = Field(..., min_length=1)
    created_at: str
    updated_at: str

    @classmethod
    def create(cls, new: NewItem, *, item_id: Optional[str] = None, now: Optional[str] = None) -> "InventoryItem":
        stamp = now or utc_now_iso()
        return cls(
            **new.model_dump(),
            id=item_id or generate_id(),
            created_at=stamp,
            updated_at=stamp,
        )

    def merged(self, update: "ItemUpdate", *, now: Optional[str] = None) -> "InventoryItem":
        """Returns a copy with the update's set fields applied and `updated_at` refreshed."""
        changes = update.model_dump(exclude_unset=True)
        changes["updated_at"] = now or utc_now_iso()
        return self.model_validate({**self.model_dump(), **changes})

    @property
    def slot(self) -> tuple[str, int, int]:
        return (self.aisle, self.column, self.shelf)


class ItemUpdate(StockgridModel):
    """Partial update. Unset fields are left untouched."""

    reference: Optional[str] = None
    description: Optional[str] = None
    quantity: Optional[int] = Field(None, ge=0)
    location: Optional[str] = None
    aisle: Optional[str] = None
    column: Optional[int] = None
    shelf: Optional[int] = None


@dataclass(frozen=True)
class StoreResponse(Generic[T]):
    """Result of a store operation: exactly one of `data`/`error` is meaningful."""

    data: Optional[T] = None
    error: Optional[StockgridError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, data: T) -> "StoreResponse[T]":
        return cls(data=data, error=None)

    @classmethod
    def failure(cls, error: StockgridError) -> "StoreResponse[T]":
        return cls(data=None, error=error)


# --------------------------------------------------------------------------- #
# Row mapping
# --------------------------------------------------------------------------- #

def _to_int(value: Any) -> int:
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        try:
            return int(float(str(value).strip()))
        except (TypeError, ValueError):
            return 0


def _to_str(value: Any) -> str:
    if value is None:
        return ""
    return str(value)


def row_to_item(row: Mapping[str, Any]) -> InventoryItem:
    """Maps a remote row (all values possibly strings or missing) to an item."""
    now = utc_now_iso()
    return InventoryItem(
        id=_to_str(row.get("id")).strip() or generate_id(),
        reference=_to_str(row.get("reference")),
        description=_to_str(row.get("description")),
        quantity=max(0, _to_int(row.get("quantity"))),
        location=_to_str(row.get("location")),
        aisle=_to_str(row.get("aisle")),
        column=_to_int(row.get("column")),
        shelf=_to_int(row.get("shelf")),
        created_at=_to_str(row.get("created_at")) or now,
        updated_at=_to_str(row.get("updated_at")) or now,
    )


def item_to_row(item: InventoryItem) -> Dict[str, Any]:
    return {name: getattr(item, name) for name in ROW_FIELDS}


def rows_to_items(rows: Any) -> List[InventoryItem]:
    if not isinstance(rows, list):
        return []
    return [row_to_item(row) for row in rows if isinstance(row, Mapping)]


def same_items(left: Iterable[InventoryItem], right: Iterable[InventoryItem]) -> bool:
    """Order-independent structural equality (sort by id, compare every field)."""
    a = sorted(left, key=lambda item: item.id)
    b = sorted(right, key=lambda item: item.id)
    if len(a) != len(b):
        return False
    return all(x.model_dump() == y.model_dump() for x, y in zip(a, b))
