"""Convenience exports for the pure runtime components."""

from .grid import (
    AddReference,
    AdjustQuantity,
    Grid,
    RemoveReference,
    SetQuantity,
    SlotAddress,
    apply,
)
from .models import InventoryItem, ItemUpdate, NewItem, StoreResponse
from .poller import ChangePoller
from .ranking import SearchResult, rank
from .stats import WarehouseStats, warehouse_stats

__all__ = [
    "AddReference",
    "AdjustQuantity",
    "ChangePoller",
    "Grid",
    "InventoryItem",
    "ItemUpdate",
    "NewItem",
    "RemoveReference",
    "SearchResult",
    "SetQuantity",
    "SlotAddress",
    "StoreResponse",
    "WarehouseStats",
    "apply",
    "rank",
    "warehouse_stats",
]
