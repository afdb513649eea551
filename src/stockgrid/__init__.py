# SPDX-License-Identifier: Apache-2.0
"""File: src/stockgrid/__init__.py
Project: stockgrid
Description:
    Top-level package initializer.

    - Defines the public API surface (`__all__`).
    - Exposes package metadata (`__version__`).
    - Loads the service lazily so importing submodules stays cheap.
    - No side effects (no logging config, no network/file I/O on import).
"""
from __future__ import annotations

import importlib
import importlib.metadata as _metadata
import sys
from typing import TYPE_CHECKING, Any

__pkg_name__ = "stockgrid"
__description__ = "Resilient warehouse inventory sync and location-ranked search."
__license__ = "Apache-2.0"

try:
    __version__ = _metadata.version(__pkg_name__)
except _metadata.PackageNotFoundError:
    __version__ = "0.0.0-dev"

__all__ = (
    "WarehouseService",
    "StockgridConfig",
    "__pkg_name__",
    "__version__",
    "get_package_info",
)

if TYPE_CHECKING:  # pragma: no cover
    from .config import StockgridConfig
    from .service import WarehouseService

_LAZY = {
    "WarehouseService": ".service",
    "StockgridConfig": ".config",
}


def __getattr__(name: str) -> Any:
    """Loads public classes on first access (PEP 562)."""
    if name in _LAZY:
        module = importlib.import_module(_LAZY[name], __name__)
        obj = getattr(module, name)
        globals()[name] = obj
        return obj
    raise AttributeError(f"module '{__name__}' has no attribute '{name}'")


def get_package_info() -> dict[str, str]:
    return {
        "name": __pkg_name__,
        "version": __version__,
        "license": __license__,
        "description": __description__,
        "python_version": sys.version.split()[0],
    }
