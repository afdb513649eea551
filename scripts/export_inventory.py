#!/usr/bin/env python
# SPDX-License-Identifier: Apache-2.0
# scripts/export_inventory.py
"""
Maintenance entry point for the warehouse inventory.

Commands:
    export   Write `warehouse-inventory-YYYY-MM-DD.json` with the current item set.
    reset    Delete every row; with --seed, store the demo references afterwards.
    search   Print the ranked locations for a reference code or name.

Configuration is read from STOCKGRID_* environment variables
(see stockgrid.config.StockgridConfig.from_env).

Usage:
    python scripts/export_inventory.py export --out ./exports
    python scripts/export_inventory.py reset --seed
    python scripts/export_inventory.py search REF001
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys

from stockgrid.config import StockgridConfig, configure_logging
from stockgrid.exceptions import ConfigurationError
from stockgrid.service import WarehouseService

logger = logging.getLogger("stockgrid.scripts.export_inventory")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Warehouse inventory maintenance.")
    sub = parser.add_subparsers(dest="command", required=True)

    export = sub.add_parser("export", help="Export the current inventory to JSON.")
    export.add_argument("--out", default=".", help="Target directory (default: current directory).")

    reset = sub.add_parser("reset", help="Delete every row.")
    reset.add_argument("--seed", action="store_true", help="Store the demo references after clearing.")

    search = sub.add_parser("search", help="Rank the locations of a reference.")
    search.add_argument("term", help="Reference code or name (case-insensitive substring).")
    return parser


async def run(args: argparse.Namespace) -> int:
    config = StockgridConfig.from_env()
    async with WarehouseService(config) as service:
        if service.is_fallback_mode():
            logger.warning("Running against local storage: %s", service.fallback_reason())

        if args.command == "export":
            result = await service.export(args.out)
            if not result.ok:
                logger.error("Export failed: %s", result.error)
                return 1
            print(f"Exported inventory to {result.data}")
            return 0

        if args.command == "reset":
            result = await service.reset(seed=args.seed)
            if not result.ok:
                logger.error("Reset failed: %s", result.error)
                return 1
            stats = service.stats()
            print(f"Warehouse reset: {stats.total_references} reference(s) in {stats.occupied_boxes} box(es).")
            return 0

        found = service.search(args.term)
        if not found.found:
            print(f"No locations found for {args.term!r}.")
            return 0
        print(f"{found.total_units} unit(s) of {args.term!r} in {len(found.locations)} location(s):")
        for location in found.locations:
            print(
                f"  {location.address}  {location.reference_code:<10} {location.quantity:>5}  "
                f"score={location.score:.2f}"
            )
        return 0


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging()
    try:
        return asyncio.run(run(args))
    except ConfigurationError as e:
        logger.error("%s", e.message)
        return 2


if __name__ == "__main__":
    sys.exit(main())
