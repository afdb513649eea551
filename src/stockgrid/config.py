# SPDX-License-Identifier: Apache-2.0
"""
stockgrid configuration

Pydantic models for every tunable of the sync layer, plus `from_env()` which
reads `STOCKGRID_*` environment variables.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import List, Literal, Optional, Tuple

from pydantic import BaseModel, Field, ValidationError, field_validator

from stockgrid.exceptions import ConfigurationError

DEFAULT_RESOURCE_CANDIDATES: Tuple[str, ...] = (
    "Sheet1",
    "Hoja1",
    "Hoja 1",
    "inventory",
    "Inventory",
    "almacén",
    "almacen",
)
DEFAULT_CACHE_KEY = "warehouse-inventory-fallback"
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s - %(message)s"


class GridGeometry(BaseModel):
    """Physical layout of the warehouse: aisle letters x columns x levels."""
    model_config = {"frozen": True}

    aisles: Tuple[str, ...] = Field(tuple("ABCDEFGHI"), description="Aisle ids, nearest to the entrance first")
    columns: int = Field(7, ge=1, description="Columns per aisle")
    levels: int = Field(6, ge=1, description="Levels (shelves) per column")

    @field_validator("aisles")
    @classmethod
    def validate_aisles(cls, v: Tuple[str, ...]) -> Tuple[str, ...]:
        if not v:
            raise ValueError("At least one aisle is required.")
        if len(set(v)) != len(v):
            raise ValueError("Aisle ids must be unique.")
        return v

    @property
    def slot_count(self) -> int:
        return len(self.aisles) * self.columns * self.levels


class RetryConfig(BaseModel):
    """Request spacing and retry configuration"""
    min_request_interval: float = Field(1.0, ge=0, description="Minimum seconds between outbound calls")
    max_retries: int = Field(3, ge=0, description="Extra attempts for retriable failures")
    backoff: float = Field(1.0, ge=0, description="Linear backoff unit; wait = attempt * backoff")
    timeout: float = Field(10.0, gt=0, description="Per-request HTTP timeout in seconds")


class CacheConfig(BaseModel):
    """Local durable cache configuration"""
    backend: Literal["file", "redis", "memory"] = Field("file", description="Cache backend")
    directory: Path = Field(Path("~/.stockgrid"), description="Directory for the file backend")
    key: str = Field(DEFAULT_CACHE_KEY, min_length=1, description="Key of the persisted item list")
    redis_url: Optional[str] = Field(None, description="Redis URL for the redis backend")


class StockgridConfig(BaseModel):
    """Main configuration"""
    base_url: str = Field(..., min_length=1, description="Remote store base URL (without resource name)")
    resource_candidates: List[str] = Field(
        default_factory=lambda: list(DEFAULT_RESOURCE_CANDIDATES),
        description="Resource names probed in order until one responds",
    )
    retry: RetryConfig = Field(default_factory=RetryConfig)
    poll_interval: float = Field(5.0, gt=0, description="Seconds between change polls")
    mirror_reads: bool = Field(True, description="Mirror successful remote reads into the local cache")
    cache: CacheConfig = Field(default_factory=CacheConfig)
    grid: GridGeometry = Field(default_factory=GridGeometry)
    location_format: str = Field(
        "Aisle {aisle}-Column {column}-Level {level}",
        description="Template for the free-text location column",
    )

    @field_validator("resource_candidates")
    @classmethod
    def validate_candidates(cls, v: List[str]) -> List[str]:
        names = [name.strip() for name in v if name.strip()]
        if not names:
            raise ValueError("At least one resource candidate is required.")
        return names

    @classmethod
    def from_env(cls) -> "StockgridConfig":
        """Builds the configuration from environment variables."""
        env = os.getenv
        try:
            grid_kwargs = {}
            if env("STOCKGRID_AISLES"):
                grid_kwargs["aisles"] = tuple(a.strip() for a in env("STOCKGRID_AISLES").split(",") if a.strip())
            if env("STOCKGRID_COLUMNS"):
                grid_kwargs["columns"] = int(env("STOCKGRID_COLUMNS"))
            if env("STOCKGRID_LEVELS"):
                grid_kwargs["levels"] = int(env("STOCKGRID_LEVELS"))

            kwargs = {
                "base_url": env("STOCKGRID_API_URL", "http://localhost:8080/v1/storages/warehouse"),
                "retry": RetryConfig(
                    min_request_interval=float(env("STOCKGRID_MIN_REQUEST_INTERVAL", "1.0")),
                    max_retries=int(env("STOCKGRID_MAX_RETRIES", "3")),
                    backoff=float(env("STOCKGRID_RETRY_BACKOFF", "1.0")),
                    timeout=float(env("STOCKGRID_REQUEST_TIMEOUT", "10.0")),
                ),
                "poll_interval": float(env("STOCKGRID_POLL_INTERVAL", "5.0")),
                "cache": CacheConfig(
                    backend=env("STOCKGRID_CACHE_BACKEND", "file"),
                    directory=Path(env("STOCKGRID_CACHE_DIR", "~/.stockgrid")),
                    key=env("STOCKGRID_CACHE_KEY", DEFAULT_CACHE_KEY),
                    redis_url=env("REDIS_URL"),
                ),
                "grid": GridGeometry(**grid_kwargs),
            }
            if env("STOCKGRID_RESOURCES"):
                kwargs["resource_candidates"] = env("STOCKGRID_RESOURCES").split(",")
            return cls(**kwargs)
        except (ValidationError, ValueError) as e:
            raise ConfigurationError(f"Invalid stockgrid configuration: {e}") from e


def configure_logging(level: Optional[str] = None) -> None:
    """Root logging setup for scripts; library code only uses module loggers."""
    level_name = (level or os.getenv("LOG_LEVEL", "INFO")).upper()
    logging.basicConfig(level=getattr(logging, level_name, logging.INFO), format=LOG_FORMAT)
