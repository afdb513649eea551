# SPDX-License-Identifier: Apache-2.0
"""Shared fixtures: fast configuration and an in-memory fake of the remote row store."""

from __future__ import annotations

import json
from typing import Any, Dict, List, Optional
from urllib.parse import unquote

import httpx
import pytest
import respx

from stockgrid.config import CacheConfig, RetryConfig, StockgridConfig

BASE_URL = "https://rows.test/v1/storages/wh"


class FakeRowStore:
    """Serves `{base}/{resource}` like the remote row store, for respx."""

    def __init__(self, resources: tuple[str, ...] = ("Sheet1",)):
        self.resources = set(resources)
        self.rows: List[Dict[str, Any]] = []
        self.quota_exhausted = False
        self.calls: List[tuple[str, str]] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        resource = unquote(request.url.path.rsplit("/", 1)[-1])
        self.calls.append((request.method, resource))
        if self.quota_exhausted:
            return httpx.Response(429, json={"error": "quota"})
        if resource not in self.resources:
            return httpx.Response(404, json={"error": f"sheet {resource} not found"})

        body: Optional[Any] = json.loads(request.content) if request.content else None
        if request.method == "GET":
            return httpx.Response(200, json=self.rows)
        if request.method == "POST":
            self.rows.extend(body)
            return httpx.Response(201, json=body)
        if request.method == "PUT":
            item_id = body["condition"]["id"]
            self.rows = [body["set"] if row["id"] == item_id else row for row in self.rows]
            return httpx.Response(200, json={"updated": 1})
        if request.method == "DELETE":
            item_id = body["condition"]["id"]
            self.rows = [row for row in self.rows if row["id"] != item_id]
            return httpx.Response(200, json={"deleted": 1})
        return httpx.Response(405)


@pytest.fixture
def config() -> StockgridConfig:
    return StockgridConfig(
        base_url=BASE_URL,
        retry=RetryConfig(min_request_interval=0, max_retries=3, backoff=0, timeout=5),
        cache=CacheConfig(backend="memory"),
    )


@pytest.fixture
def router():
    with respx.mock(assert_all_called=False) as mock:
        yield mock


@pytest.fixture
def row_store(router) -> FakeRowStore:
    fake = FakeRowStore()
    router.route(host="rows.test").mock(side_effect=fake)
    return fake
