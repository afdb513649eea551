# SPDX-License-Identifier: Apache-2.0
"""File: src/stockgrid/clients/sheet_client.py

Project: stockgrid

Description:
    Rate-limited async client for the spreadsheet-style row store
    (`{base}/{resource}`, JSON array-of-row-object bodies).

    - Minimum spacing between consecutive outbound calls; early calls wait.
    - Quota responses (402/429) switch the process to fallback mode.
    - Server errors, malformed JSON and transport failures are retried with
      linear backoff (tenacity); exhaustion raises RequestFailedError.
    - Other 4xx raise BadRequestError immediately.
    - With fallback already active, calls short-circuit with UnavailableError.

"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from typing import Any, Awaitable, Callable, Optional

import httpx
from opentelemetry import trace
from tenacity import (
    AsyncRetrying,
    RetryError,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_incrementing,
)

from stockgrid.config import RetryConfig
from stockgrid.exceptions import (
    BadRequestError,
    NetworkFailure,
    QuotaExceededError,
    RequestFailedError,
    RetriableError,
    ServerError,
    TransientParseError,
    UnavailableError,
)
from stockgrid.gateway.fallback import FallbackState

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

QUOTA_STATUSES = frozenset({402, 429})
QUOTA_REASON = "API limit exceeded - using local storage"


class SheetClient:
    """Client for the remote row store"""

    def __init__(
        self,
        base_url: str,
        fallback: FallbackState,
        *,
        retry: Optional[RetryConfig] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.base_url = base_url.rstrip("/")
        self.fallback = fallback
        self.retry = retry or RetryConfig()
        self._owns_client = http_client is None
        self.http_client = http_client or httpx.AsyncClient(
            headers={"Content-Type": "application/json"},
            timeout=httpx.Timeout(self.retry.timeout),
        )
        # used for request spacing and retry waits
        self._sleep = sleep
        self._lock = asyncio.Lock()
        self._last_request_at: Optional[float] = None

    def url_for(self, resource: str) -> str:
        return f"{self.base_url}/{resource}"

    async def request(self, method: str, resource: str, body: Any = None) -> Any:
        """
        Issue one logical call, retrying transient failures.

        Args:
            method: HTTP method (GET, POST, PUT, DELETE)
            resource: Resource (sheet) name appended to the base URL
            body: JSON-serializable body, or None

        Returns:
            Parsed JSON response ({} for empty write responses)
        """
        attempts = self.retry.max_retries + 1
        retrying = AsyncRetrying(
            stop=stop_after_attempt(attempts),
            wait=wait_incrementing(start=self.retry.backoff, increment=self.retry.backoff),
            retry=retry_if_exception_type(RetriableError),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            sleep=self._sleep,
        )
        try:
            async for attempt in retrying:
                with attempt:
                    return await self._send_once(method, resource, body)
        except RetryError as e:
            cause = e.last_attempt.exception()
            logger.error("%s %s failed after %d attempts: %s", method, resource, attempts, cause)
            raise RequestFailedError(attempts, cause) from cause

    async def probe(self, resource: str) -> bool:
        """Single GET without retry; True when the resource answers with 2xx."""
        async with self._lock:
            await self._respect_spacing()
            try:
                response = await self.http_client.get(self.url_for(resource))
            except httpx.HTTPError as e:
                logger.info("Resource name %r failed: %s", resource, e)
                return False
        if response.is_success:
            logger.info("Found resource name: %s", resource)
            return True
        logger.info("Resource name %r answered HTTP %s", resource, response.status_code)
        return False

    async def aclose(self) -> None:
        if self._owns_client:
            await self.http_client.aclose()

    async def _respect_spacing(self) -> None:
        # caller holds self._lock
        if self._last_request_at is not None:
            elapsed = time.monotonic() - self._last_request_at
            remaining = self.retry.min_request_interval - elapsed
            if remaining > 0:
                await self._sleep(remaining)
        self._last_request_at = time.monotonic()

    async def _send_once(self, method: str, resource: str, body: Any) -> Any:
        if self.fallback.is_fallback:
            raise UnavailableError(self.fallback.reason)

        url = self.url_for(resource)
        with tracer.start_as_current_span("sheet_client.request") as span:
            span.set_attribute("http.method", method)
            span.set_attribute("stockgrid.resource", resource)
            async with self._lock:
                await self._respect_spacing()
                logger.debug("Row store request: %s %s", method, url)
                try:
                    response = await self.http_client.request(
                        method,
                        url,
                        content=None if body is None else json.dumps(body, ensure_ascii=False).encode("utf-8"),
                        headers={"Content-Type": "application/json"},
                    )
                except httpx.TransportError as e:
                    raise NetworkFailure(str(e) or e.__class__.__name__) from e
            span.set_attribute("http.status_code", response.status_code)
            logger.debug("Row store response: %s %s", response.status_code, response.reason_phrase)
            return self._handle_response(method, resource, response)

    def _handle_response(self, method: str, resource: str, response: httpx.Response) -> Any:
        status = response.status_code
        if status in QUOTA_STATUSES:
            self.fallback.enter(QUOTA_REASON)
            raise QuotaExceededError(status)
        if status >= 500:
            raise ServerError(status, response.text)
        if status >= 400:
            logger.warning("Row store rejected %s %s: HTTP %s %s", method, resource, status, response.text)
            raise BadRequestError(status, response.text, resource)

        content_type = response.headers.get("content-type", "")
        if "application/json" not in content_type:
            return {}
        text = response.text
        if not text.strip():
            if method.upper() == "GET":
                raise TransientParseError("empty body")
            return {}
        try:
            return json.loads(text)
        except json.JSONDecodeError as e:
            raise TransientParseError(str(e)) from e
