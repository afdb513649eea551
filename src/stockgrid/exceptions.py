# SPDX-License-Identifier: Apache-2.0
"""File: src/stockgrid/exceptions.py

Project: stockgrid

Description:
    Central exception taxonomy for the warehouse sync layer.
    Provides a clear hierarchy, standardized error reporting via RFC 7807 Problem
    Details, and diagnostic context (error id, timestamp).

    Retriable errors (server error, transient parse, network failure) are only
    ever seen inside the request client; callers see the terminal outcome.

"""

from __future__ import annotations

import secrets
import time
from typing import Any, Dict, Optional


class StockgridError(Exception):
    """Base exception for all application-specific errors in stockgrid."""

    def __init__(
        self, message: str, status_code: int = 500, error_code: Optional[str] = None
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.error_code = error_code or self.__class__.__name__
        self.error_id = f"err_{secrets.token_hex(8)}"
        self.timestamp = time.time()

    def to_problem_detail(self) -> Dict[str, Any]:
        """Generates an RFC 7807-compliant Problem Details dictionary."""
        return {
            "type": f"urn:stockgrid:errors:{self.error_code}",
            "title": self.error_code,
            "status": self.status_code,
            "detail": self.message,
            "instance": self.error_id,
        }

    def __str__(self) -> str:
        return f"{self.error_code}: {self.message} (ID: {self.error_id})"


# --- Configuration & State Errors ---

class ConfigurationError(StockgridError):
    """Raised when a required configuration is missing or invalid."""

    def __init__(self, message: str) -> None:
        super().__init__(message, status_code=500, error_code="ConfigurationError")


class InvalidMutationError(ValueError, StockgridError):
    """Raised when a grid mutation carries invalid data (blank code, bad quantity)."""

    def __init__(self, message: str) -> None:
        # Note: StockgridError is not called with super() here because of MRO with ValueError
        StockgridError.__init__(self, message, status_code=422, error_code="InvalidMutationError")


class NotFoundError(KeyError, StockgridError):
    """Raised when a referenced item id (or reference code) does not exist."""

    def __init__(self, key: str, what: str = "Item") -> None:
        message = f"{what} '{key}' not found."
        StockgridError.__init__(self, message, status_code=404, error_code="NotFoundError")
        self.key = key

    def __str__(self) -> str:
        return StockgridError.__str__(self)


class UnavailableError(StockgridError):
    """Raised when the remote store is bypassed (fallback active) or the local cache failed."""

    def __init__(self, reason: str) -> None:
        super().__init__(f"API unavailable: {reason}", status_code=503, error_code="UnavailableError")
        self.reason = reason


# --- Remote store errors ---

class RemoteStoreError(StockgridError):
    """Base exception for errors talking to the remote row store."""

    def __init__(
        self, message: str, status_code: int = 502, response_status: Optional[int] = None
    ) -> None:
        super().__init__(message, status_code)
        self.response_status = response_status

    def to_problem_detail(self) -> Dict[str, Any]:
        problem = super().to_problem_detail()
        if self.response_status is not None:
            problem["upstream_status"] = self.response_status
        return problem


class QuotaExceededError(RemoteStoreError):
    """Raised on HTTP 402/429 from the remote store. Switches the process to fallback."""

    def __init__(self, response_status: int) -> None:
        super().__init__("API limit exceeded", status_code=429, response_status=response_status)


class BadRequestError(RemoteStoreError):
    """Raised on a non-quota 4xx. Usually a misconfigured resource name."""

    def __init__(self, response_status: int, body: str, resource: Optional[str] = None) -> None:
        message = f"Bad request - possibly incorrect resource name {resource!r}: {body}"
        super().__init__(message, status_code=400, response_status=response_status)
        self.body = body
        self.resource = resource


class RetriableError(RemoteStoreError):
    """Marker base for failures the request client retries."""


class ServerError(RetriableError):
    """Raised on a 5xx from the remote store."""

    def __init__(self, response_status: int, body: str = "") -> None:
        super().__init__(
            f"Server error - please try again later (HTTP {response_status})",
            response_status=response_status,
        )
        self.body = body


class TransientParseError(RetriableError):
    """Raised when a JSON body was expected but is malformed or empty."""

    def __init__(self, detail: str) -> None:
        super().__init__(f"Invalid JSON response: {detail}")


class NetworkFailure(RetriableError):
    """Raised when the HTTP transport fails (connect, read, DNS...)."""

    def __init__(self, detail: str) -> None:
        super().__init__(f"Network failure: {detail}", status_code=503)


class RequestFailedError(RemoteStoreError):
    """Raised when a call still fails after every retry."""

    def __init__(self, attempts: int, cause: Optional[BaseException] = None) -> None:
        super().__init__(f"Request failed after {attempts} attempts: {cause}")
        self.attempts = attempts
        self.cause = cause
