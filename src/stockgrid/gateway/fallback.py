# SPDX-License-Identifier: Apache-2.0
"""
Fallback State Machine

Tracks whether the process talks to the remote row store or serves from the
local durable cache. Unlike a circuit breaker there is no recovery path:

- REMOTE: normal operation, requests go to the remote store
- FALLBACK: terminal for the process lifetime, everything is served locally

Recovery requires a process restart.
"""

import logging
from enum import Enum
from threading import Lock
from time import time
from typing import Optional

logger = logging.getLogger(__name__)


class OperatingMode(Enum):
    """Fallback states"""
    REMOTE = "remote"
    FALLBACK = "fallback"


class FallbackState:
    """
    One-directional REMOTE -> FALLBACK switch.

    The first `enter()` call wins: its reason is kept and later calls are no-ops.
    """

    def __init__(self):
        self._mode = OperatingMode.REMOTE
        self._reason = ""
        self._entered_at: Optional[float] = None
        self._lock = Lock()

    @property
    def mode(self) -> OperatingMode:
        return self._mode

    @property
    def is_fallback(self) -> bool:
        return self._mode is OperatingMode.FALLBACK

    @property
    def reason(self) -> str:
        return self._reason

    @property
    def entered_at(self) -> Optional[float]:
        """Epoch seconds of the transition, None while in REMOTE mode"""
        return self._entered_at

    def enter(self, reason: str) -> bool:
        """
        Switch to FALLBACK mode

        Returns:
            bool: True if this call performed the transition
        """
        with self._lock:
            if self._mode is OperatingMode.FALLBACK:
                return False
            self._mode = OperatingMode.FALLBACK
            self._reason = reason
            self._entered_at = time()
        logger.warning("Switching to local storage fallback: %s", reason)
        return True
