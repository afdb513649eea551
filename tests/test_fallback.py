# SPDX-License-Identifier: Apache-2.0
"""Tests for the one-way REMOTE -> FALLBACK switch."""

from stockgrid.gateway.fallback import FallbackState, OperatingMode


def test_starts_in_remote_mode():
    state = FallbackState()

    assert state.mode is OperatingMode.REMOTE
    assert not state.is_fallback
    assert state.reason == ""
    assert state.entered_at is None


def test_enter_switches_once_and_keeps_first_reason(caplog):
    state = FallbackState()

    assert state.enter("API limit exceeded - using local storage") is True
    assert state.enter("Sheet access error - using local storage") is False

    assert state.is_fallback
    assert state.mode is OperatingMode.FALLBACK
    assert state.reason == "API limit exceeded - using local storage"
    assert state.entered_at is not None
    assert sum("Switching to local storage fallback" in r.message for r in caplog.records) == 1
