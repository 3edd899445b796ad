"""Scenario modules run by ``failure_scenarios.runner``."""
from __future__ import annotations

from failure_scenarios.scenarios import (
    client_retry,
    concurrent_identical,
    independent_keys,
    malformed_request,
    user_roundtrip,
)

__all__ = [
    "client_retry",
    "concurrent_identical",
    "independent_keys",
    "malformed_request",
    "user_roundtrip",
]
