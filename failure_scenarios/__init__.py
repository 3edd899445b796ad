"""
Failure scenarios package.

Black-box checks run against a live payments service. Each scenario module
exposes ``SCENARIO_NAME`` and an async ``run(base_url, service_name)``
returning a ``FailureResult``.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass
class FailureResult:
    """Result of a single scenario run against a single service."""

    scenario_name: str
    service: str
    expected_outcome: str
    actual_outcome: str
    correct: bool
    details: dict[str, Any] = field(default_factory=dict)
    error: str | None = None
