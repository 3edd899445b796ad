"""
User round-trip scenario.

A user created through POST /users must appear in GET /users.
"""
from __future__ import annotations

import uuid

import httpx

from failure_scenarios import FailureResult

SCENARIO_NAME = "user_roundtrip"


async def run(base_url: str, service_name: str) -> FailureResult:
    email = f"{uuid.uuid4().hex[:8]}@example.com"
    created: dict | None = None
    listed = False
    error: str | None = None

    try:
        async with httpx.AsyncClient(timeout=10.0) as client:
            r = await client.post(
                f"{base_url}/users", json={"name": "Scenario User", "email": email}
            )
            if r.status_code == 200:
                created = r.json()
                users = (await client.get(f"{base_url}/users")).json()
                listed = created in users
    except Exception as exc:
        error = str(exc)

    return FailureResult(
        scenario_name=SCENARIO_NAME,
        service=service_name,
        expected_outcome="created user is listed by GET /users",
        actual_outcome=f"created={created} listed={listed}",
        correct=listed,
        details={"email": email},
        error=error,
    )
