"""
Client retry scenario.

Simulates a client that sends a payment, assumes the first response was
lost (network drop), then retries with the same external_id.

Expected: both attempts return the same payment id, and the retry is
flagged with X-Idempotency-Replay: true.
"""
from __future__ import annotations

import uuid

import httpx

from failure_scenarios import FailureResult

SCENARIO_NAME = "client_retry"


async def run(base_url: str, service_name: str) -> FailureResult:
    """Execute client retry scenario against `base_url`."""
    external_id = f"retry-{uuid.uuid4()}"
    payload = {"external_id": external_id, "amount": 2500}

    first_id: int | None = None
    second_id: int | None = None
    replay_header: str | None = None
    error: str | None = None

    try:
        async with httpx.AsyncClient(timeout=10.0) as client:
            r1 = await client.post(f"{base_url}/payments", json=payload)
            if r1.status_code in (200, 201):
                first_id = r1.json().get("id")

            # Simulate "response lost", retry immediately
            r2 = await client.post(f"{base_url}/payments", json=payload)
            if r2.status_code == 200:
                second_id = r2.json().get("id")
                replay_header = r2.headers.get("X-Idempotency-Replay")

    except Exception as exc:
        error = str(exc)

    correct = (
        first_id is not None
        and first_id == second_id
        and replay_header == "true"
    )

    return FailureResult(
        scenario_name=SCENARIO_NAME,
        service=service_name,
        expected_outcome="both attempts return same payment id, retry marked as replay",
        actual_outcome=f"first={first_id} second={second_id} replay={replay_header}",
        correct=correct,
        details={"external_id": external_id, "first_id": first_id, "second_id": second_id},
        error=error,
    )
