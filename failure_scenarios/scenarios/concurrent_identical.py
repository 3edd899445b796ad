"""
Concurrent identical requests scenario.

Fires 50 concurrent identical payments using asyncio.gather and counts
the unique payment ids and created (non-replay) responses.

Expected: 50 successful responses, one payment id, exactly one creation.
"""
from __future__ import annotations

import asyncio
import uuid

import httpx

from failure_scenarios import FailureResult

SCENARIO_NAME = "concurrent_identical"
CONCURRENCY = 50


async def run(base_url: str, service_name: str) -> FailureResult:
    """Execute concurrent identical requests scenario."""
    external_id = f"concurrent-{uuid.uuid4()}"
    payload = {"external_id": external_id, "amount": 3333}

    ids: list[int] = []
    status_codes: list[int] = []
    created = 0
    error: str | None = None

    async def send(client: httpx.AsyncClient) -> None:
        nonlocal created
        r = await client.post(f"{base_url}/payments", json=payload)
        status_codes.append(r.status_code)
        if r.status_code in (200, 201):
            ids.append(r.json()["id"])
            if r.headers.get("X-Idempotency-Replay") == "false":
                created += 1

    try:
        async with httpx.AsyncClient(timeout=15.0) as client:
            await asyncio.gather(*[send(client) for _ in range(CONCURRENCY)])
    except Exception as exc:
        error = str(exc)

    unique_ids = set(ids)
    correct = len(ids) == CONCURRENCY and len(unique_ids) == 1 and created <= 1

    return FailureResult(
        scenario_name=SCENARIO_NAME,
        service=service_name,
        expected_outcome=f"all {CONCURRENCY} concurrent requests return same payment id",
        actual_outcome=(
            f"unique_payment_ids={len(unique_ids)}, "
            f"successful_responses={len(ids)}, created={created}"
        ),
        correct=correct,
        details={
            "external_id": external_id,
            "unique_ids": sorted(unique_ids),
            "status_codes": status_codes,
        },
        error=error,
    )
