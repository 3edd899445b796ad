"""
Independent keys scenario.

Two payments with different external_ids must produce two distinct rows.
"""
from __future__ import annotations

import uuid

import httpx

from failure_scenarios import FailureResult

SCENARIO_NAME = "independent_keys"


async def run(base_url: str, service_name: str) -> FailureResult:
    prefix = uuid.uuid4().hex[:8]
    ids: list[int] = []
    error: str | None = None

    try:
        async with httpx.AsyncClient(timeout=10.0) as client:
            for suffix in ("a", "b"):
                r = await client.post(
                    f"{base_url}/payments",
                    json={"external_id": f"indep-{prefix}-{suffix}", "amount": 100},
                )
                if r.status_code in (200, 201):
                    ids.append(r.json()["id"])
    except Exception as exc:
        error = str(exc)

    return FailureResult(
        scenario_name=SCENARIO_NAME,
        service=service_name,
        expected_outcome="two external_ids create two distinct payments",
        actual_outcome=f"ids={ids}",
        correct=len(ids) == 2 and ids[0] != ids[1],
        details={"prefix": prefix},
        error=error,
    )
