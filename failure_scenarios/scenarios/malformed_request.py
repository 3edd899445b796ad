"""
Malformed request scenario.

Bodies that cannot become a payment (bad JSON, missing fields, non-integer
amount) must be rejected with 400 and must not create rows.
"""
from __future__ import annotations

import httpx

from failure_scenarios import FailureResult

SCENARIO_NAME = "malformed_request"

BAD_BODIES: list[bytes] = [
    b"{not json",
    b'{"amount": 100}',
    b'{"external_id": "malformed-1"}',
    b'{"external_id": "malformed-2", "amount": "100"}',
    b'{"external_id": "", "amount": 100}',
]


async def run(base_url: str, service_name: str) -> FailureResult:
    status_codes: list[int] = []
    error: str | None = None

    try:
        async with httpx.AsyncClient(timeout=10.0) as client:
            for body in BAD_BODIES:
                r = await client.post(
                    f"{base_url}/payments",
                    content=body,
                    headers={"Content-Type": "application/json"},
                )
                status_codes.append(r.status_code)
    except Exception as exc:
        error = str(exc)

    return FailureResult(
        scenario_name=SCENARIO_NAME,
        service=service_name,
        expected_outcome=f"all {len(BAD_BODIES)} malformed bodies rejected with 400",
        actual_outcome=f"status_codes={status_codes}",
        correct=status_codes == [400] * len(BAD_BODIES),
        error=error,
    )
