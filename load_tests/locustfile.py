"""
Locust load-test file for the payments service.

Usage:
    locust -f load_tests/locustfile.py --host http://localhost:8080

User classes:
- PaymentUser : normal payment creation traffic, one external_id per payment
- RetryUser   : client retry pattern (same external_id, 3 attempts)
- UserAdmin   : user creation and listing
"""
from __future__ import annotations

import random
import string
import uuid

from locust import HttpUser, between, events, task


def _random_name() -> str:
    return "user_" + "".join(random.choices(string.ascii_lowercase + string.digits, k=8))


def _payment_payload(external_id: str | None = None) -> dict:
    return {
        "external_id": external_id or f"load-{uuid.uuid4()}",
        "amount": random.randint(100, 99_999),
    }


class PaymentUser(HttpUser):
    """Creates a unique payment per task."""

    wait_time = between(0.1, 1.0)

    @task(10)
    def create_payment(self) -> None:
        self.client.post("/payments", json=_payment_payload(), name="/payments [POST]")

    @task(3)
    def get_health(self) -> None:
        self.client.get("/health", name="/health")


class RetryUser(HttpUser):
    """
    Retries the same payment up to 3 times with one external_id.
    All 3 responses must carry the same payment id.
    """

    wait_time = between(0.5, 2.0)

    @task
    def retry_payment(self) -> None:
        payload = _payment_payload()
        payment_ids: set[int] = set()

        for _ in range(3):
            with self.client.post(
                "/payments",
                json=payload,
                name="/payments [RETRY]",
                catch_response=True,
            ) as response:
                if response.status_code in (200, 201):
                    payment_ids.add(response.json()["id"])
                    response.success()
                else:
                    response.failure(f"Unexpected status {response.status_code}")

        if len(payment_ids) > 1:
            events.request.fire(
                request_type="IDEMPOTENCY_VIOLATION",
                name="retry_produces_duplicates",
                response_time=0,
                response_length=0,
                exception=ValueError(f"Multiple IDs: {payment_ids}"),
                context={},
            )


class UserAdmin(HttpUser):
    wait_time = between(0.5, 2.0)

    @task(3)
    def create_user(self) -> None:
        name = _random_name()
        self.client.post(
            "/users",
            json={"name": name, "email": f"{name}@example.com"},
            name="/users [POST]",
        )

    @task(1)
    def list_users(self) -> None:
        self.client.get("/users", name="/users [GET]")
