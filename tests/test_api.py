"""HTTP surface: payments, users, errors, health and metrics."""
from __future__ import annotations

import asyncio
import dataclasses

import httpx
import pytest
from structlog.testing import capture_logs

from payments_service.api.main import create_app
from payments_service.shared.database import create_engine
from tests.conftest import count_payments


class TestPaymentsEndpoint:
    async def test_create_payment(self, client):
        r = await client.post("/payments", json={"external_id": "abc", "amount": 1000})

        assert r.status_code == 200
        assert r.json() == {"id": 1, "external_id": "abc", "amount": 1000, "status": "SUCCESS"}
        assert r.headers["X-Idempotency-Replay"] == "false"

    async def test_repeat_returns_same_payment(self, client, session_factory):
        payload = {"external_id": "abc", "amount": 1000}
        first = await client.post("/payments", json=payload)
        second = await client.post("/payments", json=payload)

        assert second.status_code == 200
        assert second.json() == first.json()
        assert second.json()["id"] == 1
        assert second.headers["X-Idempotency-Replay"] == "true"
        assert await count_payments(session_factory, "abc") == 1

    async def test_distinct_external_ids(self, client):
        one = await client.post("/payments", json={"external_id": "ext-1", "amount": 1})
        two = await client.post("/payments", json={"external_id": "ext-2", "amount": 2})

        assert one.json()["id"] != two.json()["id"]

    async def test_fifty_concurrent_requests(self, client, session_factory):
        payload = {"external_id": "ext-X", "amount": 700}

        responses = await asyncio.gather(
            *[client.post("/payments", json=payload) for _ in range(50)]
        )

        assert [r.status_code for r in responses] == [200] * 50
        assert len({r.json()["id"] for r in responses}) == 1
        replays = [r.headers["X-Idempotency-Replay"] for r in responses]
        assert replays.count("false") == 1
        assert await count_payments(session_factory, "ext-X") == 1

    async def test_created_status_is_configurable(self, settings, engine):
        app = create_app(dataclasses.replace(settings, payment_created_status=201), engine=engine)
        transport = httpx.ASGITransport(app=app)
        async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
            payload = {"external_id": "ext-201", "amount": 5}
            first = await client.post("/payments", json=payload)
            second = await client.post("/payments", json=payload)

        assert first.status_code == 201
        assert second.status_code == 200

    @pytest.mark.parametrize(
        "body",
        [
            b"{not json",
            b"[]",
            b'{"amount": 100}',
            b'{"external_id": "x"}',
            b'{"external_id": "x", "amount": "100"}',
            b'{"external_id": "x", "amount": 10.5}',
            b'{"external_id": "x", "amount": 18446744073709551616}',
            b'{"external_id": "x", "amount": -9223372036854775809}',
            b'{"external_id": "", "amount": 100}',
            b'{"external_id": 42, "amount": 100}',
        ],
    )
    async def test_malformed_body_is_400(self, client, body):
        r = await client.post(
            "/payments", content=body, headers={"Content-Type": "application/json"}
        )

        assert r.status_code == 400
        assert r.json()["error"] == "invalid_request"

    async def test_amount_bounds_are_400(self, settings, engine):
        bounded = dataclasses.replace(settings, payment_min_amount=1)
        transport = httpx.ASGITransport(app=create_app(bounded, engine=engine))
        async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
            r = await client.post("/payments", json={"external_id": "neg", "amount": 0})

        assert r.status_code == 400
        assert r.json() == {"error": "invalid_request", "detail": "amount must be at least 1"}

    async def test_get_payment(self, client):
        created = (await client.post("/payments", json={"external_id": "g", "amount": 9})).json()

        r = await client.get(f"/payments/{created['id']}")

        assert r.status_code == 200
        assert r.json() == created

    async def test_get_missing_payment_is_404(self, client):
        r = await client.get("/payments/999")

        assert r.status_code == 404
        assert r.json()["error"] == "not_found"


class TestUsersEndpoint:
    async def test_empty_list(self, client):
        r = await client.get("/users")

        assert r.status_code == 200
        assert r.json() == []

    async def test_create_then_list(self, client):
        r = await client.post("/users", json={"name": "Ana", "email": "a@x.com"})

        assert r.status_code == 200
        assert r.json() == {"id": 1, "name": "Ana", "email": "a@x.com"}

        listed = await client.get("/users")
        assert listed.json() == [{"id": 1, "name": "Ana", "email": "a@x.com"}]

    async def test_email_is_not_unique(self, client):
        for name in ("Ana", "Bea"):
            r = await client.post("/users", json={"name": name, "email": "shared@x.com"})
            assert r.status_code == 200

        assert len((await client.get("/users")).json()) == 2

    async def test_missing_field_is_400(self, client):
        r = await client.post("/users", json={"name": "Ana"})

        assert r.status_code == 400
        assert r.json()["error"] == "invalid_request"


class TestStoreOutage:
    @pytest.fixture()
    async def down_client(self, unreachable_settings):
        engine = create_engine(unreachable_settings)
        app = create_app(unreachable_settings, engine=engine)
        transport = httpx.ASGITransport(app=app)
        async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
            yield client
        await engine.dispose()

    @pytest.mark.parametrize(
        "method, path, body",
        [
            ("GET", "/users", None),
            ("POST", "/users", {"name": "Ana", "email": "a@x.com"}),
            ("POST", "/payments", {"external_id": "abc", "amount": 1}),
            ("GET", "/payments/1", None),
        ],
    )
    async def test_store_failure_is_500(self, down_client, method, path, body):
        r = await down_client.request(method, path, json=body)

        assert r.status_code == 500
        assert r.json()["error"] == "store_unavailable"


class TestOperationalEndpoints:
    async def test_health(self, client):
        r = await client.get("/health")
        assert r.json() == {"status": "ok", "service": "payments"}

    async def test_metrics_count_outcomes(self, client):
        payload = {"external_id": "metrics", "amount": 1}
        await client.post("/payments", json=payload)
        await client.post("/payments", json=payload)

        r = await client.get("/metrics/")

        assert r.status_code == 200
        assert 'payments_total{outcome="created"}' in r.text
        assert 'payments_total{outcome="already_exists"}' in r.text

    async def test_requests_are_logged(self, client):
        with capture_logs() as logs:
            await client.get("/health")

        entries = [e for e in logs if e["event"] == "http_request"]
        assert len(entries) == 1
        assert entries[0]["method"] == "GET"
        assert entries[0]["path"] == "/health"
        assert entries[0]["status"] == 200
        assert "latency_ms" in entries[0]
