"""Tests for slantbridge.rest_api -- REST API wrapper (FastAPI)."""

from __future__ import annotations

import asyncio
import time

import httpx
import pytest
import responses
from fastapi.testclient import TestClient

from slantbridge.config import ProxyConfig
from slantbridge.orchestrator import OrderOrchestrator
from slantbridge.rest_api import API_PREFIX, RestApiConfig, create_app

from .conftest import CUSTOMER, ESTIMATE_RESPONSE, LARGE_SIZE, MODEL_URL, SMALL_SIZE, provider_url


@pytest.fixture()
def api(orchestrator: OrderOrchestrator) -> TestClient:
    return TestClient(create_app(RestApiConfig(), orchestrator))


# ---------------------------------------------------------------------------
# 1. RestApiConfig defaults
# ---------------------------------------------------------------------------


class TestRestApiConfig:
    def test_defaults(self, monkeypatch: pytest.MonkeyPatch):
        for name in ("SLANTBRIDGE_REST_HOST", "SLANTBRIDGE_REST_PORT", "SLANTBRIDGE_CORS_ORIGINS"):
            monkeypatch.delenv(name, raising=False)
        cfg = RestApiConfig()
        assert cfg.host == "127.0.0.1"
        assert cfg.port == 8430
        assert cfg.cors_origins == []
        assert cfg.request_timeout == 60.0

    def test_env(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("SLANTBRIDGE_REST_PORT", "9000")
        monkeypatch.setenv("SLANTBRIDGE_CORS_ORIGINS", "http://a.test, http://b.test")
        cfg = RestApiConfig()
        assert cfg.port == 9000
        assert cfg.cors_origins == ["http://a.test", "http://b.test"]


# ---------------------------------------------------------------------------
# 2. Routes
# ---------------------------------------------------------------------------


class TestHealth:
    def test_health(self, api: TestClient):
        resp = api.get("/api/health")
        assert resp.status_code == 200
        assert resp.json()["status"] == "ok"
        assert resp.json()["configured"] is True


class TestPricingRoute:
    @responses.activate
    def test_estimate(self, api: TestClient):
        responses.add(responses.HEAD, MODEL_URL, headers={"Content-Length": str(SMALL_SIZE)})
        responses.add(responses.POST, provider_url("/order/estimate"), json=ESTIMATE_RESPONSE)

        resp = api.post(f"{API_PREFIX}/pricing/estimate", json={"modelUrl": MODEL_URL, "options": {"color": "red"}})

        assert resp.status_code == 200
        body = resp.json()
        assert body["success"] is True
        assert body["data"]["pricing"]["total"] == 16.75

    def test_missing_url(self, api: TestClient):
        resp = api.post(f"{API_PREFIX}/pricing/estimate", json={"options": {}})
        assert resp.status_code == 400
        assert resp.json() == {"success": False, "error": "Model URL is required", "code": "VALIDATION_ERROR"}

    def test_non_object_body(self, api: TestClient):
        resp = api.post(f"{API_PREFIX}/pricing/estimate", json=["not", "an", "object"])
        assert resp.status_code == 400


class TestOrderRoute:
    @responses.activate
    def test_create(self, api: TestClient):
        responses.add(responses.HEAD, MODEL_URL, headers={"Content-Length": str(SMALL_SIZE)})
        responses.add(responses.POST, provider_url("/order"), json={"orderId": "sl-77"})

        resp = api.post(
            f"{API_PREFIX}/order",
            json={"modelUrl": MODEL_URL, "options": {}, "customerData": CUSTOMER},
        )

        assert resp.status_code == 200
        assert resp.json()["data"]["orderId"] == "sl-77"
        assert resp.json()["data"]["status"] == "created"

    @responses.activate
    def test_too_large(self, api: TestClient):
        responses.add(responses.HEAD, MODEL_URL, headers={"Content-Length": str(LARGE_SIZE)})

        resp = api.post(f"{API_PREFIX}/order", json={"modelUrl": MODEL_URL, "customerData": CUSTOMER})

        assert resp.status_code == 413
        assert resp.json()["code"] == "PAYLOAD_TOO_LARGE"
        assert resp.json()["success"] is False

    def test_blob_url(self, api: TestClient):
        resp = api.post(f"{API_PREFIX}/order", json={"modelUrl": "blob:http://localhost/abc"})
        assert resp.status_code == 400
        assert resp.json()["code"] == "UNSUPPORTED_SCHEME"

    def test_unconfigured_provider(self, unconfigured: ProxyConfig):
        api = TestClient(create_app(RestApiConfig(), OrderOrchestrator(unconfigured)))
        with responses.RequestsMock(assert_all_requests_are_fired=False) as rsps:
            rsps.add(responses.HEAD, MODEL_URL, headers={"Content-Length": "10"})
            resp = api.post(f"{API_PREFIX}/order", json={"modelUrl": MODEL_URL})
        assert resp.status_code == 503
        assert resp.json()["code"] == "SERVICE_MISCONFIGURED"


class TestPassThroughRoutes:
    @responses.activate
    def test_shipping(self, api: TestClient):
        responses.add(
            responses.POST,
            provider_url("/order/estimateShipping"),
            json={"shippingCost": 6.5, "currencyCode": "usd"},
        )
        resp = api.post(
            f"{API_PREFIX}/shipping/estimate",
            json={"modelUrl": MODEL_URL, "customerData": CUSTOMER},
        )
        assert resp.json()["data"] == {"shippingCost": 6.5, "currencyCode": "usd"}

    @responses.activate
    def test_tracking(self, api: TestClient):
        responses.add(responses.GET, provider_url("/order/sl-1/get-tracking"), json={"status": "shipped"})
        resp = api.get(f"{API_PREFIX}/order/sl-1/tracking")
        assert resp.json()["data"] == {"status": "shipped"}

    @responses.activate
    def test_orders(self, api: TestClient):
        responses.add(responses.GET, provider_url("/order/"), json=[{"orderId": "sl-1"}])
        resp = api.get(f"{API_PREFIX}/orders")
        assert resp.json()["data"] == [{"orderId": "sl-1"}]

    @responses.activate
    def test_cancel(self, api: TestClient):
        responses.add(responses.DELETE, provider_url("/order/sl-1"), json={"status": "cancelled"})
        resp = api.delete(f"{API_PREFIX}/order/sl-1")
        assert resp.status_code == 200
        assert resp.json()["data"] == {"status": "cancelled"}

    @responses.activate
    def test_provider_error_status(self, api: TestClient):
        responses.add(responses.GET, provider_url("/order/sl-1/get-tracking"), body="boom", status=500)
        resp = api.get(f"{API_PREFIX}/order/sl-1/tracking")
        assert resp.status_code == 500
        assert resp.json()["code"] == "UNKNOWN_PROVIDER_ERROR"


class TestUploadRoute:
    @responses.activate
    def test_upload(self, api: TestClient):
        responses.add(responses.HEAD, MODEL_URL, headers={"Content-Length": str(SMALL_SIZE)})
        resp = api.post(f"{API_PREFIX}/upload", json={"modelUrl": MODEL_URL})
        data = resp.json()["data"]
        assert data["modelUrl"] == MODEL_URL
        assert data["accessible"] is True


# ---------------------------------------------------------------------------
# 3. Concurrency
# ---------------------------------------------------------------------------


class _SlowOrchestrator(OrderOrchestrator):
    """Orchestrator whose provider calls block like a slow upstream."""

    delay = 0.5

    def list_orders(self, *, deadline=None):
        time.sleep(self.delay)
        return [{"orderId": "sl-1", "remaining": deadline.remaining()}]


class TestConcurrentRequests:
    def test_slow_calls_do_not_block_each_other(self, config: ProxyConfig):
        app = create_app(RestApiConfig(request_timeout=30.0), _SlowOrchestrator(config))

        async def fetch_all() -> list[httpx.Response]:
            transport = httpx.ASGITransport(app=app)
            async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as http:
                return await asyncio.gather(*(http.get(f"{API_PREFIX}/orders") for _ in range(4)))

        started = time.monotonic()
        results = asyncio.run(fetch_all())
        elapsed = time.monotonic() - started

        assert [r.status_code for r in results] == [200] * 4
        assert elapsed < 4 * _SlowOrchestrator.delay
        # Each request's deadline starts on arrival, not after the ones ahead of it.
        for resp in results:
            assert resp.json()["data"][0]["remaining"] > 29.0
