"""Tests for slantbridge.client.ProviderClient."""

from __future__ import annotations

import json

import pytest
import responses
from requests.exceptions import ConnectionError, Timeout

from slantbridge.client import NOT_CONFIGURED_MESSAGE, ProviderClient
from slantbridge.config import ProxyConfig
from slantbridge.deadline import Deadline
from slantbridge.errors import ProviderError
from slantbridge.models import Intent
from slantbridge.normalize import normalize

from .conftest import ESTIMATE_RESPONSE, MODEL_URL, TEST_API_KEY, provider_url


@pytest.fixture()
def payload():
    return normalize({"color": "red"}, None, MODEL_URL, Intent.ESTIMATE)


# ===================================================================
# Request shape
# ===================================================================


class TestRequestShape:
    @responses.activate
    def test_api_key_header_and_single_element_array(self, client: ProviderClient, payload):
        responses.add(responses.POST, provider_url("/order/estimate"), json=ESTIMATE_RESPONSE, status=200)

        result = client.estimate(payload)

        assert result == ESTIMATE_RESPONSE
        request = responses.calls[0].request
        assert request.headers["api-key"] == TEST_API_KEY
        assert request.headers["Content-Type"] == "application/json"
        body = json.loads(request.body)
        assert isinstance(body, list) and len(body) == 1
        assert body[0]["order_item_color"] == "red"
        assert body[0]["fileURL"] == MODEL_URL

    @responses.activate
    def test_tracking_path(self, client: ProviderClient):
        responses.add(responses.GET, provider_url("/order/abc123/get-tracking"), json={"status": "shipped"})
        assert client.get_tracking("abc123") == {"status": "shipped"}

    @responses.activate
    def test_order_id_is_path_escaped(self, client: ProviderClient):
        responses.add(responses.DELETE, provider_url("/order/a%2Fb"), json={"status": "cancelled"})
        assert client.cancel_order("a/b") == {"status": "cancelled"}

    @responses.activate
    def test_list_orders_path(self, client: ProviderClient):
        responses.add(responses.GET, provider_url("/order/"), json=[{"orderId": "1"}])
        assert client.list_orders() == [{"orderId": "1"}]

    @responses.activate
    def test_non_json_success_body(self, client: ProviderClient):
        responses.add(responses.DELETE, provider_url("/order/42"), body="OK", status=200)
        assert client.cancel_order("42") == {"status": "ok"}


# ===================================================================
# Failures
# ===================================================================


class TestFailures:
    def test_missing_key_fails_before_any_request(self, unconfigured: ProxyConfig, payload):
        client = ProviderClient(unconfigured)
        with responses.RequestsMock() as rsps:
            with pytest.raises(ProviderError) as exc_info:
                client.estimate(payload)
            assert len(rsps.calls) == 0
        assert exc_info.value.code == "NOT_CONFIGURED"
        assert str(exc_info.value) == NOT_CONFIGURED_MESSAGE

    @responses.activate
    def test_non_2xx_carries_status_and_body(self, client: ProviderClient, payload):
        responses.add(
            responses.POST,
            provider_url("/order"),
            body='{"error": "order_item_color must be one of enum values"}',
            status=400,
        )

        with pytest.raises(ProviderError) as exc_info:
            client.create_order(payload)

        exc = exc_info.value
        assert exc.status == 400
        assert exc.code == "HTTP_400"
        assert "order_item_color" in exc.body
        assert str(exc).startswith("Slant3D API error: 400 - ")

    @responses.activate
    def test_timeout(self, client: ProviderClient):
        responses.add(responses.POST, provider_url("/order"), body=Timeout("slow"))
        with pytest.raises(ProviderError) as exc_info:
            client.call("/order", "POST", [], idempotent=False)
        assert exc_info.value.code == "TIMEOUT"

    @responses.activate
    def test_connection_error(self, client: ProviderClient):
        responses.add(responses.POST, provider_url("/order"), body=ConnectionError("refused"))
        with pytest.raises(ProviderError) as exc_info:
            client.call("/order", "POST", [], idempotent=False)
        assert exc_info.value.code == "CONNECTION_ERROR"

    def test_expired_deadline(self, client: ProviderClient, payload):
        with responses.RequestsMock() as rsps:
            with pytest.raises(ProviderError) as exc_info:
                client.estimate(payload, deadline=Deadline(0.0))
            assert len(rsps.calls) == 0
        assert exc_info.value.code == "DEADLINE_EXCEEDED"

    @responses.activate
    def test_provider_timeout_applied(self, client: ProviderClient, payload):
        responses.add(responses.POST, provider_url("/order/estimate"), json=ESTIMATE_RESPONSE)
        client.estimate(payload)
        assert responses.calls[0].request.req_kwargs["timeout"] == 30.0

    @responses.activate
    def test_live_deadline_clips_timeout(self, client: ProviderClient, payload):
        responses.add(responses.POST, provider_url("/order/estimate"), json=ESTIMATE_RESPONSE)
        client.estimate(payload, deadline=Deadline.after(2.0))
        assert 0.0 < responses.calls[0].request.req_kwargs["timeout"] <= 2.0


# ===================================================================
# Retry
# ===================================================================


class TestRetry:
    @responses.activate
    def test_estimate_retried_once_on_503(self, client: ProviderClient, payload):
        responses.add(responses.POST, provider_url("/order/estimate"), body="unavailable", status=503)
        responses.add(responses.POST, provider_url("/order/estimate"), json=ESTIMATE_RESPONSE, status=200)

        assert client.estimate(payload) == ESTIMATE_RESPONSE
        assert len(responses.calls) == 2

    @responses.activate
    def test_estimate_gives_up_after_one_retry(self, client: ProviderClient, payload):
        responses.add(responses.POST, provider_url("/order/estimate"), body="unavailable", status=503)

        with pytest.raises(ProviderError):
            client.estimate(payload)
        assert len(responses.calls) == 2

    @responses.activate
    def test_order_creation_never_retried(self, client: ProviderClient, payload):
        responses.add(responses.POST, provider_url("/order"), body="unavailable", status=503)

        with pytest.raises(ProviderError):
            client.create_order(payload)
        assert len(responses.calls) == 1

    @responses.activate
    def test_cancel_never_retried(self, client: ProviderClient):
        responses.add(responses.DELETE, provider_url("/order/42"), body=ConnectionError("reset"))

        with pytest.raises(ProviderError):
            client.cancel_order("42")
        assert len(responses.calls) == 1

    @responses.activate
    def test_client_errors_not_retried(self, client: ProviderClient, payload):
        responses.add(responses.POST, provider_url("/order/estimate"), body="bad", status=400)

        with pytest.raises(ProviderError):
            client.estimate(payload)
        assert len(responses.calls) == 1

    @responses.activate
    def test_retry_disabled_by_config(self, payload):
        client = ProviderClient(ProxyConfig(api_base=provider_url(""), api_key="k", retry_attempts=0))
        responses.add(responses.POST, provider_url("/order/estimate"), body="unavailable", status=503)

        with pytest.raises(ProviderError):
            client.estimate(payload)
        assert len(responses.calls) == 1
