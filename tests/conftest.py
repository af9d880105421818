"""Shared fixtures for the slantbridge test suite."""

from __future__ import annotations

from typing import Any

import pytest

from slantbridge.client import ProviderClient
from slantbridge.config import ProxyConfig
from slantbridge.orchestrator import OrderOrchestrator
from slantbridge.probe import SizeProber

# ---------------------------------------------------------------------------
# Constants reused across tests
# ---------------------------------------------------------------------------

TEST_API_BASE = "https://api.slant.test/api"
TEST_API_KEY = "sl-test-key-123456"
MODEL_URL = "https://cdn.example.com/models/cat.stl"
SMALL_SIZE = 1_000_000
LARGE_SIZE = 5_000_000

ESTIMATE_RESPONSE: dict[str, Any] = {
    "printingCost": 12.5,
    "shippingCost": 4.25,
    "totalPrice": 16.75,
}

CUSTOMER: dict[str, Any] = {
    "name": "Ada Lovelace",
    "email": "ada@example.com",
    "phone": "555-010-0199",
    "address": "12 Analytical Way",
    "city": "Austin",
    "state": "TX",
    "zip": "73301",
    "country": "US",
}


def provider_url(path: str) -> str:
    return f"{TEST_API_BASE}{path}"


# ---------------------------------------------------------------------------
# Environment isolation
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch: pytest.MonkeyPatch, tmp_path) -> None:
    """Keep the developer's own Slant3D settings out of every test."""
    for name in (
        "SLANT3D_API_BASE",
        "SLANT3D_API_KEY",
        "SLANT3D_MAX_BYTES",
        "SLANTBRIDGE_PROBE_TIMEOUT",
        "SLANTBRIDGE_PROVIDER_TIMEOUT",
        "SLANTBRIDGE_RETRY_ATTEMPTS",
        "SLANTBRIDGE_LOG_DIR",
        "SLANTBRIDGE_LOG_LEVEL",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("SLANTBRIDGE_CONFIG", str(tmp_path / "missing-config.yaml"))


# ---------------------------------------------------------------------------
# Component fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def config() -> ProxyConfig:
    """Configured proxy with zero retry backoff to keep tests fast."""
    return ProxyConfig(api_base=TEST_API_BASE, api_key=TEST_API_KEY, retry_backoff=0.0)


@pytest.fixture()
def unconfigured() -> ProxyConfig:
    return ProxyConfig(api_base=TEST_API_BASE, api_key="", retry_backoff=0.0)


@pytest.fixture()
def client(config: ProxyConfig) -> ProviderClient:
    return ProviderClient(config)


@pytest.fixture()
def prober(config: ProxyConfig) -> SizeProber:
    return SizeProber(config)


@pytest.fixture()
def orchestrator(config: ProxyConfig) -> OrderOrchestrator:
    return OrderOrchestrator(config)
