"""Configuration for the fulfillment proxy.

The provider base URL, API key, size threshold and network timeouts are
resolved once at startup into an immutable :class:`ProxyConfig` that is
injected into :class:`~slantbridge.client.ProviderClient`,
:class:`~slantbridge.probe.SizeProber` and
:class:`~slantbridge.orchestrator.OrderOrchestrator`.  Nothing reads the
environment ad hoc after that.

Precedence (highest first):
    1. Explicit keyword arguments to :func:`load_config`
    2. Environment variables (``SLANT3D_API_KEY``, etc.)
    3. Config file (``~/.slantbridge/config.yaml`` or ``SLANTBRIDGE_CONFIG``)
    4. Built-in defaults

Environment variables
---------------------
``SLANT3D_API_BASE``
    Base URL of the Slant3D API.
``SLANT3D_API_KEY``
    API key sent in the ``api-key`` header.  A missing key is not fatal:
    provider calls fail with ``SERVICE_MISCONFIGURED`` (503).
``SLANT3D_MAX_BYTES``
    Hard size limit for model assets, in bytes.
``SLANTBRIDGE_PROBE_TIMEOUT`` / ``SLANTBRIDGE_PROVIDER_TIMEOUT``
    Per-request timeouts in seconds.
``SLANTBRIDGE_RETRY_ATTEMPTS``
    Extra attempts for idempotent provider calls (0 or 1).
"""

from __future__ import annotations

import logging
import os
import re
from dataclasses import asdict, dataclass, replace
from pathlib import Path
from typing import Any

import yaml

from slantbridge import parse_float_env, parse_int_env

logger = logging.getLogger(__name__)

DEFAULT_API_BASE = "https://www.slant3dapi.com/api"
# Largest file the provider accepts in practice; its "offset out of range"
# errors start just above this.
DEFAULT_MAX_BYTES = 4_348_596
DEFAULT_PROBE_TIMEOUT = 10.0
DEFAULT_PROVIDER_TIMEOUT = 30.0
DEFAULT_RETRY_ATTEMPTS = 1
DEFAULT_RETRY_BACKOFF = 0.5
MAX_RETRY_ATTEMPTS = 1

_FILE_KEYS: tuple[str, ...] = (
    "api_base",
    "api_key",
    "max_bytes",
    "probe_timeout",
    "provider_timeout",
    "retry_attempts",
    "retry_backoff",
)


@dataclass(frozen=True)
class ProxyConfig:
    """Resolved proxy configuration."""

    api_base: str = DEFAULT_API_BASE
    api_key: str = ""
    max_bytes: int = DEFAULT_MAX_BYTES
    probe_timeout: float = DEFAULT_PROBE_TIMEOUT
    provider_timeout: float = DEFAULT_PROVIDER_TIMEOUT
    retry_attempts: int = DEFAULT_RETRY_ATTEMPTS
    retry_backoff: float = DEFAULT_RETRY_BACKOFF

    def __post_init__(self) -> None:
        object.__setattr__(self, "api_base", _normalize_base(self.api_base))
        object.__setattr__(
            self,
            "retry_attempts",
            max(0, min(int(self.retry_attempts), MAX_RETRY_ATTEMPTS)),
        )

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    def with_overrides(self, **changes: Any) -> ProxyConfig:
        return replace(self, **{k: v for k, v in changes.items() if v is not None})

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["api_key"] = "***" if self.api_key else ""
        return data

    def __repr__(self) -> str:
        return (
            f"ProxyConfig(api_base={self.api_base!r}, configured={self.is_configured}, "
            f"max_bytes={self.max_bytes})"
        )


def get_config_path() -> Path:
    """Return the config file path (``SLANTBRIDGE_CONFIG`` or ``~/.slantbridge/config.yaml``)."""
    explicit = os.environ.get("SLANTBRIDGE_CONFIG", "").strip()
    if explicit:
        return Path(explicit).expanduser()
    return Path.home() / ".slantbridge" / "config.yaml"


def _normalize_base(url: str) -> str:
    url = (url or DEFAULT_API_BASE).strip()
    if not re.match(r"^https?://", url, re.IGNORECASE):
        url = "https://" + url
    return url.rstrip("/")


def _load_config_file(config_path: Path) -> dict[str, Any]:
    """Read and parse a YAML config file, returning an empty dict on any failure."""
    if not config_path.is_file():
        return {}
    try:
        with config_path.open("r", encoding="utf-8") as fh:
            data = yaml.safe_load(fh)
    except (yaml.YAMLError, OSError) as exc:
        logger.warning("Ignoring unreadable config file %s: %s", config_path, exc)
        return {}
    if not isinstance(data, dict):
        return {}
    # Allow the settings to live under a "slant3d" section.
    section = data.get("slant3d", data)
    if not isinstance(section, dict):
        return {}
    return {k: section[k] for k in _FILE_KEYS if section.get(k) is not None}


def load_config(
    *,
    api_base: str | None = None,
    api_key: str | None = None,
    max_bytes: int | None = None,
    probe_timeout: float | None = None,
    provider_timeout: float | None = None,
    retry_attempts: int | None = None,
    config_path: str | Path | None = None,
) -> ProxyConfig:
    """Resolve a :class:`ProxyConfig` from arguments, environment and file."""
    path = Path(config_path) if config_path else get_config_path()
    values: dict[str, Any] = _load_config_file(path)

    env_base = os.environ.get("SLANT3D_API_BASE", "").strip()
    if env_base:
        values["api_base"] = env_base
    env_key = os.environ.get("SLANT3D_API_KEY", "").strip()
    if env_key:
        values["api_key"] = env_key

    values["max_bytes"] = parse_int_env(
        "SLANT3D_MAX_BYTES", _as_int(values.get("max_bytes"), DEFAULT_MAX_BYTES)
    )
    values["probe_timeout"] = parse_float_env(
        "SLANTBRIDGE_PROBE_TIMEOUT", _as_float(values.get("probe_timeout"), DEFAULT_PROBE_TIMEOUT)
    )
    values["provider_timeout"] = parse_float_env(
        "SLANTBRIDGE_PROVIDER_TIMEOUT",
        _as_float(values.get("provider_timeout"), DEFAULT_PROVIDER_TIMEOUT),
    )
    values["retry_attempts"] = parse_int_env(
        "SLANTBRIDGE_RETRY_ATTEMPTS",
        _as_int(values.get("retry_attempts"), DEFAULT_RETRY_ATTEMPTS),
    )
    values["retry_backoff"] = _as_float(values.get("retry_backoff"), DEFAULT_RETRY_BACKOFF)

    explicit = {
        "api_base": api_base,
        "api_key": api_key,
        "max_bytes": max_bytes,
        "probe_timeout": probe_timeout,
        "provider_timeout": provider_timeout,
        "retry_attempts": retry_attempts,
    }
    values.update({k: v for k, v in explicit.items() if v is not None})

    config = ProxyConfig(
        api_base=str(values.get("api_base") or DEFAULT_API_BASE),
        api_key=str(values.get("api_key") or ""),
        max_bytes=int(values["max_bytes"]),
        probe_timeout=float(values["probe_timeout"]),
        provider_timeout=float(values["provider_timeout"]),
        retry_attempts=int(values["retry_attempts"]),
        retry_backoff=float(values["retry_backoff"]),
    )
    if not config.is_configured:
        logger.warning("SLANT3D_API_KEY is not set; provider calls will be refused")
    return config


def validate_config(config: ProxyConfig) -> tuple[bool, str | None]:
    """Validate a resolved configuration.

    Returns ``(True, None)`` when the config is valid, or
    ``(False, error_message)`` describing the first problem found.
    """
    if not config.api_key:
        return False, "Slant3D API key not configured. Set SLANT3D_API_KEY."
    if config.max_bytes <= 0:
        return False, f"max_bytes must be positive, got {config.max_bytes}"
    if config.probe_timeout <= 0 or config.provider_timeout <= 0:
        return False, "timeouts must be positive"
    return True, None


def _as_int(value: Any, default: int) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _as_float(value: Any, default: float) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return default
