"""slantbridge - fulfillment order proxy for the Slant3D print-on-demand API.

Re-exports the public API so consumers can write::

    from slantbridge import OrderOrchestrator, ProxyConfig, load_config
"""

from __future__ import annotations

import logging
import os
import re
from importlib.metadata import PackageNotFoundError, version
from pathlib import Path

_logger = logging.getLogger(__name__)


def _resolve_version() -> str:
    """Resolve the installed package version with a source-tree fallback."""
    # Source-tree first: avoids stale installed metadata when running from git.
    try:
        pyproject = Path(__file__).resolve().parents[2] / "pyproject.toml"
        if pyproject.is_file():
            content = pyproject.read_text(encoding="utf-8")
            match = re.search(r'(?m)^\s*version\s*=\s*"([^"]+)"\s*$', content)
            if match:
                return match.group(1)
    except OSError as exc:
        _logger.debug("Local pyproject version fallback failed: %s", exc)

    try:
        return version("slantbridge")
    except PackageNotFoundError:
        return "unknown"


__version__ = _resolve_version()


def parse_int_env(name: str, default: int) -> int:
    """Parse an integer from an environment variable with safe fallback.

    Logs a warning and returns *default* if the value is not a valid integer.
    """
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        _logger.warning(
            "Invalid integer for %s=%r, using default %d",
            name,
            raw,
            default,
        )
        return default


def parse_float_env(name: str, default: float) -> float:
    """Parse a float from an environment variable with safe fallback.

    Logs a warning and returns *default* if the value is not a valid number.
    """
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        _logger.warning(
            "Invalid number for %s=%r, using default %s",
            name,
            raw,
            default,
        )
        return default


from slantbridge.config import ProxyConfig, load_config  # noqa: E402
from slantbridge.errors import (  # noqa: E402
    ClassifiedError,
    ErrorKind,
    ProviderError,
    SlantBridgeError,
    ValidationError,
)
from slantbridge.orchestrator import CallPolicy, OrderOrchestrator  # noqa: E402

__all__ = [
    "CallPolicy",
    "ClassifiedError",
    "ErrorKind",
    "OrderOrchestrator",
    "ProviderError",
    "ProxyConfig",
    "SlantBridgeError",
    "ValidationError",
    "__version__",
    "load_config",
    "parse_float_env",
    "parse_int_env",
]
