"""Exit codes for script-friendly error handling.

These codes let calling scripts determine the category of failure
without parsing error messages.
"""

from __future__ import annotations

from slantbridge.errors import ClassifiedError, ProviderError, SlantBridgeError

# Success
SUCCESS = 0

# Print provider is unreachable or timed out
PROVIDER_UNREACHABLE = 1

# Model asset problem (too large, bad URL scheme, invalid file)
ASSET_ERROR = 2

# Proxy is misconfigured (missing API key, bad config file)
CONFIG_ERROR = 3

# Any other error (validation, unknown provider failure)
OTHER_ERROR = 4


ERROR_CODE_MAP: dict[str, int] = {
    "CONNECTION_ERROR": PROVIDER_UNREACHABLE,
    "TIMEOUT": PROVIDER_UNREACHABLE,
    "DEADLINE_EXCEEDED": PROVIDER_UNREACHABLE,
    "PAYLOAD_TOO_LARGE": ASSET_ERROR,
    "UNSUPPORTED_SCHEME": ASSET_ERROR,
    "MALFORMED_REQUEST": ASSET_ERROR,
    "SERVICE_MISCONFIGURED": CONFIG_ERROR,
    "NOT_CONFIGURED": CONFIG_ERROR,
    "CONFIG_ERROR": CONFIG_ERROR,
    "INVALID_ENUM_VALUE": OTHER_ERROR,
    "UNKNOWN_PROVIDER_ERROR": OTHER_ERROR,
    "VALIDATION_ERROR": OTHER_ERROR,
}


def exit_code_for(error_code: str) -> int:
    """Map an error code string to a CLI exit code."""
    return ERROR_CODE_MAP.get(error_code, OTHER_ERROR)


def exit_code_for_error(exc: SlantBridgeError) -> int:
    """Map a raised error to a CLI exit code.

    An unclassifiable provider failure caused by a transport problem
    counts as the provider being unreachable.
    """
    if isinstance(exc, ClassifiedError) and isinstance(exc.cause, ProviderError):
        transport = exit_code_for(exc.cause.code or "")
        if transport == PROVIDER_UNREACHABLE:
            return transport
    return exit_code_for(exc.code or "")
