"""Mapping of raw provider failures onto the stable error taxonomy.

The provider publishes no structured error codes, so the only signal is the
error text.  :func:`classify` lower-cases it and walks an ordered rule
table; the first matching rule wins, so more specific rules come first.

==================================  ========================  ====
Condition in error text             Kind                      HTTP
==================================  ========================  ====
"offset" and "out of range"         PAYLOAD_TOO_LARGE         413
"protocol" and "blob:"              UNSUPPORTED_SCHEME        400
"order_item_color" and "enum"       INVALID_ENUM_VALUE        400
"api key not configured"            SERVICE_MISCONFIGURED     503
"400"                               MALFORMED_REQUEST         400
anything else                       UNKNOWN_PROVIDER_ERROR    500
==================================  ========================  ====
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass

from slantbridge.config import DEFAULT_MAX_BYTES
from slantbridge.errors import ClassifiedError, ErrorKind

logger = logging.getLogger(__name__)

_BYTES_PER_MB = 1024 * 1024


@dataclass(frozen=True)
class Rule:
    """One row of the classification table."""

    kind: ErrorKind
    http_status: int
    matches: Callable[[str], bool]
    message: Callable[[str, int], str]


def _all_of(*needles: str) -> Callable[[str], bool]:
    return lambda text: all(n in text for n in needles)


RULES: tuple[Rule, ...] = (
    Rule(
        ErrorKind.PAYLOAD_TOO_LARGE,
        413,
        _all_of("offset", "out of range"),
        lambda raw, limit: (
            "Model file is too large for the print provider. "
            f"Maximum allowed size is {limit / _BYTES_PER_MB:.2f}MB. "
            "Please try regenerating the model with lower quality settings."
        ),
    ),
    Rule(
        ErrorKind.UNSUPPORTED_SCHEME,
        400,
        _all_of("protocol", "blob:"),
        lambda raw, limit: "Blob URLs are not supported. Please use a publicly accessible HTTP URL for the model.",
    ),
    Rule(
        ErrorKind.INVALID_ENUM_VALUE,
        400,
        _all_of("order_item_color", "enum"),
        lambda raw, limit: "Invalid color selection. Please choose a valid color option.",
    ),
    Rule(
        ErrorKind.SERVICE_MISCONFIGURED,
        503,
        _all_of("api key not configured"),
        lambda raw, limit: "The print provider is not configured. Please contact support.",
    ),
    Rule(
        ErrorKind.MALFORMED_REQUEST,
        400,
        _all_of("400"),
        lambda raw, limit: (
            "Invalid model file format or size. "
            f"Models must be valid STL files no larger than {limit / _BYTES_PER_MB:.2f}MB. "
            "Please try a different model."
        ),
    ),
)

_FALLBACK = Rule(
    ErrorKind.UNKNOWN_PROVIDER_ERROR,
    500,
    lambda text: True,
    lambda raw, limit: f"Print provider request failed: {raw}" if raw else "Print provider request failed.",
)


def classify(
    raw: BaseException | str | None,
    *,
    max_bytes: int = DEFAULT_MAX_BYTES,
) -> ClassifiedError:
    """Map *raw* onto a :class:`ClassifiedError`.

    Args:
        raw: A raw provider error, any exception, or bare error text.  An
            already classified error is returned unchanged.
        max_bytes: Size limit quoted in the payload-too-large message.
    """
    if isinstance(raw, ClassifiedError):
        return raw

    text = str(raw) if raw is not None else ""
    lowered = text.lower()
    rule = next((r for r in RULES if r.matches(lowered)), _FALLBACK)

    classified = ClassifiedError(
        rule.kind,
        rule.http_status,
        rule.message(text, max_bytes),
        cause=raw,
    )
    logger.info("Classified provider failure as %s (%d): %s", rule.kind.value, rule.http_status, text[:500])
    return classified


def payload_too_large(size_bytes: int, max_bytes: int) -> ClassifiedError:
    """Error for an asset whose probed size exceeds the provider limit."""
    return ClassifiedError(
        ErrorKind.PAYLOAD_TOO_LARGE,
        413,
        f"Model file is too large ({size_bytes / _BYTES_PER_MB:.2f}MB). "
        f"Maximum allowed size is {max_bytes / _BYTES_PER_MB:.2f}MB. "
        "Please try regenerating the model with lower quality settings.",
        cause=f"asset size {size_bytes} bytes exceeds limit {max_bytes} bytes",
    )


def unsupported_scheme(url: str) -> ClassifiedError:
    """Error for a model URL the provider cannot fetch (``blob:``, ``file:``...)."""
    if url.lower().startswith("blob:"):
        message = "Blob URLs are not supported. Please use an HTTP/HTTPS URL."
    else:
        message = "Invalid URL protocol. Only HTTP/HTTPS URLs are supported."
    return ClassifiedError(ErrorKind.UNSUPPORTED_SCHEME, 400, message, cause=f"rejected model URL {url[:200]!r}")
