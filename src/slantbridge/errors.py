"""Exception hierarchy for the fulfillment proxy.

Three layers of failure exist:

- :class:`ValidationError` is raised locally, before any network call,
  when required caller input is missing.
- :class:`ProviderError` is the raw failure surfaced by the transport
  (non-2xx status, timeout, connection failure).  It carries no meaning
  beyond the status and body text.
- :class:`ClassifiedError` is the stable ``(kind, http_status, message)``
  triple produced by :func:`slantbridge.classify.classify`.  It is what
  callers see.
"""

from __future__ import annotations

import enum
from typing import Any


class ErrorKind(str, enum.Enum):
    """Stable error taxonomy exposed to callers."""

    PAYLOAD_TOO_LARGE = "PAYLOAD_TOO_LARGE"
    UNSUPPORTED_SCHEME = "UNSUPPORTED_SCHEME"
    INVALID_ENUM_VALUE = "INVALID_ENUM_VALUE"
    SERVICE_MISCONFIGURED = "SERVICE_MISCONFIGURED"
    MALFORMED_REQUEST = "MALFORMED_REQUEST"
    UNKNOWN_PROVIDER_ERROR = "UNKNOWN_PROVIDER_ERROR"


class SlantBridgeError(Exception):
    """Base exception for fulfillment proxy errors."""

    def __init__(self, message: str, *, code: str | None = None) -> None:
        super().__init__(message)
        self.code = code


class ValidationError(SlantBridgeError):
    """Required caller input is missing or unusable."""

    http_status = 400

    def __init__(self, message: str) -> None:
        super().__init__(message, code="VALIDATION_ERROR")
        self.message = message

    def to_dict(self) -> dict[str, Any]:
        return {"code": self.code, "message": self.message, "http_status": self.http_status}


class ProviderError(SlantBridgeError):
    """Raw failure from the provider API or the transport underneath it.

    Args:
        message: Full error text, including the provider's response body.
        status: HTTP status code, or ``None`` for transport failures.
        body: Raw response body text, if any.
        code: Machine-readable failure code (``HTTP_500``, ``TIMEOUT``...).
    """

    def __init__(
        self,
        message: str,
        *,
        status: int | None = None,
        body: str = "",
        code: str | None = None,
    ) -> None:
        if code is None:
            code = f"HTTP_{status}" if status is not None else "REQUEST_ERROR"
        super().__init__(message, code=code)
        self.status = status
        self.body = body


class ClassifiedError(SlantBridgeError):
    """A provider or local failure mapped onto :class:`ErrorKind`.

    The user-facing *message* is always the mapped, human-readable string.
    The raw failure is kept on *cause* for logs only.
    """

    def __init__(
        self,
        kind: ErrorKind,
        http_status: int,
        message: str,
        *,
        cause: BaseException | str | None = None,
    ) -> None:
        super().__init__(message, code=kind.value)
        self.kind = kind
        self.http_status = http_status
        self.message = message
        self.cause = cause

    def to_dict(self) -> dict[str, Any]:
        return {
            "code": self.kind.value,
            "message": self.message,
            "http_status": self.http_status,
        }

    def __repr__(self) -> str:
        return f"ClassifiedError(kind={self.kind.value}, http_status={self.http_status}, message={self.message!r})"
