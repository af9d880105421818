"""Low-level HTTP client for the Slant3D order API.

:class:`ProviderClient` is a faithful transport: it injects the ``api-key``
header, sends JSON, and either returns the decoded response or raises a
:class:`~slantbridge.errors.ProviderError` carrying the untouched status
and body text.  Interpreting what a failure *means* is left to
:mod:`slantbridge.classify`.

Endpoints::

    POST   /order/estimate           -- price one order object
    POST   /order                    -- place one order object
    POST   /order/estimateShipping   -- shipping cost for one order object
    GET    /order/{id}/get-tracking  -- tracking info
    GET    /order/                   -- list orders
    DELETE /order/{id}               -- cancel an order

Idempotent calls (estimates, tracking, listing) get a single retry with
jittered backoff on transport errors and 502/503/504.  Order creation and
cancellation are never retried.
"""

from __future__ import annotations

import json
import logging
import random
import time
from typing import Any
from urllib.parse import quote as url_quote

import requests
from requests.exceptions import ConnectionError as ReqConnectionError
from requests.exceptions import RequestException, Timeout

from slantbridge.config import ProxyConfig
from slantbridge.deadline import Deadline, DeadlineExceeded, clip_timeout
from slantbridge.errors import ProviderError
from slantbridge.models import CanonicalOrderPayload

logger = logging.getLogger(__name__)

NOT_CONFIGURED_MESSAGE = "Slant3D API key not configured"

_RETRYABLE_STATUS_CODES = {502, 503, 504}
_LOG_BODY_LIMIT = 2000


class ProviderClient:
    """Uniform client for the provider API surface.

    Args:
        config: Injected configuration (base URL, API key, timeouts, retry).
        session: Optional :class:`requests.Session` (for connection reuse
            or test doubles).
    """

    def __init__(
        self,
        config: ProxyConfig,
        *,
        session: requests.Session | None = None,
    ) -> None:
        self._config = config
        self._base_url = config.api_base
        self._timeout = config.provider_timeout
        self._session = session or requests.Session()
        self._session.headers.update(
            {
                "Accept": "application/json",
                "Content-Type": "application/json",
            }
        )
        if config.api_key:
            self._session.headers["api-key"] = config.api_key

    @property
    def base_url(self) -> str:
        return self._base_url

    # -- HTTP layer ----------------------------------------------------------

    def call(
        self,
        endpoint: str,
        method: str = "GET",
        body: Any | None = None,
        *,
        idempotent: bool | None = None,
        deadline: Deadline | None = None,
    ) -> Any:
        """Issue one provider request and return the decoded JSON.

        Args:
            endpoint: Path relative to the base URL (e.g. ``/order``).
            method: HTTP method.
            body: JSON-serialisable request body.
            idempotent: Whether the call may be retried.  Defaults to
                ``True`` for ``GET`` only.
            deadline: Caller deadline; each attempt's timeout is clipped to
                the remaining time.

        Raises:
            ProviderError: On a missing API key, any non-2xx response, a
                transport failure, or an expired deadline.
        """
        method = method.upper()
        if not self._config.api_key:
            logger.error("Refusing %s %s: %s", method, endpoint, NOT_CONFIGURED_MESSAGE)
            raise ProviderError(NOT_CONFIGURED_MESSAGE, code="NOT_CONFIGURED")

        if idempotent is None:
            idempotent = method == "GET"
        attempts = 1 + (self._config.retry_attempts if idempotent else 0)

        url = f"{self._base_url}{endpoint}"
        logger.info("Slant3D request: %s %s", method, url)
        if body is not None:
            logger.info("Slant3D request body: %s", _dump(body))

        last_error: ProviderError | None = None
        for attempt in range(attempts):
            try:
                return self._send(method, url, endpoint, body, deadline)
            except ProviderError as exc:
                last_error = exc
                if not _is_retryable(exc) or attempt == attempts - 1:
                    raise
            delay = self._config.retry_backoff * random.uniform(0.5, 1.5)
            logger.warning(
                "Retrying %s %s in %.2fs after %s (attempt %d/%d)",
                method,
                endpoint,
                delay,
                last_error.code,
                attempt + 1,
                attempts,
            )
            if deadline is not None and deadline.remaining() <= delay:
                raise last_error
            time.sleep(delay)

        # Unreachable: the loop either returns or raises.
        assert last_error is not None
        raise last_error

    def _send(
        self,
        method: str,
        url: str,
        endpoint: str,
        body: Any | None,
        deadline: Deadline | None,
    ) -> Any:
        try:
            timeout = clip_timeout(self._timeout, deadline)
        except DeadlineExceeded as exc:
            raise ProviderError(
                f"Slant3D request to {endpoint} abandoned: {exc}",
                code="DEADLINE_EXCEEDED",
            ) from exc

        try:
            response = self._session.request(
                method,
                url,
                data=None if body is None else json.dumps(body),
                timeout=timeout,
            )
        except Timeout as exc:
            logger.error("Slant3D request to %s timed out after %.1fs", url, timeout)
            raise ProviderError(
                f"Request to Slant3D timed out after {timeout:.0f}s",
                code="TIMEOUT",
            ) from exc
        except ReqConnectionError as exc:
            logger.error("Could not connect to Slant3D at %s: %s", url, exc)
            raise ProviderError(
                f"Could not connect to Slant3D API at {self._base_url}",
                code="CONNECTION_ERROR",
            ) from exc
        except RequestException as exc:
            logger.error("Slant3D request error for %s %s: %s", method, endpoint, exc)
            raise ProviderError(
                f"Request error for {method} {endpoint}: {exc}",
                code="REQUEST_ERROR",
            ) from exc

        if not response.ok:
            text = response.text
            logger.error(
                "Slant3D API error: %d %s %s",
                response.status_code,
                response.reason,
                text[:_LOG_BODY_LIMIT],
            )
            raise ProviderError(
                f"Slant3D API error: {response.status_code} - {text}",
                status=response.status_code,
                body=text,
            )

        try:
            result = response.json()
        except ValueError:
            result = {"status": "ok"}
        logger.info("Slant3D API response: %s", _dump(result))
        return result

    # -- Endpoints -----------------------------------------------------------

    def estimate(self, payload: CanonicalOrderPayload, *, deadline: Deadline | None = None) -> Any:
        """Price one order object via ``POST /order/estimate``."""
        return self.call("/order/estimate", "POST", [payload.to_dict()], idempotent=True, deadline=deadline)

    def create_order(self, payload: CanonicalOrderPayload, *, deadline: Deadline | None = None) -> Any:
        """Place one order via ``POST /order``.  Never retried."""
        return self.call("/order", "POST", [payload.to_dict()], idempotent=False, deadline=deadline)

    def estimate_shipping(self, payload: CanonicalOrderPayload, *, deadline: Deadline | None = None) -> Any:
        """Shipping cost for one order object via ``POST /order/estimateShipping``."""
        return self.call(
            "/order/estimateShipping", "POST", [payload.to_dict()], idempotent=True, deadline=deadline
        )

    def get_tracking(self, order_id: str, *, deadline: Deadline | None = None) -> Any:
        safe_id = url_quote(order_id, safe="")
        return self.call(f"/order/{safe_id}/get-tracking", "GET", deadline=deadline)

    def list_orders(self, *, deadline: Deadline | None = None) -> Any:
        return self.call("/order/", "GET", deadline=deadline)

    def cancel_order(self, order_id: str, *, deadline: Deadline | None = None) -> Any:
        """Cancel an order via ``DELETE /order/{id}``.  Never retried."""
        safe_id = url_quote(order_id, safe="")
        return self.call(f"/order/{safe_id}", "DELETE", idempotent=False, deadline=deadline)

    def __repr__(self) -> str:
        return f"<ProviderClient base_url={self._base_url!r}>"


def _is_retryable(exc: ProviderError) -> bool:
    if exc.code in ("TIMEOUT", "CONNECTION_ERROR"):
        return True
    return exc.status in _RETRYABLE_STATUS_CODES


def _dump(value: Any) -> str:
    try:
        text = json.dumps(value, default=str)
    except (TypeError, ValueError):
        text = repr(value)
    return text[:_LOG_BODY_LIMIT]
