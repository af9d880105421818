"""Remote asset size discovery.

Learns the byte size of a hosted model file without downloading it:

1. ``HEAD`` the URL and read ``Content-Length``.
2. If that fails, ``GET`` with ``Range: bytes=0-0`` and read the total
   from ``Content-Range: bytes 0-0/<total>``.
3. If both fail the size is unknown (``None``).

Many asset hosts omit ``Content-Length`` on ``HEAD`` but honour range
requests.  Probing never raises.
"""

from __future__ import annotations

import logging
import re

import requests
from requests.exceptions import RequestException

from slantbridge.config import ProxyConfig
from slantbridge.deadline import Deadline, DeadlineExceeded, clip_timeout
from slantbridge.models import ProbeMethod, RemoteAsset

logger = logging.getLogger(__name__)

_CONTENT_RANGE_TOTAL = re.compile(r"/(\d+)\s*$")


def parse_content_length(value: str | None) -> int | None:
    """Parse a ``Content-Length`` header as an unsigned integer."""
    if value is None:
        return None
    value = value.strip()
    if not value.isdigit():
        return None
    return int(value)


def parse_content_range_total(value: str | None) -> int | None:
    """Extract ``<total>`` from a ``Content-Range: bytes 0-0/<total>`` header."""
    if not value:
        return None
    match = _CONTENT_RANGE_TOTAL.search(value)
    if not match:
        return None
    return int(match.group(1))


class SizeProber:
    """Determines the size of remote assets with bounded, soft-failing requests.

    Args:
        config: Proxy configuration; only ``probe_timeout`` is used.
        session: Optional :class:`requests.Session` to issue probes with.
    """

    def __init__(
        self,
        config: ProxyConfig | None = None,
        *,
        session: requests.Session | None = None,
    ) -> None:
        self._config = config or ProxyConfig()
        self._timeout = self._config.probe_timeout
        self._session = session or requests.Session()

    def probe_size(self, url: str, *, deadline: Deadline | None = None) -> int | None:
        """Return the size of *url* in bytes, or ``None`` if it cannot be learned."""
        return self.probe(url, deadline=deadline).size_bytes

    def probe(self, url: str, *, deadline: Deadline | None = None) -> RemoteAsset:
        """Probe *url* and record how (or whether) its size was obtained."""
        size = self._probe_head(url, deadline)
        if size is not None:
            logger.info("Asset %s is %d bytes (HEAD)", url, size)
            return RemoteAsset(url=url, size_bytes=size, probe_method=ProbeMethod.HEAD)

        size = self._probe_range(url, deadline)
        if size is not None:
            logger.info("Asset %s is %d bytes (range fallback)", url, size)
            return RemoteAsset(url=url, size_bytes=size, probe_method=ProbeMethod.RANGE_FALLBACK)

        logger.warning("Could not determine size of %s; continuing without size check", url)
        return RemoteAsset(url=url)

    def _probe_head(self, url: str, deadline: Deadline | None) -> int | None:
        try:
            response = self._session.head(
                url,
                timeout=clip_timeout(self._timeout, deadline),
                allow_redirects=True,
            )
        except (RequestException, DeadlineExceeded) as exc:
            logger.warning("HEAD size check failed for %s: %s", url, exc)
            return None

        if not response.ok:
            logger.debug("HEAD %s returned HTTP %d", url, response.status_code)
            return None
        return parse_content_length(response.headers.get("Content-Length"))

    def _probe_range(self, url: str, deadline: Deadline | None) -> int | None:
        try:
            response = self._session.get(
                url,
                headers={"Range": "bytes=0-0"},
                timeout=clip_timeout(self._timeout, deadline),
                stream=True,
            )
        except (RequestException, DeadlineExceeded) as exc:
            logger.warning("Range size check failed for %s: %s", url, exc)
            return None

        try:
            return parse_content_range_total(response.headers.get("Content-Range"))
        finally:
            response.close()

    def __repr__(self) -> str:
        return f"<SizeProber timeout={self._timeout}s>"
