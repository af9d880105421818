"""Tests for slantbridge.probe -- two-stage remote size discovery."""

from __future__ import annotations

import pytest
import responses
from requests.exceptions import ConnectionError

from slantbridge.deadline import Deadline
from slantbridge.models import ProbeMethod
from slantbridge.probe import SizeProber, parse_content_length, parse_content_range_total

from .conftest import MODEL_URL


# ---------------------------------------------------------------------------
# Header parsing
# ---------------------------------------------------------------------------


class TestParseContentLength:
    def test_digits(self):
        assert parse_content_length("4348596") == 4348596

    def test_whitespace_stripped(self):
        assert parse_content_length(" 12 ") == 12

    @pytest.mark.parametrize("value", [None, "", "abc", "-5", "1.5"])
    def test_rejects_non_integers(self, value):
        assert parse_content_length(value) is None


class TestParseContentRangeTotal:
    def test_standard_header(self):
        assert parse_content_range_total("bytes 0-0/5000000") == 5000000

    def test_unknown_total(self):
        assert parse_content_range_total("bytes 0-0/*") is None

    def test_missing(self):
        assert parse_content_range_total(None) is None


# ---------------------------------------------------------------------------
# SizeProber
# ---------------------------------------------------------------------------


class TestSizeProber:
    @responses.activate
    def test_head_content_length_short_circuits(self, prober: SizeProber):
        responses.add(responses.HEAD, MODEL_URL, status=200, headers={"Content-Length": "123456"})

        asset = prober.probe(MODEL_URL)

        assert asset.size_bytes == 123456
        assert asset.probe_method is ProbeMethod.HEAD
        assert len(responses.calls) == 1
        assert responses.calls[0].request.method == "HEAD"

    @responses.activate
    def test_range_fallback_when_head_has_no_length(self, prober: SizeProber):
        responses.add(responses.HEAD, MODEL_URL, status=405)
        responses.add(
            responses.GET,
            MODEL_URL,
            status=206,
            body=b"s",
            headers={"Content-Range": "bytes 0-0/5000000"},
        )

        asset = prober.probe(MODEL_URL)

        assert asset.size_bytes == 5000000
        assert asset.probe_method is ProbeMethod.RANGE_FALLBACK
        assert responses.calls[1].request.headers["Range"] == "bytes=0-0"

    @responses.activate
    def test_both_stages_fail_returns_none(self, prober: SizeProber):
        responses.add(responses.HEAD, MODEL_URL, body=ConnectionError("refused"))
        responses.add(responses.GET, MODEL_URL, body=ConnectionError("refused"))

        asset = prober.probe(MODEL_URL)

        assert asset.size_bytes is None
        assert asset.size_known is False
        assert asset.probe_method is ProbeMethod.UNKNOWN

    @responses.activate
    def test_range_without_content_range_is_unknown(self, prober: SizeProber):
        responses.add(responses.HEAD, MODEL_URL, status=404)
        responses.add(responses.GET, MODEL_URL, status=200, body=b"solid cat")

        assert prober.probe_size(MODEL_URL) is None

    def test_expired_deadline_means_unknown_size(self, prober: SizeProber):
        expired = Deadline(0.0)

        with responses.RequestsMock() as rsps:
            assert prober.probe_size(MODEL_URL, deadline=expired) is None
            assert len(rsps.calls) == 0

    @responses.activate
    def test_each_stage_uses_probe_timeout(self, prober: SizeProber):
        responses.add(responses.HEAD, MODEL_URL, status=404)
        responses.add(responses.GET, MODEL_URL, status=206, headers={"Content-Range": "bytes 0-0/77"})

        assert prober.probe_size(MODEL_URL) == 77
        assert [call.request.req_kwargs["timeout"] for call in responses.calls] == [10.0, 10.0]

    @responses.activate
    def test_live_deadline_clips_timeout(self, prober: SizeProber):
        responses.add(responses.HEAD, MODEL_URL, status=404)
        responses.add(responses.GET, MODEL_URL, status=206, headers={"Content-Range": "bytes 0-0/77"})

        assert prober.probe_size(MODEL_URL, deadline=Deadline.after(2.0)) == 77
        for call in responses.calls:
            assert 0.0 < call.request.req_kwargs["timeout"] <= 2.0
