"""Tests for slantbridge.log_config -- rotation and credential scrubbing."""

from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler

import pytest

from slantbridge.log_config import ScrubFilter, configure_logging, scrub


class TestScrub:
    def test_api_key_header(self):
        assert "sk-live-123" not in scrub("headers={'api-key': 'sk-live-123'}")

    def test_api_key_assignment(self):
        assert scrub("api_key=abc123") == "api_key=***REDACTED***"

    def test_bearer(self):
        assert "tok123" not in scrub("Authorization: Bearer tok123")

    def test_customer_contact_in_order_body(self):
        body = '[{"email": "ada@example.com", "phone": "555 0100", "name": "Ada"}]'
        scrubbed = scrub(body)
        assert "ada@example.com" not in scrubbed
        assert "555 0100" not in scrubbed
        assert '"name": "Ada"' in scrubbed

    def test_plain_text_untouched(self):
        text = "Slant3D API error: 500 - boom"
        assert scrub(text) == text


class TestScrubFilter:
    def test_scrubs_args(self):
        record = logging.LogRecord("t", logging.INFO, __file__, 1, "sent %s", ("api-key: secret-value",), None)
        ScrubFilter().filter(record)
        assert "secret-value" not in record.getMessage()


class TestConfigureLogging:
    @pytest.fixture(autouse=True)
    def _restore_root(self):
        root = logging.getLogger()
        handlers, level = list(root.handlers), root.level
        yield
        for handler in root.handlers:
            if handler not in handlers:
                handler.close()
        root.handlers[:] = handlers
        root.setLevel(level)

    def test_rotating_handler_installed(self, tmp_path):
        configure_logging(str(tmp_path), level="DEBUG")
        root = logging.getLogger()

        rotating = [h for h in root.handlers if isinstance(h, RotatingFileHandler)]
        assert rotating
        assert root.level == logging.DEBUG
        assert (tmp_path / "slantbridge.log").exists()
        assert all(any(isinstance(f, ScrubFilter) for f in h.filters) for h in root.handlers)

    def test_env_log_dir(self, tmp_path, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("SLANTBRIDGE_LOG_DIR", str(tmp_path / "logs"))
        configure_logging()
        assert (tmp_path / "logs" / "slantbridge.log").exists()
