"""Tests for structlog configuration."""

from __future__ import annotations

import json
import logging
from collections.abc import Generator

import pytest
import structlog

from assocsync.config.logging import configure_logging


@pytest.fixture(autouse=True)
def _restore_logging() -> Generator[None]:
    """Restore root logger state after each test."""
    root = logging.getLogger()
    original_handlers = root.handlers[:]
    original_level = root.level
    pkg = logging.getLogger("assocsync")
    pkg_level = pkg.level
    yield
    root.handlers = original_handlers
    root.setLevel(original_level)
    pkg.setLevel(pkg_level)


class TestConfigureLogging:
    def test_verbose_enables_debug(self) -> None:
        configure_logging(verbose=True)
        assert logging.getLogger("assocsync").level == logging.DEBUG
        assert logging.getLogger().level == logging.WARNING

    def test_non_verbose_sets_warning(self) -> None:
        configure_logging(verbose=False)
        assert logging.getLogger("assocsync").level == logging.WARNING

    def test_json_mode_output(self, capfd: pytest.CaptureFixture[str]) -> None:
        configure_logging(verbose=True, log_json=True)
        log = structlog.get_logger("assocsync.realtime.scheduler")
        log.warning("poll.failed", domain="stats", failures=2)
        parsed = json.loads(capfd.readouterr().err.strip())
        assert parsed["event"] == "poll.failed"
        assert parsed["domain"] == "stats"
        assert parsed["failures"] == 2
        assert parsed["level"] == "warning"
        assert parsed["logger"] == "assocsync.realtime.scheduler"
        assert "timestamp" in parsed

    def test_stdlib_logger_gets_structured_fields(
        self, capfd: pytest.CaptureFixture[str]
    ) -> None:
        configure_logging(verbose=True, log_json=True)
        logging.getLogger("assocsync.realtime.push").debug("Unknown push message")
        parsed = json.loads(capfd.readouterr().err.strip())
        assert parsed["event"] == "Unknown push message"
        assert parsed["level"] == "debug"

    def test_third_party_debug_is_suppressed(self, capfd: pytest.CaptureFixture[str]) -> None:
        configure_logging(verbose=True, log_json=True)
        logging.getLogger("httpx").debug("request noise")
        logging.getLogger("httpcore").info("connection noise")
        assert capfd.readouterr().err == ""

    def test_idempotent_calls(self) -> None:
        configure_logging(verbose=True)
        configure_logging(verbose=True)
        assert len(logging.getLogger().handlers) == 1
