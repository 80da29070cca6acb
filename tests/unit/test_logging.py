"""Tests for rxtrack logging utilities."""

from __future__ import annotations

import json

import pytest

from rxtrack.logging import add_log_level, configure_from_settings, configure_logging, get_logger


class TestAddLogLevel:
    """Tests for the add_log_level processor."""

    def test_sets_level(self) -> None:
        assert add_log_level(None, "info", {})["level"] == "info"

    def test_translates_warn(self) -> None:
        assert add_log_level(None, "warn", {})["level"] == "warning"


class TestConfigureLogging:
    """Tests for configure_logging."""

    def test_json_output(self, capsys: pytest.CaptureFixture[str]) -> None:
        configure_logging(level="INFO", json_output=True)
        get_logger("test").info("tracking_enabled", live=2)
        line = capsys.readouterr().err.strip().splitlines()[-1]
        payload = json.loads(line)
        assert payload["event"] == "tracking_enabled"
        assert payload["live"] == 2
        assert payload["level"] == "info"

    def test_level_filters(self, capsys: pytest.CaptureFixture[str]) -> None:
        configure_logging(level="WARNING", json_output=True)
        get_logger("test").info("hidden")
        get_logger("test").warning("shown")
        err = capsys.readouterr().err
        assert "hidden" not in err
        assert "shown" in err

    def test_configure_from_settings(
        self, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
    ) -> None:
        monkeypatch.setenv("RXTRACK_LOG_LEVEL", "DEBUG")
        monkeypatch.setenv("RXTRACK_LOG_FORMAT", "json")
        configure_from_settings()
        get_logger("test").debug("subscription_tracked", chain_id=1)
        payload = json.loads(capsys.readouterr().err.strip().splitlines()[-1])
        assert payload["chain_id"] == 1


class TestGetLogger:
    """Tests for get_logger."""

    def test_returns_structlog_logger(self) -> None:
        logger = get_logger(__name__)
        assert hasattr(logger, "info")
