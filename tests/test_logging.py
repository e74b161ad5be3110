"""Tests for armory.logging."""

from __future__ import annotations

import json

import pytest
import structlog

from armory.logging import configure_logging, get_logger


class TestConfigureLogging:
    def test_json_lines_on_stderr(self, capsys: pytest.CaptureFixture[str]) -> None:
        configure_logging(json_log=True)
        get_logger("armory.test.json").info("published", member="core")

        captured = capsys.readouterr()
        assert captured.out == ""
        event = json.loads(captured.err.strip().splitlines()[-1])
        assert event["event"] == "published"
        assert event["member"] == "core"
        assert event["level"] == "info"
        assert event["logger"] == "armory.test.json"

    def test_quiet_hides_info(self, capsys: pytest.CaptureFixture[str]) -> None:
        configure_logging(quiet=True, json_log=True)
        log = get_logger("armory.test.quiet")
        log.info("hidden")
        log.warning("shown")

        err = capsys.readouterr().err
        assert "hidden" not in err
        assert "shown" in err

    def test_verbose_shows_debug(self, capsys: pytest.CaptureFixture[str]) -> None:
        configure_logging(verbose=True)
        get_logger("armory.test.verbose").debug("manifest_rewritten", member="core")

        assert "manifest_rewritten" in capsys.readouterr().err

    def test_loggers_rebind_after_reconfiguration(
        self, capsys: pytest.CaptureFixture[str]
    ) -> None:
        log = get_logger("armory.test.rebind")
        configure_logging(quiet=True, json_log=True)
        log.info("first")
        configure_logging(json_log=True)
        log.info("second")

        assert structlog.get_config()["cache_logger_on_first_use"] is False
        err = capsys.readouterr().err
        assert "first" not in err
        assert "second" in err
