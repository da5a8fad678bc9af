"""Unit tests for logging configuration."""

from __future__ import annotations

import json

import pytest
import structlog

from bluegreen.infrastructure.observability.logging import setup_logging


class TestLogging:
    def test_setup_logging_info(self) -> None:
        setup_logging("INFO")  # Should not raise

    def test_setup_logging_debug(self) -> None:
        setup_logging("DEBUG", json_output=False)  # Should not raise

    def test_unknown_level_falls_back_to_info(self) -> None:
        setup_logging("NOPE")  # Should not raise

    def test_json_lines_go_to_stderr(self, capsys: pytest.CaptureFixture[str]) -> None:
        setup_logging("INFO")
        structlog.get_logger("bluegreen.test").info("deployment_admitted", environment="prod")
        captured = capsys.readouterr()
        assert captured.out == ""
        record = json.loads(captured.err.strip().splitlines()[-1])
        assert record["event"] == "deployment_admitted"
        assert record["environment"] == "prod"
        assert record["level"] == "info"
