"""Tests for loguru configuration."""

import json
import sys

import pytest
from loguru import logger

from companion.config.settings import LoggingSettings
from companion.utils import logging as logging_module
from companion.utils.logging import configure_logging


@pytest.fixture(autouse=True)
def restore_logger():
    yield
    logger.remove()
    logger.add(sys.stderr)


class TestConfigureLogging:
    """Test configure_logging handlers."""

    def test_json_output_file(self, temp_dir):
        log_file = temp_dir / "logs" / "companion.jsonl"
        configure_logging(LoggingSettings(output_file=str(log_file), format="json"))

        logger.info("indexed conversation")
        logger.complete()

        record = json.loads(log_file.read_text().splitlines()[0])
        assert record["record"]["message"] == "indexed conversation"
        assert record["record"]["level"]["name"] == "INFO"

    def test_level_filters_file_output(self, temp_dir):
        log_file = temp_dir / "companion.log"
        configure_logging(LoggingSettings(level="warning", output_file=str(log_file)))

        logger.info("hidden")
        logger.warning("shown")

        content = log_file.read_text()
        assert "shown" in content
        assert "hidden" not in content

    def test_quiet_mode_logs_to_file(self, temp_dir, monkeypatch):
        monkeypatch.setattr(logging_module, "QUIET_LOG_DIR", temp_dir / "quiet")
        configure_logging(LoggingSettings(quiet=True))

        logger.debug("server started")

        assert "server started" in (temp_dir / "quiet" / "companion-server.log").read_text()
