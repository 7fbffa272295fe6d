"""
Tests for logging setup.
"""

import json
import logging
from logging.handlers import TimedRotatingFileHandler

import pytest
from rich.logging import RichHandler

from backup_agent.logging_config import (
    TRANSFER_LOGGER,
    TransferLogFormatter,
    setup_logging,
)


@pytest.fixture
def restore_logging():
    root = logging.getLogger()
    transfers = logging.getLogger(TRANSFER_LOGGER)
    level = root.level
    yield
    for logger in (root, transfers):
        for handler in list(logger.handlers):
            if isinstance(handler, (RichHandler, TimedRotatingFileHandler)):
                logger.removeHandler(handler)
                handler.close()
    root.setLevel(level)


class TestSetupLogging:
    def test_creates_log_files(self, settings, restore_logging):
        setup_logging(settings)

        root = logging.getLogger()
        assert len(root.handlers) == 2
        assert settings.log_directory.is_dir()

        logging.getLogger(TRANSFER_LOGGER).info(
            "copied", extra={"operation": "file_transfer", "job_name": "docs", "file_size": 3}
        )
        for handler in logging.getLogger(TRANSFER_LOGGER).handlers:
            handler.flush()

        lines = open(settings.transfer_log_file_path, encoding="utf-8").read().splitlines()
        entry = json.loads(lines[-1])
        assert entry["job_name"] == "docs"
        assert entry["file_size"] == 3
        assert entry["message"] == "copied"


class TestTransferLogFormatter:
    def test_only_known_fields_are_written(self):
        record = logging.LogRecord(TRANSFER_LOGGER, logging.INFO, __file__, 1, "done", None, None)
        record.job_name = "docs"
        record.unrelated = "ignored"

        entry = json.loads(TransferLogFormatter().format(record))

        assert entry["job_name"] == "docs"
        assert entry["level"] == "INFO"
        assert "unrelated" not in entry
