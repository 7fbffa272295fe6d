"""
Tests for TransferLogObserver.
"""

import logging

import pytest

from backup_agent.core.events.job_events import (
    FileProcessedEvent,
    JobFailedEvent,
    JobStartedEvent,
)
from backup_agent.models import BackupType, JobState
from backup_agent.observers.transfer_log_observer import TransferLogObserver

LOGGER = "backup_agent.transfers"


def event(event_class, **fields):
    values = dict(job_name="docs", backup_type=BackupType.COMPLETE, state=JobState.ACTIVE)
    values.update(fields)
    return event_class(**values)


class TestTransferLogObserver:
    @pytest.mark.asyncio
    async def test_copied_file_is_logged(self, caplog):
        observer = TransferLogObserver()
        caplog.set_level(logging.INFO, logger=LOGGER)

        await observer(
            event(
                FileProcessedEvent,
                source_path="/src/a.txt",
                target_path="/dst/a.txt",
                file_size=42,
                transfer_ms=5,
            )
        )

        record = caplog.records[-1]
        assert record.levelno == logging.INFO
        assert record.operation == "file_transfer"
        assert record.file_size == 42
        assert "/src/a.txt -> /dst/a.txt" in record.getMessage()

    @pytest.mark.asyncio
    async def test_skipped_file_is_debug_only(self, caplog):
        observer = TransferLogObserver()
        caplog.set_level(logging.INFO, logger=LOGGER)

        await observer(event(FileProcessedEvent, copied=False, source_path="/src/a.txt"))

        assert caplog.records == []

    @pytest.mark.asyncio
    async def test_lifecycle_levels(self, caplog):
        observer = TransferLogObserver()
        caplog.set_level(logging.INFO, logger=LOGGER)

        await observer(event(JobStartedEvent, total_files=3))
        await observer(event(JobFailedEvent, state=JobState.ERROR, error_message="disk full"))

        started, failed = caplog.records
        assert started.levelno == logging.INFO
        assert started.operation == "job_start"
        assert failed.levelno == logging.ERROR
        assert "disk full" in failed.getMessage()
