"""
Transfer Log Observer - one log record per processed file and per lifecycle event.
"""

import logging

from backup_agent.core.events.job_event import JobEvent
from backup_agent.core.events.job_events import FileProcessedEvent, JobFailedEvent


class TransferLogObserver:
    def __init__(self, logger_name: str = "backup_agent.transfers"):
        self.logger = logging.getLogger(logger_name)

    async def __call__(self, event: JobEvent) -> None:
        if isinstance(event, FileProcessedEvent):
            if not event.copied:
                self.logger.debug(f"[{event.job_name}] up to date: {event.source_path}")
                return
            self.logger.info(
                f"[{event.job_name}] {event.source_path} -> {event.target_path} "
                f"({event.file_size} bytes, transfer {event.transfer_ms} ms, "
                f"encryption {event.encryption_ms} ms)",
                extra={
                    "operation": "file_transfer",
                    "job_name": event.job_name,
                    "source_path": event.source_path,
                    "target_path": event.target_path,
                    "file_size": event.file_size,
                    "transfer_ms": event.transfer_ms,
                    "encryption_ms": event.encryption_ms,
                },
            )
            return

        level = logging.ERROR if isinstance(event, JobFailedEvent) else logging.INFO
        message = f"[{event.job_name}] {event.action} ({event.state.value}, {event.progress}%)"
        if isinstance(event, JobFailedEvent):
            message += f": {event.error_message}"
        self.logger.log(
            level,
            message,
            extra={"operation": f"job_{event.action}", "job_name": event.job_name},
        )
