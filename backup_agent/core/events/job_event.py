"""
Base class for all job lifecycle events.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import ClassVar

from backup_agent.models import BackupType, JobState


@dataclass(frozen=True, kw_only=True)
class JobEvent:
    """
    Represents something that happened to a backup job.

    Carries the full notification record so that observers never need to
    query the job back.

    Attributes:
        job_name: Name of the job that emitted the event.
        backup_type: Strategy of the job.
        state: Job state at the time of the event.
        source_path: Job source directory, or the file being processed.
        target_path: Job target directory, or the destination file.
        total_files: Number of source files the job covers.
        total_bytes: Combined size of those files.
        transfer_ms: Copy time of the processed file.
        encryption_ms: Encryption time of the processed file.
        progress: Job progress in percent (0-100).
        event_id: A unique identifier for the event instance.
        timestamp: The UTC time when the event was created.
    """

    action: ClassVar[str] = "event"

    job_name: str
    backup_type: BackupType
    state: JobState
    source_path: str = ""
    target_path: str = ""
    total_files: int = 0
    total_bytes: int = 0
    transfer_ms: int = 0
    encryption_ms: int = 0
    progress: int = 0
    event_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
