"""
Concrete job lifecycle events, one per notification action.
"""

from dataclasses import dataclass
from typing import ClassVar

from backup_agent.core.events.job_event import JobEvent


@dataclass(frozen=True, kw_only=True)
class JobStartedEvent(JobEvent):
    """Published once the job has planned its file list and begins copying."""

    action: ClassVar[str] = "start"


@dataclass(frozen=True, kw_only=True)
class FileProcessedEvent(JobEvent):
    """Published after every source file, whether it was copied or skipped."""

    action: ClassVar[str] = "processing"

    copied: bool = True
    file_size: int = 0


@dataclass(frozen=True, kw_only=True)
class JobPausedEvent(JobEvent):
    """Published when the worker blocks on its pause signal."""

    action: ClassVar[str] = "pause"


@dataclass(frozen=True, kw_only=True)
class JobResumedEvent(JobEvent):
    """Published when the worker is released from its pause signal."""

    action: ClassVar[str] = "resume"


@dataclass(frozen=True, kw_only=True)
class JobCompletedEvent(JobEvent):
    """Published when every file has been processed."""

    action: ClassVar[str] = "complete"


@dataclass(frozen=True, kw_only=True)
class JobFailedEvent(JobEvent):
    """
    Published when the job stops on an unexpected error.

    Totals and progress are reported as zero; the last known counts are
    not forwarded with this event.
    """

    action: ClassVar[str] = "error"

    error_message: str = ""


@dataclass(frozen=True, kw_only=True)
class JobCancelledEvent(JobEvent):
    """Published when the job observed its cancellation and reset to inactive."""

    action: ClassVar[str] = "cancelled"


TERMINAL_EVENTS = (JobCompletedEvent, JobFailedEvent, JobCancelledEvent)
