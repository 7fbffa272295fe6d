# backup_agent/core/exceptions.py


class BackupError(Exception):
    """Base class for errors raised while running backup jobs."""


class JobCancelledError(BackupError):
    """Raised at a cooperative check point once a job's cancellation was requested."""

    def __init__(self, job_name: str = ""):
        self.job_name = job_name
        super().__init__(f"Job '{job_name}' was cancelled" if job_name else "Job was cancelled")


class FileCopyError(BackupError):
    """Raised when a single file could not be copied."""

    def __init__(self, source: str, destination: str, reason: str):
        self.source = source
        self.destination = destination
        self.reason = reason
        super().__init__(f"Copy failed {source} -> {destination}: {reason}")


class InvalidBackupTypeError(BackupError, ValueError):
    """Raised when a backup type string does not name a known strategy."""

    def __init__(self, value: str):
        self.value = value
        super().__init__(f"Invalid backup type: '{value}'")
