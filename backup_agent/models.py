from enum import Enum
from uuid import uuid4

from pydantic import BaseModel, Field, ConfigDict


class BackupType(str, Enum):
    """
    Backup strategi for et job.

    Complete: target mappen slettes og hele source kopieres (mirror)
    Differential: kun filer der mangler eller er nyere end target kopieres
    """

    COMPLETE = "Complete"
    DIFFERENTIAL = "Differential"


class JobState(str, Enum):
    """
    Livscyklus for et backup job.

    Normal Workflow: inactive -> active -> completed
    Pause: active <-> paused (gentages vilkårligt)
    Alternative: -> error (ved fejl), -> inactive (ved annullering)
    """

    INACTIVE = "inactive"
    ACTIVE = "active"
    PAUSED = "paused"
    COMPLETED = "completed"
    ERROR = "error"
    CANCELLED = "cancelled"


class JobDefinition(BaseModel):
    """Persisted configuration of a single backup job."""

    name: str = Field(..., min_length=1, description="Unikt navn på jobbet")
    source: str = Field(..., description="Source directory")
    target: str = Field(..., description="Target directory")
    type: BackupType = Field(default=BackupType.COMPLETE, description="Backup strategi")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "name": "Documents",
                "source": "/home/user/Documents",
                "target": "/mnt/backup/Documents",
                "type": "Differential",
            }
        }
    )


class JobStatus(BaseModel):
    """Read-only snapshot of a job, as served to remote consumers."""

    index: int = Field(..., ge=0)
    name: str
    state: JobState
    progress: int = Field(default=0, ge=0, le=100)


class JobStateEntry(BaseModel):
    """One real-time entry in the state file."""

    name: str
    timestamp: str
    state: JobState = JobState.INACTIVE
    backup_type: BackupType = BackupType.COMPLETE
    total_files: int = Field(default=0, ge=0)
    total_bytes: int = Field(default=0, ge=0)
    files_remaining: int = Field(default=0, ge=0)
    bytes_remaining: int = Field(default=0, ge=0)
    progress: int = Field(default=0, ge=0, le=100)
    current_source_file: str = ""
    current_target_file: str = ""


def new_job_id() -> str:
    return str(uuid4())
