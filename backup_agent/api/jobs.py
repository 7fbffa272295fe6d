import asyncio
import logging
from typing import List, Optional, Set

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from backup_agent.dependencies import get_job_manager
from backup_agent.models import BackupType, JobDefinition, JobStatus
from backup_agent.services.job_manager import (
    BUSINESS_SOFTWARE_RUNNING_MESSAGE,
    BackupJobManager,
)

router = APIRouter(prefix="/api/jobs", tags=["jobs"])

# Strong references to executions started from the remote console
_running_executions: Set[asyncio.Task] = set()


class JobUpdate(BaseModel):
    source: str
    target: str
    type: BackupType = BackupType.COMPLETE


class IndexSelection(BaseModel):
    indices: Optional[List[int]] = Field(
        default=None, description="Job indices; omit to target every job"
    )


@router.get("", response_model=List[JobStatus])
async def list_job_statuses(manager: BackupJobManager = Depends(get_job_manager)):
    return manager.get_job_statuses()


@router.get("/definitions", response_model=List[JobDefinition])
async def list_job_definitions(manager: BackupJobManager = Depends(get_job_manager)):
    return [job.to_definition() for job in manager.list_jobs()]


@router.post("", status_code=201)
async def add_job(
    definition: JobDefinition, manager: BackupJobManager = Depends(get_job_manager)
):
    added = await manager.add_job(
        definition.name, definition.source, definition.target, definition.type
    )
    if not added:
        raise HTTPException(status_code=409, detail=f"Job '{definition.name}' already exists")
    return {"success": True, "name": definition.name}


@router.put("/{name}")
async def update_job(
    name: str, update: JobUpdate, manager: BackupJobManager = Depends(get_job_manager)
):
    updated = await manager.update_job(name, update.source, update.target, update.type)
    if not updated:
        raise HTTPException(status_code=404, detail=f"Job '{name}' not found")
    return {"success": True, "name": name}


@router.delete("/{index}")
async def remove_job(index: int, manager: BackupJobManager = Depends(get_job_manager)):
    if not await manager.remove_job(index):
        raise HTTPException(status_code=404, detail=f"No job at index {index}")
    return {"success": True, "index": index}


@router.post("/execute", status_code=202)
async def execute_jobs(
    selection: IndexSelection, manager: BackupJobManager = Depends(get_job_manager)
):
    """Start jobs in the background; progress is reported over the WebSocket."""
    detector = manager.detector
    if detector is not None and detector.is_running:
        return {"success": False, "message": BUSINESS_SOFTWARE_RUNNING_MESSAGE}

    indices = selection.indices
    if indices is None:
        indices = list(range(len(manager.list_jobs())))

    task = asyncio.create_task(_execute_and_log(manager, indices))
    _running_executions.add(task)
    task.add_done_callback(_running_executions.discard)
    return {"success": True, "message": "Execution started", "indices": indices}


async def _execute_and_log(manager: BackupJobManager, indices: List[int]) -> None:
    success, message = await manager.execute_jobs(indices)
    if success:
        logging.info(f"Remote execution of {indices}: {message}")
    else:
        logging.warning(f"Remote execution of {indices}: {message}")


@router.post("/pause")
async def pause_jobs(
    selection: IndexSelection, manager: BackupJobManager = Depends(get_job_manager)
):
    count = await manager.pause_jobs(selection.indices)
    return {"success": True, "paused": count}


@router.post("/resume")
async def resume_jobs(
    selection: IndexSelection, manager: BackupJobManager = Depends(get_job_manager)
):
    count = await manager.resume_jobs(selection.indices)
    return {"success": True, "resumed": count}


@router.post("/{index}/stop")
async def stop_job(index: int, manager: BackupJobManager = Depends(get_job_manager)):
    if manager.get_job(index) is None:
        raise HTTPException(status_code=404, detail=f"No job at index {index}")
    stopped = await manager.stop_job(index)
    return {
        "success": stopped,
        "message": "Job stopped" if stopped else "Job is not running",
    }
