import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import Depends, FastAPI, Request

from .api import jobs, websockets
from .dependencies import (
    attach_default_observers,
    get_business_software_detector,
    get_job_manager,
    get_settings,
    get_status_broadcaster,
)
from .logging_config import setup_logging
from .observers.status_broadcaster import StatusBroadcaster
from .services.job_manager import BackupJobManager


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager"""
    settings = get_settings()
    setup_logging(settings)

    logging.info("Backup Agent starting up...")
    logging.info(f"Job store: {settings.jobs_file_path}")
    logging.info(f"State file: {settings.state_file_path}")

    manager = get_job_manager()
    await attach_default_observers(manager)
    await manager.load_jobs()

    broadcaster = get_status_broadcaster()
    broadcaster.start_sender_task()

    detector = get_business_software_detector()
    await detector.start_monitoring()

    yield

    logging.info("Backup Agent shutting down...")

    await detector.stop_monitoring()
    stopped = 0
    for index in range(len(manager.list_jobs())):
        if manager.is_job_running(index) and await manager.stop_job(index):
            stopped += 1
    if stopped:
        logging.info(f"Stopped {stopped} running job(s)")
    broadcaster.stop_sender_task()

    logging.info("Alle background tasks stoppet")


app = FastAPI(
    title="Backup Agent",
    description="Concurrent backup jobs with pause/resume, priority transfers and business software detection",
    version="0.1.0",
    lifespan=lifespan,
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    logging.info(
        f"Incoming request: {request.method} {request.url.path}",
        extra={
            "operation": "http_request",
            "method": request.method,
            "path": request.url.path,
            "client_ip": request.client.host if request.client else "unknown",
        },
    )

    response = await call_next(request)

    logging.info(
        f"Response: {response.status_code}",
        extra={
            "operation": "http_response",
            "status_code": response.status_code,
            "path": request.url.path,
        },
    )

    return response


app.include_router(jobs.router)
app.include_router(websockets.router)


@app.get("/")
async def root():
    """Health check endpoint."""
    return {"status": "ok", "message": "Backup Agent is running"}


@app.get("/health")
async def health(
    manager: BackupJobManager = Depends(get_job_manager),
    broadcaster: StatusBroadcaster = Depends(get_status_broadcaster),
):
    """Detaljeret health check."""
    detector = manager.detector
    return {
        "status": "healthy",
        "service": "backup-agent",
        "business_software_running": detector is not None and detector.is_running,
        "jobs": len(manager.list_jobs()),
        "remote_consoles": broadcaster.connection_count,
    }


if __name__ == "__main__":
    uvicorn.run(
        "backup_agent.main:app", host="0.0.0.0", port=8000, reload=False, log_level="info"
    )
