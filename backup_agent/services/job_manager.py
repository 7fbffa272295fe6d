"""
Backup Job Manager - process-wide registry of backup jobs.

The manager is the only entry point for the UI and the remote console. It owns
the pause record and the cancellation handle of every job, launches job
workers, fans global observers out to every job and reacts to the business
software detector.

Bookkeeping is keyed by each job's stable id. Positional indices, which is
what callers use, are derived from registry order; after a removal
``_reindex_jobs`` renumbers the jobs that moved.
"""

import asyncio
import logging
from typing import Dict, Iterable, List, Optional, Tuple, Union

from backup_agent.core.cancellation import CancellationHandle
from backup_agent.core.events.event_bus import JobObserver
from backup_agent.core.exceptions import InvalidBackupTypeError
from backup_agent.core.pause_control import PauseRecord
from backup_agent.models import BackupType, JobState, JobStatus
from backup_agent.services.backup_job import BackupJob
from backup_agent.services.business_software_detector import BusinessSoftwareDetector
from backup_agent.services.copy.file_copy_executor import FileCopyExecutor
from backup_agent.services.encryption import EncryptionGate, NoEncryptionGate
from backup_agent.services.job_store import JobStore
from backup_agent.services.strategies import create_strategy, parse_backup_type
from backup_agent.services.transfer_coordinator import TransferCoordinator

BUSINESS_SOFTWARE_RUNNING_MESSAGE = (
    "Business software is running - backup jobs cannot be started"
)
ALL_JOBS_SUCCEEDED_MESSAGE = "All jobs completed successfully"
SOME_JOBS_FAILED_MESSAGE = "Some jobs failed"
NO_VALID_JOBS_MESSAGE = "No valid jobs to execute"


class BackupJobManager:
    def __init__(
        self,
        transfer_coordinator: TransferCoordinator,
        copy_executor: FileCopyExecutor,
        encryption_gate: Optional[EncryptionGate] = None,
        job_store: Optional[JobStore] = None,
        detector: Optional[BusinessSoftwareDetector] = None,
    ):
        self._transfer_coordinator = transfer_coordinator
        self._copy_executor = copy_executor
        self._encryption_gate = encryption_gate or NoEncryptionGate()
        self._job_store = job_store
        self._detector = detector
        if detector is not None:
            detector.set_listener(self)

        self._jobs: List[BackupJob] = []
        self._pause_records: Dict[str, PauseRecord] = {}
        self._cancellation_handles: Dict[str, CancellationHandle] = {}
        self._workers: Dict[str, asyncio.Task] = {}
        self._observers: List[JobObserver] = []
        self._lock = asyncio.Lock()

        logging.info("BackupJobManager initialiseret")

    @property
    def detector(self) -> Optional[BusinessSoftwareDetector]:
        return self._detector

    # --- Registry --------------------------------------------------------------

    async def load_jobs(self) -> int:
        """Restore the registry from the job store; returns the number of loaded jobs."""
        if self._job_store is None:
            return 0

        definitions = await self._job_store.load()
        loaded = 0
        async with self._lock:
            for definition in definitions:
                if self._find_index(definition.name) is not None:
                    logging.warning(f"Skipping duplicate job '{definition.name}' in job store")
                    continue
                await self._register_job(definition.name, definition.source, definition.target, definition.type)
                loaded += 1
        logging.info(f"Loaded {loaded} backup job(s) from job store")
        return loaded

    async def add_job(
        self, name: str, source: str, target: str, backup_type: Union[str, BackupType]
    ) -> bool:
        async with self._lock:
            if self._find_index(name) is not None:
                logging.warning(f"Cannot add job '{name}': name already registered")
                return False
            try:
                parsed_type = parse_backup_type(backup_type)
            except InvalidBackupTypeError as e:
                logging.warning(f"Cannot add job '{name}': {e}")
                return False

            await self._register_job(name, source, target, parsed_type)
            await self._save_jobs()
            logging.info(f"Job '{name}' added at index {len(self._jobs) - 1}")
            return True

    async def update_job(
        self, name: str, source: str, target: str, backup_type: Union[str, BackupType]
    ) -> bool:
        async with self._lock:
            index = self._find_index(name)
            if index is None:
                logging.warning(f"Cannot update job '{name}': not found")
                return False
            try:
                parsed_type = parse_backup_type(backup_type)
            except InvalidBackupTypeError as e:
                logging.warning(f"Cannot update job '{name}': {e}")
                return False

            # A running execution keeps the plan it already built
            self._jobs[index].reconfigure(source, target, parsed_type)

            await self._save_jobs()
            logging.info(f"Job '{name}' updated at index {index}")
            return True

    async def remove_job(self, index: int) -> bool:
        async with self._lock:
            if not self._is_valid_index(index):
                logging.warning(f"Cannot remove job: invalid index {index}")
                return False

            job = self._jobs.pop(index)
            handle = self._cancellation_handles.pop(job.id, None)
            if handle is not None:
                handle.cancel()
            record = self._pause_records.pop(job.id, None)
            if record is not None:
                record.resume()

            self._reindex_jobs(index)
            await self._save_jobs()
            logging.info(f"Job '{job.name}' removed from index {index}")
            return True

    def list_jobs(self) -> List[BackupJob]:
        return list(self._jobs)

    def get_job(self, index: int) -> Optional[BackupJob]:
        if not self._is_valid_index(index):
            return None
        return self._jobs[index]

    def get_job_statuses(self) -> List[JobStatus]:
        return [job.to_status() for job in self._jobs]

    def is_job_paused(self, index: int) -> bool:
        if not self._is_valid_index(index):
            return False
        record = self._pause_records.get(self._jobs[index].id)
        return record is not None and record.is_paused

    def is_job_running(self, index: int) -> bool:
        if not self._is_valid_index(index):
            return False
        return self._jobs[index].id in self._cancellation_handles

    # --- Execution -------------------------------------------------------------

    async def execute_jobs(self, indices: Iterable[int]) -> Tuple[bool, str]:
        """
        Run the selected jobs concurrently and wait for all of them.

        Returns:
            (success, message). Success requires every launched job to complete.
        """
        async with self._lock:
            if self._detector is not None and self._detector.is_running:
                logging.warning(f"Execution refused: {BUSINESS_SOFTWARE_RUNNING_MESSAGE}")
                return False, BUSINESS_SOFTWARE_RUNNING_MESSAGE

            workers = []
            for index in indices:
                if not self._is_valid_index(index):
                    logging.warning(f"Skipping invalid job index {index}")
                    continue
                job = self._jobs[index]

                previous_handle = self._cancellation_handles.pop(job.id, None)
                if previous_handle is not None:
                    previous_handle.dispose()
                previous_worker = self._workers.get(job.id)

                handle = CancellationHandle(job.name)
                self._cancellation_handles[job.id] = handle
                worker = asyncio.create_task(self._run_job(job, handle, previous_worker))
                self._workers[job.id] = worker
                workers.append(worker)

        if not workers:
            return False, NO_VALID_JOBS_MESSAGE

        results = await asyncio.gather(*workers)
        if all(results):
            return True, ALL_JOBS_SUCCEEDED_MESSAGE
        return False, SOME_JOBS_FAILED_MESSAGE

    async def _run_job(
        self,
        job: BackupJob,
        handle: CancellationHandle,
        previous_worker: Optional[asyncio.Task] = None,
    ) -> bool:
        try:
            if previous_worker is not None and not previous_worker.done():
                # One worker per job: the superseded run finishes its cancellation first
                logging.info(f"Job '{job.name}' waiting for its previous execution to stop")
                await asyncio.wait({previous_worker})

            record = self._pause_records.setdefault(job.id, PauseRecord())
            return await job.execute(
                pause_record=record,
                cancellation=handle,
                transfer_coordinator=self._transfer_coordinator,
                encryption_gate=self._encryption_gate,
                copy_executor=self._copy_executor,
            )
        finally:
            async with self._lock:
                # A newer execution may already own this job's slot
                if self._cancellation_handles.get(job.id) is handle:
                    del self._cancellation_handles[job.id]
                if self._workers.get(job.id) is asyncio.current_task():
                    del self._workers[job.id]

    async def pause_jobs(self, indices: Optional[Iterable[int]] = None) -> int:
        """Pause the given jobs, or every job when ``indices`` is None."""
        async with self._lock:
            return self._set_paused(indices, paused=True)

    async def resume_jobs(self, indices: Optional[Iterable[int]] = None) -> int:
        """Resume the given jobs, or every job when ``indices`` is None."""
        async with self._lock:
            return self._set_paused(indices, paused=False)

    async def stop_job(self, index: int) -> bool:
        """
        Cancel the current execution of a job.

        Returns:
            True if a running execution was signalled, False if the index is
            invalid or the job was not running (it is then reset to inactive).
        """
        async with self._lock:
            if not self._is_valid_index(index):
                logging.warning(f"Cannot stop job: invalid index {index}")
                return False

            job = self._jobs[index]
            handle = self._cancellation_handles.get(job.id)
            if handle is None:
                job.reset()
                logging.info(f"Job '{job.name}' is not running - reset to inactive")
                return False

            record = self._pause_records.get(job.id)
            if record is not None and record.is_paused:
                record.resume()
            handle.cancel()
            logging.info(f"Job '{job.name}' stopped")
            return True

    # --- Observers -------------------------------------------------------------

    async def attach_observer(self, observer: JobObserver) -> None:
        async with self._lock:
            if observer not in self._observers:
                self._observers.append(observer)
            for job in self._jobs:
                await job.attach_observer(observer)

    async def detach_observer(self, observer: JobObserver) -> None:
        async with self._lock:
            if observer in self._observers:
                self._observers.remove(observer)
            for job in self._jobs:
                await job.detach_observer(observer)

    @property
    def observers(self) -> List[JobObserver]:
        return list(self._observers)

    # --- Business software -----------------------------------------------------

    async def on_business_software_detected(self) -> None:
        async with self._lock:
            if any(job.state == JobState.ACTIVE for job in self._jobs):
                paused = self._set_paused(None, paused=True)
                logging.warning(f"Business software detected - paused {paused} job(s)")

    async def on_business_software_undetected(self) -> None:
        async with self._lock:
            if any(record.is_paused for record in self._pause_records.values()):
                resumed = self._set_paused(None, paused=False)
                logging.info(f"Business software gone - resumed {resumed} job(s)")

    # --- Internals (call with the lock held) -----------------------------------

    async def _register_job(
        self, name: str, source: str, target: str, backup_type: BackupType
    ) -> BackupJob:
        job = BackupJob(
            name=name,
            source=source,
            target=target,
            backup_type=backup_type,
            strategy=create_strategy(backup_type),
            index=len(self._jobs),
        )
        for observer in self._observers:
            await job.attach_observer(observer)
        self._jobs.append(job)
        self._pause_records[job.id] = PauseRecord()
        return job

    def _reindex_jobs(self, removed_index: int) -> None:
        """Every job after ``removed_index`` moves down by one position."""
        for position in range(removed_index, len(self._jobs)):
            self._jobs[position].index = position

    def _set_paused(self, indices: Optional[Iterable[int]], paused: bool) -> int:
        if indices is None:
            targets = list(self._jobs)
        else:
            targets = [self._jobs[i] for i in indices if self._is_valid_index(i)]

        for job in targets:
            record = self._pause_records.setdefault(job.id, PauseRecord())
            if paused:
                record.pause()
            else:
                record.resume()
            logging.debug(f"Job '{job.name}' {'paused' if paused else 'resumed'}")
        return len(targets)

    def _find_index(self, name: str) -> Optional[int]:
        for position, job in enumerate(self._jobs):
            if job.name == name:
                return position
        return None

    def _is_valid_index(self, index: int) -> bool:
        return isinstance(index, int) and 0 <= index < len(self._jobs)

    async def _save_jobs(self) -> None:
        if self._job_store is None:
            return
        try:
            await self._job_store.save([job.to_definition() for job in self._jobs])
        except OSError as e:
            logging.error(f"Could not persist job registry: {e}")
