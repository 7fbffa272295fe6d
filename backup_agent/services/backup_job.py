"""
Backup Job - one source -> target mapping with its own state machine.

The job runs its copy loop when the manager calls ``execute``. Between files it
checks its cancellation handle and its pause record; around every copy it asks
the transfer coordinator for admission.
"""

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from backup_agent.core.cancellation import CancellationHandle
from backup_agent.core.events.event_bus import JobEventBus, JobObserver
from backup_agent.core.events.job_event import JobEvent
from backup_agent.core.events.job_events import (
    FileProcessedEvent,
    JobCancelledEvent,
    JobCompletedEvent,
    JobFailedEvent,
    JobPausedEvent,
    JobResumedEvent,
    JobStartedEvent,
)
from backup_agent.core.exceptions import FileCopyError, JobCancelledError
from backup_agent.core.pause_control import PauseRecord
from backup_agent.models import BackupType, JobDefinition, JobState, JobStatus, new_job_id
from backup_agent.services.copy.file_copy_executor import FileCopyExecutor
from backup_agent.services.encryption import EncryptionGate
from backup_agent.services.strategies import BackupPlan, BackupStrategy, create_strategy
from backup_agent.services.transfer_coordinator import TransferCoordinator


def calculate_progress(processed: int, total: int) -> int:
    """Percentage of processed files; 100 is reserved for a completed job."""
    if total <= 0:
        return 0
    return min(99, processed * 100 // total)


@dataclass(frozen=True)
class JobRun:
    """The mapping an execution works on, fixed when the execution starts."""

    source: str
    target: str
    backup_type: BackupType
    strategy: BackupStrategy


class BackupJob:
    def __init__(
        self,
        name: str,
        source: str,
        target: str,
        backup_type: BackupType,
        strategy: Optional[BackupStrategy] = None,
        job_id: Optional[str] = None,
        index: int = 0,
    ):
        self.id = job_id or new_job_id()
        self.name = name
        self.source = source
        self.target = target
        self.backup_type = backup_type
        self.strategy = strategy or create_strategy(backup_type)
        self.index = index
        self.selected = False

        self.state = JobState.INACTIVE
        self.progress = 0
        self.total_files = 0
        self.total_bytes = 0
        self.files_processed = 0
        self.files_copied = 0

        self.event_bus = JobEventBus()
        self._run: Optional[JobRun] = None

    def __repr__(self) -> str:
        return (
            f"BackupJob(name={self.name!r}, index={self.index}, "
            f"type={self.backup_type.value}, state={self.state.value}, progress={self.progress})"
        )

    # --- Observers -------------------------------------------------------------

    async def attach_observer(self, observer: JobObserver) -> None:
        await self.event_bus.subscribe(observer)

    async def detach_observer(self, observer: JobObserver) -> None:
        await self.event_bus.unsubscribe(observer)

    # --- Views -----------------------------------------------------------------

    def to_definition(self) -> JobDefinition:
        return JobDefinition(
            name=self.name, source=self.source, target=self.target, type=self.backup_type
        )

    def to_status(self) -> JobStatus:
        return JobStatus(
            index=self.index, name=self.name, state=self.state, progress=self.progress
        )

    def reconfigure(self, source: str, target: str, backup_type: BackupType) -> None:
        """Change the mapping in place; an execution in progress finishes with its own plan."""
        self.source = source
        self.target = target
        self.backup_type = backup_type
        self.strategy = create_strategy(backup_type)

    def reset(self) -> None:
        """Back to the initial state: inactive with zero progress."""
        self.state = JobState.INACTIVE
        self.progress = 0
        self.files_processed = 0
        self.files_copied = 0

    # --- Execution -------------------------------------------------------------

    async def execute(
        self,
        pause_record: PauseRecord,
        cancellation: CancellationHandle,
        transfer_coordinator: TransferCoordinator,
        encryption_gate: EncryptionGate,
        copy_executor: FileCopyExecutor,
    ) -> bool:
        """
        Run the job to a terminal state.

        Returns:
            True when the job completed, False on error or cancellation.
        """
        self.state = JobState.ACTIVE
        self.progress = 0
        self.files_processed = 0
        self.files_copied = 0
        registered_priority: List[Path] = []
        run = JobRun(self.source, self.target, self.backup_type, self.strategy)
        self._run = run

        logging.info(f"Job '{self.name}' starting ({run.backup_type.value}): {run.source} -> {run.target}")

        try:
            cancellation.raise_if_cancelled()

            plan = await asyncio.to_thread(run.strategy.build_plan, run.source, run.target)
            self.total_files = plan.total_files
            self.total_bytes = plan.total_bytes

            ordered_files = self._order_for_transfer(plan, transfer_coordinator)
            for path in ordered_files:
                if plan.should_copy(path) and transfer_coordinator.is_priority_file(path):
                    transfer_coordinator.register_pending_priority_file(path)
                    registered_priority.append(path)

            await self._publish(JobStartedEvent)

            for source_file in ordered_files:
                cancellation.raise_if_cancelled()
                await self._wait_if_paused(pause_record, cancellation)
                await self._process_file(
                    source_file,
                    plan,
                    cancellation,
                    transfer_coordinator,
                    encryption_gate,
                    copy_executor,
                )

            self.state = JobState.COMPLETED
            self.progress = 100
            logging.info(
                f"Job '{self.name}' completed: {self.files_copied} copied, "
                f"{self.files_processed - self.files_copied} up to date"
            )
            await self._publish(JobCompletedEvent)
            return True

        except JobCancelledError:
            self.reset()
            logging.info(f"Job '{self.name}' cancelled")
            await self._publish(JobCancelledEvent)
            return False

        except Exception as e:
            self.state = JobState.ERROR
            logging.error(f"Job '{self.name}' failed: {e}")
            # Failed events carry zero totals
            await self._publish(
                JobFailedEvent,
                total_files=0,
                total_bytes=0,
                progress=0,
                error_message=str(e),
            )
            return False

        finally:
            for path in registered_priority:
                transfer_coordinator.unregister_pending_priority_file(path)

    def _order_for_transfer(
        self, plan: BackupPlan, transfer_coordinator: TransferCoordinator
    ) -> List[Path]:
        # Stable sort: priority files first, scan order otherwise
        return sorted(
            plan.source_files,
            key=lambda path: not transfer_coordinator.is_priority_file(path),
        )

    async def _wait_if_paused(
        self, pause_record: PauseRecord, cancellation: CancellationHandle
    ) -> None:
        if not pause_record.is_paused:
            return

        self.state = JobState.PAUSED
        logging.info(f"Job '{self.name}' paused at {self.progress}%")
        await self._publish(JobPausedEvent)

        await pause_record.wait_until_resumed(cancellation)

        self.state = JobState.ACTIVE
        logging.info(f"Job '{self.name}' resumed")
        await self._publish(JobResumedEvent)

    async def _process_file(
        self,
        source_file: Path,
        plan: BackupPlan,
        cancellation: CancellationHandle,
        transfer_coordinator: TransferCoordinator,
        encryption_gate: EncryptionGate,
        copy_executor: FileCopyExecutor,
    ) -> None:
        destination = plan.destination_for(source_file)
        file_size = plan.file_sizes.get(source_file, 0)
        transfer_ms = 0
        encryption_ms = 0
        copied = plan.should_copy(source_file)

        if copied:
            await asyncio.to_thread(destination.parent.mkdir, parents=True, exist_ok=True)
            await transfer_coordinator.request_transfer(source_file, file_size, cancellation)
            try:
                result = await copy_executor.copy_file(source_file, destination)
                if not result.success:
                    raise FileCopyError(
                        str(source_file), str(destination), result.error_message or "unknown error"
                    )
                transfer_ms = result.elapsed_ms
                if encryption_gate.should_encrypt(destination):
                    encryption_ms = await encryption_gate.encrypt(destination)
            finally:
                transfer_coordinator.release_transfer(source_file)
                if transfer_coordinator.is_priority_file(source_file):
                    transfer_coordinator.unregister_pending_priority_file(source_file)
            self.files_copied += 1
            logging.debug(f"[{self.name}] copied {source_file} -> {destination} ({transfer_ms} ms)")

        self.files_processed += 1
        self.progress = max(self.progress, calculate_progress(self.files_processed, self.total_files))

        await self._publish(
            FileProcessedEvent,
            source_path=str(source_file),
            target_path=str(destination),
            transfer_ms=transfer_ms,
            encryption_ms=encryption_ms,
            copied=copied,
            file_size=file_size,
        )

    async def _publish(self, event_class: type, **fields) -> None:
        run = self._run
        values = dict(
            job_name=self.name,
            backup_type=run.backup_type,
            source_path=run.source,
            target_path=run.target,
            state=self.state,
            total_files=self.total_files,
            total_bytes=self.total_bytes,
            progress=self.progress,
        )
        values.update(fields)
        event: JobEvent = event_class(**values)
        await self.event_bus.publish(event)
