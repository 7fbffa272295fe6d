"""
State File Observer - keeps a real-time JSON snapshot of every job.
"""

import asyncio
import logging
from datetime import datetime
from pathlib import Path
from typing import Dict, Optional, Union

import aiofiles
from pydantic import TypeAdapter, ValidationError

from backup_agent.core.events.job_event import JobEvent
from backup_agent.core.events.job_events import (
    TERMINAL_EVENTS,
    FileProcessedEvent,
    JobFailedEvent,
    JobStartedEvent,
)
from backup_agent.models import JobStateEntry

_STATE_FILE = TypeAdapter(Dict[str, JobStateEntry])


class StateFileObserver:
    def __init__(self, file_path: Union[str, Path]):
        self.file_path = Path(file_path)
        self._entries: Dict[str, JobStateEntry] = {}
        self._bytes_done: Dict[str, int] = {}
        self._lock = asyncio.Lock()
        self._loaded = False

    def get_entry(self, job_name: str) -> Optional[JobStateEntry]:
        return self._entries.get(job_name)

    async def __call__(self, event: JobEvent) -> None:
        async with self._lock:
            if not self._loaded:
                await self._load()

            entry = self._entries.get(event.job_name) or JobStateEntry(
                name=event.job_name, timestamp=_now()
            )
            entry = self._apply(entry, event)
            self._entries[event.job_name] = entry
            await self._save()

    def _apply(self, entry: JobStateEntry, event: JobEvent) -> JobStateEntry:
        updates = dict(
            timestamp=_now(),
            state=event.state,
            backup_type=event.backup_type,
            progress=event.progress,
        )

        if isinstance(event, JobStartedEvent):
            self._bytes_done[event.job_name] = 0
            updates.update(
                total_files=event.total_files,
                total_bytes=event.total_bytes,
                files_remaining=event.total_files,
                bytes_remaining=event.total_bytes,
                current_source_file="",
                current_target_file="",
            )
        elif isinstance(event, FileProcessedEvent):
            done = self._bytes_done.get(event.job_name, 0) + event.file_size
            self._bytes_done[event.job_name] = done
            updates.update(
                files_remaining=max(0, entry.files_remaining - 1),
                bytes_remaining=max(0, event.total_bytes - done),
                current_source_file=event.source_path,
                current_target_file=event.target_path,
            )
        elif isinstance(event, TERMINAL_EVENTS):
            self._bytes_done.pop(event.job_name, None)
            updates.update(
                files_remaining=0,
                bytes_remaining=0,
                current_source_file="",
                current_target_file="",
            )
            if isinstance(event, JobFailedEvent):
                updates.update(total_files=0, total_bytes=0)

        return entry.model_copy(update=updates)

    async def _load(self) -> None:
        self._loaded = True
        if not self.file_path.exists():
            return
        try:
            async with aiofiles.open(self.file_path, "r", encoding="utf-8") as f:
                content = await f.read()
            self._entries = _STATE_FILE.validate_json(content or "{}")
        except (OSError, ValidationError) as e:
            logging.warning(f"Ignoring unreadable state file {self.file_path}: {e}")

    async def _save(self) -> None:
        self.file_path.parent.mkdir(parents=True, exist_ok=True)
        async with aiofiles.open(self.file_path, "wb") as f:
            await f.write(_STATE_FILE.dump_json(self._entries, indent=2))


def _now() -> str:
    return datetime.now().isoformat(timespec="seconds")
