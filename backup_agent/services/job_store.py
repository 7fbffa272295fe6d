"""
Job Store - persists the job registry (name, source, target, type) as JSON.
"""

import asyncio
import logging
from pathlib import Path
from typing import List, Union

import aiofiles
from pydantic import TypeAdapter, ValidationError

from backup_agent.models import JobDefinition

_JOB_LIST = TypeAdapter(List[JobDefinition])


class JobStore:
    def __init__(self, file_path: Union[str, Path]):
        self.file_path = Path(file_path)
        self._lock = asyncio.Lock()

    async def load(self) -> List[JobDefinition]:
        """Read all job definitions; a missing or unreadable file yields an empty list."""
        async with self._lock:
            if not self.file_path.exists():
                logging.info(f"No job store at {self.file_path} - starting with no jobs")
                return []
            try:
                async with aiofiles.open(self.file_path, "r", encoding="utf-8") as f:
                    content = await f.read()
                return _JOB_LIST.validate_json(content or "[]")
            except (OSError, ValidationError) as e:
                logging.error(f"Could not read job store {self.file_path}: {e}")
                return []

    async def save(self, jobs: List[JobDefinition]) -> None:
        """Write the full registry, replacing the previous file atomically."""
        async with self._lock:
            self.file_path.parent.mkdir(parents=True, exist_ok=True)
            temp_path = self.file_path.with_suffix(self.file_path.suffix + ".tmp")
            payload = _JOB_LIST.dump_json(jobs, indent=2)
            async with aiofiles.open(temp_path, "wb") as f:
                await f.write(payload)
            await asyncio.to_thread(temp_path.replace, self.file_path)
            logging.debug(f"Saved {len(jobs)} job(s) to {self.file_path}")
