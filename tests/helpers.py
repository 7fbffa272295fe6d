"""Shared helpers for building source trees in tests."""

import os
import time
from pathlib import Path
from typing import Iterable, List, Optional


def write_file(path: Path, content: str = "data", mtime: Optional[float] = None) -> Path:
    """Create ``path`` with ``content``; optionally force its modification time."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content)
    if mtime is not None:
        os.utime(path, (mtime, mtime))
    return path


def make_tree(root: Path, names: Iterable[str], content: str = "data") -> List[Path]:
    return [write_file(root / name, content) for name in names]


def an_hour_ago() -> float:
    return time.time() - 3600


class EventRecorder:
    """Async observer that remembers every event it receives."""

    def __init__(self):
        self.events = []

    async def __call__(self, event) -> None:
        self.events.append(event)

    @property
    def actions(self) -> List[str]:
        return [event.action for event in self.events]

    def for_job(self, job_name: str) -> "EventRecorder":
        recorder = EventRecorder()
        recorder.events = [e for e in self.events if e.job_name == job_name]
        return recorder
