"""
Pause/resume record owned by the job manager, one per registered job.
"""

import asyncio
from typing import Optional

from backup_agent.core.cancellation import CancellationHandle, wait_for_event


class PauseRecord:
    """
    An "is paused" flag plus a resume signal.

    The signal starts open. Pausing closes it, resuming opens it again. The
    job's own worker is the only waiter; the manager and the business
    software detector are the signallers.
    """

    def __init__(self) -> None:
        self._resume_signal = asyncio.Event()
        self._resume_signal.set()

    @property
    def is_paused(self) -> bool:
        return not self._resume_signal.is_set()

    def pause(self) -> None:
        self._resume_signal.clear()

    def resume(self) -> None:
        self._resume_signal.set()

    async def wait_until_resumed(
        self, cancellation: Optional[CancellationHandle] = None
    ) -> None:
        """Block while paused; raises JobCancelledError if cancelled meanwhile."""
        await wait_for_event(self._resume_signal, cancellation)

    def __repr__(self) -> str:
        return f"PauseRecord(paused={self.is_paused})"
