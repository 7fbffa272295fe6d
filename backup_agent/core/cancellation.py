"""
Cooperative cancellation for job workers.
"""

import asyncio
import logging
from typing import Optional

from backup_agent.core.exceptions import JobCancelledError


class CancellationHandle:
    """
    One cancellation handle per job execution.

    The worker checks the handle at its suspension points (per-file
    boundary, pause wait, admission wait). Cancelling never interrupts a
    byte copy that is already running.
    """

    def __init__(self, job_name: str = ""):
        self.job_name = job_name
        self._cancelled = asyncio.Event()
        self._disposed = False

    @property
    def is_cancelled(self) -> bool:
        return self._cancelled.is_set()

    @property
    def is_disposed(self) -> bool:
        return self._disposed

    def cancel(self) -> None:
        if not self._cancelled.is_set():
            logging.info(f"Cancellation requested for job '{self.job_name}'")
        self._cancelled.set()

    def dispose(self) -> None:
        """Invalidate the handle; a disposed handle counts as cancelled."""
        self._disposed = True
        self._cancelled.set()

    def raise_if_cancelled(self) -> None:
        if self._cancelled.is_set():
            raise JobCancelledError(self.job_name)

    async def wait_for(self, event: asyncio.Event) -> None:
        """
        Wait until ``event`` is set, unless this handle is cancelled first.

        Raises:
            JobCancelledError: If cancellation is requested before or while waiting.
        """
        self.raise_if_cancelled()
        if event.is_set():
            return

        event_waiter = asyncio.ensure_future(event.wait())
        cancel_waiter = asyncio.ensure_future(self._cancelled.wait())
        try:
            await asyncio.wait(
                {event_waiter, cancel_waiter}, return_when=asyncio.FIRST_COMPLETED
            )
        finally:
            for waiter in (event_waiter, cancel_waiter):
                if not waiter.done():
                    waiter.cancel()

        self.raise_if_cancelled()


async def wait_for_event(
    event: asyncio.Event, cancellation: Optional[CancellationHandle]
) -> None:
    """Wait on ``event``, cancellable through ``cancellation`` when one is given."""
    if cancellation is None:
        await event.wait()
    else:
        await cancellation.wait_for(event)
