"""
Business Software Detector - polls for a named process and reports edge
transitions (started/stopped) to a listener, normally the job manager.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional, Protocol

import psutil

ProcessProbe = Callable[[str], bool]


class BusinessSoftwareListener(Protocol):
    async def on_business_software_detected(self) -> None: ...

    async def on_business_software_undetected(self) -> None: ...


def normalize_process_name(name: str) -> str:
    """Lower-case name without a trailing '.exe', so 'Calc.exe' matches 'calc'."""
    name = (name or "").strip().lower()
    if name.endswith(".exe"):
        name = name[: -len(".exe")]
    return name


def is_process_running(process_name: str) -> bool:
    """Check the process table for a process with the given name."""
    wanted = normalize_process_name(process_name)
    if not wanted:
        return False

    for process in psutil.process_iter(["name"]):
        try:
            name = process.info.get("name") or ""
        except (psutil.NoSuchProcess, psutil.AccessDenied, psutil.ZombieProcess):
            continue
        if normalize_process_name(name) == wanted:
            return True
    return False


class BusinessSoftwareDetector:
    def __init__(
        self,
        process_name: str = "",
        poll_interval_ms: int = 500,
        process_probe: ProcessProbe = is_process_running,
        listener: Optional[BusinessSoftwareListener] = None,
    ):
        self._process_name = normalize_process_name(process_name)
        self._poll_interval = poll_interval_ms / 1000
        self._process_probe = process_probe
        self._listener = listener

        self._is_running = False
        self._reported_running = False
        self._monitor_task: Optional[asyncio.Task] = None
        self._is_monitoring = False

        logging.info(
            f"BusinessSoftwareDetector initialiseret - process: "
            f"'{self._process_name or 'none'}', interval: {poll_interval_ms} ms"
        )

    @property
    def process_name(self) -> str:
        return self._process_name

    @property
    def is_running(self) -> bool:
        """True while the monitored process was seen running at the last check."""
        return self._is_running

    @property
    def is_monitoring(self) -> bool:
        return self._monitor_task is not None and not self._monitor_task.done()

    def set_listener(self, listener: BusinessSoftwareListener) -> None:
        self._listener = listener

    async def start_monitoring(self) -> None:
        if self.is_monitoring:
            logging.warning("Business software monitoring already running")
            return

        if not self._process_name:
            logging.info("Business software monitoring not started (no process configured)")
            return

        logging.info(f"Starting business software monitoring for '{self._process_name}'")
        await self.check_now()
        self._is_monitoring = True
        self._monitor_task = asyncio.create_task(self._monitoring_loop())

    async def stop_monitoring(self) -> None:
        self._is_monitoring = False
        if self._monitor_task:
            self._monitor_task.cancel()
            try:
                await self._monitor_task
            except asyncio.CancelledError:
                pass
            self._monitor_task = None
            logging.info("Business software monitoring stopped")

    async def update_business_software_name(self, new_name: str) -> None:
        """
        Change the monitored process.

        An empty name forces the "not running" state and stops monitoring. Going
        from no name to a name (re)starts the poll loop.
        """
        was_empty = not self._process_name
        self._process_name = normalize_process_name(new_name)

        if not self._process_name:
            logging.info("Business software monitoring disabled (no process configured)")
            await self.stop_monitoring()
            self._is_running = False
            await self._report_transition()
            return

        logging.info(f"Monitored business software updated to '{self._process_name}'")
        if was_empty or not self.is_monitoring:
            await self.start_monitoring()
        else:
            await self.check_now()

    async def check_now(self) -> bool:
        """Probe once, report a transition if the state changed, return the state."""
        if not self._process_name:
            self._is_running = False
        else:
            try:
                self._is_running = await asyncio.to_thread(
                    self._process_probe, self._process_name
                )
            except Exception as e:
                logging.error(f"Error while checking business software process: {e}")
        await self._report_transition()
        return self._is_running

    async def _report_transition(self) -> None:
        if self._is_running == self._reported_running:
            return
        self._reported_running = self._is_running

        if self._listener is None:
            return

        if self._is_running:
            logging.warning(f"Business software '{self._process_name}' detected - pausing jobs")
            await self._notify(self._listener.on_business_software_detected)
        else:
            logging.info("Business software stopped - resuming jobs")
            await self._notify(self._listener.on_business_software_undetected)

    @staticmethod
    async def _notify(callback: Callable[[], Awaitable[None]]) -> None:
        try:
            await callback()
        except Exception as e:
            logging.error(f"Business software listener failed: {e}", exc_info=True)

    async def _monitoring_loop(self) -> None:
        try:
            while self._is_monitoring:
                await asyncio.sleep(self._poll_interval)
                if not self._process_name:
                    continue
                await self.check_now()
        except asyncio.CancelledError:
            logging.debug("Business software monitoring loop cancelled")
