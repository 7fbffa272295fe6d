"""
Transfer Coordinator - process-wide admission gate for file transfers.

Two rules decide whether a transfer may start:

1. Priority: while any priority file is pending, a file that is not itself
   pending-priority has to wait. A priority file is never held by this rule.
2. Size: only one "large" file (above ``max_parallel_size_kb``) may be
   transferred at a time.

All bookkeeping happens on the event loop without awaiting between a check
and the matching update, so a check-and-admit is atomic for every caller.
"""

import asyncio
import logging
from pathlib import Path
from typing import FrozenSet, Iterable, Optional, Set, Union

from backup_agent.config import Settings, parse_extension_list
from backup_agent.core.cancellation import CancellationHandle, wait_for_event

PathLike = Union[str, Path]


def _key(path: PathLike) -> str:
    return str(Path(path).absolute())


class TransferCoordinator:
    def __init__(
        self,
        priority_extensions: Iterable[str] = (),
        max_parallel_size_kb: int = 1024,
    ):
        self._priority_extensions: FrozenSet[str] = parse_extension_list(
            ",".join(priority_extensions)
        )
        self._max_parallel_size_kb = max_parallel_size_kb

        self._pending_priority_files: Set[str] = set()
        self._transferring_priority_files: Set[str] = set()
        self._transferring_large_files: Set[str] = set()
        self._active_transfers: Set[str] = set()

        # Replaced on every state change; waiters re-check their rules when it fires
        self._state_changed = asyncio.Event()

        logging.info(
            f"TransferCoordinator initialiseret - priority extensions: "
            f"{sorted(self._priority_extensions) or 'none'}, "
            f"max parallel size: {max_parallel_size_kb} KB"
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "TransferCoordinator":
        return cls(
            priority_extensions=settings.priority_extension_set,
            max_parallel_size_kb=settings.max_parallel_size_kb,
        )

    @property
    def priority_extensions(self) -> FrozenSet[str]:
        return self._priority_extensions

    @property
    def pending_priority_count(self) -> int:
        return len(self._pending_priority_files)

    @property
    def active_transfer_count(self) -> int:
        return len(self._active_transfers)

    def is_priority_extension(self, ext: str) -> bool:
        ext = ext.strip().lower()
        if ext and not ext.startswith("."):
            ext = "." + ext
        return ext in self._priority_extensions

    def is_priority_file(self, path: PathLike) -> bool:
        return self.is_priority_extension(Path(path).suffix)

    def is_pending_priority(self, path: PathLike) -> bool:
        return _key(path) in self._pending_priority_files

    def register_pending_priority_file(self, path: PathLike) -> None:
        self._pending_priority_files.add(_key(path))

    def unregister_pending_priority_file(self, path: PathLike) -> None:
        key = _key(path)
        if key in self._pending_priority_files:
            self._pending_priority_files.discard(key)
            self._notify_waiters()

    def _is_large(self, size: int) -> bool:
        return size > self._max_parallel_size_kb * 1024

    def _can_start(self, key: str, is_priority: bool, is_large: bool) -> bool:
        if (
            self._pending_priority_files
            and not is_priority
            and key not in self._pending_priority_files
        ):
            return False
        if is_large and self._transferring_large_files:
            return False
        return True

    async def request_transfer(
        self,
        path: PathLike,
        size: int,
        cancellation: Optional[CancellationHandle] = None,
    ) -> None:
        """
        Block until the transfer of ``path`` may start, then admit it.

        Raises:
            JobCancelledError: If ``cancellation`` fires while waiting.
        """
        key = _key(path)
        is_priority = self.is_priority_file(path)
        is_large = self._is_large(size)

        waited = False
        while not self._can_start(key, is_priority, is_large):
            if not waited:
                logging.debug(
                    f"Transfer held back: {path} "
                    f"(pending priority: {len(self._pending_priority_files)}, "
                    f"large transfers: {len(self._transferring_large_files)})"
                )
                waited = True
            await wait_for_event(self._state_changed, cancellation)

        if cancellation is not None:
            cancellation.raise_if_cancelled()

        self._active_transfers.add(key)
        if is_priority:
            self._transferring_priority_files.add(key)
        if is_large:
            self._transferring_large_files.add(key)

    def release_transfer(self, path: PathLike) -> None:
        """Signal that a transfer finished, successfully or not."""
        key = _key(path)
        self._active_transfers.discard(key)
        self._transferring_priority_files.discard(key)
        self._transferring_large_files.discard(key)
        self._notify_waiters()

    def _notify_waiters(self) -> None:
        # Wake everyone currently waiting, new waiters block on a fresh event
        self._state_changed.set()
        self._state_changed = asyncio.Event()
