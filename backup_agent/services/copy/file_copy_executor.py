"""
File Copy Executor - streams one source file to its destination.

Bytes are moved in ``chunk_size_kb`` chunks with aiofiles. When
``use_temporary_file`` is set the data lands in ``<dest>.tmp`` first and is
renamed into place, so an interrupted copy never leaves a truncated file under
the final name. The source modification time is kept on the copy; the
differential strategy compares against it on the next run.
"""

import asyncio
import logging
import shutil
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import aiofiles

from backup_agent.config import Settings

TEMP_SUFFIX = ".tmp"


def create_temp_file_path(dest_path: Path) -> Path:
    return dest_path.with_name(dest_path.name + TEMP_SUFFIX)


@dataclass
class CopyResult:
    success: bool
    source_path: Path
    destination_path: Path
    bytes_copied: int = 0
    elapsed_ms: int = 0
    error_message: Optional[str] = None
    via_temp_file: bool = False

    def describe(self) -> str:
        if self.success:
            return f"{self.source_path.name}: {self.bytes_copied} bytes in {self.elapsed_ms} ms"
        return f"{self.source_path.name}: failed ({self.error_message or 'unknown error'})"


class FileCopyExecutor:
    def __init__(self, settings: Settings):
        self.chunk_size = max(1, settings.chunk_size_kb) * 1024
        self.use_temporary_file = settings.use_temporary_file

        logging.debug(
            f"FileCopyExecutor initialiseret - chunk: {settings.chunk_size_kb} KB, "
            f"temp file: {self.use_temporary_file}"
        )

    async def copy_file(self, source: Path, dest: Path) -> CopyResult:
        """
        Copy ``source`` to ``dest``, overwriting an existing file.

        Failures are reported through the result instead of raised; nothing is
        left behind under the destination name or the temp name.
        """
        started = time.perf_counter()
        write_path = create_temp_file_path(dest) if self.use_temporary_file else dest

        try:
            copied = await self._stream(source, write_path)
            await asyncio.to_thread(shutil.copystat, source, write_path)
            if write_path != dest:
                await asyncio.to_thread(write_path.replace, dest)
        except OSError as e:
            logging.error(f"Copy failed {source} -> {dest}: {e}")
            await asyncio.to_thread(write_path.unlink, missing_ok=True)
            return CopyResult(
                success=False,
                source_path=source,
                destination_path=dest,
                elapsed_ms=_elapsed_ms(started),
                error_message=str(e),
                via_temp_file=write_path != dest,
            )

        result = CopyResult(
            success=True,
            source_path=source,
            destination_path=dest,
            bytes_copied=copied,
            elapsed_ms=_elapsed_ms(started),
            via_temp_file=write_path != dest,
        )
        logging.debug(f"Copied {result.describe()}")
        return result

    async def _stream(self, source: Path, dest: Path) -> int:
        copied = 0
        async with aiofiles.open(source, "rb") as reader:
            async with aiofiles.open(dest, "wb") as writer:
                while True:
                    chunk = await reader.read(self.chunk_size)
                    if not chunk:
                        break
                    await writer.write(chunk)
                    copied += len(chunk)
        return copied


def _elapsed_ms(started: float) -> int:
    return int((time.perf_counter() - started) * 1000)
