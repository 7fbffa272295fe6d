"""
Backup strategies - decide which source files a job has to copy.

Strategies are stateless; the same instance can serve any number of jobs.
All methods are blocking file system calls, so job workers run them in a
worker thread.
"""

import logging
import os
import shutil
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Set, Type, Union

from backup_agent.core.exceptions import InvalidBackupTypeError
from backup_agent.models import BackupType

PathLike = Union[str, Path]


@dataclass
class BackupPlan:
    """Every source file of a job, and the subset that must be copied."""

    source: Path
    target: Path
    source_files: List[Path]
    files_to_copy: Set[Path] = field(default_factory=set)
    file_sizes: Dict[Path, int] = field(default_factory=dict)

    @property
    def total_files(self) -> int:
        return len(self.source_files)

    @property
    def total_bytes(self) -> int:
        return sum(self.file_sizes.values())

    def should_copy(self, path: Path) -> bool:
        return path in self.files_to_copy

    def destination_for(self, path: Path) -> Path:
        return build_destination_path(path, self.source, self.target)


def scan_directory(path: PathLike) -> List[Path]:
    """
    Recursively list every file below ``path`` in a stable order.

    Raises:
        FileNotFoundError: If ``path`` is not an existing directory.
        OSError: If a directory below ``path`` cannot be read.
    """
    root = Path(path)
    if not root.is_dir():
        raise FileNotFoundError(f"Source directory does not exist: {root}")

    def _raise(error: OSError) -> None:
        raise error

    files: List[Path] = []
    for dirpath, dirnames, filenames in os.walk(root, onerror=_raise):
        dirnames.sort()
        for filename in sorted(filenames):
            files.append((Path(dirpath) / filename).absolute())
    return files


def build_destination_path(source_file: Path, source_base: Path, target_base: Path) -> Path:
    relative_path = Path(source_file).absolute().relative_to(Path(source_base).absolute())
    return Path(target_base).absolute() / relative_path


class BackupStrategy(ABC):
    """Contract: get_files_to_copy(source, target) -> ordered absolute paths."""

    backup_type: BackupType

    @abstractmethod
    def get_files_to_copy(self, source: PathLike, target: PathLike) -> List[Path]:
        ...

    def build_plan(self, source: PathLike, target: PathLike) -> BackupPlan:
        """Select files to copy and collect totals over every source file."""
        files_to_copy = self.get_files_to_copy(source, target)
        source_files = scan_directory(source)
        file_sizes = {path: path.stat().st_size for path in source_files}
        return BackupPlan(
            source=Path(source).absolute(),
            target=Path(target).absolute(),
            source_files=source_files,
            files_to_copy=set(files_to_copy),
            file_sizes=file_sizes,
        )


class CompleteBackupStrategy(BackupStrategy):
    """Mirror backup: the target is destroyed first, then every source file is copied."""

    backup_type = BackupType.COMPLETE

    def get_files_to_copy(self, source: PathLike, target: PathLike) -> List[Path]:
        source_path = Path(source)
        target_path = Path(target)

        # Validate the source before anything in the target is touched
        if not source_path.is_dir():
            raise FileNotFoundError(f"Source directory does not exist: {source_path}")

        if target_path.exists():
            logging.info(f"Complete backup: removing existing target {target_path}")
            shutil.rmtree(target_path)

        return scan_directory(source_path)


class DifferentialBackupStrategy(BackupStrategy):
    """Copies files that are missing in the target or modified after their copy."""

    backup_type = BackupType.DIFFERENTIAL

    def get_files_to_copy(self, source: PathLike, target: PathLike) -> List[Path]:
        source_path = Path(source)
        files_to_copy: List[Path] = []

        for source_file in scan_directory(source_path):
            destination = build_destination_path(source_file, source_path, Path(target))
            if self._needs_copy(source_file, destination):
                files_to_copy.append(source_file)

        logging.debug(
            f"Differential backup: {len(files_to_copy)} file(s) changed in {source_path}"
        )
        return files_to_copy

    @staticmethod
    def _needs_copy(source_file: Path, destination: Path) -> bool:
        try:
            target_mtime = destination.stat().st_mtime
        except FileNotFoundError:
            return True
        return source_file.stat().st_mtime > target_mtime


_STRATEGIES: Dict[BackupType, Type[BackupStrategy]] = {
    BackupType.COMPLETE: CompleteBackupStrategy,
    BackupType.DIFFERENTIAL: DifferentialBackupStrategy,
}


def parse_backup_type(value: Union[str, BackupType]) -> BackupType:
    """Accept an enum member or its value/name in any case."""
    if isinstance(value, BackupType):
        return value
    normalized = str(value).strip().lower()
    for backup_type in BackupType:
        if normalized in (backup_type.value.lower(), backup_type.name.lower()):
            return backup_type
    raise InvalidBackupTypeError(str(value))


def create_strategy(backup_type: Union[str, BackupType]) -> BackupStrategy:
    """
    Create the strategy for a backup type.

    Raises:
        InvalidBackupTypeError: If the type is not known.
    """
    return _STRATEGIES[parse_backup_type(backup_type)]()
