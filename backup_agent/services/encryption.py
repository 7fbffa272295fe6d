"""
Encryption Gate - decides which copied files get encrypted and runs the
external encryption program on them.

The encryption algorithm lives in the external executable; this module only
hands a file over and measures how long it took.
"""

import asyncio
import hashlib
import logging
import time
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Iterable, Union

from backup_agent.config import Settings, parse_extension_list

PathLike = Union[str, Path]


def hash_password(password: str) -> str:
    """Return the SHA-256 hex digest handed to the encryption program as key."""
    if not password:
        return ""
    return hashlib.sha256(password.encode("utf-8")).hexdigest()


class EncryptionGate(ABC):
    """Contract used by backup jobs after each copied file."""

    @abstractmethod
    def should_encrypt(self, path: PathLike) -> bool:
        ...

    @abstractmethod
    async def encrypt(self, path: PathLike) -> int:
        """Encrypt ``path`` in place; returns elapsed milliseconds, 0 on failure."""


class NoEncryptionGate(EncryptionGate):
    def should_encrypt(self, path: PathLike) -> bool:
        return False

    async def encrypt(self, path: PathLike) -> int:
        return 0


class ExternalEncryptionGate(EncryptionGate):
    def __init__(
        self,
        executable_path: str,
        encrypted_extensions: Iterable[str],
        password: str = "",
        timeout_seconds: float = 300.0,
    ):
        self.executable_path = executable_path
        self.encrypted_extensions = parse_extension_list(",".join(encrypted_extensions))
        self._key = hash_password(password)
        self.timeout_seconds = timeout_seconds

    @classmethod
    def from_settings(cls, settings: Settings) -> "ExternalEncryptionGate":
        return cls(
            executable_path=settings.crypto_executable_path,
            encrypted_extensions=settings.encrypted_extension_set,
            password=settings.encryption_password,
        )

    def set_password(self, password: str) -> None:
        self._key = hash_password(password)

    @property
    def is_configured(self) -> bool:
        return bool(self._key and self.executable_path and self.encrypted_extensions)

    def should_encrypt(self, path: PathLike) -> bool:
        if not self._key or not self.encrypted_extensions:
            return False
        return Path(path).suffix.lower() in self.encrypted_extensions

    async def encrypt(self, path: PathLike) -> int:
        file_path = Path(path)
        if not self._key:
            logging.error("Encryption skipped: no encryption key configured")
            return 0
        if not file_path.is_file():
            logging.error(f"Encryption skipped: file not found: {file_path}")
            return 0
        if not Path(self.executable_path).is_file():
            logging.error(f"Encryption skipped: executable not found: {self.executable_path}")
            return 0

        start = time.perf_counter()
        try:
            process = await asyncio.create_subprocess_exec(
                self.executable_path,
                str(file_path),
                self._key,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
            try:
                _, stderr = await asyncio.wait_for(
                    process.communicate(), timeout=self.timeout_seconds
                )
            except asyncio.TimeoutError:
                process.kill()
                await process.wait()
                logging.error(f"Encryption timed out after {self.timeout_seconds}s: {file_path}")
                return 0
        except OSError as e:
            logging.error(f"Encryption could not start for {file_path}: {e}")
            return 0

        if process.returncode != 0:
            logging.error(
                f"Encryption failed for {file_path} (exit {process.returncode}): "
                f"{stderr.decode(errors='replace').strip()}"
            )
            return 0

        elapsed_ms = int((time.perf_counter() - start) * 1000)
        logging.debug(f"Encrypted {file_path} in {elapsed_ms} ms")
        # A successful encryption always reports at least 1 ms so callers can tell it from failure
        return max(elapsed_ms, 1)
