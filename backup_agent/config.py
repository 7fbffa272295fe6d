from pathlib import Path
from typing import FrozenSet

from pydantic_settings import BaseSettings, SettingsConfigDict


def parse_extension_list(raw: str) -> FrozenSet[str]:
    """Split a comma separated extension list into normalised '.ext' entries."""
    extensions = set()
    for item in raw.split(","):
        ext = item.strip().lower()
        if not ext:
            continue
        if not ext.startswith("."):
            ext = "." + ext
        extensions.add(ext)
    return frozenset(extensions)


class Settings(BaseSettings):
    # Business software (empty = detection disabled)
    business_software: str = ""
    detector_poll_interval_ms: int = 500

    # Transfer admission
    priority_extensions: str = ""  # e.g. ".pdf,.docx"
    max_parallel_size_kb: int = 1024  # Files above this size never transfer in parallel

    # Encryption (external executable)
    encrypted_extensions: str = ""
    encryption_password: str = ""
    crypto_executable_path: str = ""

    # File copying
    chunk_size_kb: int = 1024
    use_temporary_file: bool = True

    # Persistence
    jobs_file_path: str = "data/jobs.json"
    state_file_path: str = "data/state.json"

    # Logging konfiguration
    log_level: str = "INFO"
    log_file_path: str = "logs/backup_agent.log"
    transfer_log_file_path: str = "logs/transfers.log"
    log_retention_days: int = 30

    model_config = SettingsConfigDict(env_file="settings.env", extra="ignore")

    @property
    def log_directory(self) -> Path:
        """Returnerer log directory som Path objekt"""
        return Path(self.log_file_path).parent

    @property
    def transfer_log_directory(self) -> Path:
        return Path(self.transfer_log_file_path).parent

    @property
    def priority_extension_set(self) -> FrozenSet[str]:
        return parse_extension_list(self.priority_extensions)

    @property
    def encrypted_extension_set(self) -> FrozenSet[str]:
        return parse_extension_list(self.encrypted_extensions)

    def get_setting(self, key: str) -> str:
        """Return a setting as a string, empty when the key is unknown."""
        if key not in type(self).model_fields:
            return ""
        value = getattr(self, key)
        return "" if value is None else str(value)
