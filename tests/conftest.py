"""
Pytest configuration og shared fixtures.
"""

import pytest

from backup_agent.config import Settings
from backup_agent.dependencies import reset_singletons


@pytest.fixture(autouse=True)
def clean_singletons():
    """Automatically reset singletons before hver test."""
    reset_singletons()
    yield
    reset_singletons()


@pytest.fixture
def settings(tmp_path):
    """Test settings that never read a settings.env file."""
    return Settings(
        _env_file=None,
        chunk_size_kb=64,
        jobs_file_path=str(tmp_path / "data" / "jobs.json"),
        state_file_path=str(tmp_path / "data" / "state.json"),
        log_file_path=str(tmp_path / "logs" / "backup_agent.log"),
        transfer_log_file_path=str(tmp_path / "logs" / "transfers.log"),
    )
