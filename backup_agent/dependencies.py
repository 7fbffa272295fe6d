from functools import lru_cache
from typing import Any, Dict

from .config import Settings
from .observers.state_file_observer import StateFileObserver
from .observers.status_broadcaster import StatusBroadcaster
from .observers.transfer_log_observer import TransferLogObserver
from .services.business_software_detector import BusinessSoftwareDetector
from .services.copy.file_copy_executor import FileCopyExecutor
from .services.encryption import EncryptionGate, ExternalEncryptionGate
from .services.job_manager import BackupJobManager
from .services.job_store import JobStore
from .services.transfer_coordinator import TransferCoordinator

# Global singleton instances
_singletons: Dict[str, Any] = {}


@lru_cache
def get_settings() -> Settings:
    """Hent Settings singleton instance."""
    return Settings()


def get_transfer_coordinator() -> TransferCoordinator:
    if "transfer_coordinator" not in _singletons:
        _singletons["transfer_coordinator"] = TransferCoordinator.from_settings(get_settings())
    return _singletons["transfer_coordinator"]


def get_encryption_gate() -> EncryptionGate:
    if "encryption_gate" not in _singletons:
        _singletons["encryption_gate"] = ExternalEncryptionGate.from_settings(get_settings())
    return _singletons["encryption_gate"]


def get_copy_executor() -> FileCopyExecutor:
    if "copy_executor" not in _singletons:
        _singletons["copy_executor"] = FileCopyExecutor(get_settings())
    return _singletons["copy_executor"]


def get_job_store() -> JobStore:
    if "job_store" not in _singletons:
        _singletons["job_store"] = JobStore(get_settings().jobs_file_path)
    return _singletons["job_store"]


def get_business_software_detector() -> BusinessSoftwareDetector:
    if "detector" not in _singletons:
        settings = get_settings()
        _singletons["detector"] = BusinessSoftwareDetector(
            process_name=settings.business_software,
            poll_interval_ms=settings.detector_poll_interval_ms,
        )
    return _singletons["detector"]


def get_job_manager() -> BackupJobManager:
    if "job_manager" not in _singletons:
        _singletons["job_manager"] = BackupJobManager(
            transfer_coordinator=get_transfer_coordinator(),
            copy_executor=get_copy_executor(),
            encryption_gate=get_encryption_gate(),
            job_store=get_job_store(),
            detector=get_business_software_detector(),
        )
    return _singletons["job_manager"]


def get_state_file_observer() -> StateFileObserver:
    if "state_file_observer" not in _singletons:
        _singletons["state_file_observer"] = StateFileObserver(get_settings().state_file_path)
    return _singletons["state_file_observer"]


def get_transfer_log_observer() -> TransferLogObserver:
    if "transfer_log_observer" not in _singletons:
        _singletons["transfer_log_observer"] = TransferLogObserver()
    return _singletons["transfer_log_observer"]


def get_status_broadcaster() -> StatusBroadcaster:
    if "status_broadcaster" not in _singletons:
        _singletons["status_broadcaster"] = StatusBroadcaster(
            status_provider=get_job_manager().get_job_statuses
        )
    return _singletons["status_broadcaster"]


async def attach_default_observers(manager: BackupJobManager) -> None:
    """Subscribe the state file, the transfer log and the remote console to every job."""
    await manager.attach_observer(get_state_file_observer())
    await manager.attach_observer(get_transfer_log_observer())
    await manager.attach_observer(get_status_broadcaster())


def reset_singletons() -> None:
    """Reset all singletons (useful for testing)."""
    _singletons.clear()
    get_settings.cache_clear()
