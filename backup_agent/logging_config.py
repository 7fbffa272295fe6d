import json
import logging
import logging.handlers
from rich.logging import RichHandler
from rich.console import Console

from .config import Settings

TRANSFER_LOGGER = "backup_agent.transfers"

# Fields TransferLogObserver attaches through ``extra``
TRANSFER_FIELDS = (
    "operation",
    "job_name",
    "source_path",
    "target_path",
    "file_size",
    "transfer_ms",
    "encryption_ms",
)


class TransferLogFormatter(logging.Formatter):
    """One JSON object per line for the daily transfer log."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": self.formatTime(record, "%Y-%m-%dT%H:%M:%S"),
            "level": record.levelname,
            "message": record.getMessage(),
        }
        for field in TRANSFER_FIELDS:
            if hasattr(record, field):
                entry[field] = getattr(record, field)
        return json.dumps(entry, ensure_ascii=False)


def _daily_file_handler(filename: str, settings: Settings) -> logging.Handler:
    return logging.handlers.TimedRotatingFileHandler(
        filename=filename,
        when="midnight",
        interval=1,
        backupCount=settings.log_retention_days,
        encoding="utf-8",
    )


def setup_logging(settings: Settings) -> None:
    settings.log_directory.mkdir(parents=True, exist_ok=True)
    settings.transfer_log_directory.mkdir(parents=True, exist_ok=True)

    console = Console(width=120)
    rich_handler = RichHandler(
        console=console,
        show_time=True,
        show_level=True,
        show_path=True,
        markup=True,
        rich_tracebacks=True,
        tracebacks_show_locals=False,
    )
    rich_handler.setLevel(settings.log_level)

    # Application log with source location for debugging
    file_format = (
        "%(asctime)s - %(levelname)s - "
        "%(filename)s:%(lineno)d in %(funcName)s() - "
        "%(message)s"
    )
    file_handler = _daily_file_handler(settings.log_file_path, settings)
    file_handler.setLevel(settings.log_level)
    file_handler.setFormatter(logging.Formatter(file_format))

    root_logger = logging.getLogger()
    root_logger.setLevel(settings.log_level)
    root_logger.handlers.clear()
    root_logger.addHandler(rich_handler)
    root_logger.addHandler(file_handler)

    # Transfer records go to their own file and still reach the console
    transfer_handler = _daily_file_handler(settings.transfer_log_file_path, settings)
    transfer_handler.setLevel(logging.INFO)
    transfer_handler.setFormatter(TransferLogFormatter())

    transfer_logger = logging.getLogger(TRANSFER_LOGGER)
    transfer_logger.handlers.clear()
    transfer_logger.addHandler(transfer_handler)

    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)

    logging.info(
        f"[bold green]Logging initialized[/] - "
        f"File: [cyan]{settings.log_file_path}[/], "
        f"Transfers: [cyan]{settings.transfer_log_file_path}[/], "
        f"Level: [yellow]{settings.log_level}[/], "
        f"Retention: [blue]{settings.log_retention_days}[/] days"
    )
