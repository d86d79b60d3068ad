import sys
import logging
from pathlib import Path
from logging.handlers import TimedRotatingFileHandler
from typing import Optional

from httpwatch.local.config import effective_settings

LEVEL_ABBREVIATIONS = {
    "DEBUG": "DBG",
    "INFO": "INF",
    "WARNING": "WRN",
    "ERROR": "ERR",
    "CRITICAL": "FTL",
}


class MainFormatter(logging.Formatter):
    """
    A formatter for regular logs and for captured child process output.

    Records from `proc.<name>` loggers carry the application name and stream
    and are rendered as `[<name> STDOUT]: <line>`.
    """

    def format(self, record: logging.LogRecord) -> str:
        record.levelshort = LEVEL_ABBREVIATIONS.get(record.levelname, record.levelname[:3])
        if record.name.startswith('proc.'):
            app_name = getattr(record, "app_name", record.name[len('proc.'):])
            stream = getattr(record, "stream", "stdout").upper()
            original_msg, original_args = record.msg, record.args
            record.msg, record.args = f"[{app_name} {stream}]: {record.getMessage()}", None
            try:
                return super().format(record)
            finally:
                record.msg, record.args = original_msg, original_args
        return super().format(record)


CONSOLE_FORMAT = '%(asctime)s - %(levelname)-8s - [%(name)s] - %(message)s'
FILE_FORMAT = '%(asctime)s.%(msecs)03d [%(levelshort)s] %(message)s'
FILE_DATE_FORMAT = '%Y-%m-%d %H:%M:%S'


def setup_logging(console_level: int = logging.INFO, log_file: Optional[Path] = None, retention_days: Optional[int] = None) -> None:
    """
    Configures the root logger for the service.
    This sets up a console handler and a file handler that rolls over daily,
    clearing any previously configured handlers to prevent duplication.

    :param console_level: The logging level for the console output (e.g., logging.INFO).
    :param log_file: The log file path. Defaults to `LOG_FILE_PATH`.
    :param retention_days: How many rolled files to keep. Defaults to `LOG_RETENTION_DAYS`.
    """
    log_file = Path(log_file or effective_settings.LOG_FILE_PATH)
    retention_days = retention_days or effective_settings.LOG_RETENTION_DAYS

    root_logger = logging.getLogger()
    # Set root level to lowest to capture all messages for handler filtering
    root_logger.setLevel(logging.DEBUG)

    # Clear any existing handlers to prevent re-adding them on re-runs
    if root_logger.hasHandlers():
        root_logger.handlers.clear()

    # --- Console Handler ---
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(console_level)
    console_handler.setFormatter(MainFormatter(CONSOLE_FORMAT))
    root_logger.addHandler(console_handler)

    # --- Rolling File Handler (all levels) ---
    try:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = TimedRotatingFileHandler(log_file, when="midnight", backupCount=retention_days, encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(MainFormatter(FILE_FORMAT, datefmt=FILE_DATE_FORMAT))
        root_logger.addHandler(file_handler)
    except OSError as e:
        root_logger.error(f"Failed to initialize file logging at {log_file}: {e}. Logging to file will be disabled.")

    # urllib3 logs every probe connection at DEBUG.
    logging.getLogger("urllib3").setLevel(logging.WARNING)
