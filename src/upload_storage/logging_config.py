"""Logging configuration for upload-storage.

Writes a session log to file and, when asked, mirrors it to the terminal
through Rich.
"""

import logging
from pathlib import Path

from rich.logging import RichHandler

LOGGER_NAME = "upload_storage"
LOG_FILENAME = "upload_storage.log"


def _rotate_log_if_needed(log_file: Path, max_bytes: int = 5 * 1024 * 1024, backup_count: int = 3) -> None:
    """Rotate the log file on startup once it exceeds ``max_bytes``.

    Args:
        log_file: Path to the log file
        max_bytes: Size threshold for rotation (default: 5MB)
        backup_count: Number of backups kept (default: 3)
    """
    if not log_file.exists() or log_file.stat().st_size < max_bytes:
        return

    oldest = log_file.with_name(f"{log_file.name}.{backup_count}")
    if oldest.exists():
        oldest.unlink()

    # Shift upload_storage.log.2 -> .3, .1 -> .2, then the live file -> .1
    for i in range(backup_count - 1, 0, -1):
        source = log_file.with_name(f"{log_file.name}.{i}")
        if source.exists():
            source.rename(log_file.with_name(f"{log_file.name}.{i + 1}"))

    log_file.rename(log_file.with_name(f"{log_file.name}.1"))


def setup_logging(log_dir: Path, verbose: bool = False) -> logging.Logger:
    """Set up package logging.

    Args:
        log_dir: Directory to store log files
        verbose: Also log to the terminal

    Returns:
        The package logger
    """
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / LOG_FILENAME
    _rotate_log_if_needed(log_file)

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(logging.DEBUG)
    logger.handlers.clear()

    file_handler = logging.FileHandler(log_file, mode="a", encoding="utf-8")
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(
        logging.Formatter(
            "%(asctime)s | %(levelname)-8s | %(name)-32s | %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    )
    logger.addHandler(file_handler)

    if verbose:
        console_handler = RichHandler(show_path=False, markup=False)
        console_handler.setLevel(logging.INFO)
        logger.addHandler(console_handler)

    logger.debug(f"Logging to {log_file}")
    return logger
