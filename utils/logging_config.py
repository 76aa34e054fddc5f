"""
Structured logging configuration for releases-watcher.

Components receive their logger at construction time; the helpers here
only build and name those loggers.
"""

import logging
import logging.handlers
import sys
from pathlib import Path
from typing import Optional

APP_LOGGER_NAME = 'releases-watcher'


def setup_logging(
    level: str = "INFO",
    log_file: Optional[Path] = None,
    max_file_size: int = 10 * 1024 * 1024,  # 10MB
    backup_count: int = 5,
    console_output: bool = True
) -> logging.Logger:
    """
    Set up logging for the application.

    Args:
        level: Logging level ('DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL')
        log_file: Path to log file (optional)
        max_file_size: Maximum log file size in bytes before rotation
        backup_count: Number of backup files to keep
        console_output: Whether to output logs to console

    Returns:
        Configured application logger
    """
    root_logger = logging.getLogger()
    root_logger.handlers.clear()

    numeric_level = getattr(logging, level.upper(), None)
    if not isinstance(numeric_level, int):
        raise ValueError(f'Invalid log level: {level}')

    root_logger.setLevel(numeric_level)

    formatter = logging.Formatter(
        fmt='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    if console_output:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(numeric_level)
        console_handler.setFormatter(formatter)
        root_logger.addHandler(console_handler)

    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.handlers.RotatingFileHandler(
            filename=str(log_file),
            maxBytes=max_file_size,
            backupCount=backup_count,
            encoding='utf-8'
        )
        file_handler.setLevel(numeric_level)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    app_logger = logging.getLogger(APP_LOGGER_NAME)
    app_logger.setLevel(numeric_level)

    app_logger.info(f"Logging initialized - Level: {level}")
    if log_file:
        app_logger.info(f"Log file: {log_file}")

    return app_logger


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance with the specified name.

    Args:
        name: Logger name (typically the component class name)

    Returns:
        Logger instance
    """
    return logging.getLogger(f'{APP_LOGGER_NAME}.{name}')


def log_progress_every(
    current: int,
    every: int,
    logger: logging.Logger,
    message_template: str = "Processed {current} items"
) -> bool:
    """
    Log a progress line once every ``every`` items.

    Returns:
        True if a line was logged
    """
    if every <= 0 or current == 0 or current % every != 0:
        return False
    logger.info(message_template.format(current=current))
    return True


def configure_library_logging():
    """Configure logging for external libraries to reduce noise."""
    library_loggers = [
        'urllib3',
        'requests',
        'googleapiclient',
        'google.auth',
        'mutagen',
    ]

    for lib_name in library_loggers:
        logging.getLogger(lib_name).setLevel(logging.WARNING)

    # The discovery cache warning is emitted on every Sheets client build
    logging.getLogger('googleapiclient.discovery_cache').setLevel(logging.ERROR)
