"""Centralized logging configuration for email alert ingestion.

This module provides structured logging with context fields for sync cycles
and per-message processing. Logs are written to both console (for Docker
logs) and rotating files.

Usage:
    from alerts.logging_config import get_logger

    logger = get_logger(__name__)
    logger.info("Processing alert", extra={"sync_source_id": 3, "message_uid": "1042"})
"""

import logging
import os
from logging.handlers import RotatingFileHandler

# Log directory from environment or default
LOG_DIR = os.getenv("LOG_DIR", "logs")

LOG_FILE = "email_alerts.log"
ERROR_LOG_FILE = "email_alerts_errors.log"


class StructuredFormatter(logging.Formatter):
    """Custom formatter that adds context fields to log records.

    Supports the following context fields via extra={} parameter:
    - sync_source_id: Sync source (mailbox) ID
    - message_uid: Mailbox UID of the message being handled
    - bank: Bank code of the claiming parser
    """

    def format(self, record):
        """Format log record with context fields."""
        record.sync_source_id = getattr(record, "sync_source_id", None)
        record.message_uid = getattr(record, "message_uid", None)
        record.bank = getattr(record, "bank", None)

        return super().format(record)


def get_logger(name: str) -> logging.Logger:
    """Get configured logger for email alert operations.

    Creates a logger with:
    - Console handler for Docker logs (INFO level)
    - Rotating file handler for all logs (DEBUG level)
    - Separate error file handler (ERROR level)

    Args:
        name: Logger name (typically __name__)

    Returns:
        Configured logging.Logger instance
    """
    logger = logging.getLogger(name)

    # Skip if already configured (prevents duplicate handlers)
    if logger.handlers:
        return logger

    logger.setLevel(logging.DEBUG)
    logger.propagate = False

    log_dir = os.getenv("LOG_DIR", LOG_DIR)
    os.makedirs(log_dir, exist_ok=True)

    # Console handler
    console = logging.StreamHandler()
    console.setLevel(logging.INFO)
    console.setFormatter(
        StructuredFormatter(
            "[%(levelname)s] [source:%(sync_source_id)s uid:%(message_uid)s] %(message)s"
        )
    )
    logger.addHandler(console)

    file_format = StructuredFormatter(
        "[%(asctime)s] [%(levelname)s] [%(name)s] "
        "[source:%(sync_source_id)s uid:%(message_uid)s bank:%(bank)s] %(message)s"
    )

    # File handler (rotating, all levels)
    file_handler = RotatingFileHandler(
        os.path.join(log_dir, LOG_FILE),
        maxBytes=10 * 1024 * 1024,  # 10MB per file
        backupCount=30,
        encoding="utf-8",
    )
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(file_format)
    logger.addHandler(file_handler)

    # Error file handler (errors only)
    error_handler = RotatingFileHandler(
        os.path.join(log_dir, ERROR_LOG_FILE),
        maxBytes=10 * 1024 * 1024,
        backupCount=30,
        encoding="utf-8",
    )
    error_handler.setLevel(logging.ERROR)
    error_handler.setFormatter(file_format)
    logger.addHandler(error_handler)

    return logger


def get_log_file_path(filename: str) -> str:
    """Get full path to log file.

    Args:
        filename: Name of log file (e.g., 'email_alerts.log')

    Returns:
        Full path to log file
    """
    return os.path.join(os.getenv("LOG_DIR", LOG_DIR), filename)
