"""
Logging Configuration for Mekor Halacha
=======================================

Sets up file and console logging with rotation, and quiets the HTTP
libraries so that pipeline logs stay readable.

Usage:
    from logging_config import setup_logging, get_logger

    setup_logging()
    logger = get_logger(__name__)
"""

import logging
import sys
from datetime import datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

# Track if logging has been set up
_logging_initialized = False

NOISY_LOGGERS = ["httpx", "httpcore", "anthropic", "urllib3", "uvicorn.access"]


def get_log_file(log_dir: Path) -> Path:
    """Get the log file path, creating directory if needed."""
    log_dir.mkdir(parents=True, exist_ok=True)
    return log_dir / f"mekor_halacha_{datetime.now().strftime('%Y%m%d')}.log"


def setup_logging(
    level: int = logging.DEBUG,
    console_level: int = logging.INFO,
    log_dir: Optional[Path] = None,
    force: bool = False
) -> logging.Logger:
    """
    Set up logging with both file and console handlers.

    Args:
        level: File handler log level (default: DEBUG)
        console_level: Console handler log level (default: INFO)
        log_dir: Directory for the rotating log file. Console only if None.
        force: Force re-initialization even if already initialized

    Returns:
        The root logger
    """
    global _logging_initialized

    if _logging_initialized and not force:
        return logging.getLogger()

    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    # Clear existing handlers to avoid duplicates
    root_logger.handlers.clear()

    file_formatter = logging.Formatter(
        '%(asctime)s | %(levelname)-8s | %(name)s | %(funcName)s:%(lineno)d | %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )
    console_formatter = logging.Formatter(
        '%(asctime)s | %(levelname)-8s | %(message)s',
        datefmt='%H:%M:%S'
    )

    log_file = None
    if log_dir is not None:
        try:
            log_file = get_log_file(Path(log_dir))
            file_handler = RotatingFileHandler(
                log_file,
                maxBytes=10 * 1024 * 1024,  # 10 MB
                backupCount=5,
                encoding='utf-8'
            )
            file_handler.setLevel(logging.DEBUG)
            file_handler.setFormatter(file_formatter)
            root_logger.addHandler(file_handler)
        except OSError as e:
            print(f"[LOGGING] Warning: Could not create file handler: {e}")
            log_file = None

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(console_level)
    console_handler.setFormatter(console_formatter)
    root_logger.addHandler(console_handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    root_logger.info("=" * 60)
    root_logger.info("MEKOR HALACHA - Logging initialized")
    if log_file:
        root_logger.info(f"Log file: {log_file}")
    root_logger.info(f"Console level: {logging.getLevelName(console_level)}")
    root_logger.info("=" * 60)

    _logging_initialized = True
    return root_logger


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger for a specific module.

    Args:
        name: Usually __name__ from the calling module
    """
    return logging.getLogger(name)


def log_section(logger: logging.Logger, title: str) -> None:
    """Log a major section header."""
    border = "=" * 70
    logger.info(border)
    logger.info(f"  {title}")
    logger.info(border)


def log_subsection(logger: logging.Logger, title: str) -> None:
    """Log a subsection header."""
    logger.info("-" * 50)
    logger.info(f"  {title}")
    logger.info("-" * 50)
