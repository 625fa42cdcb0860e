"""Logging configuration for the volume migrator (console + optional file)."""

import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any

import structlog
from structlog.stdlib import BoundLogger, LoggerFactory, ProcessorFormatter


def setup_logging(
    verbose: bool = False,
    log_file: Path | str | None = None,
    log_level: str | None = None,
    max_file_size_mb: int = 10,
    backup_count: int = 3,
) -> BoundLogger:
    """Setup logging: console output plus an optional JSON log file.

    Args:
        verbose: Enable debug output
        log_file: Optional path of a JSON log file
        log_level: Explicit level; defaults to LOG_LEVEL env var or INFO/DEBUG
        max_file_size_mb: Max file size before rotation
        backup_count: Number of rotated files to keep

    Returns:
        Root logger for the migrator, to be passed into components
    """
    if log_level is None:
        log_level = "DEBUG" if verbose else os.getenv("LOG_LEVEL", "INFO")

    log_level_num = getattr(logging, log_level.upper(), logging.INFO)

    # Clear any existing handlers to prevent duplicates
    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(log_level_num)

    renderer = (
        structlog.dev.ConsoleRenderer()
        if sys.stdout.isatty()
        else structlog.processors.JSONRenderer()
    )
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(log_level_num)
    console_handler.setFormatter(ProcessorFormatter(processor=renderer))
    root_logger.addHandler(console_handler)

    if log_file is not None:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            log_path,
            maxBytes=max_file_size_mb * 1024 * 1024,
            backupCount=backup_count,
            encoding="utf-8",
        )
        file_handler.setLevel(log_level_num)
        file_handler.setFormatter(ProcessorFormatter(processor=structlog.processors.JSONRenderer()))
        root_logger.addHandler(file_handler)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=LoggerFactory(),
        wrapper_class=BoundLogger,
        cache_logger_on_first_use=True,
    )

    logger = structlog.get_logger("volume_migrator")
    logger.debug(
        "Logging system initialized",
        log_level=log_level,
        log_file=str(log_file) if log_file else None,
    )
    return logger


def component_logger(logger: Any | None, component: str) -> Any:
    """Bind a component name onto an injected logger, or a default one."""
    base = logger if logger is not None else structlog.get_logger("volume_migrator")
    return base.bind(component=component)
