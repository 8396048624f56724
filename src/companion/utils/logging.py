"""Logging configuration using loguru."""

import sys
from pathlib import Path

from loguru import logger

QUIET_LOG_DIR = Path.home() / ".companion"


def configure_logging(logging_settings) -> None:
    """Configure loguru logging with settings."""
    logger.remove()

    if logging_settings.quiet:
        # stdout/stderr belong to the MCP transport when run as a subprocess
        QUIET_LOG_DIR.mkdir(exist_ok=True)
        logger.add(
            QUIET_LOG_DIR / "companion-server.log",
            level="DEBUG",
            format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {message}",
            rotation="10 MB",
        )
    else:
        logger.add(
            sys.stderr,
            level=logging_settings.level.upper(),
            format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>",
        )

    if logging_settings.output_file:
        log_file = Path(logging_settings.output_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)

        if logging_settings.format == "json":
            logger.add(
                log_file,
                level=logging_settings.level.upper(),
                format="{time} {level} {message}",
                serialize=True,
                rotation="10 MB",
                retention="1 week",
            )
        else:
            logger.add(
                log_file,
                level=logging_settings.level.upper(),
                format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} - {message}",
                rotation="10 MB",
                retention="1 week",
            )
