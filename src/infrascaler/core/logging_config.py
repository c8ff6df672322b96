#!/usr/bin/env python3
"""
Logging setup shared by the service entry point and the orchestrator
"""

import logging
import sys
from pathlib import Path
from typing import Optional

from infrascaler.config.settings import LoggingSettings

CONSOLE_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
FILE_FORMAT = "%(asctime)s [%(levelname)s] %(name)s (%(filename)s:%(lineno)d): %(message)s"

# Client libraries that log every HTTP round trip at INFO/DEBUG
NOISY_LOGGERS = ("urllib3", "requests", "docker", "kubernetes", "asyncio", "uvicorn.access")

LEVEL_COLORS = {
    logging.DEBUG: "\033[2;37m",
    logging.INFO: "\033[34m",
    logging.WARNING: "\033[33m",
    logging.ERROR: "\033[31m",
    logging.CRITICAL: "\033[1;31m",
}
RESET = "\033[0m"


class LevelColorFormatter(logging.Formatter):
    """Colors the level name for terminal output"""

    def formatMessage(self, record: logging.LogRecord) -> str:
        color = LEVEL_COLORS.get(record.levelno)
        if color is None:
            return super().formatMessage(record)
        plain = record.levelname
        record.levelname = f"{color}{plain}{RESET}"
        try:
            return super().formatMessage(record)
        finally:
            record.levelname = plain


def setup_logging(settings: LoggingSettings, level_override: Optional[str] = None) -> None:
    """
    Configure the root logger from the logging settings

    Args:
        settings: Level, optional log file and color switch
        level_override: Level taken instead of settings.level (e.g. from the CLI)
    """
    level_name = (level_override or settings.level).upper()
    level = logging.getLevelName(level_name)
    if not isinstance(level, int):
        level = logging.INFO

    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()
    root.setLevel(level)

    use_colors = settings.colors and sys.stdout.isatty()
    console = logging.StreamHandler(sys.stdout)
    console.setFormatter(LevelColorFormatter(CONSOLE_FORMAT) if use_colors else logging.Formatter(CONSOLE_FORMAT))
    root.addHandler(console)

    if settings.file:
        path = Path(settings.file)
        path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(path, encoding="utf-8")
        file_handler.setFormatter(logging.Formatter(FILE_FORMAT))
        root.addHandler(file_handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))

    logging.getLogger(__name__).info(
        f"Logging at {logging.getLevelName(level)}" + (f", writing to {settings.file}" if settings.file else "")
    )


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def log_separator(logger: logging.Logger, title: str = "", width: int = 60) -> None:
    """Banner line around lifecycle phases"""
    logger.info(f" {title} ".center(width, "=") if title else "=" * width)


def log_section(logger: logging.Logger, title: str) -> None:
    logger.info(f"--- {title} ---")
