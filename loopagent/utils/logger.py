"""
Global Logger Manager using loguru.

Configuration via .env file:
- LOOPAGENT_LOG_LEVEL: Log level (SILENT, DEBUG, INFO, WARNING, ERROR, CRITICAL)
- LOOPAGENT_LOG_MODE: Environment mode (development, production)
- LOOPAGENT_LOG_DIR: Log directory for production (default: logs)
- LOOPAGENT_LOG_ROTATION: Rotation size (e.g., "10 MB", "1 GB", "1 day")
- LOOPAGENT_LOG_RETENTION: Retention time (e.g., "7 days", "1 month")
- LOOPAGENT_LOG_COMPRESSION: Compression format (e.g., "zip", "gz", "tar")

The SDK is embedded in host programs, so the default level is WARNING and
"SILENT" removes every handler.
"""

import sys
import os
from pathlib import Path
from loguru import logger
from typing import Optional

# Default configuration
DEFAULT_LOG_LEVEL = "WARNING"
DEFAULT_LOG_MODE = "development"
DEFAULT_LOG_DIR = "logs"
DEFAULT_LOG_ROTATION = "10 MB"
DEFAULT_LOG_RETENTION = "7 days"
DEFAULT_LOG_COMPRESSION = "zip"

SILENT = "SILENT"

CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<cyan>{extra[name]}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
    "<level>{message}</level>"
)
FILE_FORMAT = (
    "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | "
    "{extra[name]}:{function}:{line} - {message}"
)


class LoggerManager:
    """Global singleton logger manager."""

    _instance: Optional["LoggerManager"] = None
    _initialized: bool = False

    def __new__(cls) -> "LoggerManager":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self):
        if LoggerManager._initialized:
            return
        LoggerManager._initialized = True

        self.log_level = os.getenv("LOOPAGENT_LOG_LEVEL", DEFAULT_LOG_LEVEL).upper()
        self.log_mode = os.getenv("LOOPAGENT_LOG_MODE", DEFAULT_LOG_MODE).lower()
        self.log_dir = Path(os.getenv("LOOPAGENT_LOG_DIR", DEFAULT_LOG_DIR))
        self.log_rotation = os.getenv("LOOPAGENT_LOG_ROTATION", DEFAULT_LOG_ROTATION)
        self.log_retention = os.getenv(
            "LOOPAGENT_LOG_RETENTION", DEFAULT_LOG_RETENTION
        )
        self.log_compression = os.getenv(
            "LOOPAGENT_LOG_COMPRESSION", DEFAULT_LOG_COMPRESSION
        )
        self._handler_ids: list[int] = []

        # Drop loguru's default stderr handler (id 0), host sinks stay
        try:
            logger.remove(0)
        except ValueError:
            pass
        self._configure()

    def _configure(self) -> None:
        if self.log_level == SILENT:
            return
        if self.log_mode == "production":
            self._configure_production()
        else:
            self._configure_development()

    def _configure_development(self):
        """Configure logger for development (console output)."""
        self._handler_ids.append(
            logger.add(
                sys.stderr,
                format=CONSOLE_FORMAT,
                level=self.log_level,
                colorize=True,
                backtrace=True,
                diagnose=False,
            )
        )

    def _configure_production(self):
        """Configure logger for production (file output with rotation)."""
        self.log_dir.mkdir(parents=True, exist_ok=True)

        self._handler_ids.append(
            logger.add(
                self.log_dir / "loopagent_{time:YYYY-MM-DD}.log",
                format=FILE_FORMAT,
                level=self.log_level,
                rotation=self.log_rotation,
                retention=self.log_retention,
                compression=self.log_compression,
                encoding="utf-8",
                enqueue=True,
            )
        )
        self._handler_ids.append(
            logger.add(
                self.log_dir / "loopagent_error_{time:YYYY-MM-DD}.log",
                format=FILE_FORMAT,
                level="ERROR",
                rotation=self.log_rotation,
                retention=self.log_retention,
                compression=self.log_compression,
                encoding="utf-8",
                enqueue=True,
            )
        )

    def get_logger(self, name: Optional[str] = None):
        """
        Get a logger instance bound to ``name``.

        Example:
            log = LoggerManager().get_logger(__name__)
            log.info("Hello, world!")
        """
        return logger.bind(name=name or "loopagent")

    def set_level(self, level: str):
        """
        Change log level at runtime. Only handlers installed by this
        manager are replaced; sinks added by the host program are kept.
        """
        self.log_level = level.upper()
        for handler_id in self._handler_ids:
            try:
                logger.remove(handler_id)
            except ValueError:
                pass
        self._handler_ids = []
        self._configure()


# ======================================================================
## Convenience Functions
# ======================================================================


def get_logger(name: Optional[str] = None):
    """
    Get a logger instance. This is the recommended way to use the logger.

    Example:
        from loopagent.utils.logger import get_logger

        log = get_logger(__name__)
        log.info("This is an info message")
    """
    return LoggerManager().get_logger(name)


def set_log_level(level: str):
    """
    Change log level at runtime.

    Args:
        level: New log level (SILENT, DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """
    LoggerManager().set_level(level)


__all__ = ["LoggerManager", "get_logger", "set_log_level", "logger"]
