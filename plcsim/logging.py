"""
Centralized logging module for the simulator.

This module provides a singleton logger on top of the standard library
``plcsim`` logger, plus a JSON formatter for machine-readable output.
"""

from datetime import datetime, timezone
from typing import Optional
import json
import logging
import sys

LOGGER_NAME = "plcsim"

_LEVELS = {
    "trace": logging.DEBUG,
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "error": logging.ERROR,
    "critical": logging.CRITICAL,
    "fatal": logging.CRITICAL,
}


class JsonFormatter(logging.Formatter):
    """Format log records as JSON strings."""
    log_id = 0

    def format(self, record):
        msg = record.getMessage()
        self.log_id += 1

        # Try to detect pre-formatted JSON
        if msg.strip().startswith("{") and msg.strip().endswith("}"):
            try:
                parsed = json.loads(msg)
                if "timestamp" not in parsed:
                    parsed["timestamp"] = datetime.now(timezone.utc).isoformat()
                parsed["id"] = self.log_id
                return json.dumps(parsed)

            except json.JSONDecodeError:
                pass

        log_entry = {
            "id": self.log_id,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "message": msg,
        }
        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_entry)


class SimLogger:
    """
    Singleton logger for the simulator.

    All messages go through the standard ``plcsim`` logger so that the
    host application (or pytest's caplog) decides where they end up.
    """

    _instance: Optional['SimLogger'] = None

    def __init__(self):
        self._logger = logging.getLogger(LOGGER_NAME)
        self._handler: Optional[logging.Handler] = None

    @classmethod
    def get_instance(cls) -> 'SimLogger':
        """Get the singleton logger instance."""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    @classmethod
    def reset(cls) -> None:
        """Reset the singleton instance. Useful for testing."""
        if cls._instance is not None and cls._instance._handler is not None:
            cls._instance._logger.removeHandler(cls._instance._handler)
        logging.getLogger(LOGGER_NAME).setLevel(logging.NOTSET)
        cls._instance = None

    @property
    def logger(self) -> logging.Logger:
        return self._logger

    def configure(self, level: str = "info", json_format: bool = False) -> None:
        """
        Attach a stdout handler to the simulator logger.

        Args:
            level: Level name (trace, debug, info, warn, error, critical)
            json_format: Emit one JSON object per record instead of text
        """
        if self._handler is not None:
            self._logger.removeHandler(self._handler)

        handler = logging.StreamHandler(sys.stdout)
        if json_format:
            handler.setFormatter(JsonFormatter())
        else:
            handler.setFormatter(logging.Formatter(
                fmt='[%(levelname)s] %(asctime)s - %(message)s',
                datefmt='%H:%M:%S'
            ))

        self._logger.addHandler(handler)
        self._logger.setLevel(_LEVELS.get(level.lower(), logging.INFO))
        self._handler = handler

    def debug(self, message: str) -> None:
        self._logger.debug(message)

    def info(self, message: str) -> None:
        self._logger.info(message)

    def warn(self, message: str) -> None:
        self._logger.warning(message)

    def error(self, message: str, exc_info: bool = False) -> None:
        self._logger.error(message, exc_info=exc_info)

    def critical(self, message: str, exc_info: bool = False) -> None:
        self._logger.critical(message, exc_info=exc_info)


# Module-level convenience functions
def get_logger() -> SimLogger:
    """Get the singleton logger instance."""
    return SimLogger.get_instance()


def configure_logging(level: str = "info", json_format: bool = False) -> None:
    """Configure level and output format of the simulator logger."""
    get_logger().configure(level, json_format)


def log_debug(message: str) -> None:
    """Log a debug message."""
    get_logger().debug(message)


def log_info(message: str) -> None:
    """Log an informational message."""
    get_logger().info(message)


def log_warn(message: str) -> None:
    """Log a warning message."""
    get_logger().warn(message)


def log_error(message: str, exc_info: bool = False) -> None:
    """Log an error message."""
    get_logger().error(message, exc_info=exc_info)


def log_critical(message: str, exc_info: bool = False) -> None:
    """Log a fatal condition."""
    get_logger().critical(message, exc_info=exc_info)
