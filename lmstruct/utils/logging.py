"""
Centralized logging for the package.

The package does not write to the logging module directly. Components
receive a LoggerBase object, so that the destination of the messages
can be chosen by the caller (the console, a list kept in memory for
inspection, ...).

Usage:
    ```python
    from lmstruct.utils.logging import get_logger, LoglistLogger

    # console logger, delegating to the logging module
    logger = get_logger(__name__)

    # keeps the messages in a list
    loglist = LoglistLogger()
    ...
    print(loglist.get_logs())
    ```
"""

import logging
import sys
from abc import ABC, abstractmethod


class LoggerBase(ABC):
    """
    Abstract interface for logging functionality.
    """

    @abstractmethod
    def set_level(self, level: int) -> None:
        """Set the logging level for the logger."""
        pass

    @abstractmethod
    def get_level(self) -> int:
        """Get the current logging level"""
        pass

    @abstractmethod
    def debug(self, msg: str) -> None:
        """Log a diagnostic message."""
        pass

    @abstractmethod
    def info(self, msg: str) -> None:
        """Log an informational message."""
        pass

    @abstractmethod
    def warning(self, msg: str) -> None:
        """Log a warning message."""
        pass

    @abstractmethod
    def error(self, msg: str) -> None:
        """Log an error message."""
        pass


class ConsoleLogger(LoggerBase):
    """
    A console logger that uses logging.Logger as a delegate.
    """

    def __init__(self, name: str | None = None) -> None:
        """
        Initialize the ConsoleLogger with a specific logger name,
        typically __name__ to use the module name
        """
        self.logger = logging.getLogger(name)
        if self.logger.level == logging.NOTSET:
            self.logger.setLevel(logging.INFO)

        # Ensure we have a console handler if none exists
        if not self.logger.hasHandlers():
            handler = logging.StreamHandler(sys.stdout)
            formatter = logging.Formatter(
                '%(levelname)s - %(name)s - %(message)s'
            )
            handler.setFormatter(formatter)
            self.logger.addHandler(handler)

    def set_level(self, level: int) -> None:
        self.logger.setLevel(level)

    def get_level(self) -> int:
        return self.logger.level

    def debug(self, msg: str) -> None:
        self.logger.debug(msg)

    def info(self, msg: str) -> None:
        self.logger.info(msg)

    def warning(self, msg: str) -> None:
        self.logger.warning(msg)

    def error(self, msg: str) -> None:
        self.logger.error(msg)


class LoglistLogger(LoggerBase):
    """
    Maintains a list of logged messages that can be inspected by the
    object creator. Messages below the level set with set_level are
    discarded (the default level records everything).
    """

    _LEVELS = {
        logging.DEBUG: "DEBUG",
        logging.INFO: "INFO",
        logging.WARNING: "WARNING",
        logging.ERROR: "ERROR",
    }

    def __init__(self) -> None:
        self.level: int = logging.NOTSET
        self.logs: list[tuple[int, str]] = []

    def set_level(self, level: int) -> None:
        self.level = level

    def get_level(self) -> int:
        return self.level

    def _record(self, level: int, msg: str) -> None:
        if level >= self.level:
            self.logs.append((level, msg))

    def debug(self, msg: str) -> None:
        self._record(logging.DEBUG, msg)

    def info(self, msg: str) -> None:
        self._record(logging.INFO, msg)

    def warning(self, msg: str) -> None:
        self._record(logging.WARNING, msg)

    def error(self, msg: str) -> None:
        self._record(logging.ERROR, msg)

    def get_logs(self, level: int = logging.NOTSET) -> list[str]:
        """
        Returns a list of strings with the log messages at or above
        the given level, prefixed by the level name.
        """
        return [
            f"{self._LEVELS[lvl]} - {msg}"
            for lvl, msg in self.logs
            if lvl >= level
        ]

    def count_logs(self, level: int = logging.NOTSET) -> int:
        """The number of recorded logs at or above level."""
        return len(self.get_logs(level))

    def clear_logs(self) -> None:
        """Clear the logs from the cache"""
        self.logs.clear()


def get_logger(name: str) -> LoggerBase:
    """
    Get a logger with the specified name.

    Args:
        name: The name of the logger, typically __name__ to use the
            module name

    Returns:
        A configured logger instance
    """
    return ConsoleLogger(name)
