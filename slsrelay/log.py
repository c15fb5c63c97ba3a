"""Leveled logger writing timestamped lines to a stream and an optional file."""

from __future__ import annotations

import sys
import threading
import time
from enum import IntEnum
from typing import TextIO

APP_NAME = "SLS"


class LogLevel(IntEnum):
    """Log levels; a lower value is more severe."""

    FATAL = 0
    ERROR = 1
    WARNING = 2
    INFO = 3
    DEBUG = 4
    TRACE = 5


class Logger:
    """Writes log lines at or above a configured severity."""

    def __init__(self, level: LogLevel = LogLevel.INFO, stream: TextIO | None = None) -> None:
        self.level = LogLevel(level)
        self.log_filename = ""
        self._stream = stream
        self._file: TextIO | None = None
        self._lock = threading.Lock()

    @property
    def stream(self) -> TextIO:
        return self._stream if self._stream is not None else sys.stdout

    def format_line(self, level: int, message: str, timestamp_ms: int) -> str:
        """Return the text of one log line for a timestamp in milliseconds."""
        seconds, millis = divmod(int(timestamp_ms), 1000)
        stamp = time.strftime("%Y-%m-%d %H:%M:%S", time.localtime(seconds))
        return f"{stamp}:{millis:03d} {APP_NAME} {LogLevel(level).name}: {message}\n"

    def log(self, level: int, message: str) -> str | None:
        """Emit a message; return the written line, or None if filtered out."""
        if level > self.level:
            return None
        line = self.format_line(level, message, time.time_ns() // 1_000_000)
        with self._lock:
            self.stream.write(line)
            if self._file is not None:
                self._file.write(line)
                self._file.flush()
        return line

    def set_log_level(self, level: str | LogLevel) -> LogLevel:
        """Set the level by name (case-insensitive); unknown names keep the current one."""
        name = level.name if isinstance(level, LogLevel) else str(level).upper()
        try:
            self.level = LogLevel[name]
        except KeyError:
            self.stream.write(
                f"!!!wrong log level '{name}', set default '{self.level.name}'.\n"
            )
        else:
            self.stream.write(f"set log level='{name}'.\n")
        return self.level

    def set_log_file(self, file_name: str) -> bool:
        """Append log lines to a file; only the first file set takes effect."""
        if self.log_filename:
            return False
        self._file = open(file_name, "a", encoding="utf-8")
        self.log_filename = str(file_name)
        return True

    def close(self) -> None:
        """Close the log file, if any."""
        with self._lock:
            if self._file is not None:
                self._file.close()
            self._file = None
            self.log_filename = ""


_default_logger: Logger | None = None
_default_lock = threading.Lock()


def get_logger() -> Logger:
    """Return the process-wide logger, creating it on first use."""
    global _default_logger
    with _default_lock:
        if _default_logger is None:
            _default_logger = Logger()
        return _default_logger