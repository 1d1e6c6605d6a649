"""Server logging and audit buffer.

The logger records structured entries for server events: boot steps,
snapshot sweeps, failed queries.  Every entry is kept in a bounded
in-memory buffer (so the status API and the tests can read it back)
and forwarded to the standard library ``logging`` module so it also
reaches the console.

- **LogLevel** — severity levels ordered for filtering (DEBUG < ERROR).
- **LogEntry** — a single structured record (level, message, source, client).
- **Logger** — a bounded log with filtering and clearing.

Design choices:
    - **IntEnum for levels** so they compare naturally with ``<``.
    - **Frozen dataclass for entries** — log records are immutable.
    - **Bounded deque** — the server runs for months; the buffer keeps
      only the most recent entries.
    - **A lock around the buffer** — DNS queries are handled on many
      threads at once.
"""

import logging
import threading
from collections import deque
from dataclasses import dataclass
from enum import IntEnum
from pathlib import Path

DEFAULT_CAPACITY = 1000

_LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


class LogLevel(IntEnum):
    """Severity levels for log entries.

    The numeric values match the standard library levels, so a
    ``LogLevel`` can be passed straight to ``logging.Logger.log``.
    """

    DEBUG = logging.DEBUG
    INFO = logging.INFO
    WARNING = logging.WARNING
    ERROR = logging.ERROR


@dataclass(frozen=True)
class LogEntry:
    """A single structured log record.

    Attributes:
        level: The severity of this event.
        message: A human-readable description of what happened.
        source: The subsystem that generated the event (e.g. "snapshot").
        client: The address of the DNS client involved, if any.

    """

    level: LogLevel
    message: str
    source: str
    client: str | None = None

    def __str__(self) -> str:
        """Format as ``[LEVEL] source: message``."""
        return f"[{self.level.name}] {self.source}: {self.message}"


class Logger:
    """Bounded log buffer with filtering.

    Entries are appended from any thread.  Once ``capacity`` entries
    have been recorded the oldest ones are discarded.
    """

    def __init__(self, *, capacity: int = DEFAULT_CAPACITY, namespace: str = "dnsabuse") -> None:
        """Create an empty logger.

        Args:
            capacity: Maximum number of entries kept in memory.
            namespace: Prefix of the standard library logger names that
                entries are forwarded to (``<namespace>.<source>``).

        """
        self._entries: deque[LogEntry] = deque(maxlen=capacity)
        self._namespace = namespace
        self._lock = threading.Lock()

    @property
    def entries(self) -> list[LogEntry]:
        """Return all buffered entries in chronological order."""
        with self._lock:
            return list(self._entries)

    def log(
        self,
        level: LogLevel,
        message: str,
        *,
        source: str,
        client: str | None = None,
    ) -> None:
        """Append a new entry and forward it to the console logger.

        Args:
            level: Severity of the event.
            message: Human-readable event description.
            source: Subsystem that generated the event.
            client: Address of the DNS client involved, if any.

        """
        entry = LogEntry(level=level, message=message, source=source, client=client)
        with self._lock:
            self._entries.append(entry)
        logging.getLogger(f"{self._namespace}.{source}").log(int(level), message)

    def debug(self, message: str, *, source: str, client: str | None = None) -> None:
        """Log at DEBUG level."""
        self.log(LogLevel.DEBUG, message, source=source, client=client)

    def info(self, message: str, *, source: str, client: str | None = None) -> None:
        """Log at INFO level."""
        self.log(LogLevel.INFO, message, source=source, client=client)

    def warning(self, message: str, *, source: str, client: str | None = None) -> None:
        """Log at WARNING level."""
        self.log(LogLevel.WARNING, message, source=source, client=client)

    def error(self, message: str, *, source: str, client: str | None = None) -> None:
        """Log at ERROR level."""
        self.log(LogLevel.ERROR, message, source=source, client=client)

    def filter(
        self,
        *,
        min_level: LogLevel | None = None,
        source: str | None = None,
    ) -> list[LogEntry]:
        """Return entries matching the given criteria.

        Args:
            min_level: If set, only return entries at or above this level.
            source: If set, only return entries from this source.

        Returns:
            A filtered list of log entries.

        """
        result = self.entries
        if min_level is not None:
            result = [e for e in result if e.level >= min_level]
        if source is not None:
            result = [e for e in result if e.source == source]
        return result

    def clear(self) -> None:
        """Remove all buffered entries."""
        with self._lock:
            self._entries.clear()


def setup_logging(level: str = "INFO", logfile: str | None = None) -> None:
    """Configure the root logger for console (and optional file) output.

    Does nothing if the root logger already has handlers, so calling it
    twice (tests, repeated app construction) is harmless.

    Args:
        level: Logging level name (e.g. ``"DEBUG"``), case insensitive.
        logfile: Optional path of a file to append log lines to.

    """
    root = logging.getLogger()
    if root.handlers:
        return

    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    formatter = logging.Formatter(fmt=_LOG_FORMAT, datefmt=_DATE_FORMAT)

    console = logging.StreamHandler()
    console.setFormatter(formatter)
    root.addHandler(console)

    if logfile:
        file_handler = logging.FileHandler(Path(logfile).resolve(), encoding="utf-8")
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)
