"""Snapshot manager — persist service state across restarts.

Some services keep state that is expensive to rebuild (the fx service
downloads exchange rates).  Each such service can serialize its state to
an opaque blob; the snapshot manager decides *when* that happens and
*where* the blob goes.  The format of the blob belongs to the service.

Two independent flows:

**Restore** — at startup, before a service is registered:
    - no snapshot file yet → nothing to restore (not an error);
    - file unreadable → logged, the service starts fresh;
    - ``load`` fails → logged, the service keeps whatever state it has.
    Restore never stops the server from starting.

**Sweep** — whenever a control message arrives on the manager's queue:
    - every snapshot-enabled entry is asked to ``dump``;
    - ``None`` means "nothing to save" and the file is left alone;
    - bytes replace the snapshot file atomically (temp file + rename),
      so a reader never sees a half-written snapshot;
    - a failing entry is logged and the sweep moves on to the next one.

Control messages:
    - ``SNAPSHOT`` — sweep, then keep listening.  Lets an operator force
      a snapshot without stopping the server.
    - ``TERMINATE`` — sweep, then stop listening and report termination
      so the process can exit.

Design choices:
    - **A queue, not signal numbers** — OS signals are translated into
      control messages by ``dnsabuse.signals``; anything else (the web
      UI, tests) can post the same messages.
    - **One consumer thread plus a sweep lock** — sweeps run strictly
      one after another, never overlapping.
"""

from __future__ import annotations

import os
import queue
import tempfile
import threading
from collections import deque
from dataclasses import dataclass
from enum import StrEnum
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from dnsabuse.logging import Logger
    from dnsabuse.registry import Registry, ServiceEntry
    from dnsabuse.services.base import Service

SNAPSHOT_FILE_MODE = 0o644
REPORT_CAPACITY = 100


class SnapshotError(Exception):
    """Raise when a snapshot file cannot be read or written."""


class ControlMessage(StrEnum):
    """Requests understood by the snapshot loop."""

    SNAPSHOT = "snapshot"
    TERMINATE = "terminate"


class SnapshotOutcome(StrEnum):
    """What happened to one entry during a sweep."""

    SAVED = "saved"
    EMPTY = "empty"
    FAILED = "failed"


@dataclass(frozen=True)
class SweepResult:
    """The outcome of dumping one service."""

    name: str
    outcome: SnapshotOutcome
    path: Path | None = None
    error: str | None = None


@dataclass(frozen=True)
class SweepReport:
    """The outcome of one full sweep over all snapshot-enabled services."""

    message: ControlMessage
    results: tuple[SweepResult, ...] = ()

    @property
    def saved(self) -> list[str]:
        """Return the names of services whose snapshot was written."""
        return [r.name for r in self.results if r.outcome is SnapshotOutcome.SAVED]

    @property
    def failed(self) -> list[str]:
        """Return the names of services whose snapshot failed."""
        return [r.name for r in self.results if r.outcome is SnapshotOutcome.FAILED]


def read_snapshot(path: Path) -> bytes | None:
    """Read a snapshot file.

    Args:
        path: The snapshot file.

    Returns:
        The file contents, or None if the file does not exist.

    Raises:
        SnapshotError: If the file exists but cannot be read.

    """
    try:
        return path.read_bytes()
    except FileNotFoundError:
        return None
    except OSError as e:
        msg = f"Cannot read snapshot {path}: {e}"
        raise SnapshotError(msg) from e


def write_snapshot(path: Path, data: bytes) -> None:
    """Replace the snapshot file at *path* with *data*, atomically.

    The data is written to a temporary file in the same directory and
    renamed over the target, so the old snapshot stays intact until the
    new one is complete.

    Raises:
        SnapshotError: If the file cannot be written.

    """
    tmp_name: str | None = None
    try:
        with tempfile.NamedTemporaryFile(
            dir=path.parent, prefix=f".{path.name}.", suffix=".tmp", delete=False
        ) as tmp:
            tmp_name = tmp.name
            tmp.write(data)
            tmp.flush()
            os.fsync(tmp.fileno())
        Path(tmp_name).chmod(SNAPSHOT_FILE_MODE)
        Path(tmp_name).replace(path)
        tmp_name = None
    except OSError as e:
        msg = f"Cannot write snapshot {path}: {e}"
        raise SnapshotError(msg) from e
    finally:
        if tmp_name is not None:
            Path(tmp_name).unlink(missing_ok=True)


class SnapshotManager:
    """Restore service state at startup and save it on request."""

    def __init__(
        self, registry: Registry, *, logger: Logger, report_capacity: int = REPORT_CAPACITY
    ) -> None:
        """Create a manager for the services in *registry*.

        Args:
            registry: The registry whose entries are swept.
            logger: Where restore and sweep progress is reported.
            report_capacity: How many sweep reports to keep.

        """
        self._registry = registry
        self._logger = logger
        self._queue: queue.Queue[ControlMessage] = queue.Queue()
        self._sweep_lock = threading.Lock()
        self._terminated = threading.Event()
        self._thread: threading.Thread | None = None
        self._reports: deque[SweepReport] = deque(maxlen=report_capacity)

    @property
    def terminated(self) -> bool:
        """Return True once a TERMINATE sweep has completed."""
        return self._terminated.is_set()

    @property
    def running(self) -> bool:
        """Return True while the background loop is alive."""
        return self._thread is not None and self._thread.is_alive()

    @property
    def reports(self) -> list[SweepReport]:
        """Return the most recent sweep reports, oldest first."""
        return list(self._reports)

    # -- Restore -------------------------------------------------------------

    def restore(self, name: str, service: Service, path: Path) -> bool:
        """Load the snapshot at *path* into *service*, if there is one.

        Args:
            name: The service name (for log messages).
            service: The service to restore.
            path: Its snapshot file.

        Returns:
            True if a snapshot was loaded.

        """
        if not service.supports_snapshot:
            self._logger.warning(f"{name} does not support snapshots", source="snapshot")
            return False
        try:
            data = read_snapshot(path)
        except SnapshotError as e:
            self._logger.error(str(e), source="snapshot")
            return False
        if data is None:
            self._logger.info(f"no {name} snapshot at {path}", source="snapshot")
            return False
        try:
            service.load(data)
        except Exception as e:  # noqa: BLE001
            self._logger.error(f"error loading {name} snapshot: {e}", source="snapshot")
            return False
        self._logger.info(f"restored {name} snapshot from {path}", source="snapshot")
        return True

    # -- Sweep ---------------------------------------------------------------

    def _dump_entry(self, entry: ServiceEntry) -> SweepResult:
        """Dump one entry and write its snapshot file."""
        assert entry.snapshot_path is not None  # noqa: S101
        try:
            data = entry.instance.dump()
        except Exception as e:  # noqa: BLE001
            self._logger.error(f"error generating {entry.name} snapshot: {e}", source="snapshot")
            return SweepResult(entry.name, SnapshotOutcome.FAILED, error=str(e))

        if data is None:
            return SweepResult(entry.name, SnapshotOutcome.EMPTY)

        self._logger.info(
            f"saving {entry.name} snapshot to {entry.snapshot_path}", source="snapshot"
        )
        try:
            write_snapshot(entry.snapshot_path, data)
        except Exception as e:  # noqa: BLE001
            self._logger.error(f"error saving {entry.name} snapshot: {e}", source="snapshot")
            return SweepResult(
                entry.name, SnapshotOutcome.FAILED, path=entry.snapshot_path, error=str(e)
            )
        return SweepResult(entry.name, SnapshotOutcome.SAVED, path=entry.snapshot_path)

    def sweep(self, message: ControlMessage = ControlMessage.SNAPSHOT) -> SweepReport:
        """Dump every snapshot-enabled service, one at a time.

        Concurrent callers are serialized: a sweep never starts before
        the previous one has finished.

        Args:
            message: The control message that triggered the sweep.

        Returns:
            A report with one result per snapshot-enabled service.

        """
        with self._sweep_lock:
            results = tuple(self._dump_entry(e) for e in self._registry.snapshot_entries())
            report = SweepReport(message=message, results=results)
            self._reports.append(report)
        return report

    # -- Control loop --------------------------------------------------------

    def request(self, message: ControlMessage) -> None:
        """Post a control message to the background loop.

        Safe to call from a signal handler or any thread.
        """
        self._queue.put(message)

    def start(self) -> None:
        """Start the background loop.

        Raises:
            RuntimeError: If the loop is already running or has terminated.

        """
        if self.running or self.terminated:
            msg = "Snapshot loop already started"
            raise RuntimeError(msg)
        self._thread = threading.Thread(target=self._run, name="snapshot", daemon=True)
        self._thread.start()

    def _run(self) -> None:
        """Sweep once per control message until TERMINATE."""
        while True:
            message = self._queue.get()
            self._logger.info(f"received {message} request", source="snapshot")
            try:
                self.sweep(message)
            except Exception as e:  # noqa: BLE001
                self._logger.error(f"{message} sweep failed: {e}", source="snapshot")
            if message is ControlMessage.TERMINATE:
                self._terminated.set()
                return

    def wait(self, timeout: float | None = None) -> bool:
        """Block until a TERMINATE sweep has completed.

        Args:
            timeout: Give up after this many seconds (None waits forever).

        Returns:
            True if the manager has terminated.

        """
        return self._terminated.wait(timeout)
