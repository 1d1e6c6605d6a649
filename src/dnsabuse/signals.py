"""OS signals translated into snapshot control messages.

The server reacts to two families of signals:

    - **Termination** (SIGTERM, SIGHUP, SIGQUIT, SIGINT) — save every
      snapshot, then exit.
    - **Snapshot** (one configurable signal, SIGUSR1 by default) — save
      every snapshot and keep serving.  ``kill -USR1 <pid>`` is how an
      operator takes a backup without a restart.

Signal handlers do no work themselves: they post a ``ControlMessage`` to
the snapshot manager's queue and return.  The sweep runs on the
manager's own thread.

Design choices:
    - **Data-driven table** — ``signal_actions`` builds a
      ``{signal: ControlMessage}`` table; installing handlers is a loop
      over it, and tests can inspect it without touching real signals.
    - **Platform filtering** — a name the platform does not define
      (SIGHUP and SIGQUIT on Windows) is silently left out.
"""

from __future__ import annotations

import signal
import threading
from typing import TYPE_CHECKING

from dnsabuse.config import ConfigError
from dnsabuse.snapshot import ControlMessage

if TYPE_CHECKING:
    from collections.abc import Iterable
    from types import FrameType

    from dnsabuse.snapshot import SnapshotManager

TERMINATION_SIGNALS: tuple[str, ...] = ("SIGTERM", "SIGHUP", "SIGQUIT", "SIGINT")
"""Signals that save snapshots and then stop the server."""


def lookup_signal(name: str) -> signal.Signals | None:
    """Return the signal called *name* (``"SIGUSR1"`` or ``"USR1"``), if defined."""
    key = name.upper()
    if not key.startswith("SIG"):
        key = f"SIG{key}"
    value = getattr(signal, key, None)
    return value if isinstance(value, signal.Signals) else None


def signal_actions(
    snapshot_signal: str,
    *,
    termination: Iterable[str] = TERMINATION_SIGNALS,
) -> dict[signal.Signals, ControlMessage]:
    """Map each handled signal to the control message it posts.

    Args:
        snapshot_signal: Name of the snapshot-only signal.
        termination: Names of the termination signals.

    Returns:
        The signal → message table, limited to signals this platform has.

    Raises:
        ConfigError: If the snapshot signal is unknown or is also a
            termination signal.

    """
    actions: dict[signal.Signals, ControlMessage] = {}
    for name in termination:
        sig = lookup_signal(name)
        if sig is not None:
            actions[sig] = ControlMessage.TERMINATE

    snap = lookup_signal(snapshot_signal)
    if snap is None:
        msg = f"Unknown snapshot signal '{snapshot_signal}'"
        raise ConfigError(msg)
    if snap in actions:
        msg = f"Snapshot signal {snap.name} is also a termination signal"
        raise ConfigError(msg)
    actions[snap] = ControlMessage.SNAPSHOT
    return actions


def install_signal_handlers(
    manager: SnapshotManager,
    actions: dict[signal.Signals, ControlMessage],
) -> dict[signal.Signals, object]:
    """Route each signal in *actions* to *manager*.

    Must be called from the main thread (a Python restriction).

    Returns:
        The previous handlers, so callers can restore them.

    Raises:
        RuntimeError: If called outside the main thread.

    """
    if threading.current_thread() is not threading.main_thread():
        msg = "Signal handlers can only be installed from the main thread"
        raise RuntimeError(msg)

    def handler(signum: int, _frame: FrameType | None) -> None:
        manager.request(actions[signal.Signals(signum)])

    return {sig: signal.signal(sig, handler) for sig in actions}


def restore_signal_handlers(previous: dict[signal.Signals, object]) -> None:
    """Reinstall handlers returned by ``install_signal_handlers``."""
    for sig, old in previous.items():
        signal.signal(sig, old)  # type: ignore[arg-type]
