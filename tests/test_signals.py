"""Tests for OS signal handling.

Termination signals save snapshots and stop the server; the snapshot
signal saves snapshots and keeps it running.  Handlers only post
control messages to the snapshot manager.
"""

import os
import signal
import threading

import pytest

from dnsabuse.config import ConfigError
from dnsabuse.logging import Logger
from dnsabuse.registry import Registry
from dnsabuse.signals import (
    TERMINATION_SIGNALS,
    install_signal_handlers,
    lookup_signal,
    restore_signal_handlers,
    signal_actions,
)
from dnsabuse.snapshot import ControlMessage, SnapshotManager

WAIT = 5.0

posix_only = pytest.mark.skipif(not hasattr(signal, "SIGUSR1"), reason="needs POSIX signals")


class TestLookupSignal:
    """Verify signal name resolution."""

    def test_full_name(self) -> None:
        """SIGTERM resolves to signal.SIGTERM."""
        assert lookup_signal("SIGTERM") is signal.SIGTERM

    def test_short_and_lower_case(self) -> None:
        """The SIG prefix and case are optional."""
        assert lookup_signal("term") is signal.SIGTERM

    def test_unknown(self) -> None:
        """Unknown names resolve to None."""
        assert lookup_signal("SIGBOGUS") is None

    def test_not_a_signal(self) -> None:
        """Module constants that are not signals are rejected."""
        assert lookup_signal("SIG_IGN") is None


@posix_only
class TestSignalActions:
    """Verify the signal → control message table."""

    def test_termination_signals(self) -> None:
        """Every termination signal maps to TERMINATE."""
        actions = signal_actions("SIGUSR1")
        for name in TERMINATION_SIGNALS:
            assert actions[lookup_signal(name)] is ControlMessage.TERMINATE

    def test_snapshot_signal(self) -> None:
        """The snapshot signal maps to SNAPSHOT."""
        actions = signal_actions("USR2")
        assert actions[signal.SIGUSR2] is ControlMessage.SNAPSHOT
        assert signal.SIGUSR1 not in actions

    def test_unknown_snapshot_signal(self) -> None:
        """An unknown snapshot signal is a configuration error."""
        with pytest.raises(ConfigError, match="SIGNOPE"):
            signal_actions("SIGNOPE")

    def test_overlap_with_termination(self) -> None:
        """The snapshot signal cannot also be a termination signal."""
        with pytest.raises(ConfigError, match="termination"):
            signal_actions("SIGTERM")

    def test_unknown_termination_names_are_skipped(self) -> None:
        """Signals the platform lacks are left out."""
        actions = signal_actions("SIGUSR1", termination=["SIGTERM", "SIGNOTHERE"])
        assert set(actions) == {signal.SIGTERM, signal.SIGUSR1}


@posix_only
class TestInstallHandlers:
    """Verify delivery of real signals to the snapshot manager."""

    def test_signals_post_messages(self) -> None:
        """USR1 posts SNAPSHOT and TERM posts TERMINATE."""
        manager = SnapshotManager(Registry(), logger=Logger())
        actions = signal_actions("SIGUSR1")
        previous = install_signal_handlers(manager, actions)
        try:
            manager.start()
            os.kill(os.getpid(), signal.SIGUSR1)
            os.kill(os.getpid(), signal.SIGTERM)
            assert manager.wait(WAIT)
        finally:
            restore_signal_handlers(previous)
        assert [r.message for r in manager.reports] == [
            ControlMessage.SNAPSHOT,
            ControlMessage.TERMINATE,
        ]

    def test_restore_previous_handlers(self) -> None:
        """restore_signal_handlers puts the old handlers back."""
        before = signal.getsignal(signal.SIGUSR1)
        manager = SnapshotManager(Registry(), logger=Logger())
        previous = install_signal_handlers(manager, signal_actions("SIGUSR1"))
        assert signal.getsignal(signal.SIGUSR1) is not before
        restore_signal_handlers(previous)
        assert signal.getsignal(signal.SIGUSR1) == before

    def test_main_thread_only(self) -> None:
        """Installing from another thread is refused."""
        manager = SnapshotManager(Registry(), logger=Logger())
        errors: list[Exception] = []

        def install() -> None:
            try:
                install_signal_handlers(manager, signal_actions("SIGUSR1"))
            except RuntimeError as e:
                errors.append(e)

        thread = threading.Thread(target=install)
        thread.start()
        thread.join()
        assert len(errors) == 1
