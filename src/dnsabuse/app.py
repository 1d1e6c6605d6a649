"""The application — boots every component and runs the server.

``Application`` owns the startup sequence and the process lifecycle,
tracked by an explicit state machine::

    STOPPED  →  BOOTING  →  READY  →  RUNNING  →  STOPPING  →  STOPPED

Boot sequence (order matters):
    1. Router, registry and snapshot manager.
    2. Features, in ``FEATURES`` order: a service is constructed, its
       snapshot restored, then it is registered under its zone; a static
       handler (``pi.``, ``ip.``) is routed directly.
    3. Help records, one per enabled feature in the same order, and the
       ``help.`` zone.
    4. The ``.`` catch-all default.

Start sequence:
    1. Snapshot loop thread.
    2. UDP listener (dnslib ``DNSServer`` on its own thread).
    3. Optional status web UI.

Like ``dmesg``, every boot step appends an ``[OK]`` line to the boot log.
"""

from __future__ import annotations

import threading
from enum import StrEnum
from pathlib import Path
from typing import TYPE_CHECKING, Any, TypeVar

from dnslib.server import DNSLogger, DNSServer

from dnsabuse.config import ConfigError, split_host_port
from dnsabuse.handlers import ECHO_IP_HELP, PI_HELP, handle_default, handle_echo_ip, handle_pi
from dnsabuse.help import HELP_ZONE, HelpHandler, build_help_records
from dnsabuse.logging import Logger
from dnsabuse.registry import Registry
from dnsabuse.router import ROOT_ZONE, Router
from dnsabuse.services import build_service
from dnsabuse.signals import install_signal_handlers, restore_signal_handlers, signal_actions
from dnsabuse.snapshot import ControlMessage, SnapshotManager

if TYPE_CHECKING:
    import signal

    from dnsabuse.config import Config
    from dnsabuse.help import HelpEntry
    from dnsabuse.router import Handler

T = TypeVar("T")

POLL_INTERVAL = 0.5

STATIC_HANDLERS: dict[str, tuple[Handler, HelpEntry]] = {
    "pi": (handle_pi, PI_HELP),
    "ip": (handle_echo_ip, ECHO_IP_HELP),
}
"""Zone features with no state: name → (handler, help entry)."""

FEATURES: tuple[str, ...] = ("rand", "pi", "dice", "fx", "dict", "ip")
"""Every feature, in the order it is set up and listed in ``help.``."""


class AppState(StrEnum):
    """Lifecycle phases of the application."""

    STOPPED = "stopped"
    BOOTING = "booting"
    READY = "ready"
    RUNNING = "running"
    STOPPING = "stopping"


class Application:
    """Wire configuration, services and transport together."""

    def __init__(self, config: Config, *, logger: Logger | None = None) -> None:
        """Create a stopped application.

        Args:
            config: The validated configuration.
            logger: Shared structured logger (a new one if omitted).

        """
        self._config = config
        self._logger = logger or Logger()
        self._state = AppState.STOPPED
        self._boot_log: list[str] = []
        self._router: Router | None = None
        self._registry: Registry | None = None
        self._snapshots: SnapshotManager | None = None
        self._help: HelpHandler | None = None
        self._server: DNSServer | None = None
        self._web_thread: threading.Thread | None = None
        self._signal_actions: dict[signal.Signals, ControlMessage] = {}

    # -- Accessors -----------------------------------------------------------

    @property
    def state(self) -> AppState:
        """Return the current lifecycle phase."""
        return self._state

    @property
    def config(self) -> Config:
        """Return the configuration."""
        return self._config

    @property
    def logger(self) -> Logger:
        """Return the shared logger."""
        return self._logger

    @property
    def boot_log(self) -> list[str]:
        """Return a copy of the boot messages."""
        return list(self._boot_log)

    @property
    def router(self) -> Router:
        """Return the router (only after boot)."""
        return self._require(self._router, "router")

    @property
    def registry(self) -> Registry:
        """Return the service registry (only after boot)."""
        return self._require(self._registry, "registry")

    @property
    def snapshots(self) -> SnapshotManager:
        """Return the snapshot manager (only after boot)."""
        return self._require(self._snapshots, "snapshot manager")

    @property
    def help(self) -> HelpHandler:
        """Return the ``help.`` handler (only after boot)."""
        return self._require(self._help, "help handler")

    @property
    def server_address(self) -> tuple[str, int]:
        """Return the address the UDP listener is bound to (only while running)."""
        server = self._require(self._server, "listener")
        host, port = server.server.server_address[:2]
        return host, port

    def _require(self, component: T | None, name: str) -> T:
        if component is None:
            msg = f"No {name}: application is {self._state}"
            raise RuntimeError(msg)
        return component

    # -- Boot ----------------------------------------------------------------

    def boot(self) -> None:
        """Build every component, transitioning STOPPED → READY.

        Raises:
            RuntimeError: If the application is not STOPPED.
            ConfigError: If the configuration cannot be satisfied.

        """
        if self._state is not AppState.STOPPED:
            msg = f"Cannot boot: application is {self._state}, expected stopped"
            raise RuntimeError(msg)

        self._state = AppState.BOOTING
        self._boot_log.clear()
        try:
            self._boot()
        except Exception:
            self._router = self._registry = self._snapshots = self._help = None
            self._state = AppState.STOPPED
            raise
        self._state = AppState.READY
        self._logger.info("boot complete", source="server")

    def _boot(self) -> None:
        config = self._config
        self._signal_actions = signal_actions(config.server.snapshot_signal)

        router = Router(logger=self._logger)
        registry = Registry(logger=self._logger)
        snapshots = SnapshotManager(registry, logger=self._logger)
        self._router, self._registry, self._snapshots = router, registry, snapshots
        self._boot_log.append("[OK] Router")

        for name in config.services:
            if name not in FEATURES:
                self._logger.warning(f"ignoring unknown section [{name}]", source="config")

        help_entries: list[HelpEntry] = []
        for name in FEATURES:
            cfg = config.service(name)
            if not cfg.enabled:
                continue
            if name in STATIC_HANDLERS:
                handler, entry = STATIC_HANDLERS[name]
                router.handle(name, handler)
                help_entries.append(entry)
                self._boot_log.append(f"[OK] Handler {name} ({name}.)")
                continue
            service = build_service(name, cfg, self._logger)
            path = Path(cfg.snapshot_file) if cfg.snapshot_enabled and cfg.snapshot_file else None
            if path is not None:
                snapshots.restore(name, service, path)
            registry.register(
                name,
                service,
                router,
                snapshot_enabled=cfg.snapshot_enabled,
                snapshot_path=path,
            )
            if service.help is not None:
                help_entries.append(service.help)
            self._boot_log.append(f"[OK] Service {name} ({name}.)")

        self._help = HelpHandler(
            build_help_records(
                help_entries, domain=config.server.domain, port=config.server.port
            )
        )
        router.handle(HELP_ZONE, self._help)
        self._boot_log.append(f"[OK] Help ({len(help_entries)} entries)")

        router.handle(ROOT_ZONE, handle_default)
        self._boot_log.append("[OK] Default handler")

    # -- Run -----------------------------------------------------------------

    def start(self) -> None:
        """Start the listener and background threads, READY → RUNNING.

        Raises:
            RuntimeError: If the application is not READY.
            OSError: If the listener cannot bind its address.
            ConfigError: If the web UI is enabled but Flask is missing.

        """
        if self._state is not AppState.READY:
            msg = f"Cannot start: application is {self._state}, expected ready"
            raise RuntimeError(msg)

        snapshots = self.snapshots
        snapshots.start()
        self._boot_log.append("[OK] Snapshot loop")

        server_config = self._config.server
        dns_logger = DNSLogger(
            prefix=False, logf=lambda line: self._logger.debug(line, source="server")
        )
        try:
            self._server = DNSServer(
                self.router,
                address=server_config.host,
                port=int(server_config.port),
                logger=dns_logger,
            )
        except OSError:
            snapshots.request(ControlMessage.TERMINATE)
            snapshots.wait()
            raise
        self._server.start_thread()
        host, port = self.server_address
        self._boot_log.append(f"[OK] Listening on udp {host}:{port}")
        self._logger.info(f"listening on udp {host}:{port}", source="server")

        if self._config.web.enabled:
            self._start_web()

        self._state = AppState.RUNNING

    def _start_web(self) -> None:
        try:
            from dnsabuse.web.app import create_app  # noqa: PLC0415
        except ImportError as e:
            msg = "The web UI needs Flask: pip install 'dnsabuse[web]'"
            raise ConfigError(msg) from e

        host, port = split_host_port(self._config.web.address)
        app = create_app(self)
        kwargs: dict[str, Any] = {"host": host or None, "port": int(port), "use_reloader": False}
        self._web_thread = threading.Thread(target=app.run, kwargs=kwargs, name="web", daemon=True)
        self._web_thread.start()
        self._boot_log.append(f"[OK] Web UI on http://{self._config.web.address}")

    def stop(self) -> None:
        """Save snapshots and stop the listener, RUNNING → STOPPED.

        Blocks until the final snapshot sweep has finished.

        Raises:
            RuntimeError: If the application is not RUNNING.

        """
        if self._state is not AppState.RUNNING:
            msg = f"Cannot stop: application is {self._state}, expected running"
            raise RuntimeError(msg)

        self._state = AppState.STOPPING
        snapshots = self.snapshots
        if not snapshots.terminated:
            snapshots.request(ControlMessage.TERMINATE)
            snapshots.wait()
        if self._server is not None:
            self._server.stop()
            self._server = None
        self._logger.info("stopped", source="server")
        self._state = AppState.STOPPED

    def serve_forever(self) -> int:
        """Run until a termination signal has been handled.

        Routes OS signals to the snapshot manager, starts the
        application if needed, and blocks until the terminating snapshot
        sweep is done.

        Returns:
            The process exit status (0).

        """
        previous = install_signal_handlers(self.snapshots, self._signal_actions)
        try:
            if self._state is AppState.READY:
                self.start()
            while not self.snapshots.wait(timeout=POLL_INTERVAL):
                pass
        finally:
            restore_signal_handlers(previous)
            if self._state is AppState.RUNNING:
                self.stop()
        return 0
