"""Configuration — TOML files parsed into immutable settings.

The server reads one or more TOML files, in order, and merges them:
keys in later files override the same keys in earlier ones.  A file
that cannot be read is reported and skipped, so a deployment can list
an optional override file that does not always exist.

A typical file::

    [server]
    address = ":5354"
    domain = "localhost"

    [fx]
    enabled = true
    snapshot_enabled = true
    snapshot_file = "fx.snapshot"
    refresh_interval = "6h"

Each top-level table other than ``server`` and ``web`` configures the
feature with the same name.  Keys the core understands (``enabled``,
``snapshot_enabled``, ``snapshot_file``) become fields of
``ServiceConfig``; everything else is kept in ``options`` for the
feature itself.

Design choices:
    - **Frozen dataclasses** — configuration is decided once at startup
      and never changes while the server runs.
    - **Passed explicitly** — there is no module-level config object;
      whoever needs settings receives them as an argument.
"""

from __future__ import annotations

import re
import tomllib
from dataclasses import dataclass, field
from datetime import timedelta
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Iterable
    from pathlib import Path

    from dnsabuse.logging import Logger

DEFAULT_CONFIG_FILE = "config.toml"
DEFAULT_SNAPSHOT_SIGNAL = "SIGUSR1"
DEFAULT_WEB_ADDRESS = "127.0.0.1:8080"

_RESERVED_SECTIONS = frozenset({"server", "web"})
_DURATION_PART = re.compile(r"(\d+(?:\.\d+)?)(ms|h|m|s)")
_DURATION_UNITS = {
    "h": timedelta(hours=1),
    "m": timedelta(minutes=1),
    "s": timedelta(seconds=1),
    "ms": timedelta(milliseconds=1),
}


class ConfigError(Exception):
    """Raise when the configuration is missing or inconsistent.

    Configuration errors are fatal: the server refuses to start.
    """


@dataclass(frozen=True)
class ServerConfig:
    """Listener settings.

    Attributes:
        address: ``host:port`` (or ``:port``) to bind the UDP listener to.
        domain: Public name of this server, shown in help examples.
        snapshot_signal: Name of the signal that forces a snapshot
            without stopping the server.

    """

    address: str
    domain: str
    snapshot_signal: str = DEFAULT_SNAPSHOT_SIGNAL

    @property
    def host(self) -> str:
        """Return the host part of the address (empty means all interfaces)."""
        return split_host_port(self.address)[0]

    @property
    def port(self) -> str:
        """Return the port part of the address."""
        return split_host_port(self.address)[1]


@dataclass(frozen=True)
class ServiceConfig:
    """Settings of one feature (``[dice]``, ``[fx]`` ...)."""

    enabled: bool = False
    snapshot_enabled: bool = False
    snapshot_file: str | None = None
    options: dict[str, Any] = field(default_factory=lambda: {})  # noqa: PIE807

    def require(self, key: str) -> Any:
        """Return a feature-specific option that must be present.

        Raises:
            ConfigError: If the option is missing.

        """
        if key not in self.options:
            msg = f"Missing required option '{key}'"
            raise ConfigError(msg)
        return self.options[key]


@dataclass(frozen=True)
class WebConfig:
    """Settings of the optional status web UI."""

    enabled: bool = False
    address: str = DEFAULT_WEB_ADDRESS


@dataclass(frozen=True)
class Config:
    """The complete, validated server configuration."""

    server: ServerConfig
    services: dict[str, ServiceConfig] = field(default_factory=lambda: {})  # noqa: PIE807
    web: WebConfig = field(default_factory=WebConfig)

    def service(self, name: str) -> ServiceConfig:
        """Return the settings of feature *name* (disabled if absent)."""
        return self.services.get(name, ServiceConfig())

    def is_enabled(self, name: str) -> bool:
        """Return True if feature *name* is switched on."""
        return self.service(name).enabled


def split_host_port(address: str) -> tuple[str, str]:
    """Split ``host:port`` into its parts.

    Accepts ``":5354"`` (all interfaces), ``"127.0.0.1:53"`` and
    bracketed IPv6 such as ``"[::1]:53"``.

    Raises:
        ConfigError: If the address has no port.

    """
    host, sep, port = address.rpartition(":")
    if not sep or not port.isdigit():
        msg = f"Invalid address '{address}': expected host:port"
        raise ConfigError(msg)
    return host.strip("[]"), port


def parse_duration(value: str | int | float) -> timedelta:
    """Parse a Go-style duration string (``"6h"``, ``"1h30m"``, ``"90s"``).

    Plain numbers are taken as seconds.

    Raises:
        ConfigError: If the string is not a valid duration.

    """
    if isinstance(value, int | float):
        return timedelta(seconds=value)
    text = value.strip()
    if not text or _DURATION_PART.sub("", text):
        msg = f"Invalid duration '{value}'"
        raise ConfigError(msg)
    total = timedelta()
    for amount, unit in _DURATION_PART.findall(text):
        total += float(amount) * _DURATION_UNITS[unit]
    return total


def merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Deep-merge *override* into a copy of *base*."""
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def read_files(paths: Iterable[Path], *, logger: Logger | None = None) -> dict[str, Any]:
    """Read and merge TOML files in order.

    Unreadable or malformed files are reported to *logger* and skipped.

    Args:
        paths: Config files, lowest precedence first.
        logger: Where to report skipped files.

    Returns:
        The merged raw configuration mapping.

    """
    data: dict[str, Any] = {}
    for path in paths:
        if logger is not None:
            logger.info(f"reading config: {path}", source="config")
        try:
            with path.open("rb") as f:
                data = merge(data, tomllib.load(f))
        except (OSError, tomllib.TOMLDecodeError) as e:
            if logger is not None:
                logger.error(f"error reading config {path}: {e}", source="config")
    return data


def _flag(section: str, table: dict[str, Any], key: str) -> bool:
    value = table.get(key, False)
    if not isinstance(value, bool):
        msg = f"[{section}] {key} must be true or false, got {value!r}"
        raise ConfigError(msg)
    return value


def _parse_service(name: str, table: dict[str, Any]) -> ServiceConfig:
    options = {
        k: v for k, v in table.items() if k not in {"enabled", "snapshot_enabled", "snapshot_file"}
    }
    cfg = ServiceConfig(
        enabled=_flag(name, table, "enabled"),
        snapshot_enabled=_flag(name, table, "snapshot_enabled"),
        snapshot_file=table.get("snapshot_file"),
        options=options,
    )
    if cfg.enabled and cfg.snapshot_enabled and not cfg.snapshot_file:
        msg = f"[{name}] snapshot_enabled requires snapshot_file"
        raise ConfigError(msg)
    return cfg


def parse_config(data: dict[str, Any]) -> Config:
    """Validate a raw configuration mapping.

    Args:
        data: Mapping as produced by ``read_files``.

    Returns:
        The validated ``Config``.

    Raises:
        ConfigError: If a required key is missing or malformed.

    """
    server = data.get("server", {})
    for key in ("address", "domain"):
        if not server.get(key):
            msg = f"Missing required key 'server.{key}'"
            raise ConfigError(msg)
    split_host_port(server["address"])

    web = data.get("web", {})
    services = {
        name: _parse_service(name, table)
        for name, table in data.items()
        if name not in _RESERVED_SECTIONS and isinstance(table, dict)
    }
    return Config(
        server=ServerConfig(
            address=server["address"],
            domain=server["domain"],
            snapshot_signal=server.get("snapshot_signal", DEFAULT_SNAPSHOT_SIGNAL),
        ),
        services=services,
        web=WebConfig(
            enabled=_flag("web", web, "enabled"),
            address=web.get("address", DEFAULT_WEB_ADDRESS),
        ),
    )


def load_config(paths: Iterable[Path], *, logger: Logger | None = None) -> Config:
    """Read, merge and validate the given TOML files.

    Raises:
        ConfigError: If the merged configuration is invalid.

    """
    return parse_config(read_files(paths, logger=logger))
