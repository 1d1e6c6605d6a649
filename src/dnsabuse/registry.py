"""Service registry — which service owns which zone.

Each feature is registered once, at startup, under a short name such as
``"dice"``.  The name doubles as the configuration section and as the
DNS zone label the service answers for (``"dice."``).  Registration
wires a wrapper around the service into the router; from then on the
router calls the wrapper for every query under that zone.

The wrapper is where DNS meets the service contract:

1. Strip the zone from the query name (``2d6.dice.`` → ``"2d6"``).
2. Call ``service.query`` with a ``Question``.
3. Put the returned records in the answer section.

A ``QueryError`` from the service becomes an ``NXDOMAIN`` answer for
that one query.

There is no unregister: the registry lives as long as the process, and
it is never modified once the listener has started.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from dnslib import QTYPE, RCODE

from dnsabuse.config import ConfigError
from dnsabuse.router import normalize_zone, zone_labels
from dnsabuse.services.base import QueryError, Question

if TYPE_CHECKING:
    from pathlib import Path

    from dnslib import DNSRecord

    from dnsabuse.logging import Logger
    from dnsabuse.router import Handler, Router
    from dnsabuse.services.base import Service


class RegistryError(ConfigError):
    """Raise when a service cannot be registered (duplicate name or zone)."""


@dataclass(frozen=True)
class ServiceEntry:
    """One registered service.

    Attributes:
        name: Unique short name (``"fx"``), also the config section.
        zone_label: The zone the service owns (``"fx."``).
        instance: The live service.
        snapshot_enabled: Whether the service state is persisted.
        snapshot_path: Where the snapshot is read from and written to.

    """

    name: str
    zone_label: str
    instance: Service
    snapshot_enabled: bool = False
    snapshot_path: Path | None = None

    @property
    def snapshots(self) -> bool:
        """Return True if this entry takes part in snapshot sweeps."""
        return (
            self.snapshot_enabled
            and self.snapshot_path is not None
            and self.instance.supports_snapshot
        )


class Registry:
    """Map service names to their entries."""

    def __init__(self, *, logger: Logger | None = None) -> None:
        """Create an empty registry."""
        self._entries: dict[str, ServiceEntry] = {}
        self._logger = logger

    def __len__(self) -> int:
        """Return the number of registered services."""
        return len(self._entries)

    def __contains__(self, name: object) -> bool:
        """Return True if a service is registered under *name*."""
        return name in self._entries

    def get(self, name: str) -> ServiceEntry | None:
        """Return the entry registered under *name*, if any."""
        return self._entries.get(name)

    def entries(self) -> list[ServiceEntry]:
        """Return all entries sorted by name."""
        return sorted(self._entries.values(), key=lambda e: e.name)

    def snapshot_entries(self) -> list[ServiceEntry]:
        """Return the entries that take part in snapshot sweeps."""
        return [e for e in self.entries() if e.snapshots]

    def register(
        self,
        name: str,
        service: Service,
        router: Router,
        *,
        snapshot_enabled: bool = False,
        snapshot_path: Path | None = None,
    ) -> ServiceEntry:
        """Bind *service* under *name* and route its zone to it.

        Args:
            name: Unique short name; the zone label is ``name + "."``.
            service: The service answering queries for the zone.
            router: The router to wire the service into.
            snapshot_enabled: Whether the service state is persisted.
            snapshot_path: The snapshot file of this service.

        Returns:
            The new ServiceEntry.

        Raises:
            RegistryError: If *name* is already registered or the router
                already owns the zone.

        """
        zone = normalize_zone(name)
        if name in self._entries:
            msg = f"Service '{name}' is already registered"
            raise RegistryError(msg)
        if router.owns(zone):
            msg = f"Zone '{zone}' is already owned by another handler"
            raise RegistryError(msg)

        entry = ServiceEntry(
            name=name,
            zone_label=zone,
            instance=service,
            snapshot_enabled=snapshot_enabled,
            snapshot_path=snapshot_path,
        )
        router.handle(zone, self._wrap(entry))
        self._entries[name] = entry
        if self._logger is not None:
            self._logger.info(f"registered {name} on zone {zone}", source="registry")
        return entry

    def _wrap(self, entry: ServiceEntry) -> Handler:
        """Adapt a service to the router's handler signature."""
        zone_depth = len(zone_labels(entry.zone_label))
        logger = self._logger

        def handler(request: DNSRecord, client: str) -> DNSRecord:
            qname = str(request.q.qname)
            labels = zone_labels(qname)
            question = Question(
                name=".".join(labels[: len(labels) - zone_depth]),
                qname=qname,
                qtype=QTYPE.get(request.q.qtype, str(request.q.qtype)),
                client=client,
            )
            reply = request.reply()
            try:
                answers = entry.instance.query(question)
            except QueryError as e:
                if logger is not None:
                    logger.debug(f"bad query {qname}: {e}", source=entry.name, client=client)
                reply.header.rcode = RCODE.NXDOMAIN
                return reply
            for rr in answers:
                reply.add_answer(rr)
            return reply

        return handler
