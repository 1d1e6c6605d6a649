"""Query router — dispatch DNS queries to handlers by zone label.

The router is a label-tree multiplexer.  Handlers are registered for a
zone (``"dice."``, ``"help."``, ``"."``); an incoming name is matched
against the registered zones from the most specific suffix to the least
specific one, whole labels at a time::

    2d6.dice.   →  "2d6.dice."? no  →  "dice."? yes  →  dice handler
    foo.bogus.  →  "foo.bogus."? no →  "bogus."? no  →  "."  →  default

Matching is by label, never by substring: ``mydice.`` does not belong to
``dice.``.  Names are compared case-insensitively, as DNS requires.

The router never lets a handler failure reach the transport: an
exception escaping a handler is logged and answered with ``SERVFAIL``,
and a name nobody owns is answered with ``NOTIMP``.

The dispatch table is filled during startup and only read afterwards, so
lookups from the listener's worker threads need no locking.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import TYPE_CHECKING, TypeAlias

from dnslib import RCODE
from dnslib.server import BaseResolver

from dnsabuse.config import ConfigError

if TYPE_CHECKING:
    from dnslib import DNSRecord

    from dnsabuse.logging import Logger

Handler: TypeAlias = "Callable[[DNSRecord, str], DNSRecord]"
"""A zone handler: ``(request, client_ip) -> reply``."""

ROOT_ZONE = "."


class RouterError(ConfigError):
    """Raise when a zone cannot be registered (e.g. it is already owned)."""


def normalize_zone(zone: str) -> str:
    """Return *zone* lower-cased and fully qualified (``"Dice"`` → ``"dice."``)."""
    zone = zone.strip().lower()
    if not zone or zone == ROOT_ZONE:
        return ROOT_ZONE
    return zone.rstrip(".") + "."


def zone_labels(name: str) -> list[str]:
    """Split a domain name into lower-cased labels (root → ``[]``)."""
    return [label for label in name.lower().rstrip(".").split(".") if label]


def not_implemented(request: DNSRecord) -> DNSRecord:
    """Build an empty ``NOTIMP`` reply to *request*."""
    reply = request.reply()
    reply.header.rcode = RCODE.NOTIMP
    return reply


def server_failure(request: DNSRecord) -> DNSRecord:
    """Build an empty ``SERVFAIL`` reply to *request*."""
    reply = request.reply()
    reply.header.rcode = RCODE.SERVFAIL
    return reply


class Router(BaseResolver):
    """Map zone labels to handlers and dispatch queries to them."""

    def __init__(self, *, logger: Logger | None = None) -> None:
        """Create a router with an empty dispatch table.

        Args:
            logger: Where handler failures are reported.

        """
        self._handlers: dict[str, Handler] = {}
        self._logger = logger

    @property
    def zones(self) -> list[str]:
        """Return all registered zones, sorted."""
        return sorted(self._handlers)

    def owns(self, zone: str) -> bool:
        """Return True if a handler is registered for exactly *zone*."""
        return normalize_zone(zone) in self._handlers

    def handle(self, zone: str, handler: Handler) -> None:
        """Register *handler* for *zone*.

        Args:
            zone: The zone label, e.g. ``"dice."`` or ``"."`` for the
                catch-all default.
            handler: Callable producing the reply for a request.

        Raises:
            RouterError: If the zone already has a handler.

        """
        key = normalize_zone(zone)
        if key in self._handlers:
            msg = f"Zone '{key}' is already registered"
            raise RouterError(msg)
        self._handlers[key] = handler

    def match(self, qname: str) -> Handler | None:
        """Return the handler owning the most specific suffix of *qname*."""
        labels = zone_labels(qname)
        for start in range(len(labels)):
            handler = self._handlers.get(".".join(labels[start:]) + ".")
            if handler is not None:
                return handler
        return self._handlers.get(ROOT_ZONE)

    def dispatch(self, request: DNSRecord, client: str = "") -> DNSRecord:
        """Route *request* to its handler and return the reply.

        Args:
            request: The parsed DNS query.
            client: IP address of the client that sent it.

        Returns:
            The handler's reply, ``NOTIMP`` if no zone matched, or
            ``SERVFAIL`` if the handler raised.

        """
        qname = str(request.q.qname)
        handler = self.match(qname)
        if handler is None:
            return not_implemented(request)
        try:
            return handler(request, client)
        except Exception as e:  # noqa: BLE001
            if self._logger is not None:
                self._logger.error(f"error answering {qname}: {e!r}", source="router", client=client)
            return server_failure(request)

    def resolve(self, request: DNSRecord, handler: object) -> DNSRecord:
        """Answer a query received by the dnslib listener."""
        client_address = getattr(handler, "client_address", None)
        client = client_address[0] if client_address else ""
        return self.dispatch(request, client)
