"""The service contract shared by every feature.

A **service** answers DNS queries for the zone it owns.  The registry
strips the zone from the query name and hands the remainder to the
service as a ``Question``: for ``2d6.dice.`` the dice service sees
``"2d6"``.  The service replies with a list of dnslib resource records.

Services may also keep state worth saving across restarts (the fx
service caches exchange rates).  Such services declare
``supports_snapshot = True`` and implement ``dump``/``load``.  A service
that supports snapshots but has nothing to save yet returns ``None``
from ``dump`` — that is not an error, the file is simply left alone.

Why a Protocol instead of an ABC?
    Any object with the right attributes is a valid service, which
    keeps test doubles trivial.  ``StatelessService`` is a convenience
    base for the common case of a service with no state at all.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from dnslib import RR

    from dnsabuse.help import HelpEntry


class QueryError(Exception):
    """Raise when a service cannot make sense of a query.

    The router turns this into a negative answer for that query only;
    it never affects other queries or other services.
    """


@dataclass(frozen=True)
class Question:
    """One DNS question, as seen by a service.

    Attributes:
        name: The query name with the service's zone removed, without a
            trailing dot (``"2d6"`` for ``2d6.dice.``).
        qname: The full query name as received (``"2d6.dice."``).
        qtype: The record type asked for (``"TXT"``, ``"A"`` ...).
        client: IP address of the client that sent the query.

    """

    name: str
    qname: str
    qtype: str = "TXT"
    client: str = ""


class Service(Protocol):
    """Interface that every service must satisfy."""

    @property
    def help(self) -> HelpEntry | None:
        """Return the description shown in the ``help.`` record."""
        ...  # pragma: no cover

    @property
    def supports_snapshot(self) -> bool:
        """Return True if ``dump``/``load`` may be called."""
        ...  # pragma: no cover

    def query(self, question: Question) -> list[RR]:
        """Answer a question.

        Raises:
            QueryError: If the question is malformed for this service.

        """
        ...  # pragma: no cover

    def dump(self) -> bytes | None:
        """Serialize the service state, or None if there is nothing to save."""
        ...  # pragma: no cover

    def load(self, data: bytes) -> None:
        """Restore state produced by ``dump``."""
        ...  # pragma: no cover


class StatelessService:
    """Base for services that have no state to snapshot."""

    help: HelpEntry | None = None
    supports_snapshot = False

    def dump(self) -> bytes | None:
        """Stateless services cannot be dumped."""
        msg = f"{type(self).__name__} does not support snapshots"
        raise NotImplementedError(msg)

    def load(self, data: bytes) -> None:
        """Stateless services cannot be loaded."""
        msg = f"{type(self).__name__} does not support snapshots"
        raise NotImplementedError(msg)
