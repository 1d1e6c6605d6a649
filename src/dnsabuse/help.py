"""Help synthesizer — the ``help.`` TXT record.

``dig help TXT`` lists every enabled feature with an example query::

    help.  86400  IN  TXT  "roll dice" "dig @dns.example -p 53 1d6.dice"

Each feature contributes a ``HelpEntry``: a description and an example
template with ``{domain}`` and ``{port}`` placeholders.  The records are
built once at startup, after every feature is registered, and never
change afterwards; the handler returns the same records for every query.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from dnsabuse.records import txt

if TYPE_CHECKING:
    from collections.abc import Iterable

    from dnslib import RR, DNSRecord

HELP_ZONE = "help."
HELP_TTL = 86400


@dataclass(frozen=True)
class HelpEntry:
    """One line of help: what a feature does and how to query it.

    Attributes:
        description: Human-readable summary (``"roll dice"``).
        example: Example command with ``{domain}`` and ``{port}``
            placeholders (``"dig @{domain} -p {port} 1d6.dice"``).

    """

    description: str
    example: str

    def render(self, *, domain: str, port: str) -> str:
        """Return the example with the server's domain and port filled in."""
        return self.example.format(domain=domain, port=port)


def build_help_records(entries: Iterable[HelpEntry], *, domain: str, port: str) -> tuple[RR, ...]:
    """Build one ``help.`` TXT record per entry, in order.

    Args:
        entries: Help entries of the enabled features.
        domain: Public name of this server.
        port: Port the server listens on.

    Returns:
        The immutable tuple of records.

    """
    return tuple(
        txt(HELP_ZONE, entry.description, entry.render(domain=domain, port=port), ttl=HELP_TTL)
        for entry in entries
    )


class HelpHandler:
    """Answer every ``help.`` query with the same records."""

    def __init__(self, records: tuple[RR, ...]) -> None:
        """Create a handler serving *records*."""
        self._records = records

    @property
    def records(self) -> tuple[RR, ...]:
        """Return the help records."""
        return self._records

    def texts(self) -> list[list[str]]:
        """Return the character-strings of each record, decoded."""
        return [[part.decode() for part in rr.rdata.data] for rr in self._records]

    def __call__(self, request: DNSRecord, client: str) -> DNSRecord:
        """Reply with the help records."""
        reply = request.reply()
        for rr in self._records:
            reply.add_answer(rr)
        return reply
