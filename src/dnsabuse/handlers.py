"""Static zone handlers — features with no state and no registry entry.

These are routed like services but hold nothing worth persisting, so
they are wired straight into the router:

- ``pi.`` — digits of Pi as TXT, A or AAAA.
- ``ip.`` — the address the query came from.
- ``.`` — everything nobody else owns: an empty ``NOTIMP`` answer.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from dnslib import QTYPE

from dnsabuse.help import HelpEntry
from dnsabuse.records import a, aaaa, txt
from dnsabuse.router import not_implemented

if TYPE_CHECKING:
    from dnslib import DNSRecord

PI_TXT = "3.141592653589793238462643383279502884197169"
PI_A = "3.141.59.26"
PI_AAAA = "3141:5926:5358:9793:2384:6264:3383:2795"
PI_TTL = 3600

PI_HELP = HelpEntry("return digits of Pi as TXT or A or AAAA record.", "dig @{domain} -p {port} pi")
ECHO_IP_HELP = HelpEntry("get your host's requesting IP.", "dig @{domain} -p {port} ip")


def handle_pi(request: DNSRecord, _client: str) -> DNSRecord:
    """Answer with Pi in the record type that was asked for."""
    reply = request.reply()
    qname = str(request.q.qname)
    match QTYPE.get(request.q.qtype):
        case "A":
            reply.add_answer(a(qname, PI_A, ttl=PI_TTL))
        case "AAAA":
            reply.add_answer(aaaa(qname, PI_AAAA, ttl=PI_TTL))
        case _:
            reply.add_answer(txt(qname, PI_TXT, ttl=PI_TTL))
    return reply


def handle_echo_ip(request: DNSRecord, client: str) -> DNSRecord:
    """Answer with the client's own IP address."""
    reply = request.reply()
    reply.add_answer(txt(str(request.q.qname), client))
    return reply


def handle_default(request: DNSRecord, _client: str) -> DNSRecord:
    """Answer queries for unknown zones with ``NOTIMP``."""
    return not_implemented(request)
