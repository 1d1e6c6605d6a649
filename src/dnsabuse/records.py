"""Resource record helpers.

Thin wrappers over dnslib's record classes.  The one thing they add is
splitting long TXT strings: a DNS character-string holds at most 255
bytes, so longer text is spread over several strings of one record.
"""

from dnslib import AAAA, QTYPE, RR, TXT, A

MAX_TXT_CHUNK = 255
DEFAULT_TTL = 1


def chunk_text(text: str) -> list[bytes]:
    """Split *text* into DNS character-strings of at most 255 bytes.

    Splits on UTF-8 character boundaries so no character is cut in half.
    """
    raw = text.encode()
    if len(raw) <= MAX_TXT_CHUNK:
        return [raw]
    chunks: list[bytes] = []
    current = b""
    for char in text:
        encoded = char.encode()
        if len(current) + len(encoded) > MAX_TXT_CHUNK:
            chunks.append(current)
            current = b""
        current += encoded
    chunks.append(current)
    return chunks


def txt(qname: str, *texts: str, ttl: int = DEFAULT_TTL) -> RR:
    """Build a TXT record, splitting long strings as needed."""
    data = [chunk for text in texts for chunk in chunk_text(text)]
    return RR(qname, QTYPE.TXT, ttl=ttl, rdata=TXT(data))


def a(qname: str, address: str, *, ttl: int = DEFAULT_TTL) -> RR:
    """Build an A record."""
    return RR(qname, QTYPE.A, ttl=ttl, rdata=A(address))


def aaaa(qname: str, address: str, *, ttl: int = DEFAULT_TTL) -> RR:
    """Build an AAAA record."""
    return RR(qname, QTYPE.AAAA, ttl=ttl, rdata=AAAA(address))
