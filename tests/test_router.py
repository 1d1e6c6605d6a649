"""Tests for the label-tree query router.

The router picks the handler owning the most specific suffix of the
query name, whole labels at a time, and shields the transport from
handler failures.
"""

import pytest
from dnslib import QTYPE, RCODE, DNSRecord

from dnsabuse.config import ConfigError
from dnsabuse.logging import Logger, LogLevel
from dnsabuse.records import txt
from dnsabuse.router import (
    ROOT_ZONE,
    Router,
    RouterError,
    normalize_zone,
    not_implemented,
    zone_labels,
)


def _answer(text: str):
    """Return a handler answering every query with *text*."""

    def handler(request: DNSRecord, _client: str) -> DNSRecord:
        reply = request.reply()
        reply.add_answer(txt(str(request.q.qname), text))
        return reply

    return handler


def _texts(reply: DNSRecord) -> list[str]:
    return [b"".join(rr.rdata.data).decode() for rr in reply.rr]


class TestZoneHelpers:
    """Verify zone normalization."""

    @pytest.mark.parametrize(
        ("zone", "expected"),
        [("dice", "dice."), ("Dice.", "dice."), (".", "."), ("", "."), ("a.b", "a.b.")],
    )
    def test_normalize_zone(self, zone: str, expected: str) -> None:
        """Zones are lower-cased and fully qualified."""
        assert normalize_zone(zone) == expected

    def test_zone_labels(self) -> None:
        """Names split into lower-cased labels; the root has none."""
        assert zone_labels("2D6.Dice.") == ["2d6", "dice"]
        assert zone_labels(".") == []


class TestRegistration:
    """Verify the dispatch table."""

    def test_handle_and_zones(self) -> None:
        """Registered zones are listed."""
        router = Router()
        router.handle("dice", _answer("d"))
        router.handle(ROOT_ZONE, _answer("default"))
        assert router.zones == [".", "dice."]
        assert router.owns("DICE.")

    def test_duplicate_zone(self) -> None:
        """A zone can have only one handler."""
        router = Router()
        router.handle("dice.", _answer("a"))
        with pytest.raises(RouterError, match="dice"):
            router.handle("Dice", _answer("b"))

    def test_router_error_is_config_error(self) -> None:
        """Duplicate zones are fatal configuration errors."""
        assert issubclass(RouterError, ConfigError)


class TestMatching:
    """Verify most-specific suffix matching."""

    def _router(self) -> Router:
        router = Router()
        router.handle("dice.", _answer("dice"))
        router.handle("x.dice.", _answer("x.dice"))
        router.handle(ROOT_ZONE, _answer("default"))
        return router

    def test_exact_zone(self) -> None:
        """A query for the zone itself matches the zone."""
        reply = self._router().dispatch(DNSRecord.question("dice", "TXT"))
        assert _texts(reply) == ["dice"]

    def test_subdomain(self) -> None:
        """Names under a zone go to its handler."""
        reply = self._router().dispatch(DNSRecord.question("2d6.dice", "TXT"))
        assert _texts(reply) == ["dice"]

    def test_most_specific_wins(self) -> None:
        """The longest matching suffix takes precedence."""
        reply = self._router().dispatch(DNSRecord.question("1d4.x.dice", "TXT"))
        assert _texts(reply) == ["x.dice"]

    def test_case_insensitive(self) -> None:
        """Names are compared case-insensitively."""
        reply = self._router().dispatch(DNSRecord.question("2D6.DICE", "TXT"))
        assert _texts(reply) == ["dice"]

    def test_whole_labels_only(self) -> None:
        """mydice. does not belong to dice."""
        reply = self._router().dispatch(DNSRecord.question("mydice", "TXT"))
        assert _texts(reply) == ["default"]

    def test_unmatched_without_default(self) -> None:
        """With no default handler an unknown name gets NOTIMP."""
        router = Router()
        router.handle("dice.", _answer("dice"))
        reply = router.dispatch(DNSRecord.question("bogus", "TXT"))
        assert reply.header.rcode == RCODE.NOTIMP
        assert reply.rr == []


class TestFailures:
    """Verify handler failures never escape."""

    def test_exception_becomes_servfail(self) -> None:
        """A raising handler yields SERVFAIL and an error log entry."""

        def broken(_request: DNSRecord, _client: str) -> DNSRecord:
            msg = "boom"
            raise ValueError(msg)

        logger = Logger()
        router = Router(logger=logger)
        router.handle("boom.", broken)
        request = DNSRecord.question("x.boom", "TXT")
        reply = router.dispatch(request, "10.0.0.7")
        assert reply.header.rcode == RCODE.SERVFAIL
        assert reply.header.id == request.header.id
        errors = logger.filter(min_level=LogLevel.ERROR, source="router")
        assert len(errors) == 1
        assert errors[0].client == "10.0.0.7"

    def test_not_implemented_reply(self) -> None:
        """not_implemented builds an empty NOTIMP reply to the request."""
        request = DNSRecord.question("anything", "A")
        reply = not_implemented(request)
        assert reply.header.rcode == RCODE.NOTIMP
        assert reply.q.qtype == QTYPE.A


class TestResolve:
    """Verify the dnslib resolver hook."""

    def test_client_address_is_passed(self) -> None:
        """resolve() hands the client's IP to the handler."""

        class FakeHandler:
            client_address = ("192.0.2.1", 40000)

        router = Router()
        router.handle("ip.", lambda request, client: _answer(client)(request, client))
        reply = router.resolve(DNSRecord.question("ip", "TXT"), FakeHandler())
        assert _texts(reply) == ["192.0.2.1"]
