"""Currency conversion — ``99USD-INR.fx`` converts 99 dollars to rupees.

Exchange rates are downloaded over HTTP from a rates API and cached.
The cache is refreshed lazily: the first query after
``refresh_interval`` has passed triggers a new download.  If the
download fails the old rates keep being served.

The cached rates are the one piece of state in the whole server worth
saving across restarts, so this service supports snapshots.  The
snapshot is a small JSON document::

    {"base": "USD", "fetched_at": 1718000000.0, "rates": {"INR": 83.4, ...}}

The rates API is expected to answer in the ``open.er-api.com`` shape:
``{"base_code": "USD", "rates": {"EUR": 0.92, ...}}``.
"""

from __future__ import annotations

import json
import re
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import timedelta
from typing import TYPE_CHECKING, Any

import requests

from dnsabuse.config import parse_duration
from dnsabuse.help import HelpEntry
from dnsabuse.records import txt
from dnsabuse.services.base import QueryError

if TYPE_CHECKING:
    from dnslib import RR

    from dnsabuse.config import ServiceConfig
    from dnsabuse.logging import Logger
    from dnsabuse.services.base import Question

DEFAULT_URL = "https://open.er-api.com/v6/latest/USD"
DEFAULT_REFRESH_INTERVAL = timedelta(hours=6)
DEFAULT_TIMEOUT = 10.0
FX_TTL = 900

_CONVERSION = re.compile(r"^(\d+(?:\.\d+)?)([a-z]{3})-([a-z]{3})$")


class RatesUnavailableError(RuntimeError):
    """Raise when no exchange rates could be obtained."""


@dataclass(frozen=True)
class Rates:
    """A set of exchange rates relative to one base currency.

    Attributes:
        base: The base currency code (``"USD"``).
        rates: Units of each currency per one unit of ``base``.
        fetched_at: Unix time the rates were downloaded.

    """

    base: str
    rates: dict[str, float] = field(default_factory=lambda: {})  # noqa: PIE807
    fetched_at: float = 0.0

    def convert(self, amount: float, source: str, target: str) -> float:
        """Convert *amount* from *source* to *target* currency.

        Raises:
            KeyError: If either currency is unknown.

        """
        return amount / self.rates[source] * self.rates[target]

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a JSON-compatible dict."""
        return {"base": self.base, "fetched_at": self.fetched_at, "rates": self.rates}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Rates:
        """Rebuild rates from ``to_dict`` output.

        Raises:
            ValueError: If the data is incomplete.

        """
        try:
            rates = {str(k).upper(): float(v) for k, v in data["rates"].items()}
            base = str(data["base"]).upper()
            fetched_at = float(data.get("fetched_at", 0.0))
        except (KeyError, TypeError, AttributeError) as e:
            msg = f"invalid rates data: {e!r}"
            raise ValueError(msg) from e
        rates.setdefault(base, 1.0)
        return cls(base=base, rates=rates, fetched_at=fetched_at)


def fetch_rates(url: str = DEFAULT_URL, *, timeout: float = DEFAULT_TIMEOUT) -> Rates:
    """Download the latest rates from *url*.

    Raises:
        RatesUnavailableError: If the request fails or the body is invalid.

    """
    try:
        response = requests.get(url, timeout=timeout)
        response.raise_for_status()
        body = response.json()
        return Rates.from_dict(
            {"base": body["base_code"], "rates": body["rates"], "fetched_at": time.time()}
        )
    except (requests.RequestException, ValueError, KeyError, TypeError) as e:
        msg = f"cannot fetch rates from {url}: {e}"
        raise RatesUnavailableError(msg) from e


class FxService:
    """Convert amounts between currencies using cached exchange rates."""

    help = HelpEntry("convert currency rates", "dig @{domain} -p {port} 99USD-INR.fx")
    supports_snapshot = True

    def __init__(
        self,
        *,
        fetch: Callable[[], Rates] | None = None,
        refresh_interval: timedelta = DEFAULT_REFRESH_INTERVAL,
        clock: Callable[[], float] = time.time,
        logger: Logger | None = None,
    ) -> None:
        """Create the service with an empty cache.

        Args:
            fetch: Downloads fresh rates (defaults to ``fetch_rates``).
            refresh_interval: How long downloaded rates stay fresh.
            clock: Current Unix time; replaceable in tests.
            logger: Where failed downloads are reported.

        """
        self._fetch = fetch or fetch_rates
        self._refresh_interval = refresh_interval
        self._clock = clock
        self._logger = logger
        self._rates: Rates | None = None
        self._lock = threading.Lock()

    @classmethod
    def from_config(cls, cfg: ServiceConfig, *, logger: Logger | None = None) -> FxService:
        """Build the service from its ``[fx]`` settings."""
        url = cfg.options.get("url", DEFAULT_URL)
        timeout = float(cfg.options.get("timeout", DEFAULT_TIMEOUT))
        interval = cfg.options.get("refresh_interval")
        return cls(
            fetch=lambda: fetch_rates(url, timeout=timeout),
            refresh_interval=(
                parse_duration(interval) if interval is not None else DEFAULT_REFRESH_INTERVAL
            ),
            logger=logger,
        )

    @property
    def rates(self) -> Rates | None:
        """Return the cached rates, if any."""
        with self._lock:
            return self._rates

    def _stale(self) -> bool:
        if self._rates is None:
            return True
        age = self._clock() - self._rates.fetched_at
        return age >= self._refresh_interval.total_seconds()

    def _current_rates(self) -> Rates:
        """Return fresh rates, downloading them if the cache is stale.

        Must be called with the lock held.

        Raises:
            RatesUnavailableError: If there are no rates at all.

        """
        if self._stale():
            try:
                self._rates = self._fetch()
            except RatesUnavailableError as e:
                if self._logger is not None:
                    self._logger.error(str(e), source="fx")
                if self._rates is None:
                    raise
        assert self._rates is not None  # noqa: S101
        return self._rates

    def query(self, question: Question) -> list[RR]:
        """Answer ``<amount><FROM>-<TO>`` with the converted amount.

        Raises:
            QueryError: If the query is malformed or a currency is unknown.
            RatesUnavailableError: If no rates could be downloaded.

        """
        m = _CONVERSION.match(question.name)
        if m is None:
            msg = f"invalid conversion '{question.name}', expected e.g. 99USD-INR"
            raise QueryError(msg)
        amount = float(m.group(1))
        source, target = m.group(2).upper(), m.group(3).upper()

        with self._lock:
            rates = self._current_rates()
        try:
            converted = rates.convert(amount, source, target)
        except KeyError as e:
            msg = f"unknown currency {e}"
            raise QueryError(msg) from e

        return [txt(question.qname, f"{amount:g} {source} = {converted:.2f} {target}", ttl=FX_TTL)]

    def dump(self) -> bytes | None:
        """Serialize the cached rates (None if nothing is cached yet)."""
        with self._lock:
            if self._rates is None:
                return None
            return json.dumps(self._rates.to_dict()).encode()

    def load(self, data: bytes) -> None:
        """Restore rates produced by ``dump``.

        Raises:
            ValueError: If *data* is not a valid snapshot.

        """
        rates = Rates.from_dict(json.loads(data))
        with self._lock:
            self._rates = rates
