"""Random numbers — ``1-100.rand`` answers with an integer in [1, 100]."""

from __future__ import annotations

import random
import re
from typing import TYPE_CHECKING

from dnsabuse.help import HelpEntry
from dnsabuse.records import txt
from dnsabuse.services.base import QueryError, StatelessService

if TYPE_CHECKING:
    from dnslib import RR

    from dnsabuse.config import ServiceConfig
    from dnsabuse.services.base import Question

MAX_VALUE = 1_000_000_000

_RANGE = re.compile(r"^(\d{1,10})-(\d{1,10})$")


class RandomService(StatelessService):
    """Generate a random integer between two bounds (inclusive)."""

    help = HelpEntry("generate random numbers", "dig @{domain} -p {port} 1-100.rand")

    def __init__(self, *, rng: random.Random | None = None) -> None:
        """Create the service.

        Args:
            rng: Random source; pass a seeded ``random.Random`` for
                reproducible answers.

        """
        self._rng = rng or random.Random()  # noqa: S311

    @classmethod
    def from_config(cls, cfg: ServiceConfig) -> RandomService:
        """Build the service from its ``[rand]`` settings."""
        seed = cfg.options.get("seed")
        return cls(rng=random.Random(seed) if seed is not None else None)  # noqa: S311

    def query(self, question: Question) -> list[RR]:
        """Answer ``min-max`` with a number in that range.

        Raises:
            QueryError: If the range is malformed or out of bounds.

        """
        m = _RANGE.match(question.name)
        if m is None:
            msg = f"invalid range '{question.name}', expected e.g. 1-100"
            raise QueryError(msg)
        low, high = int(m.group(1)), int(m.group(2))
        if low > high or high > MAX_VALUE:
            msg = f"invalid range {low}-{high}"
            raise QueryError(msg)
        return [txt(question.qname, str(self._rng.randint(low, high)))]
