"""Dice — ``2d6.dice`` rolls two six-sided dice.

Standard tabletop notation: ``NdM`` rolls N dice with M faces each,
``NdM+K`` adds a fixed modifier.  The answer carries the total and the
individual rolls::

    2d6.dice.  1  IN  TXT  "9" "rolls: 4 5"
"""

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

MAX_DICE = 100
MAX_FACES = 1000
MAX_MODIFIER = 10_000

_NOTATION = re.compile(r"^(\d{1,3})d(\d{1,4})(?:\+(\d{1,5}))?$")


class DiceService(StatelessService):
    """Roll dice written in ``NdM`` / ``NdM+K`` notation."""

    help = HelpEntry("roll dice", "dig @{domain} -p {port} 1d6.dice")

    def __init__(self, *, rng: random.Random | None = None) -> None:
        """Create the service.

        Args:
            rng: Random source; pass a seeded ``random.Random`` for
                reproducible rolls.

        """
        self._rng = rng or random.Random()  # noqa: S311

    @classmethod
    def from_config(cls, cfg: ServiceConfig) -> DiceService:
        """Build the service from its ``[dice]`` settings."""
        seed = cfg.options.get("seed")
        return cls(rng=random.Random(seed) if seed is not None else None)  # noqa: S311

    def roll(self, dice: int, faces: int) -> list[int]:
        """Roll *dice* dice with *faces* faces each."""
        return [self._rng.randint(1, faces) for _ in range(dice)]

    def query(self, question: Question) -> list[RR]:
        """Roll the dice described by the question.

        Raises:
            QueryError: If the notation is malformed or out of bounds.

        """
        m = _NOTATION.match(question.name)
        if m is None:
            msg = f"invalid dice '{question.name}', expected e.g. 2d6"
            raise QueryError(msg)
        dice, faces = int(m.group(1)), int(m.group(2))
        modifier = int(m.group(3) or 0)
        if not 1 <= dice <= MAX_DICE or not 1 <= faces <= MAX_FACES or modifier > MAX_MODIFIER:
            msg = f"dice out of range: {question.name}"
            raise QueryError(msg)

        rolls = self.roll(dice, faces)
        total = sum(rolls) + modifier
        return [txt(question.qname, str(total), "rolls: " + " ".join(map(str, rolls)))]
