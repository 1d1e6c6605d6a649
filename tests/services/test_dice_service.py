"""Tests for the dice service."""

import random

import pytest

from dnsabuse.services.base import QueryError, Question
from dnsabuse.services.dice import MAX_DICE, MAX_FACES, DiceService

SIDES = 6


def _roll(service: DiceService, name: str) -> tuple[int, list[int]]:
    (record,) = service.query(Question(name=name, qname=f"{name}.dice."))
    total, rolls = (part.decode() for part in record.rdata.data)
    return int(total), [int(r) for r in rolls.removeprefix("rolls: ").split()]


class TestDiceService:
    """Verify dice notation and answers."""

    def test_single_die(self) -> None:
        """1d6 rolls one die between 1 and 6."""
        total, rolls = _roll(DiceService(rng=random.Random(3)), "1d6")
        assert len(rolls) == 1
        assert 1 <= total <= SIDES
        assert total == rolls[0]

    def test_total_is_sum(self) -> None:
        """The total is the sum of the individual rolls."""
        total, rolls = _roll(DiceService(rng=random.Random(5)), "10d20")
        assert len(rolls) == 10
        assert total == sum(rolls)

    def test_modifier(self) -> None:
        """NdM+K adds K to the total."""
        total, rolls = _roll(DiceService(rng=random.Random(8)), "2d6+3")
        assert total == sum(rolls) + 3

    def test_roll(self) -> None:
        """roll() returns one value per die."""
        rolls = DiceService(rng=random.Random(0)).roll(4, 8)
        assert len(rolls) == 4
        assert all(1 <= r <= 8 for r in rolls)

    @pytest.mark.parametrize(
        "name",
        ["", "d6", "2d", "2x6", "0d6", "1d0", f"{MAX_DICE + 1}d6", f"1d{MAX_FACES + 1}", "1d6+"],
    )
    def test_invalid(self, name: str) -> None:
        """Malformed or oversized rolls are query errors."""
        with pytest.raises(QueryError):
            DiceService().query(Question(name=name, qname="x.dice."))
