"""d20 skill-check resolution.

A check draws one d20, or two when exactly one of advantage/disadvantage
applies (keep the higher / lower). Requesting both cancels out and a single
die is drawn.
"""

from __future__ import annotations

import random
from typing import Literal, Protocol

from pydantic import BaseModel

RollMode = Literal["normal", "advantage", "disadvantage"]

DIE_SIDES = 20


class RandomSource(Protocol):
    def randint(self, a: int, b: int) -> int: ...


class CheckResult(BaseModel):
    """Outcome of one resolved check, with every die that was drawn."""

    rolls: tuple[int, ...]
    roll: int  # the kept die
    modifier: int
    total: int
    dc: int
    success: bool
    mode: RollMode


def roll_mode(advantage: bool, disadvantage: bool) -> RollMode:
    if advantage and not disadvantage:
        return "advantage"
    if disadvantage and not advantage:
        return "disadvantage"
    return "normal"


class DiceRoller:
    """Rolls d20s from an injectable random source.

    Args:
        rng: Anything with ``randint(a, b)``. Defaults to a fresh
             ``random.Random``; tests pass a scripted source to force rolls.
    """

    def __init__(self, rng: RandomSource | None = None) -> None:
        self._rng = rng if rng is not None else random.Random()

    def _die(self) -> int:
        return self._rng.randint(1, DIE_SIDES)

    def draw(self, advantage: bool = False, disadvantage: bool = False) -> tuple[int, tuple[int, ...]]:
        """Return (kept, drawn) for the requested roll mode."""
        mode = roll_mode(advantage, disadvantage)
        if mode == "normal":
            value = self._die()
            return value, (value,)
        rolls = (self._die(), self._die())
        kept = max(rolls) if mode == "advantage" else min(rolls)
        return kept, rolls

    def roll(self, advantage: bool = False, disadvantage: bool = False) -> int:
        return self.draw(advantage, disadvantage)[0]

    def resolve_check(
        self,
        ability_modifier: int,
        proficiency_bonus: int,
        dc: int,
        advantage: bool = False,
        disadvantage: bool = False,
    ) -> CheckResult:
        """Roll against ``dc``. Pass ``proficiency_bonus=0`` when not proficient."""
        kept, rolls = self.draw(advantage, disadvantage)
        modifier = ability_modifier + proficiency_bonus
        total = kept + modifier
        return CheckResult(
            rolls=rolls,
            roll=kept,
            modifier=modifier,
            total=total,
            dc=dc,
            success=total >= dc,
            mode=roll_mode(advantage, disadvantage),
        )
