"""
Move selection for players who let the decision window run out.

The chooser is injected into the session so tests can script the outcome and
production runs stay reproducible from a logged seed.
"""

import random
import secrets
from typing import Protocol

from arena.logic.enums import Move

SEED_BYTES = 16
_MOVES = tuple(Move)


class MoveChooser(Protocol):
    def choose(self) -> Move: ...


class RandomMoveChooser:
    """Pick uniformly among the three moves from a seeded generator."""

    def __init__(self, seed: str | None = None) -> None:
        self._seed = seed if seed is not None else secrets.token_hex(SEED_BYTES)
        self._rng = random.Random(self._seed)  # noqa: S311

    @property
    def seed(self) -> str:
        return self._seed

    def choose(self) -> Move:
        return self._rng.choice(_MOVES)
