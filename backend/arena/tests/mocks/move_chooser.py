from collections.abc import Iterable

from arena.logic.enums import Move


class ScriptedMoveChooser:
    """Return moves from a fixed script, then fall back to a default."""

    def __init__(self, moves: Iterable[Move] = (), default: Move = Move.ROCK) -> None:
        self._moves = list(moves)
        self._default = default
        self.calls = 0

    def choose(self) -> Move:
        self.calls += 1
        if self._moves:
            return self._moves.pop(0)
        return self._default
