"""Round resolution for a single rock-paper-scissors exchange."""

from arena.logic.enums import Move, RoundOutcome

# each move maps to the move it defeats
BEATS: dict[Move, Move] = {
    Move.ROCK: Move.SCISSORS,
    Move.SCISSORS: Move.PAPER,
    Move.PAPER: Move.ROCK,
}


def resolve_round(first: Move, second: Move) -> RoundOutcome:
    """Decide a round between two moves. Identical moves tie."""
    if first == second:
        return RoundOutcome.TIE
    if BEATS[first] == second:
        return RoundOutcome.FIRST
    return RoundOutcome.SECOND


def parse_move(value: object) -> Move | None:
    """Return the Move for a raw client value, or None if it is not one of the three moves."""
    if not isinstance(value, str):
        return None
    try:
        return Move(value)
    except ValueError:
        return None
