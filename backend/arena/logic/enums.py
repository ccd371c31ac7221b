"""
String enum definitions for match concepts.
"""

from enum import StrEnum


class Move(StrEnum):
    """A player's selection for a round."""

    ROCK = "rock"
    PAPER = "paper"
    SCISSORS = "scissors"


class MatchPhase(StrEnum):
    """Stages of the match state machine."""

    WAITING = "waiting"
    COUNTDOWN = "countdown"
    CHOOSING = "choosing"
    REVEAL = "reveal"
    MATCH_END = "match_end"


class RoundOutcome(StrEnum):
    """Result of a single round, relative to the order the moves were given."""

    FIRST = "first"
    SECOND = "second"
    TIE = "tie"


class MatchEndReason(StrEnum):
    SCORE = "score"  # a player reached max_score
    FORFEIT = "forfeit"  # opponent left or never came back
