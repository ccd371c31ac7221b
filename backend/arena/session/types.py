"""
Pydantic models for the session layer.
"""

from pydantic import BaseModel, ConfigDict, Field

from arena.logic.enums import MatchPhase, Move


class RoundRecord(BaseModel):
    """One completed round. Immutable once appended to the match history."""

    model_config = ConfigDict(frozen=True)

    round_number: int
    player1_move: Move
    player2_move: Move
    winner_id: str = ""  # empty string denotes a tie

    @property
    def is_tie(self) -> bool:
        return self.winner_id == ""


class PlayerSnapshot(BaseModel):
    """Public view of a player. The current move is never exposed."""

    model_config = ConfigDict(frozen=True)

    identity: str
    display_name: str
    connected: bool
    locked: bool
    score: int


class MatchSnapshot(BaseModel):
    """Read-only view of the authoritative match state for the transport layer."""

    model_config = ConfigDict(frozen=True)

    session_id: str
    match_id: str
    phase: MatchPhase
    current_round: int
    max_score: int
    wager_amount: int | float
    countdown_remaining: int
    choice_remaining: int
    winner_id: str
    players: list[PlayerSnapshot]
    rounds: list[RoundRecord]
    last_round_result: RoundRecord | None = None


class RoundResultPayload(BaseModel):
    model_config = ConfigDict(frozen=True)

    round_number: int = Field(serialization_alias="round")
    player1_choice: Move = Field(serialization_alias="player1Choice")
    player2_choice: Move = Field(serialization_alias="player2Choice")
    winner_id: str = Field(serialization_alias="winnerId")


class MatchResultPayload(BaseModel):
    """Final match result sent to the record-keeping service."""

    model_config = ConfigDict(frozen=True)

    match_id: str = Field(serialization_alias="matchId")
    winner_id: str = Field(serialization_alias="winnerId")
    loser_id: str = Field(serialization_alias="loserId")
    winner_score: int = Field(serialization_alias="winnerScore")
    loser_score: int = Field(serialization_alias="loserScore")
    rounds: tuple[RoundResultPayload, ...] = ()
    wager_amount: int | float = Field(default=0, serialization_alias="wagerAmount")

    def to_wire(self) -> dict:
        """Return the camelCase JSON body expected by the external service."""
        return self.model_dump(mode="json", by_alias=True)
