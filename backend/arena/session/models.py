from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from arena.logic.enums import MatchPhase, Move
from arena.logic.settings import MatchSettings
from arena.session.types import MatchSnapshot, PlayerSnapshot, RoundRecord

if TYPE_CHECKING:
    from arena.messaging.protocol import ConnectionProtocol

MAX_PLAYERS = 2


@dataclass
class Player:
    """Represent a participant seated in a match.

    Lifecycle:
    - Created on the first successful join for an identity
    - On involuntary disconnect: connected is cleared, the slot is kept
    - On reconnect: connection is replaced, connected is set again
    - On forfeit, grace expiry, or leaving outside a live match: removed
    """

    connection: ConnectionProtocol
    identity: str
    display_name: str
    connected: bool = True
    move: Move | None = None
    locked: bool = False
    score: int = 0

    @property
    def connection_id(self) -> str:
        return self.connection.connection_id

    def lock_move(self, move: Move) -> None:
        self.move = move
        self.locked = True

    def reset_move(self) -> None:
        self.move = None
        self.locked = False


@dataclass
class Match:
    session_id: str
    settings: MatchSettings = field(default_factory=MatchSettings)
    match_id: str = ""
    phase: MatchPhase = MatchPhase.WAITING
    current_round: int = 1
    countdown_remaining: int = 0
    choice_remaining: int = 0
    winner_id: str = ""
    closed: bool = False  # no new identities may join
    rounds: list[RoundRecord] = field(default_factory=list)
    last_round_result: RoundRecord | None = None
    players: dict[str, Player] = field(default_factory=dict)  # identity -> Player, in join order

    @property
    def wager_amount(self) -> int | float:
        return self.settings.wager_amount

    @property
    def max_score(self) -> int:
        return self.settings.max_score

    @property
    def player_count(self) -> int:
        return len(self.players)

    @property
    def is_empty(self) -> bool:
        return self.player_count == 0

    @property
    def is_full(self) -> bool:
        return self.player_count >= MAX_PLAYERS

    @property
    def report_id(self) -> str:
        """Match id for external reporting, falling back to the session id."""
        return self.match_id or self.session_id

    def get_player(self, identity: str) -> Player | None:
        return self.players.get(identity)

    def get_player_by_connection(self, connection_id: str) -> Player | None:
        for player in self.players.values():
            if player.connection_id == connection_id:
                return player
        return None

    def opponent_of(self, player: Player) -> Player | None:
        for other in self.players.values():
            if other is not player:
                return other
        return None

    def seated_players(self) -> list[Player]:
        return list(self.players.values())

    def connected_players(self) -> list[Player]:
        return [p for p in self.players.values() if p.connected]

    def reset_for_rematch(self) -> None:
        for player in self.players.values():
            player.score = 0
            player.reset_move()
        self.rounds.clear()
        self.last_round_result = None
        self.current_round = 1
        self.countdown_remaining = 0
        self.choice_remaining = 0
        self.winner_id = ""

    def snapshot(self) -> MatchSnapshot:
        return MatchSnapshot(
            session_id=self.session_id,
            match_id=self.match_id,
            phase=self.phase,
            current_round=self.current_round,
            max_score=self.max_score,
            wager_amount=self.wager_amount,
            countdown_remaining=self.countdown_remaining,
            choice_remaining=self.choice_remaining,
            winner_id=self.winner_id,
            players=[
                PlayerSnapshot(
                    identity=p.identity,
                    display_name=p.display_name,
                    connected=p.connected,
                    locked=p.locked,
                    score=p.score,
                )
                for p in self.players.values()
            ],
            rounds=list(self.rounds),
            last_round_result=self.last_round_result,
        )
