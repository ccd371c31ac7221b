from enum import StrEnum
from typing import Annotated, Any, Literal

from pydantic import BaseModel, Field, TypeAdapter, field_validator

from arena.logic.enums import MatchEndReason, Move
from arena.session.types import MatchSnapshot

# ASCII control character boundaries for input validation
_SPACE_ORD = 0x20
_DEL_ORD = 0x7F


class ClientMessageType(StrEnum):
    JOIN = "join"
    LEAVE = "leave"
    CHOICE = "choice"
    REMATCH = "rematch"
    RECONNECT = "reconnect"
    PING = "ping"


class SessionMessageType(StrEnum):
    MATCH_JOINED = "match_joined"
    MATCH_STATE = "match_state"
    PLAYER_JOINED = "player_joined"
    PLAYER_LEFT = "player_left"
    PLAYER_DISCONNECTED = "player_disconnected"
    PLAYER_RECONNECTED = "player_reconnected"
    PLAYER_LOCKED = "player_locked"
    COUNTDOWN = "countdown"
    CHOICE_TIMER = "choice_timer"
    ROUND_RESULT = "round_result"
    MATCH_COMPLETE = "match_complete"
    ERROR = "session_error"
    PONG = "pong"


class SessionErrorCode(StrEnum):
    MATCH_ID_MISMATCH = "match_id_mismatch"
    SESSION_FULL = "session_full"
    ALREADY_JOINED = "already_joined"
    SESSION_CLOSED = "session_closed"
    SERVER_AT_CAPACITY = "server_at_capacity"
    NOT_IN_MATCH = "not_in_match"
    RECONNECT_NO_SESSION = "reconnect_no_session"
    INVALID_MESSAGE = "invalid_message"


_IDENTITY_FIELD = Field(min_length=1, max_length=100)


class JoinMessage(BaseModel):
    type: Literal[ClientMessageType.JOIN] = ClientMessageType.JOIN
    identity: str = _IDENTITY_FIELD
    display_name: str = Field(default="", max_length=50)
    match_id: str | None = Field(default=None, max_length=100)

    @field_validator("display_name")
    @classmethod
    def _validate_display_name(cls, v: str) -> str:
        if any(ord(c) < _SPACE_ORD or ord(c) == _DEL_ORD for c in v):
            raise ValueError("display_name must not contain control characters")
        return v


class LeaveMessage(BaseModel):
    type: Literal[ClientMessageType.LEAVE] = ClientMessageType.LEAVE


class ChoiceMessage(BaseModel):
    type: Literal[ClientMessageType.CHOICE] = ClientMessageType.CHOICE
    # kept as a plain string: unknown moves are dropped silently by the session
    move: str = Field(max_length=20)


class RematchMessage(BaseModel):
    type: Literal[ClientMessageType.REMATCH] = ClientMessageType.REMATCH


class ReconnectMessage(BaseModel):
    type: Literal[ClientMessageType.RECONNECT] = ClientMessageType.RECONNECT
    identity: str = _IDENTITY_FIELD


class PingMessage(BaseModel):
    type: Literal[ClientMessageType.PING] = ClientMessageType.PING


ClientMessage = JoinMessage | LeaveMessage | ChoiceMessage | RematchMessage | ReconnectMessage | PingMessage


class MatchJoinedMessage(BaseModel):
    """Sent only to the joining (or reconnecting) player."""

    type: Literal[SessionMessageType.MATCH_JOINED] = SessionMessageType.MATCH_JOINED
    session_id: str
    match_id: str
    identity: str


class MatchStateMessage(MatchSnapshot):
    """Full match state pushed after phase and roster changes."""

    type: Literal[SessionMessageType.MATCH_STATE] = SessionMessageType.MATCH_STATE


class PlayerJoinedMessage(BaseModel):
    type: Literal[SessionMessageType.PLAYER_JOINED] = SessionMessageType.PLAYER_JOINED
    identity: str
    display_name: str


class PlayerLeftMessage(BaseModel):
    type: Literal[SessionMessageType.PLAYER_LEFT] = SessionMessageType.PLAYER_LEFT
    identity: str


class PlayerDisconnectedMessage(BaseModel):
    type: Literal[SessionMessageType.PLAYER_DISCONNECTED] = SessionMessageType.PLAYER_DISCONNECTED
    identity: str
    grace_ticks: int


class PlayerReconnectedMessage(BaseModel):
    """Broadcast to other players when a player reconnects."""

    type: Literal[SessionMessageType.PLAYER_RECONNECTED] = SessionMessageType.PLAYER_RECONNECTED
    identity: str


class PlayerLockedMessage(BaseModel):
    """Announce that a player has locked in a move without revealing it."""

    type: Literal[SessionMessageType.PLAYER_LOCKED] = SessionMessageType.PLAYER_LOCKED
    identity: str


class CountdownMessage(BaseModel):
    type: Literal[SessionMessageType.COUNTDOWN] = SessionMessageType.COUNTDOWN
    round: int
    remaining: int


class ChoiceTimerMessage(BaseModel):
    type: Literal[SessionMessageType.CHOICE_TIMER] = SessionMessageType.CHOICE_TIMER
    round: int
    remaining: int


class RoundResultMessage(BaseModel):
    type: Literal[SessionMessageType.ROUND_RESULT] = SessionMessageType.ROUND_RESULT
    round: int
    player1_id: str
    player1_move: Move
    player2_id: str
    player2_move: Move
    winner_id: str  # empty on a tie
    tie: bool
    scores: dict[str, int]


class MatchCompleteMessage(BaseModel):
    type: Literal[SessionMessageType.MATCH_COMPLETE] = SessionMessageType.MATCH_COMPLETE
    winner_id: str
    reason: MatchEndReason


class ErrorMessage(BaseModel):
    type: Literal[SessionMessageType.ERROR] = SessionMessageType.ERROR
    code: SessionErrorCode
    message: str


class PongMessage(BaseModel):
    type: Literal[SessionMessageType.PONG] = SessionMessageType.PONG


_client_adapter = TypeAdapter(Annotated[ClientMessage, Field(discriminator="type")])


def parse_client_message(data: dict[str, Any]) -> ClientMessage:
    """Parse a raw dict into a typed ClientMessage."""
    return _client_adapter.validate_python(data)
