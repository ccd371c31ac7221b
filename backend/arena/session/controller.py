"""
Authoritative state machine for a single two-player match.

Phases: waiting -> countdown -> choosing -> reveal -> (countdown | match_end),
and match_end -> countdown on rematch.

Every mutation (client messages, phase timers, the inter-round delay, grace
window expiry) runs under the per-session lock, so the controller behaves as
a single logical actor. Round resolution happens exactly once per round: both
triggers (decision window timeout and all players locked) cancel the phase
timer before resolving, and a timer callback whose handle is no longer the
current phase timer does nothing.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, Any

import structlog

from arena.logic.enums import MatchEndReason, MatchPhase, RoundOutcome
from arena.logic.resolver import parse_move, resolve_round
from arena.messaging.types import (
    ChoiceTimerMessage,
    CountdownMessage,
    MatchCompleteMessage,
    MatchJoinedMessage,
    PlayerDisconnectedMessage,
    PlayerJoinedMessage,
    PlayerLeftMessage,
    PlayerLockedMessage,
    PlayerReconnectedMessage,
    RoundResultMessage,
)
from arena.session.broadcast import broadcast_to_players
from arena.session.exceptions import (
    AlreadyJoinedError,
    MatchIdMismatchError,
    SessionClosedError,
    SessionFullError,
)
from arena.session.models import MAX_PLAYERS, Match, Player
from arena.session.reconnection import GraceWindow, ReconnectionManager
from arena.session.result_reporter import build_result_payload
from arena.session.types import RoundRecord

if TYPE_CHECKING:
    from arena.logic.enums import Move
    from arena.logic.rng import MoveChooser
    from arena.logic.settings import MatchSettings
    from arena.messaging.protocol import ConnectionProtocol
    from arena.session.result_reporter import ResultSink
    from arena.session.scheduler import TimerHandle, TimerScheduler
    from arena.session.types import MatchSnapshot

logger = structlog.get_logger()

# Invoked under the session lock after phase or roster changes. It must not
# call back into the controller's public (locking) methods.
StateChangeHook = Callable[["SessionController"], Awaitable[None]]

_LIVE_PHASES = frozenset({MatchPhase.COUNTDOWN, MatchPhase.CHOOSING, MatchPhase.REVEAL})


class SessionController:
    """
    Owns one match: its two player slots and every timer acting on them.

    Each slot is bound to exactly one connection. Public methods take the
    session lock and are safe to call concurrently from message handlers and
    timer callbacks; after dispose() they do nothing and joins are rejected.
    State changes are announced through the optional on_change hook, which
    runs while the lock is held.
    """

    def __init__(
        self,
        session_id: str,
        *,
        settings: MatchSettings,
        scheduler: TimerScheduler,
        move_chooser: MoveChooser,
        reporter: ResultSink | None = None,
        on_change: StateChangeHook | None = None,
    ) -> None:
        self._match = Match(session_id=session_id, settings=settings)
        self._scheduler = scheduler
        self._move_chooser = move_chooser
        self._reporter = reporter
        self._on_change = on_change
        self._lock = asyncio.Lock()
        self._phase_timer: TimerHandle | None = None
        self._reconnection = ReconnectionManager(
            scheduler,
            settings.reconnect_grace_ticks,
            on_expired=self._handle_grace_expired,
        )
        self._disposed = False
        self._changed = False
        self._log = logger.bind(session_id=session_id)

    @property
    def session_id(self) -> str:
        return self._match.session_id

    @property
    def match(self) -> Match:
        return self._match

    @property
    def phase(self) -> MatchPhase:
        return self._match.phase

    @property
    def is_empty(self) -> bool:
        return self._match.is_empty

    @property
    def disposed(self) -> bool:
        return self._disposed

    def has_connection(self, connection_id: str) -> bool:
        return self._match.get_player_by_connection(connection_id) is not None

    def snapshot(self) -> MatchSnapshot:
        return self._match.snapshot()

    def connected_players(self) -> list[Player]:
        return self._match.connected_players()

    # --- Inbound events ---

    async def join(
        self,
        connection: ConnectionProtocol,
        identity: str,
        display_name: str,
        match_id: str | None = None,
    ) -> None:
        """Seat a player, or restore one whose slot is held by a grace window.

        Raises a JoinRejectedError subclass without touching state when the
        join cannot be accepted.
        """
        async with self._lock:
            if self._disposed:
                raise SessionClosedError("session has been disposed")
            match = self._match
            if (
                match.settings.enforce_match_id
                and match_id
                and match.match_id
                and match_id != match.match_id
            ):
                raise MatchIdMismatchError(expected=match.match_id, received=match_id)

            existing = match.get_player(identity)
            if self._holds_other_slot(connection.connection_id, existing):
                raise AlreadyJoinedError("connection already holds a slot in this match")
            if existing is not None:
                if existing.connected:
                    raise AlreadyJoinedError(f"{identity!r} is already in this match")
                await self._restore_player(existing, connection)
                await self._flush_changes()
                return

            if match.closed or match.is_full:
                raise SessionFullError("match already has two players")

            if match_id and not match.match_id:
                match.match_id = match_id
                self._log.info("match id adopted", match_id=match_id)

            player = Player(connection=connection, identity=identity, display_name=display_name or identity)
            match.players[identity] = player
            self._changed = True
            self._log.info("player joined", identity=identity, player_count=match.player_count)

            await self._send_joined(player)
            await self._broadcast(
                PlayerJoinedMessage(identity=identity, display_name=player.display_name).model_dump(),
                exclude_connection_id=player.connection_id,
            )

            if match.is_full:
                match.closed = True
                await self._start_countdown()
            await self._flush_changes()

    async def leave(self, connection_id: str, *, consented: bool) -> None:
        """Handle a player leaving (consented) or dropping (not consented)."""
        async with self._lock:
            if self._disposed:
                return
            player = self._match.get_player_by_connection(connection_id)
            if player is None or not player.connected:
                return

            player.connected = False
            self._changed = True
            phase = self._match.phase
            self._log.info("player left", identity=player.identity, consented=consented, phase=phase)

            if phase == MatchPhase.WAITING:
                self._remove_player(player)
                self._match.closed = False
                await self._broadcast(PlayerLeftMessage(identity=player.identity).model_dump())
            elif phase == MatchPhase.MATCH_END:
                self._reconnection.cancel(player.identity)
                self._remove_player(player)
                await self._broadcast(PlayerLeftMessage(identity=player.identity).model_dump())
            elif consented:
                await self._broadcast(PlayerLeftMessage(identity=player.identity).model_dump())
                await self._forfeit(player)
            else:
                self._reconnection.begin_grace(player.identity)
                await self._broadcast(
                    PlayerDisconnectedMessage(
                        identity=player.identity,
                        grace_ticks=self._reconnection.grace_ticks,
                    ).model_dump(),
                )
            await self._flush_changes()

    async def reconnect(self, connection: ConnectionProtocol, identity: str) -> bool:
        """Rebind a disconnected player's slot to a new connection.

        Returns False when there is no disconnected slot for the identity,
        including when its grace window has already expired.
        """
        async with self._lock:
            if self._disposed:
                return False
            player = self._match.get_player(identity)
            if player is None or player.connected:
                return False
            if self._holds_other_slot(connection.connection_id, player):
                self._log.warning("reconnect refused, connection already seated", identity=identity)
                return False
            await self._restore_player(player, connection)
            await self._flush_changes()
            return True

    async def submit_choice(self, connection_id: str, move: Any) -> None:  # noqa: ANN401
        """Lock in a move. Anything out of turn, repeated, or malformed is ignored."""
        async with self._lock:
            if self._disposed or self._match.phase != MatchPhase.CHOOSING:
                return
            player = self._match.get_player_by_connection(connection_id)
            if player is None or player.locked:
                return
            parsed = parse_move(move)
            if parsed is None:
                self._log.debug("ignoring invalid move", identity=player.identity)
                return

            player.lock_move(parsed)
            await self._broadcast(PlayerLockedMessage(identity=player.identity).model_dump())

            if self._all_locked():
                self._cancel_phase_timer()
                await self._resolve_round()
            await self._flush_changes()

    async def request_rematch(self, connection_id: str) -> None:
        async with self._lock:
            match = self._match
            if self._disposed or match.phase != MatchPhase.MATCH_END:
                return
            if match.player_count != MAX_PLAYERS or len(match.connected_players()) != MAX_PLAYERS:
                return
            player = match.get_player_by_connection(connection_id)
            if player is None:
                return

            self._log.info("rematch requested", identity=player.identity)
            match.reset_for_rematch()
            match.closed = True
            await self._start_countdown()
            await self._flush_changes()

    def dispose(self) -> None:
        """Cancel every outstanding timer. Later calls on this session are no-ops."""
        if self._disposed:
            return
        self._disposed = True
        self._cancel_phase_timer()
        self._reconnection.cancel_all()
        self._log.info("session disposed")

    # --- Phase transitions (lock held) ---

    def _start_phase_timer(self, ticks: int, step: Callable[[], Awaitable[None]], *, repeat: bool) -> None:
        """Schedule the single phase timer. Fires of a superseded handle are no-ops."""
        self._cancel_phase_timer()
        handle: TimerHandle | None = None

        async def fire() -> None:
            async with self._lock:
                if self._disposed or handle is not self._phase_timer:
                    return
                await step()
                await self._flush_changes()

        schedule = self._scheduler.call_every if repeat else self._scheduler.call_later
        handle = schedule(ticks, fire)
        self._phase_timer = handle

    def _cancel_phase_timer(self) -> None:
        if self._phase_timer is not None:
            self._phase_timer.cancel()
            self._phase_timer = None

    def _set_phase(self, phase: MatchPhase) -> None:
        self._match.phase = phase
        self._changed = True

    async def _start_countdown(self) -> None:
        match = self._match
        self._set_phase(MatchPhase.COUNTDOWN)
        match.countdown_remaining = match.settings.countdown_ticks
        self._log.info("countdown started", round=match.current_round)
        await self._broadcast(
            CountdownMessage(round=match.current_round, remaining=match.countdown_remaining).model_dump(),
        )
        self._start_phase_timer(1, self._countdown_tick, repeat=True)

    async def _countdown_tick(self) -> None:
        match = self._match
        match.countdown_remaining -= 1
        await self._broadcast(
            CountdownMessage(round=match.current_round, remaining=match.countdown_remaining).model_dump(),
        )
        if match.countdown_remaining <= 0:
            self._cancel_phase_timer()
            await self._start_choosing()

    async def _start_choosing(self) -> None:
        match = self._match
        self._set_phase(MatchPhase.CHOOSING)
        for player in match.players.values():
            player.reset_move()
        match.choice_remaining = match.settings.choice_ticks
        await self._broadcast(
            ChoiceTimerMessage(round=match.current_round, remaining=match.choice_remaining).model_dump(),
        )
        self._start_phase_timer(1, self._choice_tick, repeat=True)

    async def _choice_tick(self) -> None:
        match = self._match
        match.choice_remaining -= 1
        await self._broadcast(
            ChoiceTimerMessage(round=match.current_round, remaining=match.choice_remaining).model_dump(),
        )
        if match.choice_remaining <= 0:
            self._cancel_phase_timer()
            await self._resolve_round()

    def _all_locked(self) -> bool:
        players = self._match.seated_players()
        return len(players) == MAX_PLAYERS and all(p.locked for p in players)

    def _ensure_move(self, player: Player) -> Move:
        move = player.move
        if move is None:
            move = self._move_chooser.choose()
            player.lock_move(move)
            self._log.info("move auto-assigned", identity=player.identity, move=move)
        return move

    async def _resolve_round(self) -> None:
        match = self._match
        if match.phase != MatchPhase.CHOOSING:
            return
        players = match.seated_players()
        if len(players) != MAX_PLAYERS:
            self._log.warning("round resolution aborted, opponent missing", player_count=len(players))
            return

        self._cancel_phase_timer()
        self._set_phase(MatchPhase.REVEAL)
        first, second = players
        first_move = self._ensure_move(first)
        second_move = self._ensure_move(second)

        outcome = resolve_round(first_move, second_move)
        winner: Player | None = None
        if outcome == RoundOutcome.FIRST:
            winner = first
        elif outcome == RoundOutcome.SECOND:
            winner = second
        if winner is not None:
            winner.score += 1

        record = RoundRecord(
            round_number=match.current_round,
            player1_move=first_move,
            player2_move=second_move,
            winner_id=winner.identity if winner is not None else "",
        )
        match.rounds.append(record)
        match.last_round_result = record
        self._log.info(
            "round resolved",
            round=record.round_number,
            player1_move=first_move,
            player2_move=second_move,
            winner_id=record.winner_id,
        )
        await self._broadcast(
            RoundResultMessage(
                round=record.round_number,
                player1_id=first.identity,
                player1_move=first_move,
                player2_id=second.identity,
                player2_move=second_move,
                winner_id=record.winner_id,
                tie=record.is_tie,
                scores={p.identity: p.score for p in players},
            ).model_dump(),
        )

        if winner is not None and winner.score >= match.max_score:
            await self._end_match(winner, MatchEndReason.SCORE)
        else:
            self._start_phase_timer(match.settings.reveal_delay_ticks, self._advance_round, repeat=False)

    async def _advance_round(self) -> None:
        self._phase_timer = None
        self._match.current_round += 1
        await self._start_countdown()

    async def _end_match(self, winner: Player, reason: MatchEndReason) -> None:
        match = self._match
        self._cancel_phase_timer()
        self._set_phase(MatchPhase.MATCH_END)
        match.winner_id = winner.identity
        self._log.info("match complete", winner_id=winner.identity, reason=reason, rounds=len(match.rounds))
        await self._broadcast(MatchCompleteMessage(winner_id=winner.identity, reason=reason).model_dump())
        if self._reporter is not None:
            self._reporter.dispatch(build_result_payload(match, winner, match.opponent_of(winner)), reason)

    async def _forfeit(self, loser: Player) -> None:
        """Award the match to the other player and drop the loser's slot."""
        winner = self._match.opponent_of(loser)
        self._reconnection.cancel(loser.identity)
        if winner is None:
            self._log.warning("forfeit without opponent", identity=loser.identity)
            self._remove_player(loser)
            return
        await self._end_match(winner, MatchEndReason.FORFEIT)
        self._remove_player(loser)

    # --- Reconnection (lock held unless noted) ---

    async def _restore_player(self, player: Player, connection: ConnectionProtocol) -> None:
        self._reconnection.claim(player.identity)
        player.connection = connection
        player.connected = True
        self._changed = True
        self._log.info("player reconnected", identity=player.identity, phase=self._match.phase)
        await self._send_joined(player)
        await self._broadcast(
            PlayerReconnectedMessage(identity=player.identity).model_dump(),
            exclude_connection_id=player.connection_id,
        )

    async def _handle_grace_expired(self, window: GraceWindow) -> None:
        # runs from the scheduler, so take the lock here
        async with self._lock:
            if self._disposed or not self._reconnection.expire(window):
                return
            player = self._match.get_player(window.identity)
            if player is None or player.connected:
                return

            self._log.info("reconnection grace expired", identity=player.identity, phase=self._match.phase)
            self._changed = True
            await self._broadcast(PlayerLeftMessage(identity=player.identity).model_dump())
            if self._match.phase in _LIVE_PHASES:
                await self._forfeit(player)
            else:
                self._remove_player(player)
            await self._flush_changes()

    # --- Helpers ---

    def _holds_other_slot(self, connection_id: str, player: Player | None) -> bool:
        # a connection may be bound to at most one slot
        return any(p.connection_id == connection_id and p is not player for p in self._match.players.values())

    def _remove_player(self, player: Player) -> None:
        self._match.players.pop(player.identity, None)
        self._changed = True

    async def _send_joined(self, player: Player) -> None:
        message = MatchJoinedMessage(
            session_id=self._match.session_id,
            match_id=self._match.match_id,
            identity=player.identity,
        ).model_dump()
        await broadcast_to_players([player], message)

    async def _broadcast(self, message: dict[str, Any], exclude_connection_id: str | None = None) -> None:
        await broadcast_to_players(self._match.players.values(), message, exclude_connection_id)

    async def _flush_changes(self) -> None:
        if not self._changed:
            return
        self._changed = False
        if self._on_change is not None:
            await self._on_change(self)
