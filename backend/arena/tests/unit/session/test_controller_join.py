"""Unit tests for SessionController join handling."""

import pytest

from arena.logic.enums import MatchPhase
from arena.messaging.types import SessionMessageType
from arena.session.exceptions import (
    AlreadyJoinedError,
    MatchIdMismatchError,
    SessionClosedError,
    SessionFullError,
)
from arena.tests.helpers.match import make_controller, seat_two_players
from arena.tests.mocks import MockConnection


class TestFirstJoin:
    async def test_registers_player_and_adopts_match_id(self, controller):
        alice = MockConnection()
        await controller.join(alice, "alice", "Alice", "m-1")

        assert controller.phase == MatchPhase.WAITING
        assert controller.match.match_id == "m-1"
        assert controller.match.player_count == 1
        assert alice.messages_of_type(SessionMessageType.MATCH_JOINED) == [
            {"type": "match_joined", "session_id": "match1", "match_id": "m-1", "identity": "alice"},
        ]

    async def test_display_name_defaults_to_identity(self, controller):
        await controller.join(MockConnection(), "alice", "")
        assert controller.match.get_player("alice").display_name == "alice"

    async def test_join_without_match_id_leaves_it_empty(self, controller):
        await controller.join(MockConnection(), "alice", "Alice")
        assert controller.match.match_id == ""
        assert controller.match.report_id == "match1"


class TestSecondJoin:
    async def test_closes_session_and_starts_countdown(self, controller):
        alice, bob = await seat_two_players(controller)

        assert controller.phase == MatchPhase.COUNTDOWN
        assert controller.match.closed
        assert controller.match.countdown_remaining == 3
        countdown = {"type": "countdown", "round": 1, "remaining": 3}
        assert alice.messages_of_type(SessionMessageType.COUNTDOWN) == [countdown]
        assert bob.messages_of_type(SessionMessageType.COUNTDOWN) == [countdown]

    async def test_first_player_is_told_about_second(self, controller):
        alice, bob = await seat_two_players(controller)

        assert alice.messages_of_type(SessionMessageType.PLAYER_JOINED) == [
            {"type": "player_joined", "identity": "bob", "display_name": "Bob"},
        ]
        assert bob.messages_of_type(SessionMessageType.PLAYER_JOINED) == []

    async def test_slot_order_is_join_order(self, controller):
        await seat_two_players(controller)
        assert [p.identity for p in controller.match.seated_players()] == ["alice", "bob"]

    async def test_second_join_may_omit_match_id(self, controller):
        await controller.join(MockConnection(), "alice", "Alice", "m-1")
        await controller.join(MockConnection(), "bob", "Bob")
        assert controller.phase == MatchPhase.COUNTDOWN


class TestJoinRejections:
    async def test_match_id_mismatch(self, controller):
        await controller.join(MockConnection(), "alice", "Alice", "m-1")

        with pytest.raises(MatchIdMismatchError) as exc_info:
            await controller.join(MockConnection(), "bob", "Bob", "m-2")

        assert exc_info.value.expected == "m-1"
        assert exc_info.value.received == "m-2"
        assert controller.match.player_count == 1
        assert controller.match.match_id == "m-1"
        assert controller.phase == MatchPhase.WAITING

    async def test_match_id_not_enforced_when_disabled(self, scheduler):
        controller = make_controller(scheduler, enforce_match_id=False)
        await controller.join(MockConnection(), "alice", "Alice", "m-1")
        await controller.join(MockConnection(), "bob", "Bob", "m-2")

        assert controller.match.match_id == "m-1"
        assert controller.phase == MatchPhase.COUNTDOWN

    async def test_third_player_rejected(self, controller):
        await seat_two_players(controller)
        with pytest.raises(SessionFullError):
            await controller.join(MockConnection(), "carol", "Carol", "m-1")
        assert controller.match.player_count == 2

    async def test_connected_identity_rejected(self, controller):
        await controller.join(MockConnection(), "alice", "Alice", "m-1")
        with pytest.raises(AlreadyJoinedError):
            await controller.join(MockConnection(), "alice", "Alice", "m-1")
        assert controller.match.player_count == 1

    async def test_disposed_session_rejects_joins(self, controller):
        controller.dispose()
        with pytest.raises(SessionClosedError):
            await controller.join(MockConnection(), "alice", "Alice")
        assert controller.match.is_empty


class TestWaitingLeave:
    async def test_leave_reopens_session(self, controller):
        alice = MockConnection()
        await controller.join(alice, "alice", "Alice", "m-1")
        await controller.leave(alice.connection_id, consented=True)

        assert controller.match.is_empty
        assert not controller.match.closed
        assert controller.phase == MatchPhase.WAITING

        await seat_two_players(controller)
        assert controller.phase == MatchPhase.COUNTDOWN

    async def test_drop_in_waiting_removes_slot_without_grace(self, controller, scheduler):
        alice = MockConnection()
        bob = MockConnection()
        await controller.join(alice, "alice", "Alice")
        await controller.leave(alice.connection_id, consented=False)

        assert controller.match.get_player("alice") is None
        assert scheduler.pending == []

        await controller.join(bob, "bob", "Bob")
        assert controller.match.player_count == 1

    async def test_unknown_connection_leave_is_ignored(self, controller):
        await controller.join(MockConnection(), "alice", "Alice")
        await controller.leave("not-a-connection", consented=True)
        assert controller.match.player_count == 1


class TestStateChangeHook:
    async def test_fires_on_roster_and_phase_changes_not_ticks(self, scheduler):
        phases = []

        async def on_change(session):
            phases.append(session.snapshot().phase)

        controller = make_controller(scheduler, on_change=on_change)
        await seat_two_players(controller)
        assert phases == [MatchPhase.WAITING, MatchPhase.COUNTDOWN]

        await scheduler.advance(2)
        assert phases == [MatchPhase.WAITING, MatchPhase.COUNTDOWN]

        await scheduler.advance(1)
        assert phases[-1] == MatchPhase.CHOOSING


class TestSnapshot:
    async def test_snapshot_hides_moves(self, controller, scheduler):
        alice, _ = await seat_two_players(controller)
        await scheduler.advance(3)
        await controller.submit_choice(alice.connection_id, "rock")

        snapshot = controller.snapshot()
        dumped = snapshot.model_dump()
        assert dumped["players"][0] == {
            "identity": "alice",
            "display_name": "Alice",
            "connected": True,
            "locked": True,
            "score": 0,
        }
        assert "rock" not in str(dumped)

    async def test_snapshot_is_immutable(self, controller):
        await seat_two_players(controller)
        snapshot = controller.snapshot()
        with pytest.raises(ValueError, match="frozen"):
            snapshot.phase = MatchPhase.MATCH_END
