"""Unit tests for rematch handling in SessionController."""

from arena.logic.enums import MatchPhase, Move
from arena.messaging.types import SessionMessageType
from arena.tests.helpers.match import make_controller, play_round, seat_two_players
from arena.tests.mocks import RecordingReporter


async def _finished_match(scheduler, reporter=None):
    controller = make_controller(scheduler, reporter=reporter, max_score=2)
    alice, bob = await seat_two_players(controller)
    await play_round(controller, scheduler, (alice, Move.ROCK), (bob, Move.SCISSORS))
    await play_round(controller, scheduler, (alice, Move.ROCK), (bob, Move.ROCK))
    await play_round(controller, scheduler, (alice, Move.PAPER), (bob, Move.ROCK))
    assert controller.phase == MatchPhase.MATCH_END
    return controller, alice, bob


class TestRematch:
    async def test_rematch_resets_match(self, scheduler):
        controller, alice, bob = await _finished_match(scheduler)

        await controller.request_rematch(bob.connection_id)

        match = controller.match
        assert controller.phase == MatchPhase.COUNTDOWN
        assert match.current_round == 1
        assert match.rounds == []
        assert match.last_round_result is None
        assert match.winner_id == ""
        assert match.match_id == "m-1"
        for player in match.seated_players():
            assert player.score == 0
            assert player.move is None
            assert not player.locked
        assert alice.messages_of_type(SessionMessageType.COUNTDOWN)[-1] == {
            "type": "countdown",
            "round": 1,
            "remaining": 3,
        }

    async def test_rematch_plays_and_reports_second_match(self, scheduler):
        reporter = RecordingReporter()
        controller, alice, bob = await _finished_match(scheduler, reporter)
        await controller.request_rematch(alice.connection_id)

        await play_round(controller, scheduler, (alice, Move.ROCK), (bob, Move.PAPER))
        await play_round(controller, scheduler, (alice, Move.ROCK), (bob, Move.PAPER))

        assert controller.match.winner_id == "bob"
        assert [p.winner_id for p in reporter.payloads] == ["alice", "bob"]
        assert [len(p.rounds) for p in reporter.payloads] == [3, 2]

    async def test_rematch_outside_match_end_ignored(self, controller, scheduler):
        alice, _ = await seat_two_players(controller)
        await controller.request_rematch(alice.connection_id)
        await scheduler.advance(1)

        assert controller.match.countdown_remaining == 2

    async def test_rematch_requires_two_players(self, scheduler):
        controller, alice, bob = await _finished_match(scheduler)
        await controller.leave(bob.connection_id, consented=True)

        await controller.request_rematch(alice.connection_id)

        assert controller.phase == MatchPhase.MATCH_END

    async def test_rematch_after_forfeit_needs_new_opponent(self, controller, scheduler):
        alice, bob = await seat_two_players(controller)
        await controller.leave(alice.connection_id, consented=True)

        await controller.request_rematch(bob.connection_id)

        assert controller.phase == MatchPhase.MATCH_END
        assert controller.match.player_count == 1

    async def test_rematch_from_unknown_connection_ignored(self, scheduler):
        controller, _, _ = await _finished_match(scheduler)
        await controller.request_rematch("stranger")
        assert controller.phase == MatchPhase.MATCH_END
