"""
Unit tests for the move chooser used when a decision window runs out.
"""

from arena.logic.enums import Move
from arena.logic.rng import SEED_BYTES, RandomMoveChooser


class TestRandomMoveChooser:
    def test_generated_seed_is_hex(self):
        chooser = RandomMoveChooser()
        assert len(chooser.seed) == SEED_BYTES * 2
        bytes.fromhex(chooser.seed)

    def test_generated_seeds_differ(self):
        assert RandomMoveChooser().seed != RandomMoveChooser().seed

    def test_same_seed_same_sequence(self):
        a = RandomMoveChooser("fixed")
        b = RandomMoveChooser("fixed")
        assert [a.choose() for _ in range(50)] == [b.choose() for _ in range(50)]

    def test_choices_are_moves_and_cover_all(self):
        chooser = RandomMoveChooser("coverage")
        picks = {chooser.choose() for _ in range(200)}
        assert picks == set(Move)
