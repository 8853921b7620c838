"""
Progression Tests — two-phase rack transitions and round flow.

Scenarios follow a player through a rack: correct answers advance the ball,
misses step it back, clearing the last ball levels up.
"""

import random

import pytest

from evaluation import ShotResult
from geometry import compute_max_pocket_distance
from progression import (
    GameProgress, PlayerAnswer, TargetShot, RoundAlreadyEvaluated,
    SCORE_INCREMENT, SAFE_MIN_POCKET_DISTANCE,
    commit, decide, new_round, reset_rack, submit_answer, choose_pocket_distance,
)
from shot_selector import Direction, legal_eis


# ── Helpers ──────────────────────────────────────────────

def answer_for(target: TargetShot, ei=None, direction=None) -> PlayerAnswer:
    return PlayerAnswer(ei=target.ei if ei is None else ei,
                        direction=direction or target.direction or Direction.RIGHT)


class TestScenarios:

    def test_scenario_1_correct_advances_ball(self):
        progress = reset_rack()
        target = TargetShot(ei=4, direction=Direction.RIGHT)
        result, after = submit_answer(progress, target, PlayerAnswer(4, Direction.RIGHT))

        assert result is ShotResult.CORRECT
        assert after.score == 10
        assert after.current_ball == 1, "ball must not change before the next round"
        assert after.pending_ball == 2
        assert commit(after).current_ball == 2

    def test_scenario_2_straight_shot_last_ball_levels_up(self):
        progress = GameProgress(current_ball=15, difficulty_level=1, max_balls=15)
        target = TargetShot(ei=0, direction=Direction.RIGHT)
        result, after = submit_answer(progress, target, PlayerAnswer(0, Direction.LEFT))

        assert result is ShotResult.CORRECT
        assert after.pending_ball == 1
        assert after.pending_level == 2
        committed = commit(after)
        assert committed.current_ball == 1
        assert committed.difficulty_level == 2

    def test_scenario_3_wrong_direction_regresses(self):
        progress = GameProgress(current_ball=5)
        target = TargetShot(ei=3, direction=Direction.LEFT)
        result, after = submit_answer(progress, target, PlayerAnswer(3, Direction.RIGHT))

        assert result is ShotResult.WRONG_DIRECTION
        assert after.pending_ball == 4
        assert after.score == 0

    def test_scenario_3_regression_floors_at_one(self):
        target = TargetShot(ei=3, direction=Direction.LEFT)
        _, after = submit_answer(reset_rack(), target, PlayerAnswer(3, Direction.RIGHT))
        assert after.pending_ball == 1

    def test_scenario_4_too_thin(self):
        target = TargetShot(ei=6, direction=Direction.RIGHT)
        result, _ = submit_answer(GameProgress(difficulty_level=3), target,
                                  PlayerAnswer(7, Direction.RIGHT))
        assert result is ShotResult.TOO_THIN


class TestDecide:

    def test_max_level_rack_clear_plateaus(self):
        progress = GameProgress(current_ball=9, difficulty_level=10, max_balls=9)
        after = decide(progress, True)
        assert after.pending_ball == 1
        assert after.pending_level is None
        assert commit(after).difficulty_level == 10

    def test_miss_never_regresses_level(self):
        progress = GameProgress(current_ball=1, difficulty_level=6)
        after = commit(decide(progress, False))
        assert after.difficulty_level == 6
        assert after.current_ball == 1

    def test_marks_evaluated(self):
        assert decide(reset_rack(), True).evaluated
        assert decide(reset_rack(), False).evaluated

    def test_commit_without_pending_keeps_state(self):
        progress = GameProgress(current_ball=3, difficulty_level=2, score=40)
        assert commit(progress) == progress

    def test_commit_clears_pending(self):
        after = commit(GameProgress(current_ball=15, pending_ball=1, pending_level=2,
                                    evaluated=True))
        assert after.pending_ball is None and after.pending_level is None
        assert not after.has_pending

    def test_random_sequences_keep_invariants(self):
        rng = random.Random(99)
        for max_balls in (9, 10, 15):
            progress = reset_rack(max_balls)
            last_level = 1
            for _ in range(3000):
                was_last = progress.current_ball == max_balls
                level = progress.difficulty_level
                correct = rng.random() < 0.8
                progress = decide(progress, correct)
                progress = commit(progress)
                assert 1 <= progress.current_ball <= max_balls
                assert 1 <= progress.difficulty_level <= 10
                assert progress.difficulty_level >= last_level
                if correct and was_last and level < 10:
                    assert progress.difficulty_level == level + 1
                    assert progress.current_ball == 1
                last_level = progress.difficulty_level


class TestGameProgressValidation:

    @pytest.mark.parametrize("kwargs", [
        dict(current_ball=0),
        dict(current_ball=16),
        dict(current_ball=10, max_balls=9),
        dict(difficulty_level=0),
        dict(difficulty_level=11),
        dict(pending_level=2),                  # level without ball
        dict(pending_ball=0),
        dict(score=-10),
        dict(max_balls=0),
        dict(pending_ball=2),                   # pending outside an evaluated round
        dict(pending_ball=1, pending_level=2),
    ])
    def test_rejects_invalid(self, kwargs):
        with pytest.raises(ValueError):
            GameProgress(**kwargs)

    def test_reset_rack_defaults(self):
        progress = reset_rack(10)
        assert (progress.current_ball, progress.difficulty_level, progress.score) == (1, 1, 0)
        assert progress.max_balls == 10
        assert not progress.has_pending and not progress.evaluated


class TestTargetShot:

    def test_straight_shot_has_no_direction(self):
        assert TargetShot(ei=0, direction=Direction.RIGHT).direction is None

    def test_angle_derived(self):
        assert TargetShot(ei=4, direction="left").angle == pytest.approx(30.0)
        assert TargetShot(ei=4, direction="left").direction is Direction.LEFT

    @pytest.mark.parametrize("ei, direction", [
        (-0.5, Direction.RIGHT),
        (8.5, Direction.RIGHT),
        (3, None),                  # cut shot without a side
    ])
    def test_rejects_out_of_range(self, ei, direction):
        with pytest.raises(ValueError):
            TargetShot(ei=ei, direction=direction)


class TestPlayerAnswer:

    @pytest.mark.parametrize("ei", [float("nan"), float("inf"), float("-inf")])
    def test_rejects_non_finite(self, ei):
        with pytest.raises(ValueError):
            PlayerAnswer(ei, Direction.RIGHT)

    def test_off_grid_accepted(self):
        assert PlayerAnswer(3.14, "left").direction is Direction.LEFT


class TestRounds:

    def test_new_round_commits_pending(self):
        progress = GameProgress(current_ball=15, score=150, pending_ball=1,
                                pending_level=2, evaluated=True)
        target, after = new_round(progress, random.Random(1))
        assert (after.current_ball, after.difficulty_level) == (1, 2)
        assert not after.has_pending and not after.evaluated
        assert target.ei in legal_eis(2)

    def test_force_reset_bypasses_pending(self):
        progress = GameProgress(current_ball=7, difficulty_level=4, score=300,
                                pending_ball=8, max_balls=9, evaluated=True)
        target, after = new_round(progress, random.Random(2), force_reset=True)
        assert after == reset_rack(9)
        assert target.ei in legal_eis(1)

    def test_double_submission_rejected(self):
        target, progress = new_round(reset_rack(), random.Random(3))
        _, progress = submit_answer(progress, target, answer_for(target))
        with pytest.raises(RoundAlreadyEvaluated):
            submit_answer(progress, target, answer_for(target))

    def test_deterministic_under_seed(self):
        a = new_round(reset_rack(), random.Random(42))
        b = new_round(reset_rack(), random.Random(42))
        assert a == b

    def test_max_ei_respected(self):
        rng = random.Random(8)
        progress = GameProgress(difficulty_level=10)
        for _ in range(500):
            target, progress = new_round(progress, rng, max_ei=7)
            assert target.ei <= 7

    def test_full_rack_walkthrough(self):
        rng = random.Random(7)
        target, progress = new_round(reset_rack(9), rng)
        for ball in range(1, 10):
            assert progress.current_ball == ball
            result, progress = submit_answer(progress, target, answer_for(target))
            assert result is ShotResult.CORRECT
            target, progress = new_round(progress, rng)
        assert progress.current_ball == 1
        assert progress.difficulty_level == 2
        assert progress.score == 9 * SCORE_INCREMENT


class TestPocketDistance:

    @pytest.mark.parametrize("ei", [0, 2, 4, 6, 8])
    @pytest.mark.parametrize("direction", [Direction.LEFT, Direction.RIGHT])
    def test_outer_half_of_free_space(self, ei, direction):
        target = TargetShot(ei=ei, direction=direction)
        max_d = compute_max_pocket_distance(target.angle, target.direction)
        low = SAFE_MIN_POCKET_DISTANCE + 0.5 * (max_d - SAFE_MIN_POCKET_DISTANCE)
        rng = random.Random(ei)
        for _ in range(200):
            d = choose_pocket_distance(target.angle, target.direction, rng)
            assert low - 1e-9 <= d <= max_d + 1e-9

    def test_tight_geometry_falls_back_to_max(self, monkeypatch):
        import progression
        monkeypatch.setattr(progression, "compute_max_pocket_distance",
                            lambda angle, direction: 20.0)
        assert choose_pocket_distance(10.0, Direction.RIGHT, random.Random(0)) == 20.0
