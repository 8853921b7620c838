"""
Rack Progression — Layer 1 (Game Rules)

GameProgress is an immutable value. Every transition takes a progress value
and returns a new one:

  decide(progress, correct)   — evaluation time: writes pending ball/level
  commit(progress)            — round start: applies and clears pending fields

Keeping the two phases apart lets a renderer keep drawing the just-evaluated
round (ball number, level) until the player asks for the next shot.
"""

import logging
import math
import random
from dataclasses import dataclass, field, replace
from typing import Optional

from geometry import (
    MAX_EI, BALL_DIAMETER, compute_max_pocket_distance, ei_to_angle,
)
from shot_selector import Direction, MIN_LEVEL, MAX_LEVEL, select_target_shot
from evaluation import ShotResult, evaluate

logger = logging.getLogger(__name__)

SCORE_INCREMENT = 10
DEFAULT_MAX_BALLS = 15                  # 8-ball rack
SAFE_MIN_POCKET_DISTANCE = BALL_DIAMETER   # pocket must clear the object ball


class RoundAlreadyEvaluated(RuntimeError):
    """Raised when an answer is submitted twice for the same round."""


def _as_direction(value) -> Optional[Direction]:
    if value is None or isinstance(value, Direction):
        return value
    return Direction(value)


@dataclass(frozen=True)
class TargetShot:
    """One round's target. direction is None for a straight (EI 0) shot."""
    ei: float
    direction: Optional[Direction] = None
    pocket_distance: float = 0.0
    angle: float = field(init=False)

    def __post_init__(self):
        if not 0 <= self.ei <= MAX_EI:
            raise ValueError(f"target EI must be in [0, {MAX_EI}], got {self.ei}")
        direction = None if self.ei == 0 else _as_direction(self.direction)
        if self.ei > 0 and direction is None:
            raise ValueError(f"target EI {self.ei} needs a cut direction")
        object.__setattr__(self, "direction", direction)
        object.__setattr__(self, "angle", ei_to_angle(self.ei))


@dataclass(frozen=True)
class PlayerAnswer:
    ei: float
    direction: Optional[Direction] = Direction.RIGHT

    def __post_init__(self):
        if not math.isfinite(self.ei):
            raise ValueError(f"answer EI must be finite, got {self.ei}")
        object.__setattr__(self, "direction", _as_direction(self.direction))


@dataclass(frozen=True)
class GameProgress:
    current_ball: int = 1
    difficulty_level: int = 1
    score: int = 0
    pending_ball: Optional[int] = None
    pending_level: Optional[int] = None
    max_balls: int = DEFAULT_MAX_BALLS
    evaluated: bool = False

    def __post_init__(self):
        if self.max_balls < 1:
            raise ValueError(f"max_balls must be positive, got {self.max_balls}")
        for name in ("current_ball", "pending_ball"):
            value = getattr(self, name)
            if value is not None and not 1 <= value <= self.max_balls:
                raise ValueError(f"{name} must be in [1, {self.max_balls}], got {value}")
        for name in ("difficulty_level", "pending_level"):
            value = getattr(self, name)
            if value is not None and not MIN_LEVEL <= value <= MAX_LEVEL:
                raise ValueError(f"{name} must be in [{MIN_LEVEL}, {MAX_LEVEL}], got {value}")
        if self.pending_level is not None and self.pending_ball is None:
            raise ValueError("pending_level requires pending_ball")
        if self.has_pending and not self.evaluated:
            raise ValueError("pending transition without an evaluated round")
        if self.score < 0:
            raise ValueError(f"score must be non-negative, got {self.score}")

    @property
    def has_pending(self) -> bool:
        return self.pending_ball is not None


# ──────────────────────────────────────────────
# Two-phase transitions
# ──────────────────────────────────────────────
def commit(progress: GameProgress) -> GameProgress:
    """Apply pending ball/level (if any) and open a fresh round."""
    ball = progress.current_ball if progress.pending_ball is None else progress.pending_ball
    level = (progress.difficulty_level if progress.pending_level is None
             else progress.pending_level)
    return replace(progress, current_ball=ball, difficulty_level=level,
                   pending_ball=None, pending_level=None, evaluated=False)


def decide(progress: GameProgress, correct: bool) -> GameProgress:
    """Record the outcome of an evaluation as pending state."""
    if correct:
        score = progress.score + SCORE_INCREMENT
        if progress.current_ball == progress.max_balls:
            level = progress.difficulty_level
            pending_level = level + 1 if level < MAX_LEVEL else None
            return replace(progress, score=score, pending_ball=1,
                           pending_level=pending_level, evaluated=True)
        return replace(progress, score=score,
                       pending_ball=progress.current_ball + 1,
                       pending_level=None, evaluated=True)
    return replace(progress, pending_ball=max(1, progress.current_ball - 1),
                   pending_level=None, evaluated=True)


def reset_rack(max_balls: int = DEFAULT_MAX_BALLS) -> GameProgress:
    """Fresh progress: ball 1, level 1, score 0."""
    return GameProgress(max_balls=max_balls)


# ──────────────────────────────────────────────
# Rounds
# ──────────────────────────────────────────────
def choose_pocket_distance(angle_deg: float, direction,
                           rng: random.Random = None) -> float:
    """Pocket distance in the outer half of the free space along the cut line."""
    rng = rng or random.Random()
    max_dist = compute_max_pocket_distance(angle_deg, direction)
    if max_dist <= SAFE_MIN_POCKET_DISTANCE:
        return max_dist
    span = max_dist - SAFE_MIN_POCKET_DISTANCE
    return SAFE_MIN_POCKET_DISTANCE + span * 0.5 + rng.random() * span * 0.5


def new_round(progress: GameProgress, rng: random.Random = None,
              force_reset: bool = False, max_ei: float = MAX_EI) -> tuple:
    """
    Start the next round.

    Args:
        progress: State after the previous evaluation (or a fresh rack).
        rng: Random source for the target and pocket placement.
        force_reset: Manual reset; restart at ball 1, level 1, score 0,
            discarding anything pending.
        max_ei: Largest EI the game variant allows.

    Returns:
        (TargetShot, GameProgress)
    """
    rng = rng or random.Random()
    if force_reset:
        progress = reset_rack(progress.max_balls)
    else:
        progress = commit(progress)

    ei, direction = select_target_shot(progress.difficulty_level, rng, max_ei)
    angle = ei_to_angle(ei)
    pocket = choose_pocket_distance(angle, direction, rng)
    target = TargetShot(ei=ei, direction=direction, pocket_distance=pocket)
    logger.debug("[ROUND] ball=%d level=%d target=%s", progress.current_ball,
                 progress.difficulty_level, ei)
    return target, progress


def submit_answer(progress: GameProgress, target: TargetShot,
                  answer: PlayerAnswer) -> tuple:
    """
    Evaluate an answer and queue the resulting transition.

    Returns:
        (ShotResult, GameProgress with pending fields set)

    Raises:
        RoundAlreadyEvaluated: the round already has an answer.
    """
    if progress.evaluated:
        raise RoundAlreadyEvaluated("round already evaluated; start a new round first")
    result: ShotResult = evaluate(target, answer)
    updated = decide(progress, result.is_correct)
    logger.debug("[EVAL] answer=%s result=%s pending_ball=%s pending_level=%s",
                 answer.ei, result.value, updated.pending_ball, updated.pending_level)
    return result, updated
