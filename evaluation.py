"""
Answer evaluation — compares a player's (EI, direction) against the target.
"""

import enum

from geometry import angle_to_ei, quantize_half


class ShotResult(enum.Enum):
    CORRECT = "correct"
    WRONG_DIRECTION = "wrong_direction"
    TOO_THIN = "too_thin"      # answered a thinner cut than the target
    TOO_FULL = "too_full"      # answered a fuller hit than the target

    @property
    def is_correct(self) -> bool:
        return self is ShotResult.CORRECT


def _same_direction(a, b) -> bool:
    return getattr(a, "value", a) == getattr(b, "value", b)


def classify(answer_ei: float, answer_direction,
             target_ei: float, target_direction) -> ShotResult:
    """
    Classify an already-quantized answer.

    Direction is checked first, and is ignored for a straight (EI 0) target.
    """
    direction_ok = target_ei == 0 or _same_direction(answer_direction, target_direction)
    if answer_ei == target_ei and direction_ok:
        return ShotResult.CORRECT
    if not direction_ok:
        return ShotResult.WRONG_DIRECTION
    if answer_ei > target_ei:
        return ShotResult.TOO_THIN
    return ShotResult.TOO_FULL


def target_ei_of(target) -> float:
    """Quantized EI of a target, recomputed from its stored angle."""
    return quantize_half(angle_to_ei(target.angle))


def evaluate(target, answer) -> ShotResult:
    """Quantize both sides to the half grid and classify."""
    return classify(quantize_half(answer.ei), answer.direction,
                    target_ei_of(target), target.direction)
