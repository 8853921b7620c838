"""
Shot Selector — difficulty tables and weighted target selection.

Each difficulty level unlocks more Eclipse Index values. Values unlocked at the
current level are drawn more often so practice concentrates on new angles,
while EI 0 (the straight-in shot) stays rare.
"""

import enum
import logging
import math
import random
import numpy as np

from geometry import MAX_EI

logger = logging.getLogger(__name__)

MIN_LEVEL = 1
MAX_LEVEL = 10

BASE_EIS = (0.0, 1.0, 2.0, 3.0, 4.0)

# EIs unlocked exactly at each level (cumulative with every lower level).
# Levels 3-4 unlock nothing new: they drill the level-2 set before halves
# arrive with the finer input grid at level 5.
LEVEL_ADDITIONS: dict[int, tuple] = {
    1:  (),
    2:  (5.0,),
    3:  (),
    4:  (),
    5:  (0.5, 1.5),
    6:  (2.5, 3.5, 6.0),
    7:  (4.5, 7.0),
    8:  (5.5, 8.0),
    9:  (6.5,),
    10: (7.5,),
}

# Selection weights
STRAIGHT_WEIGHT = 1
KNOWN_WEIGHT = 4
NEW_WEIGHT = 7
DIRECTIONS_PER_EI = 2      # a nonzero EI is reachable as a left or right cut

HALF_SNAP_LEVEL = 5


class Direction(str, enum.Enum):
    LEFT = "left"
    RIGHT = "right"


def _check_level(level: int) -> None:
    if not MIN_LEVEL <= level <= MAX_LEVEL:
        raise ValueError(f"difficulty level must be in [{MIN_LEVEL}, {MAX_LEVEL}], got {level}")


def legal_eis(level: int, max_ei: float = MAX_EI) -> tuple:
    """Sorted EIs that may be chosen as targets at this level."""
    _check_level(level)
    eis = set(BASE_EIS)
    for lvl in range(MIN_LEVEL, level + 1):
        eis.update(LEVEL_ADDITIONS[lvl])
    return tuple(sorted(e for e in eis if e <= max_ei))


def newly_introduced(level: int, max_ei: float = MAX_EI) -> frozenset:
    """EIs first unlocked at exactly this level."""
    _check_level(level)
    return frozenset(e for e in LEVEL_ADDITIONS[level] if e <= max_ei)


def snap_interval(level: int) -> float:
    """Input granularity: whole EIs below level 5, halves from level 5."""
    _check_level(level)
    return 0.5 if level >= HALF_SNAP_LEVEL else 1.0


# ──────────────────────────────────────────────
# Weighted selection
# ──────────────────────────────────────────────
def weighted_choice(pairs, rng: random.Random = None):
    """
    Roulette-wheel pick over (value, weight) pairs.

    A uniform draw in [0, total) selects the first pair whose cumulative
    weight exceeds it; ties resolve by list order.
    """
    pairs = list(pairs)
    if not pairs:
        raise ValueError("weighted_choice needs at least one candidate")
    weights = np.array([w for _, w in pairs], dtype=float)
    if np.any(weights < 0):
        raise ValueError("weights must be non-negative")
    cumulative = np.cumsum(weights)
    total = float(cumulative[-1])
    if total <= 0:
        raise ValueError("total weight must be positive")

    rng = rng or random.Random()
    draw = rng.random() * total
    idx = int(np.searchsorted(cumulative, draw, side="right"))
    return pairs[min(idx, len(pairs) - 1)][0]


def shot_weights(level: int, max_ei: float = MAX_EI) -> list:
    """(ei, weight) candidates in ascending EI order."""
    fresh = newly_introduced(level, max_ei)
    pairs = []
    for ei in legal_eis(level, max_ei):
        if ei == 0:
            pairs.append((ei, STRAIGHT_WEIGHT))
        else:
            base = NEW_WEIGHT if ei in fresh else KNOWN_WEIGHT
            pairs.append((ei, base * DIRECTIONS_PER_EI))
    return pairs


def select_target_shot(level: int, rng: random.Random = None,
                       max_ei: float = MAX_EI) -> tuple:
    """
    Draw a target (ei, direction) for the given level.

    Returns:
        (ei, Direction) for a cut shot, (0.0, None) for a straight shot.
    """
    rng = rng or random.Random()
    ei = weighted_choice(shot_weights(level, max_ei), rng)
    direction = None
    if ei > 0:
        direction = Direction.RIGHT if rng.random() < 0.5 else Direction.LEFT
    logger.debug("[SELECT] level=%d ei=%s dir=%s", level, ei,
                 direction.value if direction else "-")
    return ei, direction


def snap_input(raw_ei: float, level: int, max_ei: float = MAX_EI) -> float:
    """Quantize raw pointer EI to the level grid, then to the closest legal EI."""
    step = snap_interval(level)
    snapped = math.floor(min(max(raw_ei, 0.0), max_ei) / step + 0.5) * step
    allowed = legal_eis(level, max_ei)
    closest = allowed[0]
    best = abs(snapped - closest)
    for val in allowed:
        diff = abs(snapped - val)
        if diff < best:
            best, closest = diff, val
    return closest
