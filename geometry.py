"""
Eclipse Index Geometry
EI <-> cut-angle conversion, pocket ray-casting and plan/shooter view layout.

All coordinates are plan-view screen units (x right, y down), matching what a
2D renderer draws. The ghost ball sits at the origin of every ray.
"""

import math
import numpy as np

# ──────────────────────────────────────────────
# Constants (plan-view units)
# ──────────────────────────────────────────────
MAX_EI: float = 8.0                 # full-ball-width overlap scale
BALL_DIAMETER: float = 30.0         # plan-view ball size
SHOOTER_DIAMETER: float = 260.0     # shooter-view (first person) ball size
POCKET_RADIUS: float = 22.0

# Plan-view table region
TABLE_WIDTH: float = 400.0
TABLE_HEIGHT: float = 500.0
ORIGIN_X: float = TABLE_WIDTH / 2           # ghost ball centre
ORIGIN_Y: float = TABLE_HEIGHT * 0.35
CUE_BALL_Y: float = TABLE_HEIGHT * 0.85
WALL_MARGIN: float = 35.0                   # pocket radius + margin

# Returned when the ray never meets a facing wall
NO_WALL_DISTANCE: float = 10000.0


# ──────────────────────────────────────────────
# EI <-> angle
# ──────────────────────────────────────────────
def ei_to_angle(ei: float) -> float:
    """Cut angle in degrees for an Eclipse Index magnitude."""
    return math.degrees(math.asin(ei / MAX_EI))


def angle_to_ei(angle_deg: float) -> float:
    """Eclipse Index for a cut angle in degrees. Inverse of ei_to_angle."""
    return math.sin(math.radians(angle_deg)) * MAX_EI


def quantize_half(value: float) -> float:
    """Round to the nearest 0.5, halves rounding up."""
    return math.floor(value * 2 + 0.5) / 2


def direction_sign(direction) -> float:
    """+1 for a right cut, -1 for left. A missing direction counts as right."""
    if direction is None:
        return 1.0
    return -1.0 if str(getattr(direction, "value", direction)) == "left" else 1.0


def cut_vector(angle_deg: float, direction) -> np.ndarray:
    """Unit vector from the ghost ball toward the pocket (up is -y)."""
    a = math.radians(angle_deg) * direction_sign(direction)
    return np.array([math.sin(a), -math.cos(a)])


# ──────────────────────────────────────────────
# Pocket placement
# ──────────────────────────────────────────────
def compute_max_pocket_distance(angle_deg: float, direction,
                                table_width: float = TABLE_WIDTH,
                                table_height: float = TABLE_HEIGHT,
                                origin_x: float = ORIGIN_X,
                                origin_y: float = ORIGIN_Y,
                                wall_margin: float = WALL_MARGIN) -> float:
    """
    Distance along the cut line from the origin to the nearest inset wall.

    Only walls facing the ray are tested, so a straight shot (dx == 0)
    never touches the side walls and no division by zero happens.

    Returns:
        The minimum positive parametric distance, or NO_WALL_DISTANCE.
    """
    dx, dy = cut_vector(angle_deg, direction)
    min_t = NO_WALL_DISTANCE

    candidates = []
    if dx > 0:
        candidates.append((table_width - wall_margin - origin_x) / dx)
    if dx < 0:
        candidates.append((wall_margin - origin_x) / dx)
    if dy < 0:
        candidates.append((wall_margin - origin_y) / dy)
    if dy > 0:
        candidates.append((table_height - wall_margin - origin_y) / dy)

    for t in candidates:
        if t > 0:
            min_t = min(min_t, float(t))
    return min_t


# ──────────────────────────────────────────────
# View layout (consumed by renderers)
# ──────────────────────────────────────────────
def plan_layout(angle_deg: float, direction, pocket_distance: float) -> dict:
    """Plan-view positions of the cue ball, ghost ball, object ball and pocket."""
    origin = np.array([ORIGIN_X, ORIGIN_Y])
    v = cut_vector(angle_deg, direction)
    return {
        "cue_ball":    np.array([ORIGIN_X, CUE_BALL_Y]),
        "ghost_ball":  origin,
        "object_ball": origin + v * BALL_DIAMETER,
        "pocket":      origin + v * pocket_distance,
    }


def pointer_to_ei(dx: float) -> tuple:
    """Shooter-view pointer offset from centre -> (raw EI, direction name)."""
    raw = abs(dx) / SHOOTER_DIAMETER * MAX_EI
    return raw, ("right" if dx >= 0 else "left")


def shooter_offset(ei: float, direction) -> float:
    """Horizontal object-ball offset in the shooter view for a selected EI."""
    return ei / MAX_EI * SHOOTER_DIAMETER * direction_sign(direction)
