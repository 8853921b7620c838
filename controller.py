"""
EclipseController — Layer 2 (Game Logic)

Owns the trainer state between renderer calls: the random source, the rack
progress, the current target and the player's in-progress selection.
Communicates with Layer 3 (server.py / any renderer) via:
  - pending_events  : rendering commands (new_round, selection, show_result, …)
  - status_msg / info_msg : text lines for the HUD

Layer 3 calls:
  ctrl.start_round()            — commit pending transition, draw next target
  ctrl.pointer_move(dx)         — shooter-view drag sample (pixels from centre)
  ctrl.pointer_release()        — end of drag
  ctrl.evaluate()               — commit the selection as the answer
  ctrl.get_state()              — dict snapshot for a frame message
"""

import json
import logging
import math
import random

from geometry import plan_layout, pointer_to_ei, shooter_offset, quantize_half
from shot_selector import Direction, legal_eis, snap_input, snap_interval
from evaluation import ShotResult, target_ei_of
from progression import (
    GameProgress, PlayerAnswer, RoundAlreadyEvaluated, TargetShot,
    new_round, reset_rack, submit_answer,
)
from trainer_config import TrainerConfig

logger = logging.getLogger(__name__)

# ── Ball colours (1-8 solids, 9-15 stripes of the same colours) ──────────────
BALL_COLORS = [
    "#facc15",  # 1 yellow
    "#2563eb",  # 2 blue
    "#ef4444",  # 3 red
    "#7c3aed",  # 4 purple
    "#f97316",  # 5 orange
    "#16a34a",  # 6 green
    "#991b1b",  # 7 maroon
    "#171717",  # 8 black
]

DEFAULT_INFO_MSG = "Drag to choose EI  [Enter] Evaluate  [N] Next  [R] Reset  [T] Test mode"


def ball_visuals(number: int) -> dict:
    """Colour and stripe flag for a rack ball number."""
    return {"color": BALL_COLORS[(number - 1) % 8], "striped": number > 8}


def _fmt_ei(ei: float) -> str:
    return f"{ei:g}"


class EclipseController:
    """Layer 2: round flow + answer capture around the pure progression rules."""

    # ── Feedback colours ──────────────────────────────────────────────────────
    COLOR_CORRECT = "emerald"
    COLOR_LEVEL   = "yellow"
    COLOR_MISS    = "rose"

    # ── Constructor ───────────────────────────────────────────────────────────

    def __init__(self, config: TrainerConfig | None = None,
                 rng: random.Random | None = None):
        self.config = config or TrainerConfig()
        self.rng = rng or random.Random(self.config.seed)

        # Rack state
        self.progress: GameProgress = reset_rack(self.config.max_balls)
        self.target: TargetShot | None = None
        self.last_result: ShotResult | None = None

        # Player selection (shooter view)
        self.selected_ei = 0.0
        self.selected_direction = Direction.RIGHT
        self.dragging = False
        self._raw_ei = 0.0

        # Display toggles
        self.test_mode       = self.config.test_mode
        self.show_cb_visuals = self.config.show_cb_visuals
        self.show_ob_line    = self.config.show_ob_line

        # Status / info messages (L3 reads these to update text)
        self.status_msg = ""
        self.info_msg   = DEFAULT_INFO_MSG

        # Event queue
        self.pending_events: list[dict] = []

    # ──────────────────────────────────────────────────────────────────────────
    # Rounds
    # ──────────────────────────────────────────────────────────────────────────

    @property
    def evaluated(self) -> bool:
        return self.progress.evaluated

    def start_round(self) -> TargetShot:
        """Commit the pending transition and draw the next target."""
        self.target, self.progress = new_round(
            self.progress, self.rng, max_ei=self.config.max_ei)
        self._begin_round()
        return self.target

    def reset_game(self) -> TargetShot:
        """Manual reset: ball 1, level 1, score 0, fresh target."""
        self.target, self.progress = new_round(
            self.progress, self.rng, force_reset=True, max_ei=self.config.max_ei)
        logger.info("[ROUND] rack reset")
        self._begin_round()
        return self.target

    def _begin_round(self) -> None:
        self.selected_ei = 0.0
        self.selected_direction = Direction.RIGHT
        self.dragging = False
        self._raw_ei = 0.0
        self.last_result = None
        self.status_msg = (f"Ball {self.progress.current_ball}  "
                           f"Level {self.progress.difficulty_level}: pick the EI.")
        self.pending_events.append({"type": "new_round"})
        logger.info("[ROUND] ball=%d level=%d score=%d",
                    self.progress.current_ball, self.progress.difficulty_level,
                    self.progress.score)

    # ──────────────────────────────────────────────────────────────────────────
    # Answer capture
    # ──────────────────────────────────────────────────────────────────────────

    def pointer_move(self, dx: float) -> None:
        """Shooter-view drag sample; dx is pixels right of the ball centre."""
        if self.evaluated or self.target is None or not math.isfinite(dx):
            return
        raw, direction = pointer_to_ei(dx)
        self.dragging = True
        self._raw_ei = raw
        self.selected_direction = Direction(direction)
        if self.config.snap_on_drag:
            self.selected_ei = snap_input(raw, self.progress.difficulty_level,
                                          self.config.max_ei)
        else:
            self.selected_ei = min(raw, self.config.max_ei)
        self.pending_events.append({"type": "selection"})

    def pointer_release(self) -> None:
        """End of drag; snap-on-release modes quantize here."""
        if not self.dragging:
            return
        self.dragging = False
        if not self.config.snap_on_drag:
            self.selected_ei = snap_input(self._raw_ei, self.progress.difficulty_level,
                                          self.config.max_ei)
            self.pending_events.append({"type": "selection"})

    def select(self, ei: float, direction) -> None:
        """Set the selection directly (keyboard / assisted input)."""
        if self.evaluated or self.target is None:
            return
        ei = float(ei)
        if not math.isfinite(ei):
            raise ValueError(f"selection EI must be finite, got {ei}")
        self.selected_ei = min(ei, self.config.max_ei)
        self.selected_direction = Direction(getattr(direction, "value", direction))
        self.dragging = False
        self.pending_events.append({"type": "selection"})

    # ──────────────────────────────────────────────────────────────────────────
    # Evaluation
    # ──────────────────────────────────────────────────────────────────────────

    def evaluate(self) -> ShotResult | None:
        """Submit the current selection. Returns None if nothing to evaluate."""
        if self.target is None:
            self.status_msg = "No round in progress."
            return None
        if self.dragging:
            self.pointer_release()
        answer = PlayerAnswer(ei=self.selected_ei, direction=self.selected_direction)
        try:
            result, self.progress = submit_answer(self.progress, self.target, answer)
        except RoundAlreadyEvaluated:
            logger.warning("[EVAL] ignored second submission for ball %d",
                           self.progress.current_ball)
            self.status_msg = "Already evaluated. Press Next for a new shot."
            return None

        self.last_result = result
        msg, color_name = self._feedback(result, answer)
        self.status_msg = msg
        self.pending_events.append({"type": "show_result", "result": result.value,
                                    "msg": msg, "color_name": color_name})
        logger.info("[EVAL] %s (answer=%s target=%s)", result.value,
                    _fmt_ei(answer.ei), _fmt_ei(target_ei_of(self.target)))
        return result

    def _feedback(self, result: ShotResult, answer: PlayerAnswer) -> tuple:
        target_ei = target_ei_of(self.target)
        if result.is_correct:
            ei = quantize_half(answer.ei)
            side = f" {answer.direction.value}" if ei > 0 else ""
            msg = f"Correct! EI {_fmt_ei(ei)}{side}."
            if self.progress.pending_level is not None:
                return (msg + f" Level Up! Entering Level {self.progress.pending_level}.",
                        self.COLOR_LEVEL)
            if self.progress.pending_ball == 1:
                return msg + " Rack Clear! Max Level achieved!", self.COLOR_LEVEL
            return msg, self.COLOR_CORRECT

        side = f" {self.target.direction.value}" if self.target.direction else ""
        if result is ShotResult.WRONG_DIRECTION:
            hint = f"Wrong cut direction. Needed {self.target.direction.value}."
        elif result is ShotResult.TOO_THIN:
            hint = "Too thin."
        else:
            hint = "Too full."
        return f"Miss! Target was EI {_fmt_ei(target_ei)}{side}. {hint}", self.COLOR_MISS

    # ──────────────────────────────────────────────────────────────────────────
    # Display toggles
    # ──────────────────────────────────────────────────────────────────────────

    def toggle_test_mode(self) -> None:
        self.test_mode = not self.test_mode
        self.pending_events.append({"type": "toggle", "name": "test_mode",
                                    "value": self.test_mode})

    def toggle_cb_visuals(self) -> None:
        self.show_cb_visuals = not self.show_cb_visuals
        self.pending_events.append({"type": "toggle", "name": "cb_visuals",
                                    "value": self.show_cb_visuals})

    def toggle_ob_line(self) -> None:
        self.show_ob_line = not self.show_ob_line
        self.pending_events.append({"type": "toggle", "name": "ob_line",
                                    "value": self.show_ob_line})

    TOGGLES = {
        "test_mode":  "toggle_test_mode",
        "cb_visuals": "toggle_cb_visuals",
        "ob_line":    "toggle_ob_line",
    }

    def toggle(self, name: str) -> bool:
        """Flip a display toggle by name. Returns False for an unknown name."""
        method = self.TOGGLES.get(name)
        if method is None:
            self.status_msg = f"Unknown toggle '{name}'."
            return False
        getattr(self, method)()
        return True

    # ──────────────────────────────────────────────────────────────────────────
    # State snapshot
    # ──────────────────────────────────────────────────────────────────────────

    def get_state(self) -> dict:
        """JSON-ready snapshot of everything a renderer needs for one frame."""
        p = self.progress
        state = {
            "ball": p.current_ball,
            "ball_visuals": ball_visuals(p.current_ball),
            "level": p.difficulty_level,
            "score": p.score,
            "max_balls": p.max_balls,
            "evaluated": p.evaluated,
            "pending_ball": p.pending_ball,
            "pending_level": p.pending_level,
            "snap_interval": snap_interval(p.difficulty_level),
            "legal_eis": list(legal_eis(p.difficulty_level, self.config.max_ei)),
            "selection": {
                "ei": round(self.selected_ei, 4),
                "direction": self.selected_direction.value,
                "offset": round(shooter_offset(self.selected_ei,
                                               self.selected_direction), 3),
            },
            "toggles": {
                "test_mode": self.test_mode,
                "cb_visuals": self.show_cb_visuals,
                "ob_line": self.show_ob_line,
            },
            "status": self.status_msg,
            "info": self.info_msg,
        }
        if self.target is not None:
            t = self.target
            layout = plan_layout(t.angle, t.direction, t.pocket_distance)
            shot = {
                "direction": t.direction.value if t.direction else None,
                "pocket_distance": round(t.pocket_distance, 3),
                "layout": {k: [round(float(v[0]), 3), round(float(v[1]), 3)]
                           for k, v in layout.items()},
            }
            if self.test_mode or p.evaluated:
                shot["ei"] = target_ei_of(t)
                shot["angle"] = round(t.angle, 2)
            if self.last_result is not None:
                shot["result"] = self.last_result.value
            state["target"] = shot
        return state

    def get_state_json(self) -> str:
        return json.dumps(self.get_state(), separators=(',', ':'))

    # ──────────────────────────────────────────────────────────────────────────
    # Text commands
    # ──────────────────────────────────────────────────────────────────────────

    def execute_command(self, text: str) -> None:
        """Parse a JSON command string and dispatch to handlers."""
        if not text:
            logger.debug("[CMD] execute_command: empty text")
            return
        try:
            data = json.loads(text.replace('\r', ''))
        except json.JSONDecodeError as exc:
            logger.warning("[CMD] JSON parse error: %s", exc)
            self.status_msg = f"JSON error: {exc}"
            return
        if not isinstance(data, dict):
            self.status_msg = "Command must be a JSON object."
            return

        cmd = str(data.get("cmd", "")).lower().strip()
        logger.debug("[CMD] cmd=%s", cmd)
        if cmd == "answer":
            self._cmd_answer(data)
        elif cmd == "next":
            self.start_round()
        elif cmd == "reset":
            self.reset_game()
        elif cmd == "toggle":
            self.toggle(str(data.get("name", "")))
        else:
            self.status_msg = f"Unknown cmd '{cmd}'. Use answer/next/reset/toggle."

    def _cmd_answer(self, data: dict) -> None:
        """answer: {"ei": 3, "direction": "left"} — select and evaluate."""
        try:
            ei = float(data["ei"])
            direction = Direction(str(data.get("direction", "right")).lower())
        except (KeyError, TypeError, ValueError) as exc:
            self.status_msg = f"answer: bad ei/direction ({exc})."
            return
        if not math.isfinite(ei):
            self.status_msg = "answer: ei must be a finite number."
            return
        if ei < 0:
            self.status_msg = "answer: ei must be non-negative."
            return
        self.select(ei, direction)
        self.evaluate()
