"""
Trainer configuration — game modes and ECLIPSE_* environment overrides.

Mode presets decide the rack size and which visual aids a renderer shows by
default. None of these settings change selection or scoring.
"""

import logging
import os
from dataclasses import dataclass

from geometry import MAX_EI

logger = logging.getLogger(__name__)

ENV_PREFIX = "ECLIPSE_"

# mode -> (max_balls, snap_on_drag, show_cb_visuals, show_ob_line)
GAME_MODES = {
    "8-ball":  (15, True,  True,  True),
    "9-ball":  (9,  False, True,  True),
    "10-ball": (10, False, True,  False),
}
DEFAULT_MODE = "8-ball"
ALLOWED_MAX_EI = (7.0, 8.0)

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}


class ConfigError(ValueError):
    """Raised for an invalid ECLIPSE_* value."""


@dataclass(frozen=True)
class TrainerConfig:
    mode: str = DEFAULT_MODE
    max_balls: int = 15
    max_ei: float = MAX_EI
    snap_on_drag: bool = True
    show_cb_visuals: bool = True     # ghost ball + aim line
    show_ob_line: bool = True        # object ball -> pocket line
    test_mode: bool = False          # reveal target EI before evaluation
    seed: int | None = None
    log_level: str = "INFO"

    @classmethod
    def for_mode(cls, mode: str, **overrides) -> "TrainerConfig":
        """Preset for a game mode, with keyword overrides applied on top."""
        if mode not in GAME_MODES:
            raise ConfigError(f"unknown mode '{mode}', expected one of {sorted(GAME_MODES)}")
        max_balls, snap_on_drag, cb, ob = GAME_MODES[mode]
        values = dict(mode=mode, max_balls=max_balls, snap_on_drag=snap_on_drag,
                      show_cb_visuals=cb, show_ob_line=ob)
        values.update(overrides)
        return cls(**values)


def _convert_bool(name: str, raw: str) -> bool:
    value = raw.strip().lower()
    if value in _TRUE:
        return True
    if value in _FALSE:
        return False
    raise ConfigError(f"{name}: cannot convert '{raw}' to bool")


def load_config(environ=None) -> TrainerConfig:
    """Build a TrainerConfig from ECLIPSE_* variables (default: os.environ)."""
    env = os.environ if environ is None else environ

    def get(key):
        return env.get(ENV_PREFIX + key)

    mode = (get("MODE") or DEFAULT_MODE).strip().lower()
    overrides = {}

    raw = get("MAX_EI")
    if raw is not None:
        try:
            max_ei = float(raw)
        except ValueError:
            raise ConfigError(f"{ENV_PREFIX}MAX_EI: '{raw}' is not a number") from None
        if max_ei not in ALLOWED_MAX_EI:
            raise ConfigError(f"{ENV_PREFIX}MAX_EI must be one of {ALLOWED_MAX_EI}, got {raw}")
        overrides["max_ei"] = max_ei

    for key, attr in (("SNAP_ON_DRAG", "snap_on_drag"),
                      ("SHOW_CB_VISUALS", "show_cb_visuals"),
                      ("SHOW_OB_LINE", "show_ob_line"),
                      ("TEST_MODE", "test_mode")):
        raw = get(key)
        if raw is not None:
            overrides[attr] = _convert_bool(ENV_PREFIX + key, raw)

    raw = get("SEED")
    if raw is not None:
        try:
            overrides["seed"] = int(raw)
        except ValueError:
            raise ConfigError(f"{ENV_PREFIX}SEED: '{raw}' is not an integer") from None

    raw = get("LOG_LEVEL")
    if raw is not None:
        level = raw.strip().upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ConfigError(f"{ENV_PREFIX}LOG_LEVEL: unknown level '{raw}'")
        overrides["log_level"] = level

    config = TrainerConfig.for_mode(mode, **overrides)
    logger.debug("[CONFIG] %s", config)
    return config


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
