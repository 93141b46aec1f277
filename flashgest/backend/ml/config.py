import copy
import os
from pathlib import Path
from typing import Optional

import yaml

CONFIG_PATH = os.getenv("FLASHGEST_GESTURE_CONFIG", "").strip()

DEFAULTS = {
    "camera": {"index": 0, "width": 640, "height": 480},
    "detector": {
        "num_hands": 1,
        "min_confidence": 0.7,
        "min_hand_detection_confidence": 0.5,
        "min_hand_presence_confidence": 0.5,
        "min_tracking_confidence": 0.5,
    },
    "classifier": {"margin_px": 30},
    "stream": {"cooldown_s": 1.8, "frame_interval_ms": 33},
    "review": {"display_delay_s": 0.6},
}


def _merge(base: dict, override: dict) -> dict:
    out = copy.deepcopy(base)
    for key, value in (override or {}).items():
        if isinstance(value, dict) and isinstance(out.get(key), dict):
            out[key] = _merge(out[key], value)
        else:
            out[key] = value
    return out


def load_config(path: Optional[str] = None) -> dict:
    """
    Настройки жестов: DEFAULTS, поверх них yaml из path, FLASHGEST_GESTURE_CONFIG
    или config.yml рядом с модулем (первое заданное).
    Недостающие ключи берутся из DEFAULTS.
    """
    explicit = path or CONFIG_PATH
    if explicit:
        config_path = Path(explicit).expanduser().resolve()
        if not config_path.exists():
            raise FileNotFoundError(f"gesture config not found: {config_path}")
    else:
        config_path = Path(__file__).resolve().parent / "config.yml"
        if not config_path.exists():
            return copy.deepcopy(DEFAULTS)

    with open(config_path, "r", encoding="utf-8") as f:
        return _merge(DEFAULTS, yaml.safe_load(f) or {})
