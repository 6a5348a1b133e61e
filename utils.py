from __future__ import annotations

import math
import os


def clamp(value: float, lo: float, hi: float) -> float:
    return min(max(value, lo), hi)


def env_flag(name: str) -> bool:
    return os.environ.get(name, "").strip().lower() in ("1", "true", "yes", "on")


def safe_float(value, default: float = 0.0) -> float:
    try:
        result = float(value)
    except (TypeError, ValueError):
        return default
    if math.isnan(result) or math.isinf(result):
        return default
    return result


def round_to_precision(value: float, precision: int) -> float:
    # Half-up like the display code expects, not banker's rounding.
    factor = 10 ** precision
    return math.floor(value * factor + 0.5) / factor
