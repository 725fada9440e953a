from typing import Any


def safe_float(value: Any, default: float = 0.0) -> float:
    """Numeric provider field as float; missing or garbled values give `default`."""
    if value is None:
        return float(default)
    try:
        return float(value)
    except (TypeError, ValueError):
        return float(default)


def clamp(value: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, value))
