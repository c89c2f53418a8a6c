"""
numeric.py — Rounding helpers shared by the engine.

All rounding is half-up: ties go away from zero (2.5 -> 3, 0.125 -> 0.13,
-0.125 -> -0.13), never to the nearest even digit.
"""

import math
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

import numpy as np


def round_half_up(value: float) -> int:
    """Round a non-negative value to an integer, .5 going up (2.5 -> 3, not 2)."""
    return int(math.floor(value + 0.5))


def round_to(value: float, digits: int = 2) -> float:
    """Round to `digits` decimals with ties away from zero."""
    quantum = Decimal(1).scaleb(-digits)
    return float(Decimal(float(value)).quantize(quantum, rounding=ROUND_HALF_UP))


def safe_float(val, digits: int = 2) -> Optional[float]:
    """Convert to a rounded float or return None."""
    try:
        v = float(val)
        return None if np.isnan(v) or np.isinf(v) else round_to(v, digits)
    except (TypeError, ValueError):
        return None
