"""Rounding helpers shared by the scoring and valuation services."""
from __future__ import annotations

import math


def round_half_up(value: float) -> int:
    """Round to the nearest integer with .5 going up (2.5 -> 3, -2.5 -> -2)."""
    return int(math.floor(value + 0.5))


def round_money(value: float) -> float:
    """Round a monetary or percentage value to two decimals, half up."""
    return math.floor(value * 100 + 0.5) / 100
