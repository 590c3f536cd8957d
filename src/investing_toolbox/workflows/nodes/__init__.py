"""Convenience re-exports for workflow nodes."""
from __future__ import annotations

from . import big_five, data_load, scoring, valuation

__all__ = [
    "big_five",
    "data_load",
    "scoring",
    "valuation",
]
