"""
Bounds Module

Interval enclosures used to bound terms, expressions and constraints over
the variable box.
"""

from .interval import (
    Interval,
    IntervalVector,
    interval_vector,
    ROUND_EPS,
)

__all__ = [
    'Interval',
    'IntervalVector',
    'interval_vector',
    'ROUND_EPS',
]
