"""
Interval Arithmetic

Closed intervals [lo, hi] used for bound evaluation of terms, expressions
and constraints over a variable box.

Every elementary operation widens its result outward by ROUND_EPS so that
the true range is contained in the returned interval. An interval with
lo > hi is empty (e.g. the logarithm of a non-positive interval).
"""

from dataclasses import dataclass
from typing import List, Sequence, Union

import numpy as np


# Outward widening applied by every operation
ROUND_EPS = 1e-15

IntervalVector = List["Interval"]


@dataclass
class Interval:
    """
    A closed interval [lo, hi].

    Attributes:
        lo: Lower end (may be -inf)
        hi: Upper end (may be +inf)
    """
    lo: float
    hi: float

    def __post_init__(self):
        self.lo = float(self.lo)
        self.hi = float(self.hi)
        if self.lo > self.hi and not (self.lo == np.inf and self.hi == -np.inf):
            raise ValueError(f"Invalid interval: [{self.lo}, {self.hi}]")

    @classmethod
    def point(cls, x: float) -> 'Interval':
        """Create a degenerate interval [x, x]."""
        return cls(x, x)

    @classmethod
    def empty(cls) -> 'Interval':
        return cls(np.inf, -np.inf)

    @classmethod
    def entire(cls) -> 'Interval':
        return cls(-np.inf, np.inf)

    @staticmethod
    def _coerce(other: Union['Interval', float, int]) -> 'Interval':
        if isinstance(other, Interval):
            return other
        return Interval.point(float(other))

    @property
    def is_empty(self) -> bool:
        return self.lo > self.hi

    @property
    def width(self) -> float:
        if self.is_empty:
            return 0.0
        return self.hi - self.lo

    @property
    def midpoint(self) -> float:
        if self.is_empty:
            return float('nan')
        return (self.lo + self.hi) / 2.0

    def contains(self, x: float) -> bool:
        return self.lo <= x <= self.hi

    def contains_zero(self) -> bool:
        return self.lo <= 0.0 <= self.hi

    def intersect(self, other: 'Interval') -> 'Interval':
        lo = max(self.lo, other.lo)
        hi = min(self.hi, other.hi)
        if lo > hi:
            return Interval.empty()
        return Interval(lo, hi)

    def hull(self, other: 'Interval') -> 'Interval':
        """Smallest interval containing both operands."""
        if self.is_empty:
            return other
        if other.is_empty:
            return self
        return Interval(min(self.lo, other.lo), max(self.hi, other.hi))

    def _widen(self, lo: float, hi: float) -> 'Interval':
        return Interval(lo - ROUND_EPS, hi + ROUND_EPS)

    # Arithmetic

    def __neg__(self) -> 'Interval':
        if self.is_empty:
            return self
        return Interval(-self.hi, -self.lo)

    def __add__(self, other) -> 'Interval':
        other = self._coerce(other)
        if self.is_empty or other.is_empty:
            return Interval.empty()
        return self._widen(self.lo + other.lo, self.hi + other.hi)

    def __radd__(self, other) -> 'Interval':
        return self.__add__(other)

    def __sub__(self, other) -> 'Interval':
        other = self._coerce(other)
        if self.is_empty or other.is_empty:
            return Interval.empty()
        return self._widen(self.lo - other.hi, self.hi - other.lo)

    def __rsub__(self, other) -> 'Interval':
        return self._coerce(other).__sub__(self)

    def __mul__(self, other) -> 'Interval':
        other = self._coerce(other)
        if self.is_empty or other.is_empty:
            return Interval.empty()

        # 0 * inf is taken as 0 so that a zero factor stays finite
        products = []
        for a in (self.lo, self.hi):
            for b in (other.lo, other.hi):
                products.append(0.0 if a == 0.0 or b == 0.0 else a * b)
        return self._widen(min(products), max(products))

    def __rmul__(self, other) -> 'Interval':
        return self.__mul__(other)

    def __truediv__(self, other) -> 'Interval':
        return self * self._coerce(other).invert()

    def __rtruediv__(self, other) -> 'Interval':
        return self._coerce(other) * self.invert()

    def __pow__(self, exponent: Union[int, float, 'Interval']) -> 'Interval':
        if isinstance(exponent, Interval):
            if exponent.lo == exponent.hi:
                return self.__pow__(exponent.lo)
            return self._pow_interval(exponent)

        exponent = float(exponent)
        if exponent == int(exponent):
            return self._pow_int(int(exponent))
        return self._pow_real(exponent)

    def invert(self) -> 'Interval':
        """Reciprocal 1/x."""
        if self.is_empty:
            return self
        if self.lo == 0.0 and self.hi == 0.0:
            return Interval.empty()
        if self.lo > 0.0 or self.hi < 0.0:
            return self._widen(1.0 / self.hi, 1.0 / self.lo)
        if self.lo == 0.0:
            return Interval(1.0 / self.hi - ROUND_EPS, np.inf)
        if self.hi == 0.0:
            return Interval(-np.inf, 1.0 / self.lo + ROUND_EPS)
        return Interval.entire()

    def _pow_int(self, n: int) -> 'Interval':
        if self.is_empty:
            return self
        if n == 0:
            return Interval.point(1.0)
        if n == 1:
            return Interval(self.lo, self.hi)
        if n < 0:
            return self._pow_int(-n).invert()
        if n % 2 == 0:
            if self.lo >= 0.0:
                return self._widen(self.lo ** n, self.hi ** n)
            if self.hi <= 0.0:
                return self._widen(self.hi ** n, self.lo ** n)
            return Interval(0.0, max(self.lo ** n, self.hi ** n) + ROUND_EPS)
        return self._widen(self.lo ** n, self.hi ** n)

    def _pow_real(self, p: float) -> 'Interval':
        """Non-integer power, defined on the non-negative part only."""
        domain = self.intersect(Interval(0.0, np.inf))
        if domain.is_empty:
            return Interval.empty()
        if p > 0:
            return self._widen(domain.lo ** p, domain.hi ** p)
        if domain.lo == 0.0:
            return Interval(domain.hi ** p - ROUND_EPS, np.inf)
        return self._widen(domain.hi ** p, domain.lo ** p)

    def _pow_interval(self, p: 'Interval') -> 'Interval':
        """General power x^y = exp(y * log(x))."""
        return (p * self.log()).exp()

    # Elementary functions

    def square(self) -> 'Interval':
        return self._pow_int(2)

    def abs(self) -> 'Interval':
        if self.lo >= 0.0:
            return Interval(self.lo, self.hi)
        if self.hi <= 0.0:
            return Interval(-self.hi, -self.lo)
        return Interval(0.0, max(-self.lo, self.hi))

    def sqrt(self) -> 'Interval':
        domain = self.intersect(Interval(0.0, np.inf))
        if domain.is_empty:
            return domain
        return Interval(max(np.sqrt(domain.lo) - ROUND_EPS, 0.0), np.sqrt(domain.hi) + ROUND_EPS)

    def exp(self) -> 'Interval':
        if self.is_empty:
            return self
        return Interval(max(np.exp(self.lo) - ROUND_EPS, 0.0), np.exp(self.hi) + ROUND_EPS)

    def log(self) -> 'Interval':
        if self.is_empty or self.hi <= 0.0:
            return Interval.empty()
        lo = -np.inf if self.lo <= 0.0 else np.log(self.lo) - ROUND_EPS
        return Interval(lo, np.log(self.hi) + ROUND_EPS)

    def sin(self) -> 'Interval':
        if self.is_empty:
            return self
        if not np.isfinite(self.width) or self.width >= 2 * np.pi:
            return Interval(-1.0, 1.0)

        lo = self.lo % (2 * np.pi)
        hi = lo + self.width
        values = [np.sin(lo), np.sin(hi)]

        # Extrema at pi/2 + 2k*pi and 3*pi/2 + 2k*pi
        for peak in (np.pi / 2, np.pi / 2 + 2 * np.pi):
            if lo <= peak <= hi:
                values.append(1.0)
        for trough in (3 * np.pi / 2, 3 * np.pi / 2 + 2 * np.pi):
            if lo <= trough <= hi:
                values.append(-1.0)

        return Interval(max(min(values) - ROUND_EPS, -1.0), min(max(values) + ROUND_EPS, 1.0))

    def cos(self) -> 'Interval':
        return (self + np.pi / 2).sin()

    def tan(self) -> 'Interval':
        if self.is_empty:
            return self
        if not np.isfinite(self.width) or self.width >= np.pi:
            return Interval.entire()

        # Pole at pi/2 + k*pi
        lo = (self.lo + np.pi / 2) % np.pi
        if lo + self.width >= np.pi:
            return Interval.entire()
        return self._widen(np.tan(self.lo), np.tan(self.hi))

    def arcsin(self) -> 'Interval':
        domain = self.intersect(Interval(-1.0, 1.0))
        if domain.is_empty:
            return domain
        return self._widen(np.arcsin(domain.lo), np.arcsin(domain.hi))

    def arccos(self) -> 'Interval':
        domain = self.intersect(Interval(-1.0, 1.0))
        if domain.is_empty:
            return domain
        return self._widen(np.arccos(domain.hi), np.arccos(domain.lo))

    def arctan(self) -> 'Interval':
        if self.is_empty:
            return self
        return self._widen(np.arctan(self.lo), np.arctan(self.hi))

    def __repr__(self) -> str:
        return f"[{self.lo:.6g}, {self.hi:.6g}]"


def interval_vector(lower: Sequence[float], upper: Sequence[float]) -> IntervalVector:
    """Build an interval vector from lower and upper bound arrays."""
    if len(lower) != len(upper):
        raise ValueError("Lower and upper bounds must have same length")
    return [Interval(lo, hi) for lo, hi in zip(lower, upper)]
