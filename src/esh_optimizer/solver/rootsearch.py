"""
Root Search

Finds where a continuous function crosses zero on the segment between an
interior point (function value <= 0) and an exterior point (value > 0).
Used by the ESH cut strategy to move the linearization point to the
boundary of the nonlinear feasible set, and by the primal linesearch.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Optional

import numpy as np
from scipy.optimize import brentq

logger = logging.getLogger(__name__)


@dataclass
class RootSearchResult:
    """
    Bracket around the boundary.

    Attributes:
        inner_point: Point on the interior side (value <= 0)
        outer_point: Point on the exterior side (value > 0)
        inner_value: Function value at the inner point
        outer_value: Function value at the outer point
    """
    inner_point: np.ndarray
    outer_point: np.ndarray
    inner_value: float
    outer_value: float


class RootSearch:
    """
    Zero crossing of f on the segment x(t) = interior + t * (exterior - interior).

    Args:
        max_iterations: Maximal brentq iterations
        tolerance: Segment parameter tolerance
    """

    def __init__(self, max_iterations: int = 100, tolerance: float = 1e-10):
        self.max_iterations = max_iterations
        self.tolerance = tolerance

    def find_zero(
        self,
        function: Callable[[np.ndarray], float],
        interior: np.ndarray,
        exterior: np.ndarray,
    ) -> Optional[RootSearchResult]:
        """
        Bracket the boundary between an interior and an exterior point.

        Returns:
            RootSearchResult, or None if the endpoints do not bracket a zero
        """
        interior = np.asarray(interior, dtype=np.float64)
        exterior = np.asarray(exterior, dtype=np.float64)
        direction = exterior - interior

        def along(t: float) -> float:
            return float(function(interior + t * direction))

        value_in = along(0.0)
        value_out = along(1.0)

        if not (np.isfinite(value_in) and np.isfinite(value_out)):
            logger.warning("Root search endpoints are not finite")
            return None
        if value_in > 0.0 or value_out <= 0.0:
            return None

        try:
            root = brentq(along, 0.0, 1.0, xtol=self.tolerance, maxiter=self.max_iterations)
        except (ValueError, RuntimeError) as e:
            logger.warning(f"Root search failed: {e}")
            return None

        # Widen the bracket until each side has the right sign
        step = max(self.tolerance, 1e-12)
        t_in, t_out = root, root
        f_in, f_out = along(t_in), along(t_out)
        while f_in > 0.0 and t_in > 0.0:
            t_in = max(0.0, t_in - step)
            f_in = along(t_in)
            step *= 2.0

        step = max(self.tolerance, 1e-12)
        while f_out <= 0.0 and t_out < 1.0:
            t_out = min(1.0, t_out + step)
            f_out = along(t_out)
            step *= 2.0

        return RootSearchResult(
            inner_point=interior + t_in * direction,
            outer_point=interior + t_out * direction,
            inner_value=f_in,
            outer_value=f_out,
        )
