"""
Hyperplane Construction

Linearizations of constraints and of the objective epigraph at a point.
A hyperplane is a sparse row {variable index: coefficient} with an upper
right-hand side: sum(a_i * x_i) <= rhs.

For a constraint L <= f(x) <= U linearized at x0 with gradient g:
- upper side violated:  f(x0) + g.(x - x0) <= U
- lower side violated:  f(x0) + g.(x - x0) >= L   (stored negated)

For a convex f under an upper bound (or concave f over a lower bound) the
hyperplane never removes a feasible point.
"""

from typing import Dict, Optional, Sequence, Tuple

import numpy as np

from ..model.constraints import NumericConstraint
from ..model.objective import ObjectiveFunction

HyperplaneRow = Tuple[Dict[int, float], float]


def _dot(gradient: Dict[int, float], point: Sequence[float]) -> float:
    return sum(value * point[index] for index, value in gradient.items())


def _is_finite(gradient: Dict[int, float], value: float) -> bool:
    return np.isfinite(value) and all(np.isfinite(v) for v in gradient.values())


def create_constraint_hyperplane(constraint: NumericConstraint, point: Sequence[float]) -> Optional[HyperplaneRow]:
    """
    Linearize a constraint at a point on its more violated side.

    Returns:
        (coefficients, rhs), or None if the gradient vanishes or is not finite
    """
    value = constraint.calculate_numeric_value(point)
    gradient = constraint.calculate_gradient(point, erase_zeroes=True)

    if not gradient or not _is_finite(gradient, value.function_value):
        return None

    offset = value.function_value - _dot(gradient, point)

    if value.normalized_rhs_value >= value.normalized_lhs_value:
        return dict(gradient), constraint.value_rhs - offset

    return {i: -g for i, g in gradient.items()}, offset - constraint.value_lhs


def create_objective_hyperplane(
    objective: ObjectiveFunction,
    point: Sequence[float],
    epigraph_index: int,
) -> Optional[HyperplaneRow]:
    """
    Linearize the objective epigraph f(x) <= mu at a point.

    Returns:
        (coefficients, rhs) of f(x0) + g.(x - x0) - mu <= 0, or None
    """
    f = objective.calculate_function_value(point)
    gradient = objective.calculate_gradient(point, erase_zeroes=True)

    if not _is_finite(gradient, f):
        return None

    coefficients = dict(gradient)
    coefficients[epigraph_index] = -1.0
    return coefficients, _dot(gradient, point) - f
