"""
Interior Point Search

The ESH strategy needs a point strictly inside the set described by the
nonlinear constraints. It is found by minimising the largest normalized
violation t over the continuous relaxation:

    min  t
    s.t. f_j(x) - U_j <= t,   L_j - f_j(x) <= t   (nonlinear constraints j)
         linear constraints, variable bounds
         t >= -1

A solution with t < 0 is strictly interior.
"""

import logging
from typing import List, Optional

import numpy as np
from scipy.optimize import minimize

from ..model.constraints import NumericConstraint
from ..model.problem import Problem

logger = logging.getLogger(__name__)

# Box used for variables without finite bounds
INTERIOR_BOUND = 1e4


def max_nonlinear_violation(constraints: List[NumericConstraint], point: np.ndarray) -> float:
    """Largest normalized value over the given constraints (-inf without constraints)."""
    value = float('-inf')
    for constraint in constraints:
        value = max(value, constraint.calculate_numeric_value(point).normalized_value)
    return value


def find_interior_point(problem: Problem, max_iterations: int = 500) -> Optional[np.ndarray]:
    """
    Search for a point with every nonlinear constraint strictly satisfied.

    Returns:
        Interior point, or None if the search ends with t >= 0
    """
    nonlinear = problem.nonlinear_constraints
    if not nonlinear:
        return None

    n = len(problem.variables)
    lower = np.clip(problem.variable_lower_bounds, -INTERIOR_BOUND, INTERIOR_BOUND)
    upper = np.clip(problem.variable_upper_bounds, -INTERIOR_BOUND, INTERIOR_BOUND)

    x0 = (lower + upper) / 2.0
    t0 = max(max_nonlinear_violation(nonlinear, x0), -1.0) + 1.0

    def objective(y):
        return y[n]

    def objective_grad(y):
        g = np.zeros(n + 1)
        g[n] = 1.0
        return g

    def side_constraint(constraint: NumericConstraint, upper_side: bool):
        def fun(y):
            value = constraint.calculate_function_value(y[:n])
            if upper_side:
                return y[n] - (value - constraint.value_rhs)
            return y[n] - (constraint.value_lhs - value)

        def jac(y):
            g = np.zeros(n + 1)
            for index, value in constraint.calculate_gradient(y[:n]).items():
                g[index] = -value if upper_side else value
            g[n] = 1.0
            return g

        return {'type': 'ineq', 'fun': fun, 'jac': jac}

    constraints = []
    for constraint in nonlinear:
        if np.isfinite(constraint.value_rhs):
            constraints.append(side_constraint(constraint, True))
        if np.isfinite(constraint.value_lhs):
            constraints.append(side_constraint(constraint, False))

    for constraint in problem.linear_constraints:
        if np.isfinite(constraint.value_rhs):
            constraints.append({
                'type': 'ineq',
                'fun': lambda y, c=constraint: c.value_rhs - c.calculate_function_value(y[:n]),
            })
        if np.isfinite(constraint.value_lhs):
            constraints.append({
                'type': 'ineq',
                'fun': lambda y, c=constraint: c.calculate_function_value(y[:n]) - c.value_lhs,
            })

    bounds = list(zip(lower, upper)) + [(-1.0, None)]

    try:
        result = minimize(
            objective,
            np.append(x0, t0),
            jac=objective_grad,
            method='SLSQP',
            bounds=bounds,
            constraints=constraints,
            options={'maxiter': max_iterations}
        )
    except (ValueError, ArithmeticError) as e:
        logger.warning(f"Interior point search failed: {e}")
        return None

    point = np.asarray(result.x[:n], dtype=np.float64)
    violation = max_nonlinear_violation(nonlinear, point)

    if violation >= 0.0:
        logger.warning(f"No interior point found (max violation {violation:.3g})")
        return None

    logger.debug(f"Interior point found with max violation {violation:.3g}")
    return point
