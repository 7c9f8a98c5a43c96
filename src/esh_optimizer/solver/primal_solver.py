"""
Primal Backends

- NLPPrimalSolver: local NLP solve with SLSQP, optionally with the
  discrete variables fixed (fixed-integer NLP)
- check_primal_candidate: rounds discrete values, checks bounds, integrality
  and constraints, and stores accepted points as primal solutions
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional

import numpy as np
from scipy.optimize import minimize

from ..model.constraints import ConstraintSignType
from ..model.problem import Problem
from .environment import Environment, PrimalSolution, PrimalSolutionSource

logger = logging.getLogger(__name__)


@dataclass
class NLPResult:
    """
    Result of a local NLP solve.

    Attributes:
        success: Backend reported convergence
        point: Full variable vector (fixed values included)
        objective_value: Objective at the point
        message: Backend message
    """
    success: bool
    point: Optional[np.ndarray]
    objective_value: float
    message: str = ""


def _dense(gradient: Dict[int, float], free: np.ndarray) -> np.ndarray:
    return np.array([gradient.get(int(i), 0.0) for i in free])


class NLPPrimalSolver:
    """
    Local NLP solver built on scipy.optimize.minimize (SLSQP).

    Args:
        max_iterations: Iteration limit passed to SLSQP
    """

    def __init__(self, max_iterations: int = 200):
        self.max_iterations = max_iterations

    def solve(
        self,
        problem: Problem,
        start: np.ndarray,
        fixed: Optional[Dict[int, float]] = None,
    ) -> NLPResult:
        """
        Solve the continuous problem from a start point.

        Args:
            problem: Minimisation problem
            start: Starting point (full variable vector)
            fixed: Variable index -> value held constant

        Returns:
            NLPResult
        """
        fixed = fixed or {}
        template = np.array(start, dtype=np.float64)
        for index, value in fixed.items():
            template[index] = value

        free = np.array([v.index for v in problem.variables if v.index not in fixed], dtype=int)
        if len(free) == 0:
            value = problem.objective_function.calculate_function_value(template)
            return NLPResult(problem.is_constraint_feasible(template), template, value)

        def expand(z: np.ndarray) -> np.ndarray:
            x = template.copy()
            x[free] = z
            return x

        objective = problem.objective_function

        def f(z):
            return objective.calculate_function_value(expand(z))

        def grad_f(z):
            return _dense(objective.calculate_gradient(expand(z)), free)

        constraints = self._constraints(problem, expand, free)

        lower = problem.variable_lower_bounds[free]
        upper = problem.variable_upper_bounds[free]
        bounds = [(lo if np.isfinite(lo) else None, hi if np.isfinite(hi) else None)
                  for lo, hi in zip(lower, upper)]
        z0 = np.clip(template[free], lower, upper)

        try:
            result = minimize(
                f,
                z0,
                jac=grad_f,
                method='SLSQP',
                bounds=bounds,
                constraints=constraints,
                options={'maxiter': self.max_iterations}
            )
        except (ValueError, ArithmeticError) as e:
            logger.warning(f"NLP solve failed: {e}")
            return NLPResult(False, None, float('inf'), str(e))

        point = expand(result.x)
        return NLPResult(bool(result.success), point, float(result.fun), str(result.message))

    def _constraints(self, problem: Problem, expand, free: np.ndarray) -> List[dict]:
        """SLSQP constraint dicts; 'ineq' means fun(z) >= 0."""
        constraints = []
        for constraint in problem.numeric_constraints:
            sign = constraint.properties.sign_type

            if sign == ConstraintSignType.EQUALITY:
                constraints.append({
                    'type': 'eq',
                    'fun': lambda z, c=constraint: c.calculate_function_value(expand(z)) - c.value_rhs,
                    'jac': lambda z, c=constraint: _dense(c.calculate_gradient(expand(z)), free),
                })
                continue

            if np.isfinite(constraint.value_rhs):
                constraints.append({
                    'type': 'ineq',
                    'fun': lambda z, c=constraint: c.value_rhs - c.calculate_function_value(expand(z)),
                    'jac': lambda z, c=constraint: -_dense(c.calculate_gradient(expand(z)), free),
                })
            if np.isfinite(constraint.value_lhs):
                constraints.append({
                    'type': 'ineq',
                    'fun': lambda z, c=constraint: c.calculate_function_value(expand(z)) - c.value_lhs,
                    'jac': lambda z, c=constraint: _dense(c.calculate_gradient(expand(z)), free),
                })

        return constraints


def round_discrete(problem: Problem, point: np.ndarray, tolerance: float) -> np.ndarray:
    """Round discrete variables that are within the tolerance of an integer."""
    x = np.array(point, dtype=np.float64)
    for variable in problem.discrete_variables:
        value = x[variable.index]
        if abs(value - round(value)) <= tolerance:
            x[variable.index] = float(round(value))
    return x


def check_primal_candidate(
    env: Environment,
    point: np.ndarray,
    source: PrimalSolutionSource,
) -> Optional[PrimalSolution]:
    """
    Accept a candidate point as a primal solution if it is feasible.

    Returns:
        The stored PrimalSolution, or None if the point was rejected
    """
    problem = env.reformulated_problem
    integer_tolerance = env.settings.get_double_setting("Tolerance.Integer", "Primal")
    constraint_tolerance = env.settings.get_double_setting("Tolerance.Constraint", "Primal")

    x = round_discrete(problem, point, integer_tolerance)

    if not problem.is_feasible(x, constraint_tolerance, integer_tolerance):
        return None

    maximal = problem.get_max_numeric_constraint_value(x)
    solution = PrimalSolution(
        point=x,
        objective_value=problem.objective_function.calculate_function_value(x),
        source=source,
        iteration=env.statistics.iterations,
        max_deviation=maximal.normalized_value if maximal is not None else 0.0,
    )

    if env.results.add_primal_solution(solution):
        env.statistics.iteration_last_primal_bound_update = env.statistics.iterations
        env.statistics.reduction_cuts_without_effect = 0
        logger.info(
            f"New primal bound {solution.objective_value * env.objective_sign:.6g} "
            f"from {source.value}"
        )

    return solution
