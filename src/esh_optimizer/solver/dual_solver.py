"""
Dual Problem Backend

Maintains the polyhedral outer approximation of the problem and solves it
with HiGHS through scipy.optimize.milp:

    min  c.x (+ constant)      or      min mu   (nonlinear objective)
    s.t. linear constraints of the problem
         hyperplanes  a.x <= b           (linearizations of nonlinear parts)
         integer cuts                     (exclude tried binary assignments)
         objective cutoff                 (primal reduction cut)
         lower <= x <= upper, some x integer unless relaxed

The optimal value is a lower bound on the problem's optimum when every
hyperplane is valid (convex case).
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

import numpy as np
from scipy.optimize import Bounds, LinearConstraint, milp

from ..model.problem import Problem
from .environment import DualSolutionStatus

logger = logging.getLogger(__name__)

# Replaces infinite variable bounds so that every dual problem is bounded
INFINITY_BOUND = 1e9


@dataclass
class DualRow:
    """A linear row lo <= a.x <= hi of the dual problem."""
    coefficients: Dict[int, float]
    lo: float
    hi: float
    kind: str = "linear"     # linear, hyperplane, integer_cut
    tag: int = -1            # constraint index for hyperplanes


@dataclass
class DualSolveResult:
    status: DualSolutionStatus
    objective_value: float = float('nan')
    points: List[np.ndarray] = field(default_factory=list)
    dual_bound: float = float('-inf')


class MILPDualSolver:
    """
    Outer approximation solved with scipy.optimize.milp.

    Args:
        discrete: Keep integrality restrictions (False gives an LP)
        time_limit: Time limit per solve in seconds
    """

    def __init__(self, discrete: bool = True, time_limit: float = 300.0):
        self.discrete = discrete
        self.time_limit = time_limit

        self.num_variables = 0
        self.num_problem_variables = 0
        self.epigraph_index: Optional[int] = None
        self.objective_coefficients = np.zeros(0)
        self.objective_constant = 0.0
        self.lower = np.zeros(0)
        self.upper = np.zeros(0)
        self.integrality = np.zeros(0)
        self.rows: List[DualRow] = []
        self.cutoff: Optional[float] = None
        self.relaxed = False

    # Construction

    def create_problem(self, problem: Problem) -> None:
        """Copy variables, linear constraints and the objective of a minimisation problem."""
        n = len(problem.variables)
        objective = problem.objective_function
        use_epigraph = objective.properties.is_nonlinear

        self.num_problem_variables = n
        self.num_variables = n + (1 if use_epigraph else 0)
        self.epigraph_index = n if use_epigraph else None

        self.lower = np.clip(problem.variable_lower_bounds, -INFINITY_BOUND, INFINITY_BOUND)
        self.upper = np.clip(problem.variable_upper_bounds, -INFINITY_BOUND, INFINITY_BOUND)
        self.integrality = np.array([1 if v.is_discrete else 0 for v in problem.variables])

        self.objective_coefficients = np.zeros(self.num_variables)
        self.objective_constant = 0.0

        if use_epigraph:
            bound = objective.calculate_interval(problem.get_variable_bounds())
            mu_lower = bound.lo if np.isfinite(bound.lo) else -INFINITY_BOUND
            mu_upper = bound.hi if np.isfinite(bound.hi) else INFINITY_BOUND
            self.lower = np.append(self.lower, max(mu_lower, -INFINITY_BOUND))
            self.upper = np.append(self.upper, min(mu_upper, INFINITY_BOUND))
            self.integrality = np.append(self.integrality, 0)
            self.objective_coefficients[n] = 1.0
        else:
            for term in objective.linear_terms:
                self.objective_coefficients[term.variable.index] += term.coefficient
            self.objective_constant = objective.constant

        self.rows = []
        for constraint in problem.linear_constraints:
            coefficients: Dict[int, float] = {}
            for term in constraint.linear_terms:
                coefficients[term.variable.index] = coefficients.get(term.variable.index, 0.0) + term.coefficient
            if not coefficients:
                continue
            self.rows.append(DualRow(
                coefficients,
                constraint.value_lhs - constraint.constant,
                constraint.value_rhs - constraint.constant,
                "linear",
                constraint.index,
            ))

        logger.debug(f"Dual problem created: {self.num_variables} variables, {len(self.rows)} linear rows")

    def set_relaxed(self, relaxed: bool) -> None:
        self.relaxed = relaxed

    @property
    def is_relaxed(self) -> bool:
        """True during the continuous relaxation phase of a discrete dual problem."""
        return self.relaxed and self.discrete

    @property
    def uses_integrality(self) -> bool:
        return self.discrete and not self.relaxed

    def add_hyperplane(self, coefficients: Dict[int, float], rhs: float, tag: int = -1) -> bool:
        if not coefficients or not np.isfinite(rhs):
            return False
        self.rows.append(DualRow(dict(coefficients), -np.inf, rhs, "hyperplane", tag))
        return True

    def add_integer_cut(self, assignment: Dict[int, int]) -> bool:
        """
        Exclude one binary assignment:
            sum_{x_i = 1} (1 - x_i) + sum_{x_i = 0} x_i >= 1
        """
        if not assignment:
            return False

        coefficients: Dict[int, float] = {}
        ones = 0
        for index, value in assignment.items():
            if value >= 1:
                coefficients[index] = -1.0
                ones += 1
            else:
                coefficients[index] = 1.0

        self.rows.append(DualRow(coefficients, 1.0 - ones, np.inf, "integer_cut"))
        return True

    def remove_hyperplanes(self, tags: List[int]) -> int:
        """Remove every hyperplane generated for the given constraint indices."""
        tagged = set(tags)
        before = len(self.rows)
        self.rows = [r for r in self.rows if not (r.kind == "hyperplane" and r.tag in tagged)]
        return before - len(self.rows)

    @property
    def number_of_hyperplanes(self) -> int:
        return sum(1 for r in self.rows if r.kind == "hyperplane")

    def set_cutoff(self, value: float) -> None:
        self.cutoff = value

    def clear_cutoff(self) -> None:
        self.cutoff = None

    def update_variable_bounds(self, index: int, lower: float, upper: float) -> None:
        self.lower[index] = max(lower, -INFINITY_BOUND)
        self.upper[index] = min(upper, INFINITY_BOUND)

    # Presolve

    def presolve(self, rounds: int = 3, tolerance: float = 1e-9) -> int:
        """
        Tighten variable bounds with the problem's linear rows.

        For a row lo <= sum a_i x_i <= hi each variable is bounded by the
        row bound minus the extreme activity of the remaining variables.

        Returns:
            Number of bound changes
        """
        changes = 0
        linear_rows = [r for r in self.rows if r.kind == "linear"]

        for _ in range(rounds):
            changed = False
            for row in linear_rows:
                for index, lo, hi in self._row_implied_bounds(row):
                    if self.integrality[index] and self.uses_integrality:
                        lo = np.ceil(lo - tolerance)
                        hi = np.floor(hi + tolerance)
                    if lo > self.lower[index] + tolerance:
                        self.lower[index] = lo
                        changes += 1
                        changed = True
                    if hi < self.upper[index] - tolerance:
                        self.upper[index] = hi
                        changes += 1
                        changed = True
            if not changed:
                break

        return changes

    def _row_implied_bounds(self, row: DualRow) -> List[Tuple[int, float, float]]:
        mins, maxs = {}, {}
        for index, a in row.coefficients.items():
            lo, hi = self.lower[index], self.upper[index]
            mins[index] = a * lo if a > 0 else a * hi
            maxs[index] = a * hi if a > 0 else a * lo

        finite_min = sum(v for v in mins.values() if np.isfinite(v))
        finite_max = sum(v for v in maxs.values() if np.isfinite(v))
        infinite_min = sum(1 for v in mins.values() if not np.isfinite(v))
        infinite_max = sum(1 for v in maxs.values() if not np.isfinite(v))

        def residual(finite_sum, infinite_count, own, sign):
            if np.isfinite(own):
                return finite_sum - own if infinite_count == 0 else sign * np.inf
            return finite_sum if infinite_count == 1 else sign * np.inf

        implied = []
        for index, a in row.coefficients.items():
            if a == 0.0:
                continue
            rest_min = residual(finite_min, infinite_min, mins[index], -1.0)
            rest_max = residual(finite_max, infinite_max, maxs[index], 1.0)

            # a * x <= hi - rest_min  and  a * x >= lo - rest_max
            upper_activity = row.hi - rest_min
            lower_activity = row.lo - rest_max

            if a > 0:
                implied.append((index, lower_activity / a, upper_activity / a))
            else:
                implied.append((index, upper_activity / a, lower_activity / a))

        return [(i, lo if np.isfinite(lo) else -np.inf, hi if np.isfinite(hi) else np.inf)
                for i, lo, hi in implied]

    # Solve

    def _constraint_matrix(self) -> Optional[LinearConstraint]:
        rows = list(self.rows)
        if self.cutoff is not None:
            if self.epigraph_index is not None:
                rows.append(DualRow({self.epigraph_index: 1.0}, -np.inf, self.cutoff, "cutoff"))
            else:
                coefficients = {i: c for i, c in enumerate(self.objective_coefficients) if c != 0.0}
                if coefficients:
                    rows.append(DualRow(coefficients, -np.inf, self.cutoff - self.objective_constant, "cutoff"))

        if not rows:
            return None

        A = np.zeros((len(rows), self.num_variables))
        lo = np.empty(len(rows))
        hi = np.empty(len(rows))
        for k, row in enumerate(rows):
            for index, value in row.coefficients.items():
                A[k, index] += value
            lo[k] = row.lo
            hi[k] = row.hi

        return LinearConstraint(A, lo, hi)

    def solve(self) -> DualSolveResult:
        """Solve the current outer approximation."""
        if np.any(self.lower > self.upper):
            return DualSolveResult(DualSolutionStatus.INFEASIBLE)

        integrality = self.integrality if self.uses_integrality else np.zeros(self.num_variables)
        constraints = self._constraint_matrix()

        try:
            result = milp(
                c=self.objective_coefficients,
                integrality=integrality,
                bounds=Bounds(self.lower, self.upper),
                constraints=constraints,
                options={"time_limit": self.time_limit, "disp": False, "mip_rel_gap": 1e-9},
            )
        except ValueError as e:
            logger.warning(f"Dual solver failed: {e}")
            return DualSolveResult(DualSolutionStatus.ERROR)

        if result.status == 2:
            return DualSolveResult(DualSolutionStatus.INFEASIBLE)
        if result.status == 3:
            return DualSolveResult(DualSolutionStatus.UNBOUNDED)
        if result.x is None:
            status = DualSolutionStatus.LIMIT if result.status == 1 else DualSolutionStatus.ERROR
            return DualSolveResult(status)

        status = DualSolutionStatus.OPTIMAL if result.status == 0 else DualSolutionStatus.FEASIBLE
        objective_value = float(result.fun) + self.objective_constant

        dual_bound = objective_value
        if status == DualSolutionStatus.FEASIBLE:
            bound = getattr(result, "mip_dual_bound", None)
            dual_bound = float(bound) + self.objective_constant if bound is not None else float('-inf')

        return DualSolveResult(
            status=status,
            objective_value=objective_value,
            points=[np.asarray(result.x, dtype=np.float64)],
            dual_bound=dual_bound,
        )

    def split_point(self, point: np.ndarray) -> Tuple[np.ndarray, Optional[float]]:
        """Separate problem variables from the epigraph variable."""
        x = point[:self.num_problem_variables].copy()
        mu = float(point[self.epigraph_index]) if self.epigraph_index is not None else None
        return x, mu
