"""
Solver Environment

Shared state handed to every task:
- Environment: problem, settings, results, timing and solver backends
- Results: bounds, primal solutions, iterations and waiting lists
- Iteration: record of one dual iteration
- SolutionStatistics: counters read by the termination checks

All bounds refer to the reformulated (minimisation) problem. The solver
restores the original objective sense when reporting.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple

import numpy as np

from ..model.problem import Problem
from ..settings import Settings
from ..timing import Timing


class TerminationReason(Enum):
    """Why the solve stopped."""
    NONE = "none"
    ABSOLUTE_GAP = "absolute_gap"
    RELATIVE_GAP = "relative_gap"
    ITERATION_LIMIT = "iteration_limit"
    TIME_LIMIT = "time_limit"
    USER_ABORT = "user_abort"
    CONSTRAINT_TOLERANCE = "constraint_tolerance"
    DUAL_STAGNATION = "dual_stagnation"
    REDUCTION_CUT_LIMIT = "reduction_cut_limit"
    FEASIBLE_NOT_PROVEN = "feasible_not_proven"
    INFEASIBLE = "infeasible"
    UNBOUNDED = "unbounded"
    ERROR = "error"


class DualSolutionStatus(Enum):
    """Outcome of one dual problem solve."""
    NOT_SOLVED = "not_solved"
    OPTIMAL = "optimal"
    FEASIBLE = "feasible"       # Limit reached with an incumbent
    INFEASIBLE = "infeasible"
    UNBOUNDED = "unbounded"
    LIMIT = "limit"             # Limit reached without an incumbent
    ERROR = "error"


class PrimalSolutionSource(Enum):
    DUAL_SOLUTION_POOL = "dual_solution_pool"
    LINESEARCH = "linesearch"
    FIXED_NLP = "fixed_nlp"
    INTERIOR_POINT = "interior_point"


@dataclass
class PrimalSolution:
    """
    A feasible point of the original problem.

    Attributes:
        point: Variable values
        objective_value: Objective of the minimisation form
        source: Where the point came from
        iteration: Iteration in which it was found
        max_deviation: Largest constraint normalized value at the point
    """
    point: np.ndarray
    objective_value: float
    source: PrimalSolutionSource
    iteration: int
    max_deviation: float = 0.0


@dataclass
class PrimalCandidate:
    point: np.ndarray
    source: PrimalSolutionSource
    iteration: int


@dataclass
class Hyperplane:
    """
    A pending linearization waiting to be added to the dual problem.

    Attributes:
        constraint_index: Constraint to linearize, or -1 for the objective
        point: Linearization point (problem variables only)
        source: Selection method that produced it ("ESH", "ECP", "objective")
    """
    constraint_index: int
    point: np.ndarray
    source: str

    @property
    def is_objective(self) -> bool:
        return self.constraint_index < 0


@dataclass
class Iteration:
    """
    Record of one dual iteration.

    Attributes:
        number: 1-based iteration number
        is_relaxed: Discrete restrictions were dropped
        solution_status: Status returned by the dual backend
        objective_value: Dual objective (minimisation form)
        solution_points: Dual solution vectors (problem variables only)
        epigraph_value: Value of the objective epigraph variable, if any
        max_deviation: Largest normalized value over nonlinear constraints
        max_deviating_constraint: Index of that constraint, -1 if none
        objective_deviation: f(x) minus the epigraph value
        hyperplanes_added: Cuts added before this solve
    """
    number: int
    is_relaxed: bool = False
    solution_status: DualSolutionStatus = DualSolutionStatus.NOT_SOLVED
    objective_value: float = float('nan')
    solution_points: List[np.ndarray] = field(default_factory=list)
    epigraph_value: Optional[float] = None
    max_deviation: float = float('inf')
    max_deviating_constraint: int = -1
    objective_deviation: float = 0.0
    hyperplanes_added: int = 0

    @property
    def is_solved(self) -> bool:
        return self.solution_status in (DualSolutionStatus.OPTIMAL, DualSolutionStatus.FEASIBLE)

    @property
    def solution_point(self) -> Optional[np.ndarray]:
        return self.solution_points[0] if self.solution_points else None


@dataclass
class SolutionStatistics:
    iterations: int = 0
    relaxed_iterations: int = 0
    discrete_iterations: int = 0
    iteration_last_primal_bound_update: int = 0
    iteration_last_dual_bound_update: int = 0
    iteration_last_fixed_nlp: int = 0
    reduction_cuts_used: int = 0
    reduction_cuts_without_effect: int = 0
    integer_cuts_added: int = 0
    hyperplanes_added: int = 0
    nlp_problems_solved: int = 0
    linesearches: int = 0
    repairs: int = 0
    presolve_tightenings: int = 0


class Results:
    """
    Bounds, solutions and iteration history of a solve.

    At most max_primal_solutions distinct points are kept, best first.
    """

    max_primal_solutions = 50
    # Points closer than this in every coordinate are the same solution
    solution_point_tolerance = 1e-9

    def __init__(self):
        self.primal_bound = float('inf')
        self.dual_bound = float('-inf')
        self.primal_solutions: List[PrimalSolution] = []
        self.iterations: List[Iteration] = []
        self.termination_reason = TerminationReason.NONE
        self.termination_description = ""

        self.hyperplane_waiting_list: List[Hyperplane] = []
        self.primal_candidates: List[PrimalCandidate] = []
        self.fixed_nlp_candidates: List[np.ndarray] = []
        self.tested_integer_assignments: set = set()
        self.integer_cut_waiting_list: List[Dict[int, int]] = []
        self.task_failures: List[Tuple[str, str]] = []

        self.relaxation_active = False
        self.best_dual_objective = float('-inf')

    # Bounds

    @property
    def absolute_gap(self) -> float:
        if not (np.isfinite(self.primal_bound) and np.isfinite(self.dual_bound)):
            return float('inf')
        return abs(self.primal_bound - self.dual_bound)

    @property
    def relative_gap(self) -> float:
        if not (np.isfinite(self.primal_bound) and np.isfinite(self.dual_bound)):
            return float('inf')
        return abs(self.primal_bound - self.dual_bound) / (1e-10 + abs(self.primal_bound))

    def is_absolute_gap_met(self, tolerance: float) -> bool:
        return self.absolute_gap <= tolerance

    def is_relative_gap_met(self, tolerance: float) -> bool:
        return self.relative_gap <= tolerance

    def set_dual_bound(self, value: float) -> bool:
        """Raise the dual bound; values that do not improve it are ignored."""
        if not np.isfinite(value) or value <= self.dual_bound:
            return False
        # A dual bound above the primal bound only comes from tolerances
        self.dual_bound = min(value, self.primal_bound)
        return True

    def add_primal_solution(self, solution: PrimalSolution) -> bool:
        """
        Store a primal solution, best first.

        A point already stored is skipped, and so is a solution no better
        than the worst one once the list is full.

        Returns:
            True if the primal bound improved
        """
        solutions = self.primal_solutions
        for stored in solutions:
            if np.allclose(stored.point, solution.point, rtol=0.0, atol=self.solution_point_tolerance):
                return False
        if len(solutions) >= self.max_primal_solutions and solution.objective_value >= solutions[-1].objective_value:
            return False

        solutions.append(solution)
        solutions.sort(key=lambda s: s.objective_value)
        del solutions[self.max_primal_solutions:]

        if solution.objective_value < self.primal_bound:
            self.primal_bound = solution.objective_value
            return True
        return False

    @property
    def has_primal_solution(self) -> bool:
        return bool(self.primal_solutions)

    @property
    def primal_solution(self) -> Optional[np.ndarray]:
        return self.primal_solutions[0].point if self.primal_solutions else None

    # Iterations

    def add_iteration(self, is_relaxed: bool) -> Iteration:
        iteration = Iteration(number=len(self.iterations) + 1, is_relaxed=is_relaxed)
        self.iterations.append(iteration)
        return iteration

    @property
    def current_iteration(self) -> Optional[Iteration]:
        return self.iterations[-1] if self.iterations else None

    @property
    def previous_iteration(self) -> Optional[Iteration]:
        return self.iterations[-2] if len(self.iterations) > 1 else None

    def last_solved_iteration(self) -> Optional[Iteration]:
        for iteration in reversed(self.iterations):
            if iteration.is_solved:
                return iteration
        return None

    def summary(self) -> Dict[str, Any]:
        return {
            "primal_bound": self.primal_bound,
            "dual_bound": self.dual_bound,
            "iterations": len(self.iterations),
            "primal_solutions": len(self.primal_solutions),
            "termination": self.termination_reason.value,
        }


class Environment:
    """
    Everything a task may read or modify.

    Attributes:
        problem: Problem as given by the user
        reformulated_problem: Minimisation form solved internally
        objective_sign: Original objective = sign * reformulated objective
        settings: Settings provider
        results: Bounds, solutions and iterations
        statistics: Counters
        timing: Timer registry
        dual_solver: Dual (MILP/LP) backend, set by InitializeDualSolver
        primal_solver: Fixed-integer NLP backend
        rootsearch: Root search between interior and exterior points
        interior_points: Points strictly inside the nonlinear feasible set
        user_termination: Optional callback; returning True stops the solve
        task_graph: Graph being run, set by the solution strategy
    """

    def __init__(
        self,
        problem: Problem,
        settings: Optional[Settings] = None,
        user_termination: Optional[Callable[['Environment'], bool]] = None,
    ):
        problem.finalize()

        self.problem = problem
        self.reformulated_problem, self.objective_sign = problem.reformulated()
        self.settings = settings if settings is not None else Settings()
        self.results = Results()
        self.statistics = SolutionStatistics()
        self.timing = Timing()

        self.dual_solver = None
        self.primal_solver = None
        self.rootsearch = None
        self.interior_points: List[np.ndarray] = []
        self.user_termination = user_termination
        self.task_graph = None

    @property
    def is_convex(self) -> bool:
        """True if dual bounds are valid: detected convexity or AssumeConvex."""
        if self.settings.get_bool_setting("Convexity.AssumeConvex", "Model"):
            return True
        return self.reformulated_problem.properties.is_convex

    def state_summary(self) -> Dict[str, Any]:
        """Compact state hashed into task receipts."""
        current = self.results.current_iteration
        return {
            "primal_bound": self.results.primal_bound,
            "dual_bound": self.results.dual_bound,
            "iteration": current.number if current else 0,
            "hyperplanes": self.statistics.hyperplanes_added,
            "termination": self.results.termination_reason.value,
        }
