"""
Solver Entry Point

    solver = Solver(problem, settings)
    result = solver.solve()

Builds the environment, picks a solution strategy, runs its task graph and
reports bounds and the best point in the original objective sense.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple

import numpy as np

from ..model.problem import Problem
from ..settings import Settings, SolutionStrategyType
from .environment import Environment, TerminationReason

logger = logging.getLogger(__name__)


@dataclass
class SolverResult:
    """
    Outcome of a solve.

    Attributes:
        success: No task failed during the run
        termination_reason: Why the run stopped
        termination_description: Human-readable detail
        primal_bound: Best objective value found (original sense)
        dual_bound: Proven bound on the optimum (original sense)
        point: Best primal point, None if none was found
        iterations: Number of dual iterations
        strategy: Name of the strategy used
        statistics: Counters of the solve
        failures: (task name, message) of failed tasks
        problem: Structural summary of the reformulated problem
        receipts_hash: Final hash of the task receipt chain
        elapsed: Wall-clock time in seconds
    """
    success: bool
    termination_reason: TerminationReason
    termination_description: str
    primal_bound: float
    dual_bound: float
    point: Optional[np.ndarray]
    iterations: int
    strategy: str
    statistics: Dict[str, Any] = field(default_factory=dict)
    problem: Dict[str, Any] = field(default_factory=dict)
    failures: List[Tuple[str, str]] = field(default_factory=list)
    receipts_hash: str = ""
    elapsed: float = 0.0

    @property
    def has_solution(self) -> bool:
        return self.point is not None

    @property
    def absolute_gap(self) -> float:
        if not (np.isfinite(self.primal_bound) and np.isfinite(self.dual_bound)):
            return float('inf')
        return abs(self.primal_bound - self.dual_bound)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "termination_reason": self.termination_reason.value,
            "termination_description": self.termination_description,
            "primal_bound": self.primal_bound,
            "dual_bound": self.dual_bound,
            "point": self.point.tolist() if self.point is not None else None,
            "iterations": self.iterations,
            "strategy": self.strategy,
            "statistics": self.statistics,
            "problem": self.problem,
            "failures": [list(f) for f in self.failures],
            "receipts_hash": self.receipts_hash,
            "elapsed": self.elapsed,
        }


class Solver:
    """
    Top-level solver.

    Args:
        problem: Problem to solve
        settings: Settings provider (defaults when None)
        user_termination: Callback polled each iteration; True stops the solve
    """

    def __init__(
        self,
        problem: Problem,
        settings: Optional[Settings] = None,
        user_termination: Optional[Callable[[Environment], bool]] = None,
    ):
        self.problem = problem
        self.settings = settings if settings is not None else Settings()
        self.user_termination = user_termination
        self.env: Optional[Environment] = None
        self.strategy = None

    def select_strategy(self, env: Environment):
        # Imported here: the strategies import the tasks, which import this package
        from ..strategy import NLPStrategy, SingleTreeStrategy

        requested = SolutionStrategyType(self.settings.get_int_setting("Type", "Strategy"))
        if requested == SolutionStrategyType.AUTOMATIC:
            if env.reformulated_problem.properties.is_discrete:
                requested = SolutionStrategyType.SINGLE_TREE
            else:
                requested = SolutionStrategyType.NLP

        if requested == SolutionStrategyType.NLP:
            if env.reformulated_problem.properties.is_discrete:
                logger.warning("NLP strategy ignores integrality of discrete variables")
            return NLPStrategy(env)
        return SingleTreeStrategy(env)

    def solve(self) -> SolverResult:
        env = Environment(self.problem, self.settings, self.user_termination)
        self.env = env

        env.timing.start_timer("Total")
        self.strategy = self.select_strategy(env)

        logger.info(
            f"Solving {self.problem.name} with {type(self.strategy).__name__} "
            f"({len(self.problem.variables)} variables, {len(self.problem.numeric_constraints)} constraints, "
            f"{env.reformulated_problem.properties.convexity.value})"
        )

        try:
            success = env.task_graph.run(env)
        finally:
            env.timing.stop_timer("Total")

        return self._result(env, success)

    def _result(self, env: Environment, success: bool) -> SolverResult:
        results = env.results
        sign = env.objective_sign

        primal, dual = results.primal_bound, results.dual_bound
        if sign < 0:
            primal, dual = -primal, -dual

        point = results.primal_solution
        result = SolverResult(
            success=success,
            termination_reason=results.termination_reason,
            termination_description=results.termination_description,
            primal_bound=primal,
            dual_bound=dual,
            point=point.copy() if point is not None else None,
            iterations=env.statistics.iterations,
            strategy=type(self.strategy).__name__,
            statistics=dict(vars(env.statistics)),
            problem=env.reformulated_problem.properties.to_canonical(),
            failures=list(env.task_graph.failures),
            receipts_hash=env.task_graph.receipts.final_hash,
            elapsed=env.timing.get_elapsed_time("Total"),
        )

        logger.info(
            f"Finished: {result.termination_reason.value} | primal {primal:.6g} | "
            f"dual {dual:.6g} | {result.iterations} iterations | {result.elapsed:.2f}s"
        )
        return result
