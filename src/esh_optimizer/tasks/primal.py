"""
Primal Strategy Tasks

Produce primal candidates and accept the feasible ones:
- dual solution points checked directly
- linesearch between a feasible reference point and a dual solution
- NLP problems with the discrete variables fixed at dual solution values
"""

import logging
from typing import Dict, Tuple

import numpy as np

from ..model.variables import VariableType
from ..solver.environment import PrimalSolutionSource
from ..solver.primal_solver import check_primal_candidate
from .base import Task

logger = logging.getLogger(__name__)


def _integer_assignment(problem, point: np.ndarray) -> Dict[int, int]:
    return {v.index: int(round(point[v.index])) for v in problem.discrete_variables}


def _assignment_key(assignment: Dict[int, int]) -> Tuple[Tuple[int, int], ...]:
    return tuple(sorted(assignment.items()))


class SelectPrimalCandidatesFromSolutionPool(Task):
    """Check every point of the last dual solve against the original constraints."""

    def run(self, env, graph) -> None:
        iteration = env.results.current_iteration
        if iteration is None or not iteration.is_solved:
            return

        for point in iteration.solution_points:
            check_primal_candidate(env, point, PrimalSolutionSource.DUAL_SOLUTION_POOL)


class SelectPrimalCandidatesFromLinesearch(Task):
    """
    Search the segment between a feasible reference point and a dual solution.

    The reference is the interior point, or else the best primal solution,
    with its discrete values replaced by those of the dual solution. The
    feasible end of the root search bracket is the candidate.
    """

    def run(self, env, graph) -> None:
        iteration = env.results.current_iteration
        if iteration is None or not iteration.is_solved:
            return

        problem = env.reformulated_problem
        nonlinear = problem.nonlinear_constraints
        if not nonlinear:
            return

        references = list(env.interior_points)
        if env.results.has_primal_solution:
            references.append(env.results.primal_solution)
        if not references:
            return

        tolerance = env.settings.get_double_setting("Tolerance.Integer", "Primal")

        def largest(p):
            return max(c.calculate_numeric_value(p).normalized_value for c in nonlinear)

        env.timing.start_timer("PrimalStrategy")
        try:
            for point in iteration.solution_points:
                if largest(point) <= 0.0:
                    continue
                if not problem.is_integer_feasible(point, tolerance):
                    continue

                for reference in references:
                    start = np.array(reference, dtype=np.float64)
                    for variable in problem.discrete_variables:
                        start[variable.index] = round(point[variable.index])

                    env.statistics.linesearches += 1
                    result = env.rootsearch.find_zero(largest, start, point)
                    if result is None:
                        continue
                    if check_primal_candidate(env, result.inner_point, PrimalSolutionSource.LINESEARCH) is not None:
                        break
        finally:
            env.timing.stop_timer("PrimalStrategy")


class SelectPrimalFixedNLPPointsFromSolutionPool(Task):
    """
    Queue dual solutions whose integer assignment has not been tried in a fixed NLP.

    Runs every FixedInteger.Frequency iterations, or whenever no primal
    solution is known yet.

    Args:
        force: Queue regardless of the frequency (used when finalizing)
    """

    def __init__(self, force: bool = False):
        self.force = force

    def run(self, env, graph) -> None:
        if not env.settings.get_bool_setting("FixedInteger.Use", "Primal"):
            return

        results = env.results
        stats = env.statistics

        iteration = results.last_solved_iteration() if self.force else results.current_iteration
        if iteration is None or not iteration.is_solved or iteration.is_relaxed:
            return

        frequency = env.settings.get_int_setting("FixedInteger.Frequency", "Primal")
        due = (stats.iterations - stats.iteration_last_fixed_nlp >= frequency
               or not results.has_primal_solution)
        if not (self.force or due):
            return

        problem = env.reformulated_problem
        for point in iteration.solution_points:
            key = _assignment_key(_integer_assignment(problem, point))
            if problem.discrete_variables and key in results.tested_integer_assignments:
                continue
            results.fixed_nlp_candidates.append(np.array(point, dtype=np.float64))


class SelectPrimalCandidatesFromNLP(Task):
    """
    Solve the queued fixed-integer NLP problems.

    An assignment that gives no feasible NLP solution is excluded with an
    integer cut when integer cuts are enabled and every discrete variable
    is binary.
    """

    def run(self, env, graph) -> None:
        results = env.results
        stats = env.statistics
        candidates = results.fixed_nlp_candidates
        if not candidates:
            return

        problem = env.reformulated_problem
        use_integer_cuts = env.settings.get_bool_setting("HyperplaneCuts.UseIntegerCuts", "Dual")
        all_binary = all(v.type == VariableType.BINARY for v in problem.discrete_variables)

        env.timing.start_timer("FixedNLP")
        try:
            for candidate in candidates:
                assignment = _integer_assignment(problem, candidate)
                key = _assignment_key(assignment)
                if assignment and key in results.tested_integer_assignments:
                    continue
                results.tested_integer_assignments.add(key)

                fixed = {index: float(value) for index, value in assignment.items()}
                nlp = env.primal_solver.solve(problem, candidate, fixed)
                stats.nlp_problems_solved += 1
                stats.iteration_last_fixed_nlp = stats.iterations

                accepted = None
                if nlp.point is not None:
                    accepted = check_primal_candidate(env, nlp.point, PrimalSolutionSource.FIXED_NLP)

                if accepted is None:
                    logger.debug(f"Fixed NLP gave no feasible point: {nlp.message}")
                    if use_integer_cuts and all_binary and assignment:
                        results.integer_cut_waiting_list.append(assignment)
        finally:
            env.timing.stop_timer("FixedNLP")

        candidates.clear()
