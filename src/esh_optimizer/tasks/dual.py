"""
Dual Strategy Tasks

Build and solve the polyhedral outer approximation:
- hyperplane point selection (ESH root search or ECP at the solution)
- objective epigraph cuts, integer cuts, primal reduction cuts
- relaxation strategy, presolve, repair of infeasible dual problems
"""

import logging
import math
from typing import List, Optional

import numpy as np

from ..model.constraints import NumericConstraint, NumericConstraintValue
from ..model.terms import Convexity
from ..settings import PresolveFrequency
from ..solver.environment import DualSolutionStatus, Hyperplane, TerminationReason
from ..solver.hyperplanes import create_constraint_hyperplane, create_objective_hyperplane
from ..solver.interior_point import max_nonlinear_violation
from ..tie_safe import select_top_k
from .base import ConditionalTask, Task

logger = logging.getLogger(__name__)


def _get_constraint(problem, index: int) -> Optional[NumericConstraint]:
    for constraint in problem.numeric_constraints:
        if constraint.index == index:
            return constraint
    return None


def _is_convex_set(constraint: NumericConstraint) -> bool:
    return constraint.properties.set_convexity in (Convexity.LINEAR, Convexity.CONVEX)


class AddHyperplanes(Task):
    """Move waiting hyperplanes into the dual problem, at most MaxPerIteration."""

    def run(self, env, graph) -> None:
        waiting = env.results.hyperplane_waiting_list
        if not waiting:
            return

        limit = env.settings.get_int_setting("HyperplaneCuts.MaxPerIteration", "Dual")
        problem = env.reformulated_problem
        dual = env.dual_solver

        added = 0
        for hyperplane in waiting[:limit]:
            if hyperplane.is_objective:
                if dual.epigraph_index is None:
                    continue
                row = create_objective_hyperplane(problem.objective_function, hyperplane.point, dual.epigraph_index)
            else:
                constraint = _get_constraint(problem, hyperplane.constraint_index)
                row = create_constraint_hyperplane(constraint, hyperplane.point) if constraint else None

            if row is not None and dual.add_hyperplane(row[0], row[1], hyperplane.constraint_index):
                added += 1

        del waiting[:limit]

        env.statistics.hyperplanes_added += added
        if env.results.current_iteration is not None:
            env.results.current_iteration.hyperplanes_added += added

        logger.debug(f"Added {added} hyperplanes")


class ExecuteRelaxationStrategy(Task):
    """
    Solve continuous relaxations before the discrete dual problems.

    The initial variant switches the relaxation on. The ongoing variant
    switches it off when the relaxed iteration limit is reached, when the
    relaxed solution satisfies the nonlinear constraints, when the relaxed
    objective stagnates, or when the relaxed problem could not be solved.

    Args:
        initial: Run as the initial variant
    """

    stagnation_tolerance = 1e-6

    def __init__(self, initial: bool = False):
        self.initial = initial

    @property
    def type(self) -> str:
        return "ExecuteRelaxationStrategyInitial" if self.initial else "ExecuteRelaxationStrategy"

    def run(self, env, graph) -> None:
        dual = env.dual_solver
        results = env.results

        if self.initial:
            if (env.settings.get_bool_setting("Relaxation.Use", "Dual")
                    and env.reformulated_problem.properties.is_discrete):
                dual.set_relaxed(True)
                results.relaxation_active = True
                logger.info("Solving continuous relaxations first")
        elif results.relaxation_active and self._is_finished(env):
            dual.set_relaxed(False)
            results.relaxation_active = False
            logger.info(f"Relaxation finished after {env.statistics.relaxed_iterations} iterations")

        if results.current_iteration is not None:
            results.current_iteration.is_relaxed = dual.is_relaxed

    def _is_finished(self, env) -> bool:
        limit = env.settings.get_int_setting("Relaxation.IterationLimit", "Dual")
        if env.statistics.relaxed_iterations >= limit:
            return True

        relaxed = [i for i in env.results.iterations if i.is_relaxed and i.solution_status != DualSolutionStatus.NOT_SOLVED]
        if not relaxed:
            return False

        last = relaxed[-1]
        if not last.is_solved:
            return True

        tolerance = env.settings.get_double_setting("ConstraintTolerance", "Termination")
        if last.max_deviation <= tolerance:
            return True

        if len(relaxed) >= 3:
            values = [i.objective_value for i in relaxed[-3:]]
            scale = max(1.0, abs(values[-1]))
            if max(values) - min(values) <= self.stagnation_tolerance * scale:
                return True

        return False


class Presolve(Task):
    """Tighten dual variable bounds with the linear constraints."""

    def run(self, env, graph) -> None:
        frequency = env.settings.get_int_setting("MIP.Presolve.Frequency", "Dual")
        if frequency == PresolveFrequency.NEVER:
            return

        changes = env.dual_solver.presolve()
        env.statistics.presolve_tightenings += changes
        if changes:
            logger.debug(f"Presolve tightened {changes} bounds")


class SolveIteration(Task):
    """
    Solve the current dual problem and record the outcome.

    The dual bound is only updated when every hyperplane is valid (convex
    problem) and no reduction cutoff is active.
    """

    def run(self, env, graph) -> None:
        dual = env.dual_solver
        results = env.results
        stats = env.statistics
        problem = env.reformulated_problem

        iteration = results.current_iteration
        iteration.is_relaxed = dual.is_relaxed

        if env.settings.get_int_setting("MIP.Presolve.Frequency", "Dual") == PresolveFrequency.EVERY_ITERATION:
            stats.presolve_tightenings += dual.presolve()

        env.timing.start_timer("DualProblems")
        try:
            result = dual.solve()
        finally:
            env.timing.stop_timer("DualProblems")

        if iteration.is_relaxed:
            stats.relaxed_iterations += 1
        else:
            stats.discrete_iterations += 1

        iteration.solution_status = result.status
        iteration.solution_points = []
        iteration.epigraph_value = None

        if not iteration.is_solved:
            logger.info(f"Dual problem in iteration {iteration.number}: {result.status.value}")
            return

        points = []
        for point in result.points:
            x, mu = dual.split_point(point)
            points.append(x)
            if iteration.epigraph_value is None:
                iteration.epigraph_value = mu
        iteration.solution_points = points
        iteration.objective_value = result.objective_value

        x = iteration.solution_point
        maximal = problem.get_max_numeric_constraint_value(x, problem.nonlinear_constraints)
        if maximal is not None:
            iteration.max_deviation = maximal.normalized_value
            iteration.max_deviating_constraint = maximal.constraint.index
        else:
            iteration.max_deviation = 0.0
            iteration.max_deviating_constraint = -1

        if iteration.epigraph_value is not None:
            objective_value = problem.objective_function.calculate_function_value(x)
            iteration.objective_deviation = max(0.0, objective_value - iteration.epigraph_value)

        scale = max(1.0, abs(results.best_dual_objective)) if np.isfinite(results.best_dual_objective) else 1.0
        if result.objective_value > results.best_dual_objective + 1e-6 * scale:
            results.best_dual_objective = result.objective_value
            stats.iteration_last_dual_bound_update = stats.iterations

        if env.is_convex and dual.cutoff is None:
            results.set_dual_bound(result.dual_bound)


class RepairInfeasibleDualProblem(ConditionalTask):
    """
    Remove the hyperplanes of nonconvex constraints from an infeasible dual problem.

    Such hyperplanes may cut off feasible points; dropping them restores
    feasibility when they caused the infeasibility. Jumps to task_if_true
    (solve again) after a repair.
    """

    def condition(self, env) -> bool:
        iteration = env.results.current_iteration
        if iteration is None or iteration.solution_status != DualSolutionStatus.INFEASIBLE:
            return False
        if env.is_convex:
            return False
        if env.statistics.repairs >= env.settings.get_int_setting("Repair.MaxIterations", "Dual"):
            return False

        tags = [c.index for c in env.reformulated_problem.nonlinear_constraints if not _is_convex_set(c)]
        removed = env.dual_solver.remove_hyperplanes(tags)
        if removed == 0:
            return False

        env.statistics.repairs += 1
        logger.info(f"Dual problem infeasible; removed {removed} hyperplanes of nonconvex constraints")
        return True


class UpdateInteriorPoint(Task):
    """Move the interior point towards the best primal solution."""

    def run(self, env, graph) -> None:
        if not env.settings.get_bool_setting("ESH.InteriorPoint.UsePrimalSolution", "Dual"):
            return
        if not env.results.has_primal_solution:
            return

        nonlinear = env.reformulated_problem.nonlinear_constraints
        if not nonlinear:
            return

        primal = env.results.primal_solution

        if not env.interior_points:
            if max_nonlinear_violation(nonlinear, primal) < 0.0:
                env.interior_points.append(primal.copy())
                logger.debug("Primal solution used as interior point")
            return

        candidate = 0.5 * (env.interior_points[0] + primal)
        if max_nonlinear_violation(nonlinear, candidate) < 0.0:
            env.interior_points[0] = candidate


class SelectHyperplanePointsECP(Task):
    """Queue cuts at the last dual solution for the most violated constraints."""

    source = "ECP"

    def run(self, env, graph) -> None:
        iteration = env.results.previous_iteration or env.results.current_iteration
        if iteration is None or not iteration.is_solved:
            return

        for point in iteration.solution_points:
            for value in self._selected_constraints(env, point):
                self._queue(env, value.constraint.index, point)

    def _selected_constraints(self, env, point: np.ndarray) -> List[NumericConstraintValue]:
        """Violated nonlinear constraints, a ConstraintSelectionFactor share of them, largest first."""
        problem = env.reformulated_problem
        tolerance = env.settings.get_double_setting("ConstraintTolerance", "Termination")
        factor = env.settings.get_double_setting("HyperplaneCuts.ConstraintSelectionFactor", "Dual")

        values = problem.get_most_deviating_numeric_constraints(point, problem.nonlinear_constraints, tolerance)
        if not values:
            return []

        k = max(1, math.ceil(factor * len(values)))
        return select_top_k(
            values,
            score_fn=lambda v: v.error,
            k=k,
            key_fn=lambda v: v.constraint.index,
            minimize=False,
        )

    def _queue(self, env, index: int, point: np.ndarray, source: Optional[str] = None) -> None:
        limit = env.settings.get_int_setting("HyperplaneCuts.MaxPerIteration", "Dual")
        waiting = env.results.hyperplane_waiting_list
        if len(waiting) < limit:
            waiting.append(Hyperplane(index, np.array(point, dtype=np.float64), source or self.source))


class SelectHyperplanePointsESH(SelectHyperplanePointsECP):
    """
    Queue cuts at the boundary of the nonlinear feasible set.

    For each dual solution a root search on the largest of the selected
    constraint functions runs from every interior point towards the
    solution. Each selected constraint that is violated at the exterior
    end of the bracket is linearized there. Without an interior point, or
    when the root search fails, the cut is taken at the solution (ECP).
    """

    source = "ESH"

    def run(self, env, graph) -> None:
        if not env.interior_points:
            super().run(env, graph)
            return

        iteration = env.results.previous_iteration or env.results.current_iteration
        if iteration is None or not iteration.is_solved:
            return

        for point in iteration.solution_points:
            selected = self._selected_constraints(env, point)
            if not selected:
                continue

            constraints = [v.constraint for v in selected]

            def largest(p, constraints=constraints):
                return max(c.calculate_numeric_value(p).normalized_value for c in constraints)

            for interior in env.interior_points:
                result = env.rootsearch.find_zero(largest, interior, point)

                if result is None:
                    for constraint in constraints:
                        self._queue(env, constraint.index, point, "ECP")
                    continue

                violated = [c for c in constraints if c.calculate_numeric_value(result.outer_point).normalized_value > 0.0]
                if not violated:
                    violated = [max(constraints, key=lambda c: c.calculate_numeric_value(result.outer_point).normalized_value)]

                for constraint in violated:
                    self._queue(env, constraint.index, result.outer_point)


class SelectObjectiveHyperplanePoints(Task):
    """Queue an epigraph cut where the nonlinear objective exceeds its epigraph variable."""

    def run(self, env, graph) -> None:
        if env.dual_solver.epigraph_index is None:
            return

        iteration = env.results.previous_iteration or env.results.current_iteration
        if iteration is None or not iteration.is_solved:
            return

        tolerance = env.settings.get_double_setting("ConstraintTolerance", "Termination")
        if iteration.objective_deviation <= tolerance:
            return

        for point in iteration.solution_points:
            env.results.hyperplane_waiting_list.append(Hyperplane(-1, np.array(point), "objective"))


class AddIntegerCuts(Task):
    """Exclude infeasible binary assignments from the dual problem."""

    def run(self, env, graph) -> None:
        waiting = env.results.integer_cut_waiting_list
        for assignment in waiting:
            if env.dual_solver.add_integer_cut(assignment):
                env.statistics.integer_cuts_added += 1
        waiting.clear()


class AddPrimalReductionCut(ConditionalTask):
    """
    Restrict the dual objective below the primal bound of a nonconvex problem.

    When the dual iterations converge or stagnate on a nonconvex problem the
    dual bound is not valid, so the outer approximation is forced to look
    for a better solution:

        objective <= primal_bound - factor * max(|primal_bound|, 1)

    Jumps to task_if_true after adding the cut, otherwise to task_if_false.
    """

    allowed_reasons = (
        TerminationReason.NONE,
        TerminationReason.CONSTRAINT_TOLERANCE,
        TerminationReason.DUAL_STAGNATION,
    )

    def condition(self, env) -> bool:
        results = env.results
        stats = env.statistics

        if env.is_convex or not results.has_primal_solution:
            return False
        if results.termination_reason not in self.allowed_reasons:
            return False
        if stats.reduction_cuts_without_effect >= env.settings.get_int_setting("ReductionCut.MaxIterations", "Dual"):
            return False

        factor = env.settings.get_double_setting("ReductionCut.ReductionFactor", "Dual")
        cutoff = results.primal_bound - factor * max(abs(results.primal_bound), 1.0)
        env.dual_solver.set_cutoff(cutoff)

        stats.reduction_cuts_used += 1
        stats.reduction_cuts_without_effect += 1
        stats.iteration_last_primal_bound_update = stats.iterations
        stats.iteration_last_dual_bound_update = stats.iterations

        results.termination_reason = TerminationReason.NONE
        results.termination_description = ""

        relation = "<=" if env.objective_sign > 0 else ">="
        logger.info(f"Primal reduction cut {stats.reduction_cuts_used}: objective {relation} {cutoff * env.objective_sign:.6g}")
        return True
