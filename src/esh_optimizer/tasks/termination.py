"""
Termination Checks

Conditional tasks that sample the solver state and jump to finalization.
A check that fires records its TerminationReason; otherwise the cursor
advances (or jumps to the false target where one is given).
"""

import logging

from ..solver.environment import DualSolutionStatus, TerminationReason
from .base import ConditionalTask

logger = logging.getLogger(__name__)


class TerminationCheck(ConditionalTask):
    """Conditional that records a termination reason when it fires."""

    reason = TerminationReason.NONE

    def is_met(self, env) -> bool:
        raise NotImplementedError

    def describe(self, env) -> str:
        return self.reason.value

    def condition(self, env) -> bool:
        if not self.is_met(env):
            return False
        env.results.termination_reason = self.reason
        env.results.termination_description = self.describe(env)
        logger.info(f"Terminated: {env.results.termination_description}")
        return True


class CheckAbsoluteGap(TerminationCheck):
    reason = TerminationReason.ABSOLUTE_GAP

    def is_met(self, env) -> bool:
        tolerance = env.settings.get_double_setting("ObjectiveGap.Absolute", "Termination")
        return env.results.is_absolute_gap_met(tolerance)

    def describe(self, env) -> str:
        return f"absolute objective gap {env.results.absolute_gap:.3g} met"


class CheckRelativeGap(TerminationCheck):
    reason = TerminationReason.RELATIVE_GAP

    def is_met(self, env) -> bool:
        tolerance = env.settings.get_double_setting("ObjectiveGap.Relative", "Termination")
        return env.results.is_relative_gap_met(tolerance)

    def describe(self, env) -> str:
        return f"relative objective gap {env.results.relative_gap:.3g} met"


class CheckIterationLimit(TerminationCheck):
    reason = TerminationReason.ITERATION_LIMIT

    def is_met(self, env) -> bool:
        return env.statistics.iterations >= env.settings.get_int_setting("IterationLimit", "Termination")

    def describe(self, env) -> str:
        return f"iteration limit {env.statistics.iterations} reached"


class CheckTimeLimit(TerminationCheck):
    reason = TerminationReason.TIME_LIMIT

    def is_met(self, env) -> bool:
        limit = env.settings.get_double_setting("TimeLimit", "Termination")
        return env.timing.get_elapsed_time("Total") >= limit

    def describe(self, env) -> str:
        return f"time limit reached after {env.timing.get_elapsed_time('Total'):.2f}s"


class CheckUserTermination(TerminationCheck):
    reason = TerminationReason.USER_ABORT

    def is_met(self, env) -> bool:
        return env.user_termination is not None and bool(env.user_termination(env))

    def describe(self, env) -> str:
        return "terminated by user"


class CheckIterationError(TerminationCheck):
    """
    Stop when the dual problem could not be solved.

    An infeasible dual problem with a primal solution at hand (nonconvex
    hyperplanes or a reduction cut removed it) ends as FEASIBLE_NOT_PROVEN.
    """

    failed = {
        DualSolutionStatus.INFEASIBLE: TerminationReason.INFEASIBLE,
        DualSolutionStatus.UNBOUNDED: TerminationReason.UNBOUNDED,
        DualSolutionStatus.LIMIT: TerminationReason.ERROR,
        DualSolutionStatus.ERROR: TerminationReason.ERROR,
    }

    def is_met(self, env) -> bool:
        iteration = env.results.current_iteration
        return iteration is not None and iteration.solution_status in self.failed

    def condition(self, env) -> bool:
        if not self.is_met(env):
            return False

        results = env.results
        status = results.current_iteration.solution_status
        results.termination_reason = self.failed[status]

        if status == DualSolutionStatus.INFEASIBLE and results.has_primal_solution:
            results.termination_reason = TerminationReason.FEASIBLE_NOT_PROVEN
            if env.statistics.reduction_cuts_used > 0:
                description = "dual problem infeasible after primal reduction cut; best primal solution kept"
            else:
                description = "dual problem infeasible; best primal solution not proven optimal"
        else:
            description = f"dual problem {status.value}"
        env.results.termination_description = description

        logger.info(f"Terminated: {description}")
        return True


class CheckConstraintTolerance(TerminationCheck):
    """
    Stop when the dual solution satisfies the nonlinear constraints.

    Only optimal solutions of a discrete dual problem (or of any dual
    problem when the problem has no discrete variables) qualify. With a
    nonlinear objective the epigraph must also be tight.
    """

    reason = TerminationReason.CONSTRAINT_TOLERANCE

    def is_met(self, env) -> bool:
        iteration = env.results.current_iteration
        if iteration is None or iteration.solution_status != DualSolutionStatus.OPTIMAL:
            return False
        if iteration.is_relaxed and env.reformulated_problem.properties.is_discrete:
            return False

        tolerance = env.settings.get_double_setting("ConstraintTolerance", "Termination")
        gap = env.settings.get_double_setting("ObjectiveGap.Absolute", "Termination")
        return iteration.max_deviation <= tolerance and iteration.objective_deviation <= gap

    def describe(self, env) -> str:
        return f"dual solution within constraint tolerance ({env.results.current_iteration.max_deviation:.3g})"


class CheckMaxNumberOfPrimalReductionCuts(TerminationCheck):
    reason = TerminationReason.REDUCTION_CUT_LIMIT

    def is_met(self, env) -> bool:
        limit = env.settings.get_int_setting("ReductionCut.MaxIterations", "Dual")
        return env.statistics.reduction_cuts_without_effect >= limit

    def describe(self, env) -> str:
        return f"{env.statistics.reduction_cuts_without_effect} primal reduction cuts without effect"


class CheckPrimalStagnation(ConditionalTask):
    """
    Jump to task_if_true when the primal bound has not improved for
    PrimalStagnation.IterationLimit discrete iterations.
    """

    def condition(self, env) -> bool:
        if not env.results.has_primal_solution:
            return False
        iteration = env.results.current_iteration
        if iteration is None or iteration.is_relaxed:
            return False

        limit = env.settings.get_int_setting("PrimalStagnation.IterationLimit", "Termination")
        stagnated = env.statistics.iterations - env.statistics.iteration_last_primal_bound_update >= limit
        if stagnated:
            logger.info("Primal bound stagnated")
        return stagnated


class CheckDualStagnation(TerminationCheck):
    reason = TerminationReason.DUAL_STAGNATION

    def is_met(self, env) -> bool:
        iteration = env.results.current_iteration
        if iteration is None or iteration.is_relaxed:
            return False
        limit = env.settings.get_int_setting("DualStagnation.IterationLimit", "Termination")
        return env.statistics.iterations - env.statistics.iteration_last_dual_bound_update >= limit

    def describe(self, env) -> str:
        return f"dual bound stagnated since iteration {env.statistics.iteration_last_dual_bound_update}"
