"""
Initialization Tasks

Set up the solver backends and the first iteration record.
"""

import logging

from ..exceptions import TaskError
from ..solver.dual_solver import MILPDualSolver
from ..solver.interior_point import find_interior_point
from ..solver.primal_solver import NLPPrimalSolver
from ..solver.rootsearch import RootSearch
from .base import Task

logger = logging.getLogger(__name__)


class InitializeDualSolver(Task):
    """
    Create the dual and primal backends and the phase timers.

    Args:
        discrete: Keep integrality in the dual problem (False for NLP strategies)
    """

    def __init__(self, discrete: bool = True):
        self.discrete = discrete

    def run(self, env, graph) -> None:
        time_limit = env.settings.get_double_setting("TimeLimit", "Termination")
        env.dual_solver = MILPDualSolver(discrete=self.discrete, time_limit=time_limit)
        env.primal_solver = NLPPrimalSolver()

        env.timing.create_timer("InteriorPoint", "Interior point search")
        env.timing.create_timer("DualProblems", "Dual problems")
        env.timing.create_timer("PrimalStrategy", "Primal strategy")
        env.timing.create_timer("FixedNLP", "Fixed-integer NLP problems")


class FindInteriorPoint(Task):
    """Locate a point strictly inside the nonlinear constraints (needed by ESH)."""

    def run(self, env, graph) -> None:
        env.timing.start_timer("InteriorPoint")
        try:
            point = find_interior_point(env.reformulated_problem)
        finally:
            env.timing.stop_timer("InteriorPoint")

        if point is None:
            raise TaskError("No interior point found; hyperplanes fall back to ECP")

        env.interior_points.append(point)
        logger.info("Interior point found")


class CreateDualProblem(Task):
    def run(self, env, graph) -> None:
        env.dual_solver.create_problem(env.reformulated_problem)


class InitializeLinesearch(Task):
    """Root search shared by the ESH cut selection and the primal linesearch."""

    def run(self, env, graph) -> None:
        env.rootsearch = RootSearch(
            max_iterations=env.settings.get_int_setting("Rootsearch.MaxIterations", "Subsolver"),
            tolerance=env.settings.get_double_setting("Rootsearch.TerminationTolerance", "Subsolver"),
        )


class InitializeIteration(Task):
    """Open a new iteration record."""

    def run(self, env, graph) -> None:
        relaxed = env.dual_solver.is_relaxed if env.dual_solver is not None else False
        env.results.add_iteration(is_relaxed=relaxed)
        env.statistics.iterations += 1
