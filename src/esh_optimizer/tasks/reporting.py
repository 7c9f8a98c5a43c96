"""
Iteration Report
"""

import logging

import numpy as np

from .base import Task

logger = logging.getLogger(__name__)


class PrintIterationReport(Task):
    """One progress line per iteration, bounds in the original objective sense."""

    def run(self, env, graph) -> None:
        results = env.results
        iteration = results.current_iteration
        if iteration is None:
            return

        sign = env.objective_sign
        lower, upper = results.dual_bound, results.primal_bound
        if sign < 0:
            lower, upper = -upper, -lower

        gap = results.relative_gap
        gap_str = f"{gap * 100:.2f}%" if np.isfinite(gap) else "inf"
        kind = "LP" if iteration.is_relaxed or not env.dual_solver.discrete else "MIP"

        logger.info(
            f"Iter: {iteration.number:4d} ({kind}) | LB: {lower:.6g} | UB: {upper:.6g} | "
            f"Gap: {gap_str} | Cuts: {env.statistics.hyperplanes_added} | "
            f"Time: {env.timing.get_elapsed_time('Total'):.2f}s"
        )
